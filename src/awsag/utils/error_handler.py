"""Error handling for Azure AD and AWS Identity Center validation."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type

from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError
from msgraph.generated.models.o_data_errors.o_data_error import ODataError

UNKNOWN_ERROR = "Unknown error"


class AwsAgError(Exception):
    """Base class for all awsag errors."""


class ConfigurationError(AwsAgError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class CollaboratorError(AwsAgError):
    """Raised when an identity provider returns an unusable response."""


class AzureGraphError(CollaboratorError):
    """Raised for Microsoft Graph failures other than a missing group."""


class AwsIdentityCenterError(CollaboratorError):
    """Raised for AWS Identity Center failures."""


class AssignmentListingError(AwsAgError):
    """Raised when the account assignment listing needed for a full validation fails."""


def describe_error(error: Optional[BaseException]) -> str:
    """
    Return the most useful message carried by an exception.

    Falls back to "Unknown error" when the exception has no message.
    """
    if error is None:
        return UNKNOWN_ERROR

    if isinstance(error, ClientError):
        message = error.response.get("Error", {}).get("Message")
        if message:
            return message

    if isinstance(error, ODataError):
        main_error = getattr(error, "error", None)
        message = getattr(main_error, "message", None)
        if message:
            return message

    message = str(error)
    if not message:
        return UNKNOWN_ERROR
    return message


class ErrorCategory(str, Enum):
    """Categories of errors for better organization and handling."""

    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RESOURCE_NOT_FOUND = "resource_not_found"
    SERVICE_ERROR = "service_error"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Context information for errors to aid in debugging and resolution."""

    component: str
    operation: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: Optional[str] = None
    resource_id: Optional[str] = None
    additional_context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HandledError:
    """Error information with context and remediation guidance."""

    error_id: str
    message: str
    category: ErrorCategory
    context: ErrorContext
    original_exception: Optional[BaseException] = None
    remediation_steps: List[str] = field(default_factory=list)

    def get_error_code(self) -> str:
        """Generate a unique error code for tracking."""
        return f"{self.category.value.upper()}_{self.error_id}"

    def get_technical_details(self) -> Dict[str, Any]:
        """Get technical details for debugging."""
        details: Dict[str, Any] = {
            "error_id": self.error_id,
            "error_code": self.get_error_code(),
            "category": self.category.value,
            "component": self.context.component,
            "operation": self.context.operation,
            "timestamp": self.context.timestamp.isoformat(),
        }

        if self.context.request_id:
            details["request_id"] = self.context.request_id

        if self.context.resource_id:
            details["resource_id"] = self.context.resource_id

        if self.original_exception is not None:
            details["exception_type"] = type(self.original_exception).__name__
            details["exception_message"] = describe_error(self.original_exception)

        if self.context.additional_context:
            details["additional_context"] = self.context.additional_context

        return details


class ErrorHandler:
    """
    Converts exceptions raised by the identity provider clients into
    user-facing messages with remediation steps.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._error_mappings: Dict[
            Type[BaseException], Callable[[Any, ErrorContext], HandledError]
        ] = {
            NoCredentialsError: self._handle_credentials_error,
            EndpointConnectionError: self._handle_connection_error,
            ClientError: self._handle_client_error,
            ODataError: self._handle_graph_error,
            AwsIdentityCenterError: self._handle_identity_center_error,
            AzureGraphError: self._handle_azure_graph_error,
            ConfigurationError: self._handle_configuration_error,
            AssignmentListingError: self._handle_listing_error,
            Exception: self._handle_generic_error,
        }

    def handle_error(self, exception: BaseException, context: ErrorContext) -> HandledError:
        """
        Handle an exception and convert it to a HandledError.

        Args:
            exception: The exception that occurred
            context: Context information about where the error occurred

        Returns:
            HandledError: Error information with remediation steps
        """
        handler = self._find_error_handler(type(exception))
        handled = handler(exception, context)
        self.logger.error(
            f"{handled.get_error_code()}: {handled.message}",
            extra={
                "component": context.component,
                "operation": context.operation,
                "category": handled.category.value,
            },
        )
        return handled

    def _find_error_handler(
        self, exception_type: Type[BaseException]
    ) -> Callable[[Any, ErrorContext], HandledError]:
        if exception_type in self._error_mappings:
            return self._error_mappings[exception_type]

        for mapped_type, handler in self._error_mappings.items():
            if mapped_type is not Exception and issubclass(exception_type, mapped_type):
                return handler

        return self._error_mappings[Exception]

    def _handle_credentials_error(
        self, exception: NoCredentialsError, context: ErrorContext
    ) -> HandledError:
        return HandledError(
            error_id="CREDS_001",
            message="AWS credentials not found or invalid",
            category=ErrorCategory.AUTHENTICATION,
            context=context,
            original_exception=exception,
            remediation_steps=[
                "Configure AWS credentials using 'aws configure' or set environment variables",
                "Verify AWS credentials are valid with 'aws sts get-caller-identity'",
                "Check if the AWS profile is correctly specified",
            ],
        )

    def _handle_connection_error(
        self, exception: EndpointConnectionError, context: ErrorContext
    ) -> HandledError:
        return HandledError(
            error_id="CONN_001",
            message=f"Cannot connect to AWS Identity Center service: {describe_error(exception)}",
            category=ErrorCategory.CONNECTION,
            context=context,
            original_exception=exception,
            remediation_steps=[
                "Check internet connectivity and DNS resolution",
                "Verify the AWS region is correctly configured",
            ],
        )

    def _handle_client_error(self, exception: ClientError, context: ErrorContext) -> HandledError:
        error_code = exception.response.get("Error", {}).get("Code", "Unknown")
        error_message = describe_error(exception)
        context.request_id = exception.response.get("ResponseMetadata", {}).get("RequestId")

        if error_code in ["AccessDenied", "AccessDeniedException", "UnauthorizedOperation"]:
            return HandledError(
                error_id="PERM_001",
                message=f"Insufficient permissions for {context.operation}: {error_message}",
                category=ErrorCategory.AUTHORIZATION,
                context=context,
                original_exception=exception,
                remediation_steps=[
                    "Verify the IAM user or role has sso:List*, sso:Describe* and identitystore:* read permissions",
                    "Check that Identity Center is enabled in this AWS region",
                ],
            )
        if error_code in ["ResourceNotFoundException", "NoSuchEntity"]:
            return HandledError(
                error_id="RES_001",
                message=f"Resource not found in {context.operation}: {error_message}",
                category=ErrorCategory.RESOURCE_NOT_FOUND,
                context=context,
                original_exception=exception,
                remediation_steps=[
                    "Verify the Identity Center instance ARN and identity store ID",
                    "Check if the resource exists in the configured AWS region",
                ],
            )
        if error_code in ["ThrottlingException", "TooManyRequestsException"]:
            return HandledError(
                error_id="THROT_001",
                message=f"API request throttled for {context.operation}: {error_message}",
                category=ErrorCategory.SERVICE_ERROR,
                context=context,
                original_exception=exception,
                remediation_steps=["Wait before retrying the operation"],
            )
        return HandledError(
            error_id="AWS_001",
            message=f"AWS API error in {context.operation}: {error_message}",
            category=ErrorCategory.SERVICE_ERROR,
            context=context,
            original_exception=exception,
            remediation_steps=["Review the error details and check AWS CloudTrail logs"],
        )

    def _handle_graph_error(self, exception: ODataError, context: ErrorContext) -> HandledError:
        status_code = getattr(exception, "response_status_code", None)
        if status_code in (401, 403):
            return HandledError(
                error_id="GRAPH_002",
                message=f"Microsoft Graph denied {context.operation}: {describe_error(exception)}",
                category=ErrorCategory.AUTHORIZATION,
                context=context,
                original_exception=exception,
                remediation_steps=[
                    "Grant the application Group.Read.All and GroupMember.Read.All permissions",
                    "Verify the Azure tenant ID, client ID and client secret",
                ],
            )
        return HandledError(
            error_id="GRAPH_001",
            message=f"Microsoft Graph error in {context.operation}: {describe_error(exception)}",
            category=ErrorCategory.SERVICE_ERROR,
            context=context,
            original_exception=exception,
            remediation_steps=["Check Azure AD service health and retry"],
        )

    def _handle_identity_center_error(
        self, exception: AwsIdentityCenterError, context: ErrorContext
    ) -> HandledError:
        if isinstance(exception.__cause__, ClientError):
            return self._handle_client_error(exception.__cause__, context)
        return HandledError(
            error_id="AWS_002",
            message=(
                f"AWS Identity Center error in {context.operation}: {describe_error(exception)}"
            ),
            category=ErrorCategory.AUTHENTICATION,
            context=context,
            original_exception=exception,
            remediation_steps=[
                "Refresh the credentials of the selected AWS profile (for example 'aws sso login')",
                "Verify the AWS region and the Identity Center instance ARN",
            ],
        )

    def _handle_azure_graph_error(
        self, exception: AzureGraphError, context: ErrorContext
    ) -> HandledError:
        if isinstance(exception.__cause__, ODataError):
            return self._handle_graph_error(exception.__cause__, context)
        return HandledError(
            error_id="GRAPH_003",
            message=f"Microsoft Graph error in {context.operation}: {describe_error(exception)}",
            category=ErrorCategory.SERVICE_ERROR,
            context=context,
            original_exception=exception,
            remediation_steps=["Check Azure AD service health and retry"],
        )

    def _handle_configuration_error(
        self, exception: ConfigurationError, context: ErrorContext
    ) -> HandledError:
        steps = list(exception.missing)
        steps.append("Run 'awsag config' to review the active configuration")
        return HandledError(
            error_id="CFG_001",
            message=f"Configuration error: {describe_error(exception)}",
            category=ErrorCategory.CONFIGURATION,
            context=context,
            original_exception=exception,
            remediation_steps=steps,
        )

    def _handle_listing_error(
        self, exception: AssignmentListingError, context: ErrorContext
    ) -> HandledError:
        return HandledError(
            error_id="LIST_001",
            message=describe_error(exception),
            category=ErrorCategory.SERVICE_ERROR,
            context=context,
            original_exception=exception,
            remediation_steps=[
                "Verify read access to sso:ListAccountAssignments for every account",
            ],
        )

    def _handle_generic_error(self, exception: Exception, context: ErrorContext) -> HandledError:
        return HandledError(
            error_id="GEN_001",
            message=f"Unexpected error in {context.operation}: {describe_error(exception)}",
            category=ErrorCategory.INTERNAL,
            context=context,
            original_exception=exception,
            remediation_steps=["Re-run with --verbose and check the log file for details"],
        )


def handle_cli_error(exception: BaseException, operation: str, console: Any) -> HandledError:
    """
    Render an exception raised while running a CLI command.

    Args:
        exception: The exception that occurred
        operation: Name of the operation that failed
        console: Rich console used for output

    Returns:
        HandledError: The handled error, for callers that need the details
    """
    context = ErrorContext(component="awsag", operation=operation)
    handled = ErrorHandler().handle_error(exception, context)
    console.print(f"[red]Error: {handled.message}[/red]")
    for step in handled.remediation_steps:
        console.print(f"  [yellow]•[/yellow] {step}")
    return handled
