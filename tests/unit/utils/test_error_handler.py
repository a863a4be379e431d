"""Tests for error handling."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError
from msgraph.generated.models.o_data_errors.main_error import MainError
from msgraph.generated.models.o_data_errors.o_data_error import ODataError

from src.awsag.utils.error_handler import (
    AssignmentListingError,
    AwsIdentityCenterError,
    AzureGraphError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    describe_error,
    handle_cli_error,
)


def client_error(code, message="Something failed"):
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"RequestId": "req-123"},
        },
        "ListAccountAssignments",
    )


def odata_error(status_code, message="Insufficient privileges"):
    error = ODataError()
    error.response_status_code = status_code
    error.error = MainError(code="Authorization_RequestDenied", message=message)
    return error


@pytest.fixture
def context():
    return ErrorContext(component="awsag", operation="validate")


class TestDescribeError:
    """Test extraction of error messages."""

    def test_plain_exception(self):
        assert describe_error(RuntimeError("boom")) == "boom"

    def test_empty_message_falls_back(self):
        assert describe_error(RuntimeError()) == "Unknown error"
        assert describe_error(None) == "Unknown error"

    def test_client_error_message(self):
        assert describe_error(client_error("AccessDeniedException", "Not allowed")) == "Not allowed"

    def test_odata_error_message(self):
        assert describe_error(odata_error(403)) == "Insufficient privileges"


class TestErrorHandler:
    """Test exception to HandledError mapping."""

    def test_credentials_error(self, context):
        handled = ErrorHandler().handle_error(NoCredentialsError(), context)

        assert handled.category == ErrorCategory.AUTHENTICATION
        assert handled.get_error_code() == "AUTHENTICATION_CREDS_001"

    def test_connection_error(self, context):
        error = EndpointConnectionError(endpoint_url="https://sso.us-east-1.amazonaws.com")

        handled = ErrorHandler().handle_error(error, context)

        assert handled.category == ErrorCategory.CONNECTION

    @pytest.mark.parametrize(
        "code,category",
        [
            ("AccessDeniedException", ErrorCategory.AUTHORIZATION),
            ("ResourceNotFoundException", ErrorCategory.RESOURCE_NOT_FOUND),
            ("ThrottlingException", ErrorCategory.SERVICE_ERROR),
            ("ValidationException", ErrorCategory.SERVICE_ERROR),
        ],
    )
    def test_client_error_codes(self, context, code, category):
        handled = ErrorHandler().handle_error(client_error(code), context)

        assert handled.category == category
        assert "Something failed" in handled.message
        assert handled.context.request_id == "req-123"

    def test_graph_authorization_error(self, context):
        handled = ErrorHandler().handle_error(odata_error(403), context)

        assert handled.category == ErrorCategory.AUTHORIZATION
        assert "Group.Read.All" in handled.remediation_steps[0]

    def test_graph_service_error(self, context):
        handled = ErrorHandler().handle_error(odata_error(503, "Service unavailable"), context)

        assert handled.category == ErrorCategory.SERVICE_ERROR

    def test_identity_center_error_uses_client_error_cause(self, context):
        error = AwsIdentityCenterError("AWS Identity Center request failed: Something failed")
        error.__cause__ = client_error("AccessDeniedException")

        handled = ErrorHandler().handle_error(error, context)

        assert handled.error_id == "PERM_001"
        assert handled.category == ErrorCategory.AUTHORIZATION
        assert handled.context.request_id == "req-123"

    def test_identity_center_error_without_cause(self, context):
        error = AwsIdentityCenterError("AWS credentials are invalid or expired")

        handled = ErrorHandler().handle_error(error, context)

        assert handled.error_id == "AWS_002"
        assert handled.category == ErrorCategory.AUTHENTICATION
        assert "AWS credentials are invalid or expired" in handled.message

    def test_azure_graph_error_uses_odata_cause(self, context):
        error = AzureGraphError("Failed to reach Microsoft Graph: Insufficient privileges")
        error.__cause__ = odata_error(403)

        handled = ErrorHandler().handle_error(error, context)

        assert handled.error_id == "GRAPH_002"
        assert handled.category == ErrorCategory.AUTHORIZATION

    def test_azure_graph_error_without_cause(self, context):
        handled = ErrorHandler().handle_error(AzureGraphError("Graph timed out"), context)

        assert handled.error_id == "GRAPH_003"
        assert handled.category == ErrorCategory.SERVICE_ERROR

    def test_configuration_error_lists_missing_settings(self, context):
        error = ConfigurationError("Configuration is incomplete", missing=["missing tenant"])

        handled = ErrorHandler().handle_error(error, context)

        assert handled.category == ErrorCategory.CONFIGURATION
        assert handled.remediation_steps[0] == "missing tenant"

    def test_listing_error(self, context):
        error = AssignmentListingError("Failed to validate all assignments: boom")

        handled = ErrorHandler().handle_error(error, context)

        assert handled.message == "Failed to validate all assignments: boom"

    def test_generic_error(self, context):
        handled = ErrorHandler().handle_error(ValueError("bad value"), context)

        assert handled.category == ErrorCategory.INTERNAL
        details = handled.get_technical_details()
        assert details["exception_type"] == "ValueError"
        assert details["exception_message"] == "bad value"

    def test_errors_are_logged(self, context):
        logger = MagicMock()

        ErrorHandler(logger=logger).handle_error(ValueError("bad value"), context)

        logger.error.assert_called_once()


def test_handle_cli_error_prints_message_and_steps():
    console = MagicMock()

    handled = handle_cli_error(NoCredentialsError(), "validate", console)

    printed = [call.args[0] for call in console.print.call_args_list]
    assert printed[0] == "[red]Error: AWS credentials not found or invalid[/red]"
    assert len(printed) == 1 + len(handled.remediation_steps)
