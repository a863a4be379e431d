"""Data models for Azure AD group to AWS Identity Center assignment validation."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class AssignmentStatus(str, Enum):
    """Lifecycle status of an intended group assignment."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"


class PrincipalType(str, Enum):
    """Enumeration for principal types."""

    USER = "USER"
    GROUP = "GROUP"


class AccountAssignmentStatus(str, Enum):
    """Provisioning status reported by AWS for an account assignment."""

    PROVISIONED = "PROVISIONED"
    IN_PROGRESS = "IN_PROGRESS"
    FAILED = "FAILED"


def _status_value(status: Any) -> str:
    """Return the plain string form of a status that may be an Enum member."""
    return status.value if isinstance(status, Enum) else str(status)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def assignment_key(azure_group_id: str, aws_account_id: str, permission_set_arn: str) -> str:
    """Build the composite key used to index batch validation results."""
    return f"{azure_group_id}-{aws_account_id}-{permission_set_arn}"


# Collaborator payloads


@dataclass
class AzureGroupValidation:
    """Detailed view of an Azure AD group as reported by Microsoft Graph."""

    exists: bool
    is_active: bool
    is_security_group: bool
    member_count: int
    display_name: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def not_found(cls, error: Optional[str] = None) -> "AzureGroupValidation":
        """Create the result for a group that could not be found."""
        return cls(
            exists=False,
            is_active=False,
            is_security_group=False,
            member_count=0,
            errors=[error] if error else [],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exists": self.exists,
            "is_active": self.is_active,
            "is_security_group": self.is_security_group,
            "member_count": self.member_count,
            "display_name": self.display_name,
            "errors": list(self.errors),
        }


@dataclass
class SyncStatus:
    """Synchronization state of an Azure group inside AWS Identity Center."""

    is_synced: bool
    aws_group_id: Optional[str] = None
    last_sync_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_synced": self.is_synced,
            "aws_group_id": self.aws_group_id,
            "last_sync_time": _isoformat(self.last_sync_time),
        }


@dataclass
class PermissionSet:
    """AWS Identity Center permission set definition."""

    arn: str
    name: str
    description: Optional[str] = None
    session_duration: str = "PT1H"
    managed_policies: List[str] = field(default_factory=list)
    inline_policy: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)

    def has_policies(self) -> bool:
        """Check whether at least one managed policy or a non-blank inline policy is attached."""
        return bool(self.managed_policies) or bool(
            self.inline_policy and self.inline_policy.strip()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "arn": self.arn,
            "name": self.name,
            "description": self.description,
            "session_duration": self.session_duration,
            "managed_policies": list(self.managed_policies),
            "has_inline_policy": bool(self.inline_policy and self.inline_policy.strip()),
        }


@dataclass
class AccountAssignment:
    """Binding of a principal and a permission set in one AWS account."""

    account_id: str
    principal_id: str
    principal_type: PrincipalType
    permission_set_arn: str
    status: str = AccountAssignmentStatus.PROVISIONED.value

    def is_provisioned(self) -> bool:
        """Check if AWS reports the assignment as provisioned."""
        return _status_value(self.status) == AccountAssignmentStatus.PROVISIONED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_id": self.account_id,
            "principal_id": self.principal_id,
            "principal_type": _status_value(self.principal_type),
            "permission_set_arn": self.permission_set_arn,
            "status": _status_value(self.status),
        }


@dataclass
class AwsGroupDetails:
    """Identity Store view of a synchronized group."""

    display_name: Optional[str]
    member_count: int = 0
    description: Optional[str] = None


# Core domain


@dataclass(frozen=True)
class GroupAssignment:
    """
    Intended binding between an Azure AD group and an AWS permission set.

    Immutable; one instance describes one (group, account, permission set) triple.
    """

    azure_group_id: str
    azure_group_name: str
    aws_account_id: str
    permission_set_arn: str
    assignment_status: AssignmentStatus = AssignmentStatus.PENDING
    created_date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_validated: Optional[datetime] = None

    @property
    def key(self) -> str:
        """Composite key identifying this assignment in batch results."""
        return assignment_key(self.azure_group_id, self.aws_account_id, self.permission_set_arn)

    @classmethod
    def from_account_assignment(cls, record: AccountAssignment) -> "GroupAssignment":
        """
        Reconstruct a best-effort assignment from an AWS account assignment record.

        AWS does not know the Azure group name or when the binding was requested,
        so the name is left empty and the created date is the reconstruction time.
        """
        status = _status_value(record.status)
        if status == AccountAssignmentStatus.PROVISIONED.value:
            assignment_status = AssignmentStatus.ACTIVE
        elif status == AccountAssignmentStatus.FAILED.value:
            assignment_status = AssignmentStatus.FAILED
        else:
            assignment_status = AssignmentStatus.PENDING

        return cls(
            azure_group_id=record.principal_id,
            azure_group_name="",
            aws_account_id=record.account_id,
            permission_set_arn=record.permission_set_arn,
            assignment_status=assignment_status,
            created_date=datetime.now(timezone.utc),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "azure_group_id": self.azure_group_id,
            "azure_group_name": self.azure_group_name,
            "aws_account_id": self.aws_account_id,
            "permission_set_arn": self.permission_set_arn,
            "assignment_status": self.assignment_status.value,
            "created_date": _isoformat(self.created_date),
            "last_validated": _isoformat(self.last_validated),
        }


@dataclass
class AzureGroupCheck:
    """Outcome of the Azure group check."""

    exists: bool = False
    is_active: bool = False
    member_count: int = 0
    is_security_group: bool = False


@dataclass
class SynchronizationCheck:
    """Outcome of the AWS synchronization check."""

    is_synced: bool = False
    aws_group_id: Optional[str] = None
    last_sync_time: Optional[datetime] = None


@dataclass
class PermissionSetCheck:
    """Outcome of the permission set check."""

    exists: bool = False
    is_provisioned: bool = False
    has_valid_policies: bool = False


@dataclass
class AssignmentCheck:
    """Outcome of the account assignment check."""

    exists: bool = False
    status: str = "NOT_FOUND"
    is_active: bool = False


@dataclass
class FunctionalityCheck:
    """Outcome of the functionality test folded into a validation."""

    can_authenticate: bool = False
    has_expected_permissions: bool = False


@dataclass
class ValidationDetails:
    """
    Per-check detail records of a validation.

    A field left as None means the check did not run, which is distinct from a
    check that ran and reported failure.
    """

    azure_group: Optional[AzureGroupCheck] = None
    synchronization: Optional[SynchronizationCheck] = None
    permission_set: Optional[PermissionSetCheck] = None
    assignment: Optional[AssignmentCheck] = None
    functionality: Optional[FunctionalityCheck] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.azure_group is not None:
            result["azure_group"] = {
                "exists": self.azure_group.exists,
                "is_active": self.azure_group.is_active,
                "member_count": self.azure_group.member_count,
                "is_security_group": self.azure_group.is_security_group,
            }
        if self.synchronization is not None:
            result["synchronization"] = {
                "is_synced": self.synchronization.is_synced,
                "aws_group_id": self.synchronization.aws_group_id,
                "last_sync_time": _isoformat(self.synchronization.last_sync_time),
            }
        if self.permission_set is not None:
            result["permission_set"] = {
                "exists": self.permission_set.exists,
                "is_provisioned": self.permission_set.is_provisioned,
                "has_valid_policies": self.permission_set.has_valid_policies,
            }
        if self.assignment is not None:
            result["assignment"] = {
                "exists": self.assignment.exists,
                "status": self.assignment.status,
                "is_active": self.assignment.is_active,
            }
        if self.functionality is not None:
            result["functionality"] = {
                "can_authenticate": self.functionality.can_authenticate,
                "has_expected_permissions": self.functionality.has_expected_permissions,
            }
        return result


@dataclass
class ValidationResult:
    """
    Result of validating one assignment.

    Validity is derived from the error list and never stored separately.
    """

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: ValidationDetails = field(default_factory=ValidationDetails)

    @property
    def is_valid(self) -> bool:
        """True when no errors were recorded."""
        return len(self.errors) == 0

    def add_error(self, error: str) -> None:
        """Add an error message to the result."""
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        """Add a warning message to the result."""
        self.warnings.append(warning)

    @classmethod
    def failed(cls, error: str) -> "ValidationResult":
        """Create a result for a validation that could not be evaluated."""
        return cls(errors=[error])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "details": self.details.to_dict(),
        }


@dataclass
class FunctionalityTestResults:
    """The three checks of an assignment functionality test."""

    group_synchronization: bool = False
    permission_inheritance: bool = False
    assignment_functionality: bool = False

    def all_passed(self) -> bool:
        return (
            self.group_synchronization
            and self.permission_inheritance
            and self.assignment_functionality
        )


@dataclass
class AssignmentTestResult:
    """Outcome of the functionality test for one assignment."""

    success: bool = False
    test_results: FunctionalityTestResults = field(default_factory=FunctionalityTestResults)
    errors: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {}
        for key, value in self.details.items():
            details[key] = value.to_dict() if hasattr(value, "to_dict") else value
        return {
            "success": self.success,
            "test_results": {
                "group_synchronization": self.test_results.group_synchronization,
                "permission_inheritance": self.test_results.permission_inheritance,
                "assignment_functionality": self.test_results.assignment_functionality,
            },
            "errors": list(self.errors),
            "details": details,
        }


@dataclass
class ValidationSummary:
    """Aggregate view over a batch of validations."""

    total_assignments: int
    valid_assignments: int
    invalid_assignments: int
    warnings_count: int
    common_issues: List[str] = field(default_factory=list)
    details: Dict[str, ValidationResult] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_assignments": self.total_assignments,
            "valid_assignments": self.valid_assignments,
            "invalid_assignments": self.invalid_assignments,
            "warnings_count": self.warnings_count,
            "common_issues": list(self.common_issues),
            "details": {key: result.to_dict() for key, result in self.details.items()},
        }


# Facade results


@dataclass
class MemberCount:
    """Member counts on both sides of the synchronization."""

    azure: int = 0
    aws: Optional[int] = None


@dataclass
class GroupSynchronizationStatus:
    """Synchronization summary for a single Azure group."""

    azure_group_id: str
    azure_group_name: str
    is_synced: bool
    aws_group_id: Optional[str] = None
    last_sync_time: Optional[datetime] = None
    sync_errors: List[str] = field(default_factory=list)
    member_count: MemberCount = field(default_factory=MemberCount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "azure_group_id": self.azure_group_id,
            "azure_group_name": self.azure_group_name,
            "is_synced": self.is_synced,
            "aws_group_id": self.aws_group_id,
            "last_sync_time": _isoformat(self.last_sync_time),
            "sync_errors": list(self.sync_errors),
            "member_count": {"azure": self.member_count.azure, "aws": self.member_count.aws},
        }


@dataclass
class PermissionInheritanceResults:
    """Individual checks of a permission inheritance test."""

    policy_validation: bool = False
    account_access: bool = False
    resource_permissions: bool = False

    def all_passed(self) -> bool:
        return self.policy_validation and self.account_access and self.resource_permissions


@dataclass
class PermissionInheritanceTest:
    """Permission set level check with no group context."""

    permission_set_arn: str
    permission_set_name: str
    is_valid: bool = False
    has_required_policies: bool = False
    is_provisioned: bool = False
    test_results: PermissionInheritanceResults = field(
        default_factory=PermissionInheritanceResults
    )
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "permission_set_arn": self.permission_set_arn,
            "permission_set_name": self.permission_set_name,
            "is_valid": self.is_valid,
            "has_required_policies": self.has_required_policies,
            "is_provisioned": self.is_provisioned,
            "test_results": {
                "policy_validation": self.test_results.policy_validation,
                "account_access": self.test_results.account_access,
                "resource_permissions": self.test_results.resource_permissions,
            },
            "errors": list(self.errors),
        }


@dataclass
class EndToEndResults:
    """Independent checks of an end-to-end functionality test."""

    group_exists: bool = False
    group_synced: bool = False
    permission_set_exists: bool = False
    assignment_active: bool = False
    end_to_end_access: bool = False


@dataclass
class AssignmentFunctionalityTest:
    """End-to-end functionality test with troubleshooting recommendations."""

    assignment: GroupAssignment
    is_working: bool = False
    test_results: EndToEndResults = field(default_factory=EndToEndResults)
    errors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignment": self.assignment.to_dict(),
            "is_working": self.is_working,
            "test_results": {
                "group_exists": self.test_results.group_exists,
                "group_synced": self.test_results.group_synced,
                "permission_set_exists": self.test_results.permission_set_exists,
                "assignment_active": self.test_results.assignment_active,
                "end_to_end_access": self.test_results.end_to_end_access,
            },
            "errors": list(self.errors),
            "recommendations": list(self.recommendations),
        }


@dataclass
class AssignmentIssue:
    """An assignment that produced errors or warnings during validation."""

    assignment: GroupAssignment
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignment": self.assignment.to_dict(),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class AllAssignmentsValidation:
    """Validation outcome for every assignment known to AWS."""

    total_assignments: int
    valid_assignments: int
    invalid_assignments: int
    issues: List[AssignmentIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_assignments": self.total_assignments,
            "valid_assignments": self.valid_assignments,
            "invalid_assignments": self.invalid_assignments,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass
class AccountGroupSyncCheck:
    """Synchronization state of a group principal assigned in one account."""

    assignment: AccountAssignment
    sync_status: GroupSynchronizationStatus

    @property
    def is_healthy(self) -> bool:
        return self.sync_status.is_synced and not self.sync_status.sync_errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignment": self.assignment.to_dict(),
            "sync_status": self.sync_status.to_dict(),
        }


@dataclass
class ComponentHealth:
    """Connectivity of one identity provider."""

    name: str
    healthy: bool
    message: str
    response_time_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "message": self.message,
            "response_time_ms": self.response_time_ms,
        }


@dataclass
class SystemHealth:
    """Connectivity of every identity provider the validator depends on."""

    components: List[ComponentHealth] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(component.healthy for component in self.components)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "components": [component.to_dict() for component in self.components],
            "recommendations": list(self.recommendations),
        }
