"""High-level validation service combining Azure AD and AWS Identity Center checks."""

import logging
import time
from typing import TYPE_CHECKING, Dict, List, Optional

from ..utils.error_handler import (
    AssignmentListingError,
    ErrorContext,
    ErrorHandler,
    describe_error,
)
from .interfaces import AwsIdentityClient, AzureDirectoryClient
from .models import (
    AccountAssignment,
    AccountGroupSyncCheck,
    AllAssignmentsValidation,
    AssignmentFunctionalityTest,
    AssignmentIssue,
    AzureGroupValidation,
    ComponentHealth,
    EndToEndResults,
    GroupAssignment,
    GroupSynchronizationStatus,
    MemberCount,
    PermissionInheritanceResults,
    PermissionInheritanceTest,
    PrincipalType,
    SystemHealth,
    ValidationResult,
    ValidationSummary,
)
from .report import render_report_error, render_troubleshooting_report
from .validator import AssignmentValidator

if TYPE_CHECKING:
    from ..utils.config import AppConfig

logger = logging.getLogger(__name__)

AWS_COMPONENT = "AWS Identity Center"
AZURE_COMPONENT = "Microsoft Graph"


def _principal_type(assignment: AccountAssignment) -> str:
    return getattr(assignment.principal_type, "value", assignment.principal_type)


class ValidationService:
    """
    Facade over the assignment validator.

    Adds group synchronization and permission inheritance checks, an end-to-end
    functionality test with remediation recommendations, validation of every
    assignment known to AWS, per-account group synchronization, provider
    health checks and markdown troubleshooting reports.
    """

    def __init__(self, azure_client: AzureDirectoryClient, aws_client: AwsIdentityClient):
        """
        Initialize the validation service.

        Args:
            azure_client: Azure AD directory collaborator
            aws_client: AWS Identity Center collaborator
        """
        self.azure_client = azure_client
        self.aws_client = aws_client
        self.validator = AssignmentValidator(azure_client, aws_client)
        self.error_handler = ErrorHandler(logger)

    @classmethod
    def from_config(cls, config: "AppConfig") -> "ValidationService":
        """
        Build a service backed by Microsoft Graph and boto3.

        Args:
            config: Application configuration loaded at startup

        Returns:
            ValidationService wired to the real identity providers
        """
        from ..aws_clients.identity_center import IdentityCenterClient
        from ..azure_clients.graph import AzureGraphClient

        return cls(AzureGraphClient.from_config(config), IdentityCenterClient.from_config(config))

    async def check_group_synchronization_status(
        self, azure_group_id: str
    ) -> GroupSynchronizationStatus:
        """
        Compare an Azure group with its synchronized counterpart in AWS.

        Args:
            azure_group_id: Object id of the Azure AD group

        Returns:
            GroupSynchronizationStatus: Sync state, member counts and sync errors
        """
        try:
            azure_group = await self.azure_client.validate_group_detailed(azure_group_id)
            sync_status = await self.aws_client.check_group_synchronization_status(azure_group_id)

            aws_member_count: Optional[int] = None
            if sync_status.is_synced and sync_status.aws_group_id:
                try:
                    group_details = await self.aws_client.get_group_details(
                        sync_status.aws_group_id
                    )
                    aws_member_count = group_details.member_count
                except Exception as e:
                    logger.debug(
                        f"AWS group details unavailable for {sync_status.aws_group_id}: {e}"
                    )

            sync_errors: List[str] = []

            if not azure_group.exists:
                sync_errors.append("Azure group does not exist")
            if not azure_group.is_active:
                sync_errors.append("Azure group is not active")
            if not sync_status.is_synced:
                sync_errors.append("Group is not synchronized to AWS Identity Center")
            if (
                azure_group.exists
                and aws_member_count is not None
                and aws_member_count != azure_group.member_count
            ):
                sync_errors.append(
                    f"Member count mismatch: Azure ({azure_group.member_count}) "
                    f"vs AWS ({aws_member_count})"
                )

            if azure_group.exists:
                azure_group_name = azure_group.display_name or "Unknown"
            else:
                azure_group_name = ""

            return GroupSynchronizationStatus(
                azure_group_id=azure_group_id,
                azure_group_name=azure_group_name,
                is_synced=sync_status.is_synced,
                aws_group_id=sync_status.aws_group_id,
                last_sync_time=sync_status.last_sync_time,
                sync_errors=sync_errors,
                member_count=MemberCount(azure=azure_group.member_count, aws=aws_member_count),
            )
        except Exception as e:
            logger.warning(f"Synchronization status check failed for {azure_group_id}: {e}")
            return GroupSynchronizationStatus(
                azure_group_id=azure_group_id,
                azure_group_name="Error",
                is_synced=False,
                sync_errors=[describe_error(e)],
                member_count=MemberCount(azure=0),
            )

    async def validate_permission_inheritance(
        self, permission_set_arn: str
    ) -> PermissionInheritanceTest:
        """
        Check that a permission set exists and carries policies.

        Args:
            permission_set_arn: ARN of the permission set

        Returns:
            PermissionInheritanceTest: Policy, access and resource checks
        """
        try:
            permission_sets = await self.aws_client.list_permission_sets()
            permission_set = next(
                (ps for ps in permission_sets if ps.arn == permission_set_arn), None
            )

            if permission_set is None:
                return PermissionInheritanceTest(
                    permission_set_arn=permission_set_arn,
                    permission_set_name="Not Found",
                    errors=["Permission set not found"],
                )

            errors: List[str] = []
            has_required_policies = permission_set.has_policies()
            if not has_required_policies:
                errors.append("Permission set has no managed policies or inline policy")

            # A listed permission set counts as provisioned, and resource
            # permissions mirror the policy check.
            is_provisioned = True
            test_results = PermissionInheritanceResults(
                policy_validation=has_required_policies,
                account_access=is_provisioned,
                resource_permissions=has_required_policies,
            )

            return PermissionInheritanceTest(
                permission_set_arn=permission_set_arn,
                permission_set_name=permission_set.name,
                is_valid=not errors and test_results.all_passed(),
                has_required_policies=has_required_policies,
                is_provisioned=is_provisioned,
                test_results=test_results,
                errors=errors,
            )
        except Exception as e:
            logger.warning(f"Permission inheritance check failed for {permission_set_arn}: {e}")
            return PermissionInheritanceTest(
                permission_set_arn=permission_set_arn,
                permission_set_name="Error",
                errors=[describe_error(e)],
            )

    async def test_assignment_functionality(
        self, assignment: GroupAssignment
    ) -> AssignmentFunctionalityTest:
        """
        Run the end-to-end functionality test for one assignment.

        Every failed check contributes an error and a remediation recommendation,
        so a negative outcome is always explained.

        Args:
            assignment: Assignment to test

        Returns:
            AssignmentFunctionalityTest: Check outcomes, errors and recommendations
        """
        try:
            errors: List[str] = []
            recommendations: List[str] = []

            azure_group = await self.azure_client.validate_group_detailed(
                assignment.azure_group_id
            )
            group_exists = azure_group.exists
            if not group_exists:
                errors.append("Azure group does not exist")
                recommendations.append(
                    "Verify the Azure group ID is correct and the group exists in Azure AD"
                )

            sync_status = await self.aws_client.check_group_synchronization_status(
                assignment.azure_group_id
            )
            group_synced = sync_status.is_synced
            if not group_synced:
                errors.append("Group is not synchronized to AWS Identity Center")
                recommendations.append(
                    "Check Azure AD provisioning configuration and trigger manual sync if needed"
                )

            permission_sets = await self.aws_client.list_permission_sets()
            permission_set_exists = any(
                ps.arn == assignment.permission_set_arn for ps in permission_sets
            )
            if not permission_set_exists:
                errors.append("Permission set does not exist")
                recommendations.append("Create the permission set or verify the ARN is correct")

            assignments = await self.aws_client.list_account_assignments()
            existing = next(
                (
                    a
                    for a in assignments
                    if a.principal_id == assignment.azure_group_id
                    and a.permission_set_arn == assignment.permission_set_arn
                    and a.account_id == assignment.aws_account_id
                ),
                None,
            )
            assignment_active = existing is not None and existing.is_provisioned()
            if not assignment_active:
                if existing is None:
                    errors.append("Assignment does not exist")
                    recommendations.append(
                        "Create the assignment between the group and permission set"
                    )
                else:
                    status = getattr(existing.status, "value", existing.status)
                    errors.append(f"Assignment exists but is not active (status: {status})")
                    recommendations.append(
                        "Check assignment provisioning status and retry if needed"
                    )

            end_to_end_access = (
                group_exists and group_synced and permission_set_exists and assignment_active
            )
            if not end_to_end_access and not errors:
                errors.append("End-to-end access test failed for unknown reasons")
                recommendations.append("Perform manual testing to verify user access")

            return AssignmentFunctionalityTest(
                assignment=assignment,
                is_working=end_to_end_access,
                test_results=EndToEndResults(
                    group_exists=group_exists,
                    group_synced=group_synced,
                    permission_set_exists=permission_set_exists,
                    assignment_active=assignment_active,
                    end_to_end_access=end_to_end_access,
                ),
                errors=errors,
                recommendations=recommendations,
            )
        except Exception as e:
            logger.warning(f"Functionality test failed for {assignment.key}: {e}")
            return AssignmentFunctionalityTest(
                assignment=assignment,
                is_working=False,
                test_results=EndToEndResults(),
                errors=[describe_error(e)],
                recommendations=["Check system connectivity and permissions"],
            )

    async def validate_azure_group(self, azure_group_id: str) -> AzureGroupValidation:
        """Describe an Azure AD group with the problems Microsoft Graph reports for it."""
        return await self.azure_client.validate_group_detailed(azure_group_id)

    async def check_account_group_synchronization(
        self, account_id: str
    ) -> List[AccountGroupSyncCheck]:
        """
        Check the synchronization of every group assigned in one AWS account.

        User principals are skipped. A group assigned through several permission
        sets is checked once and reported for each of its assignments.

        Args:
            account_id: AWS account ID

        Returns:
            List of group assignments with their synchronization status
        """
        assignments = await self.aws_client.get_account_assignments_for_account(account_id)

        statuses: Dict[str, GroupSynchronizationStatus] = {}
        checks: List[AccountGroupSyncCheck] = []
        for assignment in assignments:
            if _principal_type(assignment) != PrincipalType.GROUP.value:
                continue
            if assignment.principal_id not in statuses:
                statuses[assignment.principal_id] = await self.check_group_synchronization_status(
                    assignment.principal_id
                )
            checks.append(
                AccountGroupSyncCheck(
                    assignment=assignment, sync_status=statuses[assignment.principal_id]
                )
            )

        logger.info(f"Checked {len(checks)} group assignments in account {account_id}")
        return checks

    async def check_health(self) -> SystemHealth:
        """
        Check connectivity to AWS Identity Center and Microsoft Graph.

        Returns:
            SystemHealth: Per-provider status with remediation recommendations
        """
        health = SystemHealth()
        for name, check in (
            (AWS_COMPONENT, self.aws_client.check_connection),
            (AZURE_COMPONENT, self.azure_client.check_connection),
        ):
            start_time = time.monotonic()
            try:
                await check()
                healthy, message = True, "Connected"
            except Exception as e:
                handled = self.error_handler.handle_error(
                    e, ErrorContext(component=name, operation="health check")
                )
                healthy, message = False, handled.message
                for step in handled.remediation_steps:
                    if step not in health.recommendations:
                        health.recommendations.append(step)

            health.components.append(
                ComponentHealth(
                    name=name,
                    healthy=healthy,
                    message=message,
                    response_time_ms=round((time.monotonic() - start_time) * 1000, 1),
                )
            )

        logger.info(f"Health check completed: healthy={health.healthy}")
        return health

    async def validate_assignment(self, assignment: GroupAssignment) -> ValidationResult:
        """Validate one assignment with the full check sequence."""
        return await self.validator.validate_assignment(assignment)

    async def validate_multiple_assignments(
        self, assignments: List[GroupAssignment]
    ) -> Dict[str, ValidationResult]:
        """Validate a batch of assignments concurrently."""
        return await self.validator.validate_assignments(assignments)

    async def get_validation_summary(self, assignments: List[GroupAssignment]) -> ValidationSummary:
        """Validate a batch and aggregate the outcome."""
        return await self.validator.get_validation_summary(assignments)

    async def validate_all_assignments(self) -> AllAssignmentsValidation:
        """
        Validate every account assignment known to AWS Identity Center.

        The assignments are rebuilt from the AWS records, so the Azure group name
        is empty and the created date is the time of the call.

        Returns:
            AllAssignmentsValidation: Counts and the assignments with issues

        Raises:
            AssignmentListingError: If the account assignments cannot be listed
        """
        try:
            aws_assignments = await self.aws_client.list_account_assignments()
        except Exception as e:
            raise AssignmentListingError(
                f"Failed to validate all assignments: {describe_error(e)}"
            ) from e

        assignments_by_key: Dict[str, GroupAssignment] = {}
        for record in aws_assignments:
            assignment = GroupAssignment.from_account_assignment(record)
            assignments_by_key.setdefault(assignment.key, assignment)

        assignments = list(assignments_by_key.values())
        results = await self.validate_multiple_assignments(assignments)

        valid_count = 0
        invalid_count = 0
        issues: List[AssignmentIssue] = []

        for key, assignment in assignments_by_key.items():
            result = results[key]
            if result.is_valid:
                valid_count += 1
            else:
                invalid_count += 1

            if result.errors or result.warnings:
                issues.append(
                    AssignmentIssue(
                        assignment=assignment,
                        errors=list(result.errors),
                        warnings=list(result.warnings),
                    )
                )

        logger.info(
            f"Validated {len(assignments)} assignments: {valid_count} valid, "
            f"{invalid_count} invalid"
        )

        return AllAssignmentsValidation(
            total_assignments=len(assignments),
            valid_assignments=valid_count,
            invalid_assignments=invalid_count,
            issues=issues,
        )

    async def generate_troubleshooting_report(self, assignment: GroupAssignment) -> str:
        """
        Produce a markdown troubleshooting report for one assignment.

        Returns a short error report instead of raising when the checks fail.
        """
        try:
            validation = await self.validate_assignment(assignment)
            functionality = await self.test_assignment_functionality(assignment)
            return render_troubleshooting_report(assignment, validation, functionality)
        except Exception as e:
            logger.error(f"Troubleshooting report failed for {assignment.key}: {e}")
            return render_report_error(describe_error(e))
