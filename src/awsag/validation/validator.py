"""Assignment validator checking Azure AD group assignments against AWS Identity Center."""

import asyncio
import logging
from collections import Counter
from typing import Any, Dict, List

from ..utils.error_handler import describe_error
from .interfaces import AwsIdentityClient, AzureDirectoryClient
from .models import (
    AssignmentCheck,
    AssignmentTestResult,
    AzureGroupCheck,
    FunctionalityCheck,
    GroupAssignment,
    PermissionSetCheck,
    SynchronizationCheck,
    ValidationResult,
    ValidationSummary,
)


class AssignmentValidator:
    """
    Validates that an Azure AD group assignment is consistent in AWS Identity Center.

    Each validation runs five checks in order: Azure group state, synchronization
    into the Identity Store, permission set presence, account assignment status and,
    when the first four pass, a functionality test. Negative outcomes are recorded
    as errors and warnings on the result; collaborator failures are converted into
    failed checks instead of propagating.
    """

    def __init__(self, azure_client: AzureDirectoryClient, aws_client: AwsIdentityClient):
        """
        Initialize the validator.

        Args:
            azure_client: Azure AD directory collaborator
            aws_client: AWS Identity Center collaborator
        """
        self.azure_client = azure_client
        self.aws_client = aws_client
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def validate_assignment(self, assignment: GroupAssignment) -> ValidationResult:
        """
        Run the full check sequence for one assignment.

        Args:
            assignment: Assignment to validate

        Returns:
            ValidationResult: Errors, warnings and per-check details
        """
        result = ValidationResult()
        group_id = assignment.azure_group_id

        try:
            azure_group = await self._validate_azure_group(group_id)
            result.details.azure_group = azure_group

            if not azure_group.exists:
                result.add_error(f"Azure group {group_id} does not exist")
            if not azure_group.is_active:
                result.add_error(f"Azure group {group_id} is not active")
            if not azure_group.is_security_group:
                result.add_error(f"Azure group {group_id} is not a security group")
            if azure_group.member_count == 0:
                result.add_warning(f"Azure group {group_id} has no members")

            synchronization = await self._validate_synchronization(group_id)
            result.details.synchronization = synchronization

            if not synchronization.is_synced:
                result.add_error(
                    f"Azure group {group_id} is not synchronized to AWS Identity Center"
                )

            permission_set = await self._validate_permission_set(assignment.permission_set_arn)
            result.details.permission_set = permission_set

            if not permission_set.exists:
                result.add_error(f"Permission set {assignment.permission_set_arn} does not exist")
            if not permission_set.is_provisioned:
                result.add_error(
                    f"Permission set {assignment.permission_set_arn} is not provisioned"
                )
            if not permission_set.has_valid_policies:
                result.add_warning(
                    f"Permission set {assignment.permission_set_arn} may have invalid or missing policies"
                )

            assignment_check = await self._validate_assignment_status(assignment)
            result.details.assignment = assignment_check

            if not assignment_check.exists:
                result.add_error(
                    f"Assignment does not exist for group {group_id} to permission set "
                    f"{assignment.permission_set_arn} in account {assignment.aws_account_id}"
                )
            if not assignment_check.is_active:
                result.add_error(f"Assignment is not active (status: {assignment_check.status})")

            if result.is_valid:
                functionality = await self.test_assignment_functionality(assignment)
                result.details.functionality = FunctionalityCheck(
                    can_authenticate=functionality.test_results.group_synchronization,
                    has_expected_permissions=functionality.test_results.permission_inheritance,
                )

                if not functionality.success:
                    result.add_error(
                        f"Functionality test failed: {', '.join(functionality.errors)}"
                    )

        except Exception as e:
            self.logger.error(f"Validation of {assignment.key} failed: {describe_error(e)}")
            result.add_error(f"Validation failed: {describe_error(e)}")

        self.logger.debug(
            f"Validated {assignment.key}: valid={result.is_valid} "
            f"({len(result.errors)} errors, {len(result.warnings)} warnings)"
        )
        return result

    async def test_assignment_functionality(
        self, assignment: GroupAssignment
    ) -> AssignmentTestResult:
        """
        Check whether members of the group effectively receive the assignment.

        Runs the synchronization, permission inheritance and assignment checks in
        sequence. Permission inheritance is only attempted once synchronization
        succeeded and returned the AWS group id.

        Args:
            assignment: Assignment to test

        Returns:
            AssignmentTestResult: Check outcomes, errors and details
        """
        result = AssignmentTestResult()

        try:
            sync_status = await self.aws_client.check_group_synchronization_status(
                assignment.azure_group_id
            )
            result.test_results.group_synchronization = sync_status.is_synced
            result.details["synchronization"] = sync_status

            if not sync_status.is_synced:
                result.errors.append("Group is not synchronized to AWS Identity Center")

            if sync_status.is_synced and sync_status.aws_group_id:
                inheritance = await self._test_permission_inheritance(
                    sync_status.aws_group_id,
                    assignment.permission_set_arn,
                    assignment.aws_account_id,
                )
                result.test_results.permission_inheritance = inheritance["success"]
                result.details["permission_inheritance"] = inheritance

                if not inheritance["success"]:
                    result.errors.append(
                        f"Permission inheritance test failed: {inheritance['error']}"
                    )

            assignment_test = await self._test_assignment_active(assignment)
            result.test_results.assignment_functionality = assignment_test["is_active"]
            result.details["assignment_status"] = assignment_test

            if not assignment_test["is_active"]:
                result.errors.append(f"Assignment is not active: {assignment_test['status']}")

            result.success = result.test_results.all_passed()

        except Exception as e:
            self.logger.warning(
                f"Functionality test for {assignment.key} failed: {describe_error(e)}"
            )
            result.errors.append(f"Functionality test failed: {describe_error(e)}")

        return result

    async def _validate_azure_group(self, azure_group_id: str) -> AzureGroupCheck:
        try:
            validation = await self.azure_client.validate_group_detailed(azure_group_id)
            return AzureGroupCheck(
                exists=validation.exists,
                is_active=validation.is_active,
                member_count=validation.member_count,
                is_security_group=validation.is_security_group,
            )
        except Exception as e:
            self.logger.warning(f"Azure group lookup failed for {azure_group_id}: {e}")
            return AzureGroupCheck()

    async def _validate_synchronization(self, azure_group_id: str) -> SynchronizationCheck:
        try:
            status = await self.aws_client.check_group_synchronization_status(azure_group_id)
            return SynchronizationCheck(
                is_synced=status.is_synced,
                aws_group_id=status.aws_group_id,
                last_sync_time=status.last_sync_time,
            )
        except Exception as e:
            self.logger.warning(f"Synchronization check failed for {azure_group_id}: {e}")
            return SynchronizationCheck()

    async def _validate_permission_set(self, permission_set_arn: str) -> PermissionSetCheck:
        try:
            permission_sets = await self.aws_client.list_permission_sets()
            permission_set = next(
                (ps for ps in permission_sets if ps.arn == permission_set_arn), None
            )

            if permission_set is None:
                return PermissionSetCheck()

            # Presence in the instance listing is treated as provisioned.
            return PermissionSetCheck(
                exists=True,
                is_provisioned=True,
                has_valid_policies=permission_set.has_policies(),
            )
        except Exception as e:
            self.logger.warning(f"Permission set lookup failed for {permission_set_arn}: {e}")
            return PermissionSetCheck()

    async def _validate_assignment_status(self, assignment: GroupAssignment) -> AssignmentCheck:
        try:
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

            if existing is None:
                return AssignmentCheck(exists=False, status="NOT_FOUND", is_active=False)

            status = getattr(existing.status, "value", existing.status)
            return AssignmentCheck(
                exists=True, status=status, is_active=existing.is_provisioned()
            )
        except Exception as e:
            self.logger.warning(f"Assignment lookup failed for {assignment.key}: {e}")
            return AssignmentCheck(exists=False, status="ERROR", is_active=False)

    async def _test_permission_inheritance(
        self, aws_group_id: str, permission_set_arn: str, account_id: str
    ) -> Dict[str, Any]:
        try:
            group_details = await self.aws_client.get_group_details(aws_group_id)

            if not group_details.display_name:
                return {
                    "success": False,
                    "error": "AWS group not found or has no display name",
                }

            assignments = await self.aws_client.get_account_assignments_for_account(account_id)
            group_assignment = next(
                (
                    a
                    for a in assignments
                    if a.principal_id == aws_group_id
                    and a.permission_set_arn == permission_set_arn
                ),
                None,
            )

            if group_assignment is None:
                return {"success": False, "error": "Group assignment not found in AWS"}

            return {"success": True, "error": None}
        except Exception as e:
            return {"success": False, "error": describe_error(e)}

    async def _test_assignment_active(self, assignment: GroupAssignment) -> Dict[str, Any]:
        check = await self._validate_assignment_status(assignment)
        return {"is_active": check.is_active, "status": check.status}

    async def validate_assignments(
        self, assignments: List[GroupAssignment]
    ) -> Dict[str, ValidationResult]:
        """
        Validate many assignments concurrently.

        Every input produces exactly one entry keyed by
        ``<azure_group_id>-<aws_account_id>-<permission_set_arn>``. A failure
        while validating one assignment becomes a failed result for that key and
        does not affect the others.

        Args:
            assignments: Assignments to validate

        Returns:
            Dict mapping assignment keys to validation results
        """
        self.logger.info(f"Validating {len(assignments)} assignments")

        tasks = [self.validate_assignment(assignment) for assignment in assignments]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: Dict[str, ValidationResult] = {}
        for assignment, outcome in zip(assignments, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error(
                    f"Validation task for {assignment.key} raised: {describe_error(outcome)}"
                )
                results[assignment.key] = ValidationResult.failed(describe_error(outcome))
            else:
                results[assignment.key] = outcome

        return results

    async def get_validation_summary(self, assignments: List[GroupAssignment]) -> ValidationSummary:
        """
        Validate a batch and aggregate the outcome.

        Common issues are error messages found in more than one result, ordered
        from most to least frequent.

        Args:
            assignments: Assignments to validate

        Returns:
            ValidationSummary: Counts, common issues and per-assignment results
        """
        results = await self.validate_assignments(assignments)

        valid_count = 0
        invalid_count = 0
        warnings_count = 0
        issue_frequency: Counter = Counter()

        for result in results.values():
            if result.is_valid:
                valid_count += 1
            else:
                invalid_count += 1

            warnings_count += len(result.warnings)
            issue_frequency.update(result.errors)

        common_issues = [issue for issue, count in issue_frequency.most_common() if count > 1]

        return ValidationSummary(
            total_assignments=len(results),
            valid_assignments=valid_count,
            invalid_assignments=invalid_count,
            warnings_count=warnings_count,
            common_issues=common_issues,
            details=results,
        )


