"""Tests for the assignment validator."""

from unittest.mock import AsyncMock, patch

import pytest

from src.awsag.validation.models import (
    AwsGroupDetails,
    AzureGroupValidation,
    PermissionSet,
    SyncStatus,
    ValidationResult,
)
from src.awsag.validation.validator import AssignmentValidator
from tests.fixtures.assignments import (
    ACCOUNT_ID,
    PERMISSION_SET_ARN,
    healthy_aws_client,
    healthy_azure_client,
    make_account_assignment,
    make_assignment,
    make_healthy_azure_client,
    sample_assignment,
)


@pytest.fixture
def validator(healthy_azure_client, healthy_aws_client):
    return AssignmentValidator(healthy_azure_client, healthy_aws_client)


class TestValidateAssignment:
    """Test the per-assignment check sequence."""

    @pytest.mark.asyncio
    async def test_healthy_assignment_is_valid(self, validator, sample_assignment):
        """Test an assignment whose backend checks all pass."""
        result = await validator.validate_assignment(sample_assignment)

        assert result.is_valid is True
        assert result.errors == []
        assert result.warnings == []
        assert result.details.azure_group.member_count == 5
        assert result.details.synchronization.is_synced is True
        assert result.details.permission_set.has_valid_policies is True
        assert result.details.assignment.is_active is True
        assert result.details.assignment.status == "PROVISIONED"
        assert result.details.functionality.can_authenticate is True
        assert result.details.functionality.has_expected_permissions is True

    @pytest.mark.asyncio
    async def test_failed_assignment_status_is_reported(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        """Test that a FAILED assignment record makes the result invalid."""
        healthy_aws_client.list_account_assignments.return_value = [
            make_account_assignment(status="FAILED")
        ]
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.validate_assignment(sample_assignment)

        assert result.is_valid is False
        assert any(
            "Assignment is not active" in error and "FAILED" in error for error in result.errors
        )
        assert result.details.assignment.exists is True
        assert result.details.assignment.is_active is False
        # The functionality test only runs when the first four checks pass
        assert result.details.functionality is None

    @pytest.mark.asyncio
    async def test_missing_azure_group(self, healthy_azure_client, healthy_aws_client):
        """Test the error recorded for an Azure group that does not exist."""
        healthy_azure_client.validate_group_detailed.return_value = (
            AzureGroupValidation.not_found("Group does not exist")
        )
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.validate_assignment(make_assignment(group_id="missing"))

        assert result.is_valid is False
        assert "Azure group missing does not exist" in result.errors
        assert "Azure group missing has no members" in result.warnings
        assert result.details.azure_group.exists is False

    @pytest.mark.asyncio
    async def test_inactive_non_security_group(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        healthy_azure_client.validate_group_detailed.return_value = AzureGroupValidation(
            exists=True, is_active=False, is_security_group=False, member_count=3
        )
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.validate_assignment(sample_assignment)

        assert result.errors[:2] == [
            "Azure group g1 is not active",
            "Azure group g1 is not a security group",
        ]

    @pytest.mark.asyncio
    async def test_empty_group_is_a_warning(self, sample_assignment, healthy_aws_client):
        """Test that a group without members only produces a warning."""
        validator = AssignmentValidator(make_healthy_azure_client(member_count=0), healthy_aws_client)

        result = await validator.validate_assignment(sample_assignment)

        assert result.is_valid is True
        assert result.warnings == ["Azure group g1 has no members"]

    @pytest.mark.asyncio
    async def test_unsynchronized_group(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        healthy_aws_client.check_group_synchronization_status.return_value = SyncStatus(
            is_synced=False
        )
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.validate_assignment(sample_assignment)

        assert "Azure group g1 is not synchronized to AWS Identity Center" in result.errors
        assert result.details.functionality is None

    @pytest.mark.asyncio
    async def test_missing_permission_set(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        healthy_aws_client.list_permission_sets.return_value = []
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.validate_assignment(sample_assignment)

        assert f"Permission set {PERMISSION_SET_ARN} does not exist" in result.errors
        assert f"Permission set {PERMISSION_SET_ARN} is not provisioned" in result.errors
        assert result.details.permission_set.exists is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("inline_policy", [None, "", "   "])
    async def test_permission_set_without_policies_is_a_warning(
        self, healthy_azure_client, healthy_aws_client, sample_assignment, inline_policy
    ):
        """Test that a policy-less permission set warns instead of failing."""
        healthy_aws_client.list_permission_sets.return_value = [
            PermissionSet(arn=PERMISSION_SET_ARN, name="ps1", inline_policy=inline_policy)
        ]
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.validate_assignment(sample_assignment)

        assert result.is_valid is True
        assert result.details.permission_set.has_valid_policies is False
        assert result.warnings == [
            f"Permission set {PERMISSION_SET_ARN} may have invalid or missing policies"
        ]

    @pytest.mark.asyncio
    async def test_missing_assignment(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        healthy_aws_client.list_account_assignments.return_value = [
            make_account_assignment(account_id="222222222222")
        ]
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.validate_assignment(sample_assignment)

        assert result.errors == [
            f"Assignment does not exist for group g1 to permission set {PERMISSION_SET_ARN} "
            f"in account {ACCOUNT_ID}",
            "Assignment is not active (status: NOT_FOUND)",
        ]

    @pytest.mark.asyncio
    async def test_collaborator_failure_becomes_failed_check(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        """Test that a raising collaborator is recorded as a failed check."""
        healthy_aws_client.list_account_assignments.side_effect = RuntimeError("throttled")
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.validate_assignment(sample_assignment)

        assert result.is_valid is False
        assert result.details.assignment.status == "ERROR"
        assert "Assignment is not active (status: ERROR)" in result.errors

    @pytest.mark.asyncio
    async def test_unexpected_failure_keeps_completed_checks(self, validator, sample_assignment):
        """Test that an unexpected failure short-circuits and keeps earlier details."""
        with patch.object(
            validator, "_validate_synchronization", AsyncMock(side_effect=RuntimeError("boom"))
        ):
            result = await validator.validate_assignment(sample_assignment)

        assert result.errors == ["Validation failed: boom"]
        assert result.details.azure_group is not None
        assert result.details.synchronization is None
        assert result.details.permission_set is None
        assert result.is_valid is False

    @pytest.mark.asyncio
    async def test_failed_functionality_test_adds_aggregate_error(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        healthy_aws_client.get_account_assignments_for_account.return_value = []
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.validate_assignment(sample_assignment)

        assert result.errors == [
            "Functionality test failed: Permission inheritance test failed: "
            "Group assignment not found in AWS"
        ]
        assert result.details.functionality.can_authenticate is True
        assert result.details.functionality.has_expected_permissions is False

    @pytest.mark.asyncio
    async def test_validity_always_matches_errors(
        self, healthy_azure_client, healthy_aws_client
    ):
        healthy_aws_client.list_account_assignments.return_value = [
            make_account_assignment(principal_id="g1"),
            make_account_assignment(principal_id="g2", status="IN_PROGRESS"),
        ]
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        for group_id in ("g1", "g2", "g3"):
            result = await validator.validate_assignment(make_assignment(group_id=group_id))
            assert result.is_valid == (len(result.errors) == 0)


class TestAssignmentFunctionality:
    """Test the functionality test sequence."""

    @pytest.mark.asyncio
    async def test_all_checks_pass(self, validator, sample_assignment):
        result = await validator.test_assignment_functionality(sample_assignment)

        assert result.success is True
        assert result.errors == []
        assert result.test_results.group_synchronization is True
        assert result.test_results.permission_inheritance is True
        assert result.test_results.assignment_functionality is True
        assert result.details["permission_inheritance"] == {"success": True, "error": None}

    @pytest.mark.asyncio
    async def test_unsynchronized_group_skips_inheritance(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        """Test that no sync means no success and no inheritance check."""
        healthy_aws_client.check_group_synchronization_status.return_value = SyncStatus(
            is_synced=False
        )
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.test_assignment_functionality(sample_assignment)

        assert result.success is False
        assert result.test_results.group_synchronization is False
        assert result.test_results.permission_inheritance is False
        assert result.test_results.assignment_functionality is True
        assert "Group is not synchronized to AWS Identity Center" in result.errors
        healthy_aws_client.get_group_details.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_synced_without_aws_group_id_skips_inheritance(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        healthy_aws_client.check_group_synchronization_status.return_value = SyncStatus(
            is_synced=True, aws_group_id=None
        )
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.test_assignment_functionality(sample_assignment)

        assert result.success is False
        assert result.test_results.permission_inheritance is False
        healthy_aws_client.get_group_details.assert_not_awaited()
        healthy_aws_client.get_account_assignments_for_account.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_aws_group_without_display_name(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        healthy_aws_client.get_group_details.return_value = AwsGroupDetails(display_name=None)
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.test_assignment_functionality(sample_assignment)

        assert result.success is False
        assert result.errors == [
            "Permission inheritance test failed: AWS group not found or has no display name"
        ]

    @pytest.mark.asyncio
    async def test_inactive_assignment(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        healthy_aws_client.list_account_assignments.return_value = [
            make_account_assignment(status="IN_PROGRESS")
        ]
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.test_assignment_functionality(sample_assignment)

        assert result.success is False
        assert result.errors == ["Assignment is not active: IN_PROGRESS"]

    @pytest.mark.asyncio
    async def test_exception_records_single_error(
        self, healthy_azure_client, healthy_aws_client, sample_assignment
    ):
        healthy_aws_client.check_group_synchronization_status.side_effect = RuntimeError(
            "connection reset"
        )
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        result = await validator.test_assignment_functionality(sample_assignment)

        assert result.success is False
        assert result.errors == ["Functionality test failed: connection reset"]


class TestBatchValidation:
    """Test concurrent validation and summaries."""

    @pytest.mark.asyncio
    async def test_results_are_keyed_per_assignment(self, validator):
        assignments = [make_assignment(group_id=f"g{i}") for i in range(1, 4)]

        results = await validator.validate_assignments(assignments)

        assert set(results) == {
            f"g1-{ACCOUNT_ID}-{PERMISSION_SET_ARN}",
            f"g2-{ACCOUNT_ID}-{PERMISSION_SET_ARN}",
            f"g3-{ACCOUNT_ID}-{PERMISSION_SET_ARN}",
        }
        assert results[f"g1-{ACCOUNT_ID}-{PERMISSION_SET_ARN}"].is_valid is True

    @pytest.mark.asyncio
    async def test_failure_does_not_affect_siblings(self, validator):
        """Test that a raising validation becomes a failed entry for its key only."""
        assignments = [make_assignment(group_id=f"g{i}") for i in range(1, 4)]
        original = validator.validate_assignment

        async def validate(assignment):
            if assignment.azure_group_id == "g2":
                raise RuntimeError("boom")
            return await original(assignment)

        with patch.object(validator, "validate_assignment", side_effect=validate):
            results = await validator.validate_assignments(assignments)

        assert len(results) == 3
        assert results[f"g2-{ACCOUNT_ID}-{PERMISSION_SET_ARN}"].errors == ["boom"]
        assert results[f"g1-{ACCOUNT_ID}-{PERMISSION_SET_ARN}"].is_valid is True

    @pytest.mark.asyncio
    async def test_failure_without_message_uses_unknown_error(self, validator):
        with patch.object(validator, "validate_assignment", AsyncMock(side_effect=RuntimeError())):
            results = await validator.validate_assignments([make_assignment()])

        assert list(results.values())[0].errors == ["Unknown error"]

    @pytest.mark.asyncio
    async def test_summary_counts_and_common_issues(self, validator):
        """Test that common issues recur in two or more results, most frequent first."""
        canned = {
            "k1": ValidationResult(errors=["issue A", "issue B"]),
            "k2": ValidationResult(errors=["issue B", "issue A"]),
            "k3": ValidationResult(errors=["issue A"]),
            "k4": ValidationResult(warnings=["w1", "w2"]),
            "k5": ValidationResult(errors=["issue C"], warnings=["w3"]),
        }

        with patch.object(validator, "validate_assignments", AsyncMock(return_value=canned)):
            summary = await validator.get_validation_summary([])

        assert summary.total_assignments == 5
        assert summary.valid_assignments == 1
        assert summary.invalid_assignments == 4
        assert summary.valid_assignments + summary.invalid_assignments == summary.total_assignments
        assert summary.warnings_count == 3
        assert summary.common_issues == ["issue A", "issue B"]
        assert summary.details is canned

    @pytest.mark.asyncio
    async def test_summary_of_live_batch(self, healthy_azure_client, healthy_aws_client):
        healthy_aws_client.list_account_assignments.return_value = [
            make_account_assignment(principal_id="g1"),
            make_account_assignment(principal_id="g2", status="FAILED"),
            make_account_assignment(principal_id="g3", status="FAILED"),
        ]
        validator = AssignmentValidator(healthy_azure_client, healthy_aws_client)

        summary = await validator.get_validation_summary(
            [make_assignment(group_id=g) for g in ("g1", "g2", "g3")]
        )

        assert summary.total_assignments == 3
        assert summary.valid_assignments == 1
        assert summary.invalid_assignments == 2
        assert summary.common_issues == ["Assignment is not active (status: FAILED)"]
