"""Tests for the Identity Center read client."""

import asyncio
import time
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from src.awsag.aws_clients.identity_center import IdentityCenterClient
from src.awsag.aws_clients.manager import AWSClientManager
from src.awsag.utils.config import AppConfig
from src.awsag.utils.error_handler import AwsIdentityCenterError
from src.awsag.validation.models import PrincipalType
from tests.fixtures.aws_clients import make_paginator, mock_aws_client_manager, mock_aws_error

INSTANCE_ARN = "arn:aws:sso:::instance/ssoins-1234567890abcdef"
IDENTITY_STORE_ID = "d-1234567890"
PS1 = "arn:aws:sso:::permissionSet/ssoins-1234567890abcdef/ps-1"
PS2 = "arn:aws:sso:::permissionSet/ssoins-1234567890abcdef/ps-2"


@pytest.fixture
def client(mock_aws_client_manager):
    return IdentityCenterClient(mock_aws_client_manager, INSTANCE_ARN, IDENTITY_STORE_ID)


@pytest.fixture
def sso_admin(mock_aws_client_manager):
    return mock_aws_client_manager.get_identity_center_client.return_value


@pytest.fixture
def identity_store(mock_aws_client_manager):
    return mock_aws_client_manager.get_identity_store_client.return_value


def assignment_record(account_id, principal_id, permission_set_arn):
    return {
        "AccountId": account_id,
        "PrincipalId": principal_id,
        "PrincipalType": "GROUP",
        "PermissionSetArn": permission_set_arn,
    }


class TestGroupSynchronization:
    """Test lookup of groups provisioned from Azure AD."""

    @pytest.mark.asyncio
    async def test_group_found_by_external_id(self, client, identity_store):
        identity_store.get_paginator.side_effect = make_paginator(
            {
                "list_groups": [
                    {"Groups": [{"GroupId": "aws-other", "ExternalIds": []}]},
                    {
                        "Groups": [
                            {
                                "GroupId": "aws-g1",
                                "ExternalIds": [{"Issuer": "scim", "Id": "azure-g1"}],
                            }
                        ]
                    },
                ]
            }
        )

        status = await client.check_group_synchronization_status("azure-g1")

        assert status.is_synced is True
        assert status.aws_group_id == "aws-g1"
        assert status.last_sync_time is None

    @pytest.mark.asyncio
    async def test_group_not_synchronized(self, client, identity_store):
        identity_store.get_paginator.side_effect = make_paginator({"list_groups": [{"Groups": []}]})

        status = await client.check_group_synchronization_status("azure-g1")

        assert status.is_synced is False
        assert status.aws_group_id is None


class TestPermissionSets:
    """Test permission set listing."""

    @pytest.mark.asyncio
    async def test_list_permission_sets_with_policies(self, client, sso_admin):
        sso_admin.get_paginator.side_effect = make_paginator(
            {
                "list_permission_sets": [{"PermissionSets": [PS1, PS2]}],
                "list_managed_policies_in_permission_set": lambda **kwargs: (
                    [{"AttachedManagedPolicies": [{"Arn": "arn:aws:iam::aws:policy/ReadOnlyAccess"}]}]
                    if kwargs["PermissionSetArn"] == PS1
                    else [{"AttachedManagedPolicies": []}]
                ),
            }
        )
        sso_admin.describe_permission_set.side_effect = lambda **kwargs: {
            "PermissionSet": {
                "Name": "ReadOnly" if kwargs["PermissionSetArn"] == PS1 else "Empty",
                "SessionDuration": "PT4H",
            }
        }
        sso_admin.get_inline_policy_for_permission_set.return_value = {"InlinePolicy": ""}

        permission_sets = await client.list_permission_sets()

        assert [ps.name for ps in permission_sets] == ["ReadOnly", "Empty"]
        assert permission_sets[0].managed_policies == ["arn:aws:iam::aws:policy/ReadOnlyAccess"]
        assert permission_sets[0].session_duration == "PT4H"
        assert permission_sets[0].has_policies() is True
        assert permission_sets[1].inline_policy is None
        assert permission_sets[1].has_policies() is False


class TestAccountAssignments:
    """Test account assignment listing."""

    @pytest.mark.asyncio
    async def test_list_all_account_assignments(self, client, sso_admin):
        sso_admin.get_paginator.side_effect = make_paginator(
            {
                "list_permission_sets": [{"PermissionSets": [PS1]}],
                "list_accounts_for_provisioned_permission_set": [
                    {"AccountIds": ["111111111111", "222222222222"]}
                ],
                "list_account_assignments": lambda **kwargs: [
                    {
                        "AccountAssignments": [
                            assignment_record(
                                kwargs["AccountId"], "aws-g1", kwargs["PermissionSetArn"]
                            )
                        ]
                    }
                ],
                "list_account_assignment_creation_status": [],
            }
        )

        assignments = await client.list_account_assignments()

        assert [a.account_id for a in assignments] == ["111111111111", "222222222222"]
        assert all(a.status == "PROVISIONED" for a in assignments)
        assert assignments[0].principal_type == PrincipalType.GROUP

    @pytest.mark.asyncio
    async def test_assignments_for_one_account(self, client, sso_admin):
        sso_admin.get_paginator.side_effect = make_paginator(
            {
                "list_permission_sets_provisioned_to_account": [{"PermissionSets": [PS1, PS2]}],
                "list_account_assignments": lambda **kwargs: [
                    {
                        "AccountAssignments": [
                            assignment_record(
                                kwargs["AccountId"], "aws-g1", kwargs["PermissionSetArn"]
                            )
                        ]
                    }
                ],
                "list_account_assignment_creation_status": [],
            }
        )

        assignments = await client.get_account_assignments_for_account("111111111111")

        assert [a.permission_set_arn for a in assignments] == [PS1, PS2]
        assert {a.account_id for a in assignments} == {"111111111111"}

    @pytest.mark.asyncio
    async def test_pending_creation_requests_are_included(self, client, sso_admin):
        """Test that failed creation requests appear with their status."""
        sso_admin.get_paginator.side_effect = make_paginator(
            {
                "list_permission_sets_provisioned_to_account": [{"PermissionSets": [PS1]}],
                "list_account_assignments": [
                    {"AccountAssignments": [assignment_record("111111111111", "aws-g1", PS1)]}
                ],
                "list_account_assignment_creation_status": lambda **kwargs: (
                    [
                        {
                            "AccountAssignmentsCreationStatus": [
                                {"RequestId": "req-1"},
                                {"RequestId": "req-2"},
                                {"RequestId": "req-3"},
                            ]
                        }
                    ]
                    if kwargs["Filter"]["Status"] == "FAILED"
                    else []
                ),
            }
        )
        creations = {
            "req-1": {
                "Status": "FAILED",
                "TargetId": "111111111111",
                "PrincipalType": "GROUP",
                "PrincipalId": "aws-g2",
                "PermissionSetArn": PS1,
            },
            # Already provisioned, so the listed assignment wins
            "req-2": {
                "Status": "FAILED",
                "TargetId": "111111111111",
                "PrincipalType": "GROUP",
                "PrincipalId": "aws-g1",
                "PermissionSetArn": PS1,
            },
            "req-3": {
                "Status": "FAILED",
                "TargetId": "999999999999",
                "PrincipalType": "GROUP",
                "PrincipalId": "aws-g3",
                "PermissionSetArn": PS1,
            },
        }
        sso_admin.describe_account_assignment_creation_status.side_effect = lambda **kwargs: {
            "AccountAssignmentCreationStatus": creations[
                kwargs["AccountAssignmentCreationRequestId"]
            ]
        }

        assignments = await client.list_account_assignments("111111111111")

        assert [(a.principal_id, a.status) for a in assignments] == [
            ("aws-g1", "PROVISIONED"),
            ("aws-g2", "FAILED"),
        ]


class TestGroupDetails:
    """Test Identity Store group details."""

    @pytest.mark.asyncio
    async def test_get_group_details_counts_members(self, client, identity_store):
        identity_store.describe_group.return_value = {
            "GroupId": "aws-g1",
            "DisplayName": "Developers",
            "Description": "Dev team",
        }
        identity_store.get_paginator.side_effect = make_paginator(
            {
                "list_group_memberships": [
                    {"GroupMemberships": [{"MembershipId": "m1"}, {"MembershipId": "m2"}]},
                    {"GroupMemberships": [{"MembershipId": "m3"}]},
                ]
            }
        )

        details = await client.get_group_details("aws-g1")

        identity_store.describe_group.assert_called_once_with(
            IdentityStoreId=IDENTITY_STORE_ID, GroupId="aws-g1"
        )
        assert details.display_name == "Developers"
        assert details.member_count == 3
        assert details.description == "Dev team"

    @pytest.mark.asyncio
    async def test_client_errors_are_wrapped(self, client, identity_store, mock_aws_error):
        identity_store.describe_group.side_effect = mock_aws_error(
            "ResourceNotFoundException", "Group not found"
        )

        with pytest.raises(AwsIdentityCenterError) as exc_info:
            await client.get_group_details("aws-missing")

        assert str(exc_info.value) == "AWS Identity Center request failed: Group not found"
        assert isinstance(exc_info.value.__cause__, ClientError)
        assert exc_info.value.__cause__.response["Error"]["Code"] == "ResourceNotFoundException"


class TestConnection:
    """Test the Identity Center connectivity check."""

    @pytest.mark.asyncio
    async def test_check_connection(self, client, mock_aws_client_manager, sso_admin):
        mock_aws_client_manager.validate_session.return_value = True

        await client.check_connection()

        sso_admin.list_permission_sets.assert_called_once_with(
            InstanceArn=INSTANCE_ARN, MaxResults=1
        )

    @pytest.mark.asyncio
    async def test_invalid_session(self, client, mock_aws_client_manager, sso_admin):
        mock_aws_client_manager.validate_session.return_value = False

        with pytest.raises(AwsIdentityCenterError, match="invalid or expired"):
            await client.check_connection()

        sso_admin.list_permission_sets.assert_not_called()

    @pytest.mark.asyncio
    async def test_instance_not_reachable(
        self, client, mock_aws_client_manager, sso_admin, mock_aws_error
    ):
        mock_aws_client_manager.validate_session.return_value = True
        sso_admin.list_permission_sets.side_effect = mock_aws_error(
            "AccessDeniedException", "Not authorized", "ListPermissionSets"
        )

        with pytest.raises(AwsIdentityCenterError) as exc_info:
            await client.check_connection()

        assert isinstance(exc_info.value.__cause__, ClientError)


class TestClientCreation:
    """Test how boto3 clients are created."""

    @patch("src.awsag.aws_clients.manager.boto3")
    @pytest.mark.asyncio
    async def test_concurrent_checks_create_one_identity_store_client(self, mock_boto3):
        created = []

        def slow_client(service_name):
            created.append(service_name)
            time.sleep(0.05)
            service_client = MagicMock()
            service_client.get_paginator.side_effect = make_paginator(
                {"list_groups": [{"Groups": []}]}
            )
            return service_client

        mock_boto3.Session.return_value.client.side_effect = slow_client
        client = IdentityCenterClient(
            AWSClientManager(region="us-east-1"), INSTANCE_ARN, IDENTITY_STORE_ID
        )

        statuses = await asyncio.gather(
            *(client.check_group_synchronization_status(f"azure-g{i}") for i in range(8))
        )

        assert created.count("identitystore") == 1
        assert all(status.is_synced is False for status in statuses)

    @patch("src.awsag.aws_clients.identity_center.AWSClientManager")
    def test_from_config(self, mock_manager):
        config = AppConfig()
        config.aws.profile = "prod"
        config.aws.region = "eu-west-1"
        config.aws.identity_center_instance_arn = INSTANCE_ARN
        config.aws.identity_store_id = IDENTITY_STORE_ID

        client = IdentityCenterClient.from_config(config)

        mock_manager.assert_called_once_with(profile="prod", region="eu-west-1")
        assert client.client_manager is mock_manager.return_value
        assert client.instance_arn == INSTANCE_ARN
        assert client.identity_store_id == IDENTITY_STORE_ID
