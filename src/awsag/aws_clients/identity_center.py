"""AWS IAM Identity Center read client used by the assignment validator."""

import asyncio
import logging
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set, Tuple

from botocore.exceptions import ClientError

from ..utils.error_handler import AwsIdentityCenterError, describe_error
from .manager import AWSClientManager
from ..validation.models import (
    AccountAssignment,
    AccountAssignmentStatus,
    AwsGroupDetails,
    PermissionSet,
    PrincipalType,
    SyncStatus,
)

if TYPE_CHECKING:
    from ..utils.config import AppConfig

logger = logging.getLogger(__name__)

# Creation requests that have not (yet) produced a listed assignment
PENDING_CREATION_STATUSES = ("IN_PROGRESS", "FAILED")


class IdentityCenterClient:
    """
    Read-only access to the Identity Center instance and its Identity Store.

    boto3 calls are blocking, so every public coroutine runs them in the
    default executor. The boto3 clients are resolved on the event loop thread
    before dispatch and handed to the blocking helpers, so concurrent checks
    share one client per service.
    """

    def __init__(
        self, client_manager: AWSClientManager, instance_arn: str, identity_store_id: str
    ):
        """
        Initialize the Identity Center client.

        Args:
            client_manager: AWSClientManager providing boto3 clients
            instance_arn: ARN of the Identity Center instance
            identity_store_id: ID of the Identity Store backing the instance
        """
        self.client_manager = client_manager
        self.instance_arn = instance_arn
        self.identity_store_id = identity_store_id

    @classmethod
    def from_config(cls, config: "AppConfig") -> "IdentityCenterClient":
        """Build a client for the configured profile, region and Identity Center instance."""
        client_manager = AWSClientManager(profile=config.aws.profile, region=config.aws.region)
        return cls(
            client_manager,
            instance_arn=config.aws.identity_center_instance_arn,
            identity_store_id=config.aws.identity_store_id,
        )

    @property
    def sso_admin(self) -> Any:
        return self.client_manager.get_identity_center_client()

    @property
    def identity_store(self) -> Any:
        return self.client_manager.get_identity_store_client()

    async def _run(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.get_running_loop().run_in_executor(
                None, partial(func, *args, **kwargs)
            )
        except ClientError as e:
            raise AwsIdentityCenterError(
                f"AWS Identity Center request failed: {describe_error(e)}"
            ) from e

    async def check_connection(self) -> None:
        """
        Verify the AWS credentials and that the Identity Center instance answers.

        Raises:
            AwsIdentityCenterError: If the session or the instance is unusable
        """
        if not await self._run(self.client_manager.validate_session):
            raise AwsIdentityCenterError("AWS credentials are invalid or expired")
        sso_admin = self.sso_admin
        await self._run(
            sso_admin.list_permission_sets, InstanceArn=self.instance_arn, MaxResults=1
        )

    async def check_group_synchronization_status(self, azure_group_id: str) -> SyncStatus:
        """
        Find the Identity Store group provisioned from an Azure AD group.

        SCIM provisioning from Azure AD records the Azure object id as an
        external id of the group.
        """
        identity_store = self.identity_store
        aws_group_id = await self._run(
            self._find_group_by_external_id, identity_store, azure_group_id
        )
        if aws_group_id is None:
            logger.debug(f"No Identity Store group found for Azure group {azure_group_id}")
            return SyncStatus(is_synced=False)
        return SyncStatus(is_synced=True, aws_group_id=aws_group_id)

    def _find_group_by_external_id(
        self, identity_store: Any, azure_group_id: str
    ) -> Optional[str]:
        paginator = identity_store.get_paginator("list_groups")
        for page in paginator.paginate(IdentityStoreId=self.identity_store_id):
            for group in page.get("Groups", []):
                for external_id in group.get("ExternalIds", []):
                    if external_id.get("Id") == azure_group_id:
                        return group["GroupId"]
        return None

    async def list_permission_sets(self) -> List[PermissionSet]:
        """List every permission set with its managed and inline policies."""
        sso_admin = self.sso_admin
        return await self._run(self._list_permission_sets, sso_admin)

    def _list_permission_set_arns(self, sso_admin: Any) -> List[str]:
        arns: List[str] = []
        paginator = sso_admin.get_paginator("list_permission_sets")
        for page in paginator.paginate(InstanceArn=self.instance_arn):
            arns.extend(page.get("PermissionSets", []))
        return arns

    def _list_permission_sets(self, sso_admin: Any) -> List[PermissionSet]:
        permission_sets = []
        for arn in self._list_permission_set_arns(sso_admin):
            description = sso_admin.describe_permission_set(
                InstanceArn=self.instance_arn, PermissionSetArn=arn
            ).get("PermissionSet", {})

            managed_policies: List[str] = []
            paginator = sso_admin.get_paginator("list_managed_policies_in_permission_set")
            for page in paginator.paginate(InstanceArn=self.instance_arn, PermissionSetArn=arn):
                managed_policies.extend(
                    policy["Arn"] for policy in page.get("AttachedManagedPolicies", [])
                )

            inline_policy = sso_admin.get_inline_policy_for_permission_set(
                InstanceArn=self.instance_arn, PermissionSetArn=arn
            ).get("InlinePolicy")

            permission_sets.append(
                PermissionSet(
                    arn=arn,
                    name=description.get("Name", ""),
                    description=description.get("Description"),
                    session_duration=description.get("SessionDuration", "PT1H"),
                    managed_policies=managed_policies,
                    inline_policy=inline_policy or None,
                )
            )
        return permission_sets

    async def list_account_assignments(
        self, account_id: Optional[str] = None
    ) -> List[AccountAssignment]:
        """
        List account assignments of the instance, optionally for one account.

        Listed assignments are provisioned. Creation requests still in progress
        or failed are added with their request status when no provisioned
        assignment exists for the same principal, permission set and account.
        """
        sso_admin = self.sso_admin
        return await self._run(self._list_account_assignments, sso_admin, account_id)

    async def get_account_assignments_for_account(
        self, account_id: str
    ) -> List[AccountAssignment]:
        """List the account assignments of a single account."""
        return await self.list_account_assignments(account_id)

    def _list_account_assignments(
        self, sso_admin: Any, account_id: Optional[str]
    ) -> List[AccountAssignment]:
        targets: List[Tuple[str, str]] = []
        if account_id:
            paginator = sso_admin.get_paginator("list_permission_sets_provisioned_to_account")
            for page in paginator.paginate(InstanceArn=self.instance_arn, AccountId=account_id):
                targets.extend((account_id, arn) for arn in page.get("PermissionSets", []))
        else:
            paginator = sso_admin.get_paginator("list_accounts_for_provisioned_permission_set")
            for arn in self._list_permission_set_arns(sso_admin):
                for page in paginator.paginate(InstanceArn=self.instance_arn, PermissionSetArn=arn):
                    targets.extend((account, arn) for account in page.get("AccountIds", []))

        assignments: List[AccountAssignment] = []
        seen: Set[Tuple[str, str, str]] = set()
        paginator = sso_admin.get_paginator("list_account_assignments")
        for target_account, arn in targets:
            for page in paginator.paginate(
                InstanceArn=self.instance_arn, AccountId=target_account, PermissionSetArn=arn
            ):
                for record in page.get("AccountAssignments", []):
                    assignment = self._to_account_assignment(
                        record, AccountAssignmentStatus.PROVISIONED.value
                    )
                    seen.add(self._identity(assignment))
                    assignments.append(assignment)

        for assignment in self._list_pending_creations(sso_admin, account_id):
            if self._identity(assignment) not in seen:
                seen.add(self._identity(assignment))
                assignments.append(assignment)

        logger.debug(
            f"Listed {len(assignments)} account assignments"
            + (f" for account {account_id}" if account_id else "")
        )
        return assignments

    def _list_pending_creations(
        self, sso_admin: Any, account_id: Optional[str]
    ) -> List[AccountAssignment]:
        pending: List[AccountAssignment] = []
        paginator = sso_admin.get_paginator("list_account_assignment_creation_status")
        for status in PENDING_CREATION_STATUSES:
            for page in paginator.paginate(
                InstanceArn=self.instance_arn, Filter={"Status": status}
            ):
                for request in page.get("AccountAssignmentsCreationStatus", []):
                    creation = sso_admin.describe_account_assignment_creation_status(
                        InstanceArn=self.instance_arn,
                        AccountAssignmentCreationRequestId=request["RequestId"],
                    ).get("AccountAssignmentCreationStatus", {})

                    if not creation.get("PrincipalId") or not creation.get("TargetId"):
                        continue
                    if account_id and creation["TargetId"] != account_id:
                        continue

                    pending.append(
                        AccountAssignment(
                            account_id=creation["TargetId"],
                            principal_id=creation["PrincipalId"],
                            principal_type=PrincipalType(creation.get("PrincipalType", "GROUP")),
                            permission_set_arn=creation.get("PermissionSetArn", ""),
                            status=creation.get("Status", status),
                        )
                    )
        return pending

    @staticmethod
    def _to_account_assignment(record: Dict[str, Any], status: str) -> AccountAssignment:
        return AccountAssignment(
            account_id=record["AccountId"],
            principal_id=record["PrincipalId"],
            principal_type=PrincipalType(record.get("PrincipalType", "GROUP")),
            permission_set_arn=record["PermissionSetArn"],
            status=status,
        )

    @staticmethod
    def _identity(assignment: AccountAssignment) -> Tuple[str, str, str]:
        return (assignment.principal_id, assignment.permission_set_arn, assignment.account_id)

    async def get_group_details(self, aws_group_id: str) -> AwsGroupDetails:
        """Describe an Identity Store group and count its members."""
        identity_store = self.identity_store
        return await self._run(self._get_group_details, identity_store, aws_group_id)

    def _get_group_details(self, identity_store: Any, aws_group_id: str) -> AwsGroupDetails:
        group = identity_store.describe_group(
            IdentityStoreId=self.identity_store_id, GroupId=aws_group_id
        )

        member_count = 0
        paginator = identity_store.get_paginator("list_group_memberships")
        for page in paginator.paginate(
            IdentityStoreId=self.identity_store_id, GroupId=aws_group_id
        ):
            member_count += len(page.get("GroupMemberships", []))

        return AwsGroupDetails(
            display_name=group.get("DisplayName"),
            member_count=member_count,
            description=group.get("Description"),
        )
