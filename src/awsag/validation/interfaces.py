"""Collaborator interfaces consumed by the validation core."""

from typing import List, Optional, Protocol

from .models import (
    AccountAssignment,
    AwsGroupDetails,
    AzureGroupValidation,
    PermissionSet,
    SyncStatus,
)


class AzureDirectoryClient(Protocol):
    """Read-only view of the Azure AD directory."""

    async def validate_group_detailed(self, group_id: str) -> AzureGroupValidation:
        """
        Look up a group and describe its state.

        A group that cannot be found is reported with ``exists=False`` rather
        than by raising.
        """
        ...

    async def check_connection(self) -> None:
        """Raise if the directory cannot be reached with the configured credentials."""
        ...


class AwsIdentityClient(Protocol):
    """Read-only view of AWS IAM Identity Center."""

    async def check_group_synchronization_status(self, azure_group_id: str) -> SyncStatus:
        """Report whether the Azure group has been provisioned into the Identity Store."""
        ...

    async def list_permission_sets(self) -> List[PermissionSet]:
        """List every permission set of the Identity Center instance."""
        ...

    async def list_account_assignments(
        self, account_id: Optional[str] = None
    ) -> List[AccountAssignment]:
        """List account assignments, optionally restricted to one account."""
        ...

    async def get_account_assignments_for_account(
        self, account_id: str
    ) -> List[AccountAssignment]:
        """List the account assignments of a single account."""
        ...

    async def get_group_details(self, aws_group_id: str) -> AwsGroupDetails:
        """Describe an Identity Store group."""
        ...

    async def check_connection(self) -> None:
        """Raise if the session or the Identity Center instance is unusable."""
        ...
