"""Microsoft Graph client for reading Azure AD security groups."""

import logging
from typing import TYPE_CHECKING, Any, Optional

from azure.identity import ClientSecretCredential
from kiota_abstractions.base_request_configuration import RequestConfiguration
from msgraph.generated.groups.groups_request_builder import GroupsRequestBuilder
from msgraph.generated.models.o_data_errors.o_data_error import ODataError
from msgraph.graph_service_client import GraphServiceClient

from ..utils.error_handler import AzureGraphError, describe_error
from ..validation.models import AzureGroupValidation

if TYPE_CHECKING:
    from ..utils.config import AppConfig

logger = logging.getLogger(__name__)

GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]


class AzureGraphClient:
    """
    Reads Azure AD groups from Microsoft Graph using client credentials.

    The application registration needs the Group.Read.All and
    GroupMember.Read.All application permissions.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        graph_client: Optional[Any] = None,
    ):
        """
        Initialize the Graph client.

        Args:
            tenant_id: Azure AD tenant ID
            client_id: Application (client) ID
            client_secret: Application client secret
            graph_client: Pre-built GraphServiceClient, mainly for tests
        """
        self.tenant_id = tenant_id
        self.client_id = client_id
        if graph_client is not None:
            self.client = graph_client
        else:
            credential = ClientSecretCredential(
                tenant_id=tenant_id, client_id=client_id, client_secret=client_secret
            )
            self.client = GraphServiceClient(credentials=credential, scopes=GRAPH_SCOPES)

    @classmethod
    def from_config(cls, config: "AppConfig") -> "AzureGraphClient":
        """Build a client for the configured application registration."""
        return cls(
            tenant_id=config.azure.tenant_id,
            client_id=config.azure.client_id,
            client_secret=config.azure.client_secret,
        )

    async def check_connection(self) -> None:
        """
        Read a single group to prove the credentials and Graph permissions work.

        Raises:
            AzureGraphError: If Microsoft Graph rejects the request
        """
        query_params = GroupsRequestBuilder.GroupsRequestBuilderGetQueryParameters(
            select=["id"], top=1
        )
        request_config = RequestConfiguration(query_parameters=query_params)
        try:
            await self.client.groups.get(request_configuration=request_config)
        except ODataError as e:
            raise AzureGraphError(f"Failed to reach Microsoft Graph: {describe_error(e)}") from e

    async def validate_group_detailed(self, group_id: str) -> AzureGroupValidation:
        """
        Describe an Azure AD group.

        A group that Graph reports as missing yields ``exists=False``; any other
        Graph failure is raised as AzureGraphError.
        """
        try:
            group = await self.client.groups.by_group_id(group_id).get()
        except ODataError as e:
            if getattr(e, "response_status_code", None) == 404:
                logger.debug(f"Azure group {group_id} not found")
                return AzureGroupValidation.not_found("Group does not exist")
            raise AzureGraphError(
                f"Failed to read Azure group {group_id}: {describe_error(e)}"
            ) from e

        if group is None:
            return AzureGroupValidation.not_found("Group does not exist")

        member_count = await self._count_members(group_id)
        is_security_group = bool(group.security_enabled)
        is_active = group.deleted_date_time is None

        errors = []
        if not is_security_group:
            errors.append("Group is not a security group")
        if not is_active:
            errors.append("Group has been deleted")

        return AzureGroupValidation(
            exists=True,
            is_active=is_active,
            is_security_group=is_security_group,
            member_count=member_count,
            display_name=group.display_name,
            errors=errors,
        )

    async def _count_members(self, group_id: str) -> int:
        members = self.client.groups.by_group_id(group_id).members
        try:
            page = await members.get()
            count = 0
            while page is not None:
                count += len(page.value or [])
                if not page.odata_next_link:
                    break
                page = await members.with_url(page.odata_next_link).get()
            return count
        except ODataError as e:
            raise AzureGraphError(
                f"Failed to list members of Azure group {group_id}: {describe_error(e)}"
            ) from e
