"""Azure AD (Microsoft Graph) client integration."""

from .graph import AzureGraphClient

__all__ = ["AzureGraphClient"]
