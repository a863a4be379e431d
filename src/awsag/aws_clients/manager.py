"""AWS client utilities for awsag."""

import logging
import threading
from typing import Any, Optional

import boto3
from rich.console import Console

logger = logging.getLogger(__name__)

console = Console()


class AWSClientManager:
    """Manages AWS client connections for Identity Center operations."""

    def __init__(self, profile: Optional[str] = None, region: Optional[str] = None):
        """
        Initialize the AWS client manager.

        Args:
            profile: AWS profile name to use
            region: AWS region to use
        """
        self.profile = profile
        self.region = region
        self.session = None
        self._clients: dict = {}
        self._clients_lock = threading.Lock()
        self._init_session()

    def _init_session(self) -> None:
        """Initialize the AWS session."""
        session_kwargs = {}
        if self.profile:
            session_kwargs["profile_name"] = self.profile

        # Always explicitly set region_name to override AWS_DEFAULT_REGION
        if self.region:
            session_kwargs["region_name"] = self.region
        elif self.profile:
            try:
                temp_session = boto3.Session(profile_name=self.profile)
                profile_region = temp_session.region_name
                if profile_region:
                    session_kwargs["region_name"] = profile_region
            except Exception as e:
                console.print(
                    f"[yellow]Warning: Could not get region from profile: {str(e)}[/yellow]"
                )

        self.session = boto3.Session(**session_kwargs)

    def validate_session(self) -> bool:
        """
        Validate that the AWS session is active and credentials are valid.

        Returns:
            True if the session is valid, False otherwise

        Raises:
            RuntimeError: If session is not initialized
        """
        if self.session is None:
            raise RuntimeError("Session not initialized")

        try:
            # STS caller identity fails fast on invalid or expired credentials
            self.get_client("sts").get_caller_identity()
            return True
        except Exception as e:
            logger.debug(f"Session validation failed: {e}")
            return False

    def get_client(self, service_name: str) -> Any:
        """
        Get an AWS service client, reusing one per service.

        Args:
            service_name: Name of the AWS service

        Returns:
            AWS service client
        """
        if self.session is None:
            raise RuntimeError("Session not initialized")
        # validate_session may run in an executor thread
        with self._clients_lock:
            if service_name not in self._clients:
                self._clients[service_name] = self.session.client(service_name)
            return self._clients[service_name]

    def get_identity_center_client(self) -> Any:
        """Get the AWS Identity Center (sso-admin) client."""
        return self.get_client("sso-admin")

    def get_identity_store_client(self) -> Any:
        """Get the AWS Identity Store client."""
        return self.get_client("identitystore")
