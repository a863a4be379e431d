"""AWS service client management and integration.

This package provides:
- Client lifecycle and session management for boto3
- The Identity Center read client consumed by the validator
"""

from .identity_center import IdentityCenterClient
from .manager import AWSClientManager

__all__ = [
    "AWSClientManager",
    "IdentityCenterClient",
]
