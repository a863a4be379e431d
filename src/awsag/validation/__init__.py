"""Assignment validation between Azure AD and AWS IAM Identity Center.

This package provides:
- Data models for assignments, validation results and test results
- The AssignmentValidator running the per-assignment check sequence
- The ValidationService facade with sync, permission and report helpers
"""

from .interfaces import AwsIdentityClient, AzureDirectoryClient
from .models import (
    AccountAssignment,
    AccountGroupSyncCheck,
    AllAssignmentsValidation,
    AssignmentFunctionalityTest,
    AssignmentIssue,
    AssignmentStatus,
    AssignmentTestResult,
    AwsGroupDetails,
    AzureGroupValidation,
    ComponentHealth,
    GroupAssignment,
    GroupSynchronizationStatus,
    PermissionInheritanceTest,
    PermissionSet,
    PrincipalType,
    SyncStatus,
    SystemHealth,
    ValidationResult,
    ValidationSummary,
    assignment_key,
)
from .service import ValidationService
from .validator import AssignmentValidator

__all__ = [
    "AccountAssignment",
    "AccountGroupSyncCheck",
    "AllAssignmentsValidation",
    "AssignmentFunctionalityTest",
    "AssignmentIssue",
    "AssignmentStatus",
    "AssignmentTestResult",
    "AssignmentValidator",
    "AwsGroupDetails",
    "AwsIdentityClient",
    "AzureDirectoryClient",
    "AzureGroupValidation",
    "ComponentHealth",
    "GroupAssignment",
    "GroupSynchronizationStatus",
    "PermissionInheritanceTest",
    "PermissionSet",
    "PrincipalType",
    "SyncStatus",
    "SystemHealth",
    "ValidationResult",
    "ValidationService",
    "ValidationSummary",
    "assignment_key",
]
