"""Core utility modules for awsag."""

# Configuration utilities
from .config import CONFIG_DIR, CONFIG_FILE_YAML, AppConfig, AwsSettings, AzureSettings, Config

# Error handling utilities
from .error_handler import (
    AssignmentListingError,
    AwsAgError,
    ConfigurationError,
    ErrorHandler,
    describe_error,
    handle_cli_error,
)

# Logging utilities
from .logging_config import LoggingConfig, LoggingManager, setup_logging

__all__ = [
    "CONFIG_DIR",
    "CONFIG_FILE_YAML",
    "AppConfig",
    "AwsSettings",
    "AzureSettings",
    "Config",
    "AssignmentListingError",
    "AwsAgError",
    "ConfigurationError",
    "ErrorHandler",
    "describe_error",
    "handle_cli_error",
    "LoggingConfig",
    "LoggingManager",
    "setup_logging",
]
