"""Configuration utilities for awsag."""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from rich.console import Console

console = Console()

CONFIG_DIR = Path.home() / ".awsag"
CONFIG_FILE_YAML = CONFIG_DIR / "config.yaml"

DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_LOG_LEVEL = "INFO"

# Settings that must be present before the validator can talk to either provider
REQUIRED_SETTINGS = {
    "azure.tenant_id": "AZURE_TENANT_ID",
    "azure.client_id": "AZURE_CLIENT_ID",
    "azure.client_secret": "AZURE_CLIENT_SECRET",
    "aws.identity_center_instance_arn": "AWS_IDENTITY_CENTER_INSTANCE_ARN",
    "aws.identity_store_id": "AWS_IDENTITY_STORE_ID",
}


@dataclass
class AzureSettings:
    """Azure AD application registration used for Microsoft Graph."""

    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    default_owner_emails: List[str] = field(default_factory=list)


@dataclass
class AwsSettings:
    """AWS session and Identity Center instance."""

    region: str = DEFAULT_AWS_REGION
    profile: Optional[str] = None
    identity_center_instance_arn: Optional[str] = None
    identity_store_id: Optional[str] = None


@dataclass
class LoggingSettings:
    level: str = DEFAULT_LOG_LEVEL
    file: Optional[str] = None
    format: str = "simple"


@dataclass
class AppConfig:
    """Typed application configuration, loaded once at startup."""

    azure: AzureSettings = field(default_factory=AzureSettings)
    aws: AwsSettings = field(default_factory=AwsSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def validate(self, sections: Optional[Tuple[str, ...]] = None) -> List[str]:
        """
        Check that every required setting is present.

        Args:
            sections: Only check these sections, for example ("aws",)

        Returns:
            List of error messages, empty when the configuration is complete
        """
        errors = []
        for path, env_var in REQUIRED_SETTINGS.items():
            section, name = path.split(".")
            if sections is not None and section not in sections:
                continue
            if not getattr(getattr(self, section), name):
                errors.append(f"Missing required setting {path} (environment variable {env_var})")
        return errors

    def to_dict(self, redact_secrets: bool = True) -> Dict[str, Any]:
        """
        Convert the configuration to a dictionary.

        Args:
            redact_secrets: Mask the Azure client secret

        Returns:
            Nested dictionary of settings
        """
        data = asdict(self)
        if redact_secrets and data["azure"]["client_secret"]:
            data["azure"]["client_secret"] = "***"
        return data


class Config:
    """Manages awsag configuration from the YAML file and the environment."""

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize the configuration manager.

        Args:
            config_file: Path to the YAML file, defaults to ~/.awsag/config.yaml
        """
        self.config_file = Path(config_file) if config_file else CONFIG_FILE_YAML
        self.config_data: Dict[str, Any] = {}
        self._config_loaded = False

    def _ensure_config_loaded(self):
        """Ensure configuration is loaded from file."""
        if not self._config_loaded:
            self._load_config()
            self._config_loaded = True

    def _load_config(self):
        """Load configuration from the YAML file if it exists."""
        if not self.config_file.exists():
            self.config_data = {}
            return

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                self.config_data = yaml.safe_load(f) or {}

            if not isinstance(self.config_data, dict):
                console.print(
                    f"[red]Error: Configuration file {self.config_file} must contain a mapping[/red]"
                )
                self.config_data = {}
                return

            self._expand_tilde_paths()

        except yaml.YAMLError as e:
            console.print(
                f"[red]Error: Configuration file {self.config_file} is not valid YAML: {e}[/red]"
            )
            self.config_data = {}
        except OSError as e:
            console.print(f"[red]Error reading configuration file {self.config_file}: {e}[/red]")
            self.config_data = {}

    def _expand_tilde_paths(self):
        """Expand tilde (~) paths in configuration sections."""
        for section_data in self.config_data.values():
            if isinstance(section_data, dict):
                for key, value in section_data.items():
                    if isinstance(value, str) and value.startswith("~"):
                        section_data[key] = str(Path(value).expanduser())

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value with dot notation support.

        Args:
            key: Configuration key (supports dot notation like "aws.region")
            default: Default value if key doesn't exist

        Returns:
            Configuration value
        """
        self._ensure_config_loaded()

        if "." in key:
            value = self.config_data
            for k in key.split("."):
                if isinstance(value, dict) and k in value:
                    value = value[k]
                else:
                    return default
            return value

        return self.config_data.get(key, default)

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values from the file."""
        self._ensure_config_loaded()
        return self.config_data.copy()

    def load_app_config(self) -> AppConfig:
        """
        Build the typed application configuration.

        Environment variables take precedence over the YAML file, which takes
        precedence over the defaults.

        Returns:
            AppConfig with Azure, AWS and logging settings
        """
        self._ensure_config_loaded()

        azure = AzureSettings(
            tenant_id=self._get_env_str("AZURE_TENANT_ID", self.get("azure.tenant_id")),
            client_id=self._get_env_str("AZURE_CLIENT_ID", self.get("azure.client_id")),
            client_secret=self._get_env_str("AZURE_CLIENT_SECRET", self.get("azure.client_secret")),
            default_owner_emails=self._get_env_list(
                "AZURE_DEFAULT_OWNER_EMAILS", self.get("azure.default_owner_emails", [])
            ),
        )
        aws = AwsSettings(
            region=self._get_env_str("AWS_REGION", self.get("aws.region")) or DEFAULT_AWS_REGION,
            profile=self._get_env_str("AWS_PROFILE", self.get("aws.profile")),
            identity_center_instance_arn=self._get_env_str(
                "AWS_IDENTITY_CENTER_INSTANCE_ARN", self.get("aws.identity_center_instance_arn")
            ),
            identity_store_id=self._get_env_str(
                "AWS_IDENTITY_STORE_ID", self.get("aws.identity_store_id")
            ),
        )
        logging_settings = LoggingSettings(
            level=(
                self._get_env_str("AWSAG_LOG_LEVEL", self.get("logging.level"))
                or DEFAULT_LOG_LEVEL
            ).upper(),
            file=self._get_env_str("AWSAG_LOG_FILE", self.get("logging.file")),
            format=self.get("logging.format", "simple"),
        )
        return AppConfig(azure=azure, aws=aws, logging=logging_settings)

    def _get_env_str(self, env_var: str, default: Optional[str]) -> Optional[str]:
        """
        Get string value from environment variable.

        Args:
            env_var: Environment variable name
            default: Default value if env var is not set or empty

        Returns:
            String value
        """
        value = os.environ.get(env_var)
        if not value:
            return default
        return value.strip()

    def _get_env_list(self, env_var: str, default: Any) -> List[str]:
        """
        Get a comma separated list from environment variable.

        Args:
            env_var: Environment variable name
            default: Default value (list or comma separated string) if env var is not set

        Returns:
            List of non-empty stripped items
        """
        value = os.environ.get(env_var)
        if value is None:
            value = default
        if isinstance(value, str):
            value = value.split(",")
        return [str(item).strip() for item in (value or []) if str(item).strip()]

    def get_config_file_path(self) -> Path:
        """Get the path to the configuration file."""
        return self.config_file
