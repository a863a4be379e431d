"""Logging configuration for awsag."""

import json
import logging
import logging.handlers
import os
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

ROOT_LOGGER_NAME = "awsag"


class LogFormat(str, Enum):
    """Log output formats."""

    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"


@dataclass
class LoggingConfig:
    """Configuration for logging system."""

    level: str = "INFO"
    format_type: LogFormat = LogFormat.SIMPLE
    enable_console_logging: bool = True
    log_file: Optional[str] = None
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_colors: bool = True
    log_sdk_requests: bool = False
    sensitive_data_patterns: List[str] = field(
        default_factory=lambda: [r"password", r"secret", r"token", r"credential"]
    )

    @classmethod
    def from_settings(cls, settings, verbose: bool = False) -> "LoggingConfig":
        """
        Build a logging configuration from the application logging settings.

        Args:
            settings: LoggingSettings loaded with the application config
            verbose: Force DEBUG level

        Returns:
            LoggingConfig
        """
        try:
            format_type = LogFormat(settings.format)
        except ValueError:
            format_type = LogFormat.SIMPLE
        return cls(
            level="DEBUG" if verbose else settings.level,
            format_type=format_type,
            log_file=settings.file,
        )


class SensitiveDataFilter(logging.Filter):
    """Filter to redact secret values from log messages."""

    def __init__(self, patterns: List[str]) -> None:
        """
        Initialize the filter with sensitive key patterns.

        Args:
            patterns: Regex fragments matching the names of sensitive values
        """
        super().__init__()
        self.patterns = patterns
        # Redact the value in "<name>=<value>" and "<name>: <value>" pairs
        self.compiled_patterns = [
            re.compile(rf"(\w*{pattern}\w*\s*[=:]\s*)(\"[^\"]*\"|'[^']*'|\S+)", re.IGNORECASE)
            for pattern in patterns
        ]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Redact sensitive data in the record.

        Returns:
            bool: Always True (we modify but don't filter out records)
        """
        if isinstance(record.msg, str):
            record.msg = self._redact_sensitive_data(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._redact_sensitive_data(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True

    def _redact_sensitive_data(self, text: str) -> str:
        for pattern in self.compiled_patterns:
            text = pattern.sub(r"\1[REDACTED]", text)
        return text


class StructuredFormatter(logging.Formatter):
    """Formatter emitting one JSON object per log record."""

    STANDARD_ATTRS = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_data = {}
        for key, value in record.__dict__.items():
            if key not in self.STANDARD_ATTRS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    extra_data[key] = value
                except (TypeError, ValueError):
                    extra_data[key] = str(value)

        if extra_data:
            log_data["extra"] = extra_data

        return json.dumps(log_data, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Console formatter with color support."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and self._supports_color()

    def _supports_color(self) -> bool:
        return (
            hasattr(sys.stderr, "isatty")
            and sys.stderr.isatty()
            and os.environ.get("TERM") != "dumb"
        )

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            reset = self.COLORS["RESET"]
            formatted = (
                f"{color}[{timestamp}] {record.levelname:<8}{reset} - "
                f"{record.name} - {record.getMessage()}"
            )
        else:
            formatted = f"[{timestamp}] {record.levelname:<8} - {record.name} - {record.getMessage()}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"
        return formatted


class LoggingManager:
    """
    Central logging setup for the awsag package.

    Handlers are attached to the ``awsag`` logger only, so modules log through
    ``logging.getLogger(__name__)`` and third-party libraries keep their own
    configuration apart from the noise reduction applied here.
    """

    # SDK and HTTP loggers that are quieted unless SDK request logging is on
    SDK_LOGGERS = ["boto3", "botocore", "urllib3", "azure", "httpx", "msgraph", "kiota"]

    def __init__(self, config: Optional[LoggingConfig] = None):
        """
        Initialize the logging manager.

        Args:
            config: Logging configuration
        """
        self.config = config or LoggingConfig()
        self._handlers: List[logging.Handler] = []
        self._loggers: Dict[str, logging.Logger] = {}

    @property
    def level(self) -> int:
        return getattr(logging, str(self.config.level).upper(), logging.INFO)

    def setup_logging(self) -> logging.Logger:
        """
        Configure the awsag root logger.

        Calling it again replaces the handlers installed by the previous call.

        Returns:
            logging.Logger: The configured awsag logger
        """
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(self.level)
        root_logger.propagate = False

        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers = []

        if self.config.enable_console_logging:
            self._handlers.append(self._create_console_handler())
        if self.config.log_file:
            self._handlers.append(self._create_file_handler())

        for handler in self._handlers:
            root_logger.addHandler(handler)

        self._configure_sdk_logging()
        return root_logger

    def _create_console_handler(self) -> logging.Handler:
        # stderr keeps JSON command output on stdout clean
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(self.level)

        formatter: logging.Formatter
        if self.config.format_type == LogFormat.JSON:
            formatter = StructuredFormatter()
        elif self.config.format_type == LogFormat.DETAILED:
            formatter = logging.Formatter(
                "[%(asctime)s] %(levelname)-8s - %(name)s - %(funcName)s:%(lineno)d - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        else:
            formatter = ColoredConsoleFormatter(use_colors=self.config.console_colors)

        handler.setFormatter(formatter)
        self._add_filters(handler)
        return handler

    def _create_file_handler(self) -> logging.Handler:
        log_file = Path(self.config.log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            filename=str(log_file),
            maxBytes=self.config.max_file_size_mb * 1024 * 1024,
            backupCount=self.config.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(self.level)
        handler.setFormatter(StructuredFormatter())
        self._add_filters(handler)
        return handler

    def _add_filters(self, handler: logging.Handler) -> None:
        if self.config.sensitive_data_patterns:
            handler.addFilter(SensitiveDataFilter(self.config.sensitive_data_patterns))

    def _configure_sdk_logging(self) -> None:
        level = logging.DEBUG if self.config.log_sdk_requests else logging.WARNING
        for logger_name in self.SDK_LOGGERS:
            logging.getLogger(logger_name).setLevel(level)

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a logger below the awsag root logger.

        Args:
            name: Logger name (usually module name)

        Returns:
            logging.Logger: Logger instance
        """
        if name not in self._loggers:
            full_name = name if name.startswith(ROOT_LOGGER_NAME) else f"{ROOT_LOGGER_NAME}.{name}"
            self._loggers[name] = logging.getLogger(full_name)
        return self._loggers[name]


def setup_logging(config: Optional[LoggingConfig] = None) -> LoggingManager:
    """
    Set up awsag logging.

    Args:
        config: Logging configuration, defaults to INFO on the console

    Returns:
        LoggingManager: The manager that installed the handlers
    """
    manager = LoggingManager(config)
    manager.setup_logging()
    return manager
