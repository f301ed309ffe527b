"""
Configuration Management for Mailbox Cutover

This module provides centralized configuration management with validation
and environment variable handling.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import colorlog
from dotenv import load_dotenv

# Load environment variables
load_dotenv(override=True)


def _set_azure_http_log_level(log_level: str) -> None:
    """Set log levels for HTTP-related loggers to reduce noise."""
    http_loggers = [
        "azure.core.pipeline.policies.http_logging_policy",
        "azure.core.pipeline",
        "azure.identity",
        "azure",
        "msgraph",
        "kiota_http",
        "httpx",
        "httpcore",
        "urllib3",
    ]
    # HTTP logging should only appear at DEBUG level
    target_level = logging.DEBUG if log_level == "DEBUG" else logging.WARNING
    for name in http_loggers:
        logging.getLogger(name).setLevel(target_level)


logger = logging.getLogger(__name__)


@dataclass
class LoggingConfig:
    """Configuration for logging behavior."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = field(
        default_factory=lambda: os.getenv(
            "LOG_FORMAT", "%(log_color)s%(levelname)s:%(name)s:%(message)s"
        )
    )
    file_output: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        self.level = self.level.upper()

    def get_log_level(self) -> int:
        """Convert string log level to logging constant."""
        return int(getattr(logging, self.level))


@dataclass
class CutoverConfig:
    """Configuration for a cutover run."""

    output_dir: Path = field(
        default_factory=lambda: Path(os.getenv("CUTOVER_OUTPUT_DIR", "."))
    )
    max_workers: int = field(
        default_factory=lambda: int(os.getenv("CUTOVER_MAX_WORKERS", "1"))
    )
    audit_log: Path = field(
        default_factory=lambda: Path(
            os.getenv("CUTOVER_AUDIT_LOG", ".cutover-audit.jsonl")
        )
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("CUTOVER_REQUEST_TIMEOUT", "120"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.getenv("CUTOVER_MAX_RETRIES", "5"))
    )
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_workers < 1:
            raise ValueError("Max workers must be at least 1")
        if self.request_timeout <= 0:
            raise ValueError("Request timeout must be positive")
        if self.max_retries < 1:
            raise ValueError("Max retries must be at least 1")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        return {
            "output_dir": str(self.output_dir),
            "max_workers": self.max_workers,
            "audit_log": str(self.audit_log),
            "request_timeout": self.request_timeout,
            "max_retries": self.max_retries,
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
            },
        }


def setup_logging(config: LoggingConfig) -> None:
    """
    Setup logging configuration based on config.
    """
    _set_azure_http_log_level(config.level.upper())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(config.get_log_level())

    console_handler = colorlog.StreamHandler()
    console_handler.setFormatter(colorlog.ColoredFormatter(config.format))
    root_logger.addHandler(console_handler)

    if config.file_output:
        file_handler = logging.FileHandler(config.file_output)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(levelname)s:%(name)s:%(message)s")
        )
        root_logger.addHandler(file_handler)

    logger.debug(
        f"Logging configured: level={config.level}, file={config.file_output or 'console'}"
    )


def create_config_from_env(
    output_dir: Optional[Path] = None,
    max_workers: Optional[int] = None,
    audit_log: Optional[Path] = None,
    log_level: Optional[str] = None,
) -> CutoverConfig:
    """
    Factory function to create and validate configuration from environment.

    Explicit arguments (from the command line) override environment values.

    Raises:
        ValueError: If configuration is invalid
    """
    config = CutoverConfig()
    if output_dir is not None:
        config.output_dir = output_dir
    if max_workers is not None:
        config.max_workers = max_workers
    if audit_log is not None:
        config.audit_log = audit_log
    if log_level is not None:
        config.logging.level = log_level
    config.logging.__post_init__()
    config.__post_init__()
    return config
