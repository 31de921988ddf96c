"""Configuration models for scanning and the tracker application."""

import json
import os
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .tracker_logging import get_logger

logger = get_logger()

DEFAULT_INCLUDE_PATTERNS = [
    "**/components/**/*",
    "**/src/components/**/*",
    "**/lib/components/**/*",
    "**/packages/*/components/**/*",
]

DEFAULT_EXCLUDE_PATTERNS = [
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/.git/**",
    "**/coverage/**",
    "**/*.test.*",
    "**/*.spec.*",
    "**/*.stories.*",
]

DEFAULT_EXTENSIONS = [".tsx", ".ts", ".jsx", ".js", ".vue", ".svelte"]

DEFAULT_MAX_DEPTH = 10
DEFAULT_MAX_FILE_BYTES = 250_000


class ScanOptions(BaseModel):
    """Filters applied by the file discoverer.

    Accepts both snake_case names and the camelCase keys used by the
    scan API (``componentExtensions`` is an older alias of
    ``allowedExtensions``).
    """

    model_config = ConfigDict(populate_by_name=True)

    include_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS),
        validation_alias=AliasChoices("include_patterns", "includePatterns"),
    )
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS),
        validation_alias=AliasChoices("exclude_patterns", "excludePatterns"),
    )
    allowed_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXTENSIONS),
        validation_alias=AliasChoices(
            "allowed_extensions", "allowedExtensions", "componentExtensions"
        ),
    )
    max_depth: int = Field(
        default=DEFAULT_MAX_DEPTH,
        ge=0,
        validation_alias=AliasChoices("max_depth", "maxDepth"),
    )
    max_file_bytes: int = Field(
        default=DEFAULT_MAX_FILE_BYTES,
        ge=0,
        validation_alias=AliasChoices("max_file_bytes", "maxFileBytes"),
    )

    @field_validator("allowed_extensions")
    @classmethod
    def normalize_extensions(cls, value: list[str]) -> list[str]:
        """Ensure every extension is lower-case and starts with a dot."""
        normalized = []
        for ext in value:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        return normalized

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase dictionary used by the scan API."""
        return {
            "includePatterns": self.include_patterns,
            "excludePatterns": self.exclude_patterns,
            "allowedExtensions": self.allowed_extensions,
            "maxDepth": self.max_depth,
            "maxFileBytes": self.max_file_bytes,
        }


class TrackerConfig(BaseModel):
    """Application configuration with validation."""

    # State
    state_dir: Path = Field(default_factory=lambda: Path.home() / ".component-tracker")

    # Scanning
    scan: ScanOptions = Field(default_factory=ScanOptions)
    max_workers: int = Field(default=8, ge=1, le=64)

    # External services
    http_timeout: float = Field(default=30.0, gt=0)
    figma_api_token: str = Field(default="")
    figma_api_url: str = Field(default="https://api.figma.com/v1")
    bundle_service_url: str = Field(default="http://localhost:5055")

    # Scanner API server
    server_host: str = Field(default="127.0.0.1")
    server_port: int = Field(default=5055, ge=1, le=65535)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")
    log_file: Path | None = Field(default=None)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate the log level name."""
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        """Validate the log file format."""
        if value not in {"text", "json"}:
            raise ValueError(f"Unknown log format: {value}")
        return value


ENV_VARS = {
    "state_dir": "COMPONENT_TRACKER_STATE_DIR",
    "figma_api_token": "FIGMA_API_TOKEN",
    "server_port": "SCANNER_PORT",
    "bundle_service_url": "BUNDLE_SERVICE_URL",
    "log_level": "COMPONENT_TRACKER_LOG_LEVEL",
}


def load_config(config_file: Path | None = None, **overrides: Any) -> TrackerConfig:
    """Load configuration from all sources.

    Precedence (highest to lowest):
    1. Explicit overrides
    2. Environment variables
    3. JSON config file
    4. Defaults

    Args:
        config_file: Optional JSON configuration file.
        **overrides: Field values that win over every other source.

    Returns:
        Validated TrackerConfig.

    Raises:
        ConfigurationError: If the file is unreadable or a value is invalid.
    """
    config_dict: dict[str, Any] = {}

    if config_file is not None:
        config_path = Path(config_file)
        try:
            with open(config_path, encoding="utf-8") as f:
                file_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Could not read configuration: {e}", config_file=str(config_path)
            ) from e
        if not isinstance(file_data, dict):
            raise ConfigurationError(
                "Configuration file must contain a JSON object",
                config_file=str(config_path),
            )
        config_dict.update(file_data)
        logger.debug(f"Loaded {len(file_data)} settings from {config_path}")

    env_count = 0
    for key, env_var in ENV_VARS.items():
        value = os.environ.get(env_var)
        if value is not None:
            config_dict[key] = value
            env_count += 1

    max_bytes = os.environ.get("SCANNER_MAX_FILE_BYTES")
    if max_bytes is not None:
        scan = dict(config_dict.get("scan") or {})
        scan["max_file_bytes"] = max_bytes
        config_dict["scan"] = scan
        env_count += 1

    if env_count > 0:
        logger.debug(f"Applied {env_count} environment variables")

    config_dict.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return TrackerConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e.errors()[0]['msg']}",
            config_file=str(config_file) if config_file else None,
        ) from e
