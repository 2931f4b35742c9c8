"""Central Configuration System for TruthSeeker.

This module is the single source of truth for application configuration.
Every other module that needs settings imports from here.

The configuration system supports:
- Multi-source configuration (environment variables > config file > defaults)
- Secure API key management (env > keyring)
- Per-tier model selection and reasoning budgets for the Gemini gateway

Example:
    >>> from truthseeker.config import get_config, get_api_key
    >>>
    >>> cfg = get_config()
    >>> print(cfg.ai.pro_model)
    gemini-3-pro-preview
    >>> key = get_api_key()  # raises APIKeyNotFoundError when unset

Config File Format (YAML):
    ```yaml
    ai:
      pro_model: gemini-3-pro-preview
      flash_model: gemini-3-flash-preview
      image_model: gemini-3-pro-image-preview
      thinking_budgets:
        low: 1024
        medium: 4096
        high: 32768
      conversation_temperature: 0.3
      synthesis_image_size: 1K

    paths:
      data_dir: ~/.truthseeker
      output_dir: ./reports

    report:
      brand: TruthSeeker
      open_after_export: false

    debug: false
    verbose: false
    ```
"""

from __future__ import annotations

import functools
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

import keyring
import keyring.errors
import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings

# Configure module logger - never log secrets
logger = logging.getLogger(__name__)


DEFAULT_ASSESSMENT = (
    "This report contains evidence collected and analyzed using TruthSeeker forensic tools. "
    "Review all items for potential indicators of online fraud or deception."
)


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileError(ConfigError):
    """Exception raised for YAML config file issues.

    Raised when:
    - Config file exists but cannot be read
    - Config file contains malformed YAML
    """

    pass


class APIKeyError(ConfigError):
    """Base exception for API key problems."""

    pass


class APIKeyNotFoundError(APIKeyError):
    """No API key could be found in any configured source."""

    pass


# =============================================================================
# Enums
# =============================================================================


class KeySource(str, Enum):
    """Where the API key was found."""

    ENVIRONMENT = "environment"
    KEYRING = "keyring"
    NONE = "none"


# =============================================================================
# Configuration Models
# =============================================================================


class AIConfig(BaseModel):
    """Configuration for the Gemini gateway.

    Attributes:
        pro_model: Model used for deep multimodal analysis (image, video,
            conversation, deep reasoning).
        flash_model: Model used for fast tasks (audio, identity search, OCR).
        image_model: Model used for persona image synthesis.
        thinking_budgets: Reasoning budget in tokens per tier. Tier "none"
            never sends a thinking configuration.
        conversation_temperature: Sampling temperature for structured
            conversation analysis.
        synthesis_image_size: Output size hint for persona synthesis.
        timeout_seconds: Provider request timeout.

    Example:
        >>> ai = AIConfig(flash_model="gemini-2.5-flash")
        >>> ai.budget_for("high")
        32768
    """

    pro_model: str = Field(
        default="gemini-3-pro-preview",
        description="Model for image, video, conversation and deep reasoning tasks.",
    )
    flash_model: str = Field(
        default="gemini-3-flash-preview",
        description="Model for audio, identity search and OCR tasks.",
    )
    image_model: str = Field(
        default="gemini-3-pro-image-preview",
        description="Model for persona image synthesis.",
    )
    thinking_budgets: dict[str, int] = Field(
        default_factory=lambda: {"low": 1024, "medium": 4096, "high": 32768},
        description="Thinking budget in tokens per reasoning tier.",
    )
    conversation_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for structured conversation analysis.",
    )
    synthesis_image_size: str = Field(
        default="1K", description="Image size hint for persona synthesis."
    )
    timeout_seconds: int = Field(
        default=300, ge=10, le=1800, description="Provider request timeout in seconds."
    )

    @field_validator("thinking_budgets")
    @classmethod
    def check_budgets(cls, v: dict[str, int]) -> dict[str, int]:
        """Reject negative budgets."""
        for tier, budget in v.items():
            if budget < 0:
                raise ValueError(f"thinking budget for '{tier}' must be >= 0")
        return v

    def budget_for(self, tier: str) -> int | None:
        """Return the thinking budget for a reasoning tier, or None for 'none'."""
        if tier == "none":
            return None
        return self.thinking_budgets.get(tier)


class PathsConfig(BaseModel):
    """Configuration for application file system paths.

    Attributes:
        data_dir: Base directory for local case data. Default ~/.truthseeker
        output_dir: Directory for exported evidence reports. Default ./reports
        log_dir: Directory for log files. Default: data_dir/logs
        case_file: JSON file holding case history and journal. Default: data_dir/case.json

    Example:
        >>> paths = PathsConfig()
        >>> paths.ensure_dirs_exist()
    """

    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".truthseeker",
        description="Base directory for local case data.",
    )
    output_dir: Path = Field(
        default_factory=lambda: Path.cwd() / "reports",
        description="Output directory for exported reports.",
    )
    log_dir: Path | None = Field(default=None, description="Log directory.")
    case_file: Path | None = Field(default=None, description="Case store file.")

    @field_validator("data_dir", "output_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        """Expand ~ and resolve path."""
        if isinstance(v, (str, Path)):
            return Path(v).expanduser().resolve()
        return v

    @model_validator(mode="after")
    def resolve_defaults(self) -> "PathsConfig":
        """Resolve None defaults relative to data_dir."""
        if self.log_dir is None:
            object.__setattr__(self, "log_dir", self.data_dir / "logs")
        else:
            object.__setattr__(self, "log_dir", Path(self.log_dir).expanduser().resolve())

        if self.case_file is None:
            object.__setattr__(self, "case_file", self.data_dir / "case.json")
        else:
            object.__setattr__(self, "case_file", Path(self.case_file).expanduser().resolve())

        return self

    def ensure_dirs_exist(self) -> None:
        """Create all configured directories if they don't exist."""
        for directory in [self.data_dir, self.output_dir, self.log_dir]:
            if directory is not None:
                directory.mkdir(parents=True, exist_ok=True)


class ReportConfig(BaseModel):
    """Configuration for evidence report export.

    Attributes:
        brand: Product name printed on the report.
        default_assessment: Assessment used when the user supplies none.
        open_after_export: Open the exported file in a browser for printing.
    """

    brand: str = Field(default="TruthSeeker", description="Product name on reports.")
    default_assessment: str = Field(
        default=DEFAULT_ASSESSMENT, description="Fallback overall assessment text."
    )
    open_after_export: bool = Field(
        default=False, description="Open exported report in the browser."
    )


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Configuration priority (highest wins):
    1. Environment variables (TRUTHSEEKER_*)
    2. Config file (YAML)
    3. In-code defaults

    Example:
        >>> import os
        >>> os.environ["TRUTHSEEKER_AI__FLASH_MODEL"] = "gemini-2.5-flash"
        >>> AppConfig().ai.flash_model
        'gemini-2.5-flash'
    """

    ai: AIConfig = Field(default_factory=AIConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    debug: bool = Field(default=False, description="Enable debug mode.")
    verbose: bool = Field(default=False, description="Enable verbose output.")

    model_config = {
        "env_prefix": "TRUTHSEEKER_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Let TRUTHSEEKER_* variables override values loaded from YAML."""
        return env_settings, init_settings, dotenv_settings, file_secret_settings


# =============================================================================
# API Key Management
# =============================================================================


class APIKeyManager:
    """Resolve the Gemini API key from the environment or the system keyring.

    Sources tried in order:
    1. Environment variable GEMINI_API_KEY
    2. Environment variable API_KEY
    3. System keyring

    Keys are wrapped in SecretStr to prevent accidental logging.

    Security Rules:
    - NEVER log the actual key value
    - NEVER include key in exception messages
    """

    KEYRING_SERVICE = "truthseeker"
    KEYRING_USERNAME = "gemini"
    ENV_VAR_NAMES = ("GEMINI_API_KEY", "API_KEY")

    def __init__(self) -> None:
        self._cached_key: SecretStr | None = None
        self._key_source: KeySource = KeySource.NONE

    def get_key(self) -> SecretStr | None:
        """Retrieve the API key, trying sources in priority order.

        Returns:
            SecretStr wrapper around the key, or None if not found.
        """
        if self._cached_key is not None:
            return self._cached_key

        key = self._read_from_environment()
        if key:
            self._cached_key = SecretStr(key)
            self._key_source = KeySource.ENVIRONMENT
            logger.debug("API key loaded from environment variable")
            return self._cached_key

        key = self._read_from_keyring()
        if key:
            self._cached_key = SecretStr(key)
            self._key_source = KeySource.KEYRING
            logger.debug("API key loaded from system keyring")
            return self._cached_key

        self._key_source = KeySource.NONE
        logger.debug("No API key found in any source")
        return None

    def get_key_source(self) -> KeySource:
        """Get the source where the key was found."""
        return self._key_source

    def store_key(self, key: str) -> None:
        """Store the API key in the system keyring.

        Raises:
            APIKeyError: If the key is empty or the keyring rejects it.
        """
        key = key.strip()
        if not key or any(c.isspace() for c in key):
            raise APIKeyError("API key must be a non-empty string without whitespace")

        try:
            keyring.set_password(self.KEYRING_SERVICE, self.KEYRING_USERNAME, key)
        except keyring.errors.KeyringError as e:
            raise APIKeyError(f"Keyring storage failed: {type(e).__name__}") from e

        self._cached_key = None
        logger.info("API key stored in system keyring")

    def delete_key(self) -> bool:
        """Remove the API key from the system keyring.

        Returns:
            True if a key was removed.
        """
        try:
            keyring.delete_password(self.KEYRING_SERVICE, self.KEYRING_USERNAME)
        except keyring.errors.PasswordDeleteError:
            return False
        except keyring.errors.KeyringError as e:
            logger.debug(f"Keyring delete failed: {type(e).__name__}")
            return False

        self._cached_key = None
        return True

    def _read_from_environment(self) -> str | None:
        for name in self.ENV_VAR_NAMES:
            key = os.environ.get(name)
            if key and key.strip():
                return key.strip()
        return None

    def _read_from_keyring(self) -> str | None:
        try:
            return keyring.get_password(self.KEYRING_SERVICE, self.KEYRING_USERNAME)
        except keyring.errors.KeyringError as e:
            # Headless systems often have no keyring backend
            logger.debug(f"Keyring access failed: {type(e).__name__}")
            return None


# =============================================================================
# Loading
# =============================================================================


def _find_config_file(path: Path | None) -> Path | None:
    search_paths = [
        path,
        Path("./truthseeker.yaml"),
        Path("./truthseeker.yml"),
        Path.home() / ".truthseeker" / "config.yaml",
    ]
    for search_path in search_paths:
        if search_path is not None and search_path.exists():
            return search_path
    return None


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    If no config file is found, uses defaults only (not an error).
    If the config file is malformed, logs a warning and uses defaults.

    Args:
        path: Optional path to config file. If None, searches default locations.

    Returns:
        Fully-populated AppConfig instance.

    Raises:
        ConfigFileError: If an explicitly requested file does not exist.
    """
    if path is not None and not Path(path).exists():
        raise ConfigFileError(f"Config file not found: {path}")

    config_data: dict[str, Any] = {}
    config_file = _find_config_file(Path(path) if path else None)

    if config_file is not None:
        try:
            loaded = yaml.safe_load(config_file.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                config_data = loaded
            elif loaded is not None:
                logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse config file {config_file}: {e}. Using defaults.")
        except OSError as e:
            logger.warning(
                f"Failed to read config file {config_file}: {type(e).__name__}. Using defaults."
            )

    try:
        return AppConfig(**{k: v for k, v in config_data.items() if v is not None})
    except ValueError as e:
        logger.warning(f"Error parsing config values: {e}. Using defaults.")
        return AppConfig()


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton."""
    return load_config()


def get_api_key() -> SecretStr:
    """Convenience function to get the Gemini API key.

    Returns:
        SecretStr wrapper around the API key.

    Raises:
        APIKeyNotFoundError: If no API key is configured in any source.
    """
    key = APIKeyManager().get_key()
    if key is None:
        raise APIKeyNotFoundError(
            "No API key found. Set GEMINI_API_KEY or run 'truthseeker config set-key'."
        )
    return key


def reset_config() -> None:
    """Clear the configuration cache (used by tests and the --config flag)."""
    get_config.cache_clear()
