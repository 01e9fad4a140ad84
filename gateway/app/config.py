"""
Configuration module for the static site gateway.

This module uses Pydantic Settings to load and validate the gateway
configuration: the served site tree, the identity provider, the OAuth
client credentials, and the session cookie policy.

Values are read from the environment (or a .env file) and may be overlaid
by a JSON config file. The resulting Settings object is frozen: it is built
once at startup and passed to the components that need it.
"""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import DirectoryPath, Field, HttpUrl, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CONFIG_FILE = "config.json"
CONFIG_FILE_ENV = "GATEWAY_CONFIG_FILE"

# Key names used by older config.json files
_LEGACY_KEYS = {
    "QUARTZ_DIR": "SITE_ROOT",
    "CASDOOR_ADDR": "PROVIDER_URL",
    "REDIRECT_PATH": "REDIRECT_URI",
}


class ConfigurationError(Exception):
    """Raised when the configuration is missing or invalid. Fatal at startup."""
    pass


class Settings(BaseSettings):
    """
    Gateway settings loaded from environment variables and config files.

    Instances are immutable; build a new one instead of mutating.
    """

    # =========================================================================
    # Server
    # =========================================================================

    GATEWAY_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the gateway server",
    )

    GATEWAY_PORT: int = Field(
        default=8080,
        description="Port to bind the gateway server",
        ge=1,
        le=65535,
    )

    BASE_URL: HttpUrl = Field(
        ...,
        description="Public base URL of the gateway (e.g., https://notes.example.com)",
    )

    # =========================================================================
    # Served site tree
    # =========================================================================

    SITE_ROOT: DirectoryPath = Field(
        ...,
        description="Directory holding the prebuilt static site",
    )

    PUBLIC_PATHS: str = Field(
        default="/favicon.ico",
        description="Comma-separated paths served without authentication",
    )

    NOT_FOUND_PAGE: Optional[str] = Field(
        default="404.html",
        description="Page (relative to SITE_ROOT) served when a page is missing",
    )

    STATIC_MAX_AGE_SECONDS: int = Field(
        default=31536000,
        description="Cache lifetime for non-HTML assets",
        ge=0,
    )

    # =========================================================================
    # Identity provider / OAuth client
    # =========================================================================

    PROVIDER_URL: HttpUrl = Field(
        ...,
        description="Identity provider base URL (e.g., https://door.example.com)",
    )

    CLIENT_ID: str = Field(..., min_length=1, description="OAuth client ID")

    CLIENT_SECRET: str = Field(..., min_length=1, description="OAuth client secret")

    APP_NAME: str = Field(
        ...,
        min_length=1,
        description="Application name, sent as the OAuth state parameter",
    )

    CALLBACK_PATH: str = Field(default="/callback")

    LOGOUT_PATH: str = Field(default="/logout")

    HEALTH_PATH: str = Field(default="/healthz")

    REDIRECT_URI: Optional[str] = Field(
        default=None,
        description="OAuth redirect URI; defaults to BASE_URL + CALLBACK_PATH",
    )

    TOKEN_EXCHANGE_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        description="Timeout for the code-for-token exchange",
        gt=0,
        le=60,
    )

    PLACEHOLDER_IDENTITY: str = Field(
        default="Guest",
        min_length=1,
        description="Display name used when the credential carries no name",
    )

    DEGRADE_ON_EXCHANGE_FAILURE: bool = Field(
        default=False,
        description="Issue a placeholder session when the token exchange fails",
    )

    # =========================================================================
    # Session cookies
    # =========================================================================

    SESSION_SECRET: str = Field(
        ...,
        description="Secret key for signing session markers",
        min_length=32,
    )

    SESSION_ALGORITHM: str = Field(default="HS256")

    SESSION_MAX_AGE_SECONDS: int = Field(
        default=3600 * 24 * 7,
        description="Session lifetime in seconds",
        ge=60,
    )

    SESSION_COOKIE_NAME: str = Field(default="site_session", min_length=1)

    IDENTITY_COOKIE_NAME: str = Field(default="site_username", min_length=1)

    SESSION_COOKIE_SECURE: bool = Field(
        default=False,
        description="Mark cookies Secure (enable behind HTTPS)",
    )

    # =========================================================================
    # Logging
    # =========================================================================

    LOG_LEVEL: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def public_paths_list(self) -> List[str]:
        """Paths served without authentication, as a list."""
        return [p.strip() for p in self.PUBLIC_PATHS.split(",") if p.strip()]

    @property
    def base_url_str(self) -> str:
        """Base URL as string without trailing slash."""
        return str(self.BASE_URL).rstrip("/")

    @property
    def provider_url_str(self) -> str:
        """Provider URL as string without trailing slash."""
        return str(self.PROVIDER_URL).rstrip("/")

    @property
    def redirect_uri(self) -> str:
        """
        OAuth redirect URI sent to the provider.

        A relative REDIRECT_URI is joined onto BASE_URL.
        """
        if not self.REDIRECT_URI:
            return self.base_url_str + self.CALLBACK_PATH
        if self.REDIRECT_URI.startswith("/"):
            return self.base_url_str + self.REDIRECT_URI
        return self.REDIRECT_URI

    @property
    def site_root(self) -> Path:
        """Absolute, symlink-resolved site root."""
        return Path(self.SITE_ROOT).resolve()

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("CALLBACK_PATH", "LOGOUT_PATH", "HEALTH_PATH")
    @classmethod
    def validate_endpoint_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"Endpoint path must start with '/', got: {v!r}")
        return v

    @field_validator("PUBLIC_PATHS", mode="before")
    @classmethod
    def join_public_paths(cls, v: Any) -> Any:
        # config files may give a JSON list
        if isinstance(v, (list, tuple)):
            return ",".join(str(p) for p in v)
        return v

    @field_validator("PUBLIC_PATHS")
    @classmethod
    def validate_public_paths(cls, v: str) -> str:
        for path in (p.strip() for p in v.split(",")):
            if path and not path.startswith("/"):
                raise ValueError(f"Public path must start with '/', got: {path!r}")
        return v

    @field_validator("SESSION_ALGORITHM")
    @classmethod
    def validate_session_algorithm(cls, v: str) -> str:
        """
        Validate the session algorithm is one of the supported HMAC algorithms.

        Raises:
            ValueError: If algorithm is not supported
        """
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"Session algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_consistency(self) -> "Settings":
        """
        Reject combinations that would break the login flow.

        Raises:
            ValueError: If cookie names clash, control paths overlap each
                other or the public allow-list, or Secure cookies are
                requested on a plain-http BASE_URL
        """
        if self.SESSION_COOKIE_NAME == self.IDENTITY_COOKIE_NAME:
            raise ValueError(
                "SESSION_COOKIE_NAME and IDENTITY_COOKIE_NAME must differ, "
                f"both are {self.SESSION_COOKIE_NAME!r}"
            )

        control_paths = [self.CALLBACK_PATH, self.LOGOUT_PATH, self.HEALTH_PATH]
        if len(set(control_paths)) != len(control_paths):
            raise ValueError(
                "CALLBACK_PATH, LOGOUT_PATH and HEALTH_PATH must be distinct, "
                f"got {control_paths}"
            )

        # the allow-list is checked first and would hide the endpoint
        shadowed = sorted(set(control_paths) & set(self.public_paths_list))
        if shadowed:
            raise ValueError(f"PUBLIC_PATHS must not contain control paths: {shadowed}")

        if self.SESSION_COOKIE_SECURE and self.BASE_URL.scheme != "https":
            raise ValueError(
                "SESSION_COOKIE_SECURE requires an https BASE_URL; browsers "
                "drop Secure cookies set over plain http"
            )

        return self


# =============================================================================
# Loading
# =============================================================================

def _normalize_file_values(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map JSON config keys onto Settings field names.

    Keys are matched case-insensitively, legacy key names are renamed, and
    a combined ``listen_addr`` ("host:port") is split into host and port.
    """
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        name = _LEGACY_KEYS.get(key.upper(), key.upper())
        if name == "LISTEN_ADDR":
            host, _, port = str(value).rpartition(":")
            values["GATEWAY_HOST"] = host or "0.0.0.0"
            values["GATEWAY_PORT"] = port
            continue
        values[name] = value
    return values


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config file {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    return _normalize_file_values(raw)


def load_settings(config_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Build the Settings for this process.

    Resolution order for the config file: the ``config_file`` argument, then
    the GATEWAY_CONFIG_FILE environment variable (both must exist), then
    ``./config.json`` if present. Values from the file take precedence over
    the environment.

    Raises:
        ConfigurationError: If the file is unreadable or validation fails.
    """
    explicit = config_file or os.environ.get(CONFIG_FILE_ENV)
    file_values: Dict[str, Any] = {}

    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigurationError(f"Config file not found: {path}")
        file_values = _read_config_file(path)
    elif Path(DEFAULT_CONFIG_FILE).is_file():
        file_values = _read_config_file(Path(DEFAULT_CONFIG_FILE))

    try:
        return Settings(**file_values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


@lru_cache()
def get_settings() -> Settings:
    """
    Get or create the process-wide Settings instance.

    Cached so settings are loaded only once during the application lifecycle.

    Raises:
        ConfigurationError: If required values are missing or invalid.
    """
    return load_settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Check loaded settings for risky but workable choices and return a report.

    Called during application startup. Fatal problems never reach this
    point: Settings validation rejects them and loading fails.

    Returns:
        Dictionary with warnings and the effective site root.
    """
    warnings = []

    if settings.BASE_URL.scheme == "https" and not settings.SESSION_COOKIE_SECURE:
        warnings.append("BASE_URL is https but SESSION_COOKIE_SECURE is off")

    if settings.NOT_FOUND_PAGE and not (settings.site_root / settings.NOT_FOUND_PAGE).is_file():
        warnings.append(f"NOT_FOUND_PAGE {settings.NOT_FOUND_PAGE!r} does not exist in SITE_ROOT")

    if not (settings.site_root / "index.html").is_file():
        warnings.append("SITE_ROOT has no index.html")

    if settings.DEGRADE_ON_EXCHANGE_FAILURE:
        warnings.append("DEGRADE_ON_EXCHANGE_FAILURE is on: provider outages still grant sessions")

    return {
        "warnings": warnings,
        "site_root": str(settings.site_root),
        "session_max_age_seconds": settings.SESSION_MAX_AGE_SECONDS,
    }
