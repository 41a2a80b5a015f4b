"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from urllib.parse import urlparse

from pathvalidate import ValidationError as PathValidationError
from pathvalidate import validate_filepath
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CLEANUP_DELAY = 2.0
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_REQUEST_TIMEOUT = 30.0


def _check_http_url(value: str, field_name: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"{field_name} must be an absolute http(s) URL, got: {value!r}")
    return value


class RefreshConfig(BaseModel):
    """A validated configuration model for the refresh coordinator."""

    # Source & destination
    download_url: str
    asset_path: str
    preload_path: str | None = None

    # Network
    probe_url: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_attempts: int = 3

    # Housekeeping
    cleanup_delay: float = DEFAULT_CLEANUP_DELAY
    log_dir: str | None = None

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("download_url")
    @classmethod
    def validate_download_url(cls, v: str) -> str:
        """Only plain HTTP(S) sources support conditional revalidation."""
        return _check_http_url(v, "download_url")

    @field_validator("probe_url")
    @classmethod
    def validate_probe_url(cls, v: str | None) -> str | None:
        if not v:
            return None
        return _check_http_url(v, "probe_url")

    @field_validator("asset_path", "preload_path")
    @classmethod
    def validate_paths(cls, v: str | None) -> str | None:
        """Rejects empty or platform-invalid file paths."""
        if v is None:
            return None
        if not v:
            raise ValueError("Path cannot be empty.")
        try:
            validate_filepath(v, platform="auto")
        except PathValidationError as e:
            raise ValueError(f"Invalid file path {v!r}: {e}") from e
        return v

    @field_validator("cleanup_delay")
    @classmethod
    def validate_cleanup_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Cleanup delay cannot be negative.")
        return v

    @field_validator("poll_interval", "request_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Intervals and timeouts must be greater than zero.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        """Ensures a reasonable number of transfer attempts."""
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @model_validator(mode="after")
    def validate_path_conflicts(self) -> "RefreshConfig":
        """The preload copy is read-only, so it cannot double as the target."""
        if self.preload_path and self.preload_path == self.asset_path:
            raise ValueError("preload_path must differ from asset_path.")
        return self

    @property
    def effective_probe_url(self) -> str:
        """The URL used for connectivity probes."""
        return self.probe_url or self.download_url

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
