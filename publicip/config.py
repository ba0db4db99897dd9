import os
import posixpath
import re
from importlib.metadata import PackageNotFoundError, version
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from publicip.errors import ConfigurationError
from publicip.rate_limiter import TokenBucket

TOOL_NAME = "publicip"

DEFAULT_PROVIDER_URL = "https://ifconfig.co/"
DEFAULT_TIMEOUT = "5s"
DEFAULT_RATE_LIMIT_RATE = "500ms"
DEFAULT_RATE_LIMIT_BURST = 1

ENV_PREFIX = "PUBLICIP_"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5 micro sign
    "μs": 1e-6,  # U+03BC greek small letter mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION_RE = re.compile(rf"[-+]?(?:{_DURATION_PART})+")
_DURATION_PART_RE = re.compile(_DURATION_PART)


def get_version() -> str:
    """Version of the installed package, "dev" when running from a checkout."""
    try:
        return version(TOOL_NAME)
    except PackageNotFoundError:
        return "dev"


def parse_duration(text: str) -> float:
    """Parse a duration string such as "300ms", "1.5h" or "2h45m" into seconds.

    Valid units are "ns", "us" (or "µs"), "ms", "s", "m", "h". A bare "0" is
    accepted as well.
    """
    value = text.strip()
    if value in ("0", "+0", "-0"):
        return 0.0
    if not _DURATION_RE.fullmatch(value):
        raise ConfigurationError(f"Invalid duration '{text}'")

    seconds = sum(float(number) * _DURATION_UNITS[unit] for number, unit in _DURATION_PART_RE.findall(value))
    return -seconds if value.startswith("-") else seconds


class ProviderSettings(BaseModel):
    """Provider settings as supplied by the host. Absent values are None."""

    provider_url: str | None = Field(
        default=None,
        description=f"URL to an ifconfig.co-compatible IP information provider, defaults to `{DEFAULT_PROVIDER_URL}`.",
    )
    timeout: str | None = Field(
        default=None,
        description=f"Timeout of the request to the IP information provider. Defaults to `{DEFAULT_TIMEOUT}`.",
    )
    rate_limit_rate: str | None = Field(
        default=None,
        description=(
            "Limit the number of the request to the IP information provider. "
            f"Defines the time until the limit is reset. Defaults to `{DEFAULT_RATE_LIMIT_RATE}`."
        ),
    )
    rate_limit_burst: int | None = Field(
        default=None,
        description=(
            "Limit the number of the request to the IP information provider. "
            f"Defines the number of events per rate until the limit is reached. Defaults to `{DEFAULT_RATE_LIMIT_BURST}`."
        ),
    )

    @field_validator("provider_url", "timeout", "rate_limit_rate", "rate_limit_burst", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_env(cls) -> "ProviderSettings":
        """Read the settings from PUBLICIP_* environment variables."""
        values = {name: os.getenv(f"{ENV_PREFIX}{name.upper()}") for name in cls.model_fields}
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid provider settings in the environment: {exc}") from exc


class ProviderConfig(BaseModel):
    """Resolved provider configuration shared by every lookup."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    base_url: httpx.URL
    timeout: float
    rate_limiter: TokenBucket
    user_agent: str
    version: str

    @property
    def lookup_url(self) -> httpx.URL:
        """The `/json` endpoint below the base URL, query string kept.

        The joined path is cleaned, so `.`, `..` and repeated slashes are resolved.
        """
        path = posixpath.normpath(posixpath.join(self.base_url.path or "/", "json"))
        return self.base_url.copy_with(path="/" + path.lstrip("/"))

    @classmethod
    def from_settings(cls, settings: ProviderSettings, version: str | None = None) -> "ProviderConfig":
        version = version or get_version()
        return cls(
            base_url=_resolve_provider_url(settings.provider_url),
            timeout=_resolve_timeout(settings.timeout),
            rate_limiter=_resolve_rate_limiter(settings.rate_limit_rate, settings.rate_limit_burst),
            user_agent=f"{TOOL_NAME} ({version})",
            version=version,
        )


def _resolve_provider_url(value: str | None) -> httpx.URL:
    provider_url = DEFAULT_PROVIDER_URL if value is None else value
    try:
        url = httpx.URL(provider_url)
    except httpx.InvalidURL as exc:
        raise ConfigurationError(f"The provider_url value '{provider_url}' can't be parsed: {exc}") from exc

    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"The provider_url value '{provider_url}' must be an absolute http(s) URL")
    return url


def _resolve_timeout(value: str | None) -> float:
    """Parse the lookup timeout, which must be bigger than 0."""
    timeout = DEFAULT_TIMEOUT if value is None else value
    try:
        seconds = parse_duration(timeout)
    except ConfigurationError as exc:
        raise ConfigurationError(f"The timeout value '{timeout}' can't be parsed: {exc}") from exc

    if seconds <= 0:
        raise ConfigurationError(f"The timeout value '{timeout}' must be bigger than 0")
    return seconds


def _resolve_rate_limiter(rate: str | None, burst: int | None) -> TokenBucket:
    rate_limit_rate = DEFAULT_RATE_LIMIT_RATE if rate is None else rate
    try:
        interval = parse_duration(rate_limit_rate)
    except ConfigurationError as exc:
        raise ConfigurationError(f"The rate_limit_rate value '{rate_limit_rate}' can't be parsed: {exc}") from exc

    rate_limit_burst = DEFAULT_RATE_LIMIT_BURST if burst is None else burst
    return TokenBucket(refill_interval=interval, burst=rate_limit_burst)
