from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class UserAgentInfo(BaseModel):
    """How the IP information provider understood our User-Agent header."""

    product: str | None = None
    version: str | None = None
    comment: str | None = None
    raw_value: str | None = None


class IPInfoResponse(BaseModel):
    """Response body of an ifconfig.co-compatible `/json` endpoint.

    Every field is optional; which of them are filled in depends on the
    provider and its geolocation database. Only `ip`, `asn` and `asn_org` are
    used for the lookup result.
    """

    model_config = ConfigDict(extra="ignore")

    ip: str = ""
    ip_decimal: int | None = None
    country: str | None = None
    country_iso: str | None = None
    country_eu: bool | None = None
    region_name: str | None = None
    region_code: str | None = None
    zip_code: str | None = None
    city: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    time_zone: str | None = None
    asn: str = ""
    asn_org: str = ""
    user_agent: UserAgentInfo | None = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_lat_lon(cls, value: Any) -> float | None:
        """Allow latitude/longitude to be provided as strings, numbers, or null."""
        if value is None:
            return None
        try:
            return round(float(value), 6)
        except (TypeError, ValueError):
            return None

    @field_validator("ip", "asn", "asn_org", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value
