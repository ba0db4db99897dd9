from enum import Enum

from pydantic import BaseModel, Field, field_validator

from publicip.address import parse_address
from publicip.errors import AddressParseError


class IPVersion(str, Enum):
    """Address family a lookup can be forced to use."""

    v4 = "v4"
    v6 = "v6"


class LookupRequest(BaseModel):
    """Request model for a public IP lookup via query parameters.

    Both fields are optional. If `ip_version` is given, the request to the IP
    information provider is only sent over that address family. If `source_ip`
    is given, the outbound connection is bound to that local address.

    Whether both agree on the address family is checked by the lookup itself,
    before any network I/O happens.
    """

    ip_version: IPVersion | None = Field(
        default=None,
        description="Whether to use IPv4 or IPv6 only. Valid values: 'v6', 'v4'.",
        examples=["v4", "v6"],
    )
    source_ip: str | None = Field(
        default=None,
        description="Local IPv4 or IPv6 address to send the request from.",
        examples=["192.0.2.10", "2001:db8::10"],
    )

    @field_validator("source_ip", mode="before")
    @classmethod
    def _validate_source_ip(cls, value: str | None) -> str | None:
        """Validate that source_ip is either empty/None or a valid IP address (IPv4 or IPv6).

        - None or blank string -> treated as None (no source address constraint).
        - Non-blank -> must be a valid IP literal, otherwise a validation error
          is raised and the endpoint handler is never invoked.
        """
        if value is None:
            return None

        value_str = str(value).strip()
        if not value_str:
            return None

        try:
            parse_address(value_str)
        except AddressParseError as exc:
            raise ValueError("source_ip must be a valid IPv4 or IPv6 address") from exc

        return value_str
