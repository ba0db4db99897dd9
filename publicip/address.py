from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Literal

from publicip.errors import AddressParseError

IPAddress = IPv4Address | IPv6Address
AddressFamily = Literal["v4", "v6", "unknown"]

IP_VERSION_4 = "v4"
IP_VERSION_6 = "v6"
IP_VERSION_UNKNOWN = "unknown"


def parse_address(literal: str) -> IPAddress:
    """Parse an IPv4 or IPv6 literal.

    Empty values mean "no address constraint" and must be handled by the
    caller; they are rejected here like any other invalid literal.
    """
    value = str(literal).strip()
    try:
        return ip_address(value)
    except ValueError as exc:
        raise AddressParseError(f"'{literal}' is not a valid IPv4 or IPv6 address") from exc


def classify(address: IPAddress | None) -> AddressFamily:
    """Return the family label of an address, "unknown" only for an unset address."""
    if address is None:
        return IP_VERSION_UNKNOWN
    if address.version == 4:
        return IP_VERSION_4
    return IP_VERSION_6
