import socket
from typing import Literal

import httpx

from publicip.address import IP_VERSION_4, IP_VERSION_6, IPAddress, classify, parse_address
from publicip.errors import AddressParseError, InvalidInputError
from publicip.logger import get_logger

logger = get_logger(__name__)

NetworkFamily = Literal["any", "v4", "v6"]

# Fixed dialer settings, independent of the per-request timeout.
CONNECT_TIMEOUT_SECONDS = 30.0
KEEPALIVE_SECONDS = 30

_WILDCARD_ADDRESSES = {
    IP_VERSION_4: "0.0.0.0",
    IP_VERSION_6: "::",
}


def _keepalive_socket_options() -> list[tuple[int, int, int]]:
    options = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    # TCP_KEEPIDLE/TCP_KEEPINTVL are not available on every platform.
    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, KEEPALIVE_SECONDS))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, KEEPALIVE_SECONDS))
    return options


class NetworkConstraint:
    """Address family and source address outbound connections must use.

    Binding the socket to an address makes the dialer resolve and connect over
    that address' family only, so forcing IPv4 or IPv6 without a source address
    binds the wildcard address of the family.
    """

    def __init__(self, family: NetworkFamily = "any", source: IPAddress | None = None) -> None:
        if family not in ("any", IP_VERSION_4, IP_VERSION_6):
            raise InvalidInputError(f"Unrecognized network family '{family}'")

        if source is not None and family != "any" and classify(source) != family:
            raise InvalidInputError(
                f"The source IP '{source}' is an IP{classify(source)} address, "
                f"but ip_version '{family}' was requested"
            )

        self.family = family
        self.source = source

    @classmethod
    def from_request(cls, ip_version: str | None, source_ip: str | None) -> "NetworkConstraint":
        """Resolve the effective constraint from the optional lookup inputs."""
        source = None
        if source_ip:
            try:
                source = parse_address(source_ip)
            except AddressParseError as exc:
                raise InvalidInputError(str(exc)) from exc

        if ip_version:
            family = ip_version
        elif source is not None:
            family = classify(source)
        else:
            family = "any"

        return cls(family=family, source=source)

    @property
    def local_address(self) -> str | None:
        if self.source is not None:
            return str(self.source)
        return _WILDCARD_ADDRESSES.get(self.family)

    def transport(self) -> httpx.AsyncHTTPTransport:
        """Build a transport whose connections are dialed under this constraint."""
        logger.debug(f"Dial constraint network={self.family} local_address={self.local_address}")
        return httpx.AsyncHTTPTransport(
            local_address=self.local_address,
            socket_options=_keepalive_socket_options(),
            limits=httpx.Limits(keepalive_expiry=KEEPALIVE_SECONDS),
        )

    def __repr__(self) -> str:
        return f"NetworkConstraint(family={self.family!r}, source={self.source!r})"


def build_timeout(request_timeout: float) -> httpx.Timeout:
    """Per-phase timeouts: fixed connect timeout, request timeout for everything else."""
    return httpx.Timeout(request_timeout, connect=CONNECT_TIMEOUT_SECONDS)
