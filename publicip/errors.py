class AppError(Exception):
    """Base application error for the public IP lookup service."""


class ConfigurationError(AppError):
    """Raised when the provider settings can't be turned into a usable configuration."""


class AddressParseError(ValueError):
    """Raised when a string is not a valid IPv4 or IPv6 literal."""


class PublicIpLookupError(AppError):
    """Base error for failures of a single public IP lookup."""


class InvalidInputError(PublicIpLookupError):
    """Raised when the requested source IP and IP version disagree on the address family."""


class RateLimitTimeoutError(PublicIpLookupError):
    """Raised when no rate limiter slot becomes available before the lookup deadline."""


class TransportError(PublicIpLookupError):
    """Raised when the request to the IP information provider fails on the network level."""


class RequestTimeoutError(TransportError):
    """Raised when the IP information provider does not answer before the lookup deadline."""


class UpstreamStatusError(PublicIpLookupError):
    """Raised when the IP information provider responds with anything but HTTP 200."""

    def __init__(self, status_code: int, status: str) -> None:
        self.status_code = status_code
        self.status = status
        super().__init__(f"IP information provider responded with the status code {status_code} '{status}'")


class DecodeError(PublicIpLookupError):
    """Raised when the provider response body can't be decoded."""


class ResponseIPError(PublicIpLookupError):
    """Raised when the provider returns something that is not an IP address."""
