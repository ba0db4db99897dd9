import asyncio
import time
from http import HTTPStatus
from typing import Any

import httpx
from pydantic import ValidationError

from publicip.address import classify, parse_address
from publicip.config import ProviderConfig
from publicip.errors import (
    AddressParseError,
    DecodeError,
    RequestTimeoutError,
    ResponseIPError,
    TransportError,
    UpstreamStatusError,
)
from publicip.logger import get_logger
from publicip.models.common import IPInfoResponse
from publicip.models.request_models import LookupRequest
from publicip.models.response_models import LookupResult
from publicip.network import NetworkConstraint, build_timeout

logger = get_logger(__name__)


class IfconfigClient:
    """Client for ifconfig.co-compatible IP information providers.

    Every lookup is a single best-effort attempt: one rate limiter slot, one
    `GET <provider_url>/json`, no retries. Each failure is raised as a distinct
    PublicIpLookupError subclass and only affects the lookup it happened in.
    """

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config

    @property
    def config(self) -> ProviderConfig:
        return self._config

    async def lookup(self, request: LookupRequest | None = None) -> LookupResult:
        """Look up the public IP the request leaves this machine with."""
        request = request or LookupRequest()
        ip_version = request.ip_version.value if request.ip_version else None
        deadline = time.monotonic() + self._config.timeout

        constraint = NetworkConstraint.from_request(ip_version, request.source_ip)

        url = str(self._config.lookup_url)
        logger.info(
            f"Preparing public IP lookup url={url} ip_version={ip_version} "
            f"source_ip={request.source_ip} network={constraint.family}"
        )

        rate_limiter = self._config.rate_limiter
        if not rate_limiter.can_acquire():
            logger.info("The rate limit may be triggered, waiting for a slot")
        await rate_limiter.acquire(timeout=self._remaining(deadline))

        response = await self._send(url, constraint, deadline)
        self._handle_http_errors(response)

        data = self._parse_json(response)
        logger.debug(f"Decoded provider response payload={data}")

        result = self._normalize_payload(data, ip_version, request.source_ip)
        logger.info(f"Public IP lookup done id={result.id} ip={result.ip} ip_version={result.ip_version}")
        return result

    @staticmethod
    def _remaining(deadline: float) -> float:
        return max(0.0, deadline - time.monotonic())

    async def _send(self, url: str, constraint: NetworkConstraint, deadline: float) -> httpx.Response:
        """Send the request over the constrained transport, bounded by the lookup deadline."""
        headers = {"User-Agent": self._config.user_agent}
        try:
            async with httpx.AsyncClient(
                transport=constraint.transport(),
                timeout=build_timeout(self._config.timeout),
            ) as client:
                return await asyncio.wait_for(client.get(url, headers=headers), timeout=self._remaining(deadline))
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.error(f"Request to IP information provider timed out url={url} error={exc!r}")
            raise RequestTimeoutError(
                f"The IP information provider '{url}' did not respond within {self._config.timeout}s"
            ) from exc
        except httpx.RequestError as exc:
            logger.exception(f"Request to IP information provider failed url={url} error={exc!r}")
            raise TransportError(f"There was an error when contacting '{url}': {exc!r}") from exc

    @staticmethod
    def _handle_http_errors(response: httpx.Response) -> None:
        """Anything but HTTP 200 is an upstream failure; it is never retried."""
        if response.status_code == HTTPStatus.OK:
            return

        status = f"{response.status_code} {response.reason_phrase}".strip()
        logger.error(f"IP information provider returned an error status_code={response.status_code} status={status}")
        raise UpstreamStatusError(response.status_code, status)

    @staticmethod
    def _parse_json(response: httpx.Response) -> IPInfoResponse:
        try:
            payload: Any = response.json()
        except ValueError as exc:
            logger.error(f"Failed to decode provider response as JSON error={exc}")
            raise DecodeError(f"Failed to decode IP information provider response as JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise DecodeError(f"Expected a JSON object from the IP information provider, got {type(payload).__name__}")

        try:
            return IPInfoResponse.model_validate(payload)
        except ValidationError as exc:
            logger.error(f"Unexpected provider response shape errors={exc.errors()}")
            raise DecodeError(f"Unexpected response from the IP information provider: {exc}") from exc

    @staticmethod
    def _normalize_payload(data: IPInfoResponse, ip_version: str | None, source_ip: str | None) -> LookupResult:
        """Map the provider response into a LookupResult.

        `ip_version` echoes the requested version if there was one, while
        `is_ipv4`/`is_ipv6` always reflect the address actually returned.
        """
        try:
            address = parse_address(data.ip)
        except AddressParseError as exc:
            logger.error(f"IP information provider returned an invalid IP ip={data.ip!r}")
            raise ResponseIPError(f"The IP information provider returned an invalid IP '{data.ip}'") from exc

        family = classify(address)
        return LookupResult(
            id=f"{ip_version or ''}|{data.ip}|{source_ip or ''}",
            ip=str(address),
            ip_version=ip_version or family,
            is_ipv4=address.version == 4,
            is_ipv6=address.version == 6,
            asn_id=data.asn,
            asn_org=data.asn_org,
        )
