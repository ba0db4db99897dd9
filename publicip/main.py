from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from publicip.clients.ifconfig_client import IfconfigClient
from publicip.config import ProviderConfig, ProviderSettings, get_version
from publicip.errors import (
    DecodeError,
    InvalidInputError,
    PublicIpLookupError,
    RateLimitTimeoutError,
    RequestTimeoutError,
    ResponseIPError,
    TransportError,
    UpstreamStatusError,
)
from publicip.exception_handlers import (
    pydantic_validation_exception_handler,
    unhandled_exception_handler,
)
from publicip.logger import get_logger
from publicip.models.request_models import LookupRequest
from publicip.models.response_models import HealthResponse, LookupResult

logger = get_logger(__name__)

# Checked in order, so subclasses have to come before their base classes.
ERROR_RESPONSES: list[tuple[type[PublicIpLookupError], int, str]] = [
    (InvalidInputError, status.HTTP_400_BAD_REQUEST, "invalid_input"),
    (RateLimitTimeoutError, status.HTTP_429_TOO_MANY_REQUESTS, "rate_limited"),
    (RequestTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT, "upstream_timeout"),
    (TransportError, status.HTTP_502_BAD_GATEWAY, "transport_error"),
    (UpstreamStatusError, status.HTTP_502_BAD_GATEWAY, "upstream_status"),
    (DecodeError, status.HTTP_502_BAD_GATEWAY, "decode_error"),
    (ResponseIPError, status.HTTP_502_BAD_GATEWAY, "invalid_response_ip"),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the provider configuration once; a ConfigurationError aborts start-up."""
    config = ProviderConfig.from_settings(ProviderSettings.from_env())
    app.state.provider_config = config
    logger.info(
        "Configured IP information provider "
        f"provider_url={config.base_url} timeout={config.timeout}s "
        f"rate_limit_rate={config.rate_limiter.refill_interval}s rate_limit_burst={config.rate_limiter.burst}"
    )
    yield


app = FastAPI(
    title="Public IP Service",
    version=get_version(),
    description="Reports the public IP address, IP version and ASN this machine uses on the way out.",
    lifespan=lifespan,
)
logger.info("Started Public IP Service")


def get_provider_config(request: Request) -> ProviderConfig:
    """Dependency to provide the provider configuration built at start-up."""
    return request.app.state.provider_config


def get_lookup_client(
    config: Annotated[ProviderConfig, Depends(get_provider_config)],
) -> IfconfigClient:
    """Dependency to provide an IfconfigClient bound to the provider configuration."""
    return IfconfigClient(config)


app.add_exception_handler(ValidationError, pydantic_validation_exception_handler)
app.add_exception_handler(RequestValidationError, pydantic_validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


def _error_detail(exc: PublicIpLookupError) -> tuple[int, dict]:
    for error_cls, status_code, code in ERROR_RESPONSES:
        if isinstance(exc, error_cls):
            detail = {"code": code, "message": str(exc)}
            if isinstance(exc, UpstreamStatusError):
                detail["upstream_status_code"] = exc.status_code
            return status_code, detail
    return status.HTTP_500_INTERNAL_SERVER_ERROR, {"code": "internal_error", "message": str(exc)}


@app.get(
    "/health",
    tags=["health"],
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="ok")


@app.get(
    "/v1/public-ip",
    response_model=LookupResult,
    status_code=status.HTTP_200_OK,
    tags=["ip"],
    summary="Look up the public IP address of this machine.",
)
async def public_ip(
    request: Request,
    query: Annotated[LookupRequest, Depends()],
    client: Annotated[IfconfigClient, Depends(get_lookup_client)],
) -> LookupResult:
    """Look up the public IP address this machine uses on the way out.

    - If `query.ip_version` is provided, the provider is only contacted over that family.
    - If `query.source_ip` is provided, the request is sent from that local address.
    """
    try:
        return await client.lookup(query)
    except PublicIpLookupError as exc:
        status_code, detail = _error_detail(exc)
        logger.error(
            f"Public IP lookup failed path={request.url.path} method={request.method} "
            f"ip_version={query.ip_version} source_ip={query.source_ip} code={detail['code']} error={exc}"
        )
        raise HTTPException(status_code=status_code, detail=detail) from exc
