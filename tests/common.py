from collections.abc import Callable
from http import HTTPStatus
from typing import Any

import httpx

from publicip.config import ProviderConfig
from publicip.rate_limiter import TokenBucket

_UNSET = object()


class MockResponse:
    def __init__(self, status_code: int, payload: Any = _UNSET, text: str = "") -> None:
        self.status_code = status_code
        self._payload = {} if payload is _UNSET else payload
        self.text = text
        try:
            self.reason_phrase = HTTPStatus(status_code).phrase
        except ValueError:
            self.reason_phrase = ""

    def json(self) -> Any:
        return self._payload


class MockAsyncClient:
    """Minimal async context-manager mock for httpx.AsyncClient.

    Records the constructor keyword arguments and every GET so tests can assert
    on the transport, URL and headers that were used.
    """

    def __init__(self, response: MockResponse, **kwargs: Any) -> None:
        self._response = response
        self.init_kwargs = kwargs
        self.requests: list[tuple[str, dict[str, str]]] = []

    async def __aenter__(self) -> "MockAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, headers: dict[str, str] | None = None) -> MockResponse:
        self.requests.append((url, dict(headers or {})))
        return self._response


class FailingAsyncClient:
    """Async client whose GET raises the given httpx error to simulate network failures."""

    def __init__(self, url: str, error_cls: type[httpx.RequestError] = httpx.ConnectError, **kwargs: Any) -> None:
        self._url = url
        self._error_cls = error_cls

    async def __aenter__(self) -> "FailingAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, headers: dict[str, str] | None = None) -> MockResponse:
        request = httpx.Request("GET", self._url)
        raise self._error_cls("Network failure", request=request)


def make_fake_async_client(response: MockResponse, created: list[MockAsyncClient] | None = None) -> Callable[..., MockAsyncClient]:
    """Factory for a fake httpx.AsyncClient returning a fixed response.

    Every created client is appended to `created` when given.
    """

    def _fake_client(*args: Any, **kwargs: Any) -> MockAsyncClient:
        client = MockAsyncClient(response, **kwargs)
        if created is not None:
            created.append(client)
        return client

    return _fake_client


def make_config(
    base_url: str = "https://ifconfig.co/",
    timeout: float = 5.0,
    rate_limiter: TokenBucket | None = None,
    version: str = "test",
) -> ProviderConfig:
    """ProviderConfig with an unlimited rate limiter unless one is given."""
    return ProviderConfig(
        base_url=httpx.URL(base_url),
        timeout=timeout,
        rate_limiter=rate_limiter or TokenBucket(refill_interval=0, burst=1),
        user_agent=f"publicip ({version})",
        version=version,
    )
