# app/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import ssl
import time
from dataclasses import dataclass, field
from typing import Any

import certifi
import httpx

from ...config import settings


@dataclass
class _CircuitState:
    fails: int = 0
    opened_at: float | None = None


@dataclass
class ResilientHttp:
    """
    Retry + tiny circuit breaker around one httpx.AsyncClient.

    One instance per workflow run: breaker state and the client never cross runs.
    """

    timeout_s: float = settings.HTTP_TIMEOUT_S
    max_retries: int = settings.HTTP_MAX_RETRIES
    backoff_base_s: float = settings.HTTP_BACKOFF_BASE_S
    circuit_fail_threshold: int = settings.HTTP_CIRCUIT_FAIL_THRESHOLD
    circuit_reset_s: float = settings.HTTP_CIRCUIT_RESET_S
    verify_ssl: bool = settings.FETCH_VERIFY_SSL
    transport: httpx.AsyncBaseTransport | None = None

    _circuit: _CircuitState = field(default_factory=_CircuitState, init=False, repr=False)
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_settings(cls) -> "ResilientHttp":
        return cls()

    async def __aenter__(self) -> "ResilientHttp":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _http_verify(self) -> bool | ssl.SSLContext:
        if not self.verify_ssl:
            return False
        return ssl.create_default_context(cafile=certifi.where())

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(float(self.timeout_s)),
                follow_redirects=True,
                verify=self._http_verify(),
                transport=self.transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _circuit_is_open(self, now: float) -> bool:
        if self._circuit.opened_at is None:
            return False
        return (now - self._circuit.opened_at) < float(self.circuit_reset_s)

    def _circuit_on_success(self) -> None:
        self._circuit.fails = 0
        self._circuit.opened_at = None

    def _circuit_on_failure(self) -> None:
        self._circuit.fails += 1
        if self._circuit.fails >= int(self.circuit_fail_threshold):
            self._circuit.opened_at = time.time()

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        max_bytes: int | None = None,
    ) -> tuple[httpx.Response, bytes]:
        """
        Returns (response, body). The body is read in chunks and cut at max_bytes.
        Raises httpx errors once retries are spent; callers decide how to degrade.
        """
        if self._circuit_is_open(time.time()):
            raise httpx.HTTPError(f"circuit_open: refusing external call to {url}")

        client = self._get_client()
        last_exc: Exception | None = None
        for attempt in range(int(self.max_retries) + 1):
            try:
                async with client.stream(method, url, headers=headers, params=params) as resp:
                    if resp.status_code in (429, 500, 502, 503, 504):
                        raise httpx.HTTPStatusError("retryable_status", request=resp.request, response=resp)
                    resp.raise_for_status()
                    body = await _read_capped(resp, max_bytes)

                self._circuit_on_success()
                return resp, body
            except (httpx.TransportError, httpx.HTTPStatusError) as e:
                last_exc = e
                self._circuit_on_failure()
                # 4xx other than 429 will not get better on retry
                if isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500 and e.response.status_code != 429:
                    break
                if attempt >= int(self.max_retries):
                    break
                await asyncio.sleep(min(5.0, float(self.backoff_base_s) * (2**attempt)))

        assert last_exc is not None
        raise last_exc


async def _read_capped(resp: httpx.Response, max_bytes: int | None) -> bytes:
    if max_bytes is None:
        return await resp.aread()
    chunks: list[bytes] = []
    total = 0
    async for chunk in resp.aiter_bytes():
        room = max_bytes - total
        if room <= 0:
            break
        chunks.append(chunk[:room])
        total += min(len(chunk), room)
    return b"".join(chunks)
