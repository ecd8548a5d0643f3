"""Shared asynchronous HTTP client used by repositories and the download manager.

Wraps a single ``aiohttp.ClientSession`` with consistent timeout, retry and
DEBUG tracing so callers only deal with status codes and bodies. A request
that hits a connection reset or timeout is retried until ``retry_max``
attempts are spent, then ``TransportError`` is raised. Any other
``aiohttp.ClientError`` becomes ``TransportError`` without a retry.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

import aiohttp

from ..config import ResolverConfig
from ..errors import TransportError
from .logging_utils import Timer, extra_context, is_debug_enabled, safe_url

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_ERRORS = (aiohttp.ClientConnectionError, ConnectionResetError, asyncio.TimeoutError)


class HttpClient:
    """Thin aiohttp wrapper with per-request connect/read timeouts."""

    def __init__(self, config: Optional[ResolverConfig] = None):
        """Initialize the client; the session is created lazily.

        Args:
            config: Timeouts, retry budget, connection limit and user agent.
        """
        self._config = config or ResolverConfig()
        self._timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=self._config.connect_timeout,
            sock_read=self._config.read_timeout,
        )
        self._headers = {"User-Agent": self._config.user_agent, "Accept": "*/*"}
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def retry_max(self) -> int:
        return self._config.retry_max

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=self._config.max_concurrency)
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                connector=connector,
                headers=self._headers,
            )

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "HttpClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def head(self, url: str, *, context: str) -> int:
        """Send a HEAD request and return the status code."""
        async def _handle(response: Any) -> int:
            return response.status

        return await self._request("HEAD", url, context, _handle)

    async def get(self, url: str, *, context: str) -> Tuple[int, bytes]:
        """GET ``url`` and return ``(status, body)``; the body is empty unless 200."""
        async def _handle(response: Any) -> Tuple[int, bytes]:
            if response.status != 200:
                return response.status, b""
            return response.status, await response.read()

        return await self._request("GET", url, context, _handle)

    async def download(self, url: str, destination: str, *, context: str, chunk_size: int = 64 * 1024) -> int:
        """Stream ``url`` into ``destination``; returns the status code.

        The body is written to ``destination + '.part'`` and renamed once
        complete, so an interrupted transfer never leaves a file that looks
        finished. Nothing is written for non-200 responses.
        """
        partial = destination + ".part"

        async def _handle(response: Any) -> int:
            if response.status != 200:
                return response.status
            try:
                with open(partial, "wb") as fh:
                    async for chunk in response.content.iter_chunked(chunk_size):
                        fh.write(chunk)
            except BaseException:
                if os.path.exists(partial):
                    os.remove(partial)
                raise
            os.replace(partial, destination)
            return response.status

        return await self._request("GET", url, context, _handle)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        await self.start()
        if self._session is None:
            raise TransportError("HTTP session is not available")
        return self._session

    async def _request(
        self,
        method: str,
        url: str,
        context: str,
        handler: Callable[[Any], Awaitable[T]],
    ) -> T:
        session = await self._ensure_session()
        safe_target = safe_url(url)
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.retry_max + 1):
            with Timer() as timer:
                if is_debug_enabled(logger):
                    logger.debug("HTTP request", extra=extra_context(
                        event="http_request", component="http_client", action=method,
                        target=safe_target, attempt=attempt, context=context
                    ))
                try:
                    response = await session.request(method, url, allow_redirects=True)
                    try:
                        result = await handler(response)
                    finally:
                        response.release()
                except _TRANSIENT_ERRORS as exc:
                    last_error = exc
                    logger.debug(
                        "%s %s failed on attempt %d/%d: %r",
                        method, safe_target, attempt, self.retry_max, exc,
                    )
                    continue
                except aiohttp.ClientError as exc:
                    # Malformed responses, bad URLs and redirect loops are not retried
                    raise TransportError(
                        f"{context} {method} {safe_target} failed: {exc!r}", url=url
                    ) from exc

                if is_debug_enabled(logger):
                    logger.debug("HTTP response", extra=extra_context(
                        event="http_response", component="http_client", action=method,
                        outcome="success", status_code=response.status,
                        duration_ms=timer.duration_ms(), target=safe_target, context=context
                    ))
                return result

        raise TransportError(
            f"{context} {method} {safe_target} failed after {self.retry_max} attempts: {last_error!r}",
            url=url,
        )

