"""
Base payment client implementing shared concerns: http, retry, logging, mapping.

Concrete providers subclass it and implement the provider protocol.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional
from contextlib import asynccontextmanager

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from core.settings import PaymentRetry, PaymentTimeouts
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        timeouts: Optional[PaymentTimeouts] = None,
        retry: Optional[PaymentRetry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or PaymentTimeouts()
        self._retry_cfg = retry or PaymentRetry()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._timeouts_cfg.total,
            connect=self._timeouts_cfg.connect,
            read=self._timeouts_cfg.read,
            write=self._timeouts_cfg.write,
        )

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = self._build_client()
        # kept open for reuse; aclose() releases it
        yield self._client

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _retry(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Retry transport failures. Only for idempotent reads."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg.max) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg.base_backoff, min=0.1, max=2.0),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError)),
            reraise=True,
        ):
            with attempt:
                return await fn()

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, "pending")

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
