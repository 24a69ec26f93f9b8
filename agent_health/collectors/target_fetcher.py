"""Agent targets endpoint collector."""

import asyncio
import time
from typing import List, Optional, Sequence
import logging

import httpx
from pydantic import ValidationError

from ..config.models import FetchConfig
from ..utils.metrics import FetchResult, TargetStatusDocument
from .base import BaseCollector, DecodeError, FetchError, capture_fetch_errors


class TargetFetcher(BaseCollector):
    """Fetches and decodes each agent's /api/v1/targets payload."""

    def __init__(
        self,
        config: FetchConfig,
        logger: logging.Logger,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize target fetcher.

        Args:
            config: Fetch configuration (timeout, concurrency, path)
            logger: Logger instance
            client: Shared HTTP client; one is created and owned if omitted
        """
        super().__init__(config, logger)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds),
            limits=httpx.Limits(max_connections=config.max_concurrency)
        )

    async def fetch(self, address: str) -> TargetStatusDocument:
        """
        Fetch one agent's target status document.

        Args:
            address: Agent address as host:port

        Returns:
            TargetStatusDocument: Decoded payload

        Raises:
            FetchError: On timeout, transport error, non-2xx or error status
            DecodeError: If the body is not a valid targets payload
        """
        url = f"http://{address}{self.config.path}"

        # httpx timeouts are per phase; the whole request, body included, is bounded here
        try:
            response = await asyncio.wait_for(
                self.client.get(url, timeout=self.config.timeout_seconds),
                timeout=self.config.timeout_seconds
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise FetchError(
                address, f"timed out after {self.config.timeout_seconds}s"
            ) from e
        except httpx.RequestError as e:
            raise FetchError(address, f"request error: {e}") from e

        if not response.is_success:
            raise FetchError(address, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(address, f"malformed JSON: {e}") from e

        try:
            document = TargetStatusDocument.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(
                address, f"unexpected payload shape ({e.error_count()} errors)"
            ) from e

        if not document.is_success:
            raise FetchError(address, f"agent reported status {document.status!r}")

        return document

    @capture_fetch_errors
    async def fetch_result(self, address: str) -> FetchResult:
        """Fetch one agent and wrap the outcome; never raises for agent failures."""
        start_time = time.monotonic()
        document = await self.fetch(address)
        return FetchResult(
            address=address,
            document=document,
            duration_seconds=time.monotonic() - start_time
        )

    async def fetch_all(self, addresses: Sequence[str]) -> List[FetchResult]:
        """
        Fetch all agents with at most ``max_concurrency`` requests in flight.

        Args:
            addresses: Agent addresses to poll

        Returns:
            List[FetchResult]: One result per address, in input order
        """
        if not addresses:
            return []

        self.logger.info(
            f"Fetching targets from {len(addresses)} agents "
            f"(concurrency {self.config.max_concurrency})"
        )
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def bounded(address: str) -> FetchResult:
            async with semaphore:
                return await self.fetch_result(address)

        return list(await asyncio.gather(*(bounded(a) for a in addresses)))

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self.client.aclose()
