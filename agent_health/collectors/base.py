"""Base collector class and error types shared by the collectors."""

from abc import ABC
from typing import Any
import logging
import time
from functools import wraps

from ..utils.metrics import FetchResult


class ConfigurationError(Exception):
    """Collector cannot be constructed from the given configuration."""


class CollectorError(Exception):
    """Base class for recoverable collection failures."""


class DiscoveryError(CollectorError):
    """The agent directory could not be listed; the whole cycle is skipped."""


class FetchError(CollectorError):
    """One agent's targets payload could not be retrieved."""

    def __init__(self, address: str, message: str):
        super().__init__(f"{address}: {message}")
        self.address = address
        self.reason = message


class DecodeError(FetchError):
    """One agent returned a body that is not a valid targets payload."""


class BaseCollector(ABC):
    """Abstract base class for all collectors."""

    def __init__(self, config: Any, logger: logging.Logger):
        """
        Initialize base collector.

        Args:
            config: Collector-specific configuration
            logger: Logger instance
        """
        self.config = config
        self.logger = logger.getChild(self.__class__.__name__)


def capture_fetch_errors(func):
    """
    Decorator turning a per-agent fetch into a FetchResult that never raises.

    FetchError is expected and logged as a warning. Any other exception is
    logged with its traceback. Either way the error is carried on the
    returned FetchResult so one agent cannot fail the whole cycle.

    Args:
        func: Collector coroutine ``(self, address) -> FetchResult``

    Returns:
        Wrapped coroutine
    """
    @wraps(func)
    async def wrapper(self, address: str, *args, **kwargs) -> FetchResult:
        start_time = time.monotonic()
        try:
            return await func(self, address, *args, **kwargs)
        except FetchError as e:
            self.logger.warning(
                f"Fetch failed for {address}: {e.reason}",
                extra={"agent": address, "error_type": type(e).__name__}
            )
            error = e
        except Exception as e:
            self.logger.error(f"Unexpected fetch failure for {address}: {e}", exc_info=True)
            error = e
        return FetchResult(
            address=address,
            error=error,
            duration_seconds=time.monotonic() - start_time
        )
    return wrapper
