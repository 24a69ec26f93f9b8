"""Shared pytest configuration and fixtures."""

from typing import Callable, Dict, List, Optional

import httpx
import pytest

from agent_health.config.models import DiscoveryConfig, FetchConfig, SchedulerConfig
from agent_health.utils.logger import setup_logger


def make_target(instance: Optional[str], health: str = "up", **labels) -> dict:
    """Build one activeTargets entry as an agent would serialize it."""
    if instance is not None:
        labels["instance"] = instance
    return {
        "labels": labels,
        "lastScrape": "2024-05-01T10:00:00.000Z",
        "lastScrapeDuration": 0.012,
        "health": health,
        "scrapePool": "node-exporter",
        "scrapeUrl": f"http://{instance}/metrics",
    }


def make_payload(*targets: dict, status: str = "success", dropped: Optional[List[dict]] = None) -> dict:
    """Build a full /api/v1/targets body."""
    return {
        "status": status,
        "data": {
            "activeTargets": list(targets),
            "droppedTargets": dropped or [],
        },
    }


def agents_transport(routes: Dict[str, Callable[[httpx.Request], httpx.Response]]) -> httpx.MockTransport:
    """
    Route requests by host to per-agent handlers.

    Handlers may be sync or async and may raise httpx exceptions to
    simulate transport failures. Unknown hosts answer 404.
    """
    async def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(request.url.host)
        if route is None:
            return httpx.Response(404)
        response = route(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    return httpx.MockTransport(handler)


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


@pytest.fixture
def fetch_config():
    return FetchConfig(timeout_seconds=2.0, max_concurrency=4)


@pytest.fixture
def discovery_config():
    return DiscoveryConfig(
        namespace="monitor",
        name_match="vmagent",
        agent_port=8429,
        api_server="https://k8s.test",
        ca_path=None,
    )


@pytest.fixture
def scheduler_config():
    return SchedulerConfig(interval_seconds=180, stale_ttl_seconds=900)
