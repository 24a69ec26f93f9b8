"""Agent discovery through the Kubernetes pod-listing API."""

import asyncio
import ssl
from pathlib import Path
from typing import Any, Dict, Generator, List
import logging

import httpx

from ..config.models import DiscoveryConfig
from ..config.settings import Settings
from .base import BaseCollector, ConfigurationError, DiscoveryError

# Pods in these phases keep their IP in status but are not serving
TERMINAL_PHASES = ("Succeeded", "Failed")


class ServiceAccountAuth(httpx.Auth):
    """Bearer auth that re-reads the projected token, which kubelet rotates."""

    def __init__(self, token_path: Path):
        self.token_path = token_path

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        token = self.token_path.read_text().strip()
        request.headers["Authorization"] = f"Bearer {token}"
        yield request


class AgentDirectoryClient(BaseCollector):
    """Resolves the addresses of live agent pods in one namespace."""

    def __init__(
        self,
        config: DiscoveryConfig,
        logger: logging.Logger,
        client: httpx.AsyncClient
    ):
        """
        Initialize directory client.

        Args:
            config: Discovery configuration
            logger: Logger instance
            client: HTTP client with base_url and auth set for the API server
        """
        super().__init__(config, logger)
        self.client = client

    @classmethod
    def from_in_cluster(
        cls,
        config: DiscoveryConfig,
        logger: logging.Logger
    ) -> "AgentDirectoryClient":
        """
        Build a client from the pod's service account credentials.

        Raises:
            ConfigurationError: If credentials or API location are unusable
        """
        try:
            api_server = config.api_server or Settings.in_cluster_api_server()
        except ValueError as e:
            raise ConfigurationError(
                f"No API server configured and not running in a cluster: {e}"
            ) from e

        token_path = Path(config.token_path)
        if not token_path.is_file():
            raise ConfigurationError(f"Service account token not found: {token_path}")
        if not token_path.read_text().strip():
            raise ConfigurationError(f"Service account token is empty: {token_path}")

        verify: Any = True
        if config.ca_path:
            if not Path(config.ca_path).is_file():
                raise ConfigurationError(f"Cluster CA bundle not found: {config.ca_path}")
            try:
                verify = ssl.create_default_context(cafile=config.ca_path)
            except ssl.SSLError as e:
                raise ConfigurationError(f"Invalid cluster CA bundle {config.ca_path}: {e}") from e

        client = httpx.AsyncClient(
            base_url=api_server,
            auth=ServiceAccountAuth(token_path),
            verify=verify,
            timeout=config.timeout_seconds
        )
        return cls(config, logger, client)

    async def resolve(self) -> List[str]:
        """
        Resolve the current agent addresses.

        Returns:
            List[str]: Sorted, de-duplicated ``host:port`` addresses; may be empty

        Raises:
            DiscoveryError: If the pod list cannot be retrieved
        """
        addresses = set()
        for pod in await self._list_pods():
            metadata = pod.get("metadata") or {}
            status = pod.get("status") or {}
            name = metadata.get("name", "")

            if self.config.name_match not in name:
                continue
            pod_ip = status.get("podIP")
            if not pod_ip:
                self.logger.debug(f"Skipping pod {name}: no IP assigned yet")
                continue
            if status.get("phase") in TERMINAL_PHASES:
                self.logger.debug(f"Skipping pod {name}: phase {status.get('phase')}")
                continue

            addresses.add(self._format_address(pod_ip))

        result = sorted(addresses)
        self.logger.info(
            f"Discovered {len(result)} agents in namespace {self.config.namespace}"
        )
        return result

    def _format_address(self, pod_ip: str) -> str:
        if ":" in pod_ip:
            return f"[{pod_ip}]:{self.config.agent_port}"
        return f"{pod_ip}:{self.config.agent_port}"

    async def _list_pods(self) -> List[Dict[str, Any]]:
        """List every pod in the namespace, following continue tokens."""
        path = f"/api/v1/namespaces/{self.config.namespace}/pods"
        params: Dict[str, Any] = {"limit": self.config.page_size}
        if self.config.label_selector:
            params["labelSelector"] = self.config.label_selector

        pods: List[Dict[str, Any]] = []
        while True:
            body = await self._get_page(path, params)
            pods.extend(body.get("items") or [])

            continue_token = (body.get("metadata") or {}).get("continue")
            if not continue_token:
                return pods
            params = {**params, "continue": continue_token}

    async def _get_page(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        namespace = self.config.namespace
        try:
            response = await asyncio.wait_for(
                self.client.get(path, params=params),
                timeout=self.config.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise DiscoveryError(
                f"Pod list request for namespace {namespace} timed out "
                f"after {self.config.timeout_seconds}s"
            ) from e
        except httpx.RequestError as e:
            raise DiscoveryError(f"Pod list request failed for namespace {namespace}: {e}") from e
        except OSError as e:
            # Token file disappeared between requests
            raise DiscoveryError(f"Cannot read service account token: {e}") from e

        if not response.is_success:
            raise DiscoveryError(
                f"Pod list for namespace {namespace} returned HTTP {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise DiscoveryError(f"Malformed pod list for namespace {namespace}: {e}") from e

        if not isinstance(body, dict) or not isinstance(body.get("items") or [], list):
            raise DiscoveryError(f"Unexpected pod list shape for namespace {namespace}")
        if not all(isinstance(pod, dict) for pod in body.get("items") or []):
            raise DiscoveryError(f"Unexpected pod entry in list for namespace {namespace}")
        return body

    async def aclose(self) -> None:
        await self.client.aclose()
