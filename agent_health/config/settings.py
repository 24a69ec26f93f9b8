"""Environment settings and validation."""

import os
from typing import Optional


class Settings:
    """Application settings from environment variables."""

    @staticmethod
    def get(key: str, default: Optional[str] = None, required: bool = False) -> str:
        """
        Get environment variable value.

        Args:
            key: Environment variable name
            default: Default value if not set
            required: Whether the variable is required

        Returns:
            str: Environment variable value

        Raises:
            ValueError: If required variable is not set
        """
        value = os.getenv(key, default)
        if required and not value:
            raise ValueError(f"Required environment variable not set: {key}")
        return value or ""

    @staticmethod
    def in_cluster_api_server() -> str:
        """
        Build the Kubernetes API server URL injected into every pod.

        Returns:
            str: https URL of the API server

        Raises:
            ValueError: If the process is not running inside a cluster
        """
        host = Settings.get("KUBERNETES_SERVICE_HOST", required=True)
        port = Settings.get("KUBERNETES_SERVICE_PORT", "443")
        if ":" in host:
            # IPv6 service host
            host = f"[{host}]"
        return f"https://{host}:{port}"

    @staticmethod
    def log_level() -> str:
        return Settings.get("LOG_LEVEL", "INFO")
