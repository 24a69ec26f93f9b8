"""Main application entry point for the agent target health exporter."""

import argparse
import asyncio
import functools
import logging
import signal
import sys

from .collectors.agent_directory import AgentDirectoryClient
from .collectors.base import ConfigurationError
from .collectors.target_fetcher import TargetFetcher
from .config.loader import ConfigLoader
from .config.models import ExporterSystemConfig
from .config.settings import Settings
from .services.aggregator import HealthAggregator
from .services.exporter import MetricsExporter
from .services.health_registry import HealthRegistry
from .services.scheduler import ScrapeScheduler
from .utils.logger import setup_logger


class ExporterApp:
    """
    Main exporter application.

    Wires discovery, fetching, aggregation and the metrics endpoint
    together, and runs scrape cycles until SIGINT/SIGTERM.
    """

    def __init__(
        self,
        config_path: str = "config/config.yaml",
        log_level: str = "INFO"
    ):
        """
        Initialize exporter application.

        Args:
            config_path: Path to configuration file
            log_level: Log level for the application logger

        Raises:
            SystemExit: If configuration or cluster credentials are invalid
        """
        self.config_path = config_path
        self.logger = setup_logger("agent_health", log_level)
        self._shutdown = asyncio.Event()

        self.logger.info("Agent target health exporter starting")
        self.config = self._load_config()

        self.registry = HealthRegistry(
            stale_ttl_seconds=self.config.scheduler.stale_ttl_seconds,
            logger=self.logger
        )
        self.exporter = MetricsExporter(self.config.exporter, self.registry, self.logger)

        try:
            self.directory = AgentDirectoryClient.from_in_cluster(
                self.config.discovery, self.logger
            )
        except ConfigurationError as e:
            self.logger.error(f"Cannot configure agent discovery: {e}")
            sys.exit(1)

        self.fetcher = TargetFetcher(self.config.fetch, self.logger)
        self.scheduler = ScrapeScheduler(
            directory=self.directory,
            fetcher=self.fetcher,
            aggregator=HealthAggregator(self.logger),
            registry=self.registry,
            config=self.config.scheduler,
            logger=self.logger,
            metrics=self.exporter.metrics,
            agent_id=self.config.discovery.agent_id
        )
        self.logger.info("Application initialized successfully")

    def _load_config(self) -> ExporterSystemConfig:
        """
        Load and validate configuration.

        Returns:
            ExporterSystemConfig: Loaded configuration

        Raises:
            SystemExit: If configuration is invalid
        """
        try:
            self.logger.info(f"Loading configuration from {self.config_path}")
            config = ConfigLoader.load_from_file(self.config_path)
            self.logger.info("Configuration loaded successfully")
            return config

        except FileNotFoundError:
            self.logger.error(
                f"Configuration file not found: {self.config_path}\n"
                "Please create config/config.yaml from config/config.example.yaml"
            )
            sys.exit(1)

        except Exception as e:
            self.logger.error(f"Failed to load configuration: {e}", exc_info=True)
            sys.exit(1)

    def _handle_signal(self, sig: signal.Signals) -> None:
        self.logger.info(f"Received {sig.name}, initiating graceful shutdown...")
        self._shutdown.set()

    async def run(self) -> None:
        """
        Serve /metrics and run scrape cycles until a shutdown signal.

        Raises:
            OSError: If the metrics endpoint cannot bind its address
        """
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, functools.partial(self._handle_signal, sig))

        try:
            self.exporter.start()
            self.scheduler.start()
            await self._shutdown.wait()
        finally:
            self.scheduler.shutdown()
            self.exporter.stop()
            await self._close_clients()

    async def run_once(self) -> bool:
        """
        Run a single scrape cycle and write the exposition to stdout.

        Returns:
            bool: True if the cycle completed
        """
        try:
            report = await self.scheduler.run_cycle()
        finally:
            await self._close_clients()

        sys.stdout.write(self.exporter.render())
        return report.result == "completed"

    async def _close_clients(self) -> None:
        await self.fetcher.aclose()
        await self.directory.aclose()


def main():
    """
    CLI entry point.

    Parses command-line arguments and starts the exporter.
    """
    parser = argparse.ArgumentParser(
        description='Republish scrape agent target health as Prometheus metrics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve /metrics and scrape agents every interval
  python -m agent_health.main

  # Run one cycle, print the exposition and exit
  python -m agent_health.main --run-once

  # Use custom config file
  python -m agent_health.main --config /etc/agent-health/config.yaml
        """
    )

    parser.add_argument(
        '--config',
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--run-once',
        action='store_true',
        help='Run one scrape cycle, print the metrics and exit'
    )

    parser.add_argument(
        '--log-level',
        default=Settings.log_level(),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO or LOG_LEVEL env var)'
    )

    args = parser.parse_args()

    try:
        app = ExporterApp(config_path=args.config, log_level=args.log_level)

        if args.run_once:
            ok = asyncio.run(app.run_once())
            sys.exit(0 if ok else 1)

        asyncio.run(app.run())

    except OSError as e:
        logging.getLogger("agent_health").error(f"Cannot serve metrics endpoint: {e}")
        sys.exit(1)

    except Exception as e:
        logging.getLogger("agent_health").error(f"Application startup failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
