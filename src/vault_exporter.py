#!/usr/bin/env python3
"""
Bridge Vaults Exporter

Polls vault balances, total assets, withdrawal limits and bridge relay rounds
on every configured network and serves the latest values as Prometheus
metrics.

Usage:
    vault-exporter -c config.json
    vault-exporter -c config.json --once
"""

import argparse
import logging
import signal
import sys
import threading

from config_manager import ConfigError, load_config, networks_summary
from logger_utils import setup_logging
from metrics_server import MetricsServer
from service import Service, StartupError, default_client_factory

logger = logging.getLogger(__name__)


class Exporter:
    def __init__(self, config):
        self.config = config
        self.service = None
        self.server = None
        self._shutdown = threading.Event()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully"""
        logger.info(f"Received signal {signum}, shutting down...")
        self._shutdown.set()

    def build(self) -> Service:
        for line in networks_summary(self.config):
            logger.info(f"Network {line}")

        self.service = Service.create(
            self.config.networks,
            bridge_scope=self.config.bridge_scope,
            client_factory=default_client_factory(
                request_timeout_s=self.config.request_timeout_sec,
                preference_reset_minutes=self.config.preference_reset_minutes,
            ),
        )
        return self.service

    def run_once(self) -> str:
        service = self.build()
        # a single refresh, no background loops
        for refresher in service.refreshers:
            try:
                refresher.update()
            except Exception as e:
                raise StartupError(f"Failed to update {refresher.describe()}: {e}") from e
        return service.metrics()

    def run(self) -> None:
        settings = self.config.metrics_settings
        interval = settings.collection_interval_sec

        service = self.build()
        service.start_listening(interval)

        self.server = MetricsServer(settings.host, settings.port, service.metrics, settings.metrics_path)
        self.server.start()
        logger.info(f"Server is running on {settings.listen_address} with interval {interval}s")

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        self._shutdown.wait()

        service.stop()
        self.server.stop()
        logger.info("Exporter stopped")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Octus Bridge vaults info exporter")
    parser.add_argument('-c', '--config', default='config.json', help='Path to the application config (default: config.json)')
    parser.add_argument('--once', action='store_true', help='Refresh every vault once, print the metrics and exit')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    args = parser.parse_args(argv)

    # logging has to work before the config is known
    setup_logging(verbose=args.verbose, no_color=args.no_color)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger_settings = config.logger_settings
    setup_logging(
        verbose=args.verbose or logger_settings.verbose,
        no_color=args.no_color or logger_settings.no_color,
        loggers=logger_settings.loggers,
    )

    exporter = Exporter(config)
    try:
        if args.once:
            sys.stdout.write(exporter.run_once())
        else:
            exporter.run()
    except StartupError as e:
        logger.error(f"Failed to start exporter: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
