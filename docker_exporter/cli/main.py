#!/usr/bin/env python3
"""
docker-exporter - command-line entry point
"""

import logging
import sys
from typing import Optional, Sequence

from aiohttp import web

from docker_exporter.build_info import BuildInfo
from docker_exporter.connectors.docker_connector import DockerConnector
from docker_exporter.server.app import create_app
from docker_exporter.server.config import ExporterConfig, parse_args
from docker_exporter.utils.deadline import Deadline
from docker_exporter.utils.errors import ConfigurationError, ExporterError
from docker_exporter.utils.logging_config import setup_logging

logger = logging.getLogger("docker_exporter")

STARTUP_PING_TIMEOUT = 5.0


def connect(config: ExporterConfig) -> DockerConnector:
    """Create the Docker connector and verify the daemon answers.

    The client starts with the startup ping's request timeout and is switched
    to the scrape timeout once the daemon has answered.

    Raises:
        ExporterError: the client cannot be created or the ping fails
    """
    connector = DockerConnector(config.docker_host, timeout=STARTUP_PING_TIMEOUT)
    try:
        connector.ping(Deadline.after(STARTUP_PING_TIMEOUT))
    except ExporterError:
        connector.close()
        raise
    connector.set_request_timeout(config.timeout)
    return connector


def main(argv: Optional[Sequence[str]] = None) -> int:
    build_info = BuildInfo.from_env()
    try:
        config, show_version = parse_args(argv)
    except ConfigurationError as e:
        print(f"docker-exporter: {e.message}", file=sys.stderr)
        return 2

    if show_version:
        print(build_info.describe())
        return 0

    setup_logging(config.log_level, config.log_path)
    logger.info(
        "Starting Docker Exporter",
        extra={
            "version": build_info.version,
            "docker_host": config.docker_host or "<environment>",
            "address": config.address,
            "metrics_path": config.metrics_path,
        },
    )

    try:
        connector = connect(config)
    except ExporterError as e:
        logger.critical(
            "Failed to connect to Docker daemon",
            extra={"docker_host": config.docker_host or "<environment>", "error": e.message},
        )
        return 1
    logger.info("Connected to Docker daemon", extra={"docker_host": config.docker_host or "<environment>"})

    try:
        app = create_app(config, connector, build_info)
    except ConfigurationError as e:
        logger.critical("Invalid configuration", extra={"error": e.message})
        connector.close()
        return 2

    logger.info("Server listening", extra={"address": config.address})
    web.run_app(app, host=config.host, port=config.port, print=None, access_log=None)
    logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
