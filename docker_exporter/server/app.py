"""HTTP surface of the exporter (aiohttp).

Routes:
    /<endpoint>  Prometheus metrics, always HTTP 200
    /health      bounded Docker ping, 200 or 503
    /            small index page
"""

import asyncio
import logging
import time

from aiohttp import web

from docker_exporter.build_info import BuildInfo
from docker_exporter.connectors.docker_connector import DockerConnector
from docker_exporter.metrics.exposition import OUTPUT_MINIMUM, Renderer
from docker_exporter.metrics.registry import DescriptorRegistry
from docker_exporter.server.config import ExporterConfig
from docker_exporter.services.collector import CollectionOrchestrator
from docker_exporter.utils.deadline import Deadline
from docker_exporter.utils.errors import ExporterError

logger = logging.getLogger(__name__)

HEALTH_TIMEOUT = 2.0

CONNECTOR_KEY = web.AppKey("connector", DockerConnector)
ORCHESTRATOR_KEY = web.AppKey("orchestrator", CollectionOrchestrator)
RENDERER_KEY = web.AppKey("renderer", Renderer)
CONFIG_KEY = web.AppKey("config", ExporterConfig)
BUILD_INFO_KEY = web.AppKey("build_info", BuildInfo)

INDEX_TEMPLATE = """<!DOCTYPE html>
<html>
<head><title>Docker Exporter</title></head>
<body>
<h1>Docker Exporter</h1>
<p>Version: {version}</p>
<p><a href="{metrics_path}">Metrics</a></p>
</body>
</html>"""


async def metrics_handler(request: web.Request) -> web.Response:
    """Handle metrics requests."""
    orchestrator = request.app[ORCHESTRATOR_KEY]
    renderer = request.app[RENDERER_KEY]

    started = time.monotonic()
    metric_set = await orchestrator.collect()
    try:
        body = renderer.render(metric_set)
    except Exception:
        logger.exception("Failed to render metrics", extra={"samples": len(metric_set)})
        fallback = orchestrator.fallback(time.monotonic() - started)
        body = Renderer(OUTPUT_MINIMUM).render(fallback)
    return web.Response(body=body, headers={"Content-Type": renderer.content_type})


async def health_handler(request: web.Request) -> web.Response:
    """Handle health check requests."""
    connector = request.app[CONNECTOR_KEY]
    deadline = Deadline.after(HEALTH_TIMEOUT)
    try:
        await asyncio.wait_for(asyncio.to_thread(connector.ping, deadline), timeout=HEALTH_TIMEOUT)
    except asyncio.TimeoutError:
        return web.Response(status=503, text="unhealthy: ping timed out")
    except ExporterError as e:
        return web.Response(status=503, text=f"unhealthy: {e.message}")
    return web.Response(text="healthy")


async def index_handler(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    build_info = request.app[BUILD_INFO_KEY]
    return web.Response(
        text=INDEX_TEMPLATE.format(version=build_info.version, metrics_path=config.metrics_path),
        content_type="text/html",
    )


async def _close_connector(app: web.Application) -> None:
    app[CONNECTOR_KEY].close()


def create_app(
    config: ExporterConfig,
    connector: DockerConnector,
    build_info: BuildInfo,
) -> web.Application:
    """Wire the orchestrator, renderer and routes into an aiohttp application."""
    registry = DescriptorRegistry.build(config.prefix)
    orchestrator = CollectionOrchestrator(
        connector,
        registry,
        build_info,
        timeout=config.timeout,
        max_concurrent_fetches=config.max_concurrent_fetches,
    )

    app = web.Application()
    app[CONFIG_KEY] = config
    app[CONNECTOR_KEY] = connector
    app[BUILD_INFO_KEY] = build_info
    app[ORCHESTRATOR_KEY] = orchestrator
    app[RENDERER_KEY] = Renderer(config.output_mode)

    app.router.add_get(config.metrics_path, metrics_handler)
    app.router.add_get("/health", health_handler)
    if config.metrics_path != "/":
        app.router.add_get("/", index_handler)
    app.on_cleanup.append(_close_connector)
    return app
