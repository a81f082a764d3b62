"""Runtime connectors for the Docker exporter."""

from .docker_connector import DockerConnector

__all__ = ["DockerConnector"]
