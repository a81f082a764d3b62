"""Prometheus exporter for Docker container and engine metrics."""

__version__ = "1.0.0"
