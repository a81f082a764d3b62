"""Data models for the Docker exporter."""

from .containers import (
    ContainerSnapshot,
    EngineSnapshot,
    HealthState,
    LifecycleState,
    NetworkCounters,
    ResourceSample,
)

__all__ = [
    "ContainerSnapshot",
    "EngineSnapshot",
    "HealthState",
    "LifecycleState",
    "NetworkCounters",
    "ResourceSample",
]
