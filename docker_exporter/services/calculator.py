"""Derived-metric calculations.

Pure functions over raw Docker samples. Nothing here performs I/O or keeps
state between calls, so every scrape computes its values from the data it
fetched itself.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from docker_exporter.models.containers import ContainerSnapshot

LIFECYCLE_CODES = {
    "running": 1,
    "paused": 2,
    "restarting": 3,
    "exited": 4,
    "dead": 5,
    "created": 6,
}

HEALTH_CODES = {
    "healthy": 1,
    "unhealthy": 0,
    "starting": 2,
}

HEALTH_CODE_NONE = -1

NANOSECONDS_PER_SECOND = 1e9


def _as_text(value: Union[str, Enum, None]) -> str:
    if isinstance(value, Enum):
        return value.value
    return value or ""


def cpu_percent(
    total_usage: int,
    pre_total_usage: int,
    system_usage: int,
    pre_system_usage: int,
    online_cpus: Optional[int] = None,
    percpu_count: int = 0,
) -> float:
    """CPU usage percentage from two adjacent cumulative samples.

    Returns 0.0 unless both the container and the system delta are positive,
    which also covers counter resets between the two samples.
    """
    usage_delta = float(total_usage) - float(pre_total_usage)
    system_delta = float(system_usage) - float(pre_system_usage)
    if usage_delta <= 0 or system_delta <= 0:
        return 0.0

    cpus = online_cpus or percpu_count or 1
    return (usage_delta / system_delta) * cpus * 100.0


def memory_percent(usage: int, limit: int) -> float:
    """Memory usage as a percentage of the limit; 0.0 when unlimited."""
    if limit <= 0:
        return 0.0
    return float(usage) / float(limit) * 100.0


def lifecycle_code(state: Union[str, Enum, None]) -> int:
    """Stable numeric code for a container state, 0 for anything unknown."""
    return LIFECYCLE_CODES.get(_as_text(state), 0)


def health_code(health: Union[str, Enum, None]) -> int:
    """Stable numeric code for a health status, -1 when not reported."""
    return HEALTH_CODES.get(_as_text(health), HEALTH_CODE_NONE)


def timestamp_seconds(moment: Optional[datetime]) -> float:
    if moment is None:
        return 0.0
    return moment.timestamp()


def uptime_seconds(snapshot: ContainerSnapshot, now: datetime) -> float:
    """Seconds since the container started, relative to the scrape instant."""
    if not snapshot.running or snapshot.started is None:
        return 0.0
    return max(0.0, (now - snapshot.started).total_seconds())


def nanoseconds_to_seconds(value: int) -> float:
    return value / NANOSECONDS_PER_SECOND
