"""Static metric descriptors.

The registry is built once at startup from the configured name prefix and
shared read-only by every scrape. Scrapes only produce MetricSample values
that point back at these descriptors.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Tuple

from docker_exporter.utils.errors import ConfigurationError

DEFAULT_PREFIX = "ndocker"

_PREFIX_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")

CONTAINER_LABELS = ("id", "name")


class MetricKind(str, Enum):
    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class MetricDescriptor:
    name: str
    help: str
    label_names: Tuple[str, ...] = ()
    kind: MetricKind = MetricKind.GAUGE


@dataclass(frozen=True)
class MetricSample:
    descriptor: MetricDescriptor
    label_values: Tuple[str, ...]
    value: float

    def __post_init__(self):
        if len(self.label_values) != len(self.descriptor.label_names):
            raise ValueError(
                f"{self.descriptor.name} expects labels {self.descriptor.label_names}, "
                f"got {len(self.label_values)} values"
            )

    @property
    def labels(self) -> Dict[str, str]:
        return dict(zip(self.descriptor.label_names, self.label_values))


# (key, name suffix, help, label names, kind)
_DESCRIPTOR_TABLE = (
    # Container core
    ("container_info", "container_info", "Container information", ("id", "name", "image", "state"), MetricKind.GAUGE),
    (
        "container_state",
        "container_state",
        "Container state (1=running, 2=paused, 3=restarting, 4=exited, 5=dead, 6=created, 0=unknown)",
        CONTAINER_LABELS,
        MetricKind.GAUGE,
    ),
    ("container_uptime", "container_uptime_seconds", "Container uptime in seconds", CONTAINER_LABELS, MetricKind.GAUGE),
    ("container_created", "container_created_seconds", "Container creation timestamp", CONTAINER_LABELS, MetricKind.GAUGE),
    ("container_started", "container_started_seconds", "Container start timestamp", CONTAINER_LABELS, MetricKind.GAUGE),
    ("container_finished", "container_finished_seconds", "Container finish timestamp", CONTAINER_LABELS, MetricKind.GAUGE),
    ("container_restart_count", "container_restart_count", "Container restart count", CONTAINER_LABELS, MetricKind.GAUGE),
    (
        "container_health_status",
        "container_health_status",
        "Container health status (1=healthy, 0=unhealthy, 2=starting, -1=none)",
        CONTAINER_LABELS,
        MetricKind.GAUGE,
    ),
    ("container_exit_code", "container_exit_code", "Container exit code", CONTAINER_LABELS, MetricKind.GAUGE),
    ("container_oom_killed", "container_oom_killed", "Container OOM killed (1=true, 0=false)", CONTAINER_LABELS, MetricKind.GAUGE),
    # CPU
    ("container_cpu_percent", "container_cpu_usage_percent", "Container CPU usage percentage", CONTAINER_LABELS, MetricKind.GAUGE),
    (
        "container_cpu_seconds",
        "container_cpu_usage_seconds_total",
        "Container total CPU usage in seconds",
        CONTAINER_LABELS,
        MetricKind.COUNTER,
    ),
    # Memory
    ("container_memory_usage", "container_memory_usage_bytes", "Container memory usage in bytes", CONTAINER_LABELS, MetricKind.GAUGE),
    ("container_memory_limit", "container_memory_limit_bytes", "Container memory limit in bytes", CONTAINER_LABELS, MetricKind.GAUGE),
    ("container_memory_percent", "container_memory_usage_percent", "Container memory usage percentage", CONTAINER_LABELS, MetricKind.GAUGE),
    # Network
    (
        "container_network_rx",
        "container_network_rx_bytes_total",
        "Container network bytes received",
        ("id", "name", "interface"),
        MetricKind.COUNTER,
    ),
    (
        "container_network_tx",
        "container_network_tx_bytes_total",
        "Container network bytes transmitted",
        ("id", "name", "interface"),
        MetricKind.COUNTER,
    ),
    # Block I/O
    ("container_blkio_read", "container_blkio_read_bytes_total", "Container block I/O bytes read", CONTAINER_LABELS, MetricKind.COUNTER),
    ("container_blkio_write", "container_blkio_write_bytes_total", "Container block I/O bytes written", CONTAINER_LABELS, MetricKind.COUNTER),
    # Processes
    ("container_pids", "container_pids", "Number of processes running in the container", CONTAINER_LABELS, MetricKind.GAUGE),
    # Engine
    ("engine_info", "engine_info", "Docker engine information", ("version", "os", "arch", "kernel"), MetricKind.GAUGE),
    ("containers_total", "containers_total", "Total number of containers by state", ("state",), MetricKind.GAUGE),
    ("images_total", "images_total", "Total number of images", (), MetricKind.GAUGE),
    ("engine_cpus", "engine_cpus", "Number of CPUs available to the Docker engine", (), MetricKind.GAUGE),
    ("engine_memory", "engine_memory_bytes", "Total memory available to the Docker engine in bytes", (), MetricKind.GAUGE),
    # Exporter
    ("scrape_duration", "scrape_duration_seconds", "Duration of the scrape", (), MetricKind.GAUGE),
    ("build_info", "build_info", "Exporter build information", ("version", "python_version"), MetricKind.GAUGE),
)


@dataclass(frozen=True)
class DescriptorRegistry:
    """Immutable table of every metric the exporter can emit."""

    prefix: str
    _descriptors: Mapping[str, MetricDescriptor] = field(repr=False, compare=False)

    @classmethod
    def build(cls, prefix: str = DEFAULT_PREFIX) -> "DescriptorRegistry":
        if not prefix or not _PREFIX_RE.match(prefix):
            raise ConfigurationError(f"Invalid metric name prefix: {prefix!r}")
        descriptors = {
            key: MetricDescriptor(f"{prefix}_{suffix}", help_text, tuple(labels), kind)
            for key, suffix, help_text, labels, kind in _DESCRIPTOR_TABLE
        }
        return cls(prefix=prefix, _descriptors=MappingProxyType(descriptors))

    def __getitem__(self, key: str) -> MetricDescriptor:
        return self._descriptors[key]

    def __iter__(self) -> Iterator[MetricDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)

    def names(self) -> List[str]:
        return [d.name for d in self._descriptors.values()]

    def sample(self, key: str, value: float, *label_values: str) -> MetricSample:
        """Create a sample for the descriptor registered under ``key``."""
        return MetricSample(self._descriptors[key], tuple(str(v) for v in label_values), float(value))
