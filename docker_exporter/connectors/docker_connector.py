"""
Docker Connector for metrics collection

Thin adapter over the Docker Engine API (docker SDK, low-level client).
Produces container snapshots, per-container resource samples and engine
snapshots, and maps SDK/transport exceptions onto the exporter's error
taxonomy so callers never see docker or requests exceptions.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import docker
import docker.errors
import requests.exceptions

from docker_exporter.models.containers import (
    ContainerSnapshot,
    EngineSnapshot,
    HealthState,
    LifecycleState,
    NetworkCounters,
    ResourceSample,
)
from docker_exporter.services import calculator
from docker_exporter.utils.deadline import Deadline
from docker_exporter.utils.errors import (
    ExporterError,
    ParseError,
    ScrapeTimeout,
    StatsUnavailable,
    TransportError,
)


logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 12

# Docker reports unset timestamps as Go's zero time.
_ZERO_TIME_PREFIX = "0001-01-01"

_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})?$"
)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp with up to nanosecond precision.

    Returns None for empty, zero-time or malformed values.
    """
    if not value or value.startswith(_ZERO_TIME_PREFIX):
        return None
    match = _TIMESTAMP_RE.match(value.strip())
    if not match:
        return None

    frac = (match.group("frac") or "").ljust(6, "0")[:6]
    tz = match.group("tz") or "Z"
    if tz == "Z":
        tz = "+00:00"
    try:
        parsed = datetime.fromisoformat(f"{match.group('base')}.{frac}{tz}")
    except ValueError:
        return None
    return parsed.astimezone(timezone.utc)


def short_id(container_id: str) -> str:
    return container_id[:SHORT_ID_LENGTH]


def parse_inspect(data: Dict[str, Any]) -> ContainerSnapshot:
    """Build a ContainerSnapshot from an inspect response."""
    if not isinstance(data, dict):
        raise ParseError("inspect response is not an object")
    try:
        state = data.get("State") or {}
        config = data.get("Config") or {}
        health = (state.get("Health") or {}).get("Status") or "none"

        return ContainerSnapshot(
            id=short_id(data["Id"]),
            name=(data.get("Name") or "").lstrip("/"),
            image=config.get("Image") or "",
            state=LifecycleState.parse(state.get("Status")),
            status=str(state.get("Status") or ""),
            health=HealthState.parse(health),
            created=parse_timestamp(data.get("Created")),
            started=parse_timestamp(state.get("StartedAt")),
            finished=parse_timestamp(state.get("FinishedAt")),
            restart_count=int(data.get("RestartCount") or 0),
            exit_code=int(state.get("ExitCode") or 0),
            oom_killed=bool(state.get("OOMKilled")),
            running=bool(state.get("Running")),
        )
    except (KeyError, AttributeError, TypeError, ValueError) as e:
        raise ParseError(f"malformed inspect response: {e}") from e


def _sum_blkio(entries: Optional[List[Dict[str, Any]]]):
    read = write = 0
    for entry in entries or []:
        op = (entry.get("op") or "").lower()
        if op == "read":
            read += int(entry.get("value") or 0)
        elif op == "write":
            write += int(entry.get("value") or 0)
    return read, write


def parse_stats(container_id: str, name: str, stats: Dict[str, Any]) -> ResourceSample:
    """Build a ResourceSample from a one-shot stats response.

    The response carries both the current (``cpu_stats``) and the previous
    (``precpu_stats``) cumulative CPU counters, so the percentage is derived
    from this single call.
    """
    if not isinstance(stats, dict):
        raise ParseError("stats response is not an object")
    if str(stats.get("read") or "").startswith(_ZERO_TIME_PREFIX):
        raise StatsUnavailable(f"container {name} is not running")

    try:
        cpu = stats.get("cpu_stats") or {}
        precpu = stats.get("precpu_stats") or {}
        cpu_usage = cpu.get("cpu_usage") or {}
        pre_cpu_usage = precpu.get("cpu_usage") or {}

        total_usage = int(cpu_usage.get("total_usage") or 0)
        system_usage = int(cpu.get("system_cpu_usage") or 0)

        memory = stats.get("memory_stats") or {}
        memory_usage = int(memory.get("usage") or 0)
        memory_limit = int(memory.get("limit") or 0)

        networks = {}
        rx_total = tx_total = 0
        for iface, counters in (stats.get("networks") or {}).items():
            net = NetworkCounters(
                rx_bytes=int(counters.get("rx_bytes") or 0),
                tx_bytes=int(counters.get("tx_bytes") or 0),
            )
            networks[iface] = net
            rx_total += net.rx_bytes
            tx_total += net.tx_bytes

        block_read, block_write = _sum_blkio(
            (stats.get("blkio_stats") or {}).get("io_service_bytes_recursive")
        )

        return ResourceSample(
            id=short_id(container_id),
            name=name,
            cpu_percent=calculator.cpu_percent(
                total_usage,
                int(pre_cpu_usage.get("total_usage") or 0),
                system_usage,
                int(precpu.get("system_cpu_usage") or 0),
                online_cpus=int(cpu.get("online_cpus") or 0),
                percpu_count=len(cpu_usage.get("percpu_usage") or []),
            ),
            cpu_total_usage=total_usage,
            cpu_system_usage=system_usage,
            memory_usage=memory_usage,
            memory_limit=memory_limit,
            memory_percent=calculator.memory_percent(memory_usage, memory_limit),
            networks=networks,
            network_rx_bytes=rx_total,
            network_tx_bytes=tx_total,
            block_read=block_read,
            block_write=block_write,
            pids=int((stats.get("pids_stats") or {}).get("current") or 0),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ParseError(f"malformed stats response for {name}: {e}") from e


def parse_info(info: Dict[str, Any]) -> EngineSnapshot:
    """Build an EngineSnapshot from a daemon info response."""
    if not isinstance(info, dict):
        raise ParseError("info response is not an object")
    try:
        return EngineSnapshot(
            version=info.get("ServerVersion") or "",
            os=info.get("OperatingSystem") or "",
            arch=info.get("Architecture") or "",
            kernel_version=info.get("KernelVersion") or "",
            containers_running=int(info.get("ContainersRunning") or 0),
            containers_paused=int(info.get("ContainersPaused") or 0),
            containers_stopped=int(info.get("ContainersStopped") or 0),
            images=int(info.get("Images") or 0),
            ncpu=int(info.get("NCPU") or 0),
            mem_total=int(info.get("MemTotal") or 0),
        )
    except (TypeError, ValueError) as e:
        raise ParseError(f"malformed info response: {e}") from e


class DockerConnector:
    """Docker daemon access for the collection path.

    The underlying client is shared by every concurrent fetch of a scrape.
    Apart from set_request_timeout, none of the methods mutate connector state.
    """

    def __init__(self, docker_host: str = "", timeout: float = 2.0, client=None):
        """Initialize the connector.

        Args:
            docker_host: Daemon address (``unix://`` or ``tcp://``); empty
                means the DOCKER_HOST environment / local socket
            timeout: Per-request timeout in seconds
            client: Pre-built ``docker.DockerClient`` (tests)
        """
        self.docker_host = docker_host
        self.timeout = timeout
        if client is None:
            try:
                if docker_host:
                    client = docker.DockerClient(
                        base_url=docker_host, version="auto", timeout=timeout
                    )
                else:
                    client = docker.from_env(timeout=timeout)
            except docker.errors.DockerException as e:
                raise TransportError(f"Failed to create Docker client: {e}") from e
        self.client = client

    @property
    def api(self):
        return self.client.api

    def set_request_timeout(self, timeout: float) -> None:
        """Change the per-request timeout of the underlying client.

        Only called before the client is shared with scrape tasks.
        """
        self.timeout = timeout
        self.api.timeout = timeout

    def close(self) -> None:
        try:
            self.client.close()
        except Exception as e:
            logger.debug(f"Error closing Docker client: {e}")

    def _call(self, operation: str, deadline: Optional[Deadline], func: Callable, *args, **kwargs):
        """Run one API call and translate its failures."""
        if deadline is not None and deadline.expired:
            raise ScrapeTimeout(f"{operation}: scrape deadline elapsed")
        try:
            return func(*args, **kwargs)
        except docker.errors.NotFound as e:
            raise StatsUnavailable(f"{operation}: {e.explanation or e}") from e
        except (requests.exceptions.Timeout, TimeoutError) as e:
            raise ScrapeTimeout(f"{operation}: request timed out") from e
        except docker.errors.APIError as e:
            raise TransportError(f"{operation}: {e}") from e
        except (requests.exceptions.JSONDecodeError, ValueError) as e:
            raise ParseError(f"{operation}: invalid JSON body: {e}") from e
        except (requests.exceptions.RequestException, docker.errors.DockerException, OSError) as e:
            raise TransportError(f"{operation}: {e}") from e

    def ping(self, deadline: Optional[Deadline] = None) -> bool:
        """Check that the daemon answers."""
        self._call("ping", deadline, self.api.ping)
        return True

    def inspect_container(self, container_id: str, deadline: Optional[Deadline] = None) -> ContainerSnapshot:
        data = self._call(
            f"inspect {short_id(container_id)}", deadline, self.api.inspect_container, container_id
        )
        return parse_inspect(data)

    def list_containers(self, deadline: Optional[Deadline] = None) -> List[ContainerSnapshot]:
        """List all containers (any state) with their inspect details.

        Containers whose inspect call fails (including a timeout) are dropped:
        the daemon may be removing them while we walk the list. Once the
        deadline has elapsed the walk stops and the containers inspected so
        far are returned. Only a failure of the list call itself raises.
        """
        entries = self._call("list containers", deadline, self.api.containers, all=True)
        if not isinstance(entries, list):
            raise ParseError("container list response is not an array")

        snapshots: List[ContainerSnapshot] = []
        seen = set()
        for index, entry in enumerate(entries):
            if deadline is not None and deadline.expired:
                logger.warning(
                    "Scrape deadline elapsed while inspecting containers",
                    extra={"inspected": index, "skipped": len(entries) - index},
                )
                break
            container_id = entry.get("Id") if isinstance(entry, dict) else None
            if not container_id:
                logger.warning("Skipping container list entry without an ID")
                continue
            try:
                snapshot = self.inspect_container(container_id, deadline)
            except ExporterError as e:
                logger.warning(
                    "Dropping container from inventory",
                    extra={
                        "container_id": short_id(container_id),
                        "error": e.message,
                        "category": e.category.value,
                    },
                )
                continue
            if snapshot.id in seen:
                continue
            seen.add(snapshot.id)
            snapshots.append(snapshot)

        return snapshots

    def get_stats(self, container_id: str, name: str, deadline: Optional[Deadline] = None) -> ResourceSample:
        """Fetch one point-in-time stats sample for a container."""
        stats = self._call(
            f"stats {name}", deadline, self.api.stats, container_id, stream=False
        )
        return parse_stats(container_id, name, stats)

    def get_engine_info(self, deadline: Optional[Deadline] = None) -> EngineSnapshot:
        info = self._call("info", deadline, self.api.info)
        return parse_info(info)
