"""
Scrape-time collection orchestrator.

One call to ``CollectionOrchestrator.collect()`` is one scrape:

    IDLE -> LISTING_INVENTORY -> FETCHING_STATS -> ASSEMBLING -> DONE
                             \\-> FAILED (inventory listing failed)

Stats for running containers and the engine lookup are fetched concurrently
on worker threads, all bound to the same deadline. Per-container failures
only remove that container's resource series; an engine failure only removes
the engine series; a listing failure leaves build info and scrape duration.
``collect()`` never raises.
"""

import asyncio
import functools
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from docker_exporter.build_info import BuildInfo
from docker_exporter.connectors.docker_connector import DockerConnector
from docker_exporter.metrics.registry import DescriptorRegistry, MetricSample
from docker_exporter.models.containers import ContainerSnapshot, EngineSnapshot, ResourceSample
from docker_exporter.services import calculator
from docker_exporter.utils.deadline import Deadline
from docker_exporter.utils.errors import ExporterError
from docker_exporter.utils.logging_config import SystemLogger, generate_correlation_id


class ScrapePhase(str, Enum):
    IDLE = "idle"
    LISTING_INVENTORY = "listing_inventory"
    FETCHING_STATS = "fetching_stats"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MetricSet:
    """Ordered samples produced by one scrape."""

    samples: List[MetricSample] = field(default_factory=list)
    phase: ScrapePhase = ScrapePhase.IDLE

    def __iter__(self):
        return iter(self.samples)

    def __len__(self) -> int:
        return len(self.samples)

    def names(self) -> List[str]:
        return [s.descriptor.name for s in self.samples]

    def find(self, name: str) -> List[MetricSample]:
        return [s for s in self.samples if s.descriptor.name == name]


def _bool_value(flag: bool) -> float:
    return 1.0 if flag else 0.0


def assemble_container(
    registry: DescriptorRegistry,
    snapshot: ContainerSnapshot,
    resources: Optional[ResourceSample],
    now: datetime,
) -> List[MetricSample]:
    """Samples for one container; resource series only when a sample exists."""
    cid, name = snapshot.id, snapshot.name
    samples = [
        registry.sample("container_info", 1, cid, name, snapshot.image, snapshot.status or snapshot.state.value),
        registry.sample("container_state", calculator.lifecycle_code(snapshot.state), cid, name),
        registry.sample("container_uptime", calculator.uptime_seconds(snapshot, now), cid, name),
        registry.sample("container_created", calculator.timestamp_seconds(snapshot.created), cid, name),
        registry.sample("container_started", calculator.timestamp_seconds(snapshot.started), cid, name),
        registry.sample("container_finished", calculator.timestamp_seconds(snapshot.finished), cid, name),
        registry.sample("container_restart_count", snapshot.restart_count, cid, name),
        registry.sample("container_health_status", calculator.health_code(snapshot.health), cid, name),
        registry.sample("container_exit_code", snapshot.exit_code, cid, name),
        registry.sample("container_oom_killed", _bool_value(snapshot.oom_killed), cid, name),
    ]
    if resources is None:
        return samples

    samples.extend(
        [
            registry.sample("container_cpu_percent", resources.cpu_percent, cid, name),
            registry.sample(
                "container_cpu_seconds",
                calculator.nanoseconds_to_seconds(resources.cpu_total_usage),
                cid,
                name,
            ),
            registry.sample("container_memory_usage", resources.memory_usage, cid, name),
            registry.sample("container_memory_limit", resources.memory_limit, cid, name),
            registry.sample("container_memory_percent", resources.memory_percent, cid, name),
        ]
    )
    for iface in sorted(resources.networks):
        counters = resources.networks[iface]
        samples.append(registry.sample("container_network_rx", counters.rx_bytes, cid, name, iface))
        samples.append(registry.sample("container_network_tx", counters.tx_bytes, cid, name, iface))
    samples.extend(
        [
            registry.sample("container_blkio_read", resources.block_read, cid, name),
            registry.sample("container_blkio_write", resources.block_write, cid, name),
            registry.sample("container_pids", resources.pids, cid, name),
        ]
    )
    return samples


def assemble_engine(registry: DescriptorRegistry, engine: EngineSnapshot) -> List[MetricSample]:
    return [
        registry.sample("engine_info", 1, engine.version, engine.os, engine.arch, engine.kernel_version),
        registry.sample("containers_total", engine.containers_running, "running"),
        registry.sample("containers_total", engine.containers_paused, "paused"),
        registry.sample("containers_total", engine.containers_stopped, "stopped"),
        registry.sample("images_total", engine.images),
        registry.sample("engine_cpus", engine.ncpu),
        registry.sample("engine_memory", engine.mem_total),
    ]


def assemble(
    registry: DescriptorRegistry,
    build_info: BuildInfo,
    snapshots: Sequence[ContainerSnapshot],
    resources: Dict[str, ResourceSample],
    engine: Optional[EngineSnapshot],
    now: datetime,
    duration: float,
) -> List[MetricSample]:
    """Pure assembly of one scrape's samples."""
    samples = [registry.sample("build_info", 1, build_info.version, build_info.python_version)]
    for snapshot in snapshots:
        samples.extend(assemble_container(registry, snapshot, resources.get(snapshot.id), now))
    if engine is not None:
        samples.extend(assemble_engine(registry, engine))
    samples.append(registry.sample("scrape_duration", duration))
    return samples


class CollectionOrchestrator:
    """Runs scrapes against a DockerConnector."""

    def __init__(
        self,
        connector: DockerConnector,
        registry: DescriptorRegistry,
        build_info: BuildInfo,
        timeout: float = 2.0,
        max_concurrent_fetches: int = 0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initialize the orchestrator.

        Args:
            connector: Shared Docker connector (read-only across tasks)
            registry: Descriptor registry built at startup
            build_info: Immutable build metadata
            timeout: Whole-scrape budget in seconds
            max_concurrent_fetches: Cap on in-flight stats calls, 0 = unbounded
            clock: Source of the scrape's wall-clock instant
        """
        self.connector = connector
        self.registry = registry
        self.build_info = build_info
        self.timeout = timeout
        self.max_concurrent_fetches = max(0, int(max_concurrent_fetches or 0))
        self._clock = clock

    async def collect(self) -> MetricSet:
        """Run one scrape and return whatever could be assembled."""
        started = time.monotonic()
        now = self._clock()
        deadline = Deadline.after(self.timeout)
        log = SystemLogger(__name__, generate_correlation_id())
        result = MetricSet(phase=ScrapePhase.IDLE)

        log.debug("Starting metrics collection", timeout_seconds=self.timeout)

        result.phase = ScrapePhase.LISTING_INVENTORY
        snapshots = await self._list_inventory(deadline, log)

        resources: Dict[str, ResourceSample] = {}
        engine: Optional[EngineSnapshot] = None
        if snapshots is None:
            result.phase = ScrapePhase.FAILED
            snapshots = []
        else:
            result.phase = ScrapePhase.FETCHING_STATS
            resources, engine = await self._fetch_all(snapshots, deadline, log)
            result.phase = ScrapePhase.ASSEMBLING

        duration = time.monotonic() - started
        try:
            result.samples = assemble(
                self.registry, self.build_info, snapshots, resources, engine, now, duration
            )
        except Exception:
            log.exception("Failed to assemble metrics")
            result = self.fallback(duration, now)

        if result.phase != ScrapePhase.FAILED:
            result.phase = ScrapePhase.DONE
        log.debug(
            "Metrics collection completed",
            phase=result.phase.value,
            duration_seconds=round(duration, 6),
            containers=len(snapshots),
            resource_samples=len(resources),
            engine_ok=engine is not None,
        )
        return result

    def fallback(self, duration: float, now: Optional[datetime] = None) -> MetricSet:
        """Build info and scrape duration only, for scrapes that could not complete."""
        samples = assemble(self.registry, self.build_info, [], {}, None, now or self._clock(), duration)
        return MetricSet(samples=samples, phase=ScrapePhase.FAILED)

    async def _list_inventory(self, deadline: Deadline, log: SystemLogger) -> Optional[List[ContainerSnapshot]]:
        # The connector stops inspecting at the deadline and returns what it
        # has, so the call is awaited to completion rather than cut off.
        try:
            snapshots = await asyncio.to_thread(self.connector.list_containers, deadline)
        except ExporterError as e:
            log.error("Failed to list containers from Docker API", error=e.message, category=e.category.value)
            return None
        except Exception:
            log.exception("Unexpected error listing containers")
            return None

        running = sum(1 for s in snapshots if s.running)
        log.debug(
            "Containers retrieved",
            total_count=len(snapshots),
            running=running,
            stopped=len(snapshots) - running,
        )
        return snapshots

    def _pool_size(self, running: int) -> int:
        # One worker per in-flight stats call plus one for the engine lookup
        if self.max_concurrent_fetches:
            return min(self.max_concurrent_fetches, max(running, 1)) + 1
        return running + 1

    async def _fetch_all(self, snapshots: Sequence[ContainerSnapshot], deadline: Deadline, log: SystemLogger):
        """Fan out stats fetches plus the engine lookup and join on the deadline.

        Each scrape gets its own worker pool so the fan-out is not limited by
        the loop's default executor, nor by threads still blocked in calls
        abandoned by earlier scrapes.
        """
        running = [snapshot for snapshot in snapshots if snapshot.running]
        semaphore = asyncio.Semaphore(self.max_concurrent_fetches) if self.max_concurrent_fetches else None
        executor = ThreadPoolExecutor(
            max_workers=self._pool_size(len(running)),
            thread_name_prefix="docker-exporter-fetch",
        )

        try:
            stats_tasks = [
                asyncio.create_task(self._fetch_stats(snapshot, deadline, semaphore, executor, log))
                for snapshot in running
            ]
            engine_task = asyncio.create_task(self._fetch_engine(deadline, executor, log))
            tasks = stats_tasks + [engine_task]

            done, pending = await asyncio.wait(tasks, timeout=deadline.remaining())
            for task in pending:
                task.cancel()
            if pending:
                log.warning("Scrape deadline elapsed with fetches in flight", abandoned=len(pending))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        resources: Dict[str, ResourceSample] = {}
        for task in stats_tasks:
            if task in done and task.result() is not None:
                sample = task.result()
                resources[sample.id] = sample

        engine = engine_task.result() if engine_task in done else None
        return resources, engine

    async def _fetch_stats(
        self,
        snapshot: ContainerSnapshot,
        deadline: Deadline,
        semaphore: Optional[asyncio.Semaphore],
        executor: ThreadPoolExecutor,
        log: SystemLogger,
    ) -> Optional[ResourceSample]:
        if semaphore is None:
            return await self._get_stats(snapshot, deadline, executor, log)
        async with semaphore:
            return await self._get_stats(snapshot, deadline, executor, log)

    async def _get_stats(
        self,
        snapshot: ContainerSnapshot,
        deadline: Deadline,
        executor: ThreadPoolExecutor,
        log: SystemLogger,
    ) -> Optional[ResourceSample]:
        loop = asyncio.get_running_loop()
        try:
            sample = await loop.run_in_executor(
                executor,
                functools.partial(self.connector.get_stats, snapshot.id, snapshot.name, deadline),
            )
        except ExporterError as e:
            log.warning(
                "Failed to get container stats",
                container=snapshot.name,
                container_id=snapshot.id,
                error=e.message,
                category=e.category.value,
            )
            return None
        except Exception:
            log.exception("Unexpected error getting container stats", container=snapshot.name, container_id=snapshot.id)
            return None

        log.debug(
            "Stats retrieved",
            container=snapshot.name,
            cpu_percent=sample.cpu_percent,
            memory_usage=sample.memory_usage,
        )
        return sample

    async def _fetch_engine(
        self, deadline: Deadline, executor: ThreadPoolExecutor, log: SystemLogger
    ) -> Optional[EngineSnapshot]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(executor, self.connector.get_engine_info, deadline)
        except ExporterError as e:
            log.error("Failed to get engine info", error=e.message, category=e.category.value)
        except Exception:
            log.exception("Unexpected error getting engine info")
        return None
