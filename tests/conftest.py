"""Shared pytest fixtures for the Docker exporter tests."""

import sys
import threading
from datetime import datetime, timezone
from pathlib import Path

# Add the project root to Python path to enable 'docker_exporter' imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import Mock

from docker_exporter.build_info import BuildInfo
from docker_exporter.connectors.docker_connector import DockerConnector
from docker_exporter.metrics.registry import DescriptorRegistry


FULL_ID_WEB = "aaaaaaaaaaaa" + "0" * 52
FULL_ID_DB = "bbbbbbbbbbbb" + "0" * 52
FULL_ID_CACHE = "cccccccccccc" + "0" * 52
FULL_ID_JOB = "dddddddddddd" + "0" * 52

SCRAPE_NOW = datetime(2024, 1, 1, 1, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Raw Docker API payloads
# =============================================================================


def make_inspect(
    full_id,
    name,
    status="running",
    running=True,
    health=None,
    image="nginx:latest",
    started="2024-01-01T00:00:00.123456789Z",
    finished="0001-01-01T00:00:00Z",
    exit_code=0,
    restart_count=0,
    oom_killed=False,
):
    """Build an inspect_container() response."""
    state = {
        "Status": status,
        "Running": running,
        "ExitCode": exit_code,
        "OOMKilled": oom_killed,
        "StartedAt": started,
        "FinishedAt": finished,
    }
    if health is not None:
        state["Health"] = {"Status": health, "FailingStreak": 0, "Log": []}
    return {
        "Id": full_id,
        "Name": "/" + name,
        "Created": "2023-12-31T23:00:00.5Z",
        "RestartCount": restart_count,
        "State": state,
        "Config": {"Image": image, "Env": [], "Labels": {}},
    }


def make_stats(
    total_usage=400_000_000,
    pre_total_usage=200_000_000,
    system_usage=2_000_000_000,
    pre_system_usage=1_000_000_000,
    online_cpus=2,
    memory_usage=512 * 1024 * 1024,
    memory_limit=1024 * 1024 * 1024,
):
    """Build a stats(stream=False) response."""
    return {
        "read": "2024-01-01T01:00:00.000000001Z",
        "preread": "2024-01-01T00:59:59.000000001Z",
        "pids_stats": {"current": 7},
        "cpu_stats": {
            "cpu_usage": {"total_usage": total_usage, "percpu_usage": [1, 2, 3, 4]},
            "system_cpu_usage": system_usage,
            "online_cpus": online_cpus,
        },
        "precpu_stats": {
            "cpu_usage": {"total_usage": pre_total_usage},
            "system_cpu_usage": pre_system_usage,
            "online_cpus": online_cpus,
        },
        "memory_stats": {"usage": memory_usage, "limit": memory_limit},
        "networks": {
            "eth0": {"rx_bytes": 1000, "tx_bytes": 2000},
            "eth1": {"rx_bytes": 10, "tx_bytes": 20},
        },
        "blkio_stats": {
            "io_service_bytes_recursive": [
                {"major": 8, "minor": 0, "op": "Read", "value": 4096},
                {"major": 8, "minor": 0, "op": "Write", "value": 8192},
                {"major": 8, "minor": 16, "op": "read", "value": 1},
                {"major": 8, "minor": 0, "op": "Total", "value": 12288},
            ]
        },
    }


ENGINE_INFO = {
    "ServerVersion": "24.0.7",
    "OperatingSystem": "Ubuntu 22.04.3 LTS",
    "Architecture": "x86_64",
    "KernelVersion": "6.5.0-14-generic",
    "ContainersRunning": 3,
    "ContainersPaused": 0,
    "ContainersStopped": 1,
    "Images": 12,
    "NCPU": 8,
    "MemTotal": 16_000_000_000,
}


# =============================================================================
# Mock Docker client
# =============================================================================


class FakeDockerAPI:
    """Stand-in for docker.APIClient driven by dictionaries."""

    def __init__(self, inspects, stats=None, info=None):
        self.inspects = {i["Id"]: i for i in inspects}
        self.stats_by_id = stats or {}
        self.info_payload = info if info is not None else dict(ENGINE_INFO)
        self.stats_delay = {}
        self.stats_errors = {}
        self.inspect_errors = {}
        self.list_error = None
        self.info_error = None
        self.stats_calls = []
        self.release = threading.Event()

    def containers(self, all=False):
        if self.list_error is not None:
            raise self.list_error
        return [{"Id": cid, "Names": [i["Name"]]} for cid, i in self.inspects.items()]

    def inspect_container(self, container_id):
        if container_id in self.inspect_errors:
            raise self.inspect_errors[container_id]
        return self.inspects[container_id]

    def stats(self, container_id, stream=True):
        self.stats_calls.append(container_id)
        delay = self.stats_delay.get(container_id)
        if delay:
            self.release.wait(delay)
        if container_id in self.stats_errors:
            raise self.stats_errors[container_id]
        return self.stats_by_id.get(container_id, make_stats())

    def info(self):
        if self.info_error is not None:
            raise self.info_error
        return self.info_payload

    def ping(self):
        return True


def make_client(api):
    client = Mock()
    client.api = api
    return client


@pytest.fixture
def running_inspects():
    return [
        make_inspect(FULL_ID_WEB, "web", health="healthy"),
        make_inspect(FULL_ID_DB, "db", image="postgres:16", health="starting"),
        make_inspect(FULL_ID_CACHE, "cache", image="redis:7"),
    ]


@pytest.fixture
def stopped_inspect():
    return make_inspect(
        FULL_ID_JOB,
        "job",
        status="exited",
        running=False,
        image="busybox",
        finished="2024-01-01T00:30:00Z",
        exit_code=137,
        oom_killed=True,
        restart_count=2,
    )


@pytest.fixture
def fake_api(running_inspects, stopped_inspect):
    return FakeDockerAPI(running_inspects + [stopped_inspect])


@pytest.fixture
def connector(fake_api):
    conn = DockerConnector(client=make_client(fake_api), timeout=2.0)
    yield conn
    fake_api.release.set()


@pytest.fixture
def mock_docker_client():
    """Mock Docker client whose low-level API is a Mock."""
    client = Mock()
    client.api.ping.return_value = True
    client.api.containers.return_value = [{"Id": FULL_ID_WEB}]
    client.api.inspect_container.return_value = make_inspect(FULL_ID_WEB, "web")
    client.api.stats.return_value = make_stats()
    client.api.info.return_value = dict(ENGINE_INFO)
    return client


@pytest.fixture
def registry():
    return DescriptorRegistry.build("ndocker")


@pytest.fixture
def build_info():
    return BuildInfo(version="1.2.3", git_commit="abc1234", build_date="2024-01-01", python_version="3.12.1")


@pytest.fixture
def fixed_clock():
    return lambda: SCRAPE_NOW


