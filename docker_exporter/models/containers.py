from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class LifecycleState(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    RESTARTING = "restarting"
    EXITED = "exited"
    DEAD = "dead"
    CREATED = "created"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LifecycleState":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.UNKNOWN


class HealthState(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    STARTING = "starting"
    NONE = "none"

    @classmethod
    def parse(cls, value: Optional[str]) -> "HealthState":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.NONE


class ContainerSnapshot(BaseModel):
    """One container as seen by a single scrape."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Short (12 char) container ID")
    name: str = Field(..., description="Container name without leading slash")
    image: str = Field("", description="Configured image reference")
    state: LifecycleState = Field(LifecycleState.UNKNOWN)
    status: str = Field("", description="Status string as reported by the runtime")
    health: HealthState = Field(HealthState.NONE)
    created: Optional[datetime] = Field(None, description="Creation time (UTC)")
    started: Optional[datetime] = Field(None, description="Last start time (UTC)")
    finished: Optional[datetime] = Field(None, description="Last finish time (UTC)")
    restart_count: int = Field(0, ge=0)
    exit_code: int = Field(0, description="Meaningful only when not running")
    oom_killed: bool = Field(False)
    running: bool = Field(False)


class NetworkCounters(BaseModel):
    model_config = ConfigDict(frozen=True)

    rx_bytes: int = Field(0, ge=0)
    tx_bytes: int = Field(0, ge=0)


class ResourceSample(BaseModel):
    """Point-in-time resource usage of one running container."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Short container ID")
    name: str = Field(..., description="Container name")

    cpu_percent: float = Field(0.0, ge=0)
    cpu_total_usage: int = Field(0, ge=0, description="Cumulative CPU time in nanoseconds")
    cpu_system_usage: int = Field(0, ge=0, description="Cumulative host CPU time in nanoseconds")

    memory_usage: int = Field(0, ge=0)
    memory_limit: int = Field(0, ge=0, description="0 means unlimited")
    memory_percent: float = Field(0.0, ge=0)

    networks: Dict[str, NetworkCounters] = Field(default_factory=dict)
    network_rx_bytes: int = Field(0, ge=0)
    network_tx_bytes: int = Field(0, ge=0)

    block_read: int = Field(0, ge=0)
    block_write: int = Field(0, ge=0)

    pids: int = Field(0, ge=0)


class EngineSnapshot(BaseModel):
    """Docker engine level information."""

    model_config = ConfigDict(frozen=True)

    version: str = Field("", description="Server version")
    os: str = Field("", description="Operating system")
    arch: str = Field("", description="Architecture")
    kernel_version: str = Field("")
    containers_running: int = Field(0, ge=0)
    containers_paused: int = Field(0, ge=0)
    containers_stopped: int = Field(0, ge=0)
    images: int = Field(0, ge=0)
    ncpu: int = Field(0, ge=0)
    mem_total: int = Field(0, ge=0)
