"""Data models for service descriptors, lifecycle handles and reports."""

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ServiceKind(str, Enum):
    PROCESS = "process"
    CONTAINER = "container"


class ProbeKind(str, Enum):
    HTTP = "http"
    TCP = "tcp"
    COMMAND = "command"


class HealthCheck(BaseModel):
    """How to decide whether a service is up.

    HTTP probes only need a URL; TCP probes a host and port; command probes
    run ``command`` inside the compose service ``exec_service``.
    """

    model_config = ConfigDict(frozen=True)

    kind: ProbeKind
    url: str | None = None
    host: str = "localhost"
    port: int | None = None
    command: tuple[str, ...] = ()
    exec_service: str | None = None


class ServiceDescriptor(BaseModel):
    """Static metadata describing how to start and check one component."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    kind: ServiceKind
    port: int
    health_check: HealthCheck
    start_command: tuple[str, ...] = ()
    directory: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    requires_database: bool = False
    requirements_file: str | None = None
    node_project: bool = False

    @property
    def display(self) -> str:
        return f"{self.label} ({self.port})"


class ProcessHandle(BaseModel):
    """Lifecycle record for a development process."""

    service_name: str
    pid: int
    log_file_path: Path
    started_at: datetime = Field(default_factory=datetime.now)


class ServiceState(BaseModel):
    service_name: str
    running: bool
    pid: int | None = None


class HealthStatus(BaseModel):
    service_name: str
    healthy: bool
    checked_at: datetime = Field(default_factory=datetime.now)
    detail: str = ""


class BuildArtifact(BaseModel):
    """Image produced by the build pipeline. Tags never change once built."""

    model_config = ConfigDict(frozen=True)

    service_name: str
    image_tag: str
    latest_tag: str
    timestamp_tag: str
    built_at: datetime

    @property
    def tags(self) -> list[str]:
        return [self.image_tag, self.latest_tag, self.timestamp_tag]


class DeployState(str, Enum):
    BUILDING = "building"
    DEPLOYING = "deploying"
    AWAITING_DB = "awaiting_db"
    SCHEMA_INIT = "schema_init"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


class DeployResult(BaseModel):
    state: DeployState
    version: str
    artifacts: list[BuildArtifact] = Field(default_factory=list)
    running: int = 0
    total: int = 0
    quorum_met: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == DeployState.DONE
