"""Whole-stack operations for the development and Docker helpers."""

import logging
import shutil
import time
from typing import Callable, Dict, List, Optional

from synaptic.config import Settings
from synaptic.console import Console
from synaptic.core.readiness import RetryPolicy
from synaptic.exceptions import PreconditionFailure, SynapticError
from synaptic.health import HealthReporter
from synaptic.installer import DependencyInstaller
from synaptic.lifecycle import ContainerManager, ProcessManager, StartOutcome
from synaptic.models import ServiceDescriptor, ServiceKind, ServiceState
from synaptic.runtime import ComposeClient, DockerClient
from synaptic.services import DATABASE, DEV_START_ORDER

logger = logging.getLogger(__name__)


def readiness_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.readiness_max_attempts,
        delay=settings.readiness_delay,
        timeout=settings.readiness_timeout,
    )


class DevStack:
    """Development mode: database in a container, everything else as local processes."""

    def __init__(
        self,
        settings: Settings,
        services: Dict[str, ServiceDescriptor],
        processes: ProcessManager,
        containers: ContainerManager,
        installer: DependencyInstaller,
        health: HealthReporter,
        console: Console,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.services = services
        self.processes = processes
        self.containers = containers
        self.installer = installer
        self.health = health
        self.console = console
        self.sleep = sleep

    @property
    def database(self) -> ServiceDescriptor:
        return self.services[DATABASE]

    def _ensure_logs_dir(self) -> None:
        self.settings.logs_path.mkdir(parents=True, exist_ok=True)

    def start_database(self) -> None:
        """Start PostgreSQL and block until it accepts connections.

        A database already listening on the port is left alone. Raises
        ReadinessTimeout if it never becomes ready.
        """
        self.console.info("Starting PostgreSQL database (via Docker)...")
        if self.containers.start(self.database) == StartOutcome.ALREADY_RUNNING:
            return
        self.containers.wait_ready(self.database, readiness_policy(self.settings))

    def _settle(self) -> None:
        if self.settings.postgres_settle_seconds > 0:
            self.sleep(self.settings.postgres_settle_seconds)

    def start_all(self) -> List[str]:
        """Start the database, then each dependent in order. Returns the names that failed."""
        self.console.info("Starting all services in development mode...")
        self._ensure_logs_dir()
        self.start_database()
        self._settle()

        failed = []
        for name in DEV_START_ORDER:
            service = self.services[name]
            try:
                self.processes.start(service)
            except SynapticError as e:
                self.console.error(str(e))
                self.console.warning(f"{service.label} failed to start")
                failed.append(name)

        self.console.line()
        self.console.success("Development environment started!")
        self.print_urls()
        return failed

    def start_one(self, name: str) -> None:
        """Start a single service, bringing up the database first when it needs one."""
        service = self.services[name]
        if service.kind == ServiceKind.CONTAINER:
            self.start_database()
            return
        self._ensure_logs_dir()
        if service.requires_database:
            self.start_database()
            self._settle()
        self.processes.start(service)

    def stop_all(self) -> None:
        self.console.info("Stopping all development services...")
        for name in DEV_START_ORDER:
            self.processes.stop(self.services[name])
        try:
            self.containers.stop(self.database)
        except PreconditionFailure as e:
            logger.debug("Could not stop database container: %s", e)
        self.console.success("All development services stopped")

    def restart(self) -> List[str]:
        self.stop_all()
        return self.start_all()

    def state_of(self, service: ServiceDescriptor) -> ServiceState:
        if service.kind == ServiceKind.CONTAINER:
            return ServiceState(
                service_name=service.name,
                running=self.containers.port_in_use(service.port),
            )
        return self.processes.status(service)

    def status(self) -> List[ServiceState]:
        self.console.info("Development Services Status:")
        self.console.line()
        states = []
        for name in (*DEV_START_ORDER, DATABASE):
            service = self.services[name]
            state = self.state_of(service)
            states.append(state)
            if state.running:
                suffix = f" (PID: {state.pid})" if state.pid else ""
                self.console.success(f"{service.display}: Running{suffix}")
            else:
                self.console.error(f"{service.display}: Not running")
        running = sum(1 for state in states if state.running)
        self.console.line()
        self.console.info(f"Total: {running}/{len(states)} services running")
        return states

    def health_report(self):
        return self.health.report(self.services[name] for name in (*DEV_START_ORDER, DATABASE))

    def logs(self, name: Optional[str] = None) -> int:
        """Follow development log files (all of them, or one service)."""
        if name:
            paths = [self.settings.logs_path / f'{name}.log']
        else:
            paths = sorted(self.settings.logs_path.glob('*.log'))
        paths = [path for path in paths if path.exists()]
        if not paths:
            raise PreconditionFailure(f"No log files found in {self.settings.logs_path}")
        return self.processes.runner.interactive(['tail', '-f', *map(str, paths)])

    def install(self) -> None:
        self.installer.install_all(self.services[name] for name in DEV_START_ORDER)

    def clean(self, assume_yes: bool = False) -> bool:
        """Stop everything and delete the logs directory after confirmation."""
        if not self.console.confirm(
            "This will stop all services and clean up development files. Continue?",
            assume_yes=assume_yes,
        ):
            self.console.info("Cleanup cancelled")
            return False
        self.stop_all()
        shutil.rmtree(self.settings.logs_path, ignore_errors=True)
        self.console.success("Development environment cleaned up")
        return True

    def print_urls(self) -> None:
        self.console.line()
        self.console.line("🌐 Service URLs:")
        for name in DEV_START_ORDER:
            service = self.services[name]
            self.console.line(f"  • {service.label}: http://localhost:{service.port}")
        self.console.line(f"  • PostgreSQL: localhost:{self.database.port}")
        self.console.line()
        self.console.line(f"📊 View logs: tail -f {self.settings.logs_dir}/[service].log")


class DockerStack:
    """Production mode: the whole stack is a compose project."""

    def __init__(
        self,
        services: Dict[str, ServiceDescriptor],
        compose: ComposeClient,
        docker: DockerClient,
        health: HealthReporter,
        console: Console,
    ):
        self.services = services
        self.compose = compose
        self.docker = docker
        self.health = health
        self.console = console

    def _require(self, result, what: str) -> None:
        if result.returncode != 0:
            raise PreconditionFailure(f"{what} failed (exit {result.returncode})")

    def start(self) -> None:
        self.console.info("Starting Synaptic services with Docker...")
        self._require(self.compose.up(), "docker compose up")
        self.console.success("Services started. Use 'synaptic docker ps' to check status.")

    def stop(self) -> None:
        self.console.info("Stopping Synaptic services...")
        self._require(self.compose.down(), "docker compose down")
        self.console.success("Services stopped.")

    def restart(self) -> None:
        self.console.info("Restarting Synaptic services...")
        self._require(self.compose.restart(), "docker compose restart")
        self.console.success("Services restarted.")

    def logs(self, service: Optional[str] = None) -> int:
        if service:
            self.console.info(f"Showing logs for {service}...")
        else:
            self.console.info("Showing logs for all services...")
        return self.compose.logs(service)

    def status(self) -> int:
        self.console.info("Service Status:")
        return self.compose.ps()

    def health_report(self):
        return self.health.report(self.services.values())

    def shell(self, service: Optional[str]) -> int:
        if not service:
            names = ", ".join(self.services)
            raise PreconditionFailure(f"Please specify a service: {names}")
        self.console.info(f"Opening shell in {service}...")
        return self.compose.shell(service)

    def clean(self, assume_yes: bool = False) -> bool:
        if not self.console.confirm(
            "This will remove all containers, volumes, and images. Continue?",
            assume_yes=assume_yes,
        ):
            self.console.info("Cleanup cancelled.")
            return False
        self.console.info("Cleaning up Synaptic environment...")
        self.compose.down(volumes=True, remove_images=True)
        self.docker.system_prune()
        self.console.success("Cleanup completed.")
        return True
