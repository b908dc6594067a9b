"""Start, stop and query individual services.

ProcessManager runs development services as detached OS processes tracked in
the lifecycle registry. ContainerManager runs services through Docker Compose
and asks the container runtime for their state.
"""

import logging
import os
import platform
import signal
import time
from enum import Enum
from typing import Callable

from synaptic.config import Settings
from synaptic.console import Console
from synaptic.core.ports import is_port_in_use, pid_alive
from synaptic.core.readiness import ReadinessPoller, RetryPolicy
from synaptic.core.registry import LifecycleRegistry
from synaptic.exceptions import PortConflict, PreconditionFailure
from synaptic.installer import DependencyInstaller
from synaptic.models import ProcessHandle, ServiceDescriptor, ServiceState
from synaptic.runtime import CommandRunner, ComposeClient

logger = logging.getLogger(__name__)

STOP_POLL_INTERVAL = 0.2


class StartOutcome(str, Enum):
    STARTED = "started"
    ALREADY_RUNNING = "already_running"


def claim_port(service: ServiceDescriptor, port_in_use: Callable[[int], bool]) -> None:
    """Raise PortConflict if something already listens on the service port."""
    if port_in_use(service.port):
        raise PortConflict(service.name, service.port)


class ProcessManager:
    """Lifecycle of development-mode processes."""

    def __init__(
        self,
        settings: Settings,
        registry: LifecycleRegistry,
        runner: CommandRunner,
        installer: DependencyInstaller,
        console: Console,
        port_in_use: Callable[[int], bool] = is_port_in_use,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.registry = registry
        self.runner = runner
        self.installer = installer
        self.console = console
        self.port_in_use = port_in_use
        self.sleep = sleep
        self.clock = clock

    def _command_for(self, service: ServiceDescriptor) -> list[str]:
        """Resolve the launch argv, preparing venv or node_modules on demand."""
        cmd = list(service.start_command)
        if service.requirements_file:
            python = self.installer.ensure_python_env(service)
            if cmd and cmd[0] == 'python':
                cmd[0] = str(python)
        elif service.node_project:
            self.installer.ensure_node_modules(service)
        return cmd

    def start(self, service: ServiceDescriptor) -> StartOutcome:
        """Launch a service unless its port is already bound."""
        self.console.info(f"Starting {service.label} in development mode...")

        try:
            claim_port(service, self.port_in_use)
        except PortConflict as e:
            self.console.warning(f"{e}; treating {service.label} as running")
            return StartOutcome.ALREADY_RUNNING

        directory = self.installer.service_dir(service)
        if not directory.is_dir():
            raise PreconditionFailure(f"{service.label} directory not found: {directory}")

        cmd = self._command_for(service)
        log_path = self.registry.log_file(service.name)
        self.console.info(f"Starting {service.label} on http://localhost:{service.port}")
        pid = self.runner.spawn(cmd, cwd=directory, log_path=log_path, env=service.env)
        self.registry.record(
            ProcessHandle(service_name=service.name, pid=pid, log_file_path=log_path)
        )
        self.console.success(f"{service.label} started in development mode (PID: {pid})")
        return StartOutcome.STARTED

    def stop(self, service: ServiceDescriptor) -> bool:
        """Terminate a recorded process and drop its record.

        Returns True if a live process was signalled. Without a record this is
        a no-op, so repeated stops are harmless.
        """
        handle = self.registry.get(service.name)
        if handle is None:
            logger.debug("%s has no lifecycle record", service.name)
            return False

        terminated = False
        try:
            if pid_alive(handle.pid):
                self.console.info(f"Stopping {service.name} (PID: {handle.pid})")
                self._terminate(handle.pid)
                terminated = True
        finally:
            self.registry.remove(service.name)
        return terminated

    def _signal(self, pid: int, sig: int) -> None:
        try:
            if platform.system() != 'Windows':
                os.killpg(pid, sig)
            else:
                os.kill(pid, sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            try:
                os.kill(pid, sig)
            except (ProcessLookupError, PermissionError) as e:
                self.console.warning(f"Could not signal PID {pid}: {e}")

    def _reap(self, pid: int) -> None:
        # Children spawned by this same invocation linger as zombies until reaped
        try:
            os.waitpid(pid, os.WNOHANG)
        except (ChildProcessError, OSError, AttributeError):
            pass

    def _terminate(self, pid: int) -> None:
        """SIGTERM the process group, SIGKILL it after the shutdown timeout."""
        self._signal(pid, signal.SIGTERM)
        deadline = self.clock() + self.settings.shutdown_timeout
        while self.clock() < deadline:
            self._reap(pid)
            if not pid_alive(pid):
                return
            self.sleep(STOP_POLL_INTERVAL)
        self.console.warning(f"PID {pid} ignored SIGTERM, force killing...")
        self._signal(pid, getattr(signal, 'SIGKILL', signal.SIGTERM))
        self._reap(pid)

    def status(self, service: ServiceDescriptor) -> ServiceState:
        handle = self.registry.get(service.name)
        if handle is not None and pid_alive(handle.pid):
            return ServiceState(service_name=service.name, running=True, pid=handle.pid)
        return ServiceState(service_name=service.name, running=False)


class ContainerManager:
    """Lifecycle of compose-managed services."""

    def __init__(
        self,
        compose: ComposeClient,
        poller: ReadinessPoller,
        console: Console,
        port_in_use: Callable[[int], bool] = is_port_in_use,
    ):
        self.compose = compose
        self.poller = poller
        self.console = console
        self.port_in_use = port_in_use

    def start(self, service: ServiceDescriptor) -> StartOutcome:
        try:
            claim_port(service, self.port_in_use)
        except PortConflict:
            self.console.success(f"{service.label} already running on port {service.port}")
            return StartOutcome.ALREADY_RUNNING
        result = self.compose.up(service.name)
        if result.returncode != 0:
            raise PreconditionFailure(f"docker compose up {service.name} failed")
        return StartOutcome.STARTED

    def is_ready(self, service: ServiceDescriptor) -> bool:
        check = service.health_check
        if check.command and check.exec_service:
            return self.compose.exec(check.exec_service, check.command).returncode == 0
        return self.port_in_use(service.port)

    def wait_ready(self, service: ServiceDescriptor, policy: RetryPolicy) -> None:
        """Block until ready; raises ReadinessTimeout when the budget runs out."""
        self.poller.require(service.label, lambda: self.is_ready(service), policy)

    def stop(self, service: ServiceDescriptor) -> bool:
        result = self.compose.down(service.name)
        return result.returncode == 0

    def status(self, service: ServiceDescriptor) -> ServiceState:
        return ServiceState(
            service_name=service.name,
            running=service.name in self.compose.running_services(),
        )
