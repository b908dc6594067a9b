"""One-shot health probes and the aggregated health report.

Purely observational: a probe that cannot reach its target yields an unhealthy
status, never an exception, and the report never fails the command.
"""

import logging
import subprocess
from datetime import datetime
from typing import Callable, Iterable, List, Optional

import httpx

from synaptic.console import Console
from synaptic.core.ports import is_port_in_use
from synaptic.exceptions import HealthCheckFailure, SynapticError
from synaptic.models import HealthCheck, HealthStatus, ProbeKind, ServiceDescriptor
from synaptic.runtime import ComposeClient

logger = logging.getLogger(__name__)


class HealthReporter:
    """Runs exactly one probe per service. No retries at this layer."""

    def __init__(
        self,
        console: Console,
        compose: Optional[ComposeClient] = None,
        timeout: float = 3.0,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.console = console
        self.compose = compose
        self.timeout = timeout
        self._http_client = http_client
        self.clock = clock

    def _http(self, check: HealthCheck) -> None:
        client = self._http_client or httpx.Client(timeout=self.timeout)
        try:
            # Any HTTP response means the service accepted the connection
            client.get(check.url)
        except httpx.HTTPError as e:
            raise HealthCheckFailure(f"{check.url}: {e.__class__.__name__}") from e
        finally:
            if self._http_client is None:
                client.close()

    def _tcp(self, check: HealthCheck) -> None:
        if not is_port_in_use(check.port, check.host):
            raise HealthCheckFailure(f"{check.host}:{check.port} refused connection")

    def _command(self, check: HealthCheck) -> None:
        if self.compose is None or not check.exec_service:
            raise HealthCheckFailure("no container runtime for command probe")
        try:
            result = self.compose.exec(check.exec_service, check.command, timeout=self.timeout * 2)
        except subprocess.TimeoutExpired as e:
            raise HealthCheckFailure(f"{' '.join(check.command)} timed out") from e
        if result.returncode != 0:
            raise HealthCheckFailure(f"{' '.join(check.command)} exited {result.returncode}")

    def check(self, service: ServiceDescriptor) -> HealthStatus:
        probe = {
            ProbeKind.HTTP: self._http,
            ProbeKind.TCP: self._tcp,
            ProbeKind.COMMAND: self._command,
        }[service.health_check.kind]
        try:
            probe(service.health_check)
        except SynapticError as e:
            logger.debug("%s unhealthy: %s", service.name, e)
            return HealthStatus(
                service_name=service.name, healthy=False, checked_at=self.clock(), detail=str(e)
            )
        return HealthStatus(service_name=service.name, healthy=True, checked_at=self.clock())

    def report(self, services: Iterable[ServiceDescriptor]) -> List[HealthStatus]:
        """Probe every service, print one line each and a summary."""
        self.console.info("Checking service health...")
        self.console.line()
        results = []
        for service in services:
            status = self.check(service)
            results.append(status)
            if status.healthy:
                self.console.success(f"{service.display}: Healthy")
            else:
                self.console.error(f"{service.display}: Not responding")
        healthy = sum(1 for status in results if status.healthy)
        self.console.line()
        self.console.info(f"Total: {healthy}/{len(results)} services healthy")
        return results
