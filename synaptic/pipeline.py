"""Image build and stack deploy.

A deploy walks BUILDING -> DEPLOYING -> AWAITING_DB -> SCHEMA_INIT ->
VERIFYING -> DONE. Any build failure, a failed ``up``, a database that never
becomes ready or a schema step that cannot run moves it straight to FAILED.
There is no resume: the operator re-runs the whole pipeline.
"""

import logging
import re
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional

from synaptic.config import Settings
from synaptic.console import Console
from synaptic.exceptions import BuildFailure, DeployFailure, PreconditionFailure, SynapticError
from synaptic.health import HealthReporter
from synaptic.lifecycle import ContainerManager
from synaptic.models import BuildArtifact, DeployResult, DeployState, ServiceDescriptor
from synaptic.runtime import CommandRunner, ComposeClient, DockerClient
from synaptic.schema import SchemaInitializer
from synaptic.services import BUILD_ORDER, BUILD_SCRIPT_ORDER, DATABASE, SERVICE_DIRECTORIES
from synaptic.stack import readiness_policy

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
DATE_TAG_RE = re.compile(r":(\d{4}-\d{2}-\d{2})")
RECHECK_DELAY = 5  # seconds before probing services individually


def write_version_file(settings: Settings, version: str) -> Path:
    path = settings.root_dir / settings.version_file
    path.write_text(f"{version}\n")
    return path


class BuildDeployPipeline:
    """Builds every image, then replaces the running compose stack."""

    def __init__(
        self,
        settings: Settings,
        services: Dict[str, ServiceDescriptor],
        docker: DockerClient,
        compose: ComposeClient,
        containers: ContainerManager,
        schema: SchemaInitializer,
        health: HealthReporter,
        console: Console,
        now: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.services = services
        self.docker = docker
        self.compose = compose
        self.containers = containers
        self.schema = schema
        self.health = health
        self.console = console
        self.now = now
        self.sleep = sleep
        self.state = DeployState.BUILDING
        self.history: List[DeployState] = [DeployState.BUILDING]

    def _transition(self, state: DeployState) -> None:
        logger.debug("deploy: %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def image_name(self, service: str) -> str:
        return f"{self.settings.project_name}-{service}"

    def artifact_for(self, service: str, built_at: datetime) -> BuildArtifact:
        image = self.image_name(service)
        return BuildArtifact(
            service_name=service,
            image_tag=f"{image}:{built_at.strftime(DATE_FORMAT)}",
            latest_tag=f"{image}:latest",
            timestamp_tag=f"{image}:{built_at.strftime(TIMESTAMP_FORMAT)}",
            built_at=built_at,
        )

    def build_service(self, service: str, built_at: datetime) -> BuildArtifact:
        path = self.settings.service_path(SERVICE_DIRECTORIES[service])
        if not path.is_dir():
            raise BuildFailure(service, f"service directory not found: {path}")

        self.console.info(f"Building {service} from {path}")
        artifact = self.artifact_for(service, built_at)
        result = self.docker.build(path, artifact.tags)
        if result.returncode != 0:
            raise BuildFailure(service, f"docker build exited {result.returncode}")
        self.console.success(f"Built {service} successfully")
        return artifact

    def build_all(self, built_at: datetime) -> List[BuildArtifact]:
        """Build every image in order. The first failure aborts the rest."""
        return [self.build_service(service, built_at) for service in BUILD_ORDER]

    def _bring_up(self, version: str) -> None:
        if not self.settings.compose_path.is_file():
            raise PreconditionFailure(f"{self.settings.compose_file} not found in {self.settings.root_dir}")
        self.compose.env["VERSION"] = version
        self.console.success(f"Updated {self.settings.compose_file} (using VERSION={version})")

        self.console.info("Deploying Docker Compose stack")
        if self.compose.down().returncode != 0:
            self.console.info("No existing stack to stop")
        if self.compose.up().returncode != 0:
            raise DeployFailure("Failed to deploy stack")

        self.console.info("Waiting for services to start...")
        self.sleep(self.settings.deploy_settle_seconds)

    def _verify(self, result: DeployResult) -> None:
        self.console.info("Checking service status...")
        result.running = len(self.compose.running_services())
        result.total = len(self.compose.services())
        result.quorum_met = result.running >= self.settings.deploy_min_running

        if result.quorum_met:
            self.console.success(
                f"Stack deployed successfully! ({result.running}/{result.total} services running)"
            )
            return
        self.console.warning(
            f"Some services may still be starting ({result.running}/{result.total} services up)"
        )
        self.console.info("Checking individual service health...")
        self.sleep(RECHECK_DELAY)
        self.health.report(self.services.values())

    def run(self, cleanup: bool = False) -> DeployResult:
        started = self.now()
        version = started.strftime(DATE_FORMAT)
        result = DeployResult(state=self.state, version=version)

        self.console.info(f"Starting {self.settings.project_name} build and deploy for {version}")
        self.console.info(f"Timestamp: {started.strftime(TIMESTAMP_FORMAT)}")
        try:
            result.artifacts = self.build_all(started)

            self._transition(DeployState.DEPLOYING)
            self._bring_up(version)

            self._transition(DeployState.AWAITING_DB)
            self.console.info("Setting up database schema...")
            self.containers.wait_ready(self.services[DATABASE], readiness_policy(self.settings))

            self._transition(DeployState.SCHEMA_INIT)
            self.schema.apply()
            self.schema.verify()

            self._transition(DeployState.VERIFYING)
            self._verify(result)
        except SynapticError as e:
            self._transition(DeployState.FAILED)
            result.state = self.state
            result.error = str(e)
            self.console.error(str(e))
            return result

        write_version_file(self.settings, version)
        if cleanup:
            self.cleanup_old_images(started)

        self._transition(DeployState.DONE)
        result.state = self.state
        self.console.line()
        self.console.success(f"🎉 {self.settings.project_name} deployment completed successfully!")
        return result

    def cleanup_old_images(self, today: Optional[datetime] = None) -> List[str]:
        """Remove date-tagged project images older than the retention window."""
        today = today or self.now()
        retention = self.settings.image_retention_days
        self.console.info(f"Cleaning up images older than {retention} days")
        cutoff = (today - timedelta(days=retention)).strftime(DATE_FORMAT)

        removed = []
        for image in self.docker.images(f"{self.settings.project_name}-"):
            match = DATE_TAG_RE.search(image)
            # ISO dates compare correctly as strings
            if match and match.group(1) < cutoff:
                self.console.info(f"Removing old image: {image}")
                if self.docker.remove_image(image):
                    removed.append(image)
        self.console.success("Image cleanup completed")
        return removed


class BuildScriptRunner:
    """Runs each service's own build.sh with a shared version."""

    def __init__(
        self,
        settings: Settings,
        runner: CommandRunner,
        docker: DockerClient,
        console: Console,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings
        self.runner = runner
        self.docker = docker
        self.console = console
        self.now = now

    def run(self, version: Optional[str] = None) -> str:
        version = version or self.now().strftime("%Y%m%d-%H%M%S")
        self.console.heading(f"🚀 Building all {self.settings.project_name} services")
        self.console.line(f"Version: {version}")
        self.console.line(f"Build Date: {self.now().strftime('%Y-%m-%dT%H:%M:%SZ')}")
        self.console.line()

        for service in BUILD_SCRIPT_ORDER:
            path = self.settings.service_path(SERVICE_DIRECTORIES[service])
            script = path / "build.sh"
            self.console.info(f"📦 Building {service}...")
            if not script.is_file():
                raise BuildFailure(service, f"build script not found at {script}")
            result = self.runner.run(["bash", str(script), version], cwd=path, capture=False)
            if result.returncode != 0:
                raise BuildFailure(service, f"build.sh exited {result.returncode}")
            self.console.success(f"{service} built successfully")

        self.console.success("🎉 All services built successfully!")
        images = self.docker.images(f"{self.settings.project_name}-")
        if images:
            self.console.line("Built images:")
            for image in images[:6]:
                self.console.line(f"  {image}")

        write_version_file(self.settings, version)
        self.console.success(f"Version {version} saved to {self.settings.version_file}")
        return version
