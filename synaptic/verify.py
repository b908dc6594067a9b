"""Pre-flight checks for the container stack."""

import logging

from synaptic.config import Settings
from synaptic.console import Console
from synaptic.exceptions import PreconditionFailure
from synaptic.runtime import ComposeClient, DockerClient
from synaptic.services import BUILD_SCRIPT_ORDER, SERVICE_DIRECTORIES

logger = logging.getLogger(__name__)


class SetupVerifier:
    def __init__(
        self,
        settings: Settings,
        docker: DockerClient,
        compose: ComposeClient,
        console: Console,
    ):
        self.settings = settings
        self.docker = docker
        self.compose = compose
        self.console = console

    def missing_build_scripts(self) -> list[str]:
        missing = []
        for service in BUILD_SCRIPT_ORDER:
            directory = SERVICE_DIRECTORIES[service]
            if (self.settings.service_path(directory) / "build.sh").is_file():
                self.console.success(f"Build script exists for {directory}")
            else:
                self.console.error(f"Build script missing for {directory}")
                missing.append(directory)
        return missing

    def run(self) -> list[str]:
        """Check daemon, build scripts and compose file.

        A stopped daemon or an invalid compose file raises PreconditionFailure.
        Missing build scripts are reported and returned.
        """
        self.console.line(f"🔍 Verifying {self.settings.project_name} setup...")
        self.console.line()
        if not self.docker.daemon_running():
            raise PreconditionFailure("Docker is not running. Please start Docker first.")
        self.console.success("Docker is running")

        self.console.line()
        self.console.line("🔧 Checking build scripts...")
        missing = self.missing_build_scripts()

        self.console.line()
        self.console.line(f"📋 Validating {self.settings.compose_file}...")
        result = self.compose.config()
        if result.returncode != 0:
            detail = (result.stderr or "").strip()
            raise PreconditionFailure(
                f"{self.settings.compose_file} has errors" + (f"\n{detail}" if detail else "")
            )
        self.console.success(f"{self.settings.compose_file} is valid")

        self.console.line()
        self.console.line(f"🐳 Current {self.settings.project_name} images:")
        images = self.docker.images(f"{self.settings.project_name}-")
        for image in images:
            self.console.line(f"  {image}")
        if not images:
            self.console.line("No images found yet")
        return missing
