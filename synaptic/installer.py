"""Per-service dependency installation (Python venvs and node_modules)."""

import logging
import platform
from pathlib import Path
from typing import Iterable

from synaptic.config import Settings
from synaptic.console import Console
from synaptic.exceptions import PreconditionFailure
from synaptic.models import ServiceDescriptor
from synaptic.runtime import CommandRunner

logger = logging.getLogger(__name__)

INSTALL_TIMEOUT = 900  # seconds per pip/npm invocation


def venv_python(service_dir: Path) -> Path:
    """Path of the interpreter inside a service's venv."""
    if platform.system() == 'Windows':
        return service_dir / 'venv' / 'Scripts' / 'python.exe'
    return service_dir / 'venv' / 'bin' / 'python'


class DependencyInstaller:
    """Prepares service checkouts so they can be started in development mode."""

    def __init__(self, settings: Settings, runner: CommandRunner, console: Console):
        self.settings = settings
        self.runner = runner
        self.console = console

    def service_dir(self, service: ServiceDescriptor) -> Path:
        if not service.directory:
            raise PreconditionFailure(f"{service.label} has no source directory")
        return self.settings.service_path(service.directory)

    def _check(self, result, what: str) -> None:
        if result.returncode != 0:
            lines = (result.stderr or '').strip().splitlines()
            suffix = f": {lines[-1]}" if lines else ''
            raise PreconditionFailure(f"{what} failed{suffix}")

    def ensure_python_env(self, service: ServiceDescriptor, force_install: bool = False) -> Path:
        """Create the service venv and install requirements when it is missing.

        Returns the venv interpreter.
        """
        directory = self.service_dir(service)
        python = venv_python(directory)
        fresh = not python.exists()
        if fresh:
            self.console.info(f"Creating virtual environment for {service.label}...")
            self._check(
                self.runner.run(
                    [self.settings.python_executable, '-m', 'venv', 'venv'],
                    cwd=directory,
                    timeout=INSTALL_TIMEOUT,
                ),
                f"Creating venv for {service.label}",
            )
        if (fresh or force_install) and service.requirements_file:
            self._check(
                self.runner.run(
                    [str(python), '-m', 'pip', 'install', '-r', service.requirements_file],
                    cwd=directory,
                    timeout=INSTALL_TIMEOUT,
                ),
                f"Installing {service.label} requirements",
            )
        return python

    def ensure_node_modules(self, service: ServiceDescriptor, force_install: bool = False) -> None:
        directory = self.service_dir(service)
        if force_install or not (directory / 'node_modules').is_dir():
            self.console.info(f"Installing {service.label} dependencies...")
            self._check(
                self.runner.run(['npm', 'install'], cwd=directory, timeout=INSTALL_TIMEOUT),
                f"npm install for {service.label}",
            )

    def install_all(self, services: Iterable[ServiceDescriptor]) -> None:
        """Install dependencies for every service whose checkout exists.

        Missing checkouts are skipped; an install failure is reported and the
        remaining services are still attempted.
        """
        self.console.info("Installing dependencies for all services...")
        for service in services:
            if not service.directory:
                continue
            directory = self.settings.service_path(service.directory)
            if not directory.is_dir():
                logger.debug("Skipping %s: %s not found", service.name, directory)
                continue
            try:
                if service.node_project:
                    self.ensure_node_modules(service, force_install=True)
                elif service.requirements_file:
                    self.console.info(f"Installing {service.label} dependencies...")
                    self.ensure_python_env(service, force_install=True)
                else:
                    continue
            except PreconditionFailure as e:
                self.console.error(str(e))
                continue
            self.console.success(f"{service.label} dependencies installed")
        self.console.success("All dependencies installed!")
