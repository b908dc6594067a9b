"""Thin wrappers around subprocess, Docker and Docker Compose.

Every command is an argument list. Nothing here builds shell strings, so
values passed to ``exec`` (credentials, paths, SQL) are never re-parsed by a
shell.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from synaptic.exceptions import PreconditionFailure

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 5  # seconds for version/availability probes


class CommandRunner:
    """Runs external commands. Tests replace this with a recording fake."""

    def run(
        self,
        cmd: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        capture: bool = True,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command to completion. A missing executable is a precondition failure."""
        logger.debug("run: %s (cwd=%s)", " ".join(cmd), cwd)
        try:
            return subprocess.run(
                list(cmd),
                cwd=str(cwd) if cwd else None,
                env=self._merge_env(env),
                capture_output=capture,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise PreconditionFailure(f"Command not found: {cmd[0]}") from e

    def interactive(
        self,
        cmd: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> int:
        """Run a command attached to the terminal and return its exit code."""
        logger.debug("interactive: %s", " ".join(cmd))
        try:
            return subprocess.run(
                list(cmd),
                cwd=str(cwd) if cwd else None,
                env=self._merge_env(env),
            ).returncode
        except FileNotFoundError as e:
            raise PreconditionFailure(f"Command not found: {cmd[0]}") from e
        except KeyboardInterrupt:
            return 0

    def spawn(
        self,
        cmd: Sequence[str],
        cwd: Path,
        log_path: Path,
        env: Optional[Dict[str, str]] = None,
    ) -> int:
        """Start a detached process in its own session, output appended to log_path.

        Returns the PID. The child outlives this command.
        """
        logger.debug("spawn: %s (cwd=%s, log=%s)", " ".join(cmd), cwd, log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, 'ab') as log_file:
            try:
                process = subprocess.Popen(
                    list(cmd),
                    cwd=str(cwd),
                    env=self._merge_env(env),
                    stdin=subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
            except FileNotFoundError as e:
                raise PreconditionFailure(f"Command not found: {cmd[0]}") from e
        return process.pid

    def available(self, cmd: Sequence[str]) -> bool:
        """True if the probe command exists and exits 0."""
        try:
            result = subprocess.run(list(cmd), capture_output=True, timeout=PROBE_TIMEOUT)
            return result.returncode == 0
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return False

    @staticmethod
    def _merge_env(env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if not env:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged


def detect_compose_command(runner: CommandRunner) -> List[str]:
    """Prefer the Compose v2 plugin, fall back to the standalone binary."""
    if runner.available(["docker", "compose", "version"]):
        return ["docker", "compose"]
    if runner.available(["docker-compose", "--version"]):
        return ["docker-compose"]
    raise PreconditionFailure(
        "Docker Compose not found\n"
        "    Fix: Install Docker Desktop or the docker-compose plugin"
    )


class ComposeClient:
    """Docker Compose operations scoped to one compose file."""

    def __init__(
        self,
        runner: CommandRunner,
        compose_file: Path,
        command: Optional[List[str]] = None,
    ):
        self.runner = runner
        self.compose_file = compose_file
        self._command = command
        self.env: Dict[str, str] = {}

    @property
    def command(self) -> List[str]:
        if self._command is None:
            self._command = detect_compose_command(self.runner)
        return self._command

    def _argv(self, *args: str) -> List[str]:
        return [*self.command, '-f', str(self.compose_file), *args]

    def _run(self, *args: str, capture: bool = True, timeout: Optional[float] = None):
        return self.runner.run(
            self._argv(*args),
            cwd=self.compose_file.parent,
            env=self.env or None,
            capture=capture,
            timeout=timeout,
        )

    def up(self, *services: str) -> subprocess.CompletedProcess:
        return self._run('up', '-d', *services)

    def down(
        self,
        *services: str,
        volumes: bool = False,
        remove_images: bool = False,
    ) -> subprocess.CompletedProcess:
        args = ['down']
        if volumes:
            args.append('-v')
        if remove_images:
            args.extend(['--rmi', 'all'])
        return self._run(*args, *services)

    def stop(self, *services: str) -> subprocess.CompletedProcess:
        return self._run('stop', *services)

    def restart(self) -> subprocess.CompletedProcess:
        return self._run('restart')

    def config(self) -> subprocess.CompletedProcess:
        return self._run('config', '--quiet')

    def ps(self) -> int:
        return self.runner.interactive(self._argv('ps'), cwd=self.compose_file.parent, env=self.env or None)

    def services(self) -> List[str]:
        result = self._run('config', '--services')
        if result.returncode != 0:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def running_services(self) -> List[str]:
        """Names of services with a running container."""
        result = self._run('ps', '--services', '--filter', 'status=running')
        if result.returncode != 0:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def logs(self, service: Optional[str] = None, follow: bool = True) -> int:
        args = ['logs']
        if follow:
            args.append('-f')
        if service:
            args.append(service)
        return self.runner.interactive(self._argv(*args), cwd=self.compose_file.parent, env=self.env or None)

    def exec(
        self,
        service: str,
        cmd: Sequence[str],
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command inside a running service container (no TTY)."""
        args = ['exec', '-T']
        for key, value in (env or {}).items():
            args.extend(['-e', f'{key}={value}'])
        return self._run(*args, service, *cmd, timeout=timeout)

    def shell(self, service: str) -> int:
        """Attach an interactive shell, trying bash first and then sh."""
        cwd = self.compose_file.parent
        code = self.runner.interactive(self._argv('exec', service, 'bash'), cwd=cwd, env=self.env or None)
        if code != 0:
            code = self.runner.interactive(self._argv('exec', service, 'sh'), cwd=cwd, env=self.env or None)
        return code


class DockerClient:
    """Plain docker CLI operations (images, builds, daemon checks)."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def daemon_running(self) -> bool:
        return self.runner.available(['docker', 'info'])

    def build(self, context: Path, tags: Sequence[str]) -> subprocess.CompletedProcess:
        cmd = ['docker', 'build']
        for tag in tags:
            cmd.extend(['-t', tag])
        cmd.append(str(context))
        return self.runner.run(cmd, capture=False)

    def images(self, prefix: str) -> List[str]:
        """repository:tag for every local image whose repository starts with prefix."""
        result = self.runner.run(['docker', 'images', '--format', '{{.Repository}}:{{.Tag}}'])
        if result.returncode != 0:
            return []
        return [
            line.strip() for line in result.stdout.splitlines()
            if line.strip().startswith(prefix)
        ]

    def remove_image(self, image: str) -> bool:
        return self.runner.run(['docker', 'rmi', image]).returncode == 0

    def system_prune(self) -> subprocess.CompletedProcess:
        return self.runner.run(['docker', 'system', 'prune', '-f'], capture=False)
