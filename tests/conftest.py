"""Shared fixtures for the stack tooling tests.

Provides a recording CommandRunner fake, a fake clock whose sleep advances
time, and settings rooted in a temporary directory.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from synaptic.config import Settings
from synaptic.console import Console


def make_result(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    """Create a mock subprocess.CompletedProcess."""
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


# ---------------------------------------------------------------------------
# Command runner fake
# ---------------------------------------------------------------------------

class FakeRunner:
    """Records every command and answers from scripted responses.

    ``respond("compose up", returncode=1)`` makes any command whose joined
    argv contains "compose up" return exit code 1. Later responses win.
    Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls = []
        self.interactive_calls = []
        self.spawned = []
        self.responses = []
        self.next_pid = 4242

    def respond(self, fragment: str, returncode: int = 0, stdout: str = "", stderr: str = ""):
        self.responses.append((fragment, make_result(returncode, stdout, stderr)))

    def _lookup(self, cmd):
        joined = " ".join(cmd)
        for fragment, result in reversed(self.responses):
            if fragment in joined:
                return result
        return make_result()

    def run(self, cmd, cwd=None, env=None, capture=True, timeout=None):
        self.calls.append({"cmd": list(cmd), "cwd": cwd, "env": env})
        return self._lookup(cmd)

    def interactive(self, cmd, cwd=None, env=None):
        self.interactive_calls.append(list(cmd))
        return self._lookup(cmd).returncode

    def spawn(self, cmd, cwd, log_path, env=None):
        pid = self.next_pid
        self.next_pid += 1
        self.spawned.append({"cmd": list(cmd), "cwd": cwd, "log_path": log_path, "env": env, "pid": pid})
        return pid

    def available(self, cmd):
        return self._lookup(cmd).returncode == 0

    def commands(self):
        """Every run() argv, joined, in call order."""
        return [" ".join(call["cmd"]) for call in self.calls]

    def ran(self, fragment: str) -> bool:
        return any(fragment in command for command in self.commands())


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def console():
    """Console with color disabled."""
    return Console(color_enabled=False)


@pytest.fixture
def settings(tmp_path):
    """Settings rooted at tmp_path/synaptic with sibling service checkouts."""
    root = tmp_path / "synaptic"
    root.mkdir()
    return Settings(
        _env_file=None,
        root_dir=root,
        services_root=Path(".."),
        compose_command=["docker", "compose"],
    )


@pytest.fixture
def make_checkout(settings):
    """Factory: create a sibling service checkout, optionally with build.sh."""
    def _factory(directory: str, build_script: bool = False) -> Path:
        path = settings.service_path(directory)
        path.mkdir(parents=True, exist_ok=True)
        if build_script:
            (path / "build.sh").write_text("#!/bin/bash\n")
        return path
    return _factory
