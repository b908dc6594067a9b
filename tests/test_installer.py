"""Tests for per-service dependency installation.

All subprocess calls go through the fake runner; nothing is installed.
"""

import pytest

from synaptic.exceptions import PreconditionFailure
from synaptic.installer import DependencyInstaller, venv_python
from synaptic.services import DEV_START_ORDER, dev_services


@pytest.fixture
def installer(settings, runner, console):
    return DependencyInstaller(settings, runner, console)


class TestEnsurePythonEnv:

    def test_fresh_checkout_creates_venv_and_installs(self, installer, runner, settings, make_checkout):
        checkout = make_checkout("doc-db")

        python = installer.ensure_python_env(dev_services(settings)["doc-db"])

        assert python == venv_python(checkout)
        assert runner.commands() == [
            "python3 -m venv venv",
            f"{python} -m pip install -r requirements.txt",
        ]
        assert all(call["cwd"] == checkout for call in runner.calls)

    def test_force_reinstalls_into_existing_venv(self, installer, runner, settings, make_checkout):
        checkout = make_checkout("doc-db")
        venv_python(checkout).parent.mkdir(parents=True)
        venv_python(checkout).write_text("")

        installer.ensure_python_env(dev_services(settings)["doc-db"], force_install=True)

        assert len(runner.calls) == 1
        assert runner.ran("pip install -r requirements.txt")

    def test_pip_failure_reports_last_stderr_line(self, installer, runner, settings, make_checkout):
        make_checkout("doc-db")
        runner.respond("pip install", returncode=1, stderr="Collecting x\nERROR: No matching distribution\n")

        with pytest.raises(PreconditionFailure, match="No matching distribution"):
            installer.ensure_python_env(dev_services(settings)["doc-db"])

    def test_service_without_directory(self, installer, settings):
        with pytest.raises(PreconditionFailure, match="no source directory"):
            installer.service_dir(dev_services(settings)["postgres"])


class TestInstallAll:

    def test_skips_missing_checkouts(self, installer, runner, settings, make_checkout):
        make_checkout("agents")
        services = dev_services(settings)

        installer.install_all(services[name] for name in DEV_START_ORDER)

        assert runner.commands() == ["npm install"]

    def test_failure_does_not_stop_other_services(self, installer, runner, settings, make_checkout, capsys):
        for directory in ("ocr", "a-tier-mcp-server", "doc-db", "agents"):
            make_checkout(directory)
        runner.respond("ocr_api_app/requirements.txt", returncode=1, stderr="boom\n")
        services = dev_services(settings)

        installer.install_all(services[name] for name in DEV_START_ORDER)

        out = capsys.readouterr().out
        assert "boom" in out
        assert "MCP Server dependencies installed" in out
        assert "Frontend dependencies installed" in out
        assert runner.ran("npm install")
