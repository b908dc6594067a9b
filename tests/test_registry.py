"""Tests for the persisted lifecycle registry."""

import json

from synaptic.core.registry import LifecycleRegistry
from synaptic.models import ProcessHandle


def _handle(registry: LifecycleRegistry, service: str = "ocr", pid: int = 1234) -> ProcessHandle:
    return ProcessHandle(service_name=service, pid=pid, log_file_path=registry.log_file(service))


class TestRegistryFiles:

    def test_record_leaves_no_staging_files(self, tmp_path):
        registry = LifecycleRegistry(tmp_path)
        registry.record(_handle(registry))

        assert sorted(p.name for p in tmp_path.iterdir()) == ["ocr.pid", "registry.json", "registry.lock"]

    def test_record_replaces_existing_pid_file(self, tmp_path):
        registry = LifecycleRegistry(tmp_path)
        registry.pid_file("ocr").write_text("1\n")

        registry.record(_handle(registry, pid=2))

        assert registry.pid_file("ocr").read_text() == "2\n"


class TestLifecycleRegistry:

    def test_empty_when_no_file(self, tmp_path):
        registry = LifecycleRegistry(tmp_path)
        assert registry.all() == {}
        assert registry.get("ocr") is None

    def test_record_persists_handle_and_pid_file(self, tmp_path):
        registry = LifecycleRegistry(tmp_path)
        registry.record(_handle(registry))

        reloaded = LifecycleRegistry(tmp_path).get("ocr")
        assert reloaded.pid == 1234
        assert reloaded.log_file_path == tmp_path / "ocr.log"
        assert (tmp_path / "ocr.pid").read_text().strip() == "1234"

    def test_record_overwrites_previous_handle(self, tmp_path):
        registry = LifecycleRegistry(tmp_path)
        registry.record(_handle(registry, pid=1))
        registry.record(_handle(registry, pid=2))

        assert registry.get("ocr").pid == 2
        assert (tmp_path / "ocr.pid").read_text().strip() == "2"

    def test_multiple_services_are_kept_apart(self, tmp_path):
        registry = LifecycleRegistry(tmp_path)
        registry.record(_handle(registry, "ocr", 10))
        registry.record(_handle(registry, "doc-db", 20))

        assert set(registry.all()) == {"ocr", "doc-db"}

    def test_remove_drops_handle_and_pid_file(self, tmp_path):
        registry = LifecycleRegistry(tmp_path)
        registry.record(_handle(registry))

        removed = registry.remove("ocr")

        assert removed.pid == 1234
        assert registry.get("ocr") is None
        assert not (tmp_path / "ocr.pid").exists()

    def test_remove_unknown_service_is_noop(self, tmp_path):
        registry = LifecycleRegistry(tmp_path)
        assert registry.remove("ocr") is None
        assert registry.remove("ocr") is None

    def test_corrupt_file_is_treated_as_empty(self, tmp_path):
        (tmp_path / "registry.json").write_text("{not json")
        registry = LifecycleRegistry(tmp_path)

        assert registry.all() == {}
        registry.record(_handle(registry))
        assert json.loads((tmp_path / "registry.json").read_text())["ocr"]["pid"] == 1234

    def test_invalid_entry_is_treated_as_empty(self, tmp_path):
        (tmp_path / "registry.json").write_text(json.dumps({"ocr": {"pid": "nope"}}))
        assert LifecycleRegistry(tmp_path).all() == {}

    def test_creates_directory_on_first_record(self, tmp_path):
        registry = LifecycleRegistry(tmp_path / "logs")
        registry.record(_handle(registry))
        assert (tmp_path / "logs" / "registry.json").exists()
