"""Lifecycle registry: service name -> ProcessHandle, persisted under logs/.

registry.json is the source of truth. Each handle is mirrored to
``<service>.pid`` so operators can still ``kill $(cat logs/ocr.pid)``. Every
load/save runs under a scoped file lock so two invocations never interleave
a read-modify-write.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from synaptic.core.locking import scoped_lock
from synaptic.models import ProcessHandle

logger = logging.getLogger(__name__)

REGISTRY_FILE = 'registry.json'
LOCK_FILE = 'registry.lock'


class LifecycleRegistry:
    """Persisted mapping of development services to their process handles."""

    def __init__(self, directory: Path):
        self.directory = directory
        self.path = directory / REGISTRY_FILE
        self.lock_path = directory / LOCK_FILE

    def pid_file(self, service: str) -> Path:
        return self.directory / f'{service}.pid'

    def log_file(self, service: str) -> Path:
        return self.directory / f'{service}.log'

    def _replace(self, target: Path, content: str) -> None:
        # Readers holding no lock must never see a half-written file
        staging = target.with_name(f'.{target.name}.tmp')
        staging.write_text(content)
        staging.replace(target)

    def _load(self) -> Dict[str, ProcessHandle]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text())
            return {name: ProcessHandle.model_validate(data) for name, data in raw.items()}
        except (json.JSONDecodeError, OSError, ValidationError, AttributeError):
            logger.warning("Lifecycle registry %s is unreadable; treating it as empty", self.path)
            return {}

    def _save(self, handles: Dict[str, ProcessHandle]) -> None:
        payload = {name: handle.model_dump(mode='json') for name, handle in handles.items()}
        self._replace(self.path, json.dumps(payload, indent=2) + '\n')

    def all(self) -> Dict[str, ProcessHandle]:
        with scoped_lock(self.lock_path):
            return self._load()

    def get(self, service: str) -> Optional[ProcessHandle]:
        with scoped_lock(self.lock_path):
            return self._load().get(service)

    def record(self, handle: ProcessHandle) -> None:
        with scoped_lock(self.lock_path):
            handles = self._load()
            handles[handle.service_name] = handle
            self._save(handles)
            self._replace(self.pid_file(handle.service_name), f'{handle.pid}\n')

    def remove(self, service: str) -> Optional[ProcessHandle]:
        """Drop a handle and its PID file. Returns the removed handle, if any."""
        with scoped_lock(self.lock_path):
            handles = self._load()
            handle = handles.pop(service, None)
            if handle is not None:
                self._save(handles)
            self.pid_file(service).unlink(missing_ok=True)
            return handle
