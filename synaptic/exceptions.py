"""Operational exceptions for the Synaptic stack tooling."""


class SynapticError(Exception):
    """Base exception for stack operations."""

    pass


class PreconditionFailure(SynapticError):
    """Raised when a required directory, script, file or tool is missing."""

    pass


class PortConflict(SynapticError):
    """Raised when a target port is already bound.

    Lifecycle starts treat this as "already running" rather than an error.
    """

    def __init__(self, service: str, port: int):
        super().__init__(f"Port {port} already in use ({service})")
        self.service = service
        self.port = port


class ReadinessTimeout(SynapticError):
    """Raised when a dependency does not become ready within the retry budget."""

    def __init__(self, target: str, attempts: int):
        super().__init__(f"{target} did not become ready after {attempts} attempts")
        self.target = target
        self.attempts = attempts


class BuildFailure(SynapticError):
    """Raised when an image build fails. Aborts the whole pipeline."""

    def __init__(self, service: str, reason: str = ""):
        message = f"Failed to build {service}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.service = service


class DeployFailure(SynapticError):
    """Raised when the compose stack cannot be brought up."""

    pass


class SchemaInitFailure(SynapticError):
    """Raised when the database schema step cannot run at all."""

    pass


class HealthCheckFailure(SynapticError):
    """Raised by a probe that could not reach its target. Never fatal."""

    pass


class LockHeld(SynapticError):
    """Raised when another invocation holds the stack lock."""

    def __init__(self, lock_path, owner_pid: int | None = None):
        if owner_pid:
            message = f"Another synaptic command is already running (PID {owner_pid})"
        else:
            message = "Another synaptic command is already running"
        super().__init__(f"{message}. If this is stale, delete {lock_path} and retry.")
        self.lock_path = lock_path
        self.owner_pid = owner_pid
