"""Stack configuration."""

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Operational settings loaded from environment variables (SYNAPTIC_*)."""

    model_config = SettingsConfigDict(
        env_prefix="SYNAPTIC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    project_name: str = "synaptic"

    # Layout: the stack root holds docker-compose.yml and logs/, the service
    # checkouts live next to it.
    root_dir: Path = Path(".")
    services_root: Path = Path("..")
    compose_file: str = "docker-compose.yml"
    logs_dir: str = "logs"
    version_file: str = "version.txt"

    # None means auto-detect ("docker compose", then "docker-compose")
    compose_command: list[str] | None = None
    python_executable: str = "python3"

    # Development ports
    dev_frontend_port: int = 4200
    dev_mcp_port: int = 8000
    dev_ocr_port: int = 5000
    dev_doc_db_port: int = 8005
    dev_postgres_port: int = 5435

    # Container ports
    frontend_port: int = 8080
    mcp_port: int = 8090
    ocr_port: int = 5002
    doc_db_port: int = 8005
    postgres_port: int = 5435

    # Database
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_name: str = "ai_application"
    db_host: str = "postgres"
    db_internal_port: int = 5432
    db_schemas: list[str] = ["bank", "ai_models"]
    schema_files: list[str] = [
        "/app/db/01_bank_schema.sql",
        "/app/db/02_ai_models_schema.sql",
    ]
    data_files: list[str] = [
        "/app/db/03_bank_data.sql",
        "/app/db/04_ai_models_data.sql",
    ]
    schema_exec_service: str = "mcp-server"

    chromadb_path: str = ""
    cors_origins: str = "http://localhost:4200,http://localhost:8080"

    # Readiness polling
    readiness_max_attempts: int = 30
    readiness_delay: float = 2.0
    readiness_timeout: float | None = None
    postgres_settle_seconds: float = 3.0

    # Health probes
    health_timeout: float = 3.0

    # Process shutdown
    shutdown_timeout: float = 5.0

    # Deploy pipeline
    deploy_settle_seconds: float = 15.0
    deploy_min_running: int = 4
    image_retention_days: int = 7

    log_level: str = "info"

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        if self.readiness_max_attempts < 1:
            raise ValueError("SYNAPTIC_READINESS_MAX_ATTEMPTS must be at least 1")
        if self.readiness_delay < 0:
            raise ValueError("SYNAPTIC_READINESS_DELAY must not be negative")
        if self.deploy_min_running < 0:
            raise ValueError("SYNAPTIC_DEPLOY_MIN_RUNNING must not be negative")
        return self

    @property
    def logs_path(self) -> Path:
        return self.root_dir / self.logs_dir

    @property
    def compose_path(self) -> Path:
        return self.root_dir / self.compose_file

    def service_path(self, directory: str) -> Path:
        """Resolve a service checkout directory relative to the stack root."""
        return (self.root_dir / self.services_root / directory).resolve()


settings = Settings()
