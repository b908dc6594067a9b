"""Service catalog for development and container modes."""

from synaptic.config import Settings
from synaptic.models import HealthCheck, ProbeKind, ServiceDescriptor, ServiceKind

DATABASE = "postgres"

# Dependents start in this order once the database is ready
DEV_START_ORDER = ("ocr", "mcp-server", "doc-db", "frontend")

# Images are built in this order by the deploy pipeline
BUILD_ORDER = ("agents", "mcp-server", "ocr", "doc-db")

# build-all.sh order: no-dependency services first
BUILD_SCRIPT_ORDER = ("ocr", "mcp-server", "agents")

SERVICE_DIRECTORIES = {
    "frontend": "agents",
    "agents": "agents",
    "mcp-server": "a-tier-mcp-server",
    "ocr": "ocr",
    "doc-db": "doc-db",
}


def _pg_isready(settings: Settings) -> HealthCheck:
    return HealthCheck(
        kind=ProbeKind.COMMAND,
        command=("pg_isready", "-U", settings.db_user),
        exec_service=DATABASE,
    )


def dev_services(settings: Settings) -> dict[str, ServiceDescriptor]:
    """Descriptors for development mode, keyed by service name."""
    flask_env = {"FLASK_ENV": "development", "FLASK_DEBUG": "1"}
    services = [
        ServiceDescriptor(
            name="frontend",
            label="Frontend",
            kind=ServiceKind.PROCESS,
            port=settings.dev_frontend_port,
            directory=SERVICE_DIRECTORIES["frontend"],
            start_command=("npm", "run", "start"),
            node_project=True,
            health_check=HealthCheck(
                kind=ProbeKind.HTTP,
                url=f"http://localhost:{settings.dev_frontend_port}",
            ),
        ),
        ServiceDescriptor(
            name="mcp-server",
            label="MCP Server",
            kind=ServiceKind.PROCESS,
            port=settings.dev_mcp_port,
            directory=SERVICE_DIRECTORIES["mcp-server"],
            start_command=("python", "flask_api.py"),
            requirements_file="requirements.txt",
            requires_database=True,
            env={
                **flask_env,
                "DB_HOST": "localhost",
                "DB_PORT": str(settings.dev_postgres_port),
                "DB_NAME": settings.db_name,
                "DB_USER": settings.db_user,
                "DB_PASSWORD": settings.db_password,
            },
            health_check=HealthCheck(
                kind=ProbeKind.HTTP,
                url=f"http://localhost:{settings.dev_mcp_port}/health",
            ),
        ),
        ServiceDescriptor(
            name="ocr",
            label="OCR Service",
            kind=ServiceKind.PROCESS,
            port=settings.dev_ocr_port,
            directory=SERVICE_DIRECTORIES["ocr"],
            start_command=("python", "ocr_api_app/run.py"),
            requirements_file="ocr_api_app/requirements.txt",
            env=dict(flask_env),
            health_check=HealthCheck(
                kind=ProbeKind.HTTP,
                url=f"http://localhost:{settings.dev_ocr_port}",
            ),
        ),
        ServiceDescriptor(
            name="doc-db",
            label="Doc-DB RAG",
            kind=ServiceKind.PROCESS,
            port=settings.dev_doc_db_port,
            directory=SERVICE_DIRECTORIES["doc-db"],
            start_command=("python", "advanced_rag_service.py"),
            requirements_file="requirements.txt",
            requires_database=True,
            env={
                **flask_env,
                "CHROMADB_PATH": settings.chromadb_path
                or str(settings.service_path(SERVICE_DIRECTORIES["doc-db"])),
                "CORS_ORIGINS": settings.cors_origins,
            },
            health_check=HealthCheck(
                kind=ProbeKind.HTTP,
                url=f"http://localhost:{settings.dev_doc_db_port}/health",
            ),
        ),
        ServiceDescriptor(
            name=DATABASE,
            label="PostgreSQL",
            kind=ServiceKind.CONTAINER,
            port=settings.dev_postgres_port,
            health_check=_pg_isready(settings),
        ),
    ]
    return {service.name: service for service in services}


def docker_services(settings: Settings) -> dict[str, ServiceDescriptor]:
    """Descriptors for the production compose stack, keyed by service name."""
    services = [
        ServiceDescriptor(
            name="agents",
            label="Frontend",
            kind=ServiceKind.CONTAINER,
            port=settings.frontend_port,
            directory=SERVICE_DIRECTORIES["agents"],
            health_check=HealthCheck(
                kind=ProbeKind.HTTP,
                url=f"http://localhost:{settings.frontend_port}",
            ),
        ),
        ServiceDescriptor(
            name="doc-db",
            label="Doc-DB RAG",
            kind=ServiceKind.CONTAINER,
            port=settings.doc_db_port,
            directory=SERVICE_DIRECTORIES["doc-db"],
            requires_database=True,
            health_check=HealthCheck(
                kind=ProbeKind.HTTP,
                url=f"http://localhost:{settings.doc_db_port}/health",
            ),
        ),
        ServiceDescriptor(
            name="mcp-server",
            label="MCP Server",
            kind=ServiceKind.CONTAINER,
            port=settings.mcp_port,
            directory=SERVICE_DIRECTORIES["mcp-server"],
            requires_database=True,
            health_check=HealthCheck(
                kind=ProbeKind.HTTP,
                url=f"http://localhost:{settings.mcp_port}/health",
            ),
        ),
        ServiceDescriptor(
            name="ocr",
            label="OCR Service",
            kind=ServiceKind.CONTAINER,
            port=settings.ocr_port,
            directory=SERVICE_DIRECTORIES["ocr"],
            health_check=HealthCheck(
                kind=ProbeKind.HTTP,
                url=f"http://localhost:{settings.ocr_port}",
            ),
        ),
        ServiceDescriptor(
            name=DATABASE,
            label="PostgreSQL",
            kind=ServiceKind.CONTAINER,
            port=settings.postgres_port,
            health_check=_pg_isready(settings),
        ),
    ]
    return {service.name: service for service in services}
