"""Database schema setup, executed inside the stack's containers.

All statements are argument lists handed to ``compose exec``; credentials
travel as ``-e`` environment entries rather than being spliced into a
shell script. Every step is safe to re-run: the database and schemas are
created only if missing and re-applied seed data may hit duplicate keys.
"""

import logging
import re
from typing import List, Optional

from synaptic.config import Settings
from synaptic.console import Console
from synaptic.exceptions import SchemaInitFailure
from synaptic.runtime import ComposeClient
from synaptic.services import DATABASE

logger = logging.getLogger(__name__)

TABLE_COUNT_SQL = (
    "SELECT COUNT(*) FROM information_schema.tables "
    "WHERE table_schema IN ({schemas});"
)


class SchemaInitializer:
    def __init__(self, settings: Settings, compose: ComposeClient, console: Console):
        self.settings = settings
        self.compose = compose
        self.console = console

    @property
    def _env(self) -> dict:
        return {
            "PGPASSWORD": self.settings.db_password,
            "DB_HOST": self.settings.db_host,
            "DB_PORT": str(self.settings.db_internal_port),
            "DB_USER": self.settings.db_user,
            "DB_NAME": self.settings.db_name,
        }

    def _connection_args(self) -> List[str]:
        return [
            "-h", self.settings.db_host,
            "-p", str(self.settings.db_internal_port),
            "-U", self.settings.db_user,
        ]

    def _exec(self, cmd: List[str]):
        return self.compose.exec(self.settings.schema_exec_service, cmd, env=self._env)

    def _psql(self, *args: str) -> List[str]:
        return ["psql", *self._connection_args(), "-d", self.settings.db_name, *args]

    def create_database_command(self) -> List[str]:
        return ["createdb", *self._connection_args(), self.settings.db_name]

    def create_schemas_command(self) -> List[str]:
        statements = " ".join(
            f"CREATE SCHEMA IF NOT EXISTS {schema};" for schema in self.settings.db_schemas
        )
        return self._psql("-c", statements)

    def apply_file_command(self, sql_file: str) -> List[str]:
        return self._psql("-f", sql_file)

    def _file_exists(self, path: str) -> bool:
        return self._exec(["test", "-f", path]).returncode == 0

    def apply(self) -> None:
        """Create the database and schemas and load schema and seed files.

        Raises SchemaInitFailure only when the exec container cannot run
        commands at all. Individual statement failures are reported and skipped.
        """
        self.console.info(
            f"Running database schema setup from {self.settings.schema_exec_service} container..."
        )
        if self._exec(["true"]).returncode != 0:
            raise SchemaInitFailure(
                f"Cannot execute commands in the {self.settings.schema_exec_service} container"
            )

        if self._exec(self.create_database_command()).returncode != 0:
            self.console.info("Database exists")
        if self._exec(self.create_schemas_command()).returncode != 0:
            self.console.warning("Schema creation reported errors")

        for sql_file in self.settings.schema_files:
            name = sql_file.rsplit("/", 1)[-1]
            if not self._file_exists(sql_file):
                self.console.warning(f"{sql_file} not found")
                continue
            self.console.info(f"Applying {name}...")
            if self._exec(self.apply_file_command(sql_file)).returncode != 0:
                self.console.warning(f"Failed to apply {name}")

        for sql_file in self.settings.data_files:
            name = sql_file.rsplit("/", 1)[-1]
            if not self._file_exists(sql_file):
                self.console.warning(f"{sql_file} not found")
                continue
            self.console.info(f"Applying {name} (ignoring duplicate key errors)...")
            if self._exec(self.apply_file_command(sql_file)).returncode != 0:
                self.console.info(f"Data already exists in {name}")

        self.console.success("Database schema setup completed successfully!")

    def table_count(self) -> Optional[int]:
        """Count tables in the managed schemas, or None if the query fails."""
        schemas = ", ".join(f"'{schema}'" for schema in self.settings.db_schemas)
        result = self.compose.exec(
            DATABASE,
            [
                "psql", "-U", self.settings.db_user, "-d", self.settings.db_name,
                "-t", "-A", "-c", TABLE_COUNT_SQL.format(schemas=schemas),
            ],
        )
        if result.returncode != 0:
            return None
        match = re.search(r"\d+", result.stdout or "")
        return int(match.group()) if match else None

    def verify(self) -> Optional[int]:
        self.console.info("Verifying database setup...")
        count = self.table_count()
        if count is None:
            self.console.warning("Database verification had issues, but services appear to be running")
        else:
            self.console.success(f"Database verification completed successfully! ({count} tables found)")
        return count
