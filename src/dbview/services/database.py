"""Administrative database calls and dump restore for the dbview installer."""

from contextlib import contextmanager
from typing import Iterator, List, Optional

import psycopg
from psycopg import sql

from dbview.errors import InstallerError
from dbview.errors_catalog import actionable_error
from dbview.models import ConnectionDetails, RestoreOptions


class DatabaseService:
    """Creates and drops roles, databases, extensions and schemas, and restores dumps.

    Every call opens its own autocommit connection from the given
    ``ConnectionDetails``: ``CREATE DATABASE`` and ``DROP DATABASE`` cannot
    run inside a transaction block.
    """

    RESTORE_COMMAND = "pg_restore"

    def __init__(self, logger, command_runner, connect=psycopg.connect):
        self.logger = logger
        self.command_runner = command_runner
        self._connect_fn = connect

    @contextmanager
    def _connect(self, conn: ConnectionDetails) -> Iterator[psycopg.Connection]:
        self.logger.debug(
            "Connecting to %s@%s:%s/%s (sslmode=%s)",
            conn.username,
            conn.host,
            conn.port,
            conn.database,
            conn.ssl_mode,
        )
        connection = self._connect_fn(autocommit=True, **conn.conninfo_kwargs())
        try:
            yield connection
        finally:
            connection.close()

    def _execute(self, conn: ConnectionDetails, action: str, statement: sql.Composable):
        try:
            with self._connect(conn) as connection:
                connection.execute(statement)
        except psycopg.Error as exc:
            raise InstallerError(
                actionable_error("admin_call_failed", action=action, reason=str(exc).strip())
            ) from exc

    @staticmethod
    def _identifiers(names: List[str]) -> sql.Composed:
        return sql.SQL(", ").join(sql.Identifier(name) for name in names)

    def create_user(self, conn: ConnectionDetails, role: str, options: Optional[List[str]] = None):
        statement = sql.SQL("CREATE USER {}").format(sql.Identifier(role))
        if options:
            statement = sql.SQL(" ").join([statement, *(sql.SQL(option) for option in options)])
        self._execute(conn, f"create user '{role}'", statement)

    def grant_roles_to_user(self, conn: ConnectionDetails, grantee: str, roles: List[str]):
        statement = sql.SQL("GRANT {} TO {}").format(
            self._identifiers(roles),
            sql.Identifier(grantee),
        )
        self._execute(conn, f"grant {', '.join(roles)} to '{grantee}'", statement)

    def set_search_path_for_user(self, conn: ConnectionDetails, role: str, schemas: List[str]):
        statement = sql.SQL("ALTER ROLE {} SET search_path TO {}").format(
            sql.Identifier(role),
            self._identifiers(schemas),
        )
        self._execute(conn, f"set the search_path of '{role}'", statement)

    def create_new_database(self, conn: ConnectionDetails, name: str, options: List[str]):
        statement = sql.SQL("CREATE DATABASE {}").format(sql.Identifier(name))
        if options:
            statement = sql.SQL(" ").join([statement, *(sql.SQL(option) for option in options)])
        self._execute(conn, f"create database '{name}'", statement)

    def create_extensions_in_database(self, conn: ConnectionDetails, extensions: List[str]):
        try:
            with self._connect(conn) as connection:
                for extension in extensions:
                    self.logger.debug("Creating extension '%s' in '%s'", extension, conn.database)
                    connection.execute(
                        sql.SQL("CREATE EXTENSION {}").format(sql.Identifier(extension))
                    )
        except psycopg.Error as exc:
            raise InstallerError(
                actionable_error(
                    "admin_call_failed",
                    action=f"create extensions in '{conn.database}'",
                    reason=str(exc).strip(),
                )
            ) from exc

    def check_if_schema_exists(self, conn: ConnectionDetails, schema: str) -> bool:
        query = sql.SQL(
            "SELECT EXISTS (SELECT 1 FROM pg_catalog.pg_namespace WHERE nspname = {})"
        ).format(sql.Literal(schema))
        try:
            with self._connect(conn) as connection:
                row = connection.execute(query).fetchone()
        except psycopg.Error as exc:
            raise InstallerError(
                actionable_error(
                    "admin_call_failed",
                    action=f"check whether schema '{schema}' exists",
                    reason=str(exc).strip(),
                )
            ) from exc
        return bool(row and row[0])

    def create_schema(self, conn: ConnectionDetails, schema: str):
        statement = sql.SQL("CREATE SCHEMA {}").format(sql.Identifier(schema))
        self._execute(conn, f"create schema '{schema}'", statement)

    def drop_database(self, conn: ConnectionDetails, name: str):
        statement = sql.SQL("DROP DATABASE IF EXISTS {}").format(sql.Identifier(name))
        self._execute(conn, f"drop database '{name}'", statement)

    def drop_user(self, conn: ConnectionDetails, role: str):
        statement = sql.SQL("DROP USER IF EXISTS {}").format(sql.Identifier(role))
        self._execute(conn, f"drop user '{role}'", statement)

    def build_restore_command(
        self, conn: ConnectionDetails, dump_file: str, options: RestoreOptions
    ) -> List[str]:
        return [
            self.RESTORE_COMMAND,
            "--host",
            conn.host,
            "--port",
            str(conn.port),
            "--username",
            conn.username,
            "--dbname",
            conn.database,
            *options.custom_args,
            dump_file,
        ]

    def restore_dump_file(self, conn: ConnectionDetails, dump_file: str, options: RestoreOptions):
        cmd = self.build_restore_command(conn, dump_file, options)
        result = self.command_runner.run(
            cmd,
            check=False,
            capture_output=True,
            env=conn.libpq_env(),
        )
        if result.returncode == 0:
            return

        message = actionable_error(
            "restore_failed",
            dump_file=dump_file,
            database=conn.database,
            username=conn.username,
        )
        stderr_output = (result.stderr or "").strip()
        if stderr_output:
            raise InstallerError(f"{message}\n{stderr_output}")
        raise InstallerError(message)
