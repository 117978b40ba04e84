import subprocess

import psycopg
import pytest

from dbview.errors import InstallerError
from dbview.models import ConnectionDetails, RestoreOptions
from dbview.services.database import DatabaseService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None


class FakeCursor:
    def __init__(self, row):
        self.row = row

    def fetchone(self):
        return self.row


class FakeConnection:
    def __init__(self, owner):
        self.owner = owner
        self.closed = False

    def execute(self, statement):
        if self.owner.error is not None:
            raise self.owner.error
        self.owner.statements.append(repr(statement))
        return FakeCursor(self.owner.row)

    def close(self):
        self.closed = True


class FakeConnect:
    def __init__(self, row=None, error=None):
        self.row = row
        self.error = error
        self.statements = []
        self.connect_kwargs = []
        self.connections = []

    def __call__(self, **kwargs):
        self.connect_kwargs.append(kwargs)
        connection = FakeConnection(self)
        self.connections.append(connection)
        return connection


class FakeRunner:
    def __init__(self, returncode=0, stderr=""):
        self.returncode = returncode
        self.stderr = stderr
        self.calls = []

    def run(self, cmd, check=True, capture_output=False, env=None, timeout=None):
        self.calls.append({"cmd": cmd, "check": check, "env": env})
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr=self.stderr)


def _conn(**overrides) -> ConnectionDetails:
    values = {"username": "postgres", "host": "127.0.0.1", "database": "postgres"}
    values.update(overrides)
    return ConnectionDetails(**values)


def build_service(connect=None, runner=None):
    return DatabaseService(
        logger=DummyLogger(),
        command_runner=runner or FakeRunner(),
        connect=connect or FakeConnect(),
    )


def test_create_user_quotes_role_and_uses_autocommit_connection():
    connect = FakeConnect()
    service = build_service(connect=connect)

    service.create_user(_conn(password="pw", ssl_mode="require"), "u100")

    assert len(connect.statements) == 1
    assert "CREATE USER" in connect.statements[0]
    assert "Identifier('u100')" in connect.statements[0]
    assert connect.connect_kwargs[0] == {
        "autocommit": True,
        "host": "127.0.0.1",
        "port": 5432,
        "user": "postgres",
        "dbname": "postgres",
        "sslmode": "require",
        "password": "pw",
    }
    assert connect.connections[0].closed is True


def test_create_user_appends_options():
    connect = FakeConnect()
    service = build_service(connect=connect)

    service.create_user(_conn(), "dbview", ["CONNECTION LIMIT 5"])

    assert "CONNECTION LIMIT 5" in connect.statements[0]


def test_created_users_can_log_in_for_the_restore():
    connect = FakeConnect()
    service = build_service(connect=connect)

    service.create_user(_conn(), "u100", None)

    statement = connect.statements[0]
    assert "SQL('CREATE USER " in statement
    assert "CREATE ROLE" not in statement
    assert "NOLOGIN" not in statement


def test_grant_and_search_path_reference_every_role_and_schema():
    connect = FakeConnect()
    service = build_service(connect=connect)

    service.grant_roles_to_user(_conn(), "u100", ["dbview"])
    service.set_search_path_for_user(_conn(), "u100", ["u100", "public"])

    grant, search_path = connect.statements
    assert "GRANT" in grant and "Identifier('dbview')" in grant and "Identifier('u100')" in grant
    assert "ALTER ROLE" in search_path and "search_path" in search_path
    assert search_path.index("Identifier('u100')") < search_path.index("Identifier('public')")


def test_create_new_database_keeps_raw_options():
    connect = FakeConnect()
    service = build_service(connect=connect)

    service.create_new_database(_conn(), "umovme_dbview_db", ["OWNER dbview", "TEMPLATE template0"])

    statement = connect.statements[0]
    assert "CREATE DATABASE" in statement
    assert "Identifier('umovme_dbview_db')" in statement
    assert "OWNER dbview" in statement
    assert "TEMPLATE template0" in statement


def test_create_extensions_runs_one_statement_per_extension_in_one_connection():
    connect = FakeConnect()
    service = build_service(connect=connect)

    service.create_extensions_in_database(
        _conn(database="umovme_dbview_db"), ["hstore", "postgis"]
    )

    assert len(connect.connections) == 1
    assert connect.connect_kwargs[0]["dbname"] == "umovme_dbview_db"
    assert len(connect.statements) == 2
    assert "CREATE EXTENSION" in connect.statements[0]
    assert "Identifier('hstore')" in connect.statements[0]
    assert "Identifier('postgis')" in connect.statements[1]


@pytest.mark.parametrize("row, expected", [((True,), True), ((False,), False), (None, False)])
def test_check_if_schema_exists_reads_the_query_result(row, expected):
    connect = FakeConnect(row=row)
    service = build_service(connect=connect)

    assert service.check_if_schema_exists(_conn(), "dbview") is expected
    assert "pg_catalog.pg_namespace" in connect.statements[0]
    assert "nspname" in connect.statements[0]
    assert "information_schema" not in connect.statements[0]
    assert "Literal('dbview')" in connect.statements[0]


def test_drop_calls_tolerate_missing_objects():
    connect = FakeConnect()
    service = build_service(connect=connect)

    service.drop_database(_conn(), "umovme_dbview_db")
    service.drop_user(_conn(), "u100")

    assert "DROP DATABASE IF EXISTS" in connect.statements[0]
    assert "DROP USER IF EXISTS" in connect.statements[1]


def test_database_errors_are_wrapped_with_the_failed_action():
    connect = FakeConnect(error=psycopg.errors.DuplicateObject('role "u100" already exists'))
    service = build_service(connect=connect)

    with pytest.raises(InstallerError, match="Could not create user 'u100'") as error:
        service.create_user(_conn(), "u100")

    assert "already exists" in str(error.value)
    assert isinstance(error.value.__cause__, psycopg.Error)
    assert connect.connections[0].closed is True


def test_schema_check_errors_are_wrapped():
    connect = FakeConnect(error=psycopg.OperationalError("connection refused"))
    service = build_service(connect=connect)

    with pytest.raises(InstallerError, match="check whether schema 'dbview' exists"):
        service.check_if_schema_exists(_conn(), "dbview")


def test_restore_dump_file_runs_pg_restore_with_custom_args():
    runner = FakeRunner()
    service = build_service(runner=runner)
    conn = _conn(username="u100", database="umovme_dbview_db", port=5433, ssl_mode="require")

    service.restore_dump_file(conn, "backup.dump", RestoreOptions(custom_args=["-Fc", "--schema=u100"]))

    call = runner.calls[0]
    assert call["cmd"] == [
        "pg_restore",
        "--host",
        "127.0.0.1",
        "--port",
        "5433",
        "--username",
        "u100",
        "--dbname",
        "umovme_dbview_db",
        "-Fc",
        "--schema=u100",
        "backup.dump",
    ]
    assert call["env"] == {"PGSSLMODE": "require"}


def test_restore_dump_file_never_puts_password_on_command_line():
    runner = FakeRunner()
    service = build_service(runner=runner)

    service.restore_dump_file(_conn(password="secret"), "backup.dump", RestoreOptions(["-Fc"]))

    assert "secret" not in runner.calls[0]["cmd"]
    assert runner.calls[0]["env"]["PGPASSWORD"] == "secret"


def test_restore_dump_file_raises_actionable_error_with_stderr():
    runner = FakeRunner(returncode=1, stderr="pg_restore: error: input file does not appear to be a valid archive")
    service = build_service(runner=runner)

    with pytest.raises(InstallerError, match="Could not restore 'backup.dump'") as error:
        service.restore_dump_file(_conn(), "backup.dump", RestoreOptions(["-Fc"]))

    assert "valid archive" in str(error.value)
    assert "Suggested action:" in str(error.value)
