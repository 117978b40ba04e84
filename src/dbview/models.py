"""Shared domain models for the dbview installer."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

SHARED_SCHEMA = "dbview"
CUSTOM_FORMAT_ARG = "-Fc"
REQUIRED_EXTENSIONS = ["hstore", "dblink", "pg_freespacemap", "postgis", "tablefunc", "unaccent"]
SSL_MODES = ["disable", "require", "verify-ca", "verify-full"]


def tenant_role_name(customer_id: int) -> str:
    return f"u{customer_id}"


@dataclass(frozen=True)
class InstallConfig:
    """Parameters of a single installation, built once from the CLI input."""

    customer_id: int
    dump_file: str
    host: str = "127.0.0.1"
    port: int = 5432
    username: str = "postgres"
    password: str = ""
    database: str = "postgres"
    ssl_mode: str = "disable"
    target_database: str = "umovme_dbview_db"
    target_username: str = "dbview"
    force_cleanup: bool = False
    dry_run: bool = False

    @property
    def tenant_role(self) -> str:
        return tenant_role_name(self.customer_id)


@dataclass(frozen=True)
class ConnectionDetails:
    """Where and as whom the administrative calls connect."""

    username: str
    host: str
    database: str
    ssl_mode: str = "disable"
    port: int = 5432
    password: Optional[str] = None

    @classmethod
    def from_config(cls, config: InstallConfig) -> "ConnectionDetails":
        return cls(
            username=config.username,
            host=config.host,
            database=config.database,
            ssl_mode=config.ssl_mode,
            port=config.port,
            password=config.password or None,
        )

    def with_database(self, database: str) -> "ConnectionDetails":
        return replace(self, database=database)

    def as_user(self, username: str) -> "ConnectionDetails":
        # The tenant role is created without a password.
        return replace(self, username=username, password=None)

    def conninfo_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.username,
            "dbname": self.database,
            "sslmode": self.ssl_mode,
        }
        if self.password:
            kwargs["password"] = self.password
        return kwargs

    def libpq_env(self) -> Dict[str, str]:
        env = {"PGSSLMODE": self.ssl_mode}
        if self.password:
            env["PGPASSWORD"] = self.password
        return env


@dataclass
class RestoreOptions:
    """Extra arguments handed to pg_restore."""

    custom_args: List[str] = field(default_factory=list)
