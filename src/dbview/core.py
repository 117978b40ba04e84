import logging
from typing import Callable, List, Optional

from rich.console import Console

from .errors import InstallerError
from .models import (
    CUSTOM_FORMAT_ARG,
    REQUIRED_EXTENSIONS,
    SHARED_SCHEMA,
    ConnectionDetails,
    InstallConfig,
    RestoreOptions,
)
from .services.command_runner import CommandRunner
from .services.database import DatabaseService
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("dbview")

INSTALLED_FRESH = "installed-fresh"
INSTALLED_ADDITIONAL_TENANT = "installed-additional-tenant"


class DBViewInstaller:
    """Installs the dbview environment of one customer into a PostgreSQL server."""

    def __init__(self, config: InstallConfig):
        self.config = config
        self.tenant_role = config.tenant_role
        self.connection = ConnectionDetails.from_config(config)
        self.current_step_name: Optional[str] = None

        self.command_runner = CommandRunner(logger=logger)
        self.validation_service = ValidationService(logger=logger, console=console)
        self.database_service = DatabaseService(logger=logger, command_runner=self.command_runner)

    def _log(self, message: str, *args):
        console.print(f"[blue]{message % args}[/blue]")
        logger.info(message, *args)

    def _run_step(self, name: str, callback: Callable, *args, **kwargs):
        self.current_step_name = name
        logger.debug("Step started: %s", name)
        result = callback(*args, **kwargs)
        logger.debug("Step finished: %s", name)
        self.current_step_name = None
        return result

    def check_input_parameters(self) -> bool:
        return self.validation_service.check_input_parameters(
            self.config.customer_id,
            self.config.dump_file,
        )

    def cleanup(self):
        """Drops the target database and both roles of a previous install."""
        if not self.config.force_cleanup:
            return

        self._log("Cleaning up the '%s' database", self.config.target_database)
        self._run_step(
            "drop_database",
            self.database_service.drop_database,
            self.connection,
            self.config.target_database,
        )
        for user in self._roles():
            self._log("Dropping the '%s' user", user)
            self._run_step(f"drop_user_{user}", self.database_service.drop_user, self.connection, user)

    def provision(self) -> str:
        """Runs the install pipeline and returns the terminal state reached."""
        db = self.database_service

        for user in self._roles():
            self._log("Creating the '%s' user", user)
            self._run_step(f"create_user_{user}", db.create_user, self.connection, user, None)

        self._log("Fixing permissions")
        self._run_step(
            "grant_roles",
            db.grant_roles_to_user,
            self.connection,
            self.tenant_role,
            [self.config.target_username],
        )

        self._log("Updating the 'search_path'")
        self._run_step(
            "set_search_path",
            db.set_search_path_for_user,
            self.connection,
            self.tenant_role,
            [self.tenant_role, "public"],
        )

        self._log("Creating the '%s' database", self.config.target_database)
        self._run_step(
            "create_database",
            db.create_new_database,
            self.connection,
            self.config.target_database,
            ["OWNER " + self.config.target_username, "TEMPLATE template0"],
        )

        self._log("Creating the necessary extensions")
        self.connection = self.connection.with_database(self.config.target_database)
        self._run_step(
            "create_extensions",
            db.create_extensions_in_database,
            self.connection,
            list(REQUIRED_EXTENSIONS),
        )

        exists = self._run_step(
            "check_shared_schema",
            db.check_if_schema_exists,
            self.connection,
            SHARED_SCHEMA,
        )

        restore_args = [CUSTOM_FORMAT_ARG]
        state = INSTALLED_FRESH

        if exists:
            self._log("Schema '%s' found, creating the '%s' schema", SHARED_SCHEMA, self.tenant_role)
            self._run_step("create_schema", db.create_schema, self.connection, self.tenant_role)
            restore_args.append(f"--schema={self.tenant_role}")
            state = INSTALLED_ADDITIONAL_TENANT

        self._log("Restoring the dump file")
        self.connection = self.connection.as_user(self.tenant_role)
        self._run_step(
            "restore_dump",
            db.restore_dump_file,
            self.connection,
            self.config.dump_file,
            RestoreOptions(custom_args=restore_args),
        )

        return state

    def plan(self) -> List[str]:
        steps = []
        if self.config.force_cleanup:
            steps.append(f"Drop database '{self.config.target_database}'")
            steps.extend(f"Drop user '{user}'" for user in self._roles())
        steps.extend(f"Create user '{user}'" for user in self._roles())
        steps.extend(
            [
                f"Grant '{self.config.target_username}' to '{self.tenant_role}'",
                f"Set search_path of '{self.tenant_role}' to {self.tenant_role}, public",
                f"Create database '{self.config.target_database}' "
                f"(OWNER {self.config.target_username}, TEMPLATE template0)",
                f"Create extensions: {', '.join(REQUIRED_EXTENSIONS)}",
                f"Check schema '{SHARED_SCHEMA}'; if present create schema '{self.tenant_role}' "
                f"and restore with --schema={self.tenant_role}",
                f"Restore '{self.config.dump_file}' as '{self.tenant_role}' ({CUSTOM_FORMAT_ARG})",
            ]
        )
        return steps

    def print_plan(self):
        console.print("[bold blue]Dry run: planned installation steps[/bold blue]")
        for position, step in enumerate(self.plan(), start=1):
            console.print(f"  {position}. {step}")
            logger.info("Planned step %s: %s", position, step)

    def _roles(self) -> List[str]:
        return [self.config.target_username, self.tenant_role]

    def run(self) -> int:
        exit_code = 1

        try:
            self._log("Validating parameters...")
            if not self.check_input_parameters():
                return 0

            if self.config.dry_run:
                self.print_plan()
                return 0

            self.cleanup()
            state = self.provision()

            logger.info("Install finished for '%s': %s", self.tenant_role, state)
            console.print("[green]Done.[/green]")
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return exit_code
        except InstallerError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error("Step '%s' failed: %s", self.current_step_name or "run", exc)
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return exit_code
