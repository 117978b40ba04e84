import logging

import click
from rich.logging import RichHandler

from .core import DBViewInstaller, InstallerError
from .models import SSL_MODES, InstallConfig
from .services.config_loader import DEFAULT_CONFIG_FILE, ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.group()
@click.version_option(package_name="dbview")
def main():
    """Manage the uMov.me dbview environment."""


@main.command()
@click.option("--customer", "-c", type=int, default=None, help="Your customer ID")
@click.option("--dump-file", "-D", default=None, help="Database dump file")
@click.option("--host", default=None, help="Database host (default: 127.0.0.1)")
@click.option("--port", "-p", type=int, default=None, help="Database port (default: 5432)")
@click.option("--username", "-U", default=None, help="Database user (default: postgres)")
@click.option("--password", "-P", default=None, help="Username password")
@click.option("--database", "-d", default=None, help="Database name (default: postgres)")
@click.option(
    "--ssl-mode",
    "-S",
    type=click.Choice(SSL_MODES),
    default=None,
    help="SSL connection mode (default: disable)",
)
@click.option(
    "--target-database",
    default=None,
    help="The target database (default: umovme_dbview_db)",
)
@click.option("--target-username", default=None, help="The target username (default: dbview)")
@click.option(
    "--force-cleanup",
    is_flag=True,
    default=None,
    help="Remove the database and user before starts (DANGER)",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Validate inputs and print the installation plan without touching the database.",
)
def install(
    customer,
    dump_file,
    host,
    port,
    username,
    password,
    database,
    ssl_mode,
    target_database,
    target_username,
    force_cleanup,
    config,
    verbose,
    log_file,
    dry_run,
):
    """Install the dbview in the database.

    Creates the users, permissions and database of the dbview environment
    and restores the database dump provided by the uMov.me support team.
    """
    logger = logging.getLogger("dbview")

    try:
        config_loader = ConfigLoader()
        config_values = config_loader.load(config_loader.resolve_path(config))
    except InstallerError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    install_config = InstallConfig(
        customer_id=_resolve_option(customer, config_values, "customer", default=0),
        dump_file=_resolve_option(dump_file, config_values, "dump_file", default=""),
        host=_resolve_option(host, config_values, "host", default="127.0.0.1"),
        port=_resolve_option(port, config_values, "port", default=5432),
        username=_resolve_option(username, config_values, "username", default="postgres"),
        password=_resolve_option(password, config_values, "password", default=""),
        database=_resolve_option(database, config_values, "database", default="postgres"),
        ssl_mode=_resolve_option(ssl_mode, config_values, "ssl_mode", default="disable"),
        target_database=_resolve_option(
            target_database,
            config_values,
            "target_database",
            default="umovme_dbview_db",
        ),
        target_username=_resolve_option(
            target_username, config_values, "target_username", default="dbview"
        ),
        force_cleanup=bool(
            _resolve_option(force_cleanup, config_values, "force_cleanup", default=False)
        ),
        dry_run=bool(_resolve_option(dry_run, config_values, "dry_run", default=False)),
    )

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    installer = DBViewInstaller(install_config)
    raise SystemExit(installer.run())


if __name__ == "__main__":
    main()
