"""Installer defaults read from a YAML file."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from dbview.errors import InstallerError
from dbview.models import SSL_MODES

DEFAULT_CONFIG_FILE = ".dbview.yml"


class ConfigLoader:
    """Reads `install` option defaults and checks each value against its option type."""

    INTEGER_KEYS = ("customer", "port")
    FLAG_KEYS = ("force_cleanup", "verbose", "dry_run")
    TEXT_KEYS = (
        "dump_file",
        "host",
        "username",
        "password",
        "database",
        "ssl_mode",
        "target_database",
        "target_username",
        "log_file",
    )

    def resolve_path(self, config_path: Optional[str], cwd: Optional[str] = None) -> Optional[str]:
        if config_path:
            return config_path

        default_path = os.path.join(cwd or os.getcwd(), DEFAULT_CONFIG_FILE)
        if os.path.exists(default_path):
            return default_path
        return None

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.is_file():
            raise InstallerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise InstallerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise InstallerError("Config file must contain a YAML mapping of install options.")

        return self.validate(parsed, source=config_path)

    def validate(self, values: Dict[str, Any], source: str = "config") -> Dict[str, Any]:
        known = set(self.INTEGER_KEYS) | set(self.FLAG_KEYS) | set(self.TEXT_KEYS)
        unknown = sorted(str(key) for key in set(values) - known)
        if unknown:
            raise InstallerError(f"Unknown configuration keys in '{source}': {', '.join(unknown)}")

        for key, value in values.items():
            if key in self.INTEGER_KEYS:
                # YAML booleans are ints in Python.
                if isinstance(value, bool) or not isinstance(value, int):
                    raise InstallerError(f"'{key}' in '{source}' must be an integer, got {value!r}")
            elif key in self.FLAG_KEYS:
                if not isinstance(value, bool):
                    raise InstallerError(f"'{key}' in '{source}' must be true or false, got {value!r}")
            elif not isinstance(value, str):
                raise InstallerError(f"'{key}' in '{source}' must be a quoted string, got {value!r}")

        if "customer" in values and values["customer"] < 0:
            raise InstallerError(f"'customer' in '{source}' must be a positive customer id")
        if "port" in values and not 0 < values["port"] < 65536:
            raise InstallerError(f"'port' in '{source}' must be between 1 and 65535")
        if "ssl_mode" in values and values["ssl_mode"] not in SSL_MODES:
            raise InstallerError(
                f"Invalid ssl_mode '{values['ssl_mode']}' in '{source}'. "
                f"Supported modes: {', '.join(SSL_MODES)}"
            )

        return values
