"""Actionable error catalog for the dbview installer."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_customer_id": {
        "what": "Missing the customer id!",
        "next": "Pass your numeric customer id with `--customer`.",
    },
    "missing_dump_file": {
        "what": "Missing the dump file!",
        "next": "Pass the dump provided by the support team with `--dump-file`.",
    },
    "command_not_found": {
        "what": "Required command not found: {command}.",
        "next": "Install the PostgreSQL client tools and make sure `{command}` is on PATH.",
    },
    "restore_failed": {
        "what": "Could not restore '{dump_file}' into '{database}'.",
        "next": "Check the dump file was generated with `pg_dump -Fc` and that role '{username}' can log in.",
    },
    "admin_call_failed": {
        "what": "Could not {action}: {reason}",
        "next": "Check the database server logs, or rerun with `--force-cleanup` to start over.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
