"""Input validation helpers for the dbview installer."""

from typing import Optional

from dbview.errors_catalog import actionable_error


class ValidationService:
    """Checks the minimum parameters before any database call."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def check_input_parameters(self, customer_id: Optional[int], dump_file: Optional[str]) -> bool:
        if not customer_id:
            self._report(actionable_error("missing_customer_id"))
            return False

        if not dump_file:
            self._report(actionable_error("missing_dump_file"))
            return False

        return True

    def _report(self, message: str):
        self.console.print(f"[bold red]{message}[/bold red]")
        self.logger.error(message)
