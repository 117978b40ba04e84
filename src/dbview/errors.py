"""Domain errors for the dbview installer."""


class InstallerError(RuntimeError):
    """Raised when the installation cannot continue safely."""
