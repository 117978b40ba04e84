"""
dbview - installs the uMov.me dbview environment into a PostgreSQL server
"""

__version__ = "0.2.0"

from .core import DBViewInstaller, InstallerError

__all__ = ["DBViewInstaller", "InstallerError"]
