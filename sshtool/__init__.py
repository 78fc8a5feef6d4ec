"""Command-line SSH and SFTP client built on paramiko."""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
