"""Protocol definitions for the remote services sshtool drives."""

from __future__ import annotations

from typing import Any, Protocol


class FileAttributes(Protocol):
    """Subset of ``paramiko.SFTPAttributes`` used when listing directories."""

    filename: str
    st_size: int | None
    st_mode: int | None


class RemoteFileSystem(Protocol):
    """Protocol for SFTP client implementations."""

    def normalize(self, path: str) -> str:
        """Resolve a remote path to its absolute form."""

    def chdir(self, path: str | None = None) -> None:
        """Change the session's remote working directory."""

    def listdir_attr(self, path: str = ".") -> list[Any]:
        """List a remote directory returning :class:`FileAttributes` items."""

    def stat(self, path: str) -> Any:
        """Return attributes for a remote path."""

    def get(self, remotepath: str, localpath: str) -> None:
        """Download a remote file to a local path."""

    def put(self, localpath: str, remotepath: str) -> Any:
        """Upload a local file to a remote path."""

    def mkdir(self, path: str) -> None:
        """Create a remote directory."""

    def remove(self, path: str) -> None:
        """Delete a remote file."""

    def close(self) -> None:
        """Release the underlying channel."""


class CommandRunner(Protocol):
    """Protocol for objects able to execute a single remote command."""

    def execute(self, command: str) -> str:
        """Run ``command`` remotely and return its combined output."""
