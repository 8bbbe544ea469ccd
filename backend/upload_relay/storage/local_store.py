"""
Local filesystem storage for direct proxy uploads.

Files land flat in settings.local_upload_dir and are served read-only
by the static mount at settings.local_public_path.
"""
import logging
from pathlib import Path
from typing import BinaryIO, Optional

from upload_relay.config import settings

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class LocalStore:
    """Writes uploaded files under a root directory."""

    def __init__(self, root: Optional[Path] = None, public_path: Optional[str] = None):
        self.root = Path(root or settings.local_upload_dir)
        self.public_path = (public_path or settings.local_public_path).rstrip('/')

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        """
        Resolve a stored name to its path under the root.

        Raises:
            ValueError: the name would escape the root directory
        """
        target = (self.root / name).resolve()
        if target.parent != self.root.resolve():
            raise ValueError(f"Invalid local file name: {name}")
        return target

    def public_url_for(self, name: str) -> str:
        return f"{self.public_path}/{name}"

    def save(self, name: str, fileobj: BinaryIO) -> str:
        """
        Stream a file-like object to disk.

        Blocking; call through run_in_threadpool from async code.

        Returns:
            The public path the file is served under

        Raises:
            OSError: the file could not be written
        """
        self.ensure_root()
        target = self.path_for(name)

        with open(target, "wb") as f:
            while chunk := fileobj.read(_CHUNK_SIZE):
                f.write(chunk)

        logger.debug(f"Stored {name} on local disk")
        return self.public_url_for(name)

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()


# Singleton instance
_local_store: Optional[LocalStore] = None


def get_local_store() -> LocalStore:
    """Get the singleton local store."""
    global _local_store
    if _local_store is None:
        _local_store = LocalStore()
    return _local_store
