# stampcard/services/storage.py

"""
Bundle Storage

Hands finished archives to durable storage. The filesystem store writes
to a temporary file in the destination directory and renames it into
place, so a reader never sees a partial archive.
"""

import os
import tempfile
import logging
from abc import ABC, abstractmethod

from stampcard.errors import ArchiveError

logger = logging.getLogger(__name__)


class BundleStore(ABC):
    """Storage collaborator for signed bundles."""

    @abstractmethod
    def save(self, serial_number: str, archive: bytes) -> str:
        """
        Persist an archive.

        Returns:
            location of the stored archive
        """
        pass


class FilesystemBundleStore(BundleStore):
    """Stores each bundle as ``<root>/<serial>.pkpass``."""

    def __init__(self, root: str):
        self.root = root

    def path_for(self, serial_number: str) -> str:
        safe = ''.join(c for c in serial_number if c.isalnum() or c in '-_')
        if not safe:
            raise ArchiveError(f"Serial number {serial_number!r} cannot be used as a file name")
        return os.path.join(self.root, f"{safe}.pkpass")

    def save(self, serial_number: str, archive: bytes) -> str:
        destination = self.path_for(serial_number)
        try:
            os.makedirs(self.root, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=self.root, prefix='.tmp-', suffix='.pkpass')
        except OSError as e:
            raise ArchiveError(f"Could not prepare storage at {self.root}: {e.strerror}") from e

        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(archive)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, destination)
        except BaseException as e:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            if isinstance(e, OSError):
                raise ArchiveError(f"Could not store bundle {serial_number}: {e.strerror}") from e
            raise

        logger.info(f"Stored bundle at {destination} ({len(archive)} bytes)")
        return destination


class MemoryBundleStore(BundleStore):
    """Keeps bundles in a dict; used by tests and previews."""

    def __init__(self):
        self.bundles = {}

    def save(self, serial_number: str, archive: bytes) -> str:
        self.bundles[serial_number] = archive
        return f"memory://{serial_number}"
