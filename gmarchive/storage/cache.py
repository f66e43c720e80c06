"""On-disk cache of downloaded messages.

Messages are written here as soon as they are downloaded and moved into
their Maildir once the sync engine knows where they belong. A message
dated past the period being synced stays in the cache until its own
period is processed, so it is downloaded only once per run.

The cache lives next to the archive (<root>/.gma/tmp) so that committing
a message is a rename within one filesystem.
"""

import os
import shutil
from pathlib import Path

from gmarchive.storage.maildir import filename_for


class MessageCache:
    """Directory of raw messages keyed by Gmail ID."""

    def __init__(self, cache_dir: Path):
        self._cache_dir = cache_dir

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def reset(self) -> None:
        """Create the cache directory, removing leftovers from a previous run."""
        if self._cache_dir.exists():
            shutil.rmtree(self._cache_dir)
        self._cache_dir.mkdir(parents=True)

    def path_for(self, message_id: str) -> Path:
        return self._cache_dir / filename_for(message_id)

    def contains(self, message_id: str) -> bool:
        return self.path_for(message_id).exists()

    def read(self, message_id: str) -> bytes:
        return self.path_for(message_id).read_bytes()

    def write(self, message_id: str, raw: bytes) -> Path:
        """Write a message and flush it to disk before returning."""
        path = self.path_for(message_id)
        with open(path, "wb") as f:
            f.write(raw)
            f.flush()
            os.fsync(f.fileno())
        return path
