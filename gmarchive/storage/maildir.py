"""Maildir storage for archived messages.

Implements the Maildir format read by notmuch, mutt and other standard
mail tools. Each Maildir has three subdirectories:
- tmp/: Messages being delivered
- new/: Newly delivered, unread messages
- cur/: Messages that have been seen

Archived messages always go to cur/ with a filename derived only from
the Gmail message ID:

    <gmail-id>:2,S

"2," marks Maildir info version 2 and "S" the Seen flag. Since the
filename is a function of the ID alone, the set of archived IDs can be
recovered from a directory listing.

A flat archive is a single Maildir at the root. A partitioned archive
holds one Maildir per period, named by Period.label().
"""

import os
from datetime import datetime
from pathlib import Path

from gmarchive.sync.periods import Period

# Maildir info suffix: version 2, flag Seen
INFO_SUFFIX = ":2,S"

MAILDIR_SUBDIRS = ("cur", "new", "tmp")


def filename_for(message_id: str) -> str:
    """Maildir filename for a Gmail message ID."""
    return f"{message_id}{INFO_SUFFIX}"


def id_from_filename(filename: str) -> str:
    """Gmail message ID stored under a Maildir filename.

    Inverse of filename_for().
    """
    return filename.removesuffix(INFO_SUFFIX)


class MaildirStorage:
    """Storage backend for a (possibly partitioned) Maildir archive.

    Folders are named relative to the archive root; the empty name ""
    is the root Maildir of a flat archive.

    Example:
        storage = MaildirStorage(Path("~/Mail/Archive"))
        storage.commit(cached_file, "18c2d9f0a1b2c3d4", "2020.01")
        storage.fetched_ids("2020.01")  # {"18c2d9f0a1b2c3d4"}
    """

    def __init__(self, base_path: Path):
        """Initialize Maildir storage.

        Args:
            base_path: Archive root directory. Will be created on first commit
                       if it doesn't exist.
        """
        self._base_path = base_path.expanduser().resolve()

    @property
    def base_path(self) -> Path:
        """Get the archive root."""
        return self._base_path

    def folder_path(self, folder: str = "") -> Path:
        """Path of a Maildir folder ("" for the archive root)."""
        return self._base_path / folder if folder else self._base_path

    def ensure_folder(self, folder: str = "") -> Path:
        """Create a Maildir folder structure.

        Creates the folder with cur/, new/, tmp/ subdirectories as required
        by the Maildir specification. Safe to call multiple times.

        Args:
            folder: Folder name (e.g., "2020.01"), or "" for the root.

        Returns:
            Path to the folder directory.
        """
        folder_path = self.folder_path(folder)

        for subdir in MAILDIR_SUBDIRS:
            (folder_path / subdir).mkdir(parents=True, exist_ok=True)

        return folder_path

    def fetched_ids(self, folder: str = "") -> set[str]:
        """IDs of the messages already archived in a folder.

        Returns an empty set if the folder doesn't exist yet.
        """
        cur = self.folder_path(folder) / "cur"
        if not cur.is_dir():
            return set()

        return {id_from_filename(path.name) for path in cur.iterdir()}

    def commit(self, source: Path, message_id: str, folder: str = "") -> Path:
        """Move a downloaded message into a folder's cur/ directory.

        The folder is created if needed. os.rename is atomic on POSIX when
        source and destination share a filesystem, so the message is either
        absent or fully present under its final name.

        Args:
            source: Downloaded message file (in the message cache).
            message_id: Gmail message ID, used for the filename.
            folder: Target folder ("" for the root).

        Returns:
            Path to the archived message file.
        """
        folder_path = self.ensure_folder(folder)
        dest_path = folder_path / "cur" / filename_for(message_id)
        os.rename(source, dest_path)
        return dest_path

    def list_partitions(self, period: Period) -> list[datetime]:
        """Boundaries of the existing partitions, oldest first.

        Entries that are not partitions of this period (".gma", stray files,
        partitions of another granularity) are ignored.
        """
        if not self._base_path.is_dir():
            return []

        boundaries = (
            period.parse_label(path.name)
            for path in self._base_path.iterdir()
            if path.is_dir()
        )
        return sorted(b for b in boundaries if b is not None)
