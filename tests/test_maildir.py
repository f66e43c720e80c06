"""Tests for Maildir storage and the message cache.

Uses pytest tmp_path fixture for isolated filesystem tests.
"""

from pathlib import Path

import pytest

from conftest import utc
from gmarchive.storage.cache import MessageCache
from gmarchive.storage.maildir import (
    MaildirStorage,
    filename_for,
    id_from_filename,
)
from gmarchive.sync.periods import Period


class TestFilenames:
    """Tests for the ID <-> filename mapping."""

    def test_filename_has_seen_flag(self):
        """Archived messages are stored as seen, info version 2."""
        assert filename_for("18c2d9f0a1b2c3d4") == "18c2d9f0a1b2c3d4:2,S"

    @pytest.mark.parametrize("message_id", ["abc", "18c2d9f0a1b2c3d4", "a:2,S"])
    def test_roundtrip(self, message_id: str):
        assert id_from_filename(filename_for(message_id)) == message_id


class TestEnsureFolder:
    """Tests for ensure_folder method."""

    def test_creates_maildir_structure(self, maildir: MaildirStorage):
        """ensure_folder creates cur/, new/, tmp/ subdirectories."""
        folder_path = maildir.ensure_folder("2020.01")

        assert (folder_path / "cur").is_dir()
        assert (folder_path / "new").is_dir()
        assert (folder_path / "tmp").is_dir()

    def test_root_folder(self, maildir: MaildirStorage):
        """The empty folder name is the archive root."""
        folder_path = maildir.ensure_folder()

        assert folder_path == maildir.base_path
        assert (maildir.base_path / "cur").is_dir()

    def test_idempotent_creation(self, maildir: MaildirStorage):
        """ensure_folder can be called multiple times safely."""
        maildir.ensure_folder("2020")
        maildir.ensure_folder("2020")  # Should not raise

        assert (maildir.base_path / "2020" / "cur").is_dir()


class TestFetchedIds:
    """Tests for fetched_ids method."""

    def test_empty_for_missing_folder(self, maildir: MaildirStorage):
        assert maildir.fetched_ids("2020.01") == set()

    def test_reads_ids_from_cur(self, maildir: MaildirStorage):
        folder_path = maildir.ensure_folder("2020.01")
        (folder_path / "cur" / "abc:2,S").write_bytes(b"x")
        (folder_path / "cur" / "def:2,S").write_bytes(b"y")

        assert maildir.fetched_ids("2020.01") == {"abc", "def"}

    def test_ignores_other_folders(self, maildir: MaildirStorage):
        folder_path = maildir.ensure_folder("2020.02")
        (folder_path / "cur" / "abc:2,S").write_bytes(b"x")

        assert maildir.fetched_ids("2020.01") == set()
        assert maildir.fetched_ids() == set()


class TestCommit:
    """Tests for commit method."""

    def test_moves_file_into_cur(self, maildir: MaildirStorage, tmp_path: Path):
        source = tmp_path / "downloaded"
        source.write_bytes(b"Subject: Hi\r\n\r\nBody")

        dest = maildir.commit(source, "abc", "2020.01")

        assert dest == maildir.base_path / "2020.01" / "cur" / "abc:2,S"
        assert dest.read_bytes() == b"Subject: Hi\r\n\r\nBody"
        assert not source.exists()

    def test_creates_folder_lazily(self, maildir: MaildirStorage, tmp_path: Path):
        source = tmp_path / "downloaded"
        source.write_bytes(b"x")

        maildir.commit(source, "abc", "2021")

        for subdir in ("cur", "new", "tmp"):
            assert (maildir.base_path / "2021" / subdir).is_dir()

    def test_commit_to_root(self, maildir: MaildirStorage, tmp_path: Path):
        source = tmp_path / "downloaded"
        source.write_bytes(b"x")

        maildir.commit(source, "abc")

        assert maildir.fetched_ids() == {"abc"}


class TestListPartitions:
    """Tests for list_partitions method."""

    def test_empty_when_root_missing(self, maildir: MaildirStorage):
        assert maildir.list_partitions(Period.MONTH) == []

    def test_sorted_and_filtered(self, maildir: MaildirStorage):
        for name in ("2020.03", "2019.12", "2020.01", ".gma", "2020"):
            (maildir.base_path / name).mkdir(parents=True)
        (maildir.base_path / "2020.02").write_text("not a directory")

        assert maildir.list_partitions(Period.MONTH) == [
            utc(2019, 12, 1),
            utc(2020, 1, 1),
            utc(2020, 3, 1),
        ]
        assert maildir.list_partitions(Period.YEAR) == [utc(2020, 1, 1)]


class TestMessageCache:
    """Tests for the download cache."""

    def test_write_then_read(self, cache: MessageCache):
        path = cache.write("abc", b"raw message")

        assert path == cache.path_for("abc")
        assert cache.contains("abc")
        assert cache.read("abc") == b"raw message"

    def test_reset_clears_previous_run(self, cache: MessageCache):
        cache.write("abc", b"raw message")

        cache.reset()

        assert cache.cache_dir.is_dir()
        assert not cache.contains("abc")

    def test_reset_creates_directory(self, tmp_path: Path):
        cache = MessageCache(tmp_path / "archive" / ".gma" / "tmp")

        cache.reset()

        assert cache.cache_dir.is_dir()
