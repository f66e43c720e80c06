"""Path layout of an archive directory.

Everything gmarchive needs besides the Maildir partitions lives in a
hidden `.gma` directory at the archive root:

- .gma/config.toml: query, date bounds and period
- .gma/credentials.json: OAuth token (restricted permissions)
- .gma/tmp/: downloaded messages not yet committed to a partition
"""

from pathlib import Path


GMA_DIRNAME = ".gma"


class ArchivePaths:
    """On-disk locations derived from an archive root.

    Example:
        paths = ArchivePaths(Path("~/Mail/Archive"))
        paths.config_file  # ~/Mail/Archive/.gma/config.toml
    """

    def __init__(self, root: Path):
        self._root = root.expanduser().resolve()

    @property
    def root(self) -> Path:
        """Archive root, holding the Maildir (flat) or its partitions."""
        return self._root

    @property
    def gma_dir(self) -> Path:
        return self._root / GMA_DIRNAME

    @property
    def config_file(self) -> Path:
        return self.gma_dir / "config.toml"

    @property
    def credentials_file(self) -> Path:
        return self.gma_dir / "credentials.json"

    @property
    def cache_dir(self) -> Path:
        return self.gma_dir / "tmp"

    def ensure_gma_dir(self) -> Path:
        """Create the .gma directory with restricted permissions.

        Returns the .gma directory path.
        """
        self.gma_dir.mkdir(parents=True, exist_ok=True)
        # Holds the OAuth token: only owner can read/write/execute
        self.gma_dir.chmod(0o700)
        return self.gma_dir
