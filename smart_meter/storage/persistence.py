"""Key/blob persistence port and its adapters.

Any durable store satisfies the port: save() reports success as a bool and
load() returns None when nothing usable is stored. Neither raises.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class PersistencePort(Protocol):
    """Storage used by HistoryStore for its state blob."""

    def save(self, key: str, blob: str) -> bool: ...

    def load(self, key: str) -> Optional[str]: ...


class InMemoryPersistence:
    """Dictionary-backed persistence, lost when the process exits."""

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    def save(self, key: str, blob: str) -> bool:
        self._blobs[key] = blob
        return True

    def load(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._blobs


class FilePersistence:
    """Stores each key as a JSON file in a state directory.

    Writes go to a temporary file first and are moved into place, so a crash
    mid-write leaves the previous blob intact.
    """

    def __init__(self, directory: str | Path) -> None:
        """
        Initialize file persistence.

        Args:
            directory: Directory holding the state files (created on first save)
        """
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid persistence key: {key!r}")
        return self.directory / f"{key}.json"

    def save(self, key: str, blob: str) -> bool:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(blob)
                os.replace(tmp_name, path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to save %s: %s", path, e)
            return False
        logger.debug("Saved state to %s", path)
        return True

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s, treating as absent: %s", path, e)
            return None
