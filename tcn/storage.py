"""JSON list files shared by the file-backed stores."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from tcn.errors import StorageError

logger = logging.getLogger(__name__)


class JsonListFile:
    """A JSON file holding a list of records.

    Writes go to a sibling ``.tmp`` file that is then renamed over the
    original, so readers never see a half-written list. A missing file
    reads as empty; a file that exists but cannot be read or parsed raises
    ``StorageError`` and is left untouched.
    """

    def __init__(self, path: Path, lock: Optional[threading.RLock] = None) -> None:
        self.path = Path(path)
        self.lock = lock or threading.RLock()

    def read(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            logger.error("Could not read %s: %s", self.path, exc)
            raise StorageError(f"Stored data in {self.path.name} is unreadable.") from exc
        if not isinstance(data, list):
            logger.error("Expected a list of records in %s, found %s", self.path, type(data).__name__)
            raise StorageError(f"Stored data in {self.path.name} is not a list of records.")
        return data

    def write(self, records: list[dict]) -> None:
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(records, indent=2, default=str))
        tmp.replace(self.path)

    def find(self, records: list[dict], match: Callable[[dict], bool]) -> Optional[dict]:
        return next((r for r in records if match(r)), None)


def store_dir(base_dir: Optional[str | Path], default: str) -> Path:
    """Resolve a store root, defaulting to ``~/.tcn/<default>``, and create it."""
    path = Path(base_dir) if base_dir is not None else Path.home() / ".tcn" / default
    path.mkdir(parents=True, exist_ok=True)
    return path
