"""Key-value backends for persisted tracker state."""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Any

from ..errors import StorageError
from ..tracker_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.STORE)


class StateBackend(ABC):
    """Abstract "load all / save all" key-value store for JSON blobs."""

    @abstractmethod
    def read(self, key: str) -> Any | None:
        """Return the blob stored under a key, or None when absent.

        Raises:
            StorageError: If the blob exists but cannot be decoded.
        """

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        """Replace the blob stored under a key.

        Raises:
            StorageError: If the blob cannot be written.
        """


class MemoryBackend(StateBackend):
    """In-process backend; blobs are stored as JSON text."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._lock = Lock()
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    def read(self, key: str) -> Any | None:
        with self._lock:
            raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt state blob '{key}': {e}", location=key) from e

    def write(self, key: str, value: Any) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"State is not serializable: {e}", location=key) from e
        with self._lock:
            self._data[key] = raw

    def write_raw(self, key: str, raw: str) -> None:
        """Store undecoded text under a key."""
        with self._lock:
            self._data[key] = raw


class JSONFileBackend(StateBackend):
    """One JSON file per key inside a state directory.

    Writes go to a temporary file that replaces the target atomically, so
    a crash mid-write never leaves a truncated blob behind.
    """

    def __init__(self, state_dir: Path | str):
        """Initialize the backend.

        Args:
            state_dir: Directory holding ``<key>.json`` files.
        """
        self.state_dir = Path(state_dir).expanduser()
        self._lock = Lock()

    def path_for(self, key: str) -> Path:
        return self.state_dir / f"{key}.json"

    def read(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not read state file: {e}", location=str(path)) from e

    def write(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        with self._lock:
            try:
                self.state_dir.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=self.state_dir, prefix=f".{key}.", suffix=".tmp"
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(value, f, indent=2)
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except (OSError, TypeError, ValueError) as e:
                raise StorageError(
                    f"Could not write state file: {e}", location=str(path)
                ) from e
        logger.debug(f"Saved state to {path}")
