"""
Persisted State - Small key-value store surviving app restarts.

Holds the purchase history marker used to skip inventory requests for
users known to have no purchases.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

from structlog import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """String key-value persistence (the host's preferences storage)."""

    def get(self, key: str) -> str | None:
        """Return the stored value or None when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""
        ...


class MemoryKeyValueStore:
    """Volatile store, used when no state file is configured."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileKeyValueStore:
    """
    Key-value store backed by a JSON document on disk.

    The whole document is rewritten through a temporary file and an atomic
    rename on every change. A missing or corrupted file reads as empty.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._values = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("state_file_unreadable", path=str(self.path), error=str(exc))
            return {}
        if not isinstance(data, dict):
            logger.warning("state_file_not_an_object", path=str(self.path))
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._values, handle, sort_keys=True)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            self._flush()


class PurchaseHistoryMarker:
    """
    Persisted Unix timestamp of the last inventory sync that returned purchases.

    Absence means "no known purchase history".
    """

    def __init__(self, store: KeyValueStore, key: str, window_seconds: int) -> None:
        self.store = store
        self.key = key
        self.window_seconds = window_seconds

    def timestamp(self) -> int | None:
        """Stored timestamp, or None when absent or unparseable."""
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("purchase_history_marker_corrupted", value=raw)
            return None

    def has_recent_history(self, now: float) -> bool:
        """Check for a marker inside the window; an expired marker is removed."""
        timestamp = self.timestamp()
        if timestamp is None:
            return False

        if now - timestamp < self.window_seconds:
            return True

        self.store.delete(self.key)
        logger.info("purchase_history_marker_expired", marker_timestamp=timestamp)
        return False

    def update(self, inventory_size: int, now: float) -> None:
        """Clear the marker for an empty inventory, set it when first non-empty."""
        exists = self.store.get(self.key) is not None

        if exists and inventory_size == 0:
            self.store.delete(self.key)
            logger.info("purchase_history_marker_cleared")
            return

        if not exists and inventory_size > 0:
            self.store.set(self.key, str(int(now)))
            logger.info("purchase_history_marker_set", marker_timestamp=int(now))
