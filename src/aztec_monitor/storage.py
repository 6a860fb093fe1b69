"""
Persistence for the latest snapshot and the configuration record.

The monitor only needs get/set-latest semantics, so a store holds at most one
snapshot and one configuration record.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from .models import MonitorSnapshot

# Get logger for this module
logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    def load_snapshot(self) -> MonitorSnapshot | None:
        ...

    def save_snapshot(self, snapshot: MonitorSnapshot) -> None:
        ...

    def load_config(self) -> dict[str, Any] | None:
        ...

    def save_config(self, config: dict[str, Any]) -> None:
        ...


class MemoryStore:
    """In-process store, used by tests and single-shot runs."""

    def __init__(
        self,
        snapshot: MonitorSnapshot | None = None,
        config: dict[str, Any] | None = None
    ) -> None:
        self.snapshot = snapshot
        self.config = config

    def load_snapshot(self) -> MonitorSnapshot | None:
        return self.snapshot

    def save_snapshot(self, snapshot: MonitorSnapshot) -> None:
        self.snapshot = snapshot

    def load_config(self) -> dict[str, Any] | None:
        return self.config

    def save_config(self, config: dict[str, Any]) -> None:
        self.config = dict(config)


class JsonFileStore:
    """
    Store backed by a single JSON document.

    The document has two top-level members, ``snapshot`` and ``config``. Every
    write replaces the whole file atomically, so a crash mid-write leaves the
    previous document in place.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {self.path}: {e}")
            return {}
        if not isinstance(document, dict):
            logger.warning(f"Ignoring state file {self.path}: top level is not an object")
            return {}
        return document

    def _write(self, document: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp, self.path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise

    def load_snapshot(self) -> MonitorSnapshot | None:
        data = self._read().get("snapshot")
        if not data:
            return None
        try:
            return MonitorSnapshot.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed snapshot in {self.path}: {e}")
            return None

    def save_snapshot(self, snapshot: MonitorSnapshot) -> None:
        document = self._read()
        document["snapshot"] = snapshot.to_dict()
        self._write(document)
        logger.debug(f"Saved snapshot for round {snapshot.current_round} to {self.path}")

    def load_config(self) -> dict[str, Any] | None:
        config = self._read().get("config")
        return config if isinstance(config, dict) else None

    def save_config(self, config: dict[str, Any]) -> None:
        document = self._read()
        document["config"] = dict(config)
        self._write(document)
