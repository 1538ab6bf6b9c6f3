"""Snapshot persistence: the read/write boundary for all tracked state.

The core never mutates stored data in place.  It reads a full
:class:`~tabtime.core.types.Snapshot`, builds a new one in memory and
hands it back to :meth:`SnapshotStore.write`.  Any failure on either
side surfaces as :class:`~tabtime.core.errors.PersistenceUnavailableError`.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

from pydantic import ValidationError

from tabtime.core.defaults import DEFAULT_DATA_DIR, SNAPSHOT_FILENAME
from tabtime.core.errors import PersistenceUnavailableError
from tabtime.core.types import Snapshot

logger = logging.getLogger(__name__)


@runtime_checkable
class SnapshotStore(Protocol):
    """Key-value persistence collaborator operating on whole snapshots."""

    def read(self) -> Snapshot | None: ...
    def write(self, snapshot: Snapshot) -> None: ...


class MemorySnapshotStore:
    """In-process store, used by tests and short-lived sessions."""

    def __init__(self, snapshot: Snapshot | None = None) -> None:
        self._snapshot = snapshot

    def read(self) -> Snapshot | None:
        return self._snapshot

    def write(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot


class JsonSnapshotStore:
    """Snapshot stored as a single JSON document on disk.

    Writes go to a temporary file in the same directory first, then
    atomically replace the target via :func:`os.replace`, so readers
    never see a partially-written snapshot.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def in_dir(cls, data_dir: Path | str = DEFAULT_DATA_DIR) -> JsonSnapshotStore:
        return cls(Path(data_dir) / SNAPSHOT_FILENAME)

    def read(self) -> Snapshot | None:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text("utf-8"))
            return Snapshot.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise PersistenceUnavailableError(
                f"Could not read snapshot at {self.path}: {exc}"
            ) from exc

    def write(self, snapshot: Snapshot) -> None:
        payload = json.dumps(snapshot.model_dump(mode="json"), indent=2) + "\n"
        tmp: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".json.tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp, self.path)
        except OSError as exc:
            if tmp is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp)
            raise PersistenceUnavailableError(
                f"Could not write snapshot to {self.path}: {exc}"
            ) from exc
        logger.debug("Wrote snapshot (%d activities) to %s", len(snapshot.activities), self.path)


class SnapshotTransactor:
    """Single-writer gate around a :class:`SnapshotStore`.

    Every read-modify-write goes through :meth:`update`, which holds one
    lock across read, mutate and write.  The mutation builds a new
    snapshot; if it raises, or the write fails, the stored snapshot is
    left exactly as it was.
    """

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store
        self._lock = threading.RLock()

    def load(self) -> Snapshot:
        """Current snapshot, or an empty default one if nothing is stored yet."""
        with self._lock:
            return self.store.read() or Snapshot()

    def update(self, mutate: Callable[[Snapshot], Snapshot | None]) -> Snapshot:
        """Apply *mutate* to the current snapshot and persist the result.

        Args:
            mutate: Receives the current snapshot and returns the new one,
                or ``None`` to abort without writing.

        Returns:
            The snapshot now in effect (unchanged if *mutate* aborted).

        Raises:
            PersistenceUnavailableError: If the read or write fails.
        """
        with self._lock:
            current = self.store.read() or Snapshot()
            updated = mutate(current)
            if updated is None:
                return current
            self.store.write(updated)
            return updated


def initialize(store: SnapshotStore) -> Snapshot:
    """Return the stored snapshot, writing an empty default one first if absent."""
    snapshot = store.read()
    if snapshot is None:
        snapshot = Snapshot()
        store.write(snapshot)
        logger.info("Initialized empty snapshot with default settings")
    return snapshot
