"""State stores: where the last-known real-world state of each resource lives."""

import json
import os
import tempfile
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import ValidationError
from ..utils.errors import StateStoreError
from ..utils.logging import get_logger
from .models import StateRecord

logger = get_logger("state.store")


class StateStore(ABC):
    """
    Per-node record storage.

    save and delete must be durable when they return: the executor releases
    dependent operations only afterwards.
    """

    @abstractmethod
    def load(self, node_id: str) -> Optional[StateRecord]:
        """Return a copy of the record for node_id, or None."""
        pass

    @abstractmethod
    def save(self, node_id: str, record: StateRecord) -> None:
        """Create or atomically replace the record for node_id."""
        pass

    @abstractmethod
    def delete(self, node_id: str) -> None:
        """Remove the record for node_id if present."""
        pass

    @abstractmethod
    def list_ids(self) -> List[str]:
        """Node ids with a record, in first-saved order."""
        pass

    def all(self) -> Dict[str, StateRecord]:
        records = {}
        for node_id in self.list_ids():
            record = self.load(node_id)
            if record is not None:
                records[node_id] = record
        return records


class InMemoryStateStore(StateStore):
    """Dict-backed store for tests and embedding."""

    def __init__(self):
        self._records: Dict[str, StateRecord] = {}
        self._lock = threading.Lock()

    def load(self, node_id: str) -> Optional[StateRecord]:
        with self._lock:
            record = self._records.get(node_id)
            return record.model_copy(deep=True) if record else None

    def save(self, node_id: str, record: StateRecord) -> None:
        with self._lock:
            self._records[node_id] = record.model_copy(deep=True)

    def delete(self, node_id: str) -> None:
        with self._lock:
            self._records.pop(node_id, None)

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._records)


class FileStateStore(StateStore):
    """
    Durable JSON file store.

    Every mutation rewrites the whole document through a temp file in the
    same directory, fsync and os.replace, so a crash leaves either the old or
    the new document on disk.
    """

    FORMAT_VERSION = 1

    def __init__(self, path: str):
        self.path = Path(path)
        self.serial = 0
        self.lineage: Optional[str] = None
        self._records: Dict[str, StateRecord] = {}
        self._lock = threading.Lock()
        self._read_file()

    def _read_file(self) -> None:
        if not self.path.exists():
            self.lineage = uuid.uuid4().hex
            logger.debug(f"No state file at {self.path}; starting empty")
            return

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StateStoreError(f"State file {self.path} is not valid JSON: {e}")
        except OSError as e:
            raise StateStoreError(f"Error reading state file {self.path}: {e}")

        if not isinstance(data, dict) or not isinstance(data.get("resources"), dict):
            raise StateStoreError(f"State file {self.path} is missing the 'resources' mapping")

        version = data.get("version")
        if version != self.FORMAT_VERSION:
            raise StateStoreError(
                f"Unsupported state file version {version!r} in {self.path} "
                f"(expected {self.FORMAT_VERSION})"
            )

        try:
            self._records = {
                node_id: StateRecord(**record)
                for node_id, record in data["resources"].items()
            }
        except ValidationError as e:
            raise StateStoreError(f"Corrupt record in state file {self.path}: {e}")

        self.serial = int(data.get("serial", 0))
        self.lineage = data.get("lineage") or uuid.uuid4().hex
        logger.info(f"Loaded {len(self._records)} state records from {self.path} (serial {self.serial})")

    def _write_file(self) -> None:
        """Persist all records; caller holds the lock."""
        self.serial += 1
        document = {
            "version": self.FORMAT_VERSION,
            "serial": self.serial,
            "lineage": self.lineage,
            "resources": {
                node_id: record.model_dump(mode="json")
                for node_id, record in self._records.items()
            }
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StateStoreError(f"Failed to write state file {self.path}: {e}")
        logger.debug(f"Wrote state file {self.path} (serial {self.serial})")

    def load(self, node_id: str) -> Optional[StateRecord]:
        with self._lock:
            record = self._records.get(node_id)
            return record.model_copy(deep=True) if record else None

    def save(self, node_id: str, record: StateRecord) -> None:
        with self._lock:
            previous = self._records.get(node_id)
            self._records[node_id] = record.model_copy(deep=True)
            try:
                self._write_file()
            except StateStoreError:
                if previous is None:
                    self._records.pop(node_id, None)
                else:
                    self._records[node_id] = previous
                raise

    def delete(self, node_id: str) -> None:
        with self._lock:
            previous = self._records.pop(node_id, None)
            if previous is None:
                return
            try:
                self._write_file()
            except StateStoreError:
                self._records[node_id] = previous
                raise

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._records)
