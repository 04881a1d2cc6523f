"""
Ledger Store backends.

The engine only needs three things from persistence: read a document by key,
write one, and write a batch of documents as a single unit. Documents are
JSON-compatible dicts. Backends never hand out references to their own state.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .config import settings
from .database import LedgerEntry, get_engine, init_db
from .errors import StoreError

logger = logging.getLogger(__name__)


def _copy(key: str, value: Any) -> Dict:
    # Round-trips through JSON so only storable documents get in
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as e:
        raise StoreError(f"Value for {key!r} is not a JSON document: {e}") from e


class LedgerStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[Dict]:
        """Return a copy of the document at `key`, or None if absent."""

    @abstractmethod
    def put_many(self, items: Dict[str, Dict]) -> None:
        """Write every document in `items`, or none of them."""

    def put(self, key: str, value: Dict) -> None:
        self.put_many({key: value})


class MemoryLedgerStore(LedgerStore):
    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict]:
        with self._lock:
            raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def put_many(self, items: Dict[str, Dict]) -> None:
        # Serialize everything first so a bad document cannot leave a partial write
        staged = {key: json.dumps(_copy(key, value)) for key, value in items.items()}
        with self._lock:
            self._data.update(staged)


class SqlLedgerStore(LedgerStore):
    """One `ledger_entries` row per document; a batch is one database transaction."""

    def __init__(self, engine: Optional[Engine] = None, create_tables: bool = True):
        self.engine = engine or get_engine()
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        if create_tables:
            init_db(self.engine)

    def get(self, key: str) -> Optional[Dict]:
        try:
            with self._session_factory() as session:
                entry = session.get(LedgerEntry, key)
                return None if entry is None else _copy(key, entry.value)
        except SQLAlchemyError as e:
            logger.error(f"Read of {key} failed: {e}")
            raise StoreError(f"Failed to read {key!r}") from e

    def put_many(self, items: Dict[str, Dict]) -> None:
        staged = {key: _copy(key, value) for key, value in items.items()}
        session = self._session_factory()
        try:
            for key, value in staged.items():
                entry = session.get(LedgerEntry, key)
                if entry is None:
                    session.add(LedgerEntry(key=key, value=value, version=1))
                else:
                    entry.value = value
                    entry.version += 1
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Commit of {len(staged)} ledger entries failed: {e}")
            raise StoreError(f"Failed to write {len(staged)} ledger entries") from e
        finally:
            session.close()


def get_store() -> LedgerStore:
    if settings.STORE_BACKEND == "memory":
        return MemoryLedgerStore()
    return SqlLedgerStore()
