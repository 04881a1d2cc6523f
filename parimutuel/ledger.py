"""
Typed access to the ledger documents.

Key layout:
    users/<id>, events/<id>, bets/<id>
    index/users, index/events, index/event_bets/<event_id>   ({"ids": [...]})

Index documents let every read go straight to a key; the store is never scanned.
"""

import uuid
from typing import Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from .errors import StoreError
from .schemas import Bet, Event, User
from .store import LedgerStore

USERS_INDEX = "index/users"
EVENTS_INDEX = "index/events"

_PREFIXES = {User: "users", Event: "events", Bet: "bets"}

M = TypeVar("M", bound=BaseModel)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def entity_key(entity: BaseModel) -> str:
    return f"{_PREFIXES[type(entity)]}/{entity.id}"


def event_bets_index(event_id: str) -> str:
    return f"index/event_bets/{event_id}"


class Ledger:
    def __init__(self, store: LedgerStore):
        self.store = store

    def _load(self, model: Type[M], entity_id: str) -> Optional[M]:
        key = f"{_PREFIXES[model]}/{entity_id}"
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate(raw)
        except SchemaError as e:
            raise StoreError(f"Corrupt ledger entry at {key!r}") from e

    def _ids(self, index_key: str) -> List[str]:
        raw = self.store.get(index_key)
        return list(raw["ids"]) if raw else []

    # --- READS ---

    def get_user(self, user_id: str) -> Optional[User]:
        return self._load(User, user_id)

    def get_event(self, event_id: str) -> Optional[Event]:
        return self._load(Event, event_id)

    def user_ids(self) -> List[str]:
        return self._ids(USERS_INDEX)

    def event_ids(self) -> List[str]:
        return self._ids(EVENTS_INDEX)

    def bet_ids_for_event(self, event_id: str) -> List[str]:
        return self._ids(event_bets_index(event_id))

    def _load_all(self, model: Type[M], ids: Iterable[str]) -> List[M]:
        found = []
        for entity_id in ids:
            entity = self._load(model, entity_id)
            if entity is None:
                raise StoreError(f"Index points at missing {model.__name__} {entity_id!r}")
            found.append(entity)
        return found

    def list_users(self) -> List[User]:
        return self._load_all(User, self.user_ids())

    def list_events(self) -> List[Event]:
        return self._load_all(Event, self.event_ids())

    def get_bets_for_event(self, event_id: str) -> List[Bet]:
        """Bets in placement order."""
        return self._load_all(Bet, self.bet_ids_for_event(event_id))

    # --- WRITES ---

    def commit(self, *entities: BaseModel, indexes: Optional[Dict[str, List[str]]] = None):
        """Persist entities and index documents as one store batch."""
        writes = {entity_key(e): e.model_dump(mode="json") for e in entities}
        for key, ids in (indexes or {}).items():
            writes[key] = {"ids": list(ids)}
        self.store.put_many(writes)
