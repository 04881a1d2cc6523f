import logging
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd
from pydantic import ValidationError as SchemaError

from . import reports
from .config import settings
from .errors import ValidationError
from .ledger import EVENTS_INDEX, USERS_INDEX, Ledger, new_id
from .locks import EVENTS_INDEX_LOCK, USERS_INDEX_LOCK, LockRegistry
from .odds import compute_odds
from .schemas import Bet, Event, PayoutSummary, User
from .settlement import SettlementEngine
from .store import LedgerStore, get_store
from .wagers import WagerManager

logger = logging.getLogger(__name__)


def _schema_message(error: SchemaError) -> str:
    return "; ".join(e["msg"] for e in error.errors())


class BettingPool:
    """Entry point for callers: accounts, events, wagers, resolution and reports."""

    def __init__(self, store: Optional[LedgerStore] = None, locks: Optional[LockRegistry] = None):
        self.ledger = Ledger(store if store is not None else get_store())
        self.locks = locks or LockRegistry()
        self.wagers = WagerManager(self.ledger, self.locks)
        self.settlement = SettlementEngine(self.ledger, self.locks)

    # --- USERS ---

    def create_user(self, name: Optional[str] = None, balance: Optional[int] = None) -> User:
        name = (name or "").strip() or settings.DEFAULT_USER_NAME
        balance = settings.STARTING_BALANCE if balance is None else balance
        try:
            user = User(id=new_id("u"), name=name, balance=balance)
        except SchemaError as e:
            raise ValidationError(f"Invalid user: {_schema_message(e)}") from e

        with self.locks.hold(USERS_INDEX_LOCK):
            ids = self.ledger.user_ids() + [user.id]
            self.ledger.commit(user, indexes={USERS_INDEX: ids})
        logger.info(f"Created user {user.id} ({user.name}) with balance {user.balance}")
        return user

    def get_user(self, user_id: str) -> User:
        user = self.ledger.get_user(user_id)
        if user is None:
            raise ValidationError(f"Unknown user {user_id!r}")
        return user

    def list_users(self) -> List[User]:
        return self.ledger.list_users()

    # --- EVENTS ---

    def create_event(self, name: str, options: List[str], ends_at: Optional[datetime] = None) -> Event:
        labels = [o.strip() for o in options if o and o.strip()]
        try:
            event = Event(id=new_id("ev"), name=(name or "").strip(), options=labels, ends_at=ends_at)
        except SchemaError as e:
            raise ValidationError(f"Invalid event: {_schema_message(e)}") from e

        with self.locks.hold(EVENTS_INDEX_LOCK):
            ids = self.ledger.event_ids() + [event.id]
            self.ledger.commit(event, indexes={EVENTS_INDEX: ids})
        logger.info(f"Created event {event.id} ({event.name}) with options {event.options}")
        return event

    def get_event(self, event_id: str) -> Event:
        event = self.ledger.get_event(event_id)
        if event is None:
            raise ValidationError(f"Unknown event {event_id!r}")
        return event

    def list_events(self) -> List[Event]:
        """Newest first."""
        return sorted(self.ledger.list_events(), key=lambda e: e.created_at, reverse=True)

    def get_bets(self, event_id: str) -> List[Bet]:
        self.get_event(event_id)
        return self.ledger.get_bets_for_event(event_id)

    def get_odds(self, event_id: str) -> Dict[str, float]:
        event = self.get_event(event_id)
        return compute_odds(event, self.ledger.get_bets_for_event(event_id))

    # --- TRANSACTIONS ---

    def place_bet(self, user_id: str, event_id: str, choice: str, amount: int) -> Bet:
        return self.wagers.place_bet(user_id, event_id, choice, amount)

    def resolve_event(self, event_id: str, winning_choice: str) -> PayoutSummary:
        return self.settlement.resolve_event(event_id, winning_choice)

    # --- REPORTS ---

    def event_book(self, event_id: str) -> pd.DataFrame:
        event = self.get_event(event_id)
        return reports.event_book(event, self.ledger.get_bets_for_event(event_id))

    def leaderboard(self, size: Optional[int] = None) -> pd.DataFrame:
        return reports.leaderboard(self.list_users(), size or settings.LEADERBOARD_SIZE)
