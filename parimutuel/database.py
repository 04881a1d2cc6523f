from sqlalchemy import create_engine, Column, Integer, String, DateTime, JSON
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from .config import settings

Base = declarative_base()

# --- HELPER FUNCTIONS ---
_engine = None


def create_db_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Make sure the directory of a file-backed database exists
        path = url.split("///", 1)[1] if "///" in url else ""
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        # Transactions run on worker threads, not only the creating one
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_db_engine(settings.DATABASE_URL)
    return _engine


def init_db(engine: Optional[Engine] = None):
    Base.metadata.create_all(engine or get_engine())


def _utcnow():
    return datetime.now(timezone.utc)

# --- MODELS ---

class LedgerEntry(Base):
    """One ledger document (user, event, bet or index) keyed by its path."""
    __tablename__ = 'ledger_entries'
    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
