import pytest

from parimutuel.database import create_db_engine
from parimutuel.engine import BettingPool
from parimutuel.errors import StoreError
from parimutuel.locks import LockRegistry
from parimutuel.store import MemoryLedgerStore, SqlLedgerStore


@pytest.fixture
def memory_store():
    return MemoryLedgerStore()


@pytest.fixture
def sql_store(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    yield SqlLedgerStore(engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    # Every transaction test runs against both backends
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def pool(store):
    return BettingPool(store, LockRegistry(timeout=5.0))


@pytest.fixture
def match(pool):
    return pool.create_event("Match", ["A", "B"])


class FlakyStore(MemoryLedgerStore):
    """Memory store whose batch writes fail while `fail` is set."""

    fail = False

    def put_many(self, items):
        if self.fail:
            raise StoreError("backend unavailable")
        super().put_many(items)


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def flaky_pool(flaky_store):
    return BettingPool(flaky_store, LockRegistry(timeout=1.0))
