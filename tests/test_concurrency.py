"""
Concurrent wagers and resolution against one shared pool.
Run with: pytest tests/test_concurrency.py -v
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from parimutuel.engine import BettingPool
from parimutuel.errors import EventResolvedError, LockTimeoutError, ValidationError
from parimutuel.locks import LockRegistry, event_lock, user_lock


def _attempt(pool, user_id, event_id, choice, amount):
    try:
        return pool.place_bet(user_id, event_id, choice, amount)
    except ValidationError as e:
        return e


class TestConcurrentWagers:
    def test_pool_equals_sum_of_accepted_bets(self, pool, match):
        users = [pool.create_user(balance=1000) for _ in range(8)]
        jobs = [(u.id, "A" if i % 2 else "B", 10 + i) for i, u in enumerate(users) for _ in range(5)]

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda j: _attempt(pool, j[0], match.id, j[1], j[2]), jobs))

        assert not any(isinstance(r, Exception) for r in results)
        stored = pool.get_bets(match.id)
        assert len(stored) == len(jobs)
        assert sum(b.amount for b in stored) == sum(amount for _, _, amount in jobs)
        assert pool.event_book(match.id)["stake"].sum() == sum(amount for _, _, amount in jobs)

    def test_same_user_no_lost_update(self, pool):
        events = [pool.create_event(f"Match {i}", ["A", "B"]) for i in range(4)]
        user = pool.create_user(balance=1000)

        # 40 bets of 30 against 1000 credits: exactly 33 can be covered
        jobs = [events[i % 4].id for i in range(40)]
        with ThreadPoolExecutor(max_workers=10) as executor:
            results = list(executor.map(lambda ev: _attempt(pool, user.id, ev, "A", 30), jobs))

        accepted = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(accepted) == 33
        assert all("Insufficient balance" in str(e) for e in rejected)
        assert pool.get_user(user.id).balance == 1000 - 33 * 30
        assert sum(len(pool.get_bets(ev.id)) for ev in events) == 33


class TestResolutionRace:
    def test_payout_pool_is_exactly_the_committed_bets(self, pool, match):
        users = [pool.create_user(balance=1000) for _ in range(6)]
        started = threading.Event()

        def bettor(user):
            outcomes = []
            for i in range(20):
                if i == 5:
                    started.set()
                outcomes.append(_attempt(pool, user.id, match.id, "A" if i % 3 else "B", 5))
            return outcomes

        with ThreadPoolExecutor(max_workers=len(users) + 1) as executor:
            futures = [executor.submit(bettor, u) for u in users]
            started.wait(timeout=5)
            summary = pool.resolve_event(match.id, "A")
            outcomes = [o for f in futures for o in f.result()]

        accepted = [o for o in outcomes if not isinstance(o, Exception)]
        rejected = [o for o in outcomes if isinstance(o, Exception)]
        assert all(isinstance(e, EventResolvedError) for e in rejected)

        stored = pool.get_bets(match.id)
        assert {b.id for b in stored} == {b.id for b in accepted}
        assert summary.pool == sum(b.amount for b in stored)
        assert {p.bet_id for p in summary.payouts} == {b.id for b in stored if b.choice == "A"}

        # Every user: start - stakes + credits
        credits = {}
        for p in summary.payouts:
            credits[p.user_id] = credits.get(p.user_id, 0) + p.credit
        for u in users:
            staked = sum(b.amount for b in stored if b.user_id == u.id)
            assert pool.get_user(u.id).balance == 1000 - staked + credits.get(u.id, 0)

    def test_concurrent_resolutions_pay_once(self, pool, match):
        user = pool.create_user(balance=100)
        pool.place_bet(user.id, match.id, "A", 100)

        def resolve():
            try:
                return pool.resolve_event(match.id, "A")
            except Exception as e:
                return e

        with ThreadPoolExecutor(max_workers=5) as executor:
            results = list(executor.map(lambda _: resolve(), range(5)))

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert pool.get_user(user.id).balance == 120


class TestLocks:
    def test_busy_event_times_out(self, memory_store):
        locks = LockRegistry(timeout=0.05)
        pool = BettingPool(memory_store, locks)
        event = pool.create_event("Match", ["A", "B"])
        user = pool.create_user(balance=100)

        with locks.hold(event_lock(event.id)):
            with pytest.raises(LockTimeoutError):
                pool.place_bet(user.id, event.id, "A", 10)
            with pytest.raises(LockTimeoutError):
                pool.resolve_event(event.id, "A")

        assert pool.get_user(user.id).balance == 100
        assert not pool.get_event(event.id).resolved

    def test_other_events_do_not_contend(self, memory_store):
        locks = LockRegistry(timeout=0.05)
        pool = BettingPool(memory_store, locks)
        busy = pool.create_event("Busy", ["A", "B"])
        free = pool.create_event("Free", ["A", "B"])
        user = pool.create_user(balance=100)

        with locks.hold(event_lock(busy.id)):
            pool.place_bet(user.id, free.id, "A", 10)
        assert pool.get_user(user.id).balance == 90

    def test_hold_releases_on_error(self):
        locks = LockRegistry(timeout=0.05)
        with pytest.raises(RuntimeError):
            with locks.hold("a", "b"):
                raise RuntimeError("boom")
        with locks.hold("a", "b"):
            pass

    def test_partial_acquire_is_released(self):
        locks = LockRegistry(timeout=0.05)
        blocker = threading.Event()
        release = threading.Event()

        def hold_b():
            with locks.hold(user_lock("b")):
                blocker.set()
                release.wait(timeout=5)

        t = threading.Thread(target=hold_b)
        t.start()
        blocker.wait(timeout=5)
        try:
            with pytest.raises(LockTimeoutError):
                with locks.hold(user_lock("a"), user_lock("b")):
                    pass
            # "user:a" was taken first and must have been given back
            with locks.hold(user_lock("a")):
                pass
        finally:
            release.set()
            t.join()
