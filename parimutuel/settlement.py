import logging
from collections import defaultdict
from typing import Dict

from .errors import AlreadyResolvedError, StoreError, ValidationError
from .ledger import Ledger
from .locks import LockRegistry, event_lock, user_lock
from .odds import calculate_payout, compute_odds
from .schemas import Payout, PayoutSummary

logger = logging.getLogger(__name__)


class SettlementEngine:
    """
    Declares the winner of an event and pays out its pool.

    The event lock is taken before anything is read, so the pool that gets
    paid is exactly the set of bets committed before resolution started; a
    bet waiting on the lock will find the event resolved and be rejected.
    The resolved flag and every credit go to the store as one batch.
    """

    def __init__(self, ledger: Ledger, locks: LockRegistry):
        self.ledger = ledger
        self.locks = locks

    def resolve_event(self, event_id: str, winning_choice: str) -> PayoutSummary:
        with self.locks.hold(event_lock(event_id)):
            event = self.ledger.get_event(event_id)
            if event is None:
                raise ValidationError(f"Unknown event {event_id!r}")
            if event.resolved:
                logger.warning(f"Event {event_id} already resolved as {event.result!r}")
                raise AlreadyResolvedError(f"Event {event.name!r} was already resolved as {event.result!r}")
            if winning_choice not in event.options:
                raise ValidationError(f"{winning_choice!r} is not an option of {event.name!r}")

            resolved = event.with_result(winning_choice)

            # Final odds over the frozen pool
            bets = self.ledger.get_bets_for_event(event.id)
            odds = compute_odds(resolved, bets)
            multiplier = odds[winning_choice]

            payouts = [
                Payout(
                    bet_id=bet.id,
                    user_id=bet.user_id,
                    stake=bet.amount,
                    credit=calculate_payout(bet.amount, multiplier),
                )
                for bet in bets
                if bet.choice == winning_choice
            ]
            credits: Dict[str, int] = defaultdict(int)
            for payout in payouts:
                credits[payout.user_id] += payout.credit

            with self.locks.hold(*(user_lock(u) for u in credits)):
                winners = []
                for user_id, credit in credits.items():
                    user = self.ledger.get_user(user_id)
                    if user is None:
                        raise StoreError(f"Bet on {event_id} references missing user {user_id!r}")
                    winners.append(user.model_copy(update={"balance": user.balance + credit}))
                self.ledger.commit(resolved, *winners)

        summary = PayoutSummary(
            event_id=event.id,
            result=winning_choice,
            odds=odds,
            pool=sum(bet.amount for bet in bets),
            payouts=payouts,
        )
        logger.info(
            f"Resolved {event.name!r} as {winning_choice!r} @ {multiplier:.2f}: "
            f"paid {summary.total_paid} to {len(payouts)} winning bets"
        )
        return summary
