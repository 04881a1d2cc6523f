import logging
from numbers import Integral

from .errors import EventResolvedError, ValidationError
from .ledger import Ledger, event_bets_index, new_id
from .locks import LockRegistry, event_lock, user_lock
from .schemas import Bet

logger = logging.getLogger(__name__)


class WagerManager:
    """
    Places bets. The stake debit and the bet record are committed in one
    store batch while the event and the bettor are both locked, so a balance
    is never debited without its bet (or the reverse), and no bet can slip in
    once resolution holds the event.
    """

    def __init__(self, ledger: Ledger, locks: LockRegistry):
        self.ledger = ledger
        self.locks = locks

    def place_bet(self, user_id: str, event_id: str, choice: str, amount: int) -> Bet:
        with self.locks.hold(event_lock(event_id)):
            event = self.ledger.get_event(event_id)
            if event is None:
                raise ValidationError(f"Unknown event {event_id!r}")
            if event.resolved:
                logger.warning(f"Rejected bet on resolved event {event_id}")
                raise EventResolvedError(f"Event {event.name!r} is already resolved")
            if choice not in event.options:
                raise ValidationError(f"{choice!r} is not an option of {event.name!r}")
            # Stakes are whole credits, like balances
            if isinstance(amount, bool) or not isinstance(amount, Integral):
                raise ValidationError(f"Bet amount must be a whole number, got {amount!r}")
            if amount <= 0:
                raise ValidationError("Bet amount must be positive")

            with self.locks.hold(user_lock(user_id)):
                user = self.ledger.get_user(user_id)
                if user is None:
                    raise ValidationError(f"Unknown user {user_id!r}")
                if amount > user.balance:
                    logger.warning(f"Rejected bet of {amount} by {user_id}: balance is {user.balance}")
                    raise ValidationError(f"Insufficient balance: {user.balance} available, {amount} requested")

                bet = Bet(
                    id=new_id("b"),
                    event_id=event.id,
                    choice=choice,
                    amount=int(amount),
                    user_id=user.id,
                )
                debited = user.model_copy(update={"balance": user.balance - bet.amount})
                bet_ids = self.ledger.bet_ids_for_event(event.id) + [bet.id]
                self.ledger.commit(bet, debited, indexes={event_bets_index(event.id): bet_ids})

        logger.info(f"Bet {bet.id}: {user_id} staked {bet.amount} on {choice!r} ({event.name})")
        return bet
