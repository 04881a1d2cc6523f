"""
Pari-mutuel odds.

The multiplier of an outcome is the fair inverse of its share of the pool,
less the house cut, floored so a winning stake always returns more than it
cost. Odds are never cached: every new bet moves every outcome.
"""

import math
from typing import Dict, Iterable

from .schemas import Bet, Event

# --- GAME CONSTANTS ---
EMPTY_POOL_MULTIPLIER = 2.0
UNCOVERED_MULTIPLIER = 5.0  # outcome with no stake while the pool has money
MIN_MULTIPLIER = 1.2
HOUSE_FACTOR = 0.9  # 10% house cut


def round_half_up(value: float, places: int = 0) -> float:
    scale = 10 ** places
    return math.floor(value * scale + 0.5) / scale


def pool_totals(event: Event, bets: Iterable[Bet]) -> Dict[str, int]:
    """Stake per outcome, in option order. Bets on other events are ignored."""
    totals = {option: 0 for option in event.options}
    for bet in bets:
        if bet.event_id != event.id or bet.choice not in totals:
            continue
        totals[bet.choice] += bet.amount
    return totals


def compute_odds(event: Event, bets: Iterable[Bet]) -> Dict[str, float]:
    totals = pool_totals(event, bets)
    pool = sum(totals.values())

    odds = {}
    for option, total in totals.items():
        if pool == 0:
            multiplier = EMPTY_POOL_MULTIPLIER
        elif total == 0:
            multiplier = UNCOVERED_MULTIPLIER
        else:
            share = total / pool
            multiplier = max(MIN_MULTIPLIER, (1 / share) * HOUSE_FACTOR)
        odds[option] = round_half_up(multiplier, 2)
    return odds


def calculate_payout(stake: int, multiplier: float) -> int:
    """Credit for a winning stake, rounded to whole credits (halves round up)."""
    return int(round_half_up(stake * multiplier))
