import pandas as pd
from collections import Counter
from typing import Iterable, List

from .odds import compute_odds, pool_totals
from .schemas import Bet, Event, User

BOOK_COLUMNS = ['option', 'stake', 'bets', 'share', 'odds']
LEADERBOARD_COLUMNS = ['user_id', 'name', 'balance']


def event_book(event: Event, bets: Iterable[Bet]) -> pd.DataFrame:
    """
    One row per option: money staked, number of bets, share of the pool and
    the multiplier a winning stake would get right now.
    """
    bets = [b for b in bets if b.event_id == event.id]
    totals = pool_totals(event, bets)
    odds = compute_odds(event, bets)
    counts = Counter(b.choice for b in bets)
    pool = sum(totals.values())

    rows = []
    for option in event.options:
        rows.append({
            'option': option,
            'stake': totals[option],
            'bets': counts.get(option, 0),
            'share': totals[option] / pool if pool else 0.0,
            'odds': odds[option],
        })
    return pd.DataFrame(rows, columns=BOOK_COLUMNS)


def leaderboard(users: List[User], size: int = 10) -> pd.DataFrame:
    if not users:
        return pd.DataFrame(columns=LEADERBOARD_COLUMNS)

    df = pd.DataFrame([
        {'user_id': u.id, 'name': u.name, 'balance': u.balance} for u in users
    ], columns=LEADERBOARD_COLUMNS)
    # Stable sort keeps sign-up order among equal balances
    df = df.sort_values(by='balance', ascending=False, kind='stable')
    return df.head(size).reset_index(drop=True)
