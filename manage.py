import click
import logging
from datetime import datetime, timezone

# Import our internal modules
from parimutuel.database import init_db
from parimutuel.engine import BettingPool
from parimutuel.errors import PoolError

# Setup Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)


def _run(action, *args):
    try:
        return action(*args)
    except PoolError as e:
        raise click.ClickException(str(e))


@click.group()
@click.pass_context
def cli(ctx):
    """The Pari-Mutuel Pool CLI Control Tool"""
    # Tests and embedding code may hand in their own pool
    if ctx.obj is None:
        ctx.obj = BettingPool()


@cli.command()
def setup():
    """Creates the ledger database and tables."""
    init_db()
    click.echo("✅ Database setup complete.")


@cli.command()
@click.option('--name', default=None, help='Display name')
@click.option('--balance', type=int, default=None, help='Starting credit (defaults to STARTING_BALANCE)')
@click.pass_obj
def create_user(pool, name, balance):
    """Registers a new player."""
    user = _run(pool.create_user, name, balance)
    click.echo(f"✅ User {user.id} ({user.name}) created with balance {user.balance}.")


@cli.command()
@click.argument('name')
@click.argument('options', nargs=-1, required=True)
@click.option('--ends-at', type=click.DateTime(), default=None, help='Betting deadline (UTC), informational')
@click.pass_obj
def create_event(pool, name, options, ends_at):
    """Opens a new event with two or more OPTIONS."""
    if ends_at is not None:
        ends_at = ends_at.replace(tzinfo=timezone.utc)
    event = _run(pool.create_event, name, list(options), ends_at)
    click.echo(f"✅ Event {event.id} created: {event.name} [{', '.join(event.options)}]")


@cli.command()
@click.pass_obj
def events(pool):
    """Lists events, newest first, with live odds."""
    evs = _run(pool.list_events)
    if not evs:
        click.echo("No events. Create one!")
        return

    now = datetime.now(timezone.utc)
    for ev in evs:
        status = ev.status(now)
        label = f"result: {ev.result}" if status == "resolved" else status
        odds = _run(pool.get_odds, ev.id)
        prices = " | ".join(f"{o} @ {odds[o]:.2f}" for o in ev.options)
        click.echo(f"[{ev.id}] {ev.name} ({label}) {prices}")


@cli.command()
@click.argument('event_id')
@click.pass_obj
def odds(pool, event_id):
    """Shows the current book of an event."""
    book = _run(pool.event_book, event_id)
    click.echo(book.to_string(index=False))


@cli.command()
@click.argument('user_id')
@click.argument('event_id')
@click.argument('choice')
@click.argument('amount', type=int)
@click.pass_obj
def bet(pool, user_id, event_id, choice, amount):
    """Stakes AMOUNT credits on CHOICE."""
    placed = _run(pool.place_bet, user_id, event_id, choice, amount)
    balance = _run(pool.get_user, user_id).balance
    click.echo(f"✅ Bet {placed.id} registered. Balance: {balance}")


@cli.command()
@click.argument('event_id')
@click.argument('winner')
@click.pass_obj
def resolve(pool, event_id, winner):
    """Declares WINNER and pays out the pool."""
    summary = _run(pool.resolve_event, event_id, winner)
    click.echo(
        f"🏆 {summary.result} wins @ {summary.odds[summary.result]:.2f}. "
        f"Paid {summary.total_paid} across {len(summary.payouts)} bets (pool {summary.pool})."
    )


@cli.command()
@click.argument('event_id')
@click.pass_obj
def bets(pool, event_id):
    """Lists the bets placed on an event."""
    placed = _run(pool.get_bets, event_id)
    if not placed:
        click.echo("No bets on this event.")
        return
    for b in placed:
        click.echo(f"{b.user_id[:10]} bet {b.amount} on {b.choice}")


@cli.command()
@click.option('--size', type=int, default=None, help='Rows to show')
@click.pass_obj
def leaderboard(pool, size):
    """Top players by balance."""
    board = _run(pool.leaderboard, size)
    if board.empty:
        click.echo("No players yet.")
        return
    click.echo(board.to_string(index=False))


if __name__ == '__main__':
    cli()
