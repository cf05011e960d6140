"""Per-day sequential order numbers: PREFIX + YYYYMMDD + 3-digit sequence."""
from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from bakery.models import Order, OrderSequence
from bakery.utils.money import utcnow

SEQUENCE_WIDTH = 3


def format_order_number(prefix: str, day: date, sequence: int) -> str:
    """ORD + 20261019 + 001 -> 'ORD20261019001'."""
    return f"{prefix}{day.strftime('%Y%m%d')}{str(sequence).zfill(SEQUENCE_WIDTH)}"


def parse_sequence(order_number: str, prefix: str, day: date) -> Optional[int]:
    """Sequence part of an order number issued on `day`, None if it belongs elsewhere."""
    head = f"{prefix}{day.strftime('%Y%m%d')}"
    if not order_number or not order_number.startswith(head):
        return None
    tail = order_number[len(head):]
    return int(tail) if tail.isdigit() else None


def highest_sequence_for_day(session: Session, prefix: str, day: date) -> int:
    """Highest sequence among orders already numbered for `day` (0 if none)."""
    head = f"{prefix}{day.strftime('%Y%m%d')}"
    numbers = session.query(Order.order_number).filter(
        Order.order_number.like(f"{head}%")
    ).all()
    sequences = [parse_sequence(row[0], prefix, day) for row in numbers]
    return max((seq for seq in sequences if seq is not None), default=0)


def _seed_day(session: Session, prefix: str, today: date, day_key: str) -> None:
    """Create the day's counter row unless another transaction already has."""
    seed = highest_sequence_for_day(session, prefix, today)
    dialect = session.get_bind().dialect.name
    if dialect == 'postgresql':
        stmt = pg_insert(OrderSequence)
    elif dialect == 'sqlite':
        stmt = sqlite_insert(OrderSequence)
    else:
        session.add(OrderSequence(prefix=prefix, day=day_key, last_value=seed))
        session.flush()
        return
    session.execute(
        stmt.values(prefix=prefix, day=day_key, last_value=seed)
        .on_conflict_do_nothing(index_elements=['prefix', 'day'])
    )


def _increment(session: Session, prefix: str, day_key: str) -> int:
    return session.execute(
        update(OrderSequence)
        .where(OrderSequence.prefix == prefix, OrderSequence.day == day_key)
        .values(last_value=OrderSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    ).rowcount


def next_order_number(session: Session, prefix: str = 'ORD', today: Optional[date] = None) -> str:
    """
    Allocate the next order number for today.

    Atomic increment-and-get on the day's order_sequence row: the UPDATE
    holds the row lock until the surrounding order transaction commits or
    rolls back, so concurrent checkouts are numbered one after another and a
    rolled-back checkout gives its number back. The first order of a day
    seeds the counter from existing order numbers; concurrent seeders
    collapse onto one row through ON CONFLICT DO NOTHING.
    """
    today = today or utcnow().date()
    day_key = today.strftime('%Y%m%d')

    if _increment(session, prefix, day_key) != 1:
        _seed_day(session, prefix, today, day_key)
        _increment(session, prefix, day_key)

    sequence = session.query(OrderSequence.last_value).filter(
        OrderSequence.prefix == prefix,
        OrderSequence.day == day_key
    ).scalar()
    return format_order_number(prefix, today, sequence)
