# Overview: Ticket number allocation for sales; per-business counters.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ValidationError
from ..models import TicketSequence


TICKET_SEQUENCE = "SALE_TICKET"
TICKET_PREFIX = "CUST"


def _bump(business_id: int, sequence_type: str) -> int | None:
    stmt = (
        update(TicketSequence)
        .where(
            TicketSequence.business_id == business_id,
            TicketSequence.sequence_type == sequence_type,
        )
        .values(next_number=TicketSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    db.session.flush()
    current = (
        db.session.query(TicketSequence.next_number)
        .filter_by(business_id=business_id, sequence_type=sequence_type)
        .scalar()
    )
    return current - 1


def allocate_number(business_id: int, sequence_type: str) -> int:
    """
    Allocate the next integer of a (business, sequence_type) counter.

    Runs inside the caller's transaction so a rolled-back sale also gives its
    number back. The UPDATE takes the row lock; first use inserts the row under
    a savepoint and falls back to the UPDATE if another writer won the insert.
    """
    if not business_id:
        raise ValidationError("business_id is required")
    if not sequence_type:
        raise ValidationError("sequence_type is required")

    number = _bump(business_id, sequence_type)
    if number is not None:
        return number

    try:
        with db.session.begin_nested():
            db.session.add(TicketSequence(business_id=business_id, sequence_type=sequence_type, next_number=2))
        return 1
    except IntegrityError:
        number = _bump(business_id, sequence_type)
        if number is None:
            raise
        return number


def format_ticket_id(number: int, *, prefix: str = TICKET_PREFIX, pad: int = 5) -> str:
    return f"{prefix}-{number:0{pad}d}"


def next_ticket_id(business_id: int, *, prefix: str = TICKET_PREFIX, pad: int = 5) -> str:
    """Next human-facing ticket id for a business, e.g. CUST-00001."""
    return format_ticket_id(allocate_number(business_id, TICKET_SEQUENCE), prefix=prefix, pad=pad)
