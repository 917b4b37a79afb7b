# Overview: Human-readable number allocation for POS documents.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import NumberSequence


def next_number(prefix: str, *, pad: int = 6) -> str:
    """
    Allocate the next number for `prefix` inside the current unit of work.

    Does NOT commit: the bump becomes visible together with the document
    that uses it, and disappears with it on rollback. The UPDATE holds the
    sequence row lock until the caller commits, which serialises concurrent
    allocators.
    """
    if not prefix:
        raise ValueError("prefix is required")

    stmt = (
        update(NumberSequence)
        .where(NumberSequence.prefix == prefix)
        .values(next_number=NumberSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        # First number for this prefix; a concurrent creator wins the insert
        # and we fall back to bumping its row.
        try:
            with db.session.begin_nested():
                db.session.add(NumberSequence(prefix=prefix, next_number=2))
            return f"{prefix}-{1:0{pad}d}"
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(NumberSequence.next_number)
        .filter(NumberSequence.prefix == prefix)
        .scalar()
    )
    return f"{prefix}-{current - 1:0{pad}d}"
