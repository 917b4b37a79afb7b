from __future__ import annotations

from ..extensions import db


class NumberSequence(db.Model):
    """
    Counter row per document prefix (e.g. "TXN").

    next_number is bumped with an atomic UPDATE inside the caller's unit of
    work, so a rolled-back sale also rolls back its number.
    """
    __tablename__ = "number_sequences"

    prefix = db.Column(db.String(16), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<NumberSequence prefix={self.prefix!r} next={self.next_number}>"
