from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..extensions import db
from ..time_utils import to_utc_z


class ReminderKind:
    ITEM = "ITEM"
    VENDOR = "VENDOR"
    CUSTOMER = "CUSTOMER"
    TRANSACTION = "TRANSACTION"
    GENERAL = "GENERAL"

    REFERENCING = (ITEM, VENDOR, CUSTOMER, TRANSACTION)
    ALL = REFERENCING + (GENERAL,)


@dataclass(frozen=True)
class ReminderRef:
    """
    Typed view of (type, ref_id).

    The stored pair has no foreign key: a reminder may outlive its target, and
    resolving a dangling ref simply finds nothing.
    """
    kind: str
    ref_id: int

    @property
    def table(self) -> str:
        if self.kind == ReminderKind.ITEM:
            return "items"
        if self.kind == ReminderKind.TRANSACTION:
            return "transactions"
        return "parties"


class Reminder(db.Model):
    __tablename__ = "reminders"
    __table_args__ = (
        db.Index("ix_reminders_done_due", "is_done", "due_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    # Untyped weak reference; meaning depends on `type`
    ref_id = db.Column(db.Integer, nullable=True)
    due_at = db.Column(db.BigInteger, nullable=False)
    note = db.Column(db.Text, nullable=True)
    is_done = db.Column(db.Boolean, nullable=False, default=False)

    def reference(self) -> Optional[ReminderRef]:
        if self.ref_id is None or self.type not in ReminderKind.REFERENCING:
            return None
        return ReminderRef(self.type, self.ref_id)

    def __repr__(self) -> str:
        return f"<Reminder id={self.id} title={self.title!r} done={self.is_done}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "ref_id": self.ref_id,
            "due_at": self.due_at,
            "due_at_utc": to_utc_z(self.due_at),
            "note": self.note,
            "is_done": self.is_done,
        }
