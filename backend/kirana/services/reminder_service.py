# Overview: Service-layer operations for reminders (create, complete, delete).

from __future__ import annotations

from typing import Iterable

from .. import schema
from ..errors import NotFound
from ..models import Reminder, ReminderKind
from ..store import LedgerStore
from ..validation import ModelValidationPolicy, ValidationError, require_text, validate_payload
from .coordinator import AtomicUnit

REMINDER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"title", "type", "ref_id", "due_at", "note"}),
    required_on_create=frozenset({"title", "type", "due_at"}),
)


def _check_reference(kind: str, ref_id) -> None:
    if kind not in ReminderKind.ALL:
        raise ValidationError(
            f"reminder type must be one of {', '.join(ReminderKind.ALL)}",
            details={"type": kind},
        )
    # A GENERAL reminder points at nothing; every other kind needs a target id
    if kind == ReminderKind.GENERAL and ref_id is not None:
        raise ValidationError("general reminders cannot reference a row", details={"ref_id": ref_id})
    if kind != ReminderKind.GENERAL and ref_id is None:
        raise ValidationError(f"{kind} reminders need a ref_id", details={"type": kind})


def add_reminder(
    store: LedgerStore,
    *,
    kind: str,
    title: str,
    due_at: int,
    ref_id: int | None = None,
    note: str | None = None,
) -> int:
    """
    Insert a pending reminder. The reference is not checked against its
    target table; a reminder may point at a row that is later deleted.
    """
    values = validate_payload(
        model=Reminder,
        payload={
            "title": require_text(title, "title"),
            "type": kind,
            "ref_id": ref_id,
            "due_at": due_at,
            "note": note,
        },
        policy=REMINDER_POLICY,
        partial=False,
    )
    _check_reference(values["type"], values["ref_id"])
    values["is_done"] = False
    return store.run_atomic(lambda unit: unit.insert(schema.REMINDERS, values)).value


def mark_reminder_done(store: LedgerStore, reminder_id: int) -> None:
    def _op(unit: AtomicUnit):
        if not unit.update(schema.REMINDERS, reminder_id, {"is_done": True}):
            raise NotFound("reminder", reminder_id)

    store.run_atomic(_op)


def delete_reminder(store: LedgerStore, reminder_id: int) -> int:
    return delete_reminders(store, [reminder_id])


def delete_reminders(store: LedgerStore, reminder_ids: Iterable[int]) -> int:
    ids = sorted(set(reminder_ids))
    if not ids:
        return 0
    return store.run_atomic(lambda unit: unit.delete_many(schema.REMINDERS, ids)).value
