# Overview: Service-layer operations for customers and vendors; balances and deletes.

"""
Party Service

WHY: Customers and vendors share one table and one running balance. The sign
convention lives with the callers (see sales_service): customer credit sales
raise the balance, customer payments lower it; vendor purchases on credit
lower it, payments to vendors raise it.

DESIGN:
- adjust_balance is the only way a balance moves after creation.
- Deleting a party never cascades: items and transactions that referenced it
  keep their rows with the reference cleared.
- Phone numbers are stored as given, except in bulk import where they are
  reduced to their last 10 digits for de-duplication.
"""

from __future__ import annotations

import re
from typing import Iterable

from sqlalchemy import select

from .. import schema
from ..errors import NotFound
from ..models import Party, PartyType
from ..store import LedgerStore
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    optional_text,
    require_text,
    validate_payload,
)
from .coordinator import AtomicUnit

PARTY_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "phone", "type", "gst_number", "balance"}),
    required_on_create=frozenset({"name", "phone", "type"}),
)


def normalize_phone_digits(phone: str) -> str:
    """Digits only, at most the last 10 ("+91 98765-43210" -> "9876543210")."""
    digits = re.sub(r"\D", "", phone or "")
    return digits[-10:]


def _check_type(party_type: str) -> str:
    if party_type not in PartyType.ALL:
        raise ValidationError(
            f"party type must be one of {', '.join(PartyType.ALL)}",
            details={"type": party_type},
        )
    return party_type


def _add_party_inner(unit: AtomicUnit, fields: dict) -> int:
    values = validate_payload(model=Party, payload=fields, policy=PARTY_POLICY, partial=False)
    _check_type(values["type"])
    values.setdefault("balance", 0.0)
    return unit.insert(schema.PARTIES, values)


def add_party(store: LedgerStore, **fields) -> int:
    return store.run_atomic(lambda unit: _add_party_inner(unit, fields)).value


def add_customer(store: LedgerStore, *, name: str, phone: str) -> int:
    return add_party(
        store,
        name=require_text(name, "name"),
        phone=require_text(phone, "phone"),
        type=PartyType.CUSTOMER,
    )


def add_vendor(store: LedgerStore, *, name: str, phone: str, gst_number: str | None = None) -> int:
    return add_party(
        store,
        name=require_text(name, "name"),
        phone=require_text(phone, "phone"),
        type=PartyType.VENDOR,
        gst_number=optional_text(gst_number),
    )


def add_customers_bulk(store: LedgerStore, customers: Iterable[tuple[str, str]]) -> tuple[int, int]:
    """
    Import (name, phone) pairs as customers in one unit.

    Rows with a blank name, no phone digits, or a phone already used by a
    customer (existing or earlier in the batch) are skipped.
    Returns (added, skipped).
    """
    rows = list(customers)
    parties = schema.table(schema.PARTIES)

    def _op(unit: AtomicUnit):
        existing = unit.connection.execute(
            select(parties.c.phone).where(parties.c.type == PartyType.CUSTOMER)
        ).scalars()
        seen = {normalize_phone_digits(p) for p in existing}
        seen.discard("")

        added = skipped = 0
        for raw_name, raw_phone in rows:
            name = (raw_name or "").strip()
            phone = normalize_phone_digits(raw_phone)
            if not name or not phone or phone in seen:
                skipped += 1
                continue
            unit.insert(schema.PARTIES, {
                "name": name,
                "phone": phone,
                "type": PartyType.CUSTOMER,
                "gst_number": None,
                "balance": 0.0,
            })
            seen.add(phone)
            added += 1
        return added, skipped

    return store.run_atomic(_op).value


def update_party(store: LedgerStore, party_id: int, **fields) -> None:
    values = validate_payload(model=Party, payload=fields, policy=PARTY_POLICY, partial=True)
    if not values:
        raise ValidationError("nothing to update")
    if "type" in values:
        _check_type(values["type"])

    def _op(unit: AtomicUnit):
        if not unit.update(schema.PARTIES, party_id, values):
            raise NotFound("party", party_id)

    store.run_atomic(_op)


def _adjust_balance_inner(unit: AtomicUnit, party_id: int, delta: float) -> None:
    if isinstance(delta, bool) or not isinstance(delta, (int, float)):
        raise ValidationError("delta must be a number", details={"delta": delta})
    if not unit.apply_delta(schema.PARTIES, party_id, "balance", float(delta)):
        raise NotFound("party", party_id)


def adjust_balance(store: LedgerStore, *, party_id: int, delta: float) -> None:
    """balance = balance + delta. Signed, no floor."""
    store.run_atomic(lambda unit: _adjust_balance_inner(unit, party_id, delta))


def delete_parties(store: LedgerStore, party_ids: Iterable[int]) -> int:
    """Hard delete; item vendor links and transaction party links become NULL."""
    ids = sorted(set(party_ids))
    if not ids:
        return 0
    return store.run_atomic(lambda unit: unit.delete_many(schema.PARTIES, ids)).value
