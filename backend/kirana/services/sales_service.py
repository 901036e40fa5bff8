"""
Sales Service - transactions and their lines

WHY: A financial record and its lines must land together or not at all.
Every public function here is exactly one atomic unit.

Lifecycle of a transaction: absent -> recorded -> (optionally) deleted.
Nothing here edits a recorded transaction or its lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .. import schema
from ..errors import NotFound
from ..models import PartyType, PaymentMode, Transaction, TransactionItem, TransactionType
from ..store import LedgerStore
from ..time_utils import format_display_time, now_millis
from ..validation import ModelValidationPolicy, ValidationError, optional_text, validate_payload
from .coordinator import AtomicUnit
from .inventory_service import _adjust_stock_inner
from .party_service import _adjust_balance_inner

TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "title", "type", "amount", "date", "time", "customer_id", "vendor_id", "payment_mode",
    }),
    required_on_create=frozenset({"title", "type", "amount", "date", "time", "payment_mode"}),
)

LINE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"item_id", "item_name_snapshot", "qty", "price"}),
    required_on_create=frozenset({"item_name_snapshot", "qty", "price"}),
)


@dataclass(frozen=True)
class LineItem:
    """One line as the caller sees it; transaction_id is filled in on insert."""
    item_name_snapshot: str
    qty: float
    price: float
    item_id: Optional[int] = None

    def to_values(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name_snapshot": self.item_name_snapshot,
            "qty": self.qty,
            "price": self.price,
        }


def _transaction_values(
    *,
    title: str,
    type: str,
    amount: float,
    payment_mode: str,
    date: int | None,
    time: str | None,
    customer_id: int | None,
    vendor_id: int | None,
) -> dict:
    _check_payment_mode(payment_mode)
    date = now_millis() if date is None else date
    payload = {
        "title": title,
        "type": type,
        "amount": amount,
        "date": date,
        "time": time if time is not None else format_display_time(date),
        "customer_id": customer_id,
        "vendor_id": vendor_id,
        "payment_mode": payment_mode,
    }
    return validate_payload(model=Transaction, payload=payload, policy=TRANSACTION_POLICY, partial=False)


def _check_payment_mode(mode: str) -> str:
    if mode not in PaymentMode.ALL:
        raise ValidationError(
            f"payment mode must be one of {', '.join(PaymentMode.ALL)}",
            details={"payment_mode": mode},
        )
    return mode


def _line_values(lines: Iterable[LineItem]) -> list[dict]:
    return [
        validate_payload(model=TransactionItem, payload=line.to_values(), policy=LINE_POLICY, partial=False)
        for line in lines
    ]


def _insert_transaction_inner(unit: AtomicUnit, values: dict, lines: list[dict]) -> int:
    transaction_id = unit.insert(schema.TRANSACTIONS, values)
    unit.insert_many(
        schema.TRANSACTION_ITEMS,
        [dict(line, transaction_id=transaction_id) for line in lines],
    )
    return transaction_id


def record_transaction_with_items(
    store: LedgerStore,
    *,
    title: str,
    type: str,
    amount: float,
    payment_mode: str,
    lines: Iterable[LineItem] = (),
    date: int | None = None,
    time: str | None = None,
    customer_id: int | None = None,
    vendor_id: int | None = None,
) -> int:
    """Insert a transaction of any type plus its (possibly empty) lines."""
    values = _transaction_values(
        title=title, type=type, amount=amount, payment_mode=payment_mode,
        date=date, time=time, customer_id=customer_id, vendor_id=vendor_id,
    )
    line_values = _line_values(lines)
    return store.run_atomic(lambda unit: _insert_transaction_inner(unit, values, line_values)).value


def record_sale(
    store: LedgerStore,
    *,
    title: str,
    amount: float,
    payment_mode: str,
    lines: Iterable[LineItem],
    date: int | None = None,
    time: str | None = None,
    customer_id: int | None = None,
) -> int:
    """
    Insert a SALE and its lines; returns the new transaction id.

    Stock is NOT touched here. Use checkout() for the sale + stock + credit
    composite, or compose _adjust_stock_inner in your own unit.
    """
    line_values = _line_values(lines)
    if not line_values:
        raise ValidationError("a sale needs at least one line")
    values = _transaction_values(
        title=title, type=TransactionType.SALE, amount=amount, payment_mode=payment_mode,
        date=date, time=time, customer_id=customer_id, vendor_id=None,
    )

    def _op(unit: AtomicUnit):
        if customer_id is not None:
            _require_party_of_type(unit, customer_id, PartyType.CUSTOMER)
        return _insert_transaction_inner(unit, values, line_values)

    return store.run_atomic(_op).value


def checkout(
    store: LedgerStore,
    *,
    items: Iterable[tuple[int, int]],
    payment_mode: str,
    customer_id: int | None = None,
    total_amount: float | None = None,
    date: int | None = None,
) -> int:
    """
    Point-of-sale checkout for (item_id, qty) pairs, as one unit:

    1. SALE transaction with one line per pair (name and price snapshotted
       from the item as it is right now)
    2. stock decreased by qty for every line
    3. customer balance increased by the total when paid on CREDIT

    total_amount defaults to the sum of qty * price.
    """
    pairs = list(items)
    if not pairs:
        raise ValidationError("checkout needs at least one item")
    for item_id, qty in pairs:
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise ValidationError("qty must be a positive integer", details={"item_id": item_id, "qty": qty})
    _check_payment_mode(payment_mode)

    def _op(unit: AtomicUnit):
        if customer_id is not None:
            _require_party_of_type(unit, customer_id, PartyType.CUSTOMER)
        lines = []
        for item_id, qty in pairs:
            item = unit.fetch_one(schema.ITEMS, item_id)
            if item is None:
                raise NotFound("item", item_id)
            if item["is_deleted"]:
                raise ValidationError("cannot sell a deleted item", details={"item_id": item_id})
            lines.append({
                "item_id": item_id,
                "item_name_snapshot": item["name"],
                "qty": float(qty),
                "price": item["price"],
            })

        amount = total_amount
        if amount is None:
            amount = sum(line["qty"] * line["price"] for line in lines)

        values = _transaction_values(
            title=f"Sale - {len(lines)} items ({payment_mode})",
            type=TransactionType.SALE, amount=amount, payment_mode=payment_mode,
            date=date, time=None, customer_id=customer_id, vendor_id=None,
        )
        transaction_id = _insert_transaction_inner(unit, values, lines)

        for item_id, qty in pairs:
            _adjust_stock_inner(unit, item_id, -qty)

        if customer_id is not None and payment_mode == PaymentMode.CREDIT:
            _adjust_balance_inner(unit, customer_id, amount)

        return transaction_id

    return store.run_atomic(_op).value


def _require_party(unit: AtomicUnit, party_id: int) -> dict:
    party = unit.fetch_one(schema.PARTIES, party_id)
    if party is None:
        raise NotFound("party", party_id)
    return party


def _require_party_of_type(unit: AtomicUnit, party_id: int, party_type: str) -> dict:
    party = _require_party(unit, party_id)
    if party["type"] != party_type:
        raise ValidationError(
            f"party is not a {party_type.lower()}",
            details={"party_id": party_id, "type": party["type"]},
        )
    return party


def _require_positive(amount) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
        raise ValidationError("amount must be > 0", details={"amount": amount})
    return float(amount)


def record_payment(store: LedgerStore, *, party_id: int, amount: float, mode: str) -> int:
    """
    Money settled with a party.

    Customer paying us: INCOME, balance decreases.
    Us paying a vendor: EXPENSE, balance increases (toward zero from payables).
    """
    amount = _require_positive(amount)
    _check_payment_mode(mode)

    def _op(unit: AtomicUnit):
        party = _require_party(unit, party_id)
        is_vendor = party["type"] == PartyType.VENDOR
        values = _transaction_values(
            title=f"Payment {'to' if is_vendor else 'from'} {party['name']}",
            type=TransactionType.EXPENSE if is_vendor else TransactionType.INCOME,
            amount=amount, payment_mode=mode, date=None, time=None,
            customer_id=None if is_vendor else party_id,
            vendor_id=party_id if is_vendor else None,
        )
        transaction_id = unit.insert(schema.TRANSACTIONS, values)
        _adjust_balance_inner(unit, party_id, amount if is_vendor else -amount)
        return transaction_id

    return store.run_atomic(_op).value


def record_vendor_purchase(
    store: LedgerStore,
    *,
    vendor_id: int,
    amount: float,
    mode: str,
    note: str | None = None,
) -> int:
    """
    Stock bought from a vendor. On CREDIT the vendor balance goes down by the
    amount (more payable); paid purchases leave the balance alone.
    """
    amount = _require_positive(amount)
    _check_payment_mode(mode)
    note = optional_text(note)

    def _op(unit: AtomicUnit):
        vendor = _require_party_of_type(unit, vendor_id, PartyType.VENDOR)
        title = f"Purchase from {vendor['name']}"
        if note:
            title += f" - {note}"
        values = _transaction_values(
            title=f"{title} ({mode})", type=TransactionType.PURCHASE, amount=amount,
            payment_mode=mode, date=None, time=None, customer_id=None, vendor_id=vendor_id,
        )
        transaction_id = unit.insert(schema.TRANSACTIONS, values)
        if mode == PaymentMode.CREDIT:
            _adjust_balance_inner(unit, vendor_id, -amount)
        return transaction_id

    return store.run_atomic(_op).value


def record_expense(
    store: LedgerStore,
    *,
    amount: float,
    mode: str,
    vendor_id: int | None = None,
    category: str | None = None,
    description: str | None = None,
) -> int:
    """Business expense, optionally owed to a vendor (CREDIT lowers its balance)."""
    amount = _require_positive(amount)
    _check_payment_mode(mode)
    category = optional_text(category)
    description = optional_text(description)

    def _op(unit: AtomicUnit):
        parts = ["Expense"]
        if category:
            parts.append(category)
        if description:
            parts.append(description)
        if vendor_id is not None:
            vendor = _require_party_of_type(unit, vendor_id, PartyType.VENDOR)
            parts.append(vendor["name"])
        values = _transaction_values(
            title=f"{' - '.join(parts)} ({mode})", type=TransactionType.EXPENSE, amount=amount,
            payment_mode=mode, date=None, time=None, customer_id=None, vendor_id=vendor_id,
        )
        transaction_id = unit.insert(schema.TRANSACTIONS, values)
        if vendor_id is not None and mode == PaymentMode.CREDIT:
            _adjust_balance_inner(unit, vendor_id, -amount)
        return transaction_id

    return store.run_atomic(_op).value


def delete_transactions(store: LedgerStore, transaction_ids: Iterable[int]) -> int:
    """Hard delete; the engine cascades to the lines."""
    ids = sorted(set(transaction_ids))
    if not ids:
        return 0
    return store.run_atomic(lambda unit: unit.delete_many(schema.TRANSACTIONS, ids)).value
