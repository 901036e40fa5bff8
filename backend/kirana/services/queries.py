# Overview: Read model; every query names the tables it reads so it can be kept live.

from __future__ import annotations

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .. import schema
from ..models import Item, Party, PartyType, Reminder, Transaction, TransactionItem, TransactionType
from .subscriptions import Query

"""
Default visibility:
- Soft-deleted items are hidden from every listing and name/barcode lookup.
  item_by_id() is the one read that still returns them.
- Listings are ordered: items/parties by name, transactions newest first,
  reminders by due time. Ties fall back to id so results are stable and
  compare equal across re-runs.
"""


def _dicts(rows) -> list[dict]:
    return [row.to_dict() for row in rows]


def _active_items():
    return select(Item).where(Item.is_deleted.is_(False))


# --- items ---

def active_items() -> Query:
    def fetch(session: Session):
        q = _active_items().order_by(Item.name.asc(), Item.id.asc())
        return _dicts(session.scalars(q))
    return Query("active_items", {schema.ITEMS}, fetch)


def item_by_id(item_id: int) -> Query:
    def fetch(session: Session):
        item = session.get(Item, item_id)
        return item.to_dict() if item else None
    return Query(f"item_by_id:{item_id}", {schema.ITEMS}, fetch)


def item_by_barcode(barcode: str) -> Query:
    def fetch(session: Session):
        q = _active_items().where(Item.barcode == barcode).order_by(Item.id.asc()).limit(1)
        item = session.scalars(q).first()
        return item.to_dict() if item else None
    return Query(f"item_by_barcode:{barcode}", {schema.ITEMS}, fetch)


def item_by_name(name: str) -> Query:
    def fetch(session: Session):
        q = (
            _active_items()
            .where(func.lower(Item.name) == name.strip().lower())
            .order_by(Item.id.asc())
            .limit(1)
        )
        item = session.scalars(q).first()
        return item.to_dict() if item else None
    return Query(f"item_by_name:{name.strip().lower()}", {schema.ITEMS}, fetch)


def low_stock_items() -> Query:
    def fetch(session: Session):
        q = (
            _active_items()
            .where(Item.stock <= Item.reorder_point)
            .order_by(Item.stock.asc(), Item.name.asc(), Item.id.asc())
        )
        return _dicts(session.scalars(q))
    return Query("low_stock_items", {schema.ITEMS}, fetch)


# --- parties ---

def _parties(party_type: str | None, name: str) -> Query:
    def fetch(session: Session):
        q = select(Party)
        if party_type is not None:
            q = q.where(Party.type == party_type)
        return _dicts(session.scalars(q.order_by(Party.name.asc(), Party.id.asc())))
    return Query(name, {schema.PARTIES}, fetch)


def all_parties() -> Query:
    return _parties(None, "all_parties")


def customers() -> Query:
    return _parties(PartyType.CUSTOMER, "customers")


def vendors() -> Query:
    return _parties(PartyType.VENDOR, "vendors")


def party_by_id(party_id: int) -> Query:
    def fetch(session: Session):
        party = session.get(Party, party_id)
        return party.to_dict() if party else None
    return Query(f"party_by_id:{party_id}", {schema.PARTIES}, fetch)


def find_party_by_phone(phone: str, party_type: str = PartyType.CUSTOMER) -> Query:
    """Most recently created party of `party_type` with exactly this phone."""
    def fetch(session: Session):
        q = (
            select(Party)
            .where(Party.type == party_type, Party.phone == phone)
            .order_by(Party.id.desc())
            .limit(1)
        )
        party = session.scalars(q).first()
        return party.to_dict() if party else None
    return Query(f"party_by_phone:{party_type}:{phone}", {schema.PARTIES}, fetch)


# --- transactions ---

def _newest_first(q):
    return q.order_by(Transaction.date.desc(), Transaction.id.desc())


def all_transactions(limit: int | None = None) -> Query:
    def fetch(session: Session):
        q = _newest_first(select(Transaction))
        if limit is not None:
            q = q.limit(limit)
        return _dicts(session.scalars(q))
    return Query("all_transactions", {schema.TRANSACTIONS}, fetch)


def transaction_by_id(transaction_id: int) -> Query:
    def fetch(session: Session):
        tx = session.get(Transaction, transaction_id)
        return tx.to_dict() if tx else None
    return Query(f"transaction_by_id:{transaction_id}", {schema.TRANSACTIONS}, fetch)


def transactions_for_party(party_id: int) -> Query:
    def fetch(session: Session):
        q = select(Transaction).where(
            or_(Transaction.customer_id == party_id, Transaction.vendor_id == party_id)
        )
        return _dicts(session.scalars(_newest_first(q)))
    return Query(f"transactions_for_party:{party_id}", {schema.TRANSACTIONS}, fetch)


def transaction_items_for(transaction_id: int) -> Query:
    def fetch(session: Session):
        q = (
            select(TransactionItem)
            .where(TransactionItem.transaction_id == transaction_id)
            .order_by(TransactionItem.id.asc())
        )
        return _dicts(session.scalars(q))
    return Query(f"transaction_items_for:{transaction_id}", {schema.TRANSACTION_ITEMS}, fetch)


def all_transaction_items() -> Query:
    def fetch(session: Session):
        q = select(TransactionItem).order_by(TransactionItem.id.asc())
        return _dicts(session.scalars(q))
    return Query("all_transaction_items", {schema.TRANSACTION_ITEMS}, fetch)


def transaction_with_items(transaction_id: int) -> Query:
    """Transaction header plus its lines, read from one snapshot."""
    def fetch(session: Session):
        tx = session.get(Transaction, transaction_id)
        if tx is None:
            return None
        lines = session.scalars(
            select(TransactionItem)
            .where(TransactionItem.transaction_id == transaction_id)
            .order_by(TransactionItem.id.asc())
        )
        return {"transaction": tx.to_dict(), "items": _dicts(lines)}
    return Query(
        f"transaction_with_items:{transaction_id}",
        {schema.TRANSACTIONS, schema.TRANSACTION_ITEMS},
        fetch,
    )


def sale_lines_for_period(from_millis: int, to_millis: int) -> Query:
    """
    One flat row per SALE line in [from_millis, to_millis).

    Joins the customer and the current item (both may be gone, in which case
    their columns are None while the line's snapshots remain).
    """
    def fetch(session: Session):
        q = (
            select(
                Transaction.id.label("tx_id"),
                Transaction.title.label("tx_title"),
                Transaction.amount.label("tx_amount"),
                Transaction.date.label("tx_date"),
                Transaction.customer_id.label("customer_id"),
                Party.name.label("customer_name"),
                Party.gst_number.label("customer_gstin"),
                TransactionItem.id.label("line_id"),
                TransactionItem.item_id.label("item_id"),
                TransactionItem.item_name_snapshot.label("item_name_snapshot"),
                TransactionItem.qty.label("qty"),
                TransactionItem.price.label("price"),
                Item.gst_percentage.label("item_gst_percentage"),
            )
            .select_from(Transaction)
            .join(TransactionItem, TransactionItem.transaction_id == Transaction.id)
            .outerjoin(Party, Party.id == Transaction.customer_id)
            .outerjoin(Item, Item.id == TransactionItem.item_id)
            .where(
                Transaction.type == TransactionType.SALE,
                Transaction.date >= from_millis,
                Transaction.date < to_millis,
            )
            .order_by(Transaction.date.asc(), Transaction.id.asc(), TransactionItem.id.asc())
        )
        return [dict(row._mapping) for row in session.execute(q)]
    return Query(
        f"sale_lines_for_period:{from_millis}:{to_millis}",
        {schema.TRANSACTIONS, schema.TRANSACTION_ITEMS, schema.PARTIES, schema.ITEMS},
        fetch,
    )


# --- reminders ---

def active_reminders() -> Query:
    def fetch(session: Session):
        q = (
            select(Reminder)
            .where(Reminder.is_done.is_(False))
            .order_by(Reminder.due_at.asc(), Reminder.id.asc())
        )
        return _dicts(session.scalars(q))
    return Query("active_reminders", {schema.REMINDERS}, fetch)


def reminder_target(reminder_id: int) -> Query:
    """
    The row a reminder points at. None for general reminders; a dangling
    reference yields {"kind": ..., "target": None}.

    Watches every table a reference can land in, since the target table is
    only known after reading the reminder.
    """
    models_by_table = {schema.ITEMS: Item, schema.PARTIES: Party, schema.TRANSACTIONS: Transaction}

    def fetch(session: Session):
        reminder = session.get(Reminder, reminder_id)
        if reminder is None:
            return None
        ref = reminder.reference()
        if ref is None:
            return None
        target = session.get(models_by_table[ref.table], ref.ref_id)
        return {"kind": ref.kind, "target": target.to_dict() if target else None}
    return Query(
        f"reminder_target:{reminder_id}",
        {schema.REMINDERS, schema.ITEMS, schema.PARTIES, schema.TRANSACTIONS},
        fetch,
    )
