# Overview: Service-layer operations for items; stock deltas, soft and hard deletes.

from __future__ import annotations

from typing import Iterable

from .. import schema
from ..errors import NotFound
from ..models import Item
from ..store import LedgerStore
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .coordinator import AtomicUnit
"""
Kirana Inventory Invariants (authoritative)

- Stock changes only by signed integer deltas: stock = stock + delta.
  Negative results are allowed; no floor or ceiling is enforced here.
- Soft delete sets is_deleted and nothing else. The row, its id and every
  transaction line pointing at it stay intact.
- Hard delete removes the row; lines keep their snapshot and get item_id NULL.
- Single-item mutations raise NotFound for an unknown id (and roll back).
  Id-set operations ignore unknown ids and return the affected count.
"""

ITEM_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "price", "stock", "category", "rack_location", "margin_percentage",
        "barcode", "cost_price", "gst_percentage", "reorder_point", "vendor_id",
        "image_uri", "expiry_date_millis",
    }),
    required_on_create=frozenset({"name", "price", "stock", "category"}),
)


def margin_percentage(price: float, cost_price: float) -> float:
    """Markup over cost, in percent. 0 when there is no cost basis."""
    if not cost_price:
        return 0.0
    return (price - cost_price) / cost_price * 100


def _require_int_delta(delta) -> int:
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer", details={"delta": delta})
    return delta


def _add_item_inner(unit: AtomicUnit, fields: dict) -> int:
    values = validate_payload(model=Item, payload=fields, policy=ITEM_POLICY, partial=False)
    values.setdefault("cost_price", 0.0)
    values.setdefault("reorder_point", 0)
    if values.get("margin_percentage") is None:
        values["margin_percentage"] = margin_percentage(values["price"], values["cost_price"])
    values["is_deleted"] = False
    return unit.insert(schema.ITEMS, values)


def add_item(store: LedgerStore, **fields) -> int:
    """Insert an item; returns its id."""
    return store.run_atomic(lambda unit: _add_item_inner(unit, fields)).value


def update_item(store: LedgerStore, item_id: int, **fields) -> None:
    """Replace the given mutable fields of one item."""
    values = validate_payload(model=Item, payload=fields, policy=ITEM_POLICY, partial=True)
    if not values:
        raise ValidationError("nothing to update")

    def _op(unit: AtomicUnit):
        if not unit.update(schema.ITEMS, item_id, values):
            raise NotFound("item", item_id)

    store.run_atomic(_op)


def _adjust_stock_inner(unit: AtomicUnit, item_id: int, delta: int) -> None:
    if not unit.apply_delta(schema.ITEMS, item_id, "stock", _require_int_delta(delta)):
        raise NotFound("item", item_id)


def adjust_stock(store: LedgerStore, *, item_id: int, delta: int) -> None:
    """
    stock = stock + delta (negative for sales, positive for restocks).

    Concurrent calls never lose an update: the increment happens in SQL under
    the coordinator's single-writer lock.
    """
    _require_int_delta(delta)
    store.run_atomic(lambda unit: _adjust_stock_inner(unit, item_id, delta))


def soft_delete_item(store: LedgerStore, item_id: int) -> None:
    def _op(unit: AtomicUnit):
        if not unit.update(schema.ITEMS, item_id, {"is_deleted": True}):
            raise NotFound("item", item_id)

    store.run_atomic(_op)


def bulk_soft_delete_items(store: LedgerStore, item_ids: Iterable[int]) -> int:
    ids = sorted(set(item_ids))
    if not ids:
        return 0
    return store.run_atomic(
        lambda unit: unit.update_many(schema.ITEMS, ids, {"is_deleted": True})
    ).value


def delete_items(store: LedgerStore, item_ids: Iterable[int]) -> int:
    """Hard delete. Transaction lines survive with item_id cleared."""
    ids = sorted(set(item_ids))
    if not ids:
        return 0
    return store.run_atomic(lambda unit: unit.delete_many(schema.ITEMS, ids)).value
