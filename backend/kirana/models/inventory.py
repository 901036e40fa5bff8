from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Item(db.Model):
    """
    Inventory item master data.

    STOCK: `stock` is a mutable counter changed only through signed deltas
    (see inventory_service.adjust_stock). The store does not enforce a floor,
    so backorders and miscounts can drive it negative.

    SOFT DELETE: `is_deleted` hides the row from every default listing while
    keeping it addressable by id, so historical transaction lines keep a
    stable target.

    VENDOR: `vendor_id` is a weak reference. Deleting the party clears it.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_deleted_name", "is_deleted", "name"),
        db.Index("ix_items_barcode", "barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Float, nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    category = db.Column(db.String(120), nullable=False)
    rack_location = db.Column(db.String(120), nullable=True)
    margin_percentage = db.Column(db.Float, nullable=False, default=0.0)

    # Unique by convention only; duplicates are the caller's problem
    barcode = db.Column(db.String(64), nullable=True)

    cost_price = db.Column(db.Float, nullable=False, default=0.0)
    gst_percentage = db.Column(db.Float, nullable=True)
    reorder_point = db.Column(db.Integer, nullable=False, default=0)

    vendor_id = db.Column(
        db.Integer,
        db.ForeignKey("parties.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    image_uri = db.Column(db.String(512), nullable=True)
    expiry_date_millis = db.Column(db.BigInteger, nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} stock={self.stock} deleted={self.is_deleted}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "stock": self.stock,
            "category": self.category,
            "rack_location": self.rack_location,
            "margin_percentage": self.margin_percentage,
            "barcode": self.barcode,
            "cost_price": self.cost_price,
            "gst_percentage": self.gst_percentage,
            "reorder_point": self.reorder_point,
            "vendor_id": self.vendor_id,
            "image_uri": self.image_uri,
            "expiry_date_millis": self.expiry_date_millis,
            "expiry_date": to_utc_z(self.expiry_date_millis),
            "is_deleted": self.is_deleted,
        }
