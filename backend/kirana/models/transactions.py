from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class TransactionType:
    SALE = "SALE"
    PURCHASE = "PURCHASE"
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class PaymentMode:
    CASH = "CASH"
    UPI = "UPI"
    CREDIT = "CREDIT"

    ALL = (CASH, UPI, CREDIT)


class Transaction(db.Model):
    """
    Financial record (sale, purchase, expense, payment).

    IMMUTABLE: rows are only inserted or deleted, never edited in place.
    `amount` is not reconciled against the lines; that is a caller contract.

    customer_id / vendor_id are weak references (SET NULL when the party goes).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    # Open set: SALE, PURCHASE, EXPENSE, INCOME, ...
    type = db.Column(db.String(32), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    date = db.Column(db.BigInteger, nullable=False, index=True)
    time = db.Column(db.String(16), nullable=False)

    customer_id = db.Column(
        db.Integer,
        db.ForeignKey("parties.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    vendor_id = db.Column(
        db.Integer,
        db.ForeignKey("parties.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    payment_mode = db.Column(db.String(16), nullable=False)

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} amount={self.amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "amount": self.amount,
            "date": self.date,
            "date_utc": to_utc_z(self.date),
            "time": self.time,
            "customer_id": self.customer_id,
            "vendor_id": self.vendor_id,
            "payment_mode": self.payment_mode,
        }


class TransactionItem(db.Model):
    """
    Line of a transaction.

    OWNERSHIP: deleted together with its transaction (ON DELETE CASCADE).
    item_id is weak (SET NULL); item_name_snapshot and price are copies taken
    at transaction time and survive renames and deletes of the item.
    Never updated in place.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_id = db.Column(
        db.Integer,
        db.ForeignKey("items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    item_name_snapshot = db.Column(db.String(255), nullable=False)
    qty = db.Column(db.Float, nullable=False)
    price = db.Column(db.Float, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<TransactionItem id={self.id} transaction_id={self.transaction_id} "
            f"item_id={self.item_id} name={self.item_name_snapshot!r}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "item_id": self.item_id,
            "item_name_snapshot": self.item_name_snapshot,
            "qty": self.qty,
            "price": self.price,
            "line_total": self.qty * self.price,
        }
