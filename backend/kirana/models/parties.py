from __future__ import annotations

from ..extensions import db


class PartyType:
    CUSTOMER = "CUSTOMER"
    VENDOR = "VENDOR"

    ALL = (CUSTOMER, VENDOR)


class Party(db.Model):
    """
    Customer or vendor with a running ledger balance.

    BALANCE: signed and unconstrained. Which sign means "owes us" is a caller
    convention (customer credit sales push it up, vendor purchases on credit
    push it down).
    """
    __tablename__ = "parties"
    __table_args__ = (
        db.CheckConstraint("type IN ('CUSTOMER', 'VENDOR')", name="ck_parties_type"),
        db.Index("ix_parties_type_phone", "type", "phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    gst_number = db.Column(db.String(32), nullable=True)
    balance = db.Column(db.Float, nullable=False, default=0.0)

    def __repr__(self) -> str:
        return f"<Party id={self.id} name={self.name!r} type={self.type} balance={self.balance}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "type": self.type,
            "gst_number": self.gst_number,
            "balance": self.balance,
        }
