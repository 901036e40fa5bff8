# Overview: Pytest coverage for sales, checkout, payments, purchases, expenses and transaction deletes.

import pytest

from kirana import schema
from kirana.errors import NotFound
from kirana.models import PaymentMode, TransactionType
from kirana.services import queries
from kirana.services.sales_service import (
    LineItem,
    checkout,
    delete_transactions,
    record_expense,
    record_payment,
    record_sale,
    record_transaction_with_items,
    record_vendor_purchase,
)
from kirana.validation import ValidationError


def _balance(store, party_id):
    return store.fetch(queries.party_by_id(party_id))["balance"]


def _stock(store, item_id):
    return store.fetch(queries.item_by_id(item_id))["stock"]


class TestRecordSale:
    def test_sale_with_lines_does_not_touch_stock(self, store, dal):
        tx_id = record_sale(
            store,
            title="Counter sale", amount=300.0, payment_mode=PaymentMode.UPI,
            lines=[LineItem("Toor Dal Premium", 2, 150.0, item_id=dal)],
            date=1_700_000_000_000, time="10:15 AM",
        )

        result = store.fetch(queries.transaction_with_items(tx_id))
        assert result["transaction"]["type"] == TransactionType.SALE
        assert result["transaction"]["time"] == "10:15 AM"
        assert result["transaction"]["date_utc"] == "2023-11-14T22:13:20Z"
        assert [line["transaction_id"] for line in result["items"]] == [tx_id]
        assert _stock(store, dal) == 45

    def test_sale_needs_lines(self, store):
        with pytest.raises(ValidationError):
            record_sale(store, title="Empty", amount=0.0, payment_mode="CASH", lines=[])

    def test_line_without_name_rejected(self, store, dal):
        with pytest.raises(ValidationError):
            record_sale(
                store, title="Bad", amount=1.0, payment_mode="CASH",
                lines=[LineItem(None, 1, 1.0, item_id=dal)],
            )
        assert store.fetch(queries.all_transactions()) == []

    def test_default_date_and_time(self, store, dal):
        tx_id = record_sale(
            store, title="Now", amount=150.0, payment_mode="CASH",
            lines=[LineItem("Toor Dal Premium", 1, 150.0, item_id=dal)],
        )
        tx = store.fetch(queries.transaction_by_id(tx_id))
        assert tx["date"] > 0
        assert tx["time"].endswith(("AM", "PM"))

    def test_any_type_with_optional_lines(self, store, vendor):
        tx_id = record_transaction_with_items(
            store, title="Shop rent", type=TransactionType.EXPENSE, amount=8000.0,
            payment_mode=PaymentMode.CASH, vendor_id=vendor,
        )
        result = store.fetch(queries.transaction_with_items(tx_id))
        assert result["items"] == []
        assert store.fetch(queries.transactions_for_party(vendor))[0]["id"] == tx_id


class TestCheckout:
    def test_credit_checkout_moves_stock_and_balance_together(self, store, dal, oil, customer):
        tx_id = checkout(
            store,
            items=[(dal, 2), (oil, 1)],
            payment_mode=PaymentMode.CREDIT,
            customer_id=customer,
        )

        result = store.fetch(queries.transaction_with_items(tx_id))
        assert result["transaction"]["title"] == "Sale - 2 items (CREDIT)"
        assert result["transaction"]["amount"] == 455.0
        assert [(l["item_name_snapshot"], l["qty"], l["price"]) for l in result["items"]] == [
            ("Toor Dal Premium", 2.0, 150.0),
            ("Fortune Sun Oil 1L", 1.0, 155.0),
        ]
        assert _stock(store, dal) == 43
        assert _stock(store, oil) == 4
        assert _balance(store, customer) == 455.0

    def test_cash_checkout_leaves_balance(self, store, dal, customer):
        checkout(store, items=[(dal, 1)], payment_mode=PaymentMode.CASH, customer_id=customer, total_amount=140.0)
        assert _balance(store, customer) == 0.0
        (tx,) = store.fetch(queries.all_transactions())
        assert tx["amount"] == 140.0

    def test_unknown_item_rolls_back_whole_checkout(self, store, dal, customer):
        with pytest.raises(NotFound):
            checkout(store, items=[(dal, 1), (9999, 1)], payment_mode=PaymentMode.CREDIT, customer_id=customer)

        assert _stock(store, dal) == 45
        assert _balance(store, customer) == 0.0
        assert store.fetch(queries.all_transactions()) == []

    def test_rejects_bad_quantities(self, store, dal):
        with pytest.raises(ValidationError):
            checkout(store, items=[(dal, 0)], payment_mode="CASH")
        with pytest.raises(ValidationError):
            checkout(store, items=[], payment_mode="CASH")


class TestPartyAndModeChecks:
    def test_unknown_payment_mode_rejected_before_any_write(self, store, dal, customer):
        with pytest.raises(ValidationError) as excinfo:
            checkout(store, items=[(dal, 1)], payment_mode="credit", customer_id=customer)
        assert excinfo.value.details == {"payment_mode": "credit"}

        with pytest.raises(ValidationError):
            record_sale(
                store, title="Sale", amount=150.0, payment_mode="CARD",
                lines=[LineItem("Toor Dal Premium", 1, 150.0, item_id=dal)],
            )
        with pytest.raises(ValidationError):
            record_payment(store, party_id=customer, amount=10.0, mode="cheque")
        with pytest.raises(ValidationError):
            record_expense(store, amount=10.0, mode="")

        assert _stock(store, dal) == 45
        assert _balance(store, customer) == 0.0
        assert store.fetch(queries.all_transactions()) == []

    def test_vendor_is_not_a_customer(self, store, dal, vendor):
        with pytest.raises(ValidationError):
            checkout(store, items=[(dal, 1)], payment_mode=PaymentMode.CREDIT, customer_id=vendor)
        with pytest.raises(ValidationError):
            record_sale(
                store, title="Sale", amount=150.0, payment_mode=PaymentMode.CASH, customer_id=vendor,
                lines=[LineItem("Toor Dal Premium", 1, 150.0, item_id=dal)],
            )

        assert _stock(store, dal) == 45
        assert _balance(store, vendor) == 0.0
        assert store.fetch(queries.all_transactions()) == []

    def test_expense_owed_to_customer_rejected(self, store, customer):
        with pytest.raises(ValidationError):
            record_expense(store, amount=10.0, mode=PaymentMode.CREDIT, vendor_id=customer)

    def test_sale_to_unknown_customer(self, store, dal):
        with pytest.raises(NotFound):
            checkout(store, items=[(dal, 1)], payment_mode=PaymentMode.CASH, customer_id=404)
        assert _stock(store, dal) == 45


class TestPayments:
    def test_customer_payment_is_income_and_lowers_balance(self, store, customer):
        tx_id = record_payment(store, party_id=customer, amount=500, mode=PaymentMode.UPI)

        tx = store.fetch(queries.transaction_by_id(tx_id))
        assert tx["type"] == TransactionType.INCOME
        assert tx["customer_id"] == customer
        assert tx["title"] == "Payment from Sharma Ji"
        assert _balance(store, customer) == -500.0

    def test_vendor_payment_is_expense_and_raises_balance(self, store, vendor):
        tx_id = record_payment(store, party_id=vendor, amount=1200.0, mode=PaymentMode.CASH)

        tx = store.fetch(queries.transaction_by_id(tx_id))
        assert tx["type"] == TransactionType.EXPENSE
        assert tx["vendor_id"] == vendor
        assert _balance(store, vendor) == 1200.0

    def test_payment_to_unknown_party(self, store):
        with pytest.raises(NotFound):
            record_payment(store, party_id=42, amount=1.0, mode="CASH")

    def test_non_positive_amount(self, store, customer):
        with pytest.raises(ValidationError):
            record_payment(store, party_id=customer, amount=0, mode="CASH")


class TestPurchasesAndExpenses:
    def test_credit_purchase_increases_payable(self, store, vendor):
        tx_id = record_vendor_purchase(store, vendor_id=vendor, amount=5000.0, mode=PaymentMode.CREDIT, note="Diwali stock")
        tx = store.fetch(queries.transaction_by_id(tx_id))
        assert tx["type"] == TransactionType.PURCHASE
        assert tx["title"] == "Purchase from ITC Limited - Diwali stock (CREDIT)"
        assert _balance(store, vendor) == -5000.0

    def test_paid_purchase_leaves_balance(self, store, vendor):
        record_vendor_purchase(store, vendor_id=vendor, amount=5000.0, mode=PaymentMode.CASH)
        assert _balance(store, vendor) == 0.0

    def test_purchase_from_customer_rejected(self, store, customer):
        with pytest.raises(ValidationError):
            record_vendor_purchase(store, vendor_id=customer, amount=10.0, mode="CASH")
        assert store.fetch(queries.all_transactions()) == []

    def test_expense_title_and_credit(self, store, vendor):
        tx_id = record_expense(
            store, amount=300.0, mode=PaymentMode.CREDIT, vendor_id=vendor,
            category="Transport", description="  auto fare ",
        )
        tx = store.fetch(queries.transaction_by_id(tx_id))
        assert tx["title"] == "Expense - Transport - auto fare - ITC Limited (CREDIT)"
        assert tx["type"] == TransactionType.EXPENSE
        assert _balance(store, vendor) == -300.0

    def test_expense_without_vendor(self, store):
        tx_id = record_expense(store, amount=50.0, mode=PaymentMode.CASH)
        assert store.fetch(queries.transaction_by_id(tx_id))["title"] == "Expense (CASH)"


class TestDeleteTransactions:
    def test_delete_cascades_to_lines(self, store, dal):
        tx_id = record_sale(
            store, title="Sale", amount=300.0, payment_mode="CASH",
            lines=[LineItem("Toor Dal Premium", 1, 150.0, item_id=dal), LineItem("Loose sugar", 1, 150.0)],
        )

        result = store.run_atomic(lambda unit: unit.delete_many(schema.TRANSACTIONS, [tx_id]))

        assert result.value == 1
        assert result.touched == frozenset({schema.TRANSACTIONS, schema.TRANSACTION_ITEMS})
        assert store.fetch(queries.transaction_items_for(tx_id)) == []
        assert store.fetch(queries.transaction_with_items(tx_id)) is None

    def test_missing_ids_are_ignored(self, store):
        assert delete_transactions(store, [1, 2, 3]) == 0
        assert delete_transactions(store, []) == 0
