# Overview: Pytest coverage for the Flask CLI command groups.

from kirana import get_store
from kirana.services import queries


class TestStoreCommands:
    def test_seed_then_list(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["store", "seed"])
        assert result.exit_code == 0, result.output
        assert "PASS Created items" in result.output

        result = runner.invoke(args=["items", "list"])
        assert "Toor Dal Premium" in result.output
        assert "Fortune Sun Oil 1L" in result.output

        result = runner.invoke(args=["items", "list", "--low-stock"])
        assert "Fortune Sun Oil 1L" in result.output
        assert "Toor Dal Premium" not in result.output

        result = runner.invoke(args=["parties", "list", "--type", "VENDOR"])
        assert "Hindustan Unilever" in result.output
        assert "-12000.00" in result.output
        assert "Sharma Ji" not in result.output

    def test_seed_is_skipped_when_items_exist(self, app, dal):
        result = app.test_cli_runner().invoke(args=["store", "seed"])
        assert "SKIP 1 items already present" in result.output
        assert len(get_store(app).fetch(queries.all_parties())) == 1

    def test_info_reports_version_and_counts(self, app, dal):
        result = app.test_cli_runner().invoke(args=["store", "info"])
        assert result.exit_code == 0, result.output
        assert "Schema version: 1 (expected 1)" in result.output
        assert "items" in result.output

    def test_reset_db_drops_data(self, app, dal):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["store", "reset-db", "--yes"])
        assert "PASS Database reset complete" in result.output
        assert get_store(app).fetch(queries.active_items()) == []

    def test_init_db_is_idempotent(self, app):
        result = app.test_cli_runner().invoke(args=["store", "init-db"])
        assert result.exit_code == 0
        assert "PASS Schema ready (version 1)" in result.output


class TestInspectionCommands:
    def test_adjust_stock(self, app, dal):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["items", "adjust", str(dal), "--", "-5"])
        assert result.exit_code == 0, result.output
        assert "PASS Toor Dal Premium: stock now 40" in result.output

    def test_adjust_unknown_item_fails(self, app):
        result = app.test_cli_runner().invoke(args=["items", "adjust", "999", "1"])
        assert result.exit_code == 1
        assert "FAIL Error: item 999 not found" in result.output

    def test_empty_listings(self, app):
        runner = app.test_cli_runner()
        assert "No transactions found." in runner.invoke(args=["transactions", "list"]).output
        assert "No pending reminders." in runner.invoke(args=["reminders", "list"]).output
        assert "No parties found." in runner.invoke(args=["parties", "list"]).output
