"""CLI command tests (flask system / users / stock)."""

from garmentops.models import User


class TestSystemInit:

    def test_init_creates_default_users_once(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init"])
        assert first.exit_code == 0
        assert "Created user: admin" in first.output

        second = runner.invoke(args=["system", "init"])
        assert second.exit_code == 0
        assert "Using existing user: admin" in second.output

        assert sorted(u.username for u in User.query.all()) == ["admin", "manager", "staff"]


class TestUserCommands:

    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()

        created = runner.invoke(args=["users", "create", "--username", "somchai", "--role", "manager"])
        assert "PASS Created user: somchai" in created.output

        duplicate = runner.invoke(args=["users", "create", "--username", "somchai", "--role", "staff"])
        assert "already exists" in duplicate.output

        listing = runner.invoke(args=["users", "list"])
        assert "somchai" in listing.output

    def test_role_must_be_known(self, app, db_session):
        result = app.test_cli_runner().invoke(
            args=["users", "create", "--username", "x", "--role", "owner"]
        )
        assert result.exit_code != 0
        assert "owner" in result.output


class TestStockCommands:

    def test_low_stock_listing(self, app, product, db_session):
        runner = app.test_cli_runner()
        assert "No low stock products." in runner.invoke(args=["stock", "low"]).output

        product.stock_qty = 4
        db_session.commit()

        output = runner.invoke(args=["stock", "low"]).output
        assert "SKU-1" in output
