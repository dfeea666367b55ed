"""CLI command tests (flask system / users / products)."""

from stockdesk.models import User, Category, ADMIN_ROLE


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    assert first.exit_code == 0, first.output
    assert "PASS Created admin" in first.output

    second = runner.invoke(args=["system", "init"])
    assert second.exit_code == 0
    assert "already exists" in second.output

    assert db_session.query(User).filter_by(role=ADMIN_ROLE).count() == 1
    assert db_session.query(Category).filter_by(is_default=True).count() == 1


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create",
        "--username", "dave", "--email", "dave@example.com",
        "--name", "Dave", "--surname", "Jones",
        "--password", "Password123!", "--role", "CLIENT_ROLE",
    ])
    assert result.exit_code == 0, result.output
    assert "PASS Created user: dave" in result.output

    listed = runner.invoke(args=["users", "list"])
    assert "dave@example.com" in listed.output

    weak = runner.invoke(args=[
        "users", "create",
        "--username", "erin", "--email", "erin@example.com",
        "--name", "Erin", "--surname", "Jones",
        "--password", "weak", "--role", "CLIENT_ROLE",
    ])
    assert "FAIL Password validation failed" in weak.output


def test_products_low_stock(app, make_product):
    make_product("Nearly Gone", stock=1, min_stock=3)
    make_product("Plenty", stock=50, min_stock=3)

    result = app.test_cli_runner().invoke(args=["products", "low-stock"])

    assert result.exit_code == 0
    assert "Nearly Gone" in result.output
    assert "Plenty" not in result.output
