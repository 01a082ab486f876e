"""Tests for the docquery sql command."""

from __future__ import annotations

import sqlite3

import pytest
from typer.testing import CliRunner

from docquery.cli.main import app

runner = CliRunner()


@pytest.fixture
def shop_db(tmp_path):
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id));
        INSERT INTO users (id, name) VALUES (1, 'ada'), (2, 'bo');
        INSERT INTO orders (user_id) VALUES (1), (1), (2);
        """
    )
    conn.commit()
    conn.close()
    return path


def test_sql_missing_schema_db_exits_1(cli_env, tmp_path):
    result = runner.invoke(app, ["sql", "count users", "--schema-db", str(tmp_path / "nope.db")])
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_sql_unknown_table_exits_1(cli_env, shop_db):
    result = runner.invoke(
        app, ["sql", "count", "--schema-db", str(shop_db), "--table", "ghosts"]
    )
    assert result.exit_code == 1
    assert "Unknown table(s): ghosts" in result.output


def test_sql_read_only_does_not_execute(cli_env, shop_db, scripted_model):
    cli_env.sql = scripted_model("SELECT COUNT(*) FROM users;", "Counts the users.")

    result = runner.invoke(app, ["sql", "how many users?", "--schema-db", str(shop_db)])

    assert result.exit_code == 0, result.output
    assert "Database contains 2 tables" in result.output
    assert "SELECT COUNT(*) FROM users;" in result.output
    assert "Counts the users." in result.output
    assert "Read-only mode" in result.output


def test_sql_context_limited_to_selected_tables(cli_env, shop_db, scripted_model):
    cli_env.sql = scripted_model("SELECT name FROM users", "Names.")

    result = runner.invoke(
        app, ["sql", "names", "--schema-db", str(shop_db), "--table", "users"]
    )

    assert result.exit_code == 0, result.output
    assert "Table: users" in cli_env.sql.prompts[0]
    assert "Table: orders" not in cli_env.sql.prompts[0]


def test_sql_execute_prints_rows(cli_env, shop_db, scripted_model):
    cli_env.sql = scripted_model("SELECT name FROM users ORDER BY id", "Lists names.")

    result = runner.invoke(
        app, ["sql", "list names", "--schema-db", str(shop_db), "--execute", "--max-rows", "5"]
    )

    assert result.exit_code == 0, result.output
    assert "2 row(s)" in result.output
    assert "ada" in result.output
    assert "bo" in result.output
    assert "Limit results to 5 rows maximum" in cli_env.sql.prompts[0]


def test_sql_rejected_exits_1(cli_env, shop_db, scripted_model):
    cli_env.sql = scripted_model("DROP TABLE users")

    result = runner.invoke(app, ["sql", "drop users", "--schema-db", str(shop_db)])

    assert result.exit_code == 1
    assert "forbidden keyword: DROP" in result.output
    conn = sqlite3.connect(shop_db)
    assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 2
    conn.close()


def test_sql_execution_error_exits_1(cli_env, shop_db, scripted_model):
    cli_env.sql = scripted_model("SELECT * FROM ghosts")

    result = runner.invoke(app, ["sql", "ghosts", "--schema-db", str(shop_db), "--execute"])

    assert result.exit_code == 1
    assert "no such table: ghosts" in result.output


def test_sql_generation_failure_exits_1(cli_env, shop_db, scripted_model):
    cli_env.sql = scripted_model(RuntimeError("quota exceeded"))

    result = runner.invoke(app, ["sql", "q", "--schema-db", str(shop_db)])

    assert result.exit_code == 1
    assert "Failed to generate SQL query" in result.output
