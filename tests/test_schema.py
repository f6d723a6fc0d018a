# tests/test_schema.py
import sqlite3

import pytest

from storeplex.provisioning import TENANT_SCHEMA, SEED_DATA, TENANT_SCOPED_SEED_TABLES
from storeplex.provisioning.schema import POSTGRESQL, SQLITE, ROOT_TABLE, sql_literal


@pytest.fixture
def sqlite_conn():
    conn = sqlite3.connect(":memory:")
    yield conn
    conn.close()


def _tables(conn):
    return {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}


def test_schema_covers_the_storefront_tables():
    names = {t.name for t in TENANT_SCHEMA.tables}
    assert ROOT_TABLE in names
    assert {"users", "products", "orders", "order_items", "customers", "categories"} <= names
    assert set(TENANT_SCOPED_SEED_TABLES) <= names
    assert {s.table for s in SEED_DATA} <= names


def test_foreign_keys_reference_known_tables_and_have_unique_names():
    names = {t.name for t in TENANT_SCHEMA.tables}
    fk_names = [fk.name for fk in TENANT_SCHEMA.foreign_keys]
    assert len(fk_names) == len(set(fk_names))
    for fk in TENANT_SCHEMA.foreign_keys:
        assert fk.table in names and fk.ref_table in names
        TENANT_SCHEMA.table(fk.table).column(fk.column)
        TENANT_SCHEMA.table(fk.ref_table).column(fk.ref_column)


def test_sqlite_schema_script_is_valid_and_repeatable(sqlite_conn):
    script = TENANT_SCHEMA.render_schema_script(SQLITE)
    sqlite_conn.executescript(script)
    sqlite_conn.executescript(script)
    assert {t.name for t in TENANT_SCHEMA.tables} <= _tables(sqlite_conn)


def test_sqlite_foreign_key_triggers_enforce_references(sqlite_conn):
    sqlite_conn.executescript(TENANT_SCHEMA.render_schema_script(SQLITE))
    for _fk, statement in TENANT_SCHEMA.render_foreign_key_statements(SQLITE):
        sqlite_conn.executescript(statement)

    with pytest.raises(sqlite3.IntegrityError, match="fk_users_store_id"):
        sqlite_conn.execute("INSERT INTO users (store_id, email) VALUES ('missing', 'a@example.com')")

    sqlite_conn.execute("INSERT INTO stores (id, name) VALUES ('s1', 'Shop')")
    sqlite_conn.execute("INSERT INTO users (store_id, email) VALUES ('s1', 'a@example.com')")
    sqlite_conn.execute("DELETE FROM stores WHERE id = 's1'")
    assert sqlite_conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 0


def test_sqlite_enums_become_check_constraints(sqlite_conn):
    sqlite_conn.executescript(TENANT_SCHEMA.render_schema_script(SQLITE))
    sqlite_conn.execute("INSERT INTO stores (id, name) VALUES ('s1', 'Shop')")
    with pytest.raises(sqlite3.IntegrityError):
        sqlite_conn.execute("INSERT INTO users (store_id, email, role) VALUES ('s1', 'a@example.com', 'emperor')")


def test_sqlite_defaults_fill_generated_columns(sqlite_conn):
    sqlite_conn.executescript(TENANT_SCHEMA.render_schema_script(SQLITE))
    sqlite_conn.execute("INSERT INTO stores (id, name) VALUES ('s1', 'Shop')")
    sqlite_conn.execute("INSERT INTO users (store_id, email) VALUES ('s1', 'a@example.com')")
    user_id, role, created_at = sqlite_conn.execute("SELECT id, role, created_at FROM users").fetchone()
    assert len(user_id) == 36 and user_id[14] == "4"
    assert role == "owner"
    assert created_at


def test_postgres_rendering_is_idempotent_ddl():
    script = TENANT_SCHEMA.render_schema_script(POSTGRESQL)
    assert 'CREATE TYPE "user_role" AS ENUM' in script
    assert "WHEN duplicate_object THEN NULL" in script
    assert 'CREATE TABLE IF NOT EXISTS "stores"' in script
    assert "gen_random_uuid()" in script
    assert "FOREIGN KEY" not in script

    statements = dict((fk.name, sql) for fk, sql in TENANT_SCHEMA.render_foreign_key_statements(POSTGRESQL))
    assert 'ADD CONSTRAINT "fk_orders_store_id"' in statements["fk_orders_store_id"]
    assert "ON DELETE SET NULL" in statements["fk_products_category_id"]


def test_seed_rows_load_into_fresh_sqlite_schema(sqlite_conn):
    sqlite_conn.executescript(TENANT_SCHEMA.render_schema_script(SQLITE))
    for seed_table in SEED_DATA:
        sqlite_conn.executescript(seed_table.render(SQLITE))
    for seed_table in SEED_DATA:
        count = sqlite_conn.execute(f'SELECT COUNT(*) FROM "{seed_table.table}"').fetchone()[0]
        assert count == len(seed_table.rows)


@pytest.mark.parametrize("value, dialect, expected", [
    (None, POSTGRESQL, "NULL"),
    (True, POSTGRESQL, "TRUE"),
    (True, SQLITE, "1"),
    (5, SQLITE, "5"),
    ("O'Brien", POSTGRESQL, "'O''Brien'"),
    ({"a": 1}, POSTGRESQL, "'{\"a\":1}'"),
])
def test_sql_literal(value, dialect, expected):
    assert sql_literal(value, dialect) == expected


def test_root_table_is_created_last():
    order = [t.name for t in TENANT_SCHEMA.creation_order()]
    assert order[-1] == ROOT_TABLE
    assert sorted(order) == sorted(t.name for t in TENANT_SCHEMA.tables)

    script = TENANT_SCHEMA.render_schema_script(SQLITE)
    last_create = script.rfind("CREATE TABLE IF NOT EXISTS")
    assert script.startswith(f'CREATE TABLE IF NOT EXISTS "{ROOT_TABLE}"', last_create)


def test_scoped_seed_rows_have_stable_ids(sqlite_conn):
    sqlite_conn.executescript(TENANT_SCHEMA.render_schema_script(SQLITE))
    for _ in range(2):
        for seed_table in SEED_DATA:
            sqlite_conn.executescript(seed_table.render(SQLITE))
    for seed_table in SEED_DATA:
        count = sqlite_conn.execute(f'SELECT COUNT(*) FROM "{seed_table.table}"').fetchone()[0]
        assert count == len(seed_table.rows), seed_table.table
