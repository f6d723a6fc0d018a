# storeplex/provisioning/schema.py
"""
Declarative tenant database schema.

Tables are declared without any foreign-key syntax; foreign keys live in a
separate list and are applied in a second pass once every table exists. The
renderers below turn this single source into statements for PostgreSQL and
SQLite tenants.
"""
import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from ..connections.handles import quote_identifier as quote_ident

POSTGRESQL = "postgresql"
SQLITE = "sqlite"

# Table whose presence marks a tenant database as provisioned
ROOT_TABLE = "stores"

DEFAULT_NOW = "now"
DEFAULT_UUID = "uuid"

_PG_TYPES = {
    "uuid": "UUID",
    "text": "TEXT",
    "integer": "INTEGER",
    "numeric": "NUMERIC(12, 2)",
    "boolean": "BOOLEAN",
    "timestamp": "TIMESTAMPTZ",
    "json": "JSONB",
}

_SQLITE_TYPES = {
    "uuid": "TEXT",
    "text": "TEXT",
    "integer": "INTEGER",
    "numeric": "NUMERIC",
    "boolean": "INTEGER",
    "timestamp": "TEXT",
    "json": "TEXT",
}

# Version-4 shaped uuid built from SQLite's random functions
_SQLITE_UUID_EXPR = (
    "(lower(hex(randomblob(4))) || '-' || lower(hex(randomblob(2))) || '-4' || "
    "substr(lower(hex(randomblob(2))), 2) || '-' || "
    "substr('89ab', 1 + (abs(random()) % 4), 1) || substr(lower(hex(randomblob(2))), 2) || '-' || "
    "lower(hex(randomblob(6))))"
)


def sql_literal(value: Any, dialect: str = POSTGRESQL) -> str:
    """Render a Python value as a SQL literal for the given dialect."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        if dialect == SQLITE:
            return "1" if value else "0"
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (dict, list)):
        value = json.dumps(value, separators=(",", ":"))
    text = str(value)
    return "'" + text.replace("'", "''") + "'"


@dataclass(frozen=True)
class EnumSpec:
    name: str
    values: Tuple[str, ...]


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    type: str
    nullable: bool = True
    primary_key: bool = False
    unique: bool = False
    default: Any = None
    enum: Optional[str] = None


@dataclass(frozen=True)
class TableSpec:
    name: str
    columns: Tuple[ColumnSpec, ...]
    indexes: Tuple[Tuple[str, ...], ...] = ()

    def column(self, name: str) -> ColumnSpec:
        for column in self.columns:
            if column.name == name:
                return column
        raise KeyError(f"Table '{self.name}' has no column '{name}'")


@dataclass(frozen=True)
class ForeignKeySpec:
    table: str
    column: str
    ref_table: str
    ref_column: str = "id"
    on_delete: str = "CASCADE"

    @property
    def name(self) -> str:
        return f"fk_{self.table}_{self.column}"


@dataclass(frozen=True)
class TenantSchema:
    enums: Tuple[EnumSpec, ...]
    tables: Tuple[TableSpec, ...]
    foreign_keys: Tuple[ForeignKeySpec, ...] = field(default_factory=tuple)

    def enum(self, name: str) -> EnumSpec:
        for spec in self.enums:
            if spec.name == name:
                return spec
        raise KeyError(f"Unknown enum '{name}'")

    def table(self, name: str) -> TableSpec:
        for spec in self.tables:
            if spec.name == name:
                return spec
        raise KeyError(f"Unknown table '{name}'")

    # Rendering

    def _render_default(self, column: ColumnSpec, dialect: str) -> str:
        if column.default == DEFAULT_NOW:
            return "NOW()" if dialect == POSTGRESQL else "CURRENT_TIMESTAMP"
        if column.default == DEFAULT_UUID:
            return "gen_random_uuid()" if dialect == POSTGRESQL else _SQLITE_UUID_EXPR
        return sql_literal(column.default, dialect)

    def _render_column(self, column: ColumnSpec, dialect: str) -> str:
        if column.type == "enum":
            enum = self.enum(column.enum)
            if dialect == POSTGRESQL:
                parts = [quote_ident(column.name), quote_ident(enum.name)]
            else:
                allowed = ", ".join(sql_literal(v, dialect) for v in enum.values)
                parts = [quote_ident(column.name), f"TEXT CHECK ({quote_ident(column.name)} IN ({allowed}))"]
        else:
            types = _PG_TYPES if dialect == POSTGRESQL else _SQLITE_TYPES
            parts = [quote_ident(column.name), types[column.type]]
        if column.primary_key:
            parts.append("PRIMARY KEY")
        elif not column.nullable:
            parts.append("NOT NULL")
        if column.unique:
            parts.append("UNIQUE")
        if column.default is not None:
            parts.append(f"DEFAULT {self._render_default(column, dialect)}")
        return " ".join(parts)

    def render_enum_statements(self, dialect: str) -> List[str]:
        """CREATE TYPE statements; PostgreSQL has no "create type if not exists" so each is wrapped."""
        if dialect != POSTGRESQL:
            return []
        statements = []
        for spec in self.enums:
            values = ", ".join(sql_literal(v) for v in spec.values)
            statements.append(
                "DO $$ BEGIN\n"
                f"    CREATE TYPE {quote_ident(spec.name)} AS ENUM ({values});\n"
                "EXCEPTION\n"
                "    WHEN duplicate_object THEN NULL;\n"
                "END $$;"
            )
        return statements

    def creation_order(self) -> List[TableSpec]:
        """Tables in DDL order; the root table comes last so its presence means the schema step completed."""
        return sorted(self.tables, key=lambda table: table.name == ROOT_TABLE)

    def render_table_statements(self, dialect: str) -> List[str]:
        statements = []
        for table in self.creation_order():
            columns = ",\n    ".join(self._render_column(c, dialect) for c in table.columns)
            statements.append(f"CREATE TABLE IF NOT EXISTS {quote_ident(table.name)} (\n    {columns}\n);")
            for index_columns in table.indexes:
                index_name = f"idx_{table.name}_{'_'.join(index_columns)}"
                cols = ", ".join(quote_ident(c) for c in index_columns)
                statements.append(
                    f"CREATE INDEX IF NOT EXISTS {quote_ident(index_name)} ON {quote_ident(table.name)} ({cols});"
                )
        return statements

    def render_schema_script(self, dialect: str) -> str:
        """Foreign-key-free DDL creating every enum, table and index."""
        return "\n\n".join(self.render_enum_statements(dialect) + self.render_table_statements(dialect))

    def render_foreign_key(self, fk: ForeignKeySpec, dialect: str) -> str:
        if dialect == POSTGRESQL:
            return (
                "DO $$ BEGIN\n"
                f"    ALTER TABLE {quote_ident(fk.table)} ADD CONSTRAINT {quote_ident(fk.name)} "
                f"FOREIGN KEY ({quote_ident(fk.column)}) REFERENCES {quote_ident(fk.ref_table)} "
                f"({quote_ident(fk.ref_column)}) ON DELETE {fk.on_delete};\n"
                "EXCEPTION\n"
                "    WHEN duplicate_object THEN NULL;\n"
                "END $$;"
            )
        return self._render_sqlite_fk_triggers(fk)

    def _render_sqlite_fk_triggers(self, fk: ForeignKeySpec) -> str:
        # SQLite cannot add constraints to existing tables; enforce with triggers
        child, parent = quote_ident(fk.table), quote_ident(fk.ref_table)
        col, ref = quote_ident(fk.column), quote_ident(fk.ref_column)
        missing_parent = (
            f"NEW.{col} IS NOT NULL AND "
            f"(SELECT 1 FROM {parent} WHERE {ref} = NEW.{col}) IS NULL"
        )
        violation = sql_literal(f"foreign key violation: {fk.name}", SQLITE)
        if fk.on_delete.upper() == "SET NULL":
            on_delete = f"UPDATE {child} SET {col} = NULL WHERE {col} = OLD.{ref};"
        else:
            on_delete = f"DELETE FROM {child} WHERE {col} = OLD.{ref};"
        return (
            f"CREATE TRIGGER IF NOT EXISTS {quote_ident(fk.name + '_insert')}\n"
            f"BEFORE INSERT ON {child} FOR EACH ROW WHEN {missing_parent}\n"
            f"BEGIN SELECT RAISE(ABORT, {violation}); END;\n"
            f"CREATE TRIGGER IF NOT EXISTS {quote_ident(fk.name + '_update')}\n"
            f"BEFORE UPDATE OF {col} ON {child} FOR EACH ROW WHEN {missing_parent}\n"
            f"BEGIN SELECT RAISE(ABORT, {violation}); END;\n"
            f"CREATE TRIGGER IF NOT EXISTS {quote_ident(fk.name + '_delete')}\n"
            f"AFTER DELETE ON {parent} FOR EACH ROW\n"
            f"BEGIN {on_delete} END;"
        )

    def render_foreign_key_statements(self, dialect: str) -> List[Tuple[ForeignKeySpec, str]]:
        return [(fk, self.render_foreign_key(fk, dialect)) for fk in self.foreign_keys]


def _id() -> ColumnSpec:
    return ColumnSpec("id", "uuid", primary_key=True, default=DEFAULT_UUID)


def _store_id(nullable: bool = False) -> ColumnSpec:
    return ColumnSpec("store_id", "uuid", nullable=nullable)


def _created_at() -> ColumnSpec:
    return ColumnSpec("created_at", "timestamp", nullable=False, default=DEFAULT_NOW)


def _flag(name: str, default: bool) -> ColumnSpec:
    return ColumnSpec(name, "boolean", nullable=False, default=default)


TENANT_SCHEMA = TenantSchema(
    enums=(
        EnumSpec("user_role", ("owner", "admin", "staff")),
        EnumSpec("product_status", ("draft", "active", "archived")),
        EnumSpec("order_status", ("pending", "processing", "shipped", "delivered", "cancelled", "refunded")),
        EnumSpec("attribute_type", ("text", "select", "multiselect", "boolean", "number")),
        EnumSpec("email_content_type", ("text", "html", "both")),
        EnumSpec("payment_method_type", ("online", "offline")),
        EnumSpec("shipping_rate_type", ("flat_rate", "free_shipping", "weight_based", "price_based")),
    ),
    tables=(
        TableSpec("stores", (
            ColumnSpec("id", "uuid", primary_key=True),
            ColumnSpec("name", "text", nullable=False),
            ColumnSpec("slug", "text", unique=True),
            ColumnSpec("description", "text"),
            ColumnSpec("contact_email", "text"),
            ColumnSpec("currency", "text", nullable=False, default="USD"),
            ColumnSpec("timezone", "text", nullable=False, default="UTC"),
            ColumnSpec("default_language", "text", nullable=False, default="en"),
            _flag("is_active", True),
            _created_at(),
            ColumnSpec("updated_at", "timestamp", nullable=False, default=DEFAULT_NOW),
        )),
        TableSpec("users", (
            _id(),
            _store_id(nullable=True),
            ColumnSpec("email", "text", nullable=False, unique=True),
            ColumnSpec("first_name", "text"),
            ColumnSpec("last_name", "text"),
            ColumnSpec("role", "enum", nullable=False, default="owner", enum="user_role"),
            _flag("is_active", True),
            _created_at(),
        ), indexes=(("store_id",),)),
        TableSpec("languages", (
            ColumnSpec("code", "text", primary_key=True),
            ColumnSpec("name", "text", nullable=False),
            ColumnSpec("native_name", "text"),
            _flag("is_rtl", False),
            _flag("is_active", True),
        )),
        TableSpec("translations", (
            _id(),
            _store_id(),
            ColumnSpec("language_code", "text", nullable=False),
            ColumnSpec("key", "text", nullable=False),
            ColumnSpec("value", "text", nullable=False),
            _created_at(),
        ), indexes=(("store_id", "language_code"),)),
        TableSpec("categories", (
            _id(),
            _store_id(),
            ColumnSpec("parent_id", "uuid"),
            ColumnSpec("name", "text", nullable=False),
            ColumnSpec("slug", "text", nullable=False),
            _flag("is_active", True),
            _created_at(),
        ), indexes=(("store_id",),)),
        TableSpec("attribute_sets", (
            _id(),
            _store_id(),
            ColumnSpec("name", "text", nullable=False),
            _created_at(),
        )),
        TableSpec("attributes", (
            _id(),
            ColumnSpec("attribute_set_id", "uuid", nullable=False),
            ColumnSpec("code", "text", nullable=False),
            ColumnSpec("name", "text", nullable=False),
            ColumnSpec("type", "enum", nullable=False, default="text", enum="attribute_type"),
            _flag("is_required", False),
        )),
        TableSpec("products", (
            _id(),
            _store_id(),
            ColumnSpec("category_id", "uuid"),
            ColumnSpec("attribute_set_id", "uuid"),
            ColumnSpec("sku", "text", nullable=False),
            ColumnSpec("name", "text", nullable=False),
            ColumnSpec("price", "numeric", nullable=False, default=0),
            ColumnSpec("status", "enum", nullable=False, default="draft", enum="product_status"),
            ColumnSpec("stock_quantity", "integer", nullable=False, default=0),
            _created_at(),
        ), indexes=(("store_id",), ("store_id", "sku"))),
        TableSpec("customers", (
            _id(),
            _store_id(),
            ColumnSpec("email", "text", nullable=False),
            ColumnSpec("first_name", "text"),
            ColumnSpec("last_name", "text"),
            _created_at(),
        ), indexes=(("store_id", "email"),)),
        TableSpec("orders", (
            _id(),
            _store_id(),
            ColumnSpec("customer_id", "uuid"),
            ColumnSpec("order_number", "text", nullable=False),
            ColumnSpec("status", "enum", nullable=False, default="pending", enum="order_status"),
            ColumnSpec("total_amount", "numeric", nullable=False, default=0),
            ColumnSpec("currency", "text", nullable=False, default="USD"),
            _created_at(),
        ), indexes=(("store_id",),)),
        TableSpec("order_items", (
            _id(),
            ColumnSpec("order_id", "uuid", nullable=False),
            ColumnSpec("product_id", "uuid"),
            ColumnSpec("quantity", "integer", nullable=False, default=1),
            ColumnSpec("unit_price", "numeric", nullable=False, default=0),
        )),
        TableSpec("cms_pages", (
            _id(),
            _store_id(),
            ColumnSpec("slug", "text", nullable=False),
            ColumnSpec("title", "text", nullable=False),
            ColumnSpec("content", "text"),
            _flag("is_active", True),
            _created_at(),
        )),
        TableSpec("cookie_consent_settings", (
            _id(),
            _store_id(),
            _flag("is_enabled", True),
            ColumnSpec("banner_text", "text"),
            ColumnSpec("privacy_policy_url", "text"),
            _created_at(),
        )),
        TableSpec("email_templates", (
            _id(),
            _store_id(),
            ColumnSpec("identifier", "text", nullable=False),
            ColumnSpec("subject", "text", nullable=False),
            ColumnSpec("content_type", "enum", nullable=False, default="both", enum="email_content_type"),
            ColumnSpec("template_content", "text"),
            ColumnSpec("html_content", "text"),
            _flag("is_active", True),
            _created_at(),
        )),
        TableSpec("payment_methods", (
            _id(),
            _store_id(),
            ColumnSpec("code", "text", nullable=False),
            ColumnSpec("name", "text", nullable=False),
            ColumnSpec("type", "enum", nullable=False, default="offline", enum="payment_method_type"),
            _flag("is_active", True),
            ColumnSpec("sort_order", "integer", nullable=False, default=0),
        )),
        TableSpec("shipping_methods", (
            _id(),
            _store_id(),
            ColumnSpec("name", "text", nullable=False),
            ColumnSpec("type", "enum", nullable=False, default="flat_rate", enum="shipping_rate_type"),
            ColumnSpec("flat_rate_cost", "numeric", nullable=False, default=0),
            _flag("is_active", True),
            ColumnSpec("sort_order", "integer", nullable=False, default=0),
        )),
        TableSpec("pdf_templates", (
            _id(),
            _store_id(),
            ColumnSpec("identifier", "text", nullable=False),
            ColumnSpec("name", "text", nullable=False),
            ColumnSpec("template_html", "text"),
            _flag("is_active", True),
        )),
    ),
    # Seeded tables keep a placeholder store_id until backfill, so they carry no store FK
    foreign_keys=(
        ForeignKeySpec("users", "store_id", "stores"),
        ForeignKeySpec("translations", "language_code", "languages", ref_column="code"),
        ForeignKeySpec("categories", "store_id", "stores"),
        ForeignKeySpec("categories", "parent_id", "categories", on_delete="SET NULL"),
        ForeignKeySpec("attributes", "attribute_set_id", "attribute_sets"),
        ForeignKeySpec("products", "store_id", "stores"),
        ForeignKeySpec("products", "category_id", "categories", on_delete="SET NULL"),
        ForeignKeySpec("products", "attribute_set_id", "attribute_sets", on_delete="SET NULL"),
        ForeignKeySpec("customers", "store_id", "stores"),
        ForeignKeySpec("orders", "store_id", "stores"),
        ForeignKeySpec("orders", "customer_id", "customers", on_delete="SET NULL"),
        ForeignKeySpec("order_items", "order_id", "orders"),
        ForeignKeySpec("order_items", "product_id", "products", on_delete="SET NULL"),
    ),
)
