# storeplex/provisioning/seed.py
"""Reference data loaded into every new tenant database."""
from dataclasses import dataclass
from typing import Any, Dict, Tuple
from uuid import UUID, uuid5

from .models import PLACEHOLDER_STORE_ID
from .schema import sql_literal
from ..connections.handles import quote_identifier

# Seeded tables whose rows belong to the placeholder tenant until backfilled
TENANT_SCOPED_SEED_TABLES: Tuple[str, ...] = (
    "translations",
    "cms_pages",
    "cookie_consent_settings",
    "email_templates",
    "payment_methods",
    "pdf_templates",
    "shipping_methods",
    "attribute_sets",
)

# Scoped seed rows get stable ids so re-seeding a tenant conflicts instead of duplicating
SEED_ROW_NAMESPACE = UUID("6f1d8c2a-4b0e-4c57-9a3e-2d7b5e9f0c41")


def seed_row_id(table: str, position: int) -> str:
    return str(uuid5(SEED_ROW_NAMESPACE, f"{table}:{position}"))


@dataclass(frozen=True)
class SeedTable:
    table: str
    rows: Tuple[Dict[str, Any], ...]

    def render(self, dialect: str) -> str:
        """One INSERT per row so omitted columns fall back to their defaults; existing rows are skipped."""
        statements = []
        for position, row in enumerate(self.rows):
            if "store_id" in row and "id" not in row:
                row = {"id": seed_row_id(self.table, position), **row}
            columns = ", ".join(quote_identifier(c) for c in row)
            values = ", ".join(sql_literal(v, dialect) for v in row.values())
            statements.append(
                f"INSERT INTO {quote_identifier(self.table)} ({columns}) VALUES ({values}) ON CONFLICT DO NOTHING;"
            )
        return "\n".join(statements)


def _scoped(**row) -> Dict[str, Any]:
    return {"store_id": PLACEHOLDER_STORE_ID, **row}


SEED_DATA: Tuple[SeedTable, ...] = (
    SeedTable("languages", (
        {"code": "en", "name": "English", "native_name": "English"},
        {"code": "nl", "name": "Dutch", "native_name": "Nederlands"},
        {"code": "de", "name": "German", "native_name": "Deutsch"},
        {"code": "fr", "name": "French", "native_name": "Français"},
        {"code": "es", "name": "Spanish", "native_name": "Español"},
        {"code": "ar", "name": "Arabic", "native_name": "العربية", "is_rtl": True},
    )),
    SeedTable("translations", (
        _scoped(language_code="en", key="common.add_to_cart", value="Add to cart"),
        _scoped(language_code="en", key="common.checkout", value="Checkout"),
        _scoped(language_code="en", key="common.search", value="Search"),
        _scoped(language_code="nl", key="common.add_to_cart", value="In winkelwagen"),
        _scoped(language_code="nl", key="common.checkout", value="Afrekenen"),
        _scoped(language_code="de", key="common.add_to_cart", value="In den Warenkorb"),
    )),
    SeedTable("cms_pages", (
        _scoped(slug="404-page-not-found", title="Page not found",
                content="<p>The page you are looking for does not exist.</p>"),
        _scoped(slug="privacy-policy", title="Privacy Policy",
                content="<p>Describe how customer data is collected and used.</p>"),
    )),
    SeedTable("cookie_consent_settings", (
        _scoped(is_enabled=True,
                banner_text="We use cookies to improve your experience.",
                privacy_policy_url="/privacy-policy"),
    )),
    SeedTable("email_templates", (
        _scoped(identifier="signup_email", subject="Welcome to {{store_name}}!",
                template_content="Hi {{customer_first_name}},\n\nWelcome to {{store_name}}!"),
        _scoped(identifier="credit_purchase_email", subject="Credit purchase confirmation",
                template_content="Your purchase of {{credits_purchased}} credits was successful."),
        _scoped(identifier="order_success_email", subject="Order #{{order_number}} confirmed",
                template_content="Thank you for your order, {{customer_first_name}}."),
    )),
    SeedTable("payment_methods", (
        _scoped(code="bank_transfer", name="Bank transfer", type="offline", sort_order=1),
        _scoped(code="cash_on_delivery", name="Cash on delivery", type="offline", sort_order=2),
    )),
    SeedTable("pdf_templates", (
        _scoped(identifier="invoice", name="Invoice",
                template_html="<h1>Invoice {{invoice_number}}</h1>"),
        _scoped(identifier="shipment", name="Packing slip",
                template_html="<h1>Shipment {{shipment_number}}</h1>"),
    )),
    SeedTable("shipping_methods", (
        _scoped(name="Standard shipping", type="flat_rate", flat_rate_cost=5, sort_order=1),
        _scoped(name="Free shipping", type="free_shipping", flat_rate_cost=0, sort_order=2),
    )),
    SeedTable("attribute_sets", (
        _scoped(name="Default"),
    )),
)


def render_backfill_statement(table: str, store_id: str, dialect: str) -> str:
    """Re-own a seeded table's placeholder rows to a concrete store."""
    column = quote_identifier("store_id")
    return (
        f"UPDATE {quote_identifier(table)} SET {column} = {sql_literal(store_id, dialect)} "
        f"WHERE {column} = {sql_literal(PLACEHOLDER_STORE_ID, dialect)};"
    )
