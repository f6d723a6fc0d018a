# storeplex/cli/store_cli.py
import typer
from typing import Optional
from typing_extensions import Annotated

from .utils_cli import make_api_request, require_account
from ..stores.models import DatabaseType

app = typer.Typer(
    name="store",
    help="Manage stores on behalf of an account.",
    no_args_is_help=True
)

AccountOption = Annotated[
    Optional[str], typer.Option("--account", help="Acting account id (defaults to STOREPLEX_CLI_ACCOUNT_ID).")
]


@app.command("create")
def create_store(
    name: Annotated[str, typer.Option(prompt="Store name", help="Display name of the store.")],
    account: AccountOption = None,
):
    """Create a store awaiting its database."""
    make_api_request("POST", "/stores", json_payload={"name": name}, expected_status=201,
                     account_id=require_account(account))


@app.command("list")
def list_stores(account: AccountOption = None):
    """List the account's stores."""
    make_api_request("GET", "/stores", account_id=require_account(account))


@app.command("get")
def get_store(
    store_id: Annotated[str, typer.Argument(help="The ID of the store.")],
    account: AccountOption = None,
):
    """Show status, connection info and credits of a store."""
    make_api_request("GET", f"/stores/{store_id}", account_id=require_account(account))


@app.command("connect")
def connect_database(
    store_id: Annotated[str, typer.Argument(help="The ID of the store to connect.")],
    project_url: Annotated[str, typer.Option(prompt="Project URL", help="URL of the tenant database project.")],
    service_role_key: Annotated[
        str, typer.Option(prompt="Service role key", hide_input=True, help="Service role key of the project.")
    ],
    connection_string: Annotated[Optional[str], typer.Option(help="Direct database connection string.")] = None,
    database_type: Annotated[DatabaseType, typer.Option(help="Kind of tenant database.")] = DatabaseType.SUPABASE,
    store_name: Annotated[Optional[str], typer.Option(help="Store name inside the tenant database.")] = None,
    slug: Annotated[Optional[str], typer.Option(help="Subdomain slug of the store.")] = None,
    account: AccountOption = None,
):
    """Attach a tenant database to a store and provision it."""
    payload = {
        "projectUrl": project_url,
        "serviceRoleKey": service_role_key,
        "databaseType": database_type.value,
    }
    if connection_string:
        payload["connectionString"] = connection_string
    if store_name:
        payload["storeName"] = store_name
    if slug:
        payload["storeSlug"] = slug
    make_api_request("POST", f"/stores/{store_id}/connect-database", json_payload=payload,
                     account_id=require_account(account))


@app.command("suspend")
def suspend_store(
    store_id: Annotated[str, typer.Argument(help="The ID of the store to suspend.")],
    reason: Annotated[str, typer.Option(help="Reason recorded on the store.")] = "Deleted by account owner",
    account: AccountOption = None,
):
    """Suspend (soft delete) a store."""
    make_api_request("DELETE", f"/stores/{store_id}", params_payload={"reason": reason},
                     account_id=require_account(account))
