# storeplex/cli/credits_cli.py
import typer
from typing import Optional
from typing_extensions import Annotated

from .utils_cli import make_api_request
from ..credits.models import TransactionType

app = typer.Typer(
    name="credits",
    help="Inspect and mutate store credit balances via the Admin API.",
    no_args_is_help=True
)

StoreArgument = Annotated[str, typer.Argument(help="The ID of the store.")]
AmountArgument = Annotated[str, typer.Argument(help="Amount of credits, up to two decimals.")]


@app.command("add")
def add_credits(
    store_id: StoreArgument,
    amount: AmountArgument,
    transaction_type: Annotated[TransactionType, typer.Option("--type")] = TransactionType.PURCHASE,
    description: Annotated[Optional[str], typer.Option()] = None,
    payment_reference: Annotated[Optional[str], typer.Option()] = None,
):
    """Add credits to a store."""
    payload = {"amount": amount, "transaction_type": transaction_type.value}
    if description:
        payload["description"] = description
    if payment_reference:
        payload["payment_reference"] = payment_reference
    make_api_request("POST", f"/admin/stores/{store_id}/credits/add", json_payload=payload)


@app.command("deduct")
def deduct_credits(
    store_id: StoreArgument,
    amount: AmountArgument,
    description: Annotated[Optional[str], typer.Option()] = None,
):
    """Spend credits of a store."""
    payload = {"amount": amount}
    if description:
        payload["description"] = description
    make_api_request("POST", f"/admin/stores/{store_id}/credits/deduct", json_payload=payload)


@app.command("reserve")
def reserve_credits(store_id: StoreArgument, amount: AmountArgument):
    """Hold credits for a pending operation."""
    make_api_request("POST", f"/admin/stores/{store_id}/credits/reserve", json_payload={"amount": amount})


@app.command("release")
def release_credits(store_id: StoreArgument, amount: AmountArgument):
    """Release held credits."""
    make_api_request("POST", f"/admin/stores/{store_id}/credits/release", json_payload={"amount": amount})


@app.command("reconcile")
def reconcile_credits(store_id: StoreArgument):
    """Check a store's balance against its ledger."""
    make_api_request("GET", f"/admin/stores/{store_id}/credits/reconcile")
