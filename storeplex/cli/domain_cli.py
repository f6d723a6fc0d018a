# storeplex/cli/domain_cli.py
import typer
from typing_extensions import Annotated

from .utils_cli import make_api_request
from ..domains.models import VerificationStatus

app = typer.Typer(
    name="domain",
    help="Manage store hostnames via the Admin API.",
    no_args_is_help=True
)


@app.command("add")
def add_domain(
    store_id: Annotated[str, typer.Argument(help="The ID of the store.")],
    hostname: Annotated[str, typer.Argument(help="Hostname to route to the store.")],
    primary: Annotated[bool, typer.Option("--primary/--no-primary")] = False,
    verification_status: Annotated[
        VerificationStatus, typer.Option("--status", help="Only verified hostnames are routed.")
    ] = VerificationStatus.PENDING,
):
    """Map a custom hostname to a store."""
    payload = {
        "store_id": store_id,
        "hostname": hostname,
        "is_primary": primary,
        "is_custom_domain": True,
        "verification_status": verification_status.value,
    }
    make_api_request("POST", "/admin/domains", json_payload=payload, expected_status=201)


@app.command("list")
def list_domains(store_id: Annotated[str, typer.Argument(help="The ID of the store.")]):
    """List the hostnames of a store."""
    make_api_request("GET", f"/admin/domains/{store_id}")
