# storeplex/cli/utils_cli.py
import requests
import typer
import json
from typing import Optional, Dict, Any, Union, List

from .config import STOREPLEX_CLI_API_BASE_URL, STOREPLEX_CLI_ADMIN_API_KEY

# Request body keys whose values are never echoed
_SECRET_PAYLOAD_KEYS = {"serviceRoleKey", "anonKey", "connectionString"}


def _masked_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("********" if k in _SECRET_PAYLOAD_KEYS and v else v) for k, v in payload.items()}


def make_api_request(
    method: str,
    endpoint: str,
    json_payload: Optional[Dict[str, Any]] = None,
    params_payload: Optional[Dict[str, Any]] = None,
    expected_status: Union[int, List[int]] = 200,
    account_id: Optional[str] = None,
) -> Any:
    """
    Makes an HTTP API request against the control plane and prints the outcome.

    Sends the platform API key and, for store routes, the acting account.
    Exits with code 1 on any unexpected status or transport error.
    """
    full_url = f"{STOREPLEX_CLI_API_BASE_URL}{endpoint}"
    headers: Dict[str, str] = {}

    if STOREPLEX_CLI_ADMIN_API_KEY:
        headers["X-Admin-API-Key"] = STOREPLEX_CLI_ADMIN_API_KEY
    else:
        typer.secho(
            "CLI: Warning - ADMIN_API_KEY not set in .env for CLI. API calls will be rejected.",
            fg=typer.colors.YELLOW
        )
    if account_id:
        headers["X-Account-Id"] = account_id

    typer.echo(f"CLI: {method.upper()} {full_url}")
    if json_payload:
        typer.echo(f"CLI: JSON Payload: {json.dumps(_masked_payload(json_payload), indent=2)}")
    if params_payload:
        typer.echo(f"CLI: Query Params: {params_payload}")

    try:
        response = requests.request(
            method,
            full_url,
            json=json_payload,
            params=params_payload,
            headers=headers,
            timeout=180
        )
    except requests.exceptions.ConnectionError as e:
        typer.secho(
            f"CLI: Connection Error - Could not connect to API at {full_url}. Is the server running? Error: {e}",
            fg=typer.colors.RED
        )
        raise typer.Exit(code=1)
    except requests.exceptions.RequestException as e:
        typer.secho(f"CLI: Request Error - {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"CLI: Response Status: {response.status_code}")
    expected_statuses = [expected_status] if isinstance(expected_status, int) else expected_status

    if response.status_code not in expected_statuses:
        err_msg = f"CLI: API Error - Expected status {expected_status}, got {response.status_code}."
        try:
            err_data = response.json()
            err_msg += f" Detail: {err_data.get('detail', response.text)}"
        except json.JSONDecodeError:
            err_msg += f" Raw response: {response.text}"
        typer.secho(err_msg, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if not response.content:
        typer.secho(f"CLI: Success (Status {response.status_code}, No Content).", fg=typer.colors.GREEN)
        return None
    try:
        data = response.json()
    except json.JSONDecodeError:
        typer.secho(f"CLI: Error - Could not decode JSON response. Raw text: {response.text}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(typer.style("CLI: Response JSON:", fg=typer.colors.CYAN))
    typer.echo(json.dumps(data, indent=2))
    return data


def require_account(account_id: Optional[str]) -> str:
    from .config import STOREPLEX_CLI_ACCOUNT_ID

    account = account_id or STOREPLEX_CLI_ACCOUNT_ID
    if not account:
        typer.secho("Error: pass --account or set STOREPLEX_CLI_ACCOUNT_ID.", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return account
