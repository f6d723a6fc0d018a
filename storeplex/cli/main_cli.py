# storeplex/cli/main_cli.py
import typer
from . import admin_cli
from . import store_cli
from ..vault.crypto import generate_vault_key

# Main CLI application with help enabled when no arguments are provided
app = typer.Typer(
    name="storeplex",
    help="StorePlex Command Line Interface.",
    no_args_is_help=True
)

app.add_typer(admin_cli.app, name="admin")
app.add_typer(store_cli.app, name="store")


@app.callback()
def main_callback():
    """
    StorePlex main CLI application.
    Use 'storeplex store --help' for store commands and 'storeplex admin --help' for admin commands.
    """
    pass


@app.command("keygen")
def keygen():
    """Generate a vault key for STOREPLEX_ENCRYPTION_KEY."""
    typer.echo("Generated vault key:")
    typer.echo(generate_vault_key())
    typer.echo("Add this to your .env file as STOREPLEX_ENCRYPTION_KEY")


def cli_entry_point():
    """Entry point function for console script registration in pyproject.toml"""
    app()


if __name__ == "__main__":
    cli_entry_point()
