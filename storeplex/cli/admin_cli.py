# storeplex/cli/admin_cli.py
import typer
from . import credits_cli
from . import domain_cli

app = typer.Typer(
    name="admin",
    help="StorePlex Administrative Commands.",
    no_args_is_help=True
)

# Register sub-command modules for administrative operations
app.add_typer(credits_cli.app, name="credits")
app.add_typer(domain_cli.app, name="domain")


@app.callback()
def admin_callback():
    """
    StorePlex Admin CLI entry point callback.
    """
    pass


if __name__ == "__main__":
    app()
