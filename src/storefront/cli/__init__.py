"""CLI commands for the storefront.

Provides command-line interface using Typer:
- storefront serve: Run the API server
- storefront limits check <ip>: Show a client's rate limit quotas
- storefront limits clear: Reset rate limit counters

Usage:
    storefront --help
    storefront serve --port 8080
    storefront limits check 203.0.113.7
"""

import typer

from storefront.cli.limits import app as limits_app
from storefront.cli.serve import app as serve_app

# Main CLI application
app = typer.Typer(
    name="storefront",
    help="Storefront backend: cache-aside catalog, carts and orders",
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve")
app.add_typer(limits_app, name="limits")


@app.callback()
def callback() -> None:
    """Storefront backend: cache-aside catalog, carts and orders."""


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
