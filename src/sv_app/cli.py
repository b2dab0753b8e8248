# src/sv_app/cli.py
from __future__ import annotations

import typer

from sv_app.commands.export import register as register_export
from sv_app.commands.geocode import register as register_geocode
from sv_app.core.config import get_settings
from sv_app.core.logging import configure_logging

app = typer.Typer(help="Snapvault CLI")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    configure_logging("DEBUG" if verbose or get_settings().DEBUG else "WARNING")


register_geocode(app)
register_export(app)


if __name__ == "__main__":
    app()
