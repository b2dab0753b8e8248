# src/sv_app/commands/geocode.py
from __future__ import annotations

import time
from pathlib import Path

import typer
from rich.console import Console

from sv_app.commands.common import (
    load_and_locate,
    print_expiry,
    prompt_export_file,
    render_country_table,
)
from sv_app.core.config import get_settings
from sv_app.core.errors import BoundaryDataError
from sv_app.core.rich_progress import make_phase_progress
from sv_app.modules.geocode.boundaries import get_classifier


def register(app: typer.Typer) -> None:
    """Attach the lookup commands to the given Typer app."""

    @app.command("classify", help="Print the country containing LON LAT.")
    def classify_cmd(
        longitude: float = typer.Argument(..., min=-180, max=180),
        latitude: float = typer.Argument(..., min=-90, max=90),
    ):
        try:
            country = get_classifier().classify(longitude, latitude)
        except BoundaryDataError as e:
            typer.echo(f"Boundary data unavailable: {e}", err=True)
            raise typer.Exit(code=1) from e
        typer.echo(country or "LOCATION_NOT_IDENTIFIED")

    @app.command("geocode", help="Parse an export and summarize memories by country.")
    def geocode_cmd(
        export: Path | None = typer.Argument(None, dir_okay=False),
    ):
        export = prompt_export_file(export)
        console = Console()
        progress, reporter = make_phase_progress(console)

        t0 = time.perf_counter()
        with progress:
            session, _history = load_and_locate(export, get_settings(), reporter)
        elapsed = time.perf_counter() - t0

        render_country_table(console, session.assets)
        print_expiry(console, session.expires_at)
        console.print(
            f"Located {len(session.assets)} memories in {elapsed:.2f}s.", style="bold green"
        )
