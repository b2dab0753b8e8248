# src/sv_app/commands/common.py
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from sv_app.core.config import Settings
from sv_app.core.errors import ParseError
from sv_app.core.progress import ProgressReporter
from sv_app.core.session import SessionContext
from sv_app.modules.export.schemas import AssetDescriptor
from sv_app.modules.geocode.service import GeocodingService
from sv_app.modules.history.store import HistoryStore
from sv_app.modules.parse.service import ExpiryStatus, expiry_status, parse_export
from sv_app.modules.selection.service import country_summary
from sv_app.version import get_version


def prompt_export_file(maybe_path: Path | None) -> Path:
    path = maybe_path or Path(
        typer.prompt("export (memories_history.html or export .zip)")
    ).expanduser()
    if not path.exists() or not path.is_file():
        raise typer.BadParameter(f"export file does not exist: {path}")
    return path


def load_and_locate(
    export: Path,
    settings: Settings,
    reporter: ProgressReporter | None = None,
) -> tuple[SessionContext, HistoryStore]:
    """Parse the export, restore download history and label every asset."""
    try:
        result = parse_export(export, reporter=reporter)
    except ParseError as e:
        raise typer.BadParameter(f"{e.message_key}: {e}") from e

    session = SessionContext()
    session.load_assets(result.assets)
    session.expires_at = result.expires_at

    history = HistoryStore(settings.history_path, get_version())
    history.init(result.assets)

    GeocodingService(session).classify_all(session.assets, reporter=reporter)
    return session, history


def print_expiry(console: Console, expires_at: datetime | None) -> None:
    status = expiry_status(expires_at)
    if status == ExpiryStatus.unknown:
        console.print("Link expiry unknown.", style="dim")
        return
    stamp = expires_at.astimezone().strftime("%Y-%m-%d %H:%M")
    styles = {
        ExpiryStatus.expired: ("Links expired on", "bold red"),
        ExpiryStatus.soon: ("Links expire soon:", "bold yellow"),
        ExpiryStatus.valid: ("Links valid until", "green"),
    }
    text, style = styles[status]
    console.print(f"{text} {stamp}", style=style)


def render_country_table(console: Console, assets: Sequence[AssetDescriptor]) -> None:
    table = Table(title="Memories by country", show_lines=False)
    table.add_column("Country", overflow="fold")
    table.add_column("Status")
    table.add_column("Total", justify="right")
    for row in country_summary(assets):
        table.add_row(row.country, row.status.value, str(row.total))
    console.print(table)
