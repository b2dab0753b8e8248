# src/sv_app/commands/export.py
"""
Interactive 'export' command.

Parses an export, labels every memory with its country, asks what to
download (a year or a country, optionally narrowed to some months or
years) and writes the resulting ZIP archive(s) into OUTPUT_ROOT.

Selections above the large-selection threshold are split into numbered
parts; each part is written to disk as soon as it finishes.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import BinaryIO

import typer
from rich.console import Console
from rich.table import Table

from sv_app.commands.common import (
    load_and_locate,
    print_expiry,
    prompt_export_file,
    render_country_table,
)
from sv_app.core.config import Settings, get_settings
from sv_app.core.errors import ArchiveError, DestinationCancelled
from sv_app.core.paths import archive_filename
from sv_app.core.rich_progress import make_phase_progress
from sv_app.core.session import SessionContext
from sv_app.modules.archive.service import save_result
from sv_app.modules.export.schemas import (
    AssetDescriptor,
    Batch,
    BatchStatus,
    SelectionContext,
    SelectionMode,
)
from sv_app.modules.export.service import ExportService
from sv_app.modules.history.store import HistoryStore
from sv_app.modules.selection.service import select, year_summary

__all__ = ["register"]


# ---------- prompts / parsing ----------
def _parse_int_set(raw: str | None, lo: int, hi: int, label: str) -> frozenset[int] | None:
    if not raw:
        return None
    try:
        values = frozenset(int(v) for v in raw.split(",") if v.strip())
    except ValueError as e:
        raise typer.BadParameter(f"{label} must be a comma-separated list of numbers") from e
    if any(not lo <= v <= hi for v in values):
        raise typer.BadParameter(f"{label} must be within {lo}..{hi}")
    return values or None


def _prompt_context(
    mode: SelectionMode | None,
    selection: str | None,
    months: str | None,
    years: str | None,
) -> SelectionContext:
    if mode is None:
        choice = typer.prompt("mode (year/country)", default="year").strip().lower()
        if choice not in {"year", "country"}:
            raise typer.BadParameter("mode must be 'year' or 'country'")
        mode = SelectionMode(choice)
    if selection is None:
        selection = typer.prompt(mode.value).strip()

    if mode == SelectionMode.year:
        try:
            sel: int | str = int(selection)
        except ValueError as e:
            raise typer.BadParameter("year selection must be a number") from e
        return SelectionContext(
            mode=mode, selection=sel, months=_parse_int_set(months, 1, 12, "months")
        )

    return SelectionContext(
        mode=mode,
        selection=selection,
        years=_parse_int_set(years, 1900, 2999, "years"),
    )


def _render_years(console: Console, session: SessionContext, history: HistoryStore) -> None:
    assets = session.assets
    table = Table(title="Memories by year", show_lines=False)
    table.add_column("Year", justify="right")
    table.add_column("Images", justify="right")
    table.add_column("Videos", justify="right")
    table.add_column("Downloaded", justify="right")
    table.add_column("Failed", justify="right")
    for row in year_summary(assets, history.get_history(a.id for a in assets)):
        table.add_row(
            str(row.year),
            str(row.images),
            str(row.videos),
            str(row.downloaded_count),
            str(row.failed_count),
        )
    console.print(table)


def _render_batches(console: Console, batches: list[Batch]) -> None:
    table = Table(title="Batches", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Memories", justify="right")
    table.add_column("Status")
    table.add_column("Archive", overflow="fold")
    for b in batches:
        path = b.archive.path if b.archive and b.archive.path else None
        table.add_row(
            f"{b.batch_num}/{b.total_batches}",
            str(len(b)),
            b.status.value,
            str(path) if path else b.archive_filename,
        )
    console.print(table)


# ---------- runner ----------
class _ExportRunner:
    def __init__(
        self,
        session: SessionContext,
        history: HistoryStore,
        settings: Settings,
        context: SelectionContext,
        batch_size: int | None,
        stream: bool,
        all_batches: bool,
    ) -> None:
        self.session = session
        self.history = history
        self.settings = settings
        self.context = context
        self.batch_size = batch_size
        self.stream = stream
        self.all_batches = all_batches
        self._overwrite_ok = True
        self.console = Console()

    def _pick_destination(self, filename: str) -> BinaryIO:
        if not self._overwrite_ok:
            raise DestinationCancelled(f"Not overwriting {filename}")
        return (self.settings.OUTPUT_ROOT / filename).open("wb")

    def _save_batch(self, batch: Batch) -> None:
        if batch.status != BatchStatus.success or batch.archive is None:
            return
        try:
            path = save_result(batch.archive, self.settings.OUTPUT_ROOT)
        except (ArchiveError, OSError) as e:
            self.console.print(f"Could not save {batch.archive_filename}: {e}", style="bold red")
            return
        batch.archive.data = None  # release the in-memory copy
        self.console.print(f"Saved {path}", style="green")

    def run(self, assets: list[AssetDescriptor]) -> None:
        progress, reporter = make_phase_progress(self.console)
        svc = ExportService(
            self.session, settings=self.settings, history=self.history, reporter=reporter
        )
        self.session.on_batch(self._save_batch)

        t0 = time.perf_counter()
        try:
            if svc.is_large(assets, self.batch_size):
                batches = svc.prepare_batches(assets, self.context, self.batch_size)
                _render_batches(self.console, batches)
                if not self.all_batches and not typer.confirm(
                    f"Download all {len(batches)} parts now?", default=True
                ):
                    return
                unfollow = reporter.follow(self.session)
                try:
                    with progress:
                        svc.process_all_batches(self.context)
                finally:
                    unfollow()
                _render_batches(self.console, self.session.batches)
            else:
                picker = None
                if self.stream:
                    dst = self.settings.OUTPUT_ROOT / archive_filename(self.context)
                    self._overwrite_ok = not dst.exists() or typer.confirm(
                        f"{dst} exists. Overwrite?", default=False
                    )
                    picker = self._pick_destination
                unfollow = reporter.follow(self.session)
                try:
                    with progress:
                        ok = svc.start_download(assets, self.context, picker=picker)
                finally:
                    unfollow()
                if not ok and not self.session.message_key:
                    self.console.print("Download cancelled.", style="yellow")
                    return
                if not ok:
                    self.console.print(
                        f"Export failed ({self.session.message_key}).", style="bold red"
                    )
        except KeyboardInterrupt:
            self.console.print("Cancelled; in-flight downloads were finished.", style="yellow")
            raise typer.Exit(code=130)

        snap = self.session.snapshot()
        elapsed = time.perf_counter() - t0
        self.console.print(
            f"Downloaded {snap.completed} of {snap.total} memories "
            f"({snap.failed} failed) in {elapsed:.2f}s.",
            style="bold green" if snap.failed == 0 else "bold yellow",
        )


def register(app: typer.Typer) -> None:
    """Attach the export command to the given Typer app."""

    @app.command("export", help="Download a year or country of memories into ZIP archives.")
    def export_cmd(
        export: Path | None = typer.Argument(None, dir_okay=False),
        mode: SelectionMode | None = typer.Option(None, "--mode", "-m", help="year or country."),
        selection: str | None = typer.Option(
            None, "--selection", "-s", help="Year number or country name."
        ),
        months: str | None = typer.Option(
            None, "--months", help="Comma-separated months (1-12) within the year."
        ),
        years: str | None = typer.Option(
            None, "--years", help="Comma-separated years within the country."
        ),
        batch_size: int | None = typer.Option(
            None, "--batch-size", "-b", min=1, help="Override the large-selection threshold."
        ),
        stream: bool = typer.Option(
            True, "--stream/--no-stream", help="Write small exports straight to disk."
        ),
        all_batches: bool = typer.Option(
            False, "--all-batches", help="Process every part without asking."
        ),
    ):
        export = prompt_export_file(export)
        settings = get_settings()
        console = Console()

        progress, reporter = make_phase_progress(console)
        with progress:
            session, history = load_and_locate(export, settings, reporter)

        render_country_table(console, session.assets)
        _render_years(console, session, history)
        print_expiry(console, session.expires_at)

        context = _prompt_context(mode, selection, months, years)
        assets = select(session.assets, context)
        if not assets:
            typer.echo("No memories match that selection.")
            raise typer.Exit(code=1)
        typer.echo(f"{len(assets)} memories selected.")

        _ExportRunner(
            session=session,
            history=history,
            settings=settings,
            context=context,
            batch_size=batch_size,
            stream=stream,
            all_batches=all_batches,
        ).run(assets)
