# src/sv_app/core/rich_progress.py
from __future__ import annotations

from collections.abc import Callable

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from sv_app.core.progress import Phase, ProgressReporter
from sv_app.core.session import ProgressSnapshot, SessionContext

PHASE_LABELS: dict[str, str] = {
    "parse": "Reading export",
    "geocode": "Locating",
    "download": "Downloading",
    "archive": "Zipping",
}


class RichPhaseProgressReporter(ProgressReporter):
    """
    Maps service phases to Rich tasks. Safe to call from worker threads;
    Rich serializes task updates internally.
    """

    def __init__(self, progress: Progress) -> None:
        self.progress = progress
        self._tasks: dict[str, tuple[int, int | None]] = {}

    def start(
        self, phase: Phase, total: int | None = None, text: str | None = None
    ) -> None:
        label = PHASE_LABELS.get(phase, str(phase).title())
        task_id = self.progress.add_task(label, total=total, detail=text or "")
        self._tasks[phase] = (task_id, total)

    def update(self, phase: Phase, advance: int = 1, text: str | None = None) -> None:
        if phase not in self._tasks:
            return
        task_id, _ = self._tasks[phase]
        if text is None:
            self.progress.advance(task_id, advance)
        else:
            self.progress.update(task_id, advance=advance, detail=text)

    def end(self, phase: Phase) -> None:
        if phase not in self._tasks:
            return
        task_id, total = self._tasks.pop(phase)
        if total is None:
            self.progress.update(task_id, visible=False)
        else:
            self.progress.update(task_id, completed=total, detail="")

    def follow(self, session: SessionContext) -> Callable[[], None]:
        """Mirror session snapshots into the download task's detail column."""

        def _on_snapshot(snap: ProgressSnapshot) -> None:
            if "download" not in self._tasks:
                return
            task_id, _ = self._tasks["download"]
            self.progress.update(
                task_id,
                detail=f"{snap.percent}% • {snap.failed} failed • {snap.currently_processing} active",
            )

        return session.subscribe(_on_snapshot)


def make_phase_progress(console: Console) -> tuple[Progress, RichPhaseProgressReporter]:
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TextColumn("{task.fields[detail]}"),
        console=console,
        transient=False,
    )
    return progress, RichPhaseProgressReporter(progress)
