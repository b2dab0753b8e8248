# src/sv_app/modules/report/service.py
from __future__ import annotations

import html
from collections.abc import Callable, Sequence
from datetime import datetime
from string import Template

from sv_app.modules.export.schemas import AssetDescriptor, Batch

_PAGE = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>$title</title>
<style>
  body { font-family: sans-serif; background: #1e1e1e; color: #fff; margin: 0; padding: 2rem; }
  .container { max-width: 800px; margin: 0 auto; background: #3a3a3a; border-radius: 1.5rem; padding: 2rem; }
  header, .stat { text-align: center; }
  header p, .stat .label, .subtitle { color: #a0a0a0; }
  .stats { display: grid; grid-template-columns: repeat(3, 1fr); gap: 1rem; margin-bottom: 2rem; }
  .stat { background: #1e1e1e; padding: 1.5rem; border-radius: 1rem; }
  .stat .value { font-size: 2.5rem; font-weight: 700; }
  .success { color: #4ade80; } .fail { color: #f87171; }
  .files { background: #1e1e1e; border-radius: 1rem; padding: 1.5rem; }
  .files h2 { color: #fffc00; margin-top: 0; }
  .files ul { list-style: none; padding: 0; margin: 0; max-height: 300px; overflow-y: auto; }
  .files li { font-family: monospace; padding: 0.5rem 0.75rem; border-bottom: 1px solid #3a3a3a; word-break: break-all; }
</style>
</head>
<body>
<div class="container">
  <header>
    <h1>$title</h1>
    <p>$batch_info</p>
  </header>
  <main>
    <div class="stats">
      <div class="stat"><div class="value">$total</div><div class="label">$label_total</div></div>
      <div class="stat"><div class="value success">$succeeded</div><div class="label">$label_succeeded</div></div>
      <div class="stat"><div class="value fail">$failed</div><div class="label">$label_failed</div></div>
    </div>
    <div class="files">
      <h2>$failed_title</h2>
      <p class="subtitle">$failed_subtitle</p>
      <ul>$failed_items</ul>
    </div>
  </main>
</div>
</body>
</html>
"""
)

# English defaults; a translate hook may replace them
_STRINGS = {
    "REPORT_TITLE": "Download Report",
    "REPORT_BATCH_INFO": "Batch {batch_num} of {total_batches} - generated {date}",
    "REPORT_STAT_TOTAL": "Total",
    "REPORT_STAT_SUCCESSFUL": "Successful",
    "REPORT_STAT_FAILED": "Failed",
    "REPORT_FAILED_MEMORIES_TITLE": "Failed files ({count})",
    "REPORT_FAILED_MEMORIES_SUBTITLE": (
        "These files could not be downloaded. Retry the batch or request a fresh export."
    ),
}


def _default_translate(key: str) -> str:
    return _STRINGS.get(key, key)


def generate_report_html(
    batch: Batch,
    succeeded: Sequence[AssetDescriptor],
    failed: Sequence[AssetDescriptor],
    translate: Callable[[str], str] = _default_translate,
    now: datetime | None = None,
) -> str:
    """Self-contained HTML page listing the files a batch failed to fetch."""
    now = now or datetime.now()
    t = lambda key: html.escape(translate(key))  # noqa: E731

    batch_info = translate("REPORT_BATCH_INFO").format(
        batch_num=batch.batch_num,
        total_batches=batch.total_batches,
        date=now.strftime("%Y-%m-%d %H:%M:%S"),
    )
    items = "".join(f"<li>{html.escape(a.filename)}</li>" for a in failed)

    return _PAGE.substitute(
        title=t("REPORT_TITLE"),
        batch_info=html.escape(batch_info),
        total=len(batch.assets),
        succeeded=len(succeeded),
        failed=len(failed),
        label_total=t("REPORT_STAT_TOTAL"),
        label_succeeded=t("REPORT_STAT_SUCCESSFUL"),
        label_failed=t("REPORT_STAT_FAILED"),
        failed_title=html.escape(
            translate("REPORT_FAILED_MEMORIES_TITLE").format(count=len(failed))
        ),
        failed_subtitle=t("REPORT_FAILED_MEMORIES_SUBTITLE"),
        failed_items=items,
    )
