"""Output renderer: rich table and JSON formatters for the counter summary."""

import json
import sys
from io import StringIO

from rich.console import Console
from rich.table import Table


def render(
    snapshot: dict,
    fmt: str,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Dispatch output to the appropriate formatter.

    Args:
        snapshot: Counter snapshot from ``Counters.snapshot()``.
        fmt: Output format, ``"table"`` or ``"json"``.
        file: Writable file object for output (default: ``sys.stdout``).
        width: Explicit console width (default: auto-detect).

    Raises:
        ValueError: If *fmt* is not ``"table"`` or ``"json"``.
    """
    if fmt == "table":
        render_table(snapshot, file=file, width=width)
    elif fmt == "json":
        render_json(snapshot, file=file)
    else:
        raise ValueError(f"Unknown output format: {fmt!r}")


# ---------------------------------------------------------------------------
# Table (rich) formatter
# ---------------------------------------------------------------------------


def render_table(
    snapshot: dict,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Render replies per origin node as a ``rich`` table, plus a summary line."""
    out = file or sys.stdout
    console = Console(file=out, highlight=False, width=width)

    source = snapshot.get("source") or "—"
    probes_sent = snapshot.get("probes_sent", 0)
    replies = snapshot.get("replies_received", {})
    total = sum(replies.values())

    if replies:
        table = Table(title=f"{source} — replies by origin")
        table.add_column("Origin")
        table.add_column("Replies", justify="right")
        table.add_column("Share", justify="right")
        for origin, count in replies.items():
            table.add_row(origin, str(count), f"{count / total * 100:.0f}%")
        console.print(table)
    else:
        console.print(f"{source}: no replies received.")

    console.print(f"  {probes_sent} probes sent, {total} replies received")


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------


def render_json(snapshot: dict, *, file: object | None = None) -> None:
    """Render *snapshot* as JSON to *file*."""
    out = file or sys.stdout
    json.dump(snapshot, out, indent=2, default=str)
    out.write("\n")  # type: ignore[union-attr]


def render_to_string(snapshot: dict, fmt: str, *, width: int = 200) -> str:
    """Render to a string instead of stdout."""
    buf = StringIO()
    render(snapshot, fmt, file=buf, width=width)
    return buf.getvalue()
