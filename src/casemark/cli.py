"""Command-line tools for inspecting exported highlights.

Usage:
    casemark stats highlights.json                 # session overview
    casemark stats highlights.json --section 2     # one section only
    casemark render content.html highlights.json --viewer s1 --section 0

Highlights files hold a JSON list of highlight records in wire format
(``studentId``, ``sessionId``, ``sectionIndex`` ...).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.table import Table

from casemark import __version__, _setup_logging
from casemark.analysis.aggregate import section_stats, session_metrics
from casemark.errors import CaseMarkError
from casemark.markup.renderer import HighlightState, render_section
from casemark.models.highlight import Highlight, section_label

if TYPE_CHECKING:
    from collections.abc import Sequence

console = Console()

_HIGHLIGHTS = TypeAdapter(list[Highlight])


def load_highlights(path: Path) -> list[Highlight]:
    """Read and validate a highlights export."""
    return _HIGHLIGHTS.validate_json(path.read_bytes())


def _cmd_stats(
    path: Path,
    *,
    section: int | None = None,
    console: Console | None = None,
) -> None:
    """Print session metrics, per-section activity and top clusters."""
    con = console or globals()["console"]
    highlights = load_highlights(path)
    if section is not None:
        highlights = [h for h in highlights if h.section_index == section]

    if not highlights:
        con.print("[yellow]No highlights found.[/]")
        return

    metrics = session_metrics(highlights)
    con.print(f"\n[bold]Highlights:[/] {metrics.total_highlights}")
    con.print(f"  Students: {metrics.unique_students}")
    con.print(f"  Recent: {metrics.recent_activity}")
    con.print(f"  Sections: {metrics.sections_with_highlights}")
    con.print(f"  Avg per student: {metrics.average_highlights_per_student}")

    table = Table(title="Sections")
    table.add_column("Section", style="cyan")
    table.add_column("Highlights", justify="right")
    table.add_column("Students", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Recent", justify="right")
    table.add_column("Most popular")
    for stats in section_stats(highlights):
        table.add_row(
            stats.section_title,
            str(stats.total_highlights),
            str(stats.unique_students),
            str(stats.average_highlights_per_student),
            str(stats.recent_activity),
            stats.most_popular_text,
        )
    con.print(table)

    top = Table(title="Popular highlights")
    top.add_column("Text")
    top.add_column("Section")
    top.add_column("Students", justify="right")
    top.add_column("Count", justify="right")
    top.add_column("Heat", justify="right", style="bold")
    for cluster in metrics.popular_highlights:
        top.add_row(
            cluster.text,
            section_label(cluster.section_index, cluster.section_title),
            str(cluster.student_count),
            str(cluster.count),
            str(cluster.heat_score),
        )
    con.print(top)


def _cmd_render(
    content: Path,
    path: Path,
    *,
    viewer: str,
    section: int = 0,
    show_popular: bool = True,
    console: Console | None = None,
) -> None:
    """Print *content* with the viewer's highlights and the popular overlay."""
    con = console or globals()["console"]
    markup = content.read_text(encoding="utf-8")
    highlights = load_highlights(path)

    state = HighlightState(
        personal=[h for h in highlights if h.author_id == viewer],
        session_highlights=highlights,
        viewer_id=viewer,
        section_index=section,
        show_popular=show_popular,
    )
    con.print(render_section(markup, state), markup=False, highlight=False)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="casemark",
        description="Inspect and render case-study highlights.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output to console"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # stats
    stats_p = sub.add_parser("stats", help="Summarise highlight activity")
    stats_p.add_argument("highlights", type=Path, help="Highlights JSON file")
    stats_p.add_argument(
        "--section", type=int, default=None, help="Restrict to one section index"
    )

    # render
    render_p = sub.add_parser("render", help="Render highlights into content")
    render_p.add_argument("content", type=Path, help="Section HTML file")
    render_p.add_argument("highlights", type=Path, help="Highlights JSON file")
    render_p.add_argument("--viewer", required=True, help="Viewing student's id")
    render_p.add_argument(
        "--section", type=int, default=0, help="Section index (default: 0)"
    )
    render_p.add_argument(
        "--no-popular",
        action="store_true",
        help="Hide the popular-with-classmates overlay",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = _build_parser().parse_args(argv)
    _setup_logging(console_level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        match args.command:
            case "stats":
                _cmd_stats(args.highlights, section=args.section)
            case "render":
                _cmd_render(
                    args.content,
                    args.highlights,
                    viewer=args.viewer,
                    section=args.section,
                    show_popular=not args.no_popular,
                )
    except (CaseMarkError, OSError, ValidationError) as exc:
        console.print(f"[red]Error:[/] {exc}")
        sys.exit(1)
