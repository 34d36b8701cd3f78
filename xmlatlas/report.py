"""Summaries of a finished grouping run."""

from dataclasses import dataclass
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .grouping import ProcessingResult


@dataclass(frozen=True)
class SummaryRow:
    rank: int
    count: int
    skeleton_hash: str
    signature: str


def truncate_signature(text: str, width: int = 80) -> str:
    if len(text) > width:
        return text[:width] + "..."
    return text


def summarize(result: ProcessingResult, top: Optional[int] = None, width: int = 80) -> list[SummaryRow]:
    """Rank groups by member count, largest first; ties keep group order."""
    ranked = sorted(result.groups, key=lambda g: g.count, reverse=True)
    if top is not None:
        ranked = ranked[:top]
    return [
        SummaryRow(
            rank=i,
            count=g.count,
            skeleton_hash=g.skeleton.hex_hash,
            signature=truncate_signature(g.signature(), width),
        )
        for i, g in enumerate(ranked, 1)
    ]


def print_summary(result: ProcessingResult, console: Console, top: int = 5, width: int = 80):
    """Print totals and the most common structures."""
    console.print("\n[bold]Processing Summary[/]")
    console.print(f"  Total files:             {result.total_documents}")
    console.print(f"  Processed successfully:  {result.processed_documents}")
    if result.failed_documents:
        console.print(f"  [red]Failed:                  {result.failed_documents}[/]")
    console.print(f"  Unique structures found: {result.unique_structures}")

    rows = summarize(result, top=top, width=width)
    if not rows:
        return

    table = Table(title=f"Top {len(rows)} most common structures", show_lines=True)
    table.add_column("#", style="dim", width=4)
    table.add_column("Files", justify="right")
    table.add_column("Hash", style="cyan", no_wrap=True)
    table.add_column("Structure")
    for row in rows:
        table.add_row(str(row.rank), f"{row.count:,}", row.skeleton_hash, Text(row.signature))
    console.print(table)

    if result.failures:
        console.print("\n[bold red]Failed documents[/]")
        for failure in result.failures[:top]:
            console.print(f"  {failure.document_id}: {failure.message}", markup=False)
        if len(result.failures) > top:
            console.print(f"  [dim]...and {len(result.failures) - top} more[/]")
