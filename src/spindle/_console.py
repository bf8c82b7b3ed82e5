from __future__ import annotations

from typing import IO

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from spindle._schema import InitResult, Outcome, RunSummary, TestFinished

ERROR_GLYPH = "✖"

_OUTCOME_STYLES: dict[Outcome, str] = {
    Outcome.PASSED: "green",
    Outcome.FAILED: "red bold",
    Outcome.SKIPPED: "yellow",
    Outcome.ERROR: "red bold",
    Outcome.XFAILED: "yellow",
    Outcome.XPASSED: "yellow bold",
}


def output_console(file: IO[str] | None = None) -> Console:
    """Console for parser-generated text, which must reach the stream verbatim."""
    return Console(file=file, markup=False, highlight=False, emoji=False, soft_wrap=True)


def error_console(file: IO[str] | None = None) -> Console:
    return Console(file=file, stderr=file is None, highlight=False, soft_wrap=True)


def print_error(console: Console, message: str) -> None:
    """Print the single ``✖ ERROR: <message>`` line for a usage failure."""
    console.print()
    console.print(
        Text.assemble(
            (ERROR_GLYPH, "red"),
            " ",
            ("ERROR:", "red"),
            " ",
            message,
        )
    )


def _make_summary_table(summary: RunSummary) -> Table:
    table = Table(title="Test Results Summary", show_edge=False)
    table.add_column("Outcome", style="bold")
    table.add_column("Count", justify="right")

    for outcome in Outcome:
        count = summary.counts.get(outcome, 0)
        if count == 0:
            continue
        style = _OUTCOME_STYLES.get(outcome, "")
        table.add_row(
            Text(outcome.value, style=style),
            Text(str(count), style=style),
        )

    table.add_section()
    table.add_row("Total", str(summary.total))
    table.add_row("Duration", f"{summary.duration:.2f}s")
    return table


def _make_failure_panels(results: list[TestFinished]) -> list[Panel]:
    return [
        Panel(
            Text(r.longrepr),
            title=Text(r.nodeid, style="red bold"),
            border_style="red",
            expand=True,
        )
        for r in results
        if r.outcome in (Outcome.FAILED, Outcome.ERROR) and r.longrepr
    ]


def print_results(
    summary: RunSummary, results: list[TestFinished], console: Console | None = None
) -> None:
    """Print failure details and the summary table, stderr by default."""
    console = console or Console(stderr=True)

    if not results:
        console.print("[yellow]No test results collected.[/yellow]")
        return

    # Print failure details first.
    for panel in _make_failure_panels(results):
        console.print(panel)
        console.print()

    console.print(_make_summary_table(summary))


def print_init(result: InitResult, console: Console | None = None) -> None:
    console = console or Console()
    for path in result.created:
        console.print(Text.assemble(("created", "green"), " ", str(path)))
    for path in result.skipped:
        console.print(Text.assemble(("exists, skipped", "yellow"), " ", str(path)))
    console.print(Text.assemble("spindle initialized in ", (str(result.target), "bold")))
