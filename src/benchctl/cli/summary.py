# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""End-of-run summary collected by the orchestrator and printed with Rich."""

from dataclasses import dataclass, field

from rich.console import Console
from rich.table import Table

from benchctl.core.errors import BenchctlError
from benchctl.core.phases import RunPhase
from benchctl.core.processes import GroupResult
from benchctl.core.readiness import ReadinessEvent


@dataclass
class RunSummary:
    """What happened in each phase of a run."""

    phase: RunPhase = RunPhase.IDLE
    ready: list[ReadinessEvent] = field(default_factory=list)
    drivers: GroupResult | None = None
    transfers: GroupResult | None = None
    report_exit_code: int | None = None
    stop_failures: list[str] = field(default_factory=list)
    # Non-fatal failures aggregated after the drivers started
    errors: list[BenchctlError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.phase is RunPhase.DONE and not self.errors


def _group_cell(result: GroupResult | None) -> tuple[str, str]:
    if result is None:
        return "[dim]skipped[/]", ""
    total = len(result.succeeded) + len(result.failed)
    if result.ok:
        return f"[green]{total}/{total} ok[/]", ""
    failed = ", ".join(f"{name} ({code})" for name, code in result.failed.items())
    return f"[red]{len(result.succeeded)}/{total} ok[/]", failed


def print_run_summary(summary: RunSummary, console: Console | None = None) -> None:
    """Render the summary as a table."""
    console = console or Console(stderr=True)

    table = Table(title="Run Summary", show_header=True, header_style="bold cyan")
    table.add_column("Stage", style="bold")
    table.add_column("Result")
    table.add_column("Details", style="dim")

    table.add_row("Servers ready", f"{len(summary.ready)}", ", ".join(e.host for e in summary.ready))
    table.add_row("Drivers", *_group_cell(summary.drivers))
    table.add_row("Result transfers", *_group_cell(summary.transfers))

    if summary.report_exit_code is None:
        table.add_row("Report", "[dim]skipped[/]", "")
    elif summary.report_exit_code == 0:
        table.add_row("Report", "[green]ok[/]", "")
    else:
        table.add_row("Report", "[red]failed[/]", f"exit code {summary.report_exit_code}")

    if summary.stop_failures:
        table.add_row("Stop servers", "[red]failed[/]", ", ".join(summary.stop_failures))

    style = "green" if summary.phase is RunPhase.DONE else "red"
    table.add_row("Final phase", f"[{style}]{summary.phase.value}[/]", f"{len(summary.errors)} errors")

    console.print(table)
