# src/reporting/reporter.py — v1
"""Progress and summary reporting for provisioning runs.

The runner only talks to BaseReporter. RichReporter renders to a terminal;
RecordingReporter keeps every event in memory for library callers and tests.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from rich.align import Align
from rich.box import ROUNDED
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from provisioner.core.models import RunSummary, StepResult

if TYPE_CHECKING:
    from provisioner.pipeline.plugin_kit.base_step import BaseStep

logger = logging.getLogger(__name__)

_ICONS = {
    "succeeded": ("✓", "green"),
    "skipped": ("↷", "cyan"),
    "failed": ("✗", "red"),
    "pending": ("?", "yellow"),
    "running": ("⋯", "yellow"),
}


class BaseReporter(ABC):
    """Receives run lifecycle events from the runner."""

    def on_run_start(self, run_id: str, total: int, resumed: bool) -> None:
        """Called once before the first step."""

    @abstractmethod
    def on_step_start(self, step: BaseStep, index: int, total: int) -> None:
        """Called before a step's precondition is evaluated."""

    @abstractmethod
    def on_step_result(self, step: BaseStep, result: StepResult) -> None:
        """Called after a step reaches a terminal status."""

    @abstractmethod
    def on_run_complete(self, summary: RunSummary) -> None:
        """Called once with the final summary."""


class NullReporter(BaseReporter):
    def on_step_start(self, step: BaseStep, index: int, total: int) -> None:
        pass

    def on_step_result(self, step: BaseStep, result: StepResult) -> None:
        pass

    def on_run_complete(self, summary: RunSummary) -> None:
        pass


@dataclass
class RecordingReporter(BaseReporter):
    """Keeps events as (name, payload) tuples."""

    events: list[tuple[str, Any]] = field(default_factory=list)
    summary: RunSummary | None = None

    def on_run_start(self, run_id: str, total: int, resumed: bool) -> None:
        self.events.append(("run_start", {"run_id": run_id, "total": total, "resumed": resumed}))

    def on_step_start(self, step: BaseStep, index: int, total: int) -> None:
        self.events.append(("step_start", step.id))

    def on_step_result(self, step: BaseStep, result: StepResult) -> None:
        self.events.append(("step_result", result.model_copy(deep=True)))

    def on_run_complete(self, summary: RunSummary) -> None:
        self.summary = summary
        self.events.append(("run_complete", summary))

    @property
    def started_steps(self) -> list[str]:
        return [payload for name, payload in self.events if name == "step_start"]

    @property
    def results(self) -> list[StepResult]:
        return [payload for name, payload in self.events if name == "step_result"]

    def status_of(self, step_id: str) -> str | None:
        """Last reported status for a step."""
        for result in reversed(self.results):
            if result.step_id == step_id:
                return result.status
        return None


class RichReporter(BaseReporter):
    """Terminal reporter with banners, per-step lines and a summary table.

    Free text arrives already redacted by the runner; it is only escaped here.

    Args:
        console: rich Console to print to.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._labels: dict[str, str] = {}

    def _plain(self, text: str) -> str:
        return escape(text)

    def on_run_start(self, run_id: str, total: int, resumed: bool) -> None:
        verb = "Resuming" if resumed else "Starting"
        self._console.print(
            Panel(
                Text(f"{verb} run {run_id} ({total} steps)", justify="center"),
                title="[bold]Server provisioning[/bold]",
                box=ROUNDED,
                border_style="blue",
            )
        )

    def on_step_start(self, step: BaseStep, index: int, total: int) -> None:
        self._labels[step.id] = step.label
        self._console.rule(f"[bold blue][{index}/{total}] {step.label}[/bold blue]")

    def on_step_result(self, step: BaseStep, result: StepResult) -> None:
        icon, style = _ICONS.get(result.status, ("?", "white"))
        detail = " (already in place)" if result.status == "skipped" else ""
        if result.deferred:
            detail = " (deferred)"
        self._console.print(f"[{style}]{icon} {step.label}: {result.status}{detail}[/{style}]")
        for notice in result.notices:
            self._console.print(f"  [yellow]! {self._plain(notice)}[/yellow]")
        if result.error is not None:
            self._console.print(f"  [red]{result.error.kind}: {self._plain(result.error.message)}[/red]")
            if result.error.output:
                self._console.print(Text(result.error.output, style="dim"))

    def on_run_complete(self, summary: RunSummary) -> None:
        table = Table(
            show_header=True,
            header_style="bold",
            box=ROUNDED,
            title="Provisioning summary",
            expand=True,
        )
        table.add_column("Step", style="bold")
        table.add_column("Status", justify="center")

        rows = (
            [(s, "succeeded") for s in summary.succeeded]
            + [(s, "skipped") for s in summary.skipped]
            + [(s, "failed") for s in summary.failed]
            + [(s, "pending") for s in summary.blocked]
        )
        for step_id, status in rows:
            icon, style = _ICONS[status]
            shown = "blocked" if status == "pending" else status
            if step_id in summary.deferred:
                shown = "deferred"
            table.add_row(self._labels.get(step_id, step_id), f"[{style}]{icon} {shown.upper()}[/]")

        headline = _headline(summary)
        self._console.print(Panel(Group(table, Align.center(headline)), box=ROUNDED))

        if summary.error is not None:
            self._console.print(f"[red bold]Failed step:[/] {summary.failed_step}")
            self._console.print(f"[red]{summary.error.kind}: {self._plain(summary.error.message)}[/red]")
            if summary.error.remedy:
                self._console.print(f"[yellow]Try:[/] {self._plain(summary.error.remedy)}")
        if summary.resume_command:
            self._console.print(f"[bold]Resume with:[/] {summary.resume_command}")
        for notice in summary.notices:
            self._console.print(f"[yellow]! {self._plain(notice)}[/yellow]")
        if summary.next_actions:
            self._console.print("[bold]Next steps:[/bold]")
            for number, action in enumerate(summary.next_actions, start=1):
                self._console.print(f"  {number}. {self._plain(action)}")


def _headline(summary: RunSummary) -> Text:
    text = Text()
    if summary.status == "completed":
        label = "COMPLETED (degraded)" if summary.is_degraded else "COMPLETED"
        text.append(label, style="bold yellow" if summary.is_degraded else "bold green")
    else:
        text.append(summary.status.upper(), style="bold red")
    text.append(
        f"  {len(summary.succeeded)} succeeded | {len(summary.skipped)} skipped | "
        f"{len(summary.failed)} failed | {len(summary.blocked)} blocked"
    )
    return text
