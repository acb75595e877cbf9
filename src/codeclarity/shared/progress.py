"""Rich progress display for the four concurrent analysis tasks."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

console = Console()


class AnalysisProgress:
    """One spinner row per analysis task, plus a running token tally."""

    def __init__(self, console: Console = console) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_ids: dict[str, int] = {}
        self.tokens: dict[str, tuple[int, int]] = {}

    def __enter__(self) -> "AnalysisProgress":
        self._progress.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def start_task(self, name: str) -> None:
        """Register and start tracking a task."""
        tid = self._progress.add_task(f"[cyan]{name}[/]", total=None)
        self._task_ids[name] = tid

    def update_task(self, name: str, status: str) -> None:
        if name in self._task_ids:
            self._progress.update(
                self._task_ids[name],
                description=f"[cyan]{name}[/] — {status}",
            )

    def finish_task(self, name: str) -> None:
        if name in self._task_ids:
            self._progress.update(
                self._task_ids[name],
                description=f"[green]✓ {name}[/]",
                completed=True,
            )

    def fail_task(self, name: str, error: str) -> None:
        if name in self._task_ids:
            self._progress.update(
                self._task_ids[name],
                description=f"[red]✗ {name}: {error}[/]",
                completed=True,
            )

    def record_tokens(self, name: str, input_tokens: int, output_tokens: int) -> None:
        """Accumulate token usage reported by the model client."""
        prev_in, prev_out = self.tokens.get(name, (0, 0))
        self.tokens[name] = (prev_in + input_tokens, prev_out + output_tokens)

    @property
    def total_tokens(self) -> tuple[int, int]:
        return (
            sum(inp for inp, _ in self.tokens.values()),
            sum(out for _, out in self.tokens.values()),
        )

    def print_phase(self, label: str) -> None:
        """Print a phase header outside the progress display."""
        self._progress.console.print(Panel(f"[bold]{label}[/bold]", style="blue"))
