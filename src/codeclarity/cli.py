"""Typer CLI — ``codeclarity analyze``, ``render``, ``validate`` and ``languages``."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from openai import OpenAIError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from codeclarity.config import load_config
from codeclarity.errors import AnalysisError
from codeclarity.schemas.analysis import AnalysisReport
from codeclarity.schemas.config import AppConfig
from codeclarity.schemas.contracts import Language, RefactoringLanguage

# Load .env file from project root (if it exists)
load_dotenv()

app = typer.Typer(
    name="codeclarity",
    help="CodeClarity — documentation, refactorings, complexity and unit tests for a code snippet.",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every HTTP request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_or_exit(config: Path | None) -> AppConfig:
    if config is None:
        return AppConfig()
    try:
        return load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


@app.command()
def analyze(
    language: Language = typer.Option(..., "--language", "-l", help="Language of the snippet."),
    file: Path = typer.Option(None, "--file", "-f", help="File containing the code to analyze (default: built-in sample)."),
    config: Path = typer.Option(None, "--config", "-c", help="Path to codeclarity.yml"),
    output: Path = typer.Option(None, "--output", "-o", help="Directory to write reports into."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Run with canned responses (no API calls)."),
) -> None:
    """Run all four analyses on a code snippet.

    Examples:

        codeclarity analyze --language Python --file greet.py

        codeclarity analyze -l C++ -f main.cpp --output ./output
    """
    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    if file is not None:
        if not file.is_file():
            console.print(f"[red]File not found:[/] {file}")
            raise typer.Exit(code=1)
        try:
            code = file.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as exc:
            console.print(f"[red]Could not read {file}:[/] {escape(str(exc))}")
            raise typer.Exit(code=1)
    else:
        from codeclarity.shared.samples import SAMPLE_CODE

        code = SAMPLE_CODE[language]
        console.print(f"[dim]No --file given, analyzing the built-in {language.value} sample.[/]\n")

    if dry_run:
        console.print("[yellow]DRY-RUN mode — no API calls will be made.[/]\n")

    try:
        report = asyncio.run(_run_analysis(code, language, cfg, dry_run=dry_run))
    except AnalysisError as exc:
        task = exc.task.label if exc.task else "analysis"
        console.print(f"[red]Analysis failed[/] ({task}, {exc.kind}): {escape(exc.message)}")
        raise typer.Exit(code=1)
    except OpenAIError as exc:
        console.print(f"[red]Model client error:[/] {escape(str(exc))}")
        raise typer.Exit(code=1)

    _print_report(report)

    out_dir = output or (Path(cfg.output_directory) if config else None)
    if out_dir is not None:
        for path in _write_outputs(report, out_dir, cfg.formats):
            console.print(f"[green]Written:[/] {path}")


async def _run_analysis(
    code: str, language: Language, cfg: AppConfig, *, dry_run: bool = False,
) -> AnalysisReport:
    """Build the client, run the orchestrator under a progress display."""
    from codeclarity.flows.orchestrator import Orchestrator
    from codeclarity.shared.progress import AnalysisProgress

    if dry_run:
        from codeclarity.shared.model_client import DryRunClient
        client = DryRunClient()
    else:
        from codeclarity.shared.model_client import ModelClient
        client = ModelClient(
            model=cfg.model, max_tokens=cfg.max_tokens, timeout=cfg.request_timeout,
        )

    try:
        with AnalysisProgress(console) as progress:
            progress.print_phase(f"Analyzing {len(code.splitlines())} lines of {language.value}")
            result = await Orchestrator(client, progress=progress).run(code, language)
    finally:
        await client.close()

    tokens_in, tokens_out = progress.total_tokens
    if tokens_in or tokens_out:
        console.print(f"[dim]Tokens: {tokens_in} in / {tokens_out} out[/]")

    return AnalysisReport(language=language, code=code, model=client.model, result=result)


def _print_report(report: AnalysisReport) -> None:
    result = report.result
    console.print(Panel(Text(result.documentation), title="Documentation", title_align="left"))
    suggestions = Text("\n").join(Text(f"• {s}") for s in result.refactorings) or Text("(none)")
    console.print(Panel(suggestions, title="Refactoring Suggestions", title_align="left"))
    console.print(Panel(Text(result.complexity), title="Complexity", title_align="left"))
    console.print(Panel(Text(result.unit_tests), title="Unit Tests", title_align="left"))


def _write_outputs(report: AnalysisReport, out_dir: Path, formats: list[str]) -> list[Path]:
    """Write report.json plus the configured report formats; return the paths written."""
    from codeclarity.output.html import render_html_report
    from codeclarity.output.markdown import render_markdown_report

    out_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    json_path = out_dir / "report.json"
    json_path.write_text(report.model_dump_json(by_alias=True, indent=2))
    written.append(json_path)

    if "markdown" in formats:
        md_path = out_dir / "analysis-report.md"
        md_path.write_text(render_markdown_report(report))
        written.append(md_path)
    if "html" in formats:
        html_path = out_dir / "analysis-report.html"
        html_path.write_text(render_html_report(report))
        written.append(html_path)
    return written


@app.command()
def render(
    output: Path = typer.Option(..., "--output", "-o", help="Output directory from a previous run (must contain report.json)."),
    config: Path = typer.Option(None, "--config", "-c", help="Path to codeclarity.yml (for report formats)."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Re-render the Markdown and HTML reports from a saved report.json (no API calls)."""
    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    report_path = output / "report.json"
    if not report_path.exists():
        console.print(f"[red]No report.json found in {output}[/]")
        console.print("Run [bold]codeclarity analyze --output[/] first — it saves report.json.")
        raise typer.Exit(code=1)

    console.print(f"[bold]Loading report from:[/] {report_path}")
    report = AnalysisReport.model_validate_json(report_path.read_text())
    for path in _write_outputs(report, output, cfg.formats):
        console.print(f"[green]Written:[/] {path}")


@app.command()
def validate(
    config: Path = typer.Option(..., "--config", "-c", help="Path to codeclarity.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Validate a configuration file without running an analysis."""
    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    console.print("[green]Config is valid![/]\n")
    console.print(f"  Model:       {cfg.model}")
    console.print(f"  Max tokens:  {cfg.max_tokens}")
    console.print(f"  Timeout:     {cfg.request_timeout:g}s")
    console.print(f"  Output dir:  {cfg.output_directory}")
    console.print(f"  Formats:     {', '.join(cfg.formats)}")


@app.command()
def languages() -> None:
    """List the supported languages."""
    refactoring = {lang.value for lang in RefactoringLanguage}
    for lang in Language:
        note = "" if lang.value in refactoring else "  [dim](sent to refactoring as JS)[/]"
        console.print(f"{lang.value}{note}")
