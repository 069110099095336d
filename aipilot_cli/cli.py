"""Typer-based CLI for AI Pilot dependency and change-impact analysis."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config
from .config_manager import AnalysisConfig, load_analysis_config, save_analysis_config
from .context_finder import ContextFinder
from .diff_analyzer import GitDiffAnalyzer
from .errors import AIPilotError
from .hydrator import TaskHydrator
from .models import ImpactAnalysis, ProjectMap, to_dict
from .parser import get_source_unit
from .resolver import ModuleResolver
from .scanner import ProjectScanner, load_project_map, save_project_map
from .tracer import DependencyTracer

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    help="AI Pilot: dependency tracing and change-impact analysis for JS/TS projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"AI Pilot v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output to stderr."),
):
    """AI Pilot: map imports, dependents and staged changes onto named code."""
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PathOption = typer.Option(
    Path("."), "--path", "-p", exists=True, file_okay=False, help="Project root."
)
JsonOption = typer.Option(False, "--json", help="Print the result as JSON.")


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(code=1)


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _load_or_scan(root: Path, scanner: ProjectScanner) -> ProjectMap:
    saved = root / config.CONTEXT_DIR / config.PROJECT_MAP_FILE
    if saved.exists():
        try:
            return load_project_map(saved)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable project map %s: %s", saved, exc)
    return scanner.generate_project_map()


def _print_impact(impact: ImpactAnalysis) -> None:
    console.print(f"\n[bold cyan]{impact.target_relative_path}[/bold cyan]")

    if impact.exports:
        table = Table(title="Exports", show_header=True)
        table.add_column("Name", style="cyan")
        table.add_column("Kind")
        table.add_column("Used externally")
        for symbol in impact.exports:
            table.add_row(symbol.name, symbol.kind, "yes" if symbol.used_externally else "[dim]no[/dim]")
        console.print(table)

    table = Table(title=f"Dependencies ({len(impact.dependencies)})", show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Role")
    table.add_column("Imports")
    for dep in impact.dependencies:
        table.add_row(dep.relative_path, dep.role.value, ", ".join(dep.imported_names))
    console.print(table)

    table = Table(title=f"Dependents ({len(impact.dependents)})", show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Imports")
    table.add_column("Uses", justify="right")
    for record in impact.dependents:
        table.add_row(record.relative_path, ", ".join(record.imported_names), str(record.usage_count))
    console.print(table)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command("scan")
def scan(
    path: Path = PathOption,
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help=f"Directory for {config.PROJECT_MAP_FILE} (default: <path>/{config.CONTEXT_DIR})."
    ),
    as_json: bool = JsonOption,
):
    """Inventory the project's source files and save a project map."""
    root = path.resolve()
    settings = load_analysis_config(root)
    scanner = ProjectScanner(root, resolver=ModuleResolver(root, settings.aliases), ignore=settings.ignore)

    project_map = scanner.generate_project_map()
    target = save_project_map(project_map, output or root / config.CONTEXT_DIR)

    if as_json:
        _echo_json(to_dict(project_map))
        return

    table = Table(title=f"{project_map.project_name}: {project_map.total_files} files", show_header=True)
    table.add_column("Role", style="cyan")
    table.add_column("Files", justify="right")
    for role, count in project_map.files_by_role.items():
        if count:
            table.add_row(role, str(count))
    console.print(table)
    console.print(f"[green]Project map saved to {target}[/green]")


@app.command("trace")
def trace(
    file: Path = typer.Argument(..., help="File to analyze, absolute or relative to --path."),
    path: Path = PathOption,
    depth: Optional[int] = typer.Option(None, "--depth", "-d", min=0, help="Forward traversal depth."),
    as_json: bool = JsonOption,
):
    """Show what FILE depends on and which files depend on it."""
    root = path.resolve()
    settings = load_analysis_config(root)
    tracer = DependencyTracer(
        root,
        max_depth=settings.max_depth if depth is None else depth,
        aliases=settings.aliases,
        ignore=settings.ignore,
    )
    try:
        impact = tracer.analyze_impact(file)
    except AIPilotError as exc:
        _fail(exc)

    if as_json:
        _echo_json(to_dict(impact))
    else:
        _print_impact(impact)


@app.command("diff")
def diff(
    path: Path = PathOption,
    unstaged: bool = typer.Option(False, "--unstaged", help="Inspect the working tree instead of the index."),
    impact: bool = typer.Option(True, "--impact/--no-impact", help="Trace dependents of each changed file."),
    as_json: bool = JsonOption,
):
    """Map staged changes onto the functions, methods and classes they touch."""
    root = path.resolve()
    settings = load_analysis_config(root)
    try:
        analysis = GitDiffAnalyzer(root, staged=not unstaged).analyze_staged_changes()
    except AIPilotError as exc:
        _fail(exc)

    impacts: Dict[str, ImpactAnalysis] = {}
    if impact:
        tracer = DependencyTracer(
            root, max_depth=settings.max_depth, aliases=settings.aliases, ignore=settings.ignore
        )
        for change in analysis.file_changes:
            if change.status == "deleted":
                continue
            try:
                impacts[change.relative_path] = tracer.analyze_impact(change.file_path)
            except AIPilotError as exc:
                logger.warning("Impact analysis failed for %s: %s", change.relative_path, exc)

    if as_json:
        data = to_dict(analysis)
        data["impact"] = {rel: to_dict(result) for rel, result in impacts.items()}
        _echo_json(data)
        return

    if analysis.total_files == 0:
        console.print("[yellow]No changes found.[/yellow] Stage files with 'git add' first.")
        return

    summary = analysis.summary
    console.print(
        f"[green]{analysis.total_files} changed files[/green] "
        f"(added {summary['added']}, modified {summary['modified']}, deleted {summary['deleted']})"
    )
    table = Table(show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Status")
    table.add_column("Block")
    table.add_column("Lines")
    table.add_column("Dependents", justify="right")
    for change in analysis.file_changes:
        dependents = impacts.get(change.relative_path)
        dep_count = str(len(dependents.dependents)) if dependents else "-"
        if not change.affected_blocks:
            table.add_row(change.relative_path, change.status, "[dim]-[/dim]", "", dep_count)
            continue
        for block in change.affected_blocks:
            table.add_row(
                change.relative_path,
                change.status,
                f"{block.kind.value} {block.name}",
                ", ".join(str(n) for n in block.changed_lines),
                dep_count,
            )
    console.print(table)


def _print_settings(settings: AnalysisConfig, title: str) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("max_depth", str(settings.max_depth))
    table.add_row("aliases", ", ".join(f"{k} -> {v}" for k, v in settings.aliases.items()) or "[dim]none[/dim]")
    table.add_row("ignore", ", ".join(settings.ignore))
    console.print(table)


@app.command("config")
def configure(
    path: Path = PathOption,
    depth: Optional[int] = typer.Option(None, "--depth", "-d", min=0, help="Default forward traversal depth."),
    alias: Optional[List[str]] = typer.Option(
        None, "--alias", "-a", help="Import alias as PREFIX=TARGET, e.g. '~/=src/'. Repeatable."
    ),
    ignore: Optional[List[str]] = typer.Option(
        None, "--ignore", "-i", help="Extra file-name glob to skip. Repeatable."
    ),
):
    """Show effective settings, or update the global [analysis] config."""
    if depth is None and not alias and not ignore:
        root = path.resolve()
        _print_settings(load_analysis_config(root), f"Effective settings for {root.name}")
        return

    settings = load_analysis_config()
    if depth is not None:
        settings.max_depth = depth
    for entry in alias or []:
        prefix, sep, target = entry.partition("=")
        if not sep or not prefix or not target:
            _fail(AIPilotError(f"Invalid alias {entry!r}, expected PREFIX=TARGET"))
        settings.aliases[prefix] = target
    for pattern in ignore or []:
        if pattern not in settings.ignore:
            settings.ignore.append(pattern)

    if not save_analysis_config(settings):
        console.print("[red]Failed to save configuration![/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Configuration saved to {config.CONFIG_FILE}[/green]")
    _print_settings(settings, "Global settings")


@app.command("task")
def task(
    request: str = typer.Argument(..., help="Free-text description of the change you want to make."),
    path: Path = PathOption,
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Maximum number of files to show."),
    as_json: bool = JsonOption,
):
    """Rank project files by relevance to REQUEST."""
    root = path.resolve()
    settings = load_analysis_config(root)
    scanner = ProjectScanner(root, resolver=ModuleResolver(root, settings.aliases), ignore=settings.ignore)
    finder = ContextFinder(root, aliases=settings.aliases)
    finder.set_project_map(_load_or_scan(root, scanner))

    keywords = finder.extract_keywords(request)
    if not keywords:
        _fail(AIPilotError("No keywords found in the request"))
    try:
        matches = finder.find_matching_files(keywords)[:limit]
    except AIPilotError as exc:
        _fail(exc)

    if as_json:
        _echo_json({"keywords": keywords, "matches": to_dict(matches)})
        return

    console.print(f"Keywords: [cyan]{', '.join(keywords)}[/cyan]")
    if not matches:
        console.print("[yellow]No matching files.[/yellow]")
        return
    table = Table(show_header=True)
    table.add_column("Score", justify="right", style="bold")
    table.add_column("File", style="cyan")
    table.add_column("Role")
    table.add_column("Matched")
    for match in matches:
        table.add_row(
            str(match.score),
            match.file.relative_path,
            match.file.role.value,
            ", ".join(match.matched_keywords),
        )
    console.print(table)


@app.command("todo")
def todo(
    file: Path = typer.Argument(..., help="Source file to scan for markers."),
    path: Path = PathOption,
    ai_only: bool = typer.Option(False, "--ai-only", help="Only report @AI-TODO tasks."),
    as_json: bool = JsonOption,
):
    """List TODO/FIXME/HACK/NOTE comments and @AI-TODO tasks in FILE."""
    root = path.resolve()
    target = file if file.is_absolute() else root / file
    if not target.is_file():
        _fail(AIPilotError(f"File not found: {file}"))
    try:
        unit = get_source_unit(target)
    except AIPilotError as exc:
        _fail(exc)

    hydrator = TaskHydrator()
    markers = [] if ai_only else hydrator.extract_tasks(unit)
    ai_tasks = hydrator.extract_ai_tasks(unit)

    if as_json:
        _echo_json({"markers": to_dict(markers), "ai_tasks": to_dict(ai_tasks)})
        return

    for marker in markers:
        console.print(f"[yellow]{marker.kind}[/yellow] line {marker.line}: {marker.text}")
    for context in ai_tasks:
        block = context.code_block
        console.print(
            f"[bold magenta]{context.task_id}[/bold magenta] line {context.line}: {context.description}\n"
            f"  -> {block.kind.value} [cyan]{block.name}[/cyan] (lines {block.start_line}-{block.end_line})"
        )
        extras: List[str] = [t.name for t in context.related_types] + [i.name for i in context.related_interfaces]
        if extras:
            console.print(f"     types: {', '.join(extras)}")
        if context.referenced_functions:
            console.print(f"     calls: {', '.join(f.name for f in context.referenced_functions)}")
    if not markers and not ai_tasks:
        console.print("[dim]No markers found.[/dim]")


if __name__ == "__main__":
    app()
