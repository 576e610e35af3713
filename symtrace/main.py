"""symtrace CLI - who uses each top-level declaration of a JS/TS project."""

from pathlib import Path
import json
import time
from typing import Dict, List, Optional, Tuple
import typer
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.markup import escape

from symtrace.utils.safe_console import SafeConsole
from symtrace.utils.logger import AnalysisLog

from symtrace.config import get_config, __version__
from symtrace.analyzer.inventory import discover_source_files
from symtrace.analyzer.indexer import Indices, ProjectIndexer
from symtrace.analyzer.scope_resolver import ScopeResolver
from symtrace.analyzer.dependency_tracer import DependencyTracer, TracedDeclaration
from symtrace.analyzer.graph_builder import build_file_graph, build_symbol_graph, export_graph_json

app = typer.Typer(
    name="symtrace",
    help="Symbol dependency tracing for JavaScript/TypeScript projects",
    add_completion=False
)
# Use SafeConsole for Windows Unicode compatibility
console = SafeConsole()


def _require_directory(path: Path, label: str = "Source path"):
    if not path.is_dir():
        console.print(f"[bold red]Error:[/bold red] {label} is not a directory: {escape(str(path))}")
        raise typer.Exit(1)


def analyze_project(src_path: Path, workers: Optional[int] = None, verbose: bool = False,
                    quiet: bool = False) -> Tuple[ProjectIndexer, Indices, DependencyTracer]:
    """Discover, index and prepare tracing for a project.

    Args:
        src_path: Source root
        workers: Thread count for indexing and tracing (None = configuration)
        verbose: Echo warnings as they are recorded
        quiet: Suppress progress output (machine-readable modes)

    Returns:
        (indexer, indices, tracer)
    """
    config = get_config()
    log = AnalysisLog(console=console, verbose=(verbose or config.verbose) and not quiet)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
        disable=quiet,
    ) as progress:
        task = progress.add_task("Discovering source files...", total=None)
        files = discover_source_files(src_path, include_tests=config.include_tests)

        progress.update(task, description=f"Indexing {len(files)} files...")
        indexer = ProjectIndexer(src_path, log=log)
        indices = indexer.index_all(files, workers=workers)

        progress.update(task, description="Preparing tracer...")
        tracer = DependencyTracer(
            indices, indexer.resolver, ScopeResolver(config.parse_cache_size)
        )

    return indexer, indices, tracer


def _print_declarations(indices: Indices, traced: List[TracedDeclaration], title: str):
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Declaration", style="cyan")
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Internal", justify="right", style="green")
    table.add_column("External", justify="right", style="green")
    table.add_column("Consumer files")

    for item in traced:
        consumer_files = sorted({
            indices.project[i].relative_path for i in item.result.external
        })
        table.add_row(
            escape(", ".join(item.node.declared_names) or item.name),
            escape(item.node.relative_path),
            str(item.node.span.start_line),
            str(len(item.result.internal)),
            str(len(item.result.external)),
            escape(", ".join(consumer_files)) if consumer_files else "[dim]-[/dim]",
        )

    console.print(table)


def _print_warnings(log: AnalysisLog):
    if not log.entries:
        return
    console.print(f"\n[bold yellow]Warnings ({log.count()}):[/bold yellow]")
    for entry in log.entries:
        console.print(f"  {escape(entry.format())}", highlight=False)


@app.command()
def trace(
    src_path: str = typer.Argument(".", help="Source root of the JS/TS project"),
    as_json: bool = typer.Option(False, "--json", help="Print the summary and per-declaration results as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print warnings as they happen"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Threads for indexing and tracing"),
    show_all: bool = typer.Option(False, "--all", help="List every declaration, not only orphans"),
):
    """Trace internal and external consumers of every top-level declaration."""
    src = Path(src_path).resolve()
    _require_directory(src)

    start = time.time()
    indexer, indices, tracer = analyze_project(src, workers, verbose, quiet=as_json)
    traced = tracer.trace_all(workers=workers)
    summary = tracer.summarize(traced)

    if as_json:
        payload = {
            'version': __version__,
            'summary': summary.to_dict(),
            'declarations': tracer.to_dict(traced),
            'files': {i: indices.project[i].relative_path for t in traced.values()
                      for i in (*t.result.internal, *t.result.external)},
            'warnings': [entry.format() for entry in indexer.log.entries],
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    console.print(f"[bold blue]Tracing project:[/bold blue] {escape(str(src))}\n")

    rows = list(traced.values()) if show_all else [t for t in traced.values() if t.result.is_orphaned]
    if rows:
        _print_declarations(indices, rows, "Declarations" if show_all else "Orphaned Declarations")
    else:
        console.print("[bold green]No orphaned declarations found![/bold green]")

    console.print(f"\n[bold yellow]Summary:[/bold yellow]")
    console.print(f"  Total declarations: {summary.total_declarations}")
    console.print(f"  With internal consumers: {summary.with_internal}")
    console.print(f"  With external consumers: {summary.with_external}")
    console.print(f"  Orphaned: {summary.orphaned}")
    if summary.skipped_files:
        console.print(f"  Skipped files: {summary.skipped_files}")
    if summary.approximate_checks:
        console.print(f"  [dim]Approximate reference checks: {summary.approximate_checks}[/dim]")
    console.print(f"[dim]Done in {time.time() - start:.2f}s[/dim]")

    _print_warnings(indexer.log)


@app.command("trace-file")
def trace_file(
    file_path: str = typer.Argument(..., help="File whose declarations are traced"),
    src_path: str = typer.Option(".", "--src", "-s", help="Source root of the JS/TS project"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
):
    """Trace the declarations of a single file against the whole project."""
    src = Path(src_path).resolve()
    _require_directory(src)
    target = Path(file_path).resolve()
    if not target.is_file():
        console.print(f"[bold red]Error:[/bold red] File does not exist: {escape(str(target))}")
        raise typer.Exit(1)

    _, indices, tracer = analyze_project(src, quiet=as_json)
    traced = tracer.trace_file(target)

    if as_json:
        details: Dict[str, dict] = tracer.to_dict({t.id: t for t in traced})
        for entry in details.values():
            entry['external_files'] = sorted({indices.file_of(i) for i in entry['external']})
        typer.echo(json.dumps(details, indent=2))
        return

    if not traced:
        console.print(f"[yellow]No declarations found in {escape(str(target))}[/yellow]")
        return
    _print_declarations(indices, traced, f"Declarations in {target.name}")


@app.command()
def graph(
    src_path: str = typer.Argument(".", help="Source root of the JS/TS project"),
    output: Path = typer.Option(..., "--output", "-o", help="Where to write the node-link JSON graph"),
    level: str = typer.Option("symbol", "--level", "-l", help="Graph granularity: 'symbol' or 'file'"),
):
    """Write the consumer graph as node-link JSON."""
    src = Path(src_path).resolve()
    _require_directory(src)
    if level not in ('symbol', 'file'):
        console.print(f"[bold red]Error:[/bold red] Invalid level '{escape(level)}'. Use 'symbol' or 'file'.")
        raise typer.Exit(1)

    _, indices, tracer = analyze_project(src)
    traced = tracer.trace_all()
    builder = build_symbol_graph if level == 'symbol' else build_file_graph
    result = builder(indices, traced)

    output.write_text(json.dumps(export_graph_json(result), indent=2), encoding='utf-8')
    console.print(
        f"[green]✓ Wrote {result.number_of_nodes()} nodes and {result.number_of_edges()} edges "
        f"to {escape(str(output))}[/green]"
    )


@app.callback()
def main():
    """symtrace - symbol dependency tracing for JavaScript/TypeScript."""
    pass


if __name__ == "__main__":
    app()
