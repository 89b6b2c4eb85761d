"""Typer-based CLI for static linkage checks and Maven dependency graphs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from . import __version__, config_manager
from .errors import ClassFormatError, ResolutionError, UnreadableInputError
from .graph_builder import DependencyGraphBuilder
from .graph_export import export_dot, to_dot
from .linkage_checker import generate_static_linkage_report
from .models import Artifact, DependencyNode
from .report import (
    format_conflicts,
    format_dependency_graph,
    format_dependency_tree,
    format_linkage_report,
)
from .resolver import DependencyResolver

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="🔗 Linkage CLI — find unresolved method references in jars and inspect Maven dependency graphs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration — repositories and resolver settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"Linkage CLI v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log resolution and scanning details."),
):
    """Linkage CLI: static linkage checks and dependency graph analysis for Java libraries."""
    _configure_logging(verbose)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]❌ {escape(message)}[/red]")
    raise typer.Exit(code=2)


def _parse_coordinates(values: List[str]) -> List[Artifact]:
    try:
        return [Artifact.from_coordinates(value) for value in values]
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


def _builder() -> DependencyGraphBuilder:
    settings = config_manager.load_config()
    system = config_manager.repository_system_from_config(settings)
    return DependencyGraphBuilder(DependencyResolver(system))


# ===================================================================
# Linkage
# ===================================================================

@app.command("check")
def check(
    jars: List[Path] = typer.Argument(..., help="Jar files to check against each other, in classpath order."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Threads scanning jars."),
    boot_classpath: List[Path] = typer.Option(
        [], "--boot-classpath", "-b", help="Extra jars to resolve against without scanning them (e.g. rt.jar)."
    ),
):
    """Report method references that no jar in the set declares."""
    if workers is None:
        workers = int(config_manager.load_config()["linkage"].get("workers", 1))
    paths = [jar.resolve() for jar in jars]
    try:
        unresolved = generate_static_linkage_report(paths, workers=workers, boot_classpath=boot_classpath)
    except (UnreadableInputError, ClassFormatError) as exc:
        _fail(str(exc))

    typer.echo(format_linkage_report(unresolved, [str(jar) for jar in jars]))
    if unresolved:
        raise typer.Exit(code=1)


# ===================================================================
# Dependencies
# ===================================================================

@app.command("deps")
def deps(
    coordinates: List[str] = typer.Argument(..., help="Root artifacts as group:artifact:version."),
    complete: bool = typer.Option(False, "--complete", help="Keep every path instead of mediating versions."),
    fmt: str = typer.Option("text", "--format", "-f", help="Output format: text or dot."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to a file instead of stdout."),
    focus: str = typer.Option("", "--focus", help="DOT only: keep paths through matching artifacts."),
):
    """List dependency paths breadth first, mediated by default."""
    fmt = fmt.lower()
    if fmt not in {"text", "dot"}:
        raise typer.BadParameter("Format must be one of: text, dot")
    artifacts = _parse_coordinates(coordinates)

    builder = _builder()
    try:
        if complete:
            graph = builder.get_complete_dependencies(artifacts)
        else:
            graph = builder.get_transitive_dependencies(artifacts)
    except ResolutionError as exc:
        _fail(str(exc))

    if output is not None:
        if fmt == "dot":
            export_dot(graph, output, focus=focus)
        else:
            output.write_text(format_dependency_graph(graph) + "\n", encoding="utf-8")
        typer.echo(f"Exported {len(graph)} paths to {output}")
        return

    typer.echo(to_dot(graph, focus=focus) if fmt == "dot" else format_dependency_graph(graph))


@app.command("direct")
def direct(coordinates: str = typer.Argument(..., help="Artifact as group:artifact:version.")):
    """List the compile-scope dependencies an artifact declares."""
    artifact = _parse_coordinates([coordinates])[0]
    try:
        children = _builder().get_direct_dependencies(artifact)
    except ResolutionError as exc:
        _fail(str(exc))

    if not children:
        typer.echo(f"{artifact} has no compile-scope dependencies.")
        return
    for child in children:
        typer.echo(str(child))


def _add_branch(tree: Tree, node: DependencyNode) -> None:
    for child in node.children:
        label = escape(str(child.artifact))
        if child.dependency.optional:
            label += " [dim](optional)[/dim]"
        _add_branch(tree.add(label), child)


@app.command("tree")
def tree(
    coordinates: str = typer.Argument(..., help="Artifact as group:artifact:version."),
    plain: bool = typer.Option(False, "--plain", help="Indented text with scopes instead of a rich tree."),
):
    """Resolve and print the compile-scope dependency tree of an artifact."""
    artifact = _parse_coordinates([coordinates])[0]
    try:
        root = _builder().resolve_compile_time_root_dependencies(artifact)
    except ResolutionError as exc:
        _fail(str(exc))

    if plain:
        typer.echo(format_dependency_tree(root))
        return

    rendered = Tree(f"[bold]{escape(str(root.artifact))}[/bold]")
    _add_branch(rendered, root)
    console.print(rendered)


@app.command("conflicts")
def conflicts(
    coordinates: List[str] = typer.Argument(..., help="Root artifacts as group:artifact:version."),
    paths: bool = typer.Option(False, "--paths", help="Print every path to each conflicting artifact."),
):
    """Show artifacts reachable at more than one version."""
    artifacts = _parse_coordinates(coordinates)
    builder = _builder()
    try:
        graph = builder.get_complete_dependencies(artifacts)
        mediated_graph = None if paths else builder.get_transitive_dependencies(artifacts)
    except ResolutionError as exc:
        _fail(str(exc))

    if paths:
        typer.echo(format_conflicts(graph))
        return

    versions = {key: found for key, found in graph.get_versions().items() if len(found) > 1}
    if not versions:
        typer.echo("No version conflicts found.")
        return

    mediated = {path.leaf.key: path.leaf.version for path in mediated_graph}
    table = Table(title="Version conflicts")
    table.add_column("Artifact", style="cyan")
    table.add_column("Versions")
    table.add_column("Selected", style="green")
    table.add_column("Paths", justify="right")
    for key, found in versions.items():
        table.add_row(key, ", ".join(found), mediated.get(key, "-"), str(len(graph.get_paths(key))))
    console.print(table)


# ===================================================================
# Configuration
# ===================================================================

@config_app.command("show")
def show_config():
    """Print the effective configuration."""
    settings = config_manager.load_config()
    typer.echo(f"Config file: {config_manager.CONFIG_FILE}")
    typer.echo("Repositories:")
    for repository in config_manager.configured_repositories(settings):
        typer.echo(f"  {repository.id}: {repository.url}")
    resolver_settings = settings["resolver"]
    typer.echo(f"Local repository: {resolver_settings.get('local_repository')}")
    typer.echo(f"Timeout: {resolver_settings.get('timeout')}s")
    typer.echo(f"Linkage workers: {settings['linkage'].get('workers')}")


@config_app.command("add-repo")
def add_repo(
    url: str = typer.Argument(..., help="Repository URL (http(s)://, file:// or a directory)."),
    check_reachable: bool = typer.Option(False, "--check", help="Verify the repository answers first."),
):
    """Append a repository to search after the configured ones."""
    if check_reachable and not config_manager.validate_repository(url):
        _fail(f"Repository {url} is not reachable.")
    if not config_manager.add_repository(url):
        _fail(f"Could not write {config_manager.CONFIG_FILE}")
    typer.echo(f"Added repository {url}")


@config_app.command("set-local-repo")
def set_local_repo(path: Path = typer.Argument(..., help="Directory used to store downloaded files.")):
    """Change where POMs and jars are stored."""
    if not config_manager.set_local_repository(path.expanduser()):
        _fail(f"Could not write {config_manager.CONFIG_FILE}")
    typer.echo(f"Local repository set to {path}")


@config_app.command("reset")
def reset():
    """Drop the config file and return to defaults."""
    if not config_manager.reset_config():
        _fail(f"Could not remove {config_manager.CONFIG_FILE}")
    typer.echo("Configuration reset to defaults.")


if __name__ == "__main__":
    app()
