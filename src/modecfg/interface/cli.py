"""
modecfg CLI - inspect and maintain custom mode files.

Commands:
- modecfg list → Show the resolved modes and where each comes from
- modecfg show <slug> → Show one resolved mode
- modecfg diagnostics → Show problems found while loading
- modecfg migrate → Convert a legacy .roomodes file into .roo/modes/*.yaml
- modecfg delete <slug> → Remove a mode from every scope
- modecfg reset → Empty a scope's legacy file
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from modecfg.core.config import Settings, settings, setup_logging
from modecfg.core.errors import ModeConfigError
from modecfg.core.types import DiagnosticKind, ModeScope, Severity
from modecfg.runtime.manager import ModesManager

app = typer.Typer(
    name="modecfg",
    help="Inspect and maintain custom mode definitions",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


@app.callback()
def main(
    ctx: typer.Context,
    project: Optional[Path] = typer.Option(None, "--project", "-p", help="Project root"),
    global_root: Optional[Path] = typer.Option(None, "--global-root", help="Global storage root"),
):
    """Select the project and global roots to operate on."""
    setup_logging()
    overrides = {}
    if project is not None:
        overrides["project_root"] = project
    if global_root is not None:
        overrides["global_root"] = global_root
    ctx.obj = settings.model_copy(update=overrides) if overrides else settings


def _manager(ctx: typer.Context) -> ModesManager:
    config: Settings = ctx.obj or settings
    return ModesManager(config)


@app.command("list")
def list_modes(ctx: typer.Context):
    """List resolved modes, one per slug."""
    manager = _manager(ctx)
    modes = run_async(manager.get_all())

    if not modes:
        console.print("[dim]No custom modes found[/dim]")
        return

    table = Table(title="Custom Modes")
    table.add_column("Slug", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Source", style="green")
    table.add_column("Groups", style="dim")

    for mode in modes:
        table.add_row(
            mode.slug,
            mode.name,
            f"{mode.scope.value}/{mode.format.value}" if mode.scope and mode.format else "-",
            ", ".join(mode.group_names()) or "-",
        )

    console.print(table)


@app.command()
def show(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Mode slug"),
):
    """Show a single resolved mode."""
    manager = _manager(ctx)
    mode = run_async(manager.get(slug))

    if mode is None:
        console.print(f"[red]Mode '{slug}' not found[/red]")
        raise typer.Exit(1)

    lines = [
        f"[bold]{mode.name}[/bold] [dim]({mode.scope.value}/{mode.format.value})[/dim]",
        "",
        mode.role_definition,
    ]
    if mode.custom_instructions:
        lines += ["", "[bold]Custom instructions[/bold]", mode.custom_instructions]
    lines += ["", "[bold]Groups[/bold]"]
    for group, options in mode.groups.items():
        detail = ""
        if options is not None:
            detail = " " + ", ".join(f"{k}={v}" for k, v in options.to_data().items())
        lines.append(f"  • {group.value}{detail}")

    console.print(Panel("\n".join(lines), title=slug))


@app.command()
def diagnostics(ctx: typer.Context):
    """Show problems found while loading modes."""
    manager = _manager(ctx)
    found = [d for d in run_async(manager.diagnostics()) if d.severity != Severity.INFO]

    if not found:
        console.print("[green]No problems found.[/green]")
        return

    table = Table(title="Diagnostics")
    table.add_column("Kind", style="yellow")
    table.add_column("Source", style="cyan")
    table.add_column("Location", style="dim")
    table.add_column("Message", style="white")

    for diagnostic in found:
        location = str(diagnostic.path or "-")
        if diagnostic.line is not None:
            location += f":{diagnostic.line}"
        table.add_row(
            diagnostic.kind.value,
            f"{diagnostic.scope.value}/{diagnostic.format.value}" if diagnostic.scope and diagnostic.format else "-",
            location,
            diagnostic.message,
        )

    console.print(table)


@app.command()
def migrate(
    ctx: typer.Context,
    scope: ModeScope = typer.Option(ModeScope.PROJECT, help="Scope to migrate"),
):
    """Convert a legacy .roomodes file into one YAML file per mode."""
    manager = _manager(ctx)

    async def _migrate():
        count = await manager.migrate_legacy_if_needed(scope)
        found = await manager.diagnostics()
        await manager.close()
        return count, found

    count, found = run_async(_migrate())
    problems = [d for d in found if d.kind == DiagnosticKind.MIGRATION]

    if problems:
        for problem in problems:
            console.print(f"[red]Error: {problem.message}[/red]")
        raise typer.Exit(1)

    if count:
        console.print(Panel(
            f"[green]✓ {count} modes migrated[/green]\n\n"
            f"{manager.stores.legacy(scope).location} → {manager.stores.split(scope).location}",
            title="Migration",
        ))
    else:
        console.print("[dim]Nothing to migrate[/dim]")


@app.command()
def delete(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Mode slug"),
):
    """Remove a mode from every scope that defines it."""
    manager = _manager(ctx)
    try:
        run_async(manager.delete(slug))
    except ModeConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Deleted {slug}[/green]")


@app.command()
def reset(
    ctx: typer.Context,
    scope: ModeScope = typer.Option(ModeScope.GLOBAL, help="Scope whose legacy file to empty"),
    yes: bool = typer.Option(False, "--yes", help="Skip confirmation"),
):
    """Empty a scope's legacy .roomodes file."""
    manager = _manager(ctx)
    target = manager.stores.legacy(scope).location
    if not yes:
        typer.confirm(f"Remove every mode from {target}?", abort=True)

    try:
        run_async(manager.reset(scope))
    except ModeConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Reset {target}[/green]")


if __name__ == "__main__":
    app()
