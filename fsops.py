#!/usr/bin/env python3
"""
fsops - Filesystem operations

Main entry point for the fsops CLI. Queries run directly; anything that
changes the filesystem is a dry run unless --execute is given, and goes
through the permission manager and the audit log.
"""

import functools

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from core import AuditLogger, PermissionManager, PermissionLevel, UnsupportedOperation, load_settings
from modules.filesystem import FileOperator, Filesystem


console = Console()


def get_permission_manager(ctx: click.Context) -> PermissionManager:
    """Get a permission manager for the configured config file."""
    return PermissionManager(config_path=ctx.obj["config_path"])


def get_operator(ctx: click.Context) -> FileOperator:
    pm = get_permission_manager(ctx)
    return FileOperator(pm, pm.logger)


def handle_errors(func):
    """Report OS errors as a red message and a non-zero exit code."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except OSError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise SystemExit(1)
    return wrapper


def report(done: bool, execute: bool, message: str) -> None:
    if not done:
        console.print(f"[red]Not done:[/red] {message}")
        raise SystemExit(1)
    if execute:
        console.print(f"[green]Done:[/green] {message}")
    else:
        console.print(f"[yellow]Dry run:[/yellow] {message}")
        console.print("[dim]Pass --execute to apply.[/dim]")


execute_option = click.option(
    "--execute", is_flag=True, default=False, help="Apply the change instead of previewing it."
)


@click.group()
@click.version_option(version="0.1.0", prog_name="fsops")
@click.option(
    "--config", "config_path", default="config.yaml", show_default=True,
    help="Path to the YAML configuration file."
)
@click.pass_context
def fsops(ctx, config_path):
    """
    fsops - Filesystem operations

    Inspect, copy, move and delete files and directory trees with
    permission checks and an audit trail.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@fsops.command()
@click.argument("path")
@click.pass_context
@handle_errors
def info(ctx, path):
    """Show metadata for a file or directory."""
    entry = get_operator(ctx).get_file_info(path)

    try:
        mime = Filesystem.mime_type(path) if entry.is_file else None
    except UnsupportedOperation:
        mime = "unavailable (libmagic missing)"

    table = Table(title=entry.name, show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Path", entry.path)
    table.add_row("Type", Filesystem.type(path))
    table.add_row("Size", str(entry.size))
    table.add_row("Modified", entry.modified)
    table.add_row("Permissions", entry.permissions)
    table.add_row("Extension", entry.extension or "-")
    table.add_row("MIME type", mime or "-")
    table.add_row("Readable", "yes" if Filesystem.is_readable(path) else "no")
    table.add_row("Writable", "yes" if Filesystem.is_writable(path) else "no")

    console.print(table)


@fsops.command("hash")
@click.argument("path")
@click.option("--algorithm", "-a", default=None, help="hashlib algorithm (default from config).")
@click.pass_context
@handle_errors
def hash_command(ctx, path, algorithm):
    """Print the content digest of a file."""
    digest = get_operator(ctx).hash_file(path, algorithm)
    click.echo(f"{digest}  {path}")


@fsops.command()
@click.argument("path")
@click.pass_context
@handle_errors
def cat(ctx, path):
    """Print the contents of a file."""
    click.echo(get_operator(ctx).read_file(path), nl=False)


@fsops.command("ls")
@click.argument("directory")
@click.option("--recursive", "-r", is_flag=True, help="Include files in subdirectories.")
@click.option("--hidden", "-a", is_flag=True, help="Include dot-files (default from config).")
@click.pass_context
@handle_errors
def ls_command(ctx, directory, recursive, hidden):
    """List the files in a directory."""
    # Without the flag the configured show_hidden setting applies
    entries = get_operator(ctx).list_directory(directory, recursive=recursive, hidden=True if hidden else None)

    if not entries:
        console.print("[dim]No files found.[/dim]")
        return

    table = Table(title=directory)
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Modified", style="dim")
    table.add_column("Mode")

    for entry in entries:
        table.add_row(entry.relative_path, str(entry.size), entry.modified.split(".")[0], entry.permissions)

    console.print(table)


@fsops.command()
@click.argument("directory")
@click.option("--hidden", "-a", is_flag=True, help="Include dot-directories.")
@handle_errors
def dirs(directory, hidden):
    """List the immediate subdirectories of a directory."""
    for path in Filesystem.directories(directory, hidden=hidden):
        click.echo(path)


@fsops.command("copy-dir")
@click.argument("source")
@click.argument("destination")
@execute_option
@click.pass_context
@handle_errors
def copy_dir(ctx, source, destination, execute):
    """Copy a directory tree."""
    done = get_operator(ctx).copy_directory(source, destination, dry_run=not execute)
    report(done, execute, f"copy {source} -> {destination}")


@fsops.command("move-dir")
@click.argument("source")
@click.argument("destination")
@click.option("--overwrite", is_flag=True, help="Replace an existing destination.")
@execute_option
@click.pass_context
@handle_errors
def move_dir(ctx, source, destination, overwrite, execute):
    """Move a directory tree."""
    done = get_operator(ctx).move_directory(source, destination, overwrite=overwrite, dry_run=not execute)
    report(done, execute, f"move {source} -> {destination}")


@fsops.command("rm")
@click.argument("paths", nargs=-1, required=True)
@execute_option
@click.pass_context
@handle_errors
def rm_command(ctx, paths, execute):
    """Delete files. Every path is attempted."""
    operator = get_operator(ctx)
    failed = []

    for path in paths:
        try:
            done = operator.delete_file(path, dry_run=not execute)
        except OSError as e:
            console.print(f"[red]Error:[/red] {e}")
            done = False

        if done:
            report(True, execute, f"delete {path}")
        else:
            failed.append(path)

    if failed:
        report(False, execute, ", ".join(failed))


@fsops.command()
@click.argument("directory")
@execute_option
@click.pass_context
@handle_errors
def clean(ctx, directory, execute):
    """Empty a directory, keeping the directory itself."""
    done = get_operator(ctx).clean_directory(directory, dry_run=not execute)
    report(done, execute, f"clean {directory}")


@fsops.command("rmdir")
@click.argument("directory")
@execute_option
@click.pass_context
@handle_errors
def rmdir_command(ctx, directory, execute):
    """Delete a directory tree."""
    done = get_operator(ctx).delete_directory(directory, dry_run=not execute)
    report(done, execute, f"delete {directory}")


@fsops.command()
@click.option("--limit", "-n", default=20, show_default=True)
@click.pass_context
def audit(ctx, limit):
    """View the audit log."""
    settings = load_settings(ctx.obj["config_path"])
    entries = AuditLogger(settings.audit_log).get_recent(limit=limit)

    if not entries:
        console.print("[dim]No audit entries found.[/dim]")
        return

    table = Table(title="Recent Audit Log")
    table.add_column("Time", style="dim")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("Approved")

    for entry in entries:
        time_str = entry.timestamp.split("T")[1].split(".")[0] if "T" in entry.timestamp else entry.timestamp

        status_str = entry.status
        if entry.status in ("approved", "executed"):
            status_str = f"[green]{entry.status}[/green]"
        elif entry.status in ("denied", "failed"):
            status_str = f"[red]{entry.status}[/red]"

        approved_str = "yes" if entry.user_approved else "no" if entry.user_approved is False else "-"
        description = entry.description
        if len(description) > 50:
            description = description[:50] + "..."

        table.add_row(time_str, description, status_str, approved_str)

    console.print(table)


@fsops.group()
def permission():
    """Manage permissions and protected paths."""
    pass


@permission.command("list")
@click.pass_context
def permission_list(ctx):
    """List current permission settings."""
    pm = get_permission_manager(ctx)

    console.print(Panel.fit("[bold]Permission settings[/bold]", subtitle=ctx.obj["config_path"]))

    console.print("\n[bold]Auto-Approved Actions:[/bold]")
    for pattern in pm.auto_approve:
        console.print(f"  + {pattern}")
    for pattern, level in pm.whitelist.items():
        console.print(f"  + {pattern} (up to {level.name})")

    console.print("\n[bold]Blacklisted Actions:[/bold]")
    for pattern in pm.blacklist:
        console.print(f"  - {pattern}")

    console.print("\n[bold]Protected Paths:[/bold]")
    for path in pm.protected_paths:
        console.print(f"  ! {path}")


@permission.command("blacklist")
@click.argument("pattern")
@click.pass_context
def permission_blacklist(ctx, pattern: str):
    """Add an action or path pattern to the blacklist."""
    pm = get_permission_manager(ctx)
    pm.add_to_blacklist(pattern)
    pm.save_config()
    console.print(f"[green]Added to blacklist:[/green] {pattern}")


@permission.command("whitelist")
@click.argument("pattern")
@click.option(
    "--level",
    type=click.Choice([level.name for level in PermissionLevel], case_sensitive=False),
    default=PermissionLevel.SAFE_WRITE.name,
    show_default=True,
)
@click.pass_context
def permission_whitelist(ctx, pattern: str, level: str):
    """Auto-approve an action pattern up to a permission level."""
    pm = get_permission_manager(ctx)
    pm.add_to_whitelist(pattern, PermissionLevel[level.upper()])
    pm.save_config()
    console.print(f"[green]Added to whitelist:[/green] {pattern}")


if __name__ == "__main__":
    fsops()
