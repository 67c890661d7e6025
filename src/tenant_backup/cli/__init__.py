"""CLI for per-tenant MySQL backup and restore.

Usage:
    tenant-backup methods
    tenant-backup backup acme globex --method native
    tenant-backup backup --all --no-compress
    tenant-backup list acme
    tenant-backup restore acme --latest --safety-backup
    tenant-backup restore acme tenant_acme_acme_example_com_2025-01-01_00-00-00-000000_full_native.sql.gz --yes
    tenant-backup cleanup --days 30
    tenant-backup keep-latest --keep 7

Commands:
    methods      - Show which backup methods are available
    backup       - Back up one or more tenants
    list         - List cataloged backups
    restore      - Restore a tenant database from a backup (destructive)
    cleanup      - Delete backups older than N days
    keep-latest  - Keep only the newest N backups per tenant
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from tenant_backup.config.loader import DEFAULT_ENV_PREFIX, load_config
from tenant_backup.errors import TenantBackupError
from tenant_backup.factory import BackupServices, build_services
from tenant_backup.models import BackupMethod, BackupOptions, RestoreOptions, Tenant

console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


async def _services(args: argparse.Namespace) -> BackupServices:
    config = load_config(args.config, env_prefix=args.env_prefix)
    return await build_services(config)


def _select_tenants(services: BackupServices, args: argparse.Namespace) -> list[Tenant]:
    if getattr(args, "all", False) or not getattr(args, "tenants", None):
        return services.config.all_tenants()
    return [services.config.get_tenant(tenant_id) for tenant_id in args.tenants]


def _run(impl: Callable[[argparse.Namespace], Awaitable[int]], args: argparse.Namespace) -> int:
    """Run an async command, turning package errors into exit code 1."""
    try:
        return asyncio.run(impl(args))
    except (TenantBackupError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_methods(args: argparse.Namespace) -> int:
    """Async implementation for methods command.

    Returns:
        0 always (informational command).
    """
    services = await _services(args)
    available = services.available

    table = Table(title="External Binaries", show_header=True, header_style="bold")
    table.add_column("Method")
    table.add_column("Binary")
    table.add_column("Status")
    table.add_column("Version", style="dim")
    for probe in available.report():
        status = "[green]available[/green]" if probe.available else "[red]missing[/red]"
        table.add_row(probe.method.value, probe.path, status, probe.version or probe.error)
    console.print(table)

    recommended = available.recommended()
    console.print()
    for method in available.ordered():
        marker = "[bold green]*[/bold green]" if method is recommended else " "
        console.print(f"{marker} {method.value}")
    console.print("\n[bold green]*[/bold green] = recommended")
    return 0


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Returns:
        0 if every tenant was backed up, 1 otherwise.
    """
    if not args.all and not args.tenants:
        console.print("[red]Name at least one tenant or pass --all[/red]")
        return 1

    services = await _services(args)
    tenants = _select_tenants(services, args)
    compress = args.compress
    if compress is None:
        compress = services.config.backup.compress_by_default
    options = BackupOptions(
        method=BackupMethod(args.method) if args.method else None,
        compress=compress,
        structure_only=args.structure_only,
    )

    if len(tenants) == 1:
        record = await services.backups.create_backup(tenants[0], options)
        console.print(
            f"[bold green]v[/bold green] {tenants[0].id}: {record.filename} "
            f"({_format_size(record.size)})"
        )
        return 0

    result = await services.backups.backup_many(tenants, options)
    for tenant_id, record in result.records.items():
        console.print(
            f"[bold green]v[/bold green] {tenant_id}: {record.filename} "
            f"({_format_size(record.size)})"
        )
    for tenant_id, error in result.errors.items():
        console.print(f"[bold red]x[/bold red] {tenant_id}: {escape(error)}")

    console.print(
        f"\n{len(result.records)} succeeded, "
        f"[{'red' if result.errors else 'dim'}]{len(result.errors)} failed[/]"
    )
    return 0 if result.success else 1


async def _async_list(args: argparse.Namespace) -> int:
    """Async implementation for list command.

    Returns:
        0 always (informational command).
    """
    services = await _services(args)
    tenants = _select_tenants(services, args)

    table = Table(title="Tenant Backups", show_header=True, header_style="bold")
    table.add_column("Tenant")
    table.add_column("Filename")
    table.add_column("Kind")
    table.add_column("Method")
    table.add_column("Size", justify="right")
    table.add_column("Created (UTC)")

    total = 0
    for tenant in tenants:
        for record in services.catalog.list(tenant):
            table.add_row(
                tenant.id,
                record.filename,
                record.kind.value,
                record.method.value,
                _format_size(record.size),
                record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            )
            total += 1

    if total == 0:
        console.print("[yellow]No backups found.[/yellow]")
    else:
        console.print(table)
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Returns:
        0 on success, 1 on failure or when cancelled.
    """
    if not args.latest and not args.filename:
        console.print("[red]Name a backup file or pass --latest[/red]")
        return 1

    services = await _services(args)
    tenant = services.config.get_tenant(args.tenant)
    options = RestoreOptions(safety_backup=args.safety_backup)

    if args.latest:
        record = services.restores.latest_backup(tenant)
    else:
        record = services.restores.find_backup(tenant, args.filename)

    if not args.yes:
        console.print(
            f"[bold yellow]![/bold yellow] This will DROP database "
            f"[bold]{tenant.database}[/bold] and restore it from:"
        )
        console.print(f"  {record.filename}")
        response = console.input("Continue? [y/N] ")
        if response.strip().lower() not in ("y", "yes"):
            console.print("Cancelled.")
            return 1

    stats = await services.restores.restore(tenant, record, options)

    table = Table(title="Restore Complete", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Tenant", f"[bold cyan]{tenant.id}[/bold cyan]")
    table.add_row("Backup", record.filename)
    table.add_row("Method", stats.method.value)
    table.add_row("Tables", str(stats.tables_count))
    table.add_row("Rows (approx.)", str(stats.records_count))
    if stats.statements_executed:
        table.add_row("Statements", str(stats.statements_executed))
    if stats.safety_backup is not None:
        table.add_row("Safety backup", stats.safety_backup.filename)
    console.print(table)
    return 0


async def _async_cleanup(args: argparse.Namespace) -> int:
    services = await _services(args)
    deleted = await services.retention.cleanup_old_backups(
        services.config.all_tenants(), args.days
    )
    console.print(f"Deleted {deleted} backup(s) older than {args.days} day(s)")
    return 0


async def _async_keep_latest(args: argparse.Namespace) -> int:
    services = await _services(args)
    deleted = await services.retention.keep_latest_backups(
        services.config.all_tenants(), args.keep
    )
    console.print(f"Deleted {deleted} backup(s); kept the newest {args.keep} per tenant")
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_methods(args: argparse.Namespace) -> int:
    """Show available backup methods.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run(_async_methods, args)


def cmd_backup(args: argparse.Namespace) -> int:
    """Back up the selected tenants.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run(_async_backup, args)


def cmd_list(args: argparse.Namespace) -> int:
    """List cataloged backups.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run(_async_list, args)


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a tenant database.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run(_async_restore, args)


def cmd_cleanup(args: argparse.Namespace) -> int:
    return _run(_async_cleanup, args)


def cmd_keep_latest(args: argparse.Namespace) -> int:
    return _run(_async_keep_latest, args)


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tenant-backup",
        description="Per-tenant MySQL backup and restore",
    )

    # Global options
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to tenant-backup.toml (default: $TENANT_BACKUP_CONFIG or ./tenant-backup.toml)",
    )
    parser.add_argument(
        "--env-prefix",
        default=DEFAULT_ENV_PREFIX,
        help="Prefix for environment variable overrides (default: %(default)s)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # methods command
    p_methods = subparsers.add_parser(
        "methods",
        help="Show which backup methods are available",
    )
    p_methods.set_defaults(func=cmd_methods)

    # backup command
    p_backup = subparsers.add_parser(
        "backup",
        help="Back up one or more tenants",
    )
    p_backup.add_argument(
        "tenants",
        nargs="*",
        help="Tenant ids to back up",
    )
    p_backup.add_argument(
        "--all",
        action="store_true",
        help="Back up every configured tenant",
    )
    p_backup.add_argument(
        "--method",
        "-m",
        choices=[m.value for m in BackupMethod if m.can_export],
        default=None,
        help="Backup method (default: configured or recommended)",
    )
    p_backup.add_argument(
        "--compress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Gzip the dump (default: [backup] compress_by_default)",
    )
    p_backup.add_argument(
        "--structure-only",
        action="store_true",
        help="Dump schema without row data",
    )
    p_backup.set_defaults(func=cmd_backup)

    # list command
    p_list = subparsers.add_parser(
        "list",
        help="List cataloged backups",
    )
    p_list.add_argument(
        "tenants",
        nargs="*",
        help="Tenant ids (default: all tenants)",
    )
    p_list.set_defaults(func=cmd_list)

    # restore command
    p_restore = subparsers.add_parser(
        "restore",
        help="Restore a tenant database from a backup (destructive)",
    )
    p_restore.add_argument("tenant", help="Tenant id")
    p_restore.add_argument(
        "filename",
        nargs="?",
        default=None,
        help="Backup filename (see 'list')",
    )
    p_restore.add_argument(
        "--latest",
        action="store_true",
        help="Restore the newest backup",
    )
    p_restore.add_argument(
        "--safety-backup",
        action="store_true",
        help="Take a native backup of the current database first",
    )
    p_restore.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    p_restore.set_defaults(func=cmd_restore)

    # cleanup command
    p_cleanup = subparsers.add_parser(
        "cleanup",
        help="Delete backups older than N days",
    )
    p_cleanup.add_argument(
        "--days",
        type=int,
        required=True,
        help="Age threshold in days",
    )
    p_cleanup.set_defaults(func=cmd_cleanup)

    # keep-latest command
    p_keep = subparsers.add_parser(
        "keep-latest",
        help="Keep only the newest N backups per tenant",
    )
    p_keep.add_argument(
        "--keep",
        type=int,
        required=True,
        help="Number of backups to keep per tenant",
    )
    p_keep.set_defaults(func=cmd_keep_latest)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
