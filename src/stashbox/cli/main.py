"""Main CLI entry point for stashbox.

Provides command-line access to a cache directory.
"""

import sys
from pathlib import Path
from typing import Any, Optional

import click
import orjson
from rich.console import Console
from rich.table import Table

from stashbox.cache import CacheConfig, CacheManager, make_key

# Global console for Rich output
console = Console()

_MISSING = object()


def build_manager(ctx: click.Context) -> CacheManager:
    """Create a cache manager from CLI options.

    Priority for the cache root:
    1. Explicit --root/-C flag
    2. cache_dir from --config file, or STASHBOX_CACHE_DIR when no file is given

    Raises:
        click.ClickException: If no cache root can be determined
    """
    config_path = ctx.obj.get("config")
    if config_path:
        config = CacheConfig.load(Path(config_path))
    else:
        config = CacheConfig.from_env()

    if ctx.obj.get("root"):
        config.cache_dir = Path(ctx.obj["root"]).expanduser()

    if ctx.obj.get("lifetime"):
        config.lifetimes[ctx.obj["namespace"]] = ctx.obj["lifetime"]

    if config.cache_dir is None:
        raise click.ClickException(
            "Cache root not set. Use --root/-C or set STASHBOX_CACHE_DIR."
        )

    return CacheManager(config)


def format_value(value: Any) -> str:
    """Render a cached value for terminal output."""
    if isinstance(value, str):
        return value
    return orjson.dumps(value, default=repr).decode("utf-8")


@click.group()
@click.option(
    "--root",
    "-C",
    type=click.Path(),
    help="Cache root directory (default: STASHBOX_CACHE_DIR env var)",
)
@click.option(
    "--namespace",
    "-n",
    default="global",
    show_default=True,
    help="Storage namespace",
)
@click.option(
    "--lifetime",
    "-l",
    help="Lifetime for the namespace, e.g. 30, 10m, 2h",
)
@click.option(
    "--config",
    type=click.Path(),
    help="Path to a JSON cache config file",
)
@click.pass_context
def cli(ctx, root, namespace, lifetime, config):
    """stashbox CLI - Inspect and manage a file cache.

    Use --root/-C to specify the cache directory, or set STASHBOX_CACHE_DIR.
    """
    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["namespace"] = namespace
    ctx.obj["lifetime"] = lifetime
    ctx.obj["config"] = config


@cli.command("put")
@click.argument("key")
@click.argument("value")
@click.option("--json", "as_json", is_flag=True, help="Parse VALUE as JSON")
@click.pass_context
def put(ctx, key, value, as_json):
    """Store VALUE under KEY.

    Example:
        stashbox -C /tmp/cache -l 10m put greeting hello
        stashbox -C /tmp/cache -l 1h put config '{"retries": 3}' --json
    """
    try:
        manager = build_manager(ctx)
        namespace = ctx.obj["namespace"]

        if as_json:
            value = orjson.loads(value)

        manager.put(key, value, namespace)
        lifetime = manager.get_lifetime(namespace)
        console.print(
            f"[green]✓[/green] Cached '{key}' in namespace '{namespace}' "
            f"(expires in {lifetime}s)"
        )

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("get")
@click.argument("key")
@click.option("--default", "default", help="Printed when there is no valid entry")
@click.pass_context
def get(ctx, key, default):
    """Print the value cached under KEY.

    Exits with status 1 on a miss unless --default is given.

    Example:
        stashbox -C /tmp/cache get greeting
    """
    try:
        manager = build_manager(ctx)
        namespace = ctx.obj["namespace"]
        value = manager.get(key, _MISSING, namespace)
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)

    if value is _MISSING:
        if default is not None:
            click.echo(default)
            return
        console.print(f"[yellow]No entry for '{key}' in namespace '{namespace}'[/yellow]")
        sys.exit(1)

    click.echo(format_value(value))


@cli.command("has")
@click.argument("key")
@click.pass_context
def has(ctx, key):
    """Check whether an entry file exists for KEY (expiry not checked).

    Exits with status 1 when there is none.
    """
    try:
        manager = build_manager(ctx)
        exists = manager.has(key, ctx.obj["namespace"])
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)

    click.echo("true" if exists else "false")
    if not exists:
        sys.exit(1)


@cli.command("expiration")
@click.argument("key")
@click.pass_context
def expiration(ctx, key):
    """Print the stored expiration of KEY as unix seconds."""
    try:
        manager = build_manager(ctx)
        namespace = ctx.obj["namespace"]
        expires_at: Optional[int] = manager.expiration(key, namespace)
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)

    if expires_at is None:
        console.print(f"[yellow]No entry for '{key}' in namespace '{namespace}'[/yellow]")
        sys.exit(1)

    click.echo(str(expires_at))


@cli.command("forget")
@click.argument("key")
@click.pass_context
def forget(ctx, key):
    """Remove the entry for KEY."""
    try:
        manager = build_manager(ctx)
        namespace = ctx.obj["namespace"]
        manager.forget(key, namespace)
        console.print(f"[green]✓[/green] Forgot '{key}' in namespace '{namespace}'")

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("flush")
@click.pass_context
def flush(ctx):
    """Remove every entry in the namespace."""
    try:
        manager = build_manager(ctx)
        namespace = ctx.obj["namespace"]
        count = manager.count_entries(namespace)
        manager.flush(namespace)
        console.print(
            f"[green]✓[/green] Flushed {count} entries from namespace '{namespace}'"
        )

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("key")
@click.argument("key")
@click.argument("params", nargs=-1)
def key(key, params):
    """Print the entry id for KEY and optional PARAMS.

    Example:
        stashbox key users page 2
    """
    click.echo(make_key(key, list(params)))


@cli.command("status")
@click.pass_context
def status(ctx):
    """Show namespaces and entry counts under the cache root."""
    try:
        manager = build_manager(ctx)
        namespaces = manager.namespaces()

        if not namespaces:
            console.print("[yellow]No namespaces found[/yellow]")
            return

        table = Table(title=f"Namespaces ({len(namespaces)})")
        table.add_column("Namespace", style="cyan", no_wrap=True)
        table.add_column("Entries", justify="right", style="green")
        table.add_column("Lifetime", justify="right", style="blue")

        for namespace in namespaces:
            lifetime = manager.get_lifetime(namespace)
            table.add_row(
                namespace,
                str(manager.count_entries(namespace)),
                f"{lifetime}s" if lifetime else "-",
            )

        console.print(table)

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


if __name__ == "__main__":
    cli()
