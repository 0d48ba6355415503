"""Command-line interface for linknotes."""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

import click
import httpx
import uvicorn

if TYPE_CHECKING:
    from .core.engine import BookmarkEngine

T = TypeVar("T")

config_dir_option = click.option(
    "--config-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Configuration directory (default: ~/.linknotes)",
)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run_with_engine(
    config_dir: Optional[Path],
    action: Callable[["BookmarkEngine"], Awaitable[T]],
    verify_remote: bool = False,
) -> T:
    """Build the engine, run ``action`` against it and shut it down.

    Shutdown flushes any pending sync, so changes made by ``action`` are
    pushed before the process exits when auto-sync is on.

    Args:
        config_dir: Configuration directory
        action: Coroutine function run against the started engine
        verify_remote: Verify the stored token, or adopt the .env token when
            none is stored. Commands that push or pull need this.
    """
    from .config import ConfigManager
    from .core.engine import BookmarkEngine

    cm = ConfigManager(config_dir)
    config = cm.load_app_config()
    _configure_logging(config.log_level)

    async def runner() -> T:
        engine = BookmarkEngine.build(cm, config=config, env_settings=cm.load_env_settings())
        await engine.start(verify_remote=verify_remote)
        try:
            return await action(engine)
        finally:
            await engine.shutdown()

    return asyncio.run(runner())


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version="0.1.0", prog_name="linknotes")
def cli():
    """linknotes - domain-partitioned bookmarks with notes and gist sync."""
    pass


@cli.command()
@config_dir_option
@click.option(
    "--github-token",
    type=str,
    default=None,
    help="GitHub token with gist scope (will be saved to .env file)",
)
@click.option(
    "--store-path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Where to keep the bookmark store (default: <config-dir>/bookmarks.yaml)",
)
def init(config_dir: Optional[Path], github_token: Optional[str], store_path: Optional[Path]):
    """Initialize linknotes configuration."""
    from .config import ConfigError, ConfigManager
    from .models.config import AppConfig

    try:
        cm = ConfigManager(config_dir)

        click.echo(f"Initializing linknotes at {cm.config_dir}...")
        cm.config_dir.mkdir(parents=True, exist_ok=True)

        cm.create_env_file(github_token)
        click.echo("[OK] Created .env file")

        config = AppConfig(store_path=str(store_path) if store_path else None)
        cm.save_app_config(config)
        click.echo("[OK] Created config.yaml")

        resolved_store = cm.resolve_store_path(config)
        resolved_store.parent.mkdir(parents=True, exist_ok=True)

        click.echo("\n" + "=" * 60)
        click.echo("[SUCCESS] linknotes initialized successfully!")
        click.echo("=" * 60)
        click.echo(f"\nConfiguration directory: {cm.config_dir}")
        click.echo(f"Bookmark store: {resolved_store}")

        if not github_token:
            click.echo("\nTo enable sync run: linknotes connect <token>")
        click.echo("Start the server with: linknotes serve")

    except ConfigError as e:
        _fail(str(e))


@cli.command()
@click.option("--host", type=str, default=None, help="Host to bind (default: from config)")
@click.option("--port", type=int, default=None, help="Port to bind (default: from config or 8000)")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development")
@config_dir_option
def serve(host: Optional[str], port: Optional[int], reload: bool, config_dir: Optional[Path]):
    """Start the linknotes API server."""
    from .config import ConfigError, ConfigManager

    cm = ConfigManager(config_dir)

    if not cm.config_file.exists():
        click.echo("Error: Configuration not found", err=True)
        click.echo(f"Run 'linknotes init' to create configuration at {cm.config_dir}", err=True)
        sys.exit(1)

    try:
        config = cm.load_app_config()
        cm.load_env_settings()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    host = host or config.host
    port = port or config.port or 8000

    # The server process builds its own ConfigManager from the environment
    if config_dir:
        os.environ["LINKNOTES_CONFIG_DIR"] = str(config_dir)

    _configure_logging(config.log_level)

    click.echo("=" * 60)
    click.echo("Starting linknotes API server...")
    click.echo("=" * 60)
    click.echo(f"Config directory: {cm.config_dir}")
    click.echo(f"Server URL: http://{host}:{port}")
    click.echo(f"API docs: http://{host}:{port}/docs")
    click.echo("=" * 60)
    click.echo("\nPress Ctrl+C to stop the server\n")

    try:
        uvicorn.run(
            "linknotes.api:create_app",
            factory=True,
            host=host,
            port=port,
            reload=reload,
            log_level=config.log_level.lower(),
        )
    except KeyboardInterrupt:
        click.echo("\n\nShutting down server...")


@cli.command()
@config_dir_option
@click.option(
    "--api-url",
    type=str,
    default=None,
    help="Optional running API URL to verify (example: http://127.0.0.1:8000)",
)
def doctor(config_dir: Optional[Path], api_url: Optional[str]):
    """Validate local setup and report actionable fixes."""
    from .config import ConfigError, ConfigManager
    from .utils.yaml_handler import YAMLError, load_store_from_file

    cm = ConfigManager(config_dir)
    failures = 0
    warnings = 0
    app_config = None

    def report(status: str, message: str, fix: Optional[str] = None) -> None:
        click.echo(f"[{status}] {message}")
        if fix:
            click.echo(f"      Fix: {fix}")

    click.echo("=" * 60)
    click.echo("linknotes doctor")
    click.echo("=" * 60)
    click.echo(f"Config directory: {cm.config_dir}")

    if cm.config_file.exists():
        try:
            app_config = cm.load_app_config()
            report("PASS", "config.yaml parsed successfully")
        except ConfigError as e:
            failures += 1
            report("FAIL", f"config.yaml validation failed: {e}")
    else:
        failures += 1
        report("FAIL", f"Missing config file: {cm.config_file}", "Run: linknotes init")

    env_settings = None
    try:
        env_settings = cm.load_env_settings()
    except ConfigError as e:
        failures += 1
        report("FAIL", f".env validation failed: {e}")

    if app_config is not None:
        store_path = cm.resolve_store_path(app_config)
        try:
            cm.validate_store_access(store_path)
            report("PASS", f"Store location is writable: {store_path}")
        except ConfigError as e:
            failures += 1
            report("FAIL", f"Store location is not usable: {e}")

        if store_path.exists():
            try:
                partitions = load_store_from_file(store_path)
                total = sum(len(items) for items in partitions.values())
                report("PASS", f"Store parsed: {total} bookmarks in {len(partitions)} domains")
            except YAMLError as e:
                failures += 1
                report("FAIL", f"Store document is corrupt: {e}")
        else:
            report("PASS", "Store document will be created on first save")

    try:
        state = cm.load_sync_state()
        if state.access_token:
            detail = f", document {state.remote_document_id}" if state.remote_document_id else ""
            report("PASS", f"Sync connected{detail}")
        elif env_settings is not None and env_settings.github_token:
            report("PASS", "Sync token found in .env; it is verified when the server starts")
        else:
            warnings += 1
            report("WARN", "Sync is not connected", "Run: linknotes connect <token>")
    except ConfigError as e:
        failures += 1
        report("FAIL", f"sync_state.yaml is invalid: {e}")

    if api_url:
        health_url = f"{api_url.rstrip('/')}/api/v1/health"
        try:
            response = httpx.get(health_url, timeout=3.0)
            if response.status_code == 200:
                report("PASS", f"Server is reachable: {health_url}")
            else:
                failures += 1
                report(
                    "FAIL",
                    f"Server health check returned HTTP {response.status_code}: {health_url}",
                    "Start server: linknotes serve",
                )
        except httpx.HTTPError as e:
            failures += 1
            report(
                "FAIL",
                f"Server is not reachable at {health_url} ({e})",
                "Start server and ensure API URL matches --api-url",
            )

    click.echo("-" * 60)
    click.echo(f"Summary: {failures} fail, {warnings} warn")

    if failures:
        sys.exit(1)
    sys.exit(0)


@cli.command()
@config_dir_option
def stats(config_dir: Optional[Path]):
    """Show bookmark counts per domain."""
    from .config import ConfigError
    from .core.errors import LinknotesError

    async def action(engine):
        return engine.manager.stats()

    try:
        result = _run_with_engine(config_dir, action)
    except (ConfigError, LinknotesError) as e:
        _fail(str(e))

    click.echo(f"Domains: {result.total_domains}")
    click.echo(f"Bookmarks: {result.total_bookmarks}")
    for entry in result.domains:
        click.echo(f"  {entry.count:>5}  {entry.domain}")


@cli.command()
@click.argument("query", default="")
@click.option("--limit", type=int, default=20, show_default=True, help="Maximum results to show")
@config_dir_option
def search(query: str, limit: int, config_dir: Optional[Path]):
    """Search titles, URLs, descriptions and notes."""
    from .config import ConfigError
    from .core.errors import LinknotesError

    async def action(engine):
        return engine.manager.search(query)

    try:
        results = _run_with_engine(config_dir, action)
    except (ConfigError, LinknotesError) as e:
        _fail(str(e))

    click.echo(f"{len(results)} match(es)")
    for bookmark in results[:limit]:
        click.echo(f"- {bookmark.title or bookmark.url}")
        click.echo(f"  {bookmark.url}")
        for note in bookmark.notes:
            click.echo(f"    * {note.text}")


@cli.command()
@click.argument("output", type=click.Path(path_type=Path, dir_okay=False), required=False)
@config_dir_option
def export(output: Optional[Path], config_dir: Optional[Path]):
    """Export all bookmarks as JSON (to OUTPUT or stdout)."""
    from .config import ConfigError
    from .core.errors import LinknotesError

    async def action(engine):
        return engine.store.export_json()

    try:
        document = _run_with_engine(config_dir, action)
    except (ConfigError, LinknotesError) as e:
        _fail(str(e))

    if output is None:
        click.echo(document)
        return

    output.write_text(document, encoding="utf-8")
    click.echo(f"[OK] Exported bookmarks to {output}")


@cli.command(name="import")
@click.argument("source", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "--replace",
    is_flag=True,
    default=False,
    help="Replace the whole store instead of merging",
)
@config_dir_option
def import_command(source: Path, replace: bool, config_dir: Optional[Path]):
    """Import a JSON export into the store.

    By default SOURCE may be a list of bookmarks, a synced bookmarks document
    or a domain map; invalid records are skipped and counted. With --replace
    SOURCE must be a domain map and replaces every stored bookmark.
    """
    from .config import ConfigError
    from .core.errors import LinknotesError

    if replace:
        click.confirm("This replaces every stored bookmark. Continue?", abort=True)

    data = source.read_text(encoding="utf-8")

    async def action(engine):
        if replace:
            return await engine.manager.import_bookmarks(data, merge=False)
        return await engine.manager.import_file(data)

    try:
        result = _run_with_engine(config_dir, action, verify_remote=True)
    except (ConfigError, LinknotesError) as e:
        _fail(str(e))

    if replace:
        click.echo(f"[OK] Replaced store with {result.added} bookmarks")
        return

    click.echo(f"[OK] Imported {result.imported} bookmarks ({result.created} new)")
    if result.invalid:
        click.echo(f"     {result.invalid} invalid records skipped")


@cli.command(name="import-pocket")
@click.argument("source", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@config_dir_option
def import_pocket(source: Path, config_dir: Optional[Path]):
    """Import a Pocket CSV export, fetching page details for each link."""
    from .config import ConfigError
    from .core.errors import LinknotesError

    csv_text = source.read_text(encoding="utf-8")

    def progress(done: int, total: int, status: str) -> None:
        click.echo(f"[{done}/{total}] {status}")

    async def action(engine):
        return await engine.pipeline.import_csv(csv_text, progress=progress)

    try:
        job = _run_with_engine(config_dir, action, verify_remote=True)
    except (ConfigError, LinknotesError) as e:
        _fail(str(e))

    click.echo("-" * 60)
    click.echo(f"Imported: {job.success}  Failed: {job.error}  Skipped: {job.skipped}")
    for message in job.errors:
        click.echo(f"  ! {message}")


@cli.command()
@click.argument("token", required=False)
@config_dir_option
def connect(token: Optional[str], config_dir: Optional[Path]):
    """Store a GitHub token (gist scope) for sync."""
    from .config import ConfigError
    from .core.errors import LinknotesError

    if not token:
        token = click.prompt("GitHub token", hide_input=True)

    async def action(engine):
        if not await engine.client.connect(token):
            return None
        return await engine.client.get_user_info()

    try:
        user = _run_with_engine(config_dir, action)
    except (ConfigError, LinknotesError) as e:
        _fail(str(e))

    if user is None:
        _fail("Token was rejected by GitHub")

    click.echo(f"[OK] Connected as {user.get('login', 'unknown user')}")


@cli.command()
@config_dir_option
def disconnect(config_dir: Optional[Path]):
    """Forget the stored token and remote document id."""
    from .config import ConfigError, ConfigManager
    from .models.sync import SyncState

    try:
        ConfigManager(config_dir).save_sync_state(SyncState())
    except ConfigError as e:
        _fail(str(e))

    click.echo("[OK] Disconnected; the remote gist was left untouched")


@cli.command(name="sync-up")
@config_dir_option
def sync_up(config_dir: Optional[Path]):
    """Push every bookmark to the remote gist now."""
    from .config import ConfigError
    from .core.errors import LinknotesError

    async def action(engine):
        return await engine.orchestrator.sync_up()

    try:
        result = _run_with_engine(config_dir, action, verify_remote=True)
    except (ConfigError, LinknotesError) as e:
        _fail(str(e))

    click.echo(f"[OK] Uploaded to gist {result.document_id}")
    if result.url:
        click.echo(f"     {result.url}")


@cli.command(name="sync-down")
@config_dir_option
def sync_down(config_dir: Optional[Path]):
    """Pull the remote gist and merge it into the local store."""
    from .config import ConfigError
    from .core.errors import LinknotesError

    async def action(engine):
        return await engine.orchestrator.sync_down()

    try:
        received = _run_with_engine(config_dir, action, verify_remote=True)
    except (ConfigError, LinknotesError) as e:
        _fail(str(e))

    click.echo(f"[OK] Downloaded {received} bookmarks")


@cli.command(name="auto-sync")
@click.argument("state", type=click.Choice(["on", "off"], case_sensitive=False))
@config_dir_option
def auto_sync(state: str, config_dir: Optional[Path]):
    """Turn automatic pushing after changes on or off."""
    from .config import ConfigError, ConfigManager
    from .models.sync import SyncSettings

    enabled = state.lower() == "on"
    try:
        ConfigManager(config_dir).save_sync_settings(SyncSettings(auto_sync_enabled=enabled))
    except ConfigError as e:
        _fail(str(e))

    click.echo(f"[OK] Auto-sync {'enabled' if enabled else 'disabled'}")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
