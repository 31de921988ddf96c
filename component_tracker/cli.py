"""Click-based command-line interface for the component tracker."""

import functools
import json
import sys
from pathlib import Path
from typing import Any

import click

from .config import ScanOptions, load_config
from .errors import RepositoryNotFoundError, TrackerError, handle_exception
from .tracker import ComponentTracker
from .tracker_logging import setup_logging


def handle_errors(f: Any) -> Any:
    """Report TrackerErrors with their suggestion and exit code."""

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        ctx = click.get_current_context()
        try:
            return f(*args, **kwargs)
        except TrackerError as e:
            message, exit_code = handle_exception(
                e, use_color=sys.stderr.isatty(), verbose=ctx.obj.get("verbose", False)
            )
            click.echo(message, err=True)
            ctx.exit(exit_code)

    return wrapper


def _tracker(ctx: click.Context) -> ComponentTracker:
    """Create the tracker on first use so config errors surface per command."""
    if ctx.obj.get("tracker") is None:
        ctx.obj["tracker"] = ComponentTracker(ctx.obj["config"])
    return ctx.obj["tracker"]


@click.group()
@click.version_option(version="1.0.0")
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    help="Directory holding persisted repositories",
)
@click.option("--config", "config_file", type=click.Path(exists=True), help="JSON configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")
@click.pass_context
def cli(
    ctx: click.Context,
    state_dir: str | None,
    config_file: str | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Track UI components across repositories and compare their consistency."""
    ctx.ensure_object(dict)
    if quiet and verbose:
        click.echo("Error: --quiet and --verbose are mutually exclusive", err=True)
        ctx.exit(1)

    try:
        config = load_config(
            Path(config_file) if config_file else None,
            state_dir=Path(state_dir) if state_dir else None,
        )
    except TrackerError as e:
        message, exit_code = handle_exception(e, use_color=sys.stderr.isatty())
        click.echo(message, err=True)
        ctx.exit(exit_code)

    setup_logging(
        level=config.log_level,
        quiet=quiet,
        verbose=verbose,
        log_file=config.log_file,
        log_format=config.log_format,
    )
    ctx.obj.update({"config": config, "verbose": verbose, "quiet": quiet})


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--name", help="Display name (defaults to package.json name)")
@click.option("--description", help="Repository description")
@click.option("--scan", "scan_now", is_flag=True, help="Scan immediately after adding")
@click.pass_context
@handle_errors
def add(
    ctx: click.Context,
    path: str,
    name: str | None,
    description: str | None,
    scan_now: bool,
) -> None:
    """Register a local repository."""
    tracker = _tracker(ctx)
    repository = tracker.add_repository(path, name=name, description=description)
    click.echo(f"✅ Registered {repository.name} ({repository.id})")
    if scan_now:
        library = tracker.scan_repository(repository.id)
        click.echo(f"   Components: {len(library.components)}")


@cli.command("add-figma")
@click.argument("url", required=False)
@click.option(
    "--file",
    "export_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Figma JSON export instead of a URL",
)
@click.option("--name", help="Display name")
@click.option("--token", envvar="FIGMA_API_TOKEN", help="Figma personal access token")
@click.pass_context
@handle_errors
def add_figma(
    ctx: click.Context,
    url: str | None,
    export_file: str | None,
    name: str | None,
    token: str | None,
) -> None:
    """Import components from a Figma file URL or JSON export."""
    if bool(url) == bool(export_file):
        raise click.UsageError("Provide exactly one of URL or --file")

    tracker = _tracker(ctx)
    if export_file:
        content = Path(export_file).read_bytes()
        repository = tracker.import_figma_export(
            content, name=name or Path(export_file).stem, source=str(export_file)
        )
    else:
        repository = tracker.add_figma_repository(url, name=name, token=token)
    click.echo(
        f"✅ Imported {repository.name} ({repository.id}): "
        f"{repository.component_count} components"
    )


@cli.command("add-library")
@click.argument("url")
@click.option("--token", help="Bearer token for authenticated libraries")
@click.option("--name", help="Display name")
@click.pass_context
@handle_errors
def add_library(ctx: click.Context, url: str, token: str | None, name: str | None) -> None:
    """Import a published component library manifest."""
    repository = _tracker(ctx).add_library_repository(url, auth_token=token, name=name)
    click.echo(
        f"✅ Imported {repository.name} ({repository.id}): "
        f"{repository.component_count} components"
    )


@cli.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
@handle_errors
def list_repositories(ctx: click.Context, as_json: bool) -> None:
    """List registered repositories."""
    repositories = _tracker(ctx).list_repositories()
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in repositories], indent=2))
        return
    if not repositories:
        click.echo("No repositories registered")
        return
    for repo in repositories:
        scanned = repo.last_scanned.strftime("%Y-%m-%d %H:%M") if repo.last_scanned else "never"
        click.echo(f"{repo.id}  {repo.name}  [{repo.kind.value}]")
        click.echo(f"   {repo.path}")
        click.echo(f"   Components: {repo.component_count}  Last scanned: {scanned}")


@cli.command()
@click.argument("repository_id")
@click.option("--include", multiple=True, help="Include glob (repeatable)")
@click.option("--exclude", multiple=True, help="Exclude glob (repeatable)")
@click.option("--max-depth", type=click.IntRange(min=0), help="Maximum directory depth")
@click.option("--max-file-bytes", type=click.IntRange(min=0), help="Skip files larger than this")
@click.pass_context
@handle_errors
def scan(
    ctx: click.Context,
    repository_id: str,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    max_depth: int | None,
    max_file_bytes: int | None,
) -> None:
    """Rescan one repository and replace its components."""
    overrides: dict[str, Any] = {}
    if include:
        overrides["include_patterns"] = list(include)
    if exclude:
        overrides["exclude_patterns"] = list(exclude)
    if max_depth is not None:
        overrides["max_depth"] = max_depth
    if max_file_bytes is not None:
        overrides["max_file_bytes"] = max_file_bytes

    config = ctx.obj["config"]
    options = ScanOptions(**{**config.scan.model_dump(), **overrides})
    library = _tracker(ctx).scan_repository(repository_id, options)
    click.echo(f"✅ Scanned {library.repository.name}: {len(library.components)} components")


@cli.command("scan-all")
@click.pass_context
@handle_errors
def scan_all(ctx: click.Context) -> None:
    """Scan every registered repository concurrently."""
    results = _tracker(ctx).scan_repositories()
    if not results:
        click.echo("No repositories registered")
        return
    failed = 0
    for result in results:
        if result.success:
            click.echo(f"✅ {result.repository_id}: {result.component_count} components")
        else:
            failed += 1
            click.echo(f"❌ {result.repository_id}: {result.error}", err=True)
    if failed:
        ctx.exit(1)


@cli.command()
@click.argument("repository_id")
@click.pass_context
@handle_errors
def remove(ctx: click.Context, repository_id: str) -> None:
    """Remove a repository and its components."""
    if not _tracker(ctx).remove_repository(repository_id):
        raise RepositoryNotFoundError(repository_id)
    click.echo(f"🗑️ Removed {repository_id}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
@handle_errors
def compare(ctx: click.Context, as_json: bool) -> None:
    """Compare same-named components across repositories, least consistent first."""
    comparisons = _tracker(ctx).compare()
    if as_json:
        click.echo(json.dumps([c.to_dict() for c in comparisons], indent=2))
        return
    if not comparisons:
        click.echo("No components to compare")
        return
    for comparison in comparisons:
        present = sum(1 for p in comparison.repositories if p.exists)
        click.echo(
            f"{comparison.consistency_score:>3}  {comparison.component_name}  "
            f"({present}/{len(comparison.repositories)} repositories)"
        )
        for difference in comparison.differences:
            click.echo(f"       - {difference}")


@cli.command()
@click.option("--host", help="Bind address")
@click.option("--port", type=int, help="Port (default 5055 or SCANNER_PORT)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the scanner HTTP API."""
    from .server import run_server

    config = ctx.obj["config"]
    updates = {k: v for k, v in {"server_host": host, "server_port": port}.items() if v}
    run_server(config.model_copy(update=updates))


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
