"""Command line interface for the Reelshelf project."""

from __future__ import annotations

import difflib
import threading
from concurrent import futures
from pathlib import Path
from typing import Any, Callable

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from reelshelf import events
from reelshelf.config import ConfigError, ConfigManager, ReelshelfConfig, resolve_with_precedence
from reelshelf.config.resolver import assign_dotted
from reelshelf.controller import LibraryController, ScanReport
from reelshelf.errors import ReelshelfError
from reelshelf.library import MetadataEdit, VideoEntry
from reelshelf.logs import configure_logging
from reelshelf.metadata.parsing import parse_release_date
from reelshelf.watch import WatchService

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """
    if quiet and mode != "error":
        return

    important_modes = {"summary", "warning", "error"}
    if summary_only and mode not in important_modes:
        return

    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands.

    Args:
        command: Command name to include in the summary.
        root: Library directory relevant to the command.
        metrics: Ordered mapping of metric names to values.

    Returns:
        str: Rich-formatted summary string.
    """
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _load_config(ctx: click.Context) -> ReelshelfConfig:
    """Load configuration, applying the group-level ``--library-dir`` override."""
    manager = ConfigManager()
    manager.ensure_exists()
    overrides: dict[str, Any] = {}
    library_dir = (ctx.obj or {}).get("library_dir")
    if library_dir:
        overrides["library.base_directory"] = library_dir
    return manager.load(cli_overrides=overrides or None)


def _resolve_modes(
    ctx: click.Context,
    config: ReelshelfConfig,
    *,
    quiet: bool,
    summary_mode: bool,
    json_output: bool,
) -> tuple[bool, bool]:
    """Combine explicit flags with configured defaults.

    Returns:
        tuple[bool, bool]: Effective ``(quiet, summary_only)`` flags.

    Raises:
        click.ClickException: If the combination of modes is invalid.
    """
    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _create_controller(config: ReelshelfConfig) -> LibraryController:
    """Build the controller and attach logging handlers for its base directory."""
    controller = LibraryController(config)
    configure_logging(config.logging, controller.context.base_directory)
    return controller


def _status_printer(*, quiet: bool, summary_only: bool) -> Callable[[events.LibraryEvent], None]:
    def _print(event: events.LibraryEvent) -> None:
        if event.kind == events.STATUS and event.payload:
            _emit_message(
                f"[cyan]{event.payload}[/cyan]",
                mode="detail",
                quiet=quiet,
                summary_only=summary_only,
            )

    return _print


def _entry_record(controller: LibraryController, entry: VideoEntry) -> dict[str, Any]:
    meta = entry.meta
    return {
        "path": entry.path,
        "title": meta.title,
        "release_date": meta.release_date.isoformat() if meta.release_date else None,
        "actors": list(meta.actors),
        "tags": list(meta.tags),
        "thumbnail": meta.thumbnail,
        "size_bytes": entry.size_bytes,
        "present": controller.store.exists(entry.path),
        "metadata_missing": controller.is_metadata_missing(entry),
    }


def _scan_payload(report: ScanReport) -> dict[str, Any]:
    return {
        "added": report.added,
        "missing": report.missing,
        "updated": report.updated,
        "pruned": report.pruned,
        "scanned_at": report.scanned_at.isoformat() if report.scanned_at else None,
        "summary": report.summary(),
    }


def _scan_metrics(report: ScanReport) -> dict[str, Any]:
    return {
        "added": len(report.added),
        "missing": len(report.missing),
        "updated": len(report.updated),
        "pruned": report.pruned,
    }


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="reelshelf")
@click.option(
    "--library-dir",
    type=click.Path(file_okay=False, path_type=str),
    help="Directory holding the catalog; overrides library.base_directory.",
)
@click.pass_context
def cli(ctx: click.Context, library_dir: str | None) -> None:
    """Reelshelf catalogs local video files and fills in their metadata."""
    ctx.ensure_object(dict)
    ctx.obj["library_dir"] = library_dir


@cli.command()
@click.option("--no-enrich", is_flag=True, help="Skip fetching metadata for new entries.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the scan.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def scan(
    ctx: click.Context,
    no_enrich: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Scan the target folders and reconcile the catalog.

    New entries are queued for metadata enrichment and the command waits for
    the queue to drain unless ``--no-enrich`` is given.

    Args:
        ctx: Click context used for parameter source inspection.
        no_enrich: When True, leave new entries without fetched metadata.
        json_output: If True, emit JSON describing the scan.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.
    """
    controller: LibraryController | None = None
    try:
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        controller = _create_controller(config)
        if not json_output:
            controller.events.subscribe(
                _status_printer(quiet=quiet_enabled, summary_only=summary_only)
            )
        controller.initialize()

        report = controller.run_scan(enrich=not no_enrich)
        if report is None:
            raise click.ClickException("Scan did not complete. See the log for details.")
        if not no_enrich:
            controller.wait_for_enrichment()

        root = controller.context.base_directory
        if json_output:
            payload = _scan_payload(report)
            payload["library"] = str(root)
            payload["missing_metadata"] = len(controller.missing_metadata())
            console.print_json(data=payload)
            return

        for path in report.missing:
            _emit_message(
                f"[yellow]Missing: {path}[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        _emit_message(
            _format_summary_line("Scan", root, _scan_metrics(report)),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_output, original=exc)
    except ReelshelfError as exc:
        _handle_cli_error(str(exc), code="library_error", json_output=json_output, original=exc)
    finally:
        if controller is not None:
            controller.close()


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit status information as JSON.")
@click.option("--missing-only", is_flag=True, help="Only list entries lacking metadata.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def status(
    ctx: click.Context,
    json_output: bool,
    missing_only: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Display the catalog entries and which ones still lack metadata.

    Args:
        ctx: Click context for parameter source inspection.
        json_output: When True, emit JSON instead of textual output.
        missing_only: When True, list only entries without fetched metadata.
        summary_mode: When True, restrict output to summary lines and warnings.
        quiet: When True, suppress non-error output entirely.
    """
    controller: LibraryController | None = None
    try:
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        controller = _create_controller(config)
        catalog = controller.initialize()

        records = [_entry_record(controller, entry) for entry in catalog.videos]
        if missing_only:
            records = [record for record in records if record["metadata_missing"]]
        counts = {
            "videos": len(catalog.videos),
            "missing_metadata": sum(
                1 for entry in catalog.videos if controller.is_metadata_missing(entry)
            ),
            "missing_files": sum(
                1 for entry in catalog.videos if not controller.store.exists(entry.path)
            ),
            "targets": len(catalog.targets),
        }
        root = controller.context.base_directory

        if json_output:
            console.print_json(
                data={
                    "library": str(root),
                    "catalog": str(controller.store.path),
                    "targets": [target.to_document() for target in catalog.targets],
                    "videos": records,
                    "counts": counts,
                }
            )
            return

        if records:
            table = Table(title=f"Catalog for {root}")
            table.add_column("Path", overflow="fold")
            table.add_column("Title", overflow="fold")
            table.add_column("Date")
            table.add_column("File")
            table.add_column("Metadata")
            for record in records:
                table.add_row(
                    record["path"],
                    record["title"],
                    record["release_date"] or "-",
                    "present" if record["present"] else "[yellow]missing[/yellow]",
                    "[yellow]missing[/yellow]" if record["metadata_missing"] else "ok",
                )
            _emit_message(table, mode="detail", quiet=quiet_enabled, summary_only=summary_only)
        else:
            _emit_message(
                "[yellow]No catalog entries to display.[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )

        _emit_message(
            _format_summary_line("Status", root, counts),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_output, original=exc)
    except Exception as exc:
        _handle_cli_error(
            f"Unexpected error while reading status: {exc}",
            code="internal_error",
            json_output=json_output,
            details={"exception": type(exc).__name__},
            original=exc,
        )
    finally:
        if controller is not None:
            controller.close()


@cli.command()
@click.argument("path")
@click.option("--json", "json_output", is_flag=True, help="Emit the updated entry as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def enrich(ctx: click.Context, path: str, json_output: bool, quiet: bool) -> None:
    """Fetch metadata for the catalog entry at library PATH right away.

    Args:
        ctx: Click context.
        path: Library path of the entry, as stored in the catalog.
        json_output: When True, emit JSON describing the result.
        quiet: When True, suppress non-error output.
    """
    controller: LibraryController | None = None
    try:
        config = _load_config(ctx)
        quiet_enabled, _ = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=False, json_output=json_output
        )
        controller = _create_controller(config)
        if not json_output:
            controller.events.subscribe(_status_printer(quiet=quiet_enabled, summary_only=False))
        controller.initialize()

        if controller.find(path) is None:
            raise click.ClickException(f"No catalog entry found for {path}.")

        updated = controller.enrich_now(path)
        if json_output:
            console.print_json(
                data={
                    "path": path,
                    "updated": updated is not None,
                    "entry": _entry_record(controller, updated) if updated else None,
                }
            )
            return
        if updated is None:
            _emit_message(
                f"[yellow]No metadata found for {path}.[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=False,
            )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_output, original=exc)
    except ReelshelfError as exc:
        _handle_cli_error(str(exc), code="library_error", json_output=json_output, original=exc)
    finally:
        if controller is not None:
            controller.close()


@cli.command()
@click.argument("path")
@click.option("--title", type=str, help="New title (required to be non-blank).")
@click.option("--date", "release_date", type=str, help="Release date; pass '' to clear it.")
@click.option("--actors", type=str, help="Actors separated by commas, semicolons, or newlines.")
@click.option("--tags", type=str, help="Tags separated by commas, semicolons, or newlines.")
@click.option("--description", type=str, help="New description.")
@click.option(
    "--thumbnail",
    "thumbnail_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Image file to import as the thumbnail.",
)
@click.option("--reset-thumbnail", is_flag=True, help="Restore the placeholder thumbnail.")
@click.pass_context
def edit(
    ctx: click.Context,
    path: str,
    title: str | None,
    release_date: str | None,
    actors: str | None,
    tags: str | None,
    description: str | None,
    thumbnail_file: Path | None,
    reset_thumbnail: bool,
) -> None:
    """Edit the metadata of the catalog entry at library PATH.

    Options that are not given keep their current values.

    Raises:
        click.ClickException: If the entry is unknown or the edit is invalid.
    """
    if thumbnail_file is not None and reset_thumbnail:
        raise click.ClickException("--thumbnail cannot be combined with --reset-thumbnail.")

    controller: LibraryController | None = None
    try:
        config = _load_config(ctx)
        controller = _create_controller(config)
        controller.initialize()

        entry = controller.find(path)
        if entry is None:
            raise click.ClickException(f"No catalog entry found for {path}.")

        meta = entry.meta
        parsed_date = meta.release_date
        if release_date is not None:
            parsed_date = parse_release_date(release_date) if release_date.strip() else None
            if release_date.strip() and parsed_date is None:
                raise click.ClickException(f"Unrecognized date: {release_date}")

        try:
            change = MetadataEdit(
                title=meta.title if title is None else title,
                release_date=parsed_date,
                actors=meta.actors if actors is None else actors,
                tags=meta.tags if tags is None else tags,
                description=meta.description if description is None else description,
                thumbnail_file=thumbnail_file,
                reset_thumbnail=reset_thumbnail,
            )
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc

        try:
            updated = controller.apply_metadata_edit(path, change)
        except (ValueError, OSError) as exc:
            raise click.ClickException(f"Unable to import thumbnail: {exc}") from exc
        console.print(f"[green]Updated {updated.path}.[/green]")
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    except ReelshelfError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        if controller is not None:
            controller.close()


@cli.command()
@click.option("--keep-open", is_flag=True, help="Leave the browser open until you close it.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def crawl(ctx: click.Context, keep_open: bool, summary_mode: bool, quiet: bool) -> None:
    """Open the automation browser and fill in entries lacking metadata.

    Args:
        ctx: Click context for parameter source inspection.
        keep_open: When True, wait for the browser window to be closed.
        summary_mode: When True, restrict output to summary lines and warnings.
        quiet: When True, suppress non-error output entirely.
    """
    controller: LibraryController | None = None
    cancel_event = threading.Event()
    try:
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=False
        )
        controller = _create_controller(config)
        controller.events.subscribe(_status_printer(quiet=quiet_enabled, summary_only=summary_only))
        controller.initialize()

        result = controller.start_crawler()
        if not result.started:
            raise click.ClickException(result.message)

        try:
            report = controller.fetch_missing_with_crawler(cancel_event)
            if keep_open:
                controller.session.wait_stopped()
        except KeyboardInterrupt:
            cancel_event.set()
            _emit_message(
                "[yellow]Crawl stopped by user request.[/yellow]",
                mode="summary",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            return

        _emit_message(
            _format_summary_line(
                "Crawl",
                controller.context.base_directory,
                {
                    "candidates": report.total,
                    "updated": report.updated,
                    "skipped": report.skipped,
                    "failed": report.failed,
                },
            ),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    except ReelshelfError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        if controller is not None:
            controller.close()


@cli.command()
@click.option("--debounce", type=float, help="Override debounce interval in seconds.")
@click.option("--once", is_flag=True, help="Scan once and exit instead of watching.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON for every scan.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def watch(
    ctx: click.Context,
    debounce: float | None,
    once: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Rescan the library whenever files under the target folders change.

    Args:
        ctx: Click context for parameter source inspection.
        debounce: Optional debounce override in seconds.
        once: When True, perform a single scan and exit.
        json_output: When True, emit JSON payloads instead of text.
        summary_mode: When True, restrict output to summary/warning lines.
        quiet: When True, suppress non-error output entirely.
    """
    if debounce is not None and debounce <= 0:
        raise click.ClickException("--debounce must be greater than zero.")

    try:
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output)
        return

    controller = _create_controller(config)
    root = controller.context.base_directory

    def _emit_report(report: ScanReport | None) -> None:
        if report is None:
            return
        if json_output:
            console.print_json(data=_scan_payload(report))
            return
        _emit_message(
            _format_summary_line("Watch", root, _scan_metrics(report)),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    try:
        if not json_output:
            controller.events.subscribe(
                _status_printer(quiet=quiet_enabled, summary_only=summary_only)
            )
        controller.initialize()
        initial_cancel = threading.Event()
        initial_scan = controller.start_background_scan(initial_cancel)
        try:
            report = initial_scan.result()
        except KeyboardInterrupt:
            initial_cancel.set()
            futures.wait([initial_scan])
            _emit_message(
                "[yellow]Watch stopped by user request.[/yellow]",
                mode="summary",
                quiet=quiet_enabled or json_output,
                summary_only=summary_only,
            )
            return
        _emit_report(report)
        if once:
            controller.wait_for_enrichment()
            return

        service = WatchService(controller, config.watch, debounce_override=debounce)
        if not json_output:
            monitored = ", ".join(str(path) for path in controller.target_roots())
            _emit_message(
                f"[cyan]Watching {monitored}. Press Ctrl+C to stop.[/cyan]",
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        try:
            service.watch(_emit_report)
        except KeyboardInterrupt:
            service.stop()
            if not json_output:
                _emit_message(
                    "[yellow]Watch stopped by user request.[/yellow]",
                    mode="summary",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
    except ReelshelfError as exc:
        _handle_cli_error(str(exc), code="library_error", json_output=json_output, original=exc)
    except RuntimeError as exc:
        _handle_cli_error(
            str(exc), code="watch_runtime_error", json_output=json_output, original=exc
        )
    finally:
        controller.close()


@cli.group()
def config() -> None:
    """Manage Reelshelf configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        config = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'crawler.headless'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    file_data = manager.load_file_overrides()
    try:
        assign_dotted(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=ReelshelfConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    diff = list(
        difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    # The timestamp line always changes; only report real edits.
    meaningful = [
        line
        for line in diff
        if line.startswith(("+", "-"))
        and not line.startswith(("+++", "---"))
        and "# Last updated:" not in line
    ]
    if not meaningful:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
