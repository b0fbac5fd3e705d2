from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
import typing as t

import typer

from .config.settings import COMMENT_POLICIES, CONFIG_FILE, Settings, load_config_file, settings
from .errors import ConfigError

app = typer.Typer(add_completion=True, help="Generate Lua declaration files for FiveM resource exports and state bags")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _resolve_settings(config: t.Optional[Path]) -> Settings:
    if config is not None:
        return load_config_file(config, settings)
    default = Path.cwd() / CONFIG_FILE
    if default.is_file():
        return load_config_file(default, settings)
    return replace(settings)


@app.command()
def generate(
    input_dir: t.Optional[Path] = typer.Option(None, help="Directory containing the resources to scan"),
    output_dir: t.Optional[Path] = typer.Option(None, help="Directory the declaration files are written to"),
    config: t.Optional[Path] = typer.Option(None, dir_okay=False, help=f"Path to a {CONFIG_FILE} (default: ./{CONFIG_FILE} if present)"),
    exclude: t.Optional[t.List[str]] = typer.Option(None, help="Glob pattern to exclude, relative to the input directory (repeatable)"),
    comment_policy: t.Optional[str] = typer.Option(None, help="strict: a blank line ends a doc comment; lenient: blank lines are skipped"),
    annotate_units: t.Optional[bool] = typer.Option(None, help="Add 'Used by' lines to state declarations"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every processed file"),
) -> None:
    from .discovery import detect_unit_name, discover_lua_files
    from .io import DefinitionWriter
    from .pipeline import run_extraction

    try:
        cfg = _resolve_settings(config)
        if input_dir is not None:
            cfg.INPUT_DIR = str(input_dir)
        if output_dir is not None:
            cfg.OUTPUT_DIR = str(output_dir)
        if exclude:
            cfg.EXCLUDE_PATTERNS = list(cfg.EXCLUDE_PATTERNS) + list(exclude)
        if comment_policy is not None:
            cfg.COMMENT_POLICY = comment_policy
        if annotate_units is not None:
            cfg.ANNOTATE_UNITS = annotate_units
        if verbose:
            cfg.VERBOSE = True
        options = cfg.scan_options()
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    _configure_logging(cfg.VERBOSE)

    source_root = Path(cfg.INPUT_DIR)
    if not source_root.is_dir():
        typer.echo(f"Error: input directory '{source_root}' is not a directory or not accessible.", err=True)
        raise typer.Exit(code=2)

    typer.echo(f"Input Directory: {source_root}")
    typer.echo(f"Output Directory: {cfg.OUTPUT_DIR}")

    files = discover_lua_files(source_root, cfg.EXCLUDE_PATTERNS)
    if not files:
        typer.echo("No Lua files found")
        return
    typer.echo(f"Found {_plural(len(files), 'Lua file')} to parse")

    run = run_extraction(files, lambda p: detect_unit_name(p, source_root), options, relative_to=source_root)
    snapshot = run.aggregator.snapshot()
    counts = snapshot.counts

    if run.files_skipped:
        typer.echo(f"Skipped {_plural(run.files_skipped, 'unreadable file')}")
    typer.echo(f"Found {_plural(counts.exports_observed, 'export')} ({counts.exports_unique} unique)")
    typer.echo(f"Found {counts.global_observed} GlobalState assignments ({counts.global_unique} unique)")
    typer.echo(f"Found {counts.entity_observed} player state assignments ({counts.entity_unique} unique)")

    if counts.exports_observed == 0 and not snapshot.has_state:
        typer.echo("No exports or state assignments found in Lua files")
        return

    writer = DefinitionWriter(Path(cfg.OUTPUT_DIR))
    for path in writer.write_snapshot(snapshot, annotate_units=cfg.ANNOTATE_UNITS):
        typer.echo(f"  Generated: {path}")

    typer.echo("Type generation complete")
    typer.echo("Add this to Lua.workspace.library in your editor settings:")
    typer.echo(f'  "{Path(cfg.OUTPUT_DIR).resolve()}"')


@app.command()
def inspect(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Lua file to scan"),
    input_dir: t.Optional[Path] = typer.Option(
        None,
        exists=True,
        file_okay=False,
        help="Resource root the file lives under; client/server/shared is then read from the path below it, as generate does. "
        "Without it the path is used as given.",
    ),
    comment_policy: str = typer.Option("strict", help=f"One of: {', '.join(COMMENT_POLICIES)}"),
) -> None:
    """Scan a single file and print what was found as JSON."""
    from .errors import SourceReadError
    from .pipeline import display_path, read_source
    from .scanner import ScanOptions, scan_source

    if comment_policy not in COMMENT_POLICIES:
        typer.echo(f"Error: unknown comment policy {comment_policy!r}", err=True)
        raise typer.Exit(code=1)
    try:
        text = read_source(file)
    except SourceReadError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if input_dir is not None:
        scan_path = display_path(file.resolve(), input_dir.resolve())
    else:
        scan_path = str(file)
    result = scan_source(text, scan_path, ScanOptions(comment_policy=comment_policy))  # type: ignore[arg-type]
    typer.echo(result.model_dump_json(indent=2))


if __name__ == "__main__":  # pragma: no cover
    app()
