"""xmlatlas CLI: group XML corpora by structural skeleton, inspect and lint files."""

import json
import logging
import os
import sys
import time

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from .config import DEFAULT_CONFIG_PATH, AtlasConfig
from .discovery import find_xml_files, validate_directory
from .errors import ConfigError, DocumentReadError, ParseError
from .processor import process_files, write_result
from .report import print_summary
from .shape import extract_file
from .skeleton import dump_json, reduce
from .validate import validate_file

console = Console()

_LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_log_level(level: str) -> int:
    """Map a level name to a logging level; unknown names fall back to INFO."""
    value = _LOG_LEVELS.get(level.lower())
    if value is None:
        click.echo(f"Invalid log level '{level}', defaulting to INFO", err=True)
        return logging.INFO
    return value


def _init_logging(level: str, log_file: str | None = None):
    log = logging.getLogger("xmlatlas")
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
    log.setLevel(parse_log_level(level))
    log.propagate = False

    log.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )
        log.addHandler(file_handler)


@click.group()
def main():
    """xmlatlas: XML corpus structure analysis toolkit."""
    pass


@main.command()
@click.argument("directory")
@click.option("-o", "--output", type=click.Path(), help="Output JSON file path")
@click.option("-c", "--config", "config_path", default=DEFAULT_CONFIG_PATH, show_default=True,
              help="YAML configuration file")
@click.option("-t", "--threads", type=click.IntRange(min=0), help="Worker threads (0 = auto)")
@click.option("-d", "--max-depth", type=click.IntRange(min=0),
              help="Maximum directory depth (0 = unlimited)")
@click.option("-l", "--log-level", help="trace, debug, info, warn, error")
@click.option("--no-progress", is_flag=True, help="Disable progress bar")
@click.option("--no-pretty", is_flag=True, help="Write compact JSON")
@click.option("-v", "--verbose", is_flag=True, help="Same as --log-level debug")
@click.option("--top", type=click.IntRange(min=1), default=5, show_default=True,
              help="Number of structures in the summary")
@click.option("--examples", is_flag=True, help="Include one full example tree per group")
def analyze(directory, output, config_path, threads, max_depth, log_level,
            no_progress, no_pretty, verbose, top, examples):
    """Group the XML files under DIRECTORY by structural skeleton."""
    if os.path.exists(config_path):
        try:
            config = AtlasConfig.from_file(config_path)
        except ConfigError as e:
            console.print(f"[red]Config error:[/] {e}")
            sys.exit(1)
    else:
        console.print(f"[yellow]Config file {config_path} not found, using defaults[/]")
        config = AtlasConfig.default()

    config.merge_with_cli(
        output=output,
        threads=threads,
        max_depth=max_depth,
        log_level="debug" if verbose else log_level,
        no_pretty=no_pretty,
    )

    try:
        _init_logging(config.logging.level, config.logging.log_file)
    except OSError as e:
        console.print(f"[red]Cannot open log file:[/] {e}")
        sys.exit(1)

    logger = logging.getLogger("xmlatlas.cli")
    logger.info("Input directory: %s", directory)
    logger.info("Output file: %s", config.output.output_file)

    try:
        validate_directory(directory)
    except (FileNotFoundError, NotADirectoryError) as e:
        console.print(f"[red]{e}[/]")
        sys.exit(1)

    start = time.perf_counter()
    proc = config.processing
    files = find_xml_files(directory, proc.file_extensions, proc.max_depth)
    if not files:
        console.print(f"[yellow]No XML files found in {directory}.[/]")
        sys.exit(1)

    if proc.num_threads:
        logger.info("Using %d threads", proc.num_threads)
    else:
        logger.info("Using auto-detected thread count")

    if no_progress:
        result = process_files(files, workers=proc.num_threads)
    else:
        with Progress(
            SpinnerColumn(),
            "[progress.description]{task.description}",
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Processing", total=len(files))
            result = process_files(
                files,
                workers=proc.num_threads,
                progress=lambda: progress.advance(task),
            )

    out = config.output
    try:
        write_result(result, out.output_file, pretty=out.pretty_print,
                     include_paths=out.include_paths, include_examples=examples)
    except OSError as e:
        console.print(f"[red]Failed to write {out.output_file}:[/] {e}")
        sys.exit(1)

    print_summary(result, console, top=top)
    console.print(f"\nTotal time: {time.perf_counter() - start:.2f}s")
    console.print(f"[green]Results saved to {out.output_file}[/]")


@main.command()
@click.argument("path")
@click.option("-f", "--format", "fmt", type=click.Choice(["yaml", "json"]), default="yaml")
def skeleton(path, fmt):
    """Print the merged skeleton and fingerprint of a single XML file."""
    try:
        shape = extract_file(path)
    except (ParseError, DocumentReadError) as e:
        console.print(f"[red]Error reading {path}:[/] {e}", highlight=False)
        sys.exit(1)

    skel = reduce(shape)
    data = {
        "file": path,
        "root": skel.root_name,
        "hash": skel.hex_hash,
        "skeleton": skel.merged_shape,
    }
    if fmt == "json":
        click.echo(dump_json(data, indent=2))
    else:
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True))


@main.command()
@click.argument("files", nargs=-1, required=True)
@click.option("-f", "--format", "fmt", type=click.Choice(["table", "json"]), default="table")
def check(files, fmt):
    """Check XML files against TEI rules (<pb> attributes, <head> placement)."""
    reports = []
    for path in files:
        try:
            reports.append((path, validate_file(path)))
        except OSError as e:
            console.print(f"[red]Cannot read {path}:[/] {e}")
            sys.exit(1)

    if fmt == "json":
        data = [{"file": path, "valid": rep.is_valid(), **rep.to_dict()} for path, rep in reports]
        click.echo(json.dumps(data, indent=2))
    else:
        _print_check_table(reports)

    if not all(rep.is_valid() for _, rep in reports):
        sys.exit(1)


def _print_check_table(reports):
    table = Table(title="TEI Validation", show_lines=True)
    table.add_column("File", style="cyan")
    table.add_column("Severity", width=9)
    table.add_column("Pos", justify="right")
    table.add_column("Message")

    styles = {"error": "[bold red]ERROR[/]", "warning": "[yellow]WARN[/]", "info": "[blue]INFO[/]"}
    for path, rep in reports:
        entries = (
            [("error", m) for m in rep.errors]
            + [("warning", m) for m in rep.warnings]
            + [("info", m) for m in rep.info]
        )
        if not entries:
            console.print(f"[green]Validation passed:[/] {path}", highlight=False)
            continue
        for severity, msg in entries:
            pos = str(msg.line) if msg.column is None else f"{msg.line}:{msg.column}"
            table.add_row(path, styles[severity], pos, Text(msg.text))

    if table.row_count:
        console.print(table)
    total_errors = sum(len(rep.errors) for _, rep in reports)
    total_warnings = sum(len(rep.warnings) for _, rep in reports)
    console.print(f"Total: {total_errors} errors, {total_warnings} warnings")
