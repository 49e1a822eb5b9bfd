#!/usr/bin/env python3
"""
chunkferry CLI

Command-line interface for the chunked transfer pipeline.

Usage:
    chunkferry split INPUT              # Split a file into ./chunks
    chunkferry upload CHUNKS_DIR        # Upload chunk files
    chunkferry download OUTPUT_DIR      # Download chunk files
    chunkferry merge CHUNKS_DIR OUTPUT  # Merge chunk files
    chunkferry all INPUT OUTPUT         # split -> upload -> download -> merge
    chunkferry inspect CHUNKS_DIR       # Show manifest and chunk files
"""

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.panel import Panel
from rich.logging import RichHandler
from rich.markup import escape

from .config import load_config
from .exceptions import PipelineError
from .file import chunk_path, load_manifest, expected_indices
from .file.chunker import MB
from .pipeline import ChunkPipeline

console = Console()


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    if verbose:
        level = 'DEBUG'
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


def run_stage(coro):
    """Run a pipeline coroutine; fatal pipeline errors exit with status 1."""
    try:
        return asyncio.run(coro)
    except PipelineError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='JSON config file')
@click.option('--chunk-size-mb', type=click.IntRange(min=1), help='Chunk size in MB')
@click.option('--max-chunks', type=click.IntRange(min=1), help='Maximum number of chunks')
@click.option('--fragment-size-mb', type=click.IntRange(min=1),
              help='Fragment size passed to the storage client, in MB')
@click.option('--client', 'client_command', help='Storage client command')
@click.option('--no-manifest', is_flag=True,
              help='Do not write or read manifest.json; try every chunk index instead')
@click.pass_context
def cli(ctx, verbose, config_path, chunk_size_mb, max_chunks, fragment_size_mb,
        client_command, no_manifest):
    """Split a file into chunks, move them through a storage client, merge them back."""
    try:
        config = load_config(Path(config_path) if config_path else None)
        if chunk_size_mb is not None:
            config.chunk_size = chunk_size_mb * MB
        if max_chunks is not None:
            config.max_chunks = max_chunks
        if fragment_size_mb is not None:
            config.fragment_size_mb = fragment_size_mb
        if client_command is not None:
            config.client_command = client_command
        if no_manifest:
            config.use_manifest = False
        config.validate()
    except PipelineError as e:
        raise click.ClickException(str(e))

    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


def chunk_progress(total=None):
    """Progress bar over chunks; returns (progress, callback)."""
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed:.0f} chunks"),
        console=console,
    )
    task = progress.add_task("Working...", total=total)

    def callback(index: int, size: int):
        progress.update(task, advance=1, description=f"Chunk {index} ({size / MB:.2f} MB)")

    return progress, callback


@cli.command()
@click.argument('input_file', type=click.Path())
@click.option('--chunks-dir', type=click.Path(file_okay=False), help='Output directory for chunks')
@click.pass_context
def split(ctx, input_file, chunks_dir):
    """Split INPUT_FILE into chunk files."""
    config = ctx.obj['config']
    pipeline = ChunkPipeline(config)
    input_path = Path(input_file)
    chunks_dir = Path(chunks_dir) if chunks_dir else config.chunks_dir

    total = config.max_chunks
    if input_path.is_file():
        total = pipeline.chunker.get_chunk_count(input_path.stat().st_size)

    progress, callback = chunk_progress(total)
    with progress:
        manifest = run_stage(pipeline.split(input_path, chunks_dir, callback))

    table = Table(title=f"Chunks of {manifest.source_name}")
    table.add_column("Index", justify="right")
    table.add_column("File", style="cyan")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Offset", justify="right")
    for chunk in manifest.chunks:
        table.add_row(str(chunk.index), chunk.name, format_size(chunk.size), f"{chunk.offset:,}")
    console.print(table)

    console.print(f"[green]✓ Split complete: {manifest.chunk_count} chunk files in {chunks_dir}[/green]")


@cli.command()
@click.argument('chunks_dir', type=click.Path(file_okay=False))
@click.pass_context
def upload(ctx, chunks_dir):
    """Upload the chunk files in CHUNKS_DIR."""
    pipeline = ChunkPipeline(ctx.obj['config'])
    report = run_stage(pipeline.upload(Path(chunks_dir)))
    print_transfer_report(report)


@cli.command()
@click.argument('output_dir', type=click.Path(file_okay=False))
@click.option('--manifest', 'manifest_file', type=click.Path(exists=True, dir_okay=False),
              help="Manifest of the chunks to download; only its listed indices are requested")
@click.pass_context
def download(ctx, output_dir, manifest_file):
    """Download chunk files into OUTPUT_DIR.

    With --manifest only the indices it lists are requested. Without it every
    index 0..max_chunks-1 is requested, and a manifest left in OUTPUT_DIR by an
    earlier run is removed so the merge stage does not trust it.
    """
    pipeline = ChunkPipeline(ctx.obj['config'])

    manifest = None
    if manifest_file:
        manifest = load_manifest(Path(manifest_file))
        if manifest is None:
            raise click.ClickException(f"Cannot read manifest {manifest_file}")

    report = run_stage(pipeline.download(Path(output_dir), manifest))
    print_transfer_report(report)


@cli.command()
@click.argument('chunks_dir', type=click.Path(file_okay=False))
@click.argument('output', type=click.Path(dir_okay=False))
@click.pass_context
def merge(ctx, chunks_dir, output):
    """Merge the chunk files in CHUNKS_DIR into OUTPUT."""
    config = ctx.obj['config']
    pipeline = ChunkPipeline(config)

    progress, callback = chunk_progress()
    with progress:
        report = run_stage(pipeline.merge(Path(chunks_dir), Path(output), callback))

    print_merge_report(report)


@cli.command('all')
@click.argument('input_file', type=click.Path())
@click.argument('output', type=click.Path(dir_okay=False))
@click.option('--chunks-dir', type=click.Path(file_okay=False), help='Directory for split chunks')
@click.option('--download-dir', type=click.Path(file_okay=False),
              help='Directory for downloaded chunks')
@click.pass_context
def run_all(ctx, input_file, output, chunks_dir, download_dir):
    """Split INPUT_FILE, upload, download, and merge into OUTPUT.

    The split manifest limits the download to the chunk indices it lists.
    """
    config = ctx.obj['config']
    if chunks_dir:
        config.chunks_dir = Path(chunks_dir)
    if download_dir:
        config.download_dir = Path(download_dir)

    pipeline = ChunkPipeline(config)
    result = run_stage(pipeline.run_all(Path(input_file), Path(output)))

    print_transfer_report(result.upload)
    print_transfer_report(result.download)
    print_merge_report(result.merge)


@cli.command()
@click.argument('chunks_dir', type=click.Path(exists=True, file_okay=False))
@click.pass_context
def inspect(ctx, chunks_dir):
    """Show the manifest and chunk files of CHUNKS_DIR."""
    config = ctx.obj['config']
    chunks_dir = Path(chunks_dir)

    manifest = load_manifest(chunks_dir) if config.use_manifest else None
    if manifest is not None:
        console.print(Panel.fit(
            f"Source: [cyan]{manifest.source_name}[/cyan]\n"
            f"Source size: [yellow]{format_size(manifest.source_size)}[/yellow]\n"
            f"Chunk size: [yellow]{format_size(manifest.chunk_size)}[/yellow]\n"
            f"Chunks: [yellow]{manifest.chunk_count}[/yellow] (max {manifest.max_chunks})",
            title="Manifest"
        ))
    else:
        console.print(f"[dim]No manifest; scanning {config.max_chunks} chunk indices[/dim]")

    table = Table(title=str(chunks_dir))
    table.add_column("Index", justify="right")
    table.add_column("File", style="cyan")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Present")

    for index in expected_indices(manifest, config.max_chunks):
        path = chunk_path(chunks_dir, index)
        if path.exists():
            table.add_row(str(index), path.name, format_size(path.stat().st_size), "[green]✓[/green]")
        else:
            table.add_row(str(index), path.name, "-", "[red]✗[/red]")

    console.print(table)


def print_transfer_report(report):
    """Summarize an upload or download batch."""
    if not report.transport_available:
        console.print(Panel.fit(
            f"[yellow]No {report.operation}s performed[/yellow]\n"
            f"Storage client not available (transport: {report.transport})",
            title=f"{report.operation.capitalize()}"
        ))
        return

    status = "green" if report.ok else "yellow"
    console.print(Panel.fit(
        f"[bold {status}]{report.operation.capitalize()} finished[/bold {status}]\n\n"
        f"Succeeded: [green]{len(report.succeeded)}[/green]\n"
        f"Transferred: [yellow]{format_size(report.bytes_transferred)}[/yellow]\n"
        f"Failed: [red]{len(report.failed)}[/red] {_index_list(report.failed)}\n"
        f"Skipped: [yellow]{len(report.skipped)}[/yellow] {_index_list(report.skipped)}",
        title=f"{report.operation.capitalize()} ({report.transport})"
    ))


def print_merge_report(report):
    """Summarize a merge."""
    console.print(Panel.fit(
        f"[bold green]Merge finished[/bold green]\n\n"
        f"Output: [cyan]{report.output_path}[/cyan]\n"
        f"Size: [yellow]{format_size(report.total_size)}[/yellow]\n"
        f"Merged chunks: [green]{report.merged_count}[/green]\n"
        f"Missing: [yellow]{len(report.missing)}[/yellow] {_index_list(report.missing)}\n"
        f"Failed: [red]{len(report.failed)}[/red] {_index_list(report.failed)}",
        title="Merge"
    ))


def _index_list(indices) -> str:
    if not indices:
        return ""
    return "(" + ", ".join(str(i) for i in indices) + ")"


def format_size(bytes_count: int) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


if __name__ == '__main__':
    cli()
