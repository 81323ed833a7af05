"""Run command for eegclean CLI."""

import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from ..core.config import PipelineConfig
from ..core.layout import BIOSEMI32_REFERENCE, ChannelLayout
from ..core.review import FileReview, NullReview
from ..core.validation import validate_config
from ..pipeline.session import process_batch
from ..utils.logging import setup_logging


def load_config(path: Optional[Path], console: Console) -> Optional[PipelineConfig]:
    """Load and validate a configuration; print problems and return None on error."""
    if path is None:
        config = PipelineConfig()
    else:
        if not path.exists():
            console.print(f"[red]Error: Config file not found: {path}[/red]")
            return None
        try:
            config = PipelineConfig.from_yaml(path)
        except ValidationError as e:
            console.print(f"[red]Invalid configuration {path}:[/red]\n{e}")
            return None

    validation = validate_config(config)
    for warning in validation.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    if not validation.is_valid:
        for error in validation.errors:
            console.print(f"[red]Error: {error}[/red]")
        return None

    return config


def run_command(args) -> int:
    """
    Process the given recordings.

    Returns
    -------
    int
        0 if every session succeeded, 1 otherwise
    """
    console = Console()
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=args.log_file,
    )

    config = load_config(args.config, console)
    if config is None:
        return 1
    if args.seed is not None:
        config = config.model_copy(update={'ica': config.ica.model_copy(update={'seed': args.seed})})

    missing = [f for f in args.files if not f.exists()]
    for f in missing:
        console.print(f"[red]Error: input not found: {f}[/red]")
    files = [f for f in args.files if f.exists()]
    if not files:
        console.print("[yellow]No recordings to process.[/yellow]")
        return 1

    if args.montage is not None:
        if not args.montage.exists():
            console.print(f"[red]Error: montage not found: {args.montage}[/red]")
            return 1
        layout = ChannelLayout.from_file(
            args.montage, reference=config.reference.channels or BIOSEMI32_REFERENCE
        )
    else:
        layout = ChannelLayout.biosemi32()

    reviewer = FileReview(args.review_dir) if args.review_dir else NullReview()

    console.print("\n[bold]eegclean[/bold]")
    console.print(f"Config: {args.config or 'defaults'}")
    console.print(f"Sessions: {len(files)}")
    console.print(f"Review: {args.review_dir or 'none (unattended)'}")
    console.print(f"ICA seed: {config.ica.seed}")
    console.print(f"Output: {args.output}\n")

    def report(result):
        if result.success:
            resumed = f" (resumed from {result.resumed_from})" if result.resumed_from else ""
            console.print(f"  [green]✓[/green] {result.session_id}{resumed}")
        else:
            console.print(f"  [red]✗ {result.session_id}: {result.error_type}: {result.error}[/red]")

    results = process_batch(
        files,
        args.output,
        config=config,
        layout=layout,
        reviewer=reviewer,
        resume=args.resume,
        on_result=report,
    )

    table = Table(title="Sessions")
    table.add_column("Session", style="cyan")
    table.add_column("Status")
    table.add_column("Bad channels")
    table.add_column("Rank", justify="right")
    table.add_column("Rejected ICs")
    table.add_column("Time (s)", justify="right")

    for result in results:
        summary = result.summary
        table.add_row(
            result.session_id,
            "[green]OK[/green]" if result.success else f"[red]{result.error_type}[/red]",
            ", ".join(summary.get('bad_channels', [])) or "-",
            str(summary.get('rank', '-')),
            ", ".join(str(i) for i in summary.get('rejected_components', [])) or "-",
            f"{result.execution_time_seconds:.1f}",
        )

    console.print()
    console.print(table)

    n_failed = sum(not r.success for r in results) + len(missing)
    if n_failed:
        console.print(f"\n[red]{n_failed} session(s) failed[/red]")
        return 1
    return 0
