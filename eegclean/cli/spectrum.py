"""Spectrum command for eegclean CLI."""

from rich.console import Console

from ..core.exceptions import PipelineError
from ..pipeline.session import SessionContext, SessionProcessor
from .run import load_config


def spectrum_command(args) -> int:
    """Recompute the spectrum of a session from its cleaned recording."""
    console = Console()

    config = load_config(args.config, console)
    if config is None:
        return 1

    context = SessionContext.create(args.session, args.output, config=config)
    if not context.store.has_cleaned():
        console.print(
            f"[red]Error: no cleaned recording for {args.session} in {args.output}[/red]"
        )
        return 1

    try:
        cleaned = context.store.load_cleaned()
        spectrum = SessionProcessor(context).compute_spectrum(cleaned)
    except PipelineError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        return 1

    band = spectrum.band_slice
    console.print(
        f"[green]✓[/green] {args.session}: {len(spectrum.freqs)} bins, "
        f"{spectrum.resolution:g} Hz resolution, "
        f"normalized over bins [{band.start}:{band.stop}]"
    )
    return 0
