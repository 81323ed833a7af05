"""Init-config command for eegclean CLI."""

from rich.console import Console

from ..core.config import PipelineConfig


def init_config_command(args) -> int:
    """Write the default configuration to ``args.path``."""
    console = Console()

    if args.path.exists() and not args.force:
        console.print(f"[red]Error: {args.path} exists (use --force to overwrite)[/red]")
        return 1

    args.path.parent.mkdir(parents=True, exist_ok=True)
    PipelineConfig().to_yaml(args.path)
    console.print(f"[green]✓[/green] Wrote default configuration to {args.path}")
    return 0
