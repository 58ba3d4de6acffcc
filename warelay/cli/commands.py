"""
warelay CLI

- Predictable lifecycle (start/stop)
- Centralized path & config handling
- Clean CLI UX
"""

from __future__ import annotations

import asyncio
import sys
from typing import Final

import typer
from loguru import logger
from rich.console import Console

from warelay import __logo__, __version__


# ============================================================================
# CLI App
# ============================================================================

APP_NAME: Final[str] = "warelay"

app = typer.Typer(
    name=APP_NAME,
    help=f"{__logo__} warelay - WhatsApp to operator-group relay",
    no_args_is_help=True,
)

console = Console()


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


# ============================================================================
# Version
# ============================================================================

def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} warelay v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
):
    """warelay - WhatsApp to operator-group relay."""
    pass


# ============================================================================
# Onboard
# ============================================================================

@app.command()
def onboard():
    """Write a default configuration file."""
    from warelay.config.loader import get_config_path, save_config
    from warelay.config.schema import Config
    from warelay.utils.helpers import RUNTIME_PATHS

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    RUNTIME_PATHS.ensure()
    save_config(Config(), config_path)

    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print("\nNext steps:")
    console.print("  1. Set [cyan]relay.operatorChatId[/cyan] to your operator group id")
    console.print("  2. Start the Node.js bridge and point [cyan]bridge.url[/cyan] at it")
    console.print("  3. Run: [cyan]warelay run[/cyan]")


# ============================================================================
# Run
# ============================================================================

@app.command()
def run(
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Connect to the bridge and start relaying."""
    from warelay.config.loader import load_config
    from warelay.relay.engine import RelayEngine
    from warelay.session.bridge import BridgeSession

    _configure_logging(verbose)

    config = load_config()
    session = BridgeSession(config.bridge)
    engine = RelayEngine(config, session)

    console.print(f"{__logo__} Starting warelay | bridge={config.bridge.url}")

    async def _run():
        try:
            await engine.run()
        finally:
            engine.stop()
            await session.destroy()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\nShutting down...")


# ============================================================================
# Status
# ============================================================================

@app.command()
def status():
    """Show configuration status."""
    from warelay.config.loader import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} warelay Status\n")
    console.print(
        f"Config: {config_path} "
        f"{'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}"
    )
    console.print(f"Bridge: {config.bridge.url}")
    console.print(
        f"Operator channel: {config.operator_chat_id or '[dim]not set[/dim]'}"
    )
    console.print(f"ffmpeg: {config.media.ffmpeg_path}")


if __name__ == "__main__":
    app()
