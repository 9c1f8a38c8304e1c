"""Command line interface for the cue countdown."""

import asyncio
from typing import List

import typer

from .config import Settings
from .custom_logging import setup_logging
from .models.cue import cue_labels
from .models.run import RunState, format_time
from .services.audio import LoggingNotifier
from .store.clock import Clock
from .store.countdown import CountdownController
from .store.schedule import build_schedule, unreachable_cues


app = typer.Typer()


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind address (defaults to CUE_COUNTDOWN_HOST)"),
    port: int = typer.Option(None, help="Port (defaults to CUE_COUNTDOWN_PORT)"),
):
    """Run the HTTP/websocket service."""
    import uvicorn

    from .main import create_app

    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=host or settings.host, port=port or settings.port)


@app.command()
def schedule(
    cues: List[str] = typer.Argument(..., help="Cue ids, e.g. 5min blackout gameover"),
    minutes: int = typer.Option(60, min=1, help="Countdown duration in minutes"),
):
    """Print when each selected cue would fire."""
    total_seconds = minutes * 60
    plan = build_schedule(cues, total_seconds)
    labels = cue_labels()

    skipped = sorted(set(cues) - set(plan))
    for cue_id, trigger_at in sorted(plan.items(), key=lambda item: -item[1]):
        typer.echo(f"{format_time(trigger_at)}  {cue_id:<10} {labels.get(cue_id, '')}")
    for cue_id in unreachable_cues(plan, total_seconds):
        typer.echo(f"Warning: {cue_id} never fires in a {minutes} minute countdown")
    for cue_id in skipped:
        typer.echo(f"Ignored unknown cue: {cue_id}")


@app.command()
def run(
    cues: List[str] = typer.Argument(None, help="Cue ids to fire"),
    minutes: int = typer.Option(1, min=1, help="Countdown duration in minutes"),
    tick: float = typer.Option(1.0, help="Seconds per tick (lower it for rehearsals)"),
):
    """Run a countdown in the terminal, printing cues as they fire."""
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)

    async def _run() -> None:
        finished = asyncio.Event()
        clock = Clock(period=tick)
        controller = CountdownController(clock, LoggingNotifier(typer.echo), duration_minutes=minutes)

        async def on_status(status):
            typer.echo(f"\r{status.display}", nl=False)
            if status.state != RunState.RUNNING:
                typer.echo("")
                finished.set()

        controller.add_listener(on_status)
        await controller.start(cues or [])
        try:
            await finished.wait()
        finally:
            await controller.abort()
            await clock.close()

    asyncio.run(_run())


if __name__ == "__main__":
    app()
