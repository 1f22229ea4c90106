import threading
import typer
from pathlib import Path
from typing import List, NoReturn, Optional, Tuple

from pydantic import ValidationError

from tombstone.cli.formatter import OutputFormatter
from tombstone.config.loader import load_settings
from tombstone.core.models import RuntimeSettings, Tombstone
from tombstone.core.store import list_tombstones, read_tombstone, record_birth, record_death
from tombstone.runtime.events import EventHandler, LoggingEventHandler, TombstoneReadingHandler
from tombstone.runtime.watcher import watch as watch_graveyard
from tombstone.utils.diagnostics import (
    TombstoneError,
    TombstoneParseError,
    TombstoneReadError,
    WatchSetupError,
)
from tombstone.utils.log_setup import setup_logging

app = typer.Typer(name="tombstone", help="Tombstone graveyard CLI", rich_markup_mode=None)

GraveyardOption = typer.Option(None, "--graveyard", "-g", help="Graveyard directory (defaults to config).")
ConfigOption = typer.Option(Path("tombstone.yaml"), "--config", "-c", help="Path to tombstone.yaml.")


def _prepare(config: Path, graveyard: Optional[Path]) -> Tuple[RuntimeSettings, Path]:
    settings = load_settings(config)
    setup_logging(settings.settings.log_level)
    return settings, graveyard or Path(settings.settings.graveyard)


def _new_tombstone(graveyard: Path, name: str) -> Tombstone:
    try:
        return Tombstone(graveyard=graveyard, name=name)
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid tombstone name '{name}': {exc.errors()[0]['msg']}")


def _fail(exc: TombstoneError) -> NoReturn:
    OutputFormatter.log(str(exc), severity="error")
    raise typer.Exit(code=1)


@app.command()
def birth(
    name: str = typer.Argument(..., help="Tombstone name."),
    graveyard: Optional[Path] = GraveyardOption,
    config: Path = ConfigOption,
):
    """
    Record the birth of NAME in the graveyard.
    """
    _, graveyard_dir = _prepare(config, graveyard)
    tombstone = _new_tombstone(graveyard_dir, name)

    try:
        record_birth(tombstone)
    except TombstoneError as exc:
        _fail(exc)

    OutputFormatter.print_data(str(tombstone))


@app.command()
def death(
    name: str = typer.Argument(..., help="Tombstone name."),
    exit_code: int = typer.Option(..., "--exit-code", "-e", help="Exit code of the process."),
    graveyard: Optional[Path] = GraveyardOption,
    config: Path = ConfigOption,
):
    """
    Record the death of NAME, keeping its birth time when one was recorded.
    """
    _, graveyard_dir = _prepare(config, graveyard)
    tombstone = _new_tombstone(graveyard_dir, name)

    try:
        tombstone = read_tombstone(graveyard_dir, name)
    except TombstoneReadError:
        pass
    except TombstoneParseError as exc:
        OutputFormatter.log(f"Overwriting malformed tombstone: {exc}", severity="warning")

    try:
        record_death(tombstone, exit_code)
    except TombstoneError as exc:
        _fail(exc)

    OutputFormatter.print_data(str(tombstone))


@app.command()
def show(
    name: str = typer.Argument(..., help="Tombstone name."),
    graveyard: Optional[Path] = GraveyardOption,
    config: Path = ConfigOption,
):
    """
    Print the tombstone for NAME as JSON.
    """
    _, graveyard_dir = _prepare(config, graveyard)
    _new_tombstone(graveyard_dir, name)

    try:
        tombstone = read_tombstone(graveyard_dir, name)
    except TombstoneError as exc:
        _fail(exc)

    OutputFormatter.print_data(tombstone)


@app.command("list")
def list_command(
    graveyard: Optional[Path] = GraveyardOption,
    config: Path = ConfigOption,
):
    """
    List every tombstone in the graveyard.
    """
    _, graveyard_dir = _prepare(config, graveyard)

    try:
        names = list_tombstones(graveyard_dir)
    except TombstoneError as exc:
        _fail(exc)

    rows: List[Tuple[str, Optional[Tombstone], Optional[str]]] = []
    for name in names:
        try:
            rows.append((name, read_tombstone(graveyard_dir, name), None))
        except TombstoneError as exc:
            rows.append((name, None, exc.message))

    OutputFormatter.print_graveyard(str(graveyard_dir), rows)


@app.command()
def watch(
    graveyard: Optional[Path] = GraveyardOption,
    config: Path = ConfigOption,
    read: bool = typer.Option(False, "--read", help="Re-read and print each tombstone instead of logging events."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Stop after this many seconds."),
):
    """
    Watch the graveyard and report tombstone changes until interrupted.
    """
    settings, graveyard_dir = _prepare(config, graveyard)

    handler: EventHandler
    if read:
        handler = TombstoneReadingHandler(lambda tombstone: OutputFormatter.print_data(str(tombstone)))
    else:
        handler = LoggingEventHandler()

    cancel = threading.Event()
    try:
        watcher = watch_graveyard(cancel, graveyard_dir, handler, settings=settings.watch)
    except WatchSetupError as exc:
        _fail(exc)

    OutputFormatter.log(f"Watching graveyard {graveyard_dir}", severity="success")
    try:
        if timeout is not None:
            cancel.wait(timeout)
        else:
            while watcher.is_alive():
                watcher.join(0.5)
    except KeyboardInterrupt:
        OutputFormatter.log("Interrupted, stopping watch.", severity="warning")
    finally:
        cancel.set()
        watcher.join(timeout=5)


if __name__ == "__main__":
    app()
