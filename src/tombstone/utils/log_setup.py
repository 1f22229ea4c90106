import logging
from typing import Union

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configures the root logger for command-line use.

    Log records go to stderr through rich so stdout stays free for data.
    Existing handlers are cleared to prevent duplicate lines on re-runs.

    :param level: A logging level, as an int or a name such as "INFO".
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)
