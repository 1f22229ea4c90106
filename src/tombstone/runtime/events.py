from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from tombstone.core.models import Tombstone
from tombstone.core.store import read_tombstone

log = logging.getLogger(__name__)


class EventOp(str, Enum):
    """Kinds of graveyard change delivered to handlers."""

    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    PERMISSION_CHANGE = "permission_change"


@dataclass(frozen=True)
class TombstoneEvent:
    """One change to one graveyard entry."""

    path: Path
    op: EventOp
    bootstrap: bool = False

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def graveyard(self) -> Path:
        return self.path.parent


class EventHandler(ABC):
    """
    Receives graveyard events from a watcher, one at a time.
    Raising from ``handle`` reports a failure; the watcher logs it and carries on.
    """

    @abstractmethod
    def handle(self, cancel: threading.Event, event: TombstoneEvent) -> None:
        ...


class CallbackEventHandler(EventHandler):
    """Adapts a plain ``func(cancel, event)`` to the handler interface."""

    def __init__(self, func: Callable[[threading.Event, TombstoneEvent], None]) -> None:
        self.func = func

    def handle(self, cancel: threading.Event, event: TombstoneEvent) -> None:
        self.func(cancel, event)


_OP_MESSAGES = {
    EventOp.CREATE: "file created",
    EventOp.WRITE: "file modified",
    EventOp.REMOVE: "file removed",
    EventOp.RENAME: "file renamed",
    EventOp.PERMISSION_CHANGE: "file chmoded",
}


class LoggingEventHandler(EventHandler):
    """Logs one line per event for operators. Never fails."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or log

    def handle(self, cancel: threading.Event, event: TombstoneEvent) -> None:
        self.logger.info(f"Tombstone Watch: {_OP_MESSAGES[event.op]}: {event.path}")


class TombstoneReadingHandler(EventHandler):
    """
    Re-reads the tombstone behind each create/write event and passes it on.

    Remove and rename events have nothing left to read and are only logged.
    Read and parse errors propagate so the watcher reports them.
    """

    def __init__(
        self,
        on_tombstone: Callable[[Tombstone], None],
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.on_tombstone = on_tombstone
        self.logger = logger or log

    def handle(self, cancel: threading.Event, event: TombstoneEvent) -> None:
        if event.op not in {EventOp.CREATE, EventOp.WRITE}:
            self.logger.debug(f"Skipping {event.op.value} event for {event.path}")
            return

        if cancel.is_set():
            return

        tombstone = read_tombstone(event.graveyard, event.name)
        self.on_tombstone(tombstone)
