from __future__ import annotations

import logging
import os
import queue
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, List, MutableMapping, Optional, Tuple, Union

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from tombstone.core.models import WatchSettings
from tombstone.core.store import list_tombstones
from tombstone.runtime.events import EventHandler, EventOp, TombstoneEvent
from tombstone.utils.diagnostics import TombstoneReadError, WatchError, WatchSetupError

log = logging.getLogger(__name__)

ObserverFactory = Callable[[], BaseObserver]

RESTART_BACKOFF_SECONDS = 1.0

_OPS_BY_TYPE = {
    EVENT_TYPE_CREATED: EventOp.CREATE,
    EVENT_TYPE_MODIFIED: EventOp.WRITE,
    EVENT_TYPE_DELETED: EventOp.REMOVE,
}


def translate_event(event: FileSystemEvent, graveyard: Path) -> List[TombstoneEvent]:
    """
    Map one watchdog event onto zero or more graveyard events.

    A move is reported as a rename of the old path plus a create of the new
    path when it lands inside the graveyard. Open/close notifications and
    directory-modified events carry no lifecycle meaning and are dropped.
    """
    src_path = Path(os.fsdecode(event.src_path))

    if event.event_type == EVENT_TYPE_MOVED:
        translated = [TombstoneEvent(path=src_path, op=EventOp.RENAME)]
        dest_path = Path(os.fsdecode(event.dest_path)) if event.dest_path else None
        if dest_path is not None and dest_path.parent == graveyard:
            translated.append(TombstoneEvent(path=dest_path, op=EventOp.CREATE))
        return translated

    op = _OPS_BY_TYPE.get(event.event_type)
    if op is None:
        return []

    if event.is_directory and (op == EventOp.WRITE or src_path == graveyard):
        return []

    return [TombstoneEvent(path=src_path, op=op)]


_StatKey = Tuple[int, int, int, int, int]


def _stat_key(path: Path) -> Optional[_StatKey]:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return (st.st_mtime_ns, st.st_size, st.st_mode, st.st_uid, st.st_gid)


class _QueueingEventHandler(FileSystemEventHandler):
    """
    Runs on the observer thread; only translates and enqueues.

    watchdog reports attribute changes as plain modifications. A modification
    that leaves content time and size alone but changes mode or ownership is
    re-labelled as a permission change, using the last stat seen per path.
    """

    def __init__(self, graveyard: Path, sink: "queue.Queue[Union[TombstoneEvent, WatchError]]") -> None:
        super().__init__()
        self.graveyard = graveyard
        self.sink = sink
        self._stats: Dict[Path, _StatKey] = {}
        try:
            entries = os.listdir(graveyard)
        except OSError:
            entries = []
        for entry in entries:
            key = _stat_key(graveyard / entry)
            if key is not None:
                self._stats[graveyard / entry] = key

    def on_any_event(self, event: FileSystemEvent) -> None:
        for translated in translate_event(event, self.graveyard):
            self.sink.put(self._classify(translated))

    def _classify(self, event: TombstoneEvent) -> TombstoneEvent:
        if event.op in {EventOp.REMOVE, EventOp.RENAME}:
            self._stats.pop(event.path, None)
            return event

        current = _stat_key(event.path)
        if current is None:
            return event
        previous = self._stats.get(event.path)
        self._stats[event.path] = current

        if (
            event.op == EventOp.WRITE
            and previous is not None
            and previous[:2] == current[:2]
            and previous[2:] != current[2:]
        ):
            return replace(event, op=EventOp.PERMISSION_CHANGE)
        return event


class _WatchLogAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"Tombstone Watch({self.extra['graveyard']}): {msg}", kwargs


class GraveyardWatcher:
    """
    Watches one graveyard and feeds every change to a handler on a single worker thread.

    Entries already present when the watch starts are delivered first as
    synthetic create events. After that, live events are handled one at a time
    in the order the observer reported them, until ``cancel`` is set.
    """

    def __init__(
        self,
        graveyard: Union[str, Path],
        handler: EventHandler,
        cancel: threading.Event,
        logger: Optional[logging.Logger] = None,
        settings: Optional[WatchSettings] = None,
        observer_factory: Optional[ObserverFactory] = None,
    ) -> None:
        self.graveyard = Path(graveyard)
        self.handler = handler
        self.cancel = cancel
        self.settings = settings or WatchSettings()
        self.logger = _WatchLogAdapter(logger or log, {"graveyard": str(self.graveyard)})

        if observer_factory is None:
            observer_factory = PollingObserver if self.settings.polling else Observer
        self.observer_factory = observer_factory

        self.thread: Optional[threading.Thread] = None
        self._queue: "queue.Queue[Union[TombstoneEvent, WatchError]]" = queue.Queue()
        self._observer: Optional[BaseObserver] = None
        self._next_restart_at = 0.0

    def start(self) -> None:
        """Subscribe, list existing entries and spawn the worker. Setup failures raise WatchSetupError."""
        if self.thread is not None:
            raise RuntimeError("GraveyardWatcher is already started.")

        if not self.graveyard.is_dir():
            raise WatchSetupError("failed to add watcher: graveyard is not a directory", self.graveyard)

        self._observer = self._subscribe()

        # Subscribed before listing: an entry created in between may be seen twice, never missed.
        try:
            entries = list_tombstones(self.graveyard)
        except TombstoneReadError as exc:
            self._release()
            raise WatchSetupError(f"failed to read graveyard dir: {exc.message}", self.graveyard) from exc

        self.thread = threading.Thread(
            target=self._run,
            args=(entries,),
            name=f"tombstone-watch:{self.graveyard}",
            daemon=True,
        )
        self.thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self.thread is not None:
            self.thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def _subscribe(self) -> BaseObserver:
        observer = self.observer_factory()
        try:
            observer.schedule(
                _QueueingEventHandler(self.graveyard, self._queue),
                str(self.graveyard),
                recursive=False,
            )
            observer.start()
        except OSError as exc:
            raise WatchSetupError(f"failed to add watcher: {exc}", self.graveyard) from exc
        return observer

    def _release(self) -> None:
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        observer.stop()
        observer.join()

    def _run(self, entries: List[str]) -> None:
        interval_seconds = self.settings.poll_interval_ms / 1000.0
        try:
            for entry in entries:
                if self.cancel.is_set():
                    return
                self._dispatch(TombstoneEvent(path=self.graveyard / entry, op=EventOp.CREATE, bootstrap=True))

            while not self.cancel.is_set():
                try:
                    item = self._queue.get(timeout=interval_seconds)
                except queue.Empty:
                    self._check_observer()
                    continue

                if self.cancel.is_set():
                    break

                if isinstance(item, WatchError):
                    self.logger.error(f"error from watchdog: {item}")
                    continue

                self._dispatch(item)
        finally:
            self._release()
            self.logger.info("done")

    def _dispatch(self, event: TombstoneEvent) -> None:
        try:
            self.handler.handle(self.cancel, event)
        except Exception as exc:
            self.logger.error(f"error handling file system event {event.op.value} {event.path}: {exc}", exc_info=True)

    def _check_observer(self) -> None:
        observer = self._observer
        if observer is not None and observer.is_alive() and all(e.is_alive() for e in observer.emitters):
            return

        if self.cancel.is_set():
            return

        now = time.monotonic()
        if now < self._next_restart_at:
            return
        self._next_restart_at = now + RESTART_BACKOFF_SECONDS

        self._queue.put(WatchError("observer stopped unexpectedly", self.graveyard))
        if not self.settings.restart_on_failure:
            return

        self._release()
        try:
            self._observer = self._subscribe()
        except WatchSetupError as exc:
            self._queue.put(WatchError(f"failed to restart observer: {exc.message}", self.graveyard))
            return
        self.logger.info("observer restarted")

        # Entries created while the observer was down produced no notification.
        try:
            entries = list_tombstones(self.graveyard)
        except TombstoneReadError as exc:
            self._queue.put(WatchError(f"failed to re-read graveyard dir: {exc.message}", self.graveyard))
            return
        for entry in entries:
            self._queue.put(TombstoneEvent(path=self.graveyard / entry, op=EventOp.CREATE, bootstrap=True))


def watch(
    cancel: threading.Event,
    graveyard: Union[str, Path],
    handler: EventHandler,
    *,
    logger: Optional[logging.Logger] = None,
    settings: Optional[WatchSettings] = None,
    observer_factory: Optional[ObserverFactory] = None,
) -> GraveyardWatcher:
    """
    Watch a graveyard and call the handler (asynchronously) when an event happens.

    Returns once the subscription is established and the worker is running.
    Setting ``cancel`` stops this watch; nothing is delivered afterwards.
    """
    watcher = GraveyardWatcher(
        graveyard,
        handler,
        cancel,
        logger=logger,
        settings=settings,
        observer_factory=observer_factory,
    )
    watcher.start()
    return watcher
