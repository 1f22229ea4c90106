import threading
from pathlib import Path

import pytest

from tombstone.core.models import Tombstone
from tombstone.runtime.events import (
    CallbackEventHandler,
    EventOp,
    LoggingEventHandler,
    TombstoneEvent,
    TombstoneReadingHandler,
)
from tombstone.utils.diagnostics import TombstoneParseError, TombstoneReadError


def test_tombstone_event_exposes_name_and_graveyard(tmp_path: Path):
    event = TombstoneEvent(path=tmp_path / "app", op=EventOp.CREATE)

    assert event.name == "app"
    assert event.graveyard == tmp_path
    assert event.bootstrap is False


@pytest.mark.parametrize(
    "op, message",
    [
        (EventOp.CREATE, "file created"),
        (EventOp.WRITE, "file modified"),
        (EventOp.REMOVE, "file removed"),
        (EventOp.RENAME, "file renamed"),
        (EventOp.PERMISSION_CHANGE, "file chmoded"),
    ],
)
def test_logging_handler_logs_one_line_per_op(tmp_path: Path, caplog, op, message):
    caplog.set_level("INFO", logger="tombstone.runtime.events")
    handler = LoggingEventHandler()

    handler.handle(threading.Event(), TombstoneEvent(path=tmp_path / "app", op=op))

    assert f"Tombstone Watch: {message}: {tmp_path / 'app'}" in caplog.text
    assert len(caplog.records) == 1


def test_logging_handler_uses_injected_logger(tmp_path: Path, caplog):
    import logging

    logger = logging.getLogger("sibling.watch")
    caplog.set_level("INFO", logger="sibling.watch")

    LoggingEventHandler(logger=logger).handle(
        threading.Event(), TombstoneEvent(path=tmp_path / "app", op=EventOp.WRITE)
    )

    assert caplog.records[0].name == "sibling.watch"


def test_callback_handler_forwards_arguments(tmp_path: Path):
    seen = []
    handler = CallbackEventHandler(lambda cancel, event: seen.append((cancel, event)))
    cancel = threading.Event()
    event = TombstoneEvent(path=tmp_path / "app", op=EventOp.REMOVE)

    handler.handle(cancel, event)

    assert seen == [(cancel, event)]


def test_reading_handler_rereads_tombstone(graveyard: Path):
    Tombstone(graveyard=graveyard, name="app").record_birth()
    seen = []
    handler = TombstoneReadingHandler(seen.append)

    handler.handle(threading.Event(), TombstoneEvent(path=graveyard / "app", op=EventOp.WRITE))

    assert len(seen) == 1
    assert seen[0].name == "app"
    assert seen[0].born is not None


def test_reading_handler_skips_remove_and_rename(graveyard: Path):
    seen = []
    handler = TombstoneReadingHandler(seen.append)

    handler.handle(threading.Event(), TombstoneEvent(path=graveyard / "gone", op=EventOp.REMOVE))
    handler.handle(threading.Event(), TombstoneEvent(path=graveyard / "gone", op=EventOp.RENAME))

    assert seen == []


def test_reading_handler_does_nothing_once_cancelled(graveyard: Path):
    Tombstone(graveyard=graveyard, name="app").record_birth()
    seen = []
    cancel = threading.Event()
    cancel.set()

    TombstoneReadingHandler(seen.append).handle(cancel, TombstoneEvent(path=graveyard / "app", op=EventOp.CREATE))

    assert seen == []


def test_reading_handler_propagates_read_errors(graveyard: Path):
    handler = TombstoneReadingHandler(lambda tombstone: None)

    with pytest.raises(TombstoneReadError):
        handler.handle(threading.Event(), TombstoneEvent(path=graveyard / "missing", op=EventOp.CREATE))

    (graveyard / "garbage").write_text("- not\n- a mapping\n")
    with pytest.raises(TombstoneParseError):
        handler.handle(threading.Event(), TombstoneEvent(path=graveyard / "garbage", op=EventOp.WRITE))
