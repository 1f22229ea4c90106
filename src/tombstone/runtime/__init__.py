"""Graveyard watching: events, handlers and the watch loop."""

from tombstone.runtime.events import (
	CallbackEventHandler,
	EventHandler,
	EventOp,
	LoggingEventHandler,
	TombstoneEvent,
	TombstoneReadingHandler,
)
from tombstone.runtime.watcher import GraveyardWatcher, translate_event, watch

__all__ = [
	"CallbackEventHandler",
	"EventHandler",
	"EventOp",
	"GraveyardWatcher",
	"LoggingEventHandler",
	"TombstoneEvent",
	"TombstoneReadingHandler",
	"translate_event",
	"watch",
]
