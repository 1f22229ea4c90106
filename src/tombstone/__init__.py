from tombstone.core.models import Tombstone
from tombstone.core.store import (
	list_tombstones,
	read_tombstone,
	record_birth,
	record_death,
	render_tombstone,
	write_tombstone,
)
from tombstone.runtime import (
	CallbackEventHandler,
	EventHandler,
	EventOp,
	GraveyardWatcher,
	LoggingEventHandler,
	TombstoneEvent,
	TombstoneReadingHandler,
	watch,
)
from tombstone.utils.diagnostics import (
	GraveyardCreateError,
	TombstoneError,
	TombstoneParseError,
	TombstoneReadError,
	TombstoneSerializationError,
	TombstoneWriteError,
	WatchError,
	WatchSetupError,
)

__all__ = [
	"CallbackEventHandler",
	"EventHandler",
	"EventOp",
	"GraveyardCreateError",
	"GraveyardWatcher",
	"LoggingEventHandler",
	"Tombstone",
	"TombstoneError",
	"TombstoneEvent",
	"TombstoneParseError",
	"TombstoneReadError",
	"TombstoneReadingHandler",
	"TombstoneSerializationError",
	"TombstoneWriteError",
	"WatchError",
	"WatchSetupError",
	"list_tombstones",
	"read_tombstone",
	"record_birth",
	"record_death",
	"render_tombstone",
	"watch",
	"write_tombstone",
]
