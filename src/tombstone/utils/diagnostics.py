from pathlib import Path
from typing import Optional, Union


class TombstoneError(Exception):
    """
    Base class for tombstone persistence and watch failures.
    Carries the path the failure relates to, when known.
    """
    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.message = message
        self.path = str(path) if path is not None else None
        loc = f" (at {self.path})" if self.path else ""
        super().__init__(f"{message}{loc}")


class GraveyardCreateError(TombstoneError):
    """The graveyard directory could not be created."""


class TombstoneWriteError(TombstoneError):
    """The tombstone file could not be created or written."""


class TombstoneReadError(TombstoneError):
    """The tombstone file (or graveyard listing) is absent or unreadable."""


class TombstoneSerializationError(TombstoneError):
    """The tombstone could not be encoded."""


class TombstoneParseError(TombstoneError):
    """The tombstone file exists but its content is malformed."""


class WatchError(TombstoneError):
    """Error reported by the notification subsystem while a watch is running."""


class WatchSetupError(WatchError):
    """A graveyard watch could not be established."""
