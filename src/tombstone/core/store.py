from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from tombstone.core.models import Tombstone
from tombstone.utils.diagnostics import (
    GraveyardCreateError,
    TombstoneParseError,
    TombstoneReadError,
    TombstoneSerializationError,
    TombstoneWriteError,
)

PERSISTED_KEYS = ("Born", "Died", "ExitCode")

log = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def dump_tombstone(tombstone: Tombstone) -> str:
    """Encode the persisted fields of a tombstone as YAML, omitting unset ones."""
    try:
        payload = tombstone.model_dump(mode="json", by_alias=True, exclude_none=True)
        return yaml.safe_dump(payload, sort_keys=False, default_flow_style=False)
    except (ValueError, TypeError, yaml.YAMLError) as exc:
        raise TombstoneSerializationError(
            f"failed to marshal tombstone yaml: {exc}", tombstone.path
        ) from exc


def load_tombstone(content: str, graveyard: Union[str, Path], name: str) -> Tombstone:
    """
    Decode tombstone YAML into a new record.

    Graveyard and name always come from the arguments, never from the content.
    An empty document decodes to a record with nothing set.
    """
    tombstone = Tombstone(graveyard=Path(graveyard), name=name)

    try:
        payload = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise TombstoneParseError(f"failed to unmarshal tombstone yaml: {exc}", tombstone.path) from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise TombstoneParseError(
            f"tombstone yaml must be a mapping, got {type(payload).__name__}", tombstone.path
        )

    fields: Dict[str, Any] = {key: payload[key] for key in PERSISTED_KEYS if key in payload}
    try:
        return Tombstone.model_validate({**fields, "graveyard": tombstone.graveyard, "name": name})
    except ValidationError as exc:
        raise TombstoneParseError(f"invalid tombstone content: {exc}", tombstone.path) from exc


def write_tombstone(tombstone: Tombstone) -> Path:
    """
    Write a tombstone file, truncating before writing.

    The graveyard directory is created if it does not exist. Writes through the
    same instance are serialized; writes from other instances or processes to the
    same path are not, and the last one to finish wins.
    """
    with tombstone._file_lock:
        graveyard = Path(tombstone.graveyard)
        try:
            graveyard.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise GraveyardCreateError(f"failed to create graveyard: {exc}", graveyard) from exc

        content = dump_tombstone(tombstone)

        tombstone_file = tombstone.path
        try:
            with open(tombstone_file, "w", encoding="utf-8") as handle:
                handle.write(content)
        except OSError as exc:
            raise TombstoneWriteError(f"failed to create tombstone file: {exc}", tombstone_file) from exc

    return tombstone_file


def read_tombstone(graveyard: Union[str, Path], name: str) -> Tombstone:
    """Read a tombstone from a graveyard."""
    try:
        tombstone_file = Tombstone(graveyard=Path(graveyard), name=name).path
    except ValidationError as exc:
        raise TombstoneReadError(f"invalid tombstone name '{name}': {exc.errors()[0]['msg']}", graveyard) from exc

    try:
        content = tombstone_file.read_bytes()
    except OSError as exc:
        raise TombstoneReadError(f"failed to read tombstone file: {exc}", tombstone_file) from exc

    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise TombstoneParseError(f"tombstone file is not valid utf-8: {exc}", tombstone_file) from exc

    return load_tombstone(text, graveyard, name)


def list_tombstones(graveyard: Union[str, Path]) -> List[str]:
    """Return the names of all entries in a graveyard, sorted by name."""
    try:
        return sorted(os.listdir(graveyard))
    except OSError as exc:
        raise TombstoneReadError(f"failed to read graveyard dir: {exc}", graveyard) from exc


def record_birth(tombstone: Tombstone, logger: Optional[logging.Logger] = None) -> Path:
    logger = logger or log
    tombstone.born = utc_now()

    logger.info(f"Creating tombstone: {tombstone.path}")
    return write_tombstone(tombstone)


def record_death(tombstone: Tombstone, exit_code: int, logger: Optional[logging.Logger] = None) -> Path:
    """Stamp death time and exit code, then rewrite the file. Birth is not checked."""
    logger = logger or log
    tombstone.died = utc_now()
    tombstone.exit_code = exit_code

    logger.info(f"Updating tombstone: {tombstone.path}")
    return write_tombstone(tombstone)


def render_tombstone(tombstone: Tombstone, logger: Optional[logging.Logger] = None) -> str:
    """
    Render the whole record as one line of JSON for diagnostics.

    Unset fields render as null. Never raises: on encoding errors the
    error is logged and "{}" is returned.
    """
    logger = logger or log
    try:
        payload: Dict[str, Any] = {
            "Graveyard": str(tombstone.graveyard),
            "Name": tombstone.name,
        }
        payload.update(tombstone.model_dump(mode="json", by_alias=True))
        return json.dumps(payload, separators=(",", ":"))
    except (ValueError, TypeError) as exc:
        logger.error(f"Error: failed to marshal tombstone as json: {exc}")
        return "{}"
