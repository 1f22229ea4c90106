import logging
import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict

from tombstone.core.models import RuntimeSettings

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]+))?\}")

ALLOWED_KEYS = {"tombstone", "watch"}

log = logging.getLogger(__name__)


def interpolate_env_vars(content: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variables."""
    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, content)


def load_config(path: Path) -> Dict[str, Any]:
    """
    Load tombstone.yaml with environment variable interpolation.

    Only the 'tombstone' and 'watch' sections are kept. A missing or
    unparsable file yields an empty config so defaults apply.
    """
    if not path.exists():
        return {}

    try:
        content = path.read_text()
        interpolated_content = interpolate_env_vars(content)
        full_config = yaml.safe_load(interpolated_content) or {}
    except (OSError, yaml.YAMLError) as exc:
        log.warning(f"Ignoring unreadable config file {path}: {exc}")
        return {}

    if not isinstance(full_config, dict):
        log.warning(f"Ignoring config file {path}: top level is not a mapping")
        return {}

    return {k: v for k, v in full_config.items() if k in ALLOWED_KEYS}


def load_settings(path: Path) -> RuntimeSettings:
    """Load tombstone.yaml and build validated settings models from it."""
    return RuntimeSettings.from_config(load_config(path))
