import json
import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler
from typer.testing import CliRunner

from tombstone.cli.main import app
from tombstone.core.store import read_tombstone

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Commands install a RichHandler on the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ["birth", "death", "show", "list", "watch"]:
        assert command in result.stdout


def test_birth_writes_tombstone(graveyard: Path):
    result = runner.invoke(app, ["birth", "app", "--graveyard", str(graveyard)])

    assert result.exit_code == 0, result.output
    assert '"Name":"app"' in result.stdout
    assert read_tombstone(graveyard, "app").born is not None


def test_birth_uses_graveyard_from_config(tmp_path: Path):
    config_file = tmp_path / "tombstone.yaml"
    config_file.write_text(f"tombstone:\n  graveyard: {tmp_path / 'from-config'}\n")

    result = runner.invoke(app, ["birth", "app", "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "from-config" / "app").exists()


def test_birth_rejects_path_like_name(graveyard: Path):
    result = runner.invoke(app, ["birth", "../escape", "-g", str(graveyard)])

    assert result.exit_code != 0
    assert not (graveyard.parent / "escape").exists()


def test_death_keeps_recorded_birth(graveyard: Path):
    runner.invoke(app, ["birth", "app", "-g", str(graveyard)])
    born = read_tombstone(graveyard, "app").born

    result = runner.invoke(app, ["death", "app", "--exit-code", "3", "-g", str(graveyard)])

    assert result.exit_code == 0, result.output
    loaded = read_tombstone(graveyard, "app")
    assert loaded.born == born
    assert loaded.exit_code == 3
    assert loaded.died is not None


def test_death_without_birth_still_records(graveyard: Path):
    result = runner.invoke(app, ["death", "app", "-e", "0", "-g", str(graveyard)])

    assert result.exit_code == 0, result.output
    loaded = read_tombstone(graveyard, "app")
    assert loaded.born is None
    assert loaded.exit_code == 0


def test_death_overwrites_malformed_tombstone(graveyard: Path):
    (graveyard / "app").write_text("{{{")

    result = runner.invoke(app, ["death", "app", "-e", "1", "-g", str(graveyard)])

    assert result.exit_code == 0, result.output
    assert "Overwriting malformed tombstone" in result.output
    assert read_tombstone(graveyard, "app").exit_code == 1


def test_show_prints_json(graveyard: Path):
    runner.invoke(app, ["death", "app", "-e", "7", "-g", str(graveyard)])

    result = runner.invoke(app, ["show", "app", "-g", str(graveyard)])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["ExitCode"] == 7
    assert payload["Born"] is None


def test_show_missing_tombstone_fails(graveyard: Path):
    result = runner.invoke(app, ["show", "ghost", "-g", str(graveyard)])

    assert result.exit_code == 1
    assert "failed to read tombstone file" in result.output


def test_list_shows_every_entry(graveyard: Path):
    runner.invoke(app, ["birth", "app", "-g", str(graveyard)])
    runner.invoke(app, ["death", "db", "-e", "0", "-g", str(graveyard)])
    (graveyard / "junk").write_text("- not\n- a mapping\n")

    result = runner.invoke(app, ["list", "-g", str(graveyard)])

    assert result.exit_code == 0, result.output
    for name in ["app", "db", "junk"]:
        assert name in result.stdout


def test_list_missing_graveyard_fails(tmp_path: Path):
    result = runner.invoke(app, ["list", "-g", str(tmp_path / "missing")])

    assert result.exit_code == 1


def test_watch_read_prints_existing_tombstones(graveyard: Path):
    runner.invoke(app, ["birth", "app", "-g", str(graveyard)])

    result = runner.invoke(app, ["watch", "-g", str(graveyard), "--read", "--timeout", "1"])

    assert result.exit_code == 0, result.output
    assert '"Name":"app"' in result.stdout


def test_watch_missing_graveyard_fails(tmp_path: Path):
    result = runner.invoke(app, ["watch", "-g", str(tmp_path / "missing"), "--timeout", "0.1"])

    assert result.exit_code == 1
    assert "failed to add watcher" in result.output


def test_commands_install_rich_logging_on_root(graveyard: Path):
    result = runner.invoke(app, ["birth", "app", "--graveyard", str(graveyard)])

    assert result.exit_code == 0, result.output
    root = logging.getLogger()
    assert any(isinstance(handler, RichHandler) for handler in root.handlers)
    assert root.level == logging.INFO
