import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from pocketjournal.model import Entry, EntryKind  # noqa: E402


@pytest.fixture()
def db_path(tmp_path):
    """Fresh SQLite file for one test."""
    return str(tmp_path / "journal_test.sqlite3")


@pytest.fixture()
def config_home(tmp_path, monkeypatch):
    """Point the config directory at a temp dir and clear the db override."""
    home = tmp_path / "config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    monkeypatch.setenv("APPDATA", str(home))
    monkeypatch.delenv("POCKETJOURNAL_DB", raising=False)
    return home / "pocketjournal"


@pytest.fixture()
def local_ms():
    """Epoch milliseconds for a local wall-clock time."""
    def _local_ms(*args) -> int:
        return round(datetime(*args).timestamp() * 1000)
    return _local_ms


@pytest.fixture()
def make_entry(local_ms):
    """Build an unsaved entry; defaults to a float 'Weight' on 2024-05-10."""
    def _make_entry(name="Weight", kind=EntryKind.FLOAT, value="72.5", timestamp=None):
        if timestamp is None:
            timestamp = local_ms(2024, 5, 10, 8, 30)
        return Entry(name=name, kind=kind, value=value, timestamp=timestamp)
    return _make_entry
