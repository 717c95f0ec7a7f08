"""Tests for the state repositories."""

import json

import pytest

from config.models import StorageConfig
from storage.dashboard_store import DashboardStore
from storage.repository import (
    JsonFileRepository,
    MemoryRepository,
    SqliteRepository,
    create_repository,
)


STATE = {
    "dashboards": [{"id": "default", "name": "Default Dashboard", "widgets": [],
                    "theme": "dark", "createdAt": 1, "updatedAt": 1}],
    "currentDashboardId": "default",
    "widgets": [],
}


@pytest.fixture(params=["memory", "json", "sqlite"])
def any_repository(request, tmp_path):
    if request.param == "memory":
        return MemoryRepository()
    if request.param == "json":
        return JsonFileRepository(tmp_path / "state")
    return SqliteRepository(tmp_path / "state.db")


def test_load_missing_key(any_repository):
    assert any_repository.load("finboard-dashboard") is None


def test_save_then_load(any_repository):
    any_repository.save("finboard-dashboard", STATE)
    assert any_repository.load("finboard-dashboard") == STATE


def test_save_overwrites(any_repository):
    any_repository.save("finboard-dashboard", STATE)
    updated = dict(STATE, currentDashboardId="other")
    any_repository.save("finboard-dashboard", updated)
    assert any_repository.load("finboard-dashboard")["currentDashboardId"] == "other"


def test_keys_are_independent(any_repository):
    any_repository.save("a", STATE)
    assert any_repository.load("b") is None


def test_memory_repository_copies():
    repository = MemoryRepository()
    state = json.loads(json.dumps(STATE))
    repository.save("k", state)
    state["widgets"].append({"id": "w"})
    loaded = repository.load("k")
    assert loaded["widgets"] == []
    loaded["widgets"].append({"id": "x"})
    assert repository.load("k")["widgets"] == []


def test_json_repository_layout(tmp_path):
    repository = JsonFileRepository(tmp_path / "state")
    repository.save("finboard-dashboard", STATE)
    path = tmp_path / "state" / "finboard-dashboard.json"
    assert repository.path_for("finboard-dashboard") == path
    assert json.loads(path.read_text(encoding="utf-8")) == STATE


def test_store_survives_corrupt_json_file(tmp_path):
    repository = JsonFileRepository(tmp_path)
    repository.path_for("finboard-dashboard").write_text("{broken", encoding="utf-8")
    store = DashboardStore(repository)
    assert store.current_dashboard_id == "default"
    assert store.widgets == []


def test_sqlite_state_survives_reopen(tmp_path, card_widget):
    db_path = tmp_path / "state.db"
    store = DashboardStore(SqliteRepository(db_path))
    store.add_widget(card_widget)

    reopened = DashboardStore(SqliteRepository(db_path))
    assert reopened.snapshot() == store.snapshot()


@pytest.mark.parametrize("backend,expected", [
    ("memory", MemoryRepository),
    ("json", JsonFileRepository),
    ("sqlite", SqliteRepository),
])
def test_create_repository(tmp_path, backend, expected):
    config = StorageConfig(backend=backend, state_dir=str(tmp_path / "state"),
                           db_path=str(tmp_path / "state.db"))
    assert isinstance(create_repository(config), expected)


def test_create_repository_rejects_unknown_backend():
    with pytest.raises(ValueError):
        create_repository(StorageConfig(backend="redis"))
