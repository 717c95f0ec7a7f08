"""Tests for the multi-dashboard widget store."""

import json
import random

import pytest

from data_binding.errors import ValidationError
from storage.dashboard_store import DashboardStore
from storage.repository import MemoryRepository


def _ids(widgets):
    return [w["id"] for w in widgets]


def _current(store):
    return store.get_current_dashboard()


def _assert_mirrored(store):
    """Active widgets always equal the current dashboard's widgets."""
    assert store.widgets == _current(store)["widgets"]


def _default_count(store):
    return sum(1 for d in store.dashboards if d["id"] == "default")


def test_cold_start(store):
    assert store.current_dashboard_id == "default"
    assert len(store.dashboards) == 1
    dashboard = store.dashboards[0]
    assert dashboard["name"] == "Default Dashboard"
    assert dashboard["theme"] == "dark"
    assert dashboard["widgets"] == []
    assert store.widgets == []


def test_add_widget_sets_position_and_mirrors(store, card_widget, chart_widget):
    first = store.add_widget(card_widget)
    second = store.add_widget(chart_widget)

    assert first["position"] == 0
    assert second["position"] == 1
    assert _ids(store.widgets) == [card_widget["id"], chart_widget["id"]]
    _assert_mirrored(store)


def test_add_widget_generates_missing_id(store):
    added = store.add_widget({"type": "card", "title": "t", "apiUrl": "u",
                              "refreshInterval": 5, "selectedFields": []})
    assert added["id"].startswith("widget-")


def test_add_bumps_updated_at(store, card_widget):
    before = _current(store)["updatedAt"]
    store.add_widget(card_widget)
    assert _current(store)["updatedAt"] > before


def test_add_then_remove_restores_list(store, card_widget, chart_widget, table_widget):
    store.add_widget(card_widget)
    store.add_widget(chart_widget)
    before = store.widgets

    store.add_widget(table_widget)
    assert store.remove_widget(table_widget["id"])

    assert store.widgets == before
    _assert_mirrored(store)


def test_remove_unknown_widget(store, card_widget):
    store.add_widget(card_widget)
    assert not store.remove_widget("nope")
    assert len(store.widgets) == 1


def test_remove_leaves_sibling_positions(store, card_widget, chart_widget, table_widget):
    for widget in (card_widget, chart_widget, table_widget):
        store.add_widget(widget)
    store.remove_widget(card_widget["id"])
    assert [w["position"] for w in store.widgets] == [1, 2]


def test_update_widget_merges(store, card_widget):
    store.add_widget(card_widget)
    updated = store.update_widget(card_widget["id"], {"title": "New", "refreshInterval": 60})

    assert updated["title"] == "New"
    assert updated["refreshInterval"] == 60
    assert updated["apiUrl"] == card_widget["apiUrl"]
    assert store.get_widget(card_widget["id"]) == updated
    _assert_mirrored(store)


def test_update_widget_keeps_type_and_id(store, card_widget):
    store.add_widget(card_widget)
    updated = store.update_widget(card_widget["id"], {"type": "chart", "id": "other", "title": "T"})
    assert updated["type"] == "card"
    assert updated["id"] == card_widget["id"]
    assert updated["title"] == "T"


def test_update_unknown_widget(store):
    assert store.update_widget("nope", {"title": "x"}) is None


def test_reorder_preserves_id_set(store, card_widget, chart_widget, table_widget):
    for widget in (card_widget, chart_widget, table_widget):
        store.add_widget(widget)
    widgets = store.widgets
    permutation = [widgets[2], widgets[0], widgets[1]]

    store.reorder_widgets(permutation)

    assert _ids(store.widgets) == _ids(permutation)
    assert set(_ids(store.widgets)) == set(_ids(widgets))
    assert [w["position"] for w in store.widgets] == [0, 1, 2]
    _assert_mirrored(store)


def test_reorder_copies_caller_list(store, card_widget):
    store.add_widget(card_widget)
    order = store.widgets
    store.reorder_widgets(order)
    order[0]["title"] = "mutated by caller"
    assert store.widgets[0]["title"] == card_widget["title"]


def test_move_widget(store, card_widget, chart_widget, table_widget):
    for widget in (card_widget, chart_widget, table_widget):
        store.add_widget(widget)
    assert store.move_widget(table_widget["id"], card_widget["id"])
    assert _ids(store.widgets) == [table_widget["id"], card_widget["id"], chart_widget["id"]]
    assert not store.move_widget(table_widget["id"], table_widget["id"])


def test_create_dashboard_becomes_current(store, card_widget):
    store.add_widget(card_widget)
    dashboard = store.create_dashboard("Crypto", "light")

    assert store.current_dashboard_id == dashboard["id"]
    assert dashboard["theme"] == "light"
    assert store.widgets == []
    assert len(store.dashboards) == 2


def test_create_dashboard_validates(store):
    with pytest.raises(ValidationError):
        store.create_dashboard("   ", "dark")
    with pytest.raises(ValidationError):
        store.create_dashboard("X", "blue")


def test_switch_copies_widgets(store, card_widget, chart_widget):
    store.add_widget(card_widget)
    other = store.create_dashboard("Other", "dark")
    store.add_widget(chart_widget)

    assert store.switch_dashboard("default")
    assert _ids(store.widgets) == [card_widget["id"]]

    assert store.switch_dashboard(other["id"])
    assert _ids(store.widgets) == [chart_widget["id"]]
    _assert_mirrored(store)


def test_switch_unknown_is_noop(store, card_widget):
    store.add_widget(card_widget)
    assert not store.switch_dashboard("missing")
    assert store.current_dashboard_id == "default"
    assert len(store.widgets) == 1


def test_edits_stay_on_their_dashboard(store, card_widget):
    store.add_widget(card_widget)
    store.create_dashboard("Other", "dark")
    store.switch_dashboard("default")
    store.update_widget(card_widget["id"], {"title": "Edited"})

    other = next(d for d in store.dashboards if d["id"] != "default")
    assert other["widgets"] == []
    assert _current(store)["widgets"][0]["title"] == "Edited"


def test_delete_default_is_noop(store):
    assert not store.delete_dashboard("default")
    assert _default_count(store) == 1


def test_delete_current_falls_back_to_default(store, card_widget, chart_widget):
    store.add_widget(card_widget)
    other = store.create_dashboard("Other", "dark")
    store.add_widget(chart_widget)

    assert store.delete_dashboard(other["id"])
    assert store.current_dashboard_id == "default"
    assert _ids(store.widgets) == [card_widget["id"]]
    assert len(store.dashboards) == 1


def test_delete_other_keeps_current(store, card_widget):
    other = store.create_dashboard("Other", "dark")
    store.switch_dashboard("default")
    store.add_widget(card_widget)

    assert store.delete_dashboard(other["id"])
    assert store.current_dashboard_id == "default"
    assert _ids(store.widgets) == [card_widget["id"]]


def test_delete_unknown_is_noop(store):
    assert not store.delete_dashboard("missing")


def test_default_dashboard_survives_any_sequence(store, card_widget):
    rng = random.Random(7)
    for _ in range(200):
        op = rng.choice(["create", "delete", "switch", "add", "remove", "clear"])
        ids = [d["id"] for d in store.dashboards]
        if op == "create":
            store.create_dashboard(f"d{rng.randint(0, 99)}", "light")
        elif op == "delete":
            store.delete_dashboard(rng.choice(ids + ["default"]))
        elif op == "switch":
            store.switch_dashboard(rng.choice(ids))
        elif op == "add":
            store.add_widget(dict(card_widget, id=None))
        elif op == "remove" and store.widgets:
            store.remove_widget(rng.choice(store.widgets)["id"])
        elif op == "clear":
            store.clear_widgets()
        assert _default_count(store) == 1
        assert store.current_dashboard_id in [d["id"] for d in store.dashboards]
        _assert_mirrored(store)


def test_update_dashboard_theme(store):
    assert store.update_dashboard_theme("default", "light")
    assert _current(store)["theme"] == "light"
    assert not store.update_dashboard_theme("missing", "light")


def test_export_is_pretty_array_of_active_widgets(store, card_widget):
    store.add_widget(card_widget)
    text = store.export_dashboard()
    assert text.startswith("[\n  {")
    assert json.loads(text) == store.widgets


def test_export_import_round_trip(store, card_widget, chart_widget, table_widget):
    for widget in (card_widget, chart_widget, table_widget):
        store.add_widget(widget)
    before = store.widgets

    assert store.import_dashboard(store.export_dashboard())
    assert store.widgets == before
    _assert_mirrored(store)


@pytest.mark.parametrize("text", [
    "not an array",
    '{"id": "w"}',
    "",
    "[1, 2",
    "[" * 200000 + "]" * 200000,
    "[" * 100 + "]" * 100,
])
def test_import_rejects_without_change(store, card_widget, text):
    store.add_widget(card_widget)
    before = store.snapshot()

    assert store.import_dashboard(text) is False
    assert store.snapshot() == before


def test_import_accepts_arbitrary_elements(store):
    assert store.import_dashboard('[{"id": "w1"}, 3, "x"]')
    assert store.widgets == [{"id": "w1"}, 3, "x"]
    _assert_mirrored(store)


def test_clear_widgets(store, card_widget):
    store.add_widget(card_widget)
    store.clear_widgets()
    assert store.widgets == []
    _assert_mirrored(store)


def test_every_command_persists_whole_state(repository, store, card_widget):
    store.add_widget(card_widget)
    saved = repository.load("finboard-dashboard")
    assert set(saved) == {"dashboards", "currentDashboardId", "widgets"}
    assert saved == store.snapshot()

    count = repository.save_count
    store.update_widget(card_widget["id"], {"title": "x"})
    assert repository.save_count == count + 1


def test_rehydrates_full_state(repository, clock, card_widget):
    first = DashboardStore(repository, clock=clock)
    first.add_widget(card_widget)
    other = first.create_dashboard("Other", "light")

    second = DashboardStore(repository, clock=clock)
    assert second.snapshot() == first.snapshot()
    assert second.current_dashboard_id == other["id"]


def test_unexpected_stored_shape_starts_fresh(clock):
    repository = MemoryRepository()
    repository.save("finboard-dashboard", {"dashboards": "nope"})
    store = DashboardStore(repository, clock=clock)
    assert store.current_dashboard_id == "default"
    assert store.widgets == []


def test_missing_default_is_restored(clock):
    repository = MemoryRepository()
    repository.save("finboard-dashboard", {
        "dashboards": [{"id": "d1", "name": "Only", "theme": "dark", "widgets": [],
                        "createdAt": 1, "updatedAt": 1}],
        "currentDashboardId": "d1",
        "widgets": [],
    })
    store = DashboardStore(repository, clock=clock)
    assert _default_count(store) == 1
    assert store.delete_dashboard("d1")
    assert store.current_dashboard_id == "default"


def test_unknown_current_dashboard_falls_back_to_default(clock, card_widget, chart_widget):
    repository = MemoryRepository()
    repository.save("finboard-dashboard", {
        "dashboards": [{"id": "default", "name": "Default Dashboard", "theme": "dark",
                        "widgets": [card_widget], "createdAt": 1, "updatedAt": 1}],
        "currentDashboardId": "gone",
        "widgets": [],
    })
    store = DashboardStore(repository, clock=clock)

    assert store.current_dashboard_id == "default"
    assert _ids(store.widgets) == [card_widget["id"]]
    _assert_mirrored(store)

    store.add_widget(chart_widget)
    assert _ids(store.widgets) == [card_widget["id"], chart_widget["id"]]
    _assert_mirrored(store)


def test_malformed_stored_dashboards_are_dropped(clock, card_widget):
    repository = MemoryRepository()
    repository.save("finboard-dashboard", {
        "dashboards": [
            "junk",
            {"name": "no id", "widgets": []},
            {"id": "default", "name": "Default Dashboard", "theme": "dark",
             "widgets": [], "createdAt": 1, "updatedAt": 1},
            {"id": "default", "name": "Duplicate", "theme": "light",
             "widgets": [], "createdAt": 2, "updatedAt": 2},
        ],
        "currentDashboardId": "default",
        "widgets": [],
    })
    store = DashboardStore(repository, clock=clock)

    assert len(store.dashboards) == 1
    assert _default_count(store) == 1
    assert not store.switch_dashboard("missing")
    store.add_widget(card_widget)
    assert store.create_dashboard("Next", "dark")["name"] == "Next"
    _assert_mirrored(store)


def test_active_widgets_resynced_from_current_dashboard(clock, card_widget):
    repository = MemoryRepository()
    repository.save("finboard-dashboard", {
        "dashboards": [{"id": "default", "name": "Default Dashboard", "theme": "dark",
                        "widgets": [card_widget], "createdAt": 1, "updatedAt": 1}],
        "currentDashboardId": "default",
        "widgets": [],
    })
    store = DashboardStore(repository, clock=clock)
    assert _ids(store.widgets) == [card_widget["id"]]
    _assert_mirrored(store)


def test_subscribers_notified_with_snapshot(store, card_widget):
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.add_widget(card_widget)
    assert len(seen) == 1
    assert seen[0]["widgets"][0]["id"] == card_widget["id"]

    seen[0]["widgets"].clear()
    assert len(store.widgets) == 1

    unsubscribe()
    store.clear_widgets()
    assert len(seen) == 1


def test_failing_subscriber_does_not_break_commands(store, card_widget):
    calls = []

    def broken(state):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(calls.append)
    store.add_widget(card_widget)
    assert len(store.widgets) == 1
    assert len(calls) == 1
