from __future__ import annotations

import os

from errors import ErrorCode
from models import Event, Team, faction_from_dict, faction_to_dict
from store import StateStore, new_faction


def test_update_merges_scalars_and_replaces_collections(tmp_path) -> None:
    store = StateStore(str(tmp_path), new_faction())

    result = store.update({"supporters": 12,
                           "teams": [{"type": "sneaks", "category": "outlaws", "label": "Sneaks"}]})

    assert result["success"]
    assert result["updated"] == ["supporters", "teams"]
    faction = store.get()
    assert faction.supporters == 12
    assert faction.treasury == 10.0
    assert faction.teams == [Team(type="sneaks", category="outlaws", label="Sneaks")]


def test_update_rejects_bad_input_without_changes(tmp_path) -> None:
    store = StateStore(str(tmp_path), new_faction())
    store.get().rank = 3
    before = faction_to_dict(store.get())

    assert store.update({"supporters": 5, "charisma": 3})["code"] == \
        ErrorCode.INVALID_REFERENCE.value
    assert store.update({"supporters": 5, "notoriety": -1})["code"] == \
        ErrorCode.PRECONDITION_FAILED.value
    assert store.update({"rank": 2})["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert faction_to_dict(store.get()) == before


def test_update_rejects_wrongly_typed_values(tmp_path) -> None:
    store = StateStore(str(tmp_path), new_faction())
    before = faction_to_dict(store.get())

    for partial in ({"rank": "5"}, {"supporters": "lots"}, {"treasury": True},
                    {"focus": 3}, {"teams": ["junk"]}, {"events": {"name": "Snitch"}}):
        result = store.update(partial)
        assert result["code"] == ErrorCode.PRECONDITION_FAILED.value, partial

    assert faction_to_dict(store.get()) == before
    assert store.update({"treasury": 12})["success"]
    assert store.get().treasury == 12


def test_save_and_load_round_trip(tmp_path) -> None:
    store = StateStore(str(tmp_path), new_faction())
    faction = store.get()
    faction.week = 7
    faction.custom_gifts = {3: "Old map"}
    faction.events.append(Event(name="Low Morale", week_started=6, duration=-1,
                                check_bonus={"loyalty": -4}, mitigated=True))

    saved = store.save()
    assert saved["success"]
    assert saved["filename"].startswith("save_week007_")
    assert os.path.exists(tmp_path / saved["filename"])

    fresh = StateStore(str(tmp_path))
    loaded = fresh.load_latest()
    assert faction_to_dict(loaded) == faction_to_dict(faction)
    assert loaded.custom_gifts == {3: "Old map"}
    assert loaded.events[0].is_persistent


def test_load_missing_file_is_invalid_reference(tmp_path) -> None:
    assert StateStore(str(tmp_path)).load("nope")["code"] == ErrorCode.INVALID_REFERENCE.value


def test_empty_directory_starts_a_new_rebellion(tmp_path) -> None:
    faction = StateStore(str(tmp_path / "empty")).load_latest()
    assert faction.week == 1
    assert [t.type for t in faction.teams] == ["silverRavens"]


def test_old_saves_get_defaults() -> None:
    faction = faction_from_dict({"week": 3, "teams": [{"type": "peddlers", "retired": True}]})
    assert faction.week == 3
    assert faction.danger == 20
    assert faction.teams[0].type == "peddlers"
    assert faction.completed_steps == []


def test_unreadable_save_reports_an_error_code(tmp_path) -> None:
    (tmp_path / "save_broken.json").write_text("{not json", encoding="utf-8")
    store = StateStore(str(tmp_path))
    result = store.load("save_broken.json")
    assert result["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert store.load_latest().week == 1
