from __future__ import annotations

import random

from config import EngineConfig
from errors import ErrorCode
from game_loop import RebellionLoop
from models import WeekStep
from store import new_faction


def _loop(tmp_path, rng=None) -> RebellionLoop:
    game = RebellionLoop(EngineConfig(data_dir=str(tmp_path)), rng=rng)
    game.init(faction=new_faction())
    return game


def test_actions_wait_for_activity(tmp_path, scripted) -> None:
    game = _loop(tmp_path, scripted([10, 3, 12, 1, 1, 99]))

    early = game.perform_action("recruitSupporters")
    assert early["code"] == ErrorCode.PRECONDITION_FAILED.value

    for step in ("maintenance_start", "attrition", "notoriety_check", "treasury_check", "rank_up"):
        assert game.step(step)["success"]
    assert game.phase == WeekStep.ACTIVITY

    result = game.perform_action("recruitSupporters")
    assert result["tier"] == "success"
    assert game.faction.supporters == 2

    assert game.end_activity()["success"]
    assert game.step("event_phase")["success"]
    assert game.step("archive")["success"]
    assert game.faction.week == 2
    assert game.phase == WeekStep.MAINTENANCE_START


def test_overlapping_calls_are_rejected(tmp_path) -> None:
    game = _loop(tmp_path)
    game._lock.acquire()
    try:
        result = game.step("maintenance_start")
    finally:
        game._lock.release()
    assert result["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert game.faction.completed_steps == []


def test_callbacks_see_phase_and_state(tmp_path) -> None:
    game = _loop(tmp_path)
    phases_seen, states = [], []
    game._on_phase_change = lambda phase, data: phases_seen.append(phase)
    game._on_state_update = states.append

    game.step("maintenance_start")

    assert phases_seen == [WeekStep.ATTRITION]
    assert states[-1]["phase"] == "attrition"
    assert "bonuses" in states[-1]


def test_rejections_are_logged(tmp_path) -> None:
    game = _loop(tmp_path)
    game.step("archive")
    assert game.action_log[-1]["type"] == "REJECTED"


def test_seeded_weeks_keep_the_invariants(tmp_path) -> None:
    game = _loop(tmp_path, random.Random(7))
    rank = game.faction.rank

    for _ in range(12):
        results = game.run_week()
        assert all(r["success"] for r in results), results[-1]
        faction = game.faction
        for counter in ("supporters", "population", "notoriety", "danger"):
            assert getattr(faction, counter) >= 0
        assert faction.treasury >= 0
        assert faction.rank >= rank
        rank = faction.rank
        assert len({e.name for e in faction.events if e.is_live(faction.week)}) == \
            len([e for e in faction.events if e.is_live(faction.week)])

    assert game.faction.week == 13
    assert len(game.faction.history) == 12


def test_save_then_load(tmp_path) -> None:
    game = _loop(tmp_path)
    game.update({"supporters": 30})
    filename = game.save_game()["filename"]

    game.update({"supporters": 31})
    assert game.load_game(filename)["success"]
    assert game.faction.supporters == 30
    assert [s["filename"] for s in game.list_saves()] == [filename]


def test_save_and_load_wait_for_the_lock(tmp_path) -> None:
    game = _loop(tmp_path)
    filename = game.save_game()["filename"]
    faction = game.faction

    game._lock.acquire()
    try:
        load = game.load_game(filename)
        save = game.save_game("other")
    finally:
        game._lock.release()

    assert load["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert save["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert game.faction is faction
    assert [s["filename"] for s in game.list_saves()] == [filename]


def test_run_week_stops_at_a_pending_event_choice(tmp_path, scripted) -> None:
    game = _loop(tmp_path, scripted([10, 3, 99]))
    for step in ("maintenance_start", "attrition", "notoriety_check", "treasury_check",
                 "rank_up", "activity", "event_phase"):
        assert game.step(step)["success"]
    game.faction.pending_selection = {"week": 1, "candidates": [{"name": "Snitch"},
                                                                 {"name": "Traitor"}]}

    results = game.run_week()

    assert results[-1]["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert results[-1]["options"] == ["Snitch", "Traitor"]
    assert game.faction.week == 1
    assert game.faction.pending_selection is not None
    assert game.phase == WeekStep.ARCHIVE


def test_report_is_markdown(tmp_path) -> None:
    game = _loop(tmp_path)
    text = game.report()
    assert text.startswith("# ")
    assert "Silver Ravens" in text
