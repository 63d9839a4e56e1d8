from __future__ import annotations

import copy

from config import EngineConfig
from errors import ErrorCode
from models import Ally, Event, PERSISTENT, WeekStep, faction_to_dict
from phases import (
    archive, attrition, maintenance_start, next_step, notoriety_check, rank_up, resolve_status,
    run_step, treasury_check,
)


def _run(faction, steps, rng=None, config=None) -> list:
    results = [run_step(faction, step, rng=rng, config=config) for step in steps]
    assert all(r["success"] for r in results), results
    return results


MAINTENANCE = ["maintenance_start", "attrition", "notoriety_check", "treasury_check", "rank_up"]


def test_rank_follows_supporters_across_weeks(faction, scripted) -> None:
    config = EngineConfig(progression={2: 50, **{r: 10_000 for r in range(3, 21)}})
    faction.supporters = 40

    week_one = _run(faction, MAINTENANCE, scripted([20, 6]), config)
    assert faction.supporters == 46
    assert week_one[-1]["rank"] == 1
    assert not week_one[-1]["ranked_up"]

    _run(faction, ["activity", "event_phase", "archive"], scripted([99]), config)
    assert faction.week == 2

    _run(faction, MAINTENANCE[:4], scripted([20, 6]), config)
    assert faction.supporters == 52
    faction.actions_used_this_week = 1
    faction.recruited_this_phase = True
    faction.strategist_bonus_used = True

    result = run_step(faction, "rank_up", config=config)

    assert result["ranked_up"]
    assert faction.rank == 2
    assert result["gifts"] == [{"rank": 2, "gift": "Training: +1 skill rank"}]
    assert faction.actions_used_this_week == 0
    assert not faction.recruited_this_phase
    assert not faction.strategist_bonus_used


def test_custom_gift_replaces_the_table(faction) -> None:
    faction.supporters = 10
    faction.custom_gifts = {2: "A safehouse key"}
    result = rank_up(faction)
    assert result["gifts"] == [{"rank": 2, "gift": "A safehouse key"}]


def test_steps_run_in_order_only(faction) -> None:
    before = copy.deepcopy(faction_to_dict(faction))

    early = run_step(faction, "attrition")
    assert early["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert early["expected"] == "maintenance_start"
    assert faction_to_dict(faction) == before

    assert run_step(faction, "maintenance_start")["success"]
    again = run_step(faction, "maintenance_start")
    assert again["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert next_step(faction) == WeekStep.ATTRITION


def test_unknown_step_is_invalid(faction) -> None:
    assert run_step(faction, "siesta")["code"] == ErrorCode.INVALID_REFERENCE.value


def test_attrition_success_loses_a_few(faction, scripted) -> None:
    faction.supporters = 10
    result = attrition(faction, rng=scripted([10, 3]))
    assert result["tier"] == "success"
    assert faction.supporters == 7


def test_attrition_failure_doubled_by_inquisition(faction, scripted) -> None:
    faction.supporters = 20
    faction.events.append(Event(name="Inquisition", week_started=1, duration=PERSISTENT,
                                flags={"loss_multiplier": 2, "mitigated_loss_multiplier": 1.5}))

    result = attrition(faction, rng=scripted([5, 2, 3]))

    assert result["tier"] == "failure"
    assert result["deltas"] == {"supporters": -12}
    assert faction.supporters == 8


def test_mitigated_inquisition_rounds_down(faction, scripted) -> None:
    faction.supporters = 20
    faction.events.append(Event(name="Inquisition", week_started=1, duration=PERSISTENT,
                                mitigated=True,
                                flags={"loss_multiplier": 2, "mitigated_loss_multiplier": 1.5}))
    attrition(faction, rng=scripted([5, 2, 3]))
    assert faction.supporters == 11


def test_attrition_never_goes_negative(faction, scripted) -> None:
    faction.supporters = 2
    attrition(faction, rng=scripted([1, 4, 4]))
    assert faction.supporters == 0


def test_notoriety_check_only_at_threshold(faction, scripted) -> None:
    faction.supporters = 5
    faction.notoriety = 99
    assert notoriety_check(faction)["deltas"] == {}

    faction.notoriety = 100
    result = notoriety_check(faction, rng=scripted([10]))
    assert result["deltas"] == {"supporters": -5, "population": -11}
    assert faction.supporters == 0
    assert faction.population == 11900 - 11


def test_treasury_shortfall_and_manticce(faction, scripted) -> None:
    faction.supporters = 10
    faction.treasury = 1
    result = treasury_check(faction, rng=scripted([1, 1]))
    assert result["deltas"] == {"supporters": -3}

    faction.allies.append(Ally(slug="manticce"))
    result = treasury_check(faction)
    assert result["immune"] == "manticce"
    assert faction.supporters == 7


def test_maintenance_start_ally_notoriety_and_return(faction, scripted) -> None:
    faction.week = 3
    faction.notoriety = 5
    faction.allies.append(Ally(slug="rexus"))
    faction.allies.append(Ally(slug="hetamon"))
    faction.allies.append(Ally(slug="jilia", missing=True, missing_week=2))

    result = maintenance_start(faction, rng=scripted([6]))

    assert faction.notoriety == 0
    assert result["deltas"]["notoriety"] == -5
    assert faction.get_ally("jilia").is_active()
    assert "jilia returns from hiding" in result["notes"]


def test_status_report_lists_troubled_members(faction, add_team) -> None:
    add_team("peddlers", missing=True)
    faction.allies.append(Ally(slug="strea", captured=True, danger_dc=12))
    status = maintenance_start(faction)["status"]
    assert [t["index"] for t in status["teams"]] == [1]
    assert status["allies"][0]["slug"] == "strea"


def test_ransom_and_recover(faction, add_team) -> None:
    missing = add_team("peddlers", missing=True)
    disabled = add_team("sneaks", disabled=True)

    result = resolve_status(faction, "team", missing, "ransom")
    assert result["success"]
    assert faction.treasury == 0
    assert not faction.teams[missing].missing

    resolve_status(faction, "team", disabled, "recover")
    assert faction.teams[disabled].disabled
    archive(faction)
    assert not faction.teams[disabled].disabled


def test_status_errors(faction, add_team) -> None:
    healthy = add_team("peddlers")
    assert resolve_status(faction, "team", 9, "search")["code"] == \
        ErrorCode.INVALID_REFERENCE.value
    assert resolve_status(faction, "team", healthy, "search")["code"] == \
        ErrorCode.PRECONDITION_FAILED.value

    faction.teams[healthy].missing = True
    assert resolve_status(faction, "team", healthy, "ransom", cost=50)["code"] == \
        ErrorCode.PRECONDITION_FAILED.value
    assert resolve_status(faction, "team", healthy, "pray")["code"] == \
        ErrorCode.AMBIGUOUS_CHOICE.value


def test_search_uses_ally_danger_dc(faction, scripted) -> None:
    faction.allies.append(Ally(slug="strea", captured=True, danger_dc=12))
    result = resolve_status(faction, "ally", "strea", "search", rng=scripted([12]))
    assert result["check"]["dc"] == 12
    assert faction.get_ally("strea").is_active()


def test_archive_expires_events_and_advances(faction, add_team) -> None:
    performers = add_team("streetPerformers", has_acted_this_week=True)
    faction.completed_steps = [s.value for s in WeekStep if s != WeekStep.ARCHIVE]
    faction.events = [
        Event(name="One Week", week_started=1, duration=1, kind="custom"),
        Event(name="Two Weeks", week_started=1, duration=2, kind="custom"),
        Event(name="Forever", week_started=1, duration=PERSISTENT, kind="custom"),
        Event(name="Next Week", week_started=2, duration=1, kind="custom"),
    ]

    result = run_step(faction, "archive")

    assert result["expired"] == ["One Week"]
    assert [e.name for e in faction.events] == ["Two Weeks", "Forever", "Next Week"]
    assert faction.week == 2
    assert faction.completed_steps == []
    assert faction.history[-1]["week"] == 1
    assert not faction.teams[performers].has_acted_this_week
