from __future__ import annotations

from config import EngineConfig
from errors import ErrorCode
from events import (
    EventPass, add_custom_modifier, apply_event, cancel_pending_event, maybe_fire_event,
    mitigate_event, remove_event, respond_to_event, schedule_event, select_pending_event,
    supporter_loss_multiplier, tick_ongoing_events,
)
from models import Ally, Event, PERSISTENT
from modifiers import compute_bonus, effective_danger
from phases import archive, resolve_status


def _named(faction, name: str) -> list:
    return [e for e in faction.events if e.name == name]


def test_event_window_is_half_open() -> None:
    event = Event(name="Sickness", week_started=3, duration=2)
    assert [event.is_active(w) for w in (2, 3, 4, 5)] == [False, True, True, False]
    assert event.expires_by(5)
    assert not event.expires_by(4)

    forever = Event(name="Inquisition", week_started=3, duration=PERSISTENT)
    assert forever.is_active(300)
    assert not forever.expires_by(300)


def test_schedule_merges_same_name(faction) -> None:
    schedule_event(faction, Event(name="Sickness", week_started=2, duration=1))
    result = schedule_event(faction, Event(name="Sickness", week_started=3, duration=2))
    assert result["status"] == "merged"
    assert len(_named(faction, "Sickness")) == 1
    assert faction.events[0].duration == 3


def test_quiet_week_doubles_chance_and_miss_keeps_counting(faction, scripted) -> None:
    faction.weeks_without_event = 2

    result = maybe_fire_event(faction, rng=scripted([41]))

    assert result["chance"]["chance"] == 40
    assert not result["fired"]
    assert faction.weeks_without_event == 3


def test_draw_at_chance_fires_and_resets_counter(faction, scripted) -> None:
    faction.weeks_without_event = 2
    rng = scripted([40, 5, 2, 3])

    result = maybe_fire_event(faction, rng=rng)

    assert result["fired"]
    assert result["draws"][0]["total"] == 25
    assert [o["event"] for o in result["outcomes"]] == ["Rising Support"]
    assert faction.supporters == 5
    assert faction.weeks_without_event == 0
    assert rng.exhausted


def test_roll_twice_applies_two_other_events(faction, scripted) -> None:
    faction.danger = 0
    rng = scripted([5, 50, 25, 55, 1, 1, 15])

    result = maybe_fire_event(faction, rng=rng)

    assert [d["name"] for d in result["draws"]] == ["Roll Twice", "Rising Support", "Snitch"]
    assert [o["event"] for o in result["outcomes"]] == ["Rising Support", "Snitch"]
    assert faction.supporters == 2
    assert faction.notoriety == 0
    assert rng.exhausted


def test_snitch_costs_a_supporter_only_when_loyalty_fails(faction, scripted) -> None:
    faction.supporters = 10
    saved = apply_event(faction, "Snitch", rng=scripted([20]))
    assert saved["deltas"] == {}
    assert faction.supporters == 10

    apply_event(faction, "Snitch", rng=scripted([2, 4]))
    assert faction.supporters == 9
    assert faction.notoriety == 4


def test_all_quiet_suppresses_the_draw(faction) -> None:
    faction.events.append(Event(name="All Quiet", week_started=1, flags={"suppress_event": True}))
    result = maybe_fire_event(faction)
    assert result["suppressed"]
    assert faction.weeks_without_event == 1


def test_escalation_is_idempotent_within_a_pass(faction) -> None:
    event_pass = EventPass()
    statuses = []
    for _ in range(3):
        record = apply_event(faction, "Dangerous Times", event_pass=event_pass)
        statuses.append(record["scheduled"][0]["status"])

    assert statuses == ["scheduled", "escalated", "already persistent"]
    entries = _named(faction, "Dangerous Times")
    assert len(entries) == 1
    assert entries[0].is_persistent
    assert entries[0].week_started == 2


def test_repeat_in_a_new_pass_only_extends(faction) -> None:
    apply_event(faction, "Dangerous Times", event_pass=EventPass())
    record = apply_event(faction, "Dangerous Times", event_pass=EventPass())
    assert record["scheduled"][0]["status"] == "extended"
    assert not faction.events[0].is_persistent


def test_mitigated_event_blocks_escalation_by_default(faction) -> None:
    event_pass = EventPass()
    apply_event(faction, "Low Morale", event_pass=event_pass)
    faction.events[0].mitigated = True

    record = apply_event(faction, "Low Morale", event_pass=event_pass)

    assert record["scheduled"][0]["status"] == "blocked (mitigated)"
    assert not faction.events[0].is_persistent
    assert faction.events[0].mitigated


def test_mitigated_escalation_policies(faction) -> None:
    for policy, still_mitigated in (("keep", True), ("reset", False)):
        faction.events.clear()
        config = EngineConfig(mitigated_escalation=policy)
        event_pass = EventPass()
        apply_event(faction, "Low Morale", config=config, event_pass=event_pass)
        faction.events[0].mitigated = True

        record = apply_event(faction, "Low Morale", config=config, event_pass=event_pass)

        assert record["scheduled"][0]["status"] == "escalated"
        assert faction.events[0].is_persistent
        assert faction.events[0].mitigated is still_mitigated


def test_mitigation_is_idempotent(faction, scripted) -> None:
    faction.events.append(Event(name="Dangerous Times", week_started=1, duration=PERSISTENT,
                                mitigate="intimidation", dc=20,
                                danger_delta=10, mitigated_danger_delta=5))
    assert effective_danger(faction)["total"] == 30

    result = mitigate_event(faction, 0, skill_bonus=5, rng=scripted([15]))
    assert result["tier"] == "success"
    assert effective_danger(faction)["total"] == 25

    again = mitigate_event(faction, 0, skill_bonus=5)
    assert again["noop"]
    assert again["summary"] == "Dangerous Times already mitigated"
    assert effective_danger(faction)["total"] == 25


def test_one_mitigation_attempt_per_week(faction, scripted) -> None:
    faction.events.append(Event(name="Sickness", week_started=1, mitigate="medicine", dc=20,
                                check_bonus={"security": -4},
                                mitigated_check_bonus={"security": -2}))
    assert not mitigate_event(faction, 0, rng=scripted([2]))["tier"].endswith("success")

    result = mitigate_event(faction, 0, rng=scripted([20]))
    assert result["code"] == ErrorCode.PRECONDITION_FAILED.value


def test_mitigation_errors(faction) -> None:
    faction.events.append(Event(name="Reduced Threat", week_started=1, danger_delta=-10))
    assert mitigate_event(faction, 0)["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert mitigate_event(faction, 7)["code"] == ErrorCode.INVALID_REFERENCE.value


def test_mitigating_rivalry_ends_it(faction, add_team, scripted) -> None:
    first = add_team("streetPerformers")
    second = add_team("peddlers")
    faction.events.append(Event(name="Rivalry", week_started=1, mitigate="diplomacy", dc=20,
                                blocked_teams=[first, second]))
    tick_ongoing_events(faction)
    assert faction.teams[first].blocked_by_rivalry

    mitigate_event(faction, 0, rng=scripted([20]))

    assert _named(faction, "Rivalry") == []
    assert not faction.teams[first].blocked_by_rivalry
    assert not faction.teams[second].blocked_by_rivalry


def test_mitigating_infiltration_halves_remaining_weeks(faction, scripted) -> None:
    faction.events.append(Event(name="Devil Infiltration", week_started=1, duration=5,
                                mitigate="perception", dc=20, flags={"infiltration": True}))
    mitigate_event(faction, 0, rng=scripted([20]))
    assert faction.events[0].duration == 2
    assert faction.events[0].mitigated


def test_ally_immunity_swaps_event_for_supporters(faction, scripted) -> None:
    faction.allies.append(Ally(slug="cassius"))

    record = apply_event(faction, "Increased Patrols", rng=scripted([1, 2, 3]))

    assert record["immune"] == "cassius"
    assert faction.supporters == 6
    assert _named(faction, "Increased Patrols") == []


def test_unavailable_ally_grants_no_immunity(faction) -> None:
    faction.allies.append(Ally(slug="cassius", captured=True))
    apply_event(faction, "Increased Patrols")
    faction.week = 2
    assert compute_bonus(faction, "secrecy")["total"] == -4


def test_manipulated_week_offers_two_candidates(faction, scripted) -> None:
    faction.danger = 0
    faction.events.append(Event(name="Manipulated Events", week_started=1, kind="action",
                                flags={"allow_event_reroll": True}))

    result = maybe_fire_event(faction, rng=scripted([5, 25, 55]))

    assert result["pending"]
    assert [c["name"] for c in faction.pending_selection["candidates"]] == \
        ["Rising Support", "Snitch"]
    assert maybe_fire_event(faction)["code"] == ErrorCode.PRECONDITION_FAILED.value
    assert archive(faction)["code"] == ErrorCode.PRECONDITION_FAILED.value

    outcome = select_pending_event(faction, 0, rng=scripted([2, 2]))
    assert outcome["event"] == "Rising Support"
    assert faction.supporters == 4
    assert faction.pending_selection is None


def test_cancel_discards_both_candidates(faction) -> None:
    faction.pending_selection = {"week": 1, "candidates": [{"name": "Snitch"}, {"name": "Traitor"}]}
    assert cancel_pending_event(faction)["success"]
    assert faction.pending_selection is None
    assert cancel_pending_event(faction)["code"] == ErrorCode.PRECONDITION_FAILED.value


def test_traitor_caught_imprisoned_and_persuaded(faction, add_team, scripted) -> None:
    performers = add_team("streetPerformers")

    apply_event(faction, "Traitor", rng=scripted([2, 20]))
    assert faction.teams[performers].disabled
    assert _named(faction, "Traitor Caught")

    respond_to_event(faction, "Traitor Caught", "imprison")
    assert _named(faction, "Traitor Caught") == []
    assert _named(faction, "Traitor Imprisoned")

    result = respond_to_event(faction, "Traitor Imprisoned", "persuade", rng=scripted([20]))
    assert result["success"]
    assert not faction.teams[performers].disabled
    assert _named(faction, "Traitor Imprisoned") == []
    assert _named(faction, "Persuasion Bonus")[0].week_started == 2


def test_traitor_reference_follows_the_team_after_a_removal(faction, add_team, scripted) -> None:
    peddlers = add_team("peddlers", missing=True)
    performers = add_team("streetPerformers")

    apply_event(faction, "Traitor", rng=scripted([2, 20]))
    assert _named(faction, "Traitor Caught")[0].flags["team_index"] == performers

    assert resolve_status(faction, "team", peddlers, "abandon")["success"]
    assert _named(faction, "Traitor Caught")[0].flags["team_index"] == 1

    respond_to_event(faction, "Traitor Caught", "execute", rng=scripted([20]))
    assert faction.teams[1].type == "streetPerformers"
    assert faction.teams[1].can_auto_recover_next_week


def test_failed_persuasion_keeps_the_prisoner(faction, scripted) -> None:
    faction.events.append(Event(name="Traitor Imprisoned", week_started=1, duration=PERSISTENT,
                                kind="response", flags={"choices": ["persuade"]}))
    respond_to_event(faction, "Traitor Imprisoned", "persuade", rng=scripted([3]))
    assert _named(faction, "Traitor Imprisoned")


def test_response_choice_must_be_offered(faction) -> None:
    apply_event(faction, "Invasion")
    result = respond_to_event(faction, "Invasion", "negotiate")
    assert result["code"] == ErrorCode.AMBIGUOUS_CHOICE.value
    assert respond_to_event(faction, "Traitor Caught", "exile")["code"] == \
        ErrorCode.INVALID_REFERENCE.value


def test_ignored_invasion_costs_teams_and_morale(faction, add_team, scripted) -> None:
    add_team("streetPerformers")
    add_team("freedomFighters")
    apply_event(faction, "Invasion")

    respond_to_event(faction, "Invasion", "ignore", rng=scripted([1, 1, 1, 2]))

    assert [t.type for t in faction.teams] == ["silverRavens", "freedomFighters"]
    assert faction.teams[1].disabled
    assert _named(faction, "Invasion") == []
    assert _named(faction, "Low Morale")[0].is_persistent


def test_inquisition_multiplies_supporter_losses(faction) -> None:
    assert supporter_loss_multiplier(faction) == 1
    faction.events.append(Event(name="Inquisition", week_started=1, duration=PERSISTENT,
                                flags={"loss_multiplier": 2, "mitigated_loss_multiplier": 1.5}))
    assert supporter_loss_multiplier(faction) == 2
    faction.events[0].mitigated = True
    assert supporter_loss_multiplier(faction) == 1.5


def test_infiltration_tick_halves_on_loyal_ranks(faction, scripted) -> None:
    faction.events.append(Event(name="Devil Infiltration", week_started=1, duration=3,
                                flags={"infiltration": True}))
    tick_ongoing_events(faction, rng=scripted([5, 13]))
    assert faction.notoriety == 2


def test_custom_modifier_validation(faction) -> None:
    assert add_custom_modifier(faction, "Bad", {"charm": 2})["code"] == \
        ErrorCode.INVALID_REFERENCE.value
    assert add_custom_modifier(faction, "Festival", {"loyalty": 2}, duration=0)["code"] == \
        ErrorCode.PRECONDITION_FAILED.value

    result = add_custom_modifier(faction, "Festival", {"loyalty": 2}, duration=2)
    assert result["status"] == "created"
    assert compute_bonus(faction, "loyalty")["total"] == 4

    assert remove_event(faction, 0)["removed"] == "Festival"
    assert remove_event(faction, 0)["code"] == ErrorCode.INVALID_REFERENCE.value
