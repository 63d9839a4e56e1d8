from __future__ import annotations

import pytest

from config import EngineConfig
from errors import ErrorCode
from models import Ally, Event, Officer, PERSISTENT
from modifiers import (
    calculate_earn_income, calculate_rank, compute_bonus, effective_danger, event_chance,
    max_actions, recruitment_bonus, resolve_dc,
)


def _labels(result: dict) -> list[str]:
    return [p["label"] for p in result["parts"]]


def test_base_bonus_comes_from_focus(faction) -> None:
    result = compute_bonus(faction, "loyalty")
    assert result["total"] == 2
    assert result["parts"] == [{"label": "Focus", "value": 2}]
    assert compute_bonus(faction, "secrecy")["total"] == 0


def test_officer_uses_best_attribute_unless_pinned(faction, lookup) -> None:
    faction.officers.append(Officer(role="demagogue", actor_ref="pc_ezra"))
    assert compute_bonus(faction, "loyalty", lookup=lookup)["total"] == 2 + 4

    faction.officers[0].selected_attribute = "con"
    assert compute_bonus(faction, "loyalty", lookup=lookup)["total"] == 2 + 1


def test_only_best_officer_per_role_counts(faction, lookup) -> None:
    faction.officers.append(Officer(role="spymaster", actor_ref="pc_ezra"))
    faction.officers.append(Officer(role="spymaster", actor_ref="pc_mira"))
    assert compute_bonus(faction, "secrecy", lookup=lookup)["total"] == 4


def test_unavailable_officer_adds_nothing(faction, lookup) -> None:
    faction.officers.append(Officer(role="spymaster", actor_ref="pc_mira", captured=True))
    assert compute_bonus(faction, "secrecy", lookup=lookup)["total"] == 0


def test_sentinel_adds_one_to_selected_checks(faction) -> None:
    faction.officers.append(Officer(role="sentinel", selected_checks=["security", "secrecy"]))
    assert compute_bonus(faction, "security")["total"] == 1
    assert compute_bonus(faction, "loyalty")["total"] == 2


def test_ally_bonus_is_gated_on_availability(faction) -> None:
    faction.allies.append(Ally(slug="jilia"))
    assert compute_bonus(faction, "security")["total"] == 2

    faction.allies[0].captured = True
    assert compute_bonus(faction, "security")["total"] == 0


def test_action_specific_ally_bonus(faction) -> None:
    faction.allies.append(Ally(slug="laria"))
    plain = compute_bonus(faction, "loyalty")
    recruiting = compute_bonus(faction, "loyalty", {"action": "recruitSupporters"})
    assert recruiting["total"] == plain["total"] + 2
    assert "Laria Longroad (recruitSupporters)" in _labels(recruiting)


def test_mitigated_event_applies_reduced_delta(faction) -> None:
    faction.events.append(Event(name="Low Morale", week_started=1, duration=PERSISTENT,
                                check_bonus={"loyalty": -4},
                                mitigated_check_bonus={"loyalty": -2}))
    assert compute_bonus(faction, "loyalty")["total"] == -2

    faction.events[0].mitigated = True
    assert compute_bonus(faction, "loyalty")["total"] == 0


def test_custom_modifier_only_inside_its_window(faction) -> None:
    faction.events.append(Event(name="Festival", week_started=3, duration=2, kind="custom",
                                check_bonus={"loyalty": 3}))
    assert compute_bonus(faction, "loyalty")["total"] == 2
    faction.week = 3
    assert compute_bonus(faction, "loyalty")["total"] == 5
    faction.week = 5
    assert compute_bonus(faction, "loyalty")["total"] == 2


def test_safehouses_stack_up_to_five(faction) -> None:
    for i in range(7):
        faction.events.append(Event(name=f"Safehouse: {i}", week_started=1, duration=PERSISTENT,
                                    kind="action", check_bonus={"security": 1},
                                    stack_group="safehouse"))
    assert compute_bonus(faction, "security")["total"] == 5


def test_strategist_grants_extra_action(faction) -> None:
    assert max_actions(faction) == 1
    faction.officers.append(Officer(role="strategist", actor_ref="pc_mira"))
    assert max_actions(faction) == 2


def test_recruiters_stack_levels(faction, lookup) -> None:
    faction.officers.append(Officer(role="recruiter", actor_ref="pc_ezra"))
    faction.officers.append(Officer(role="recruiter", actor_ref="pc_mira"))
    assert recruitment_bonus(faction, lookup) == 9


def test_effective_danger_never_negative(faction) -> None:
    faction.danger = 5
    faction.events.append(Event(name="Reduced Threat", week_started=1, danger_delta=-10))
    assert effective_danger(faction)["total"] == 0


def test_event_chance_doubles_after_quiet_weeks(faction) -> None:
    faction.weeks_without_event = 2
    chance = event_chance(faction)
    assert chance["base"] == 20
    assert chance["chance"] == 40
    assert chance["doubled"]


def test_event_chance_clamped_and_guaranteed(faction) -> None:
    faction.danger = 0
    assert event_chance(faction)["chance"] == 10
    faction.notoriety = 80
    faction.weeks_without_event = 1
    assert event_chance(faction)["chance"] == 95

    faction.events.append(Event(name="Guaranteed Event", week_started=1,
                                flags={"guarantee_event": True}))
    assert event_chance(faction)["chance"] == 100


def test_event_chance_limits_are_configurable(faction) -> None:
    faction.danger = 0
    assert event_chance(faction, EngineConfig(event_chance_min=5))["chance"] == 5


def test_rank_never_drops() -> None:
    assert calculate_rank(0, 5, 20) == 5
    assert calculate_rank(10, 1, 20) == 2
    assert calculate_rank(100000, 1, 12) == 12


def test_rank_thresholds_can_be_overridden() -> None:
    config = EngineConfig(progression={2: 50, **{r: 10_000 for r in range(3, 21)}})
    assert calculate_rank(46, 1, 20, config) == 1
    assert calculate_rank(52, 1, 20, config) == 2


def test_resolve_dc_variants(faction) -> None:
    faction.rank = 3
    assert resolve_dc(15, faction)["dc"] == 15
    assert resolve_dc("rank", faction)["dc"] == 13
    assert resolve_dc("level", faction, {"target_level": 7})["dc"] == 17
    assert resolve_dc({"small": 15, "large": 30}, faction, {"size": "large"})["dc"] == 30
    assert resolve_dc("earn_income", faction)["dc"] == 18
    assert resolve_dc("caller", faction, {"dc": 22})["dc"] == 22


def test_resolve_dc_level_reads_lookup(faction, lookup) -> None:
    assert resolve_dc("level", faction, {"target_ref": "pc_ezra"}, lookup)["dc"] == 15


def test_resolve_dc_needs_a_choice(faction) -> None:
    assert resolve_dc({"small": 15}, faction)["code"] == ErrorCode.AMBIGUOUS_CHOICE.value
    assert resolve_dc("caller", faction)["code"] == ErrorCode.AMBIGUOUS_CHOICE.value


def test_earn_income_tiers() -> None:
    success = calculate_earn_income(1, 1, 15, 15)
    assert success["tier"] == "success"
    assert success["copper"] == 140
    assert success["gold"] == pytest.approx(1.4)

    assert calculate_earn_income(1, 1, 25, 15)["copper"] == 210
    failure = calculate_earn_income(1, 1, 10, 15)
    assert (failure["tier"], failure["copper"], failure["proficiency"]) == ("failure", 14, "trained")
    assert failure["gold"] == pytest.approx(0.14)
    assert calculate_earn_income(1, 1, 4, 15)["copper"] == 0
    assert calculate_earn_income(1, 1, 30, 15, natural=1)["tier"] == "critical_failure"


def test_earn_income_uses_team_proficiency() -> None:
    assert calculate_earn_income(4, 2, 19, 19)["copper"] == 560
    assert calculate_earn_income(4, 1, 19, 19)["copper"] == 490
