"""
Silver Ravens Engine v1.0 — Phase Controller
The weekly steps, one call each, in fixed order:

  maintenance_start -> attrition -> notoriety_check -> treasury_check
  -> rank_up -> activity -> event_phase -> archive -> (next week)

Order matters for the numbers: the notoriety check reads supporters as
left by attrition. Repeating a finished step, or skipping ahead, is a
PreconditionFailed with nothing changed.
"""

import logging
import math

from config import DEFAULT_CONFIG
from dice import roll_dice, roll_check, is_success
from errors import precondition, invalid_reference, ambiguous
from events import maybe_fire_event, tick_ongoing_events, supporter_loss_multiplier
from models import Faction, WeekStep, WEEK_ORDER
from modifiers import (
    NULL_LOOKUP, compute_bonus, calculate_rank, is_treasury_low, min_treasury, max_actions,
)
from roster import ALLIES
from tables import PROGRESSION

logger = logging.getLogger("rebellion.phases")


def _bonus(faction: Faction, check: str, lookup) -> int:
    return compute_bonus(faction, check, lookup=lookup)["total"]


def _clamped(faction: Faction, attr: str, amount) -> int:
    """Apply a delta, never below zero. Returns the real change."""
    old = getattr(faction, attr)
    new = max(0, old + amount)
    setattr(faction, attr, new)
    return new - old


def _result(step: WeekStep, faction: Faction, summary: str, **extra) -> dict:
    result = {"success": True, "step": step.value, "week": faction.week, "summary": summary}
    result.update(extra)
    return result


# ─────────────────────────────────────────────────────
# MAINTENANCE START
# ─────────────────────────────────────────────────────

def _status_report(faction: Faction) -> dict:
    """Everything that needs a player decision before the week goes on."""
    return {
        "teams": [{"index": i, "label": t.label or t.type,
                   "disabled": t.disabled, "missing": t.missing}
                  for i, t in enumerate(faction.teams) if t.disabled or t.missing],
        "officers": [{"index": i, "role": o.role, "actor_ref": o.actor_ref,
                      "disabled": o.disabled, "missing": o.missing, "captured": o.captured}
                     for i, o in enumerate(faction.officers) if not o.is_available()],
        "allies": [{"slug": a.slug, "missing": a.missing, "captured": a.captured,
                    "danger_dc": a.danger_dc}
                   for a in faction.allies if a.enabled and (a.missing or a.captured)],
    }


def maintenance_start(faction: Faction, rng=None, lookup=None, config=None) -> dict:
    deltas = {"notoriety": 0}
    notes = []

    for ally in faction.allies:
        if ally.missing and not ally.captured and ally.missing_week and ally.missing_week < faction.week:
            ally.missing = False
            ally.missing_week = 0
            notes.append(f"{ally.slug} returns from hiding")

    for ally in faction.allies:
        if not ally.is_active():
            continue
        definition = ALLIES.get(ally.slug, {})
        if definition.get("notoriety_reduction"):
            deltas["notoriety"] += _clamped(faction, "notoriety", -definition["notoriety_reduction"])
        if definition.get("notoriety_reduction_dice"):
            roll = roll_dice(definition["notoriety_reduction_dice"], f"{ally.slug} notoriety", rng)
            deltas["notoriety"] += _clamped(faction, "notoriety", -roll["total"])

    ticks = tick_ongoing_events(faction, rng, lookup)
    for tick in ticks:
        for attr, value in tick["deltas"].items():
            deltas[attr] = deltas.get(attr, 0) + value

    status = _status_report(faction)
    pending = sum(len(v) for v in status.values())
    return _result(WeekStep.MAINTENANCE_START, faction,
                   f"Maintenance begins. {pending} matter(s) need a decision",
                   deltas=deltas, notes=notes, ticks=ticks, status=status)


def _resolve_target(faction: Faction, kind: str, key):
    if kind == "team":
        return faction.get_team(key)
    if kind == "officer":
        return faction.get_officer(key)
    if kind == "ally":
        return faction.get_ally(key)
    return None


def resolve_status(faction: Faction, kind: str, key, choice: str, rng=None,
                   lookup=None, cost: float = None) -> dict:
    """
    Player decision for a missing/disabled/captured Team, Officer or Ally.
      search   Security DC 15 (captured allies: their danger DC); success brings them back
      ransom   pay gold (default 10 x rank) to bring them back
      abandon  remove the team/officer, or dismiss the ally
      recover  a disabled team returns at the end of the week
    """
    lookup = lookup or NULL_LOOKUP
    target = _resolve_target(faction, kind, key)
    if target is None:
        return invalid_reference(f"No {kind} at {key}")

    troubled = getattr(target, "missing", False) or getattr(target, "captured", False)
    disabled = getattr(target, "disabled", False)
    if not troubled and not disabled:
        return precondition(f"{kind} {key} needs no decision")

    if choice == "recover":
        if not disabled:
            return precondition(f"{kind} {key} is not disabled")
        if kind == "team":
            target.can_auto_recover_next_week = True
            summary = "Recovers at the end of the week"
        else:
            target.disabled = False
            summary = "Back on duty"

    elif choice == "search":
        if not troubled:
            return precondition(f"{kind} {key} is not missing")
        dc = target.danger_dc if kind == "ally" and target.danger_dc else 15
        check = roll_check(_bonus(faction, "security", lookup), dc, f"Search for {kind} {key}", rng)
        if is_success(check["tier"]):
            _bring_back(target)
            summary = "Found and brought home"
        else:
            summary = "No trace yet"
        result = _status_result(faction, kind, key, choice, summary)
        result["check"] = check
        return result

    elif choice == "ransom":
        if not troubled:
            return precondition(f"{kind} {key} is not missing")
        price = cost if cost is not None else 10 * faction.rank
        if price > faction.treasury:
            return precondition(f"Ransom {price} gp exceeds treasury {faction.treasury}")
        faction.treasury -= price
        _bring_back(target)
        summary = f"Ransomed for {price} gp"

    elif choice == "abandon":
        if kind == "team":
            faction.remove_team(key)
        elif kind == "officer":
            faction.officers.pop(key)
        else:
            target.enabled = False
        summary = "Abandoned"

    else:
        return ambiguous(f"Unknown choice {choice}",
                         options=["search", "ransom", "abandon", "recover"])

    return _status_result(faction, kind, key, choice, summary)


def _bring_back(target):
    target.missing = False
    if hasattr(target, "captured"):
        target.captured = False
    if hasattr(target, "danger_dc"):
        target.danger_dc = 0


def _status_result(faction: Faction, kind: str, key, choice: str, summary: str) -> dict:
    faction.log_entry({"type": "status", "kind": kind, "key": key, "choice": choice,
                       "summary": summary})
    logger.info(f"Week {faction.week}: {kind} {key} {choice}: {summary}")
    return {"success": True, "kind": kind, "key": key, "choice": choice, "summary": summary}


# ─────────────────────────────────────────────────────
# ATTRITION / NOTORIETY / TREASURY
# ─────────────────────────────────────────────────────

def attrition(faction: Faction, rng=None, lookup=None, config=None) -> dict:
    """Loyalty check against the attrition DC. Only a great result gains people."""
    config = config or DEFAULT_CONFIG
    dc = config.attrition_dc
    check = roll_check(_bonus(faction, "loyalty", lookup), dc, "Attrition (Loyalty)", rng)

    if check["natural"] == 20 or check["total"] >= dc + 10:
        tier = "critical_success"
        roll = roll_dice("1d6", "Attrition gain", rng)
        change = _clamped(faction, "supporters", roll["total"])
    else:
        tier = "success" if is_success(check["tier"]) else "failure"
        if tier == "success":
            roll = roll_dice("1d6", "Attrition loss", rng)
            loss = roll["total"]
        else:
            roll = roll_dice(f"2d4+{faction.rank}", "Attrition loss", rng)
            loss = roll["total"]
        multiplier = supporter_loss_multiplier(faction)
        if multiplier != 1:
            loss = math.floor(loss * multiplier)
        change = _clamped(faction, "supporters", -loss)

    return _result(WeekStep.ATTRITION, faction,
                   f"Attrition {tier.replace('_', ' ')}: supporters {change:+d}",
                   check=check, tier=tier, roll=roll, deltas={"supporters": change},
                   multiplier=supporter_loss_multiplier(faction))


def notoriety_check(faction: Faction, rng=None, lookup=None, config=None) -> dict:
    config = config or DEFAULT_CONFIG
    if faction.notoriety < config.notoriety_threshold:
        return _result(WeekStep.NOTORIETY_CHECK, faction,
                       f"Notoriety {faction.notoriety} below {config.notoriety_threshold}",
                       deltas={})

    roll = roll_dice(f"1d20+{faction.rank}", "Notoriety losses", rng)
    deltas = {
        "supporters": _clamped(faction, "supporters", -roll["total"]),
        "population": _clamped(faction, "population", -roll["total"]),
    }
    return _result(WeekStep.NOTORIETY_CHECK, faction,
                   f"Hunted: {roll['total']} supporters lost", roll=roll, deltas=deltas)


def treasury_check(faction: Faction, rng=None, lookup=None, config=None) -> dict:
    minimum = min_treasury(faction, config)
    if not is_treasury_low(faction, config):
        return _result(WeekStep.TREASURY_CHECK, faction,
                       f"Treasury {faction.treasury} covers the minimum {minimum}", deltas={})
    if faction.is_ally_active("manticce"):
        return _result(WeekStep.TREASURY_CHECK, faction,
                       "Treasury low, but Manticce covers the shortfall",
                       deltas={}, immune="manticce")

    roll = roll_dice(f"2d4+{faction.rank}", "Treasury shortfall", rng)
    change = _clamped(faction, "supporters", -roll["total"])
    return _result(WeekStep.TREASURY_CHECK, faction,
                   f"Unpaid: {-change} supporters leave", roll=roll,
                   deltas={"supporters": change}, minimum=minimum)


# ─────────────────────────────────────────────────────
# RANK UP
# ─────────────────────────────────────────────────────

def reset_weekly_counters(faction: Faction):
    faction.actions_used_this_week = 0
    faction.strategist_bonus_used = False
    faction.recruited_this_phase = False
    faction.bonus_sources_used = []
    faction.rerolls_used = []


def rank_gift(faction: Faction, rank: int) -> str:
    if rank in faction.custom_gifts:
        return faction.custom_gifts[rank]
    return PROGRESSION.get(rank, {}).get("gift")


def rank_up(faction: Faction, rng=None, lookup=None, config=None) -> dict:
    """Rank from supporters. Never drops. Weekly counters reset regardless."""
    before = faction.rank
    faction.rank = calculate_rank(faction.supporters, before, faction.max_rank, config)
    gifts = [{"rank": r, "gift": rank_gift(faction, r)} for r in range(before + 1, faction.rank + 1)]
    reset_weekly_counters(faction)

    if faction.rank > before:
        summary = f"Rank {before} -> {faction.rank}"
        logger.info(f"Week {faction.week}: {summary}")
    else:
        summary = f"Rank {faction.rank}"
    return _result(WeekStep.RANK_UP, faction, summary, rank_before=before, rank=faction.rank,
                   ranked_up=faction.rank > before, gifts=gifts,
                   max_actions=max_actions(faction))


# ─────────────────────────────────────────────────────
# ACTIVITY / EVENTS / ARCHIVE
# ─────────────────────────────────────────────────────

def end_activity(faction: Faction, rng=None, lookup=None, config=None) -> dict:
    used = faction.actions_used_this_week
    return _result(WeekStep.ACTIVITY, faction,
                   f"Activity over: {used}/{max_actions(faction)} actions",
                   actions_used=used, bonus_actions=list(faction.bonus_sources_used))


def event_phase(faction: Faction, rng=None, lookup=None, config=None) -> dict:
    outcome = maybe_fire_event(faction, rng, config, lookup)
    if not outcome.get("success"):
        return outcome
    return _result(WeekStep.EVENT_PHASE, faction, outcome.get("summary", ""), outcome=outcome)


def archive(faction: Faction, rng=None, lookup=None, config=None) -> dict:
    """Close the week: expire events, reset teams, write history, advance."""
    if faction.pending_selection:
        return precondition("An event choice is pending; select or cancel it first")

    next_week = faction.week + 1
    expired = [e.name for e in faction.events if e.expires_by(next_week)]
    faction.events = [e for e in faction.events if not e.expires_by(next_week)]

    recovered = []
    for team in faction.teams:
        team.has_acted_this_week = False
        team.is_strategist_target = False
        team.current_action = ""
        if team.can_auto_recover_next_week:
            team.disabled = False
            team.can_auto_recover_next_week = False
            recovered.append(team.label or team.type)

    faction.history.append({
        "week": faction.week,
        "rank": faction.rank,
        "supporters": faction.supporters,
        "population": faction.population,
        "notoriety": faction.notoriety,
        "treasury": faction.treasury,
        "danger": faction.danger,
        "actions_used": faction.actions_used_this_week,
        "events": [e.name for e in faction.active_events()],
        "expired": expired,
    })

    week = faction.week
    faction.week = next_week
    faction.completed_steps = []
    logger.info(f"Week {week} archived")
    return {"success": True, "step": WeekStep.ARCHIVE.value, "week": week,
            "next_week": next_week, "expired": expired, "recovered": recovered,
            "summary": f"Week {week} archived"}


STEP_RUNNERS = {
    WeekStep.MAINTENANCE_START: maintenance_start,
    WeekStep.ATTRITION: attrition,
    WeekStep.NOTORIETY_CHECK: notoriety_check,
    WeekStep.TREASURY_CHECK: treasury_check,
    WeekStep.RANK_UP: rank_up,
    WeekStep.ACTIVITY: end_activity,
    WeekStep.EVENT_PHASE: event_phase,
    WeekStep.ARCHIVE: archive,
}


def next_step(faction: Faction) -> WeekStep:
    for step in WEEK_ORDER:
        if step.value not in faction.completed_steps:
            return step
    return WeekStep.ARCHIVE


def run_step(faction: Faction, step, rng=None, lookup=None, config=None) -> dict:
    """Run one step if it is the next one due."""
    try:
        step = WeekStep(step)
    except ValueError:
        return invalid_reference(f"Unknown step: {step}")

    if step.value in faction.completed_steps:
        return precondition(f"{step.value} already done for week {faction.week}")
    expected = next_step(faction)
    if step != expected:
        return precondition(f"Next step is {expected.value}, not {step.value}",
                            expected=expected.value)

    result = STEP_RUNNERS[step](faction, rng, lookup or NULL_LOOKUP, config or DEFAULT_CONFIG)
    if not result.get("success"):
        logger.warning(f"{step.value} rejected: {result.get('error')}")
        return result

    if step != WeekStep.ARCHIVE:
        faction.completed_steps.append(step.value)
    faction.log_entry({"type": "step", "step": step.value, "summary": result["summary"]})
    logger.info(f"Week {result['week']}: {result['summary']}")
    return result
