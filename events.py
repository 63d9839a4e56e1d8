"""
Silver Ravens Engine v1.0 — Event Engine
Weekly random events: chance roll, d100 + Danger table draw, ally
immunities, effect handlers, escalation, mitigation, manipulate picks
and follow-up responses (Invasion, caught Traitor).

Escalation counters live in an EventPass, one per engine invocation.
Most effects schedule an Event entry starting next week.
"""

import logging
from dataclasses import dataclass, field

from config import DEFAULT_CONFIG, MitigatedEscalation
from dice import roll_dice, roll_d100, roll_check, roll_reroll_six, pick_index, pick_distinct, is_success
from errors import precondition, invalid_reference, ambiguous
from models import Faction, Event, EventKind, PERSISTENT
from modifiers import NULL_LOOKUP, compute_bonus, effective_danger, event_chance
from roster import ALLIES, get_team_definition
from tables import CHECKS, EVENT_INDEX, SETTLEMENT_MODIFIERS, lookup_event_row

logger = logging.getLogger("rebellion.events")


# ─────────────────────────────────────────────────────
# SCHEDULING
# ─────────────────────────────────────────────────────

def _window_end(event: Event):
    return None if event.is_persistent else event.week_started + event.duration


def schedule_event(faction: Faction, event: Event) -> dict:
    """
    Add an event, keeping at most one live entry per name.
    A live entry with the same name absorbs the new one: the window is
    extended (or made persistent) instead of duplicating.
    """
    index, existing = faction.find_live_event(event.name)
    if existing is None:
        faction.events.append(event)
        return {"status": "created", "index": len(faction.events) - 1}

    if existing.is_persistent:
        return {"status": "already persistent", "index": index}
    if event.is_persistent:
        existing.duration = PERSISTENT
        return {"status": "merged", "index": index}

    end = max(_window_end(existing), _window_end(event))
    existing.duration = end - existing.week_started
    return {"status": "merged", "index": index}


class EventPass:
    """Occurrence counter scoped to one Event Engine invocation."""

    def __init__(self):
        self.counts = {}

    def occur(self, name: str) -> int:
        self.counts[name] = self.counts.get(name, 0) + 1
        return self.counts[name]


def escalate_event(faction: Faction, event: Event, event_pass: EventPass,
                   policy: MitigatedEscalation = MitigatedEscalation.BLOCK) -> dict:
    """
    Schedule an escalatable event.
    First occurrence in a pass: schedule (or extend a live entry to cover next week).
    Second occurrence: the live entry becomes persistent.
    Later occurrences: already persistent, nothing changes.
    """
    count = event_pass.occur(event.name)
    index, existing = faction.find_live_event(event.name)

    if existing is None:
        if count >= 2:
            event.duration = PERSISTENT
            event.escalation_count = 2
        faction.events.append(event)
        return {"status": "escalated" if count >= 2 else "scheduled",
                "index": len(faction.events) - 1, "count": count}

    if existing.is_persistent:
        return {"status": "already persistent", "index": index, "count": count}

    if count < 2:
        end = max(_window_end(existing), faction.week + 2)
        existing.duration = end - existing.week_started
        return {"status": "extended", "index": index, "count": count}

    if existing.mitigated:
        if policy == MitigatedEscalation.BLOCK:
            end = max(_window_end(existing), faction.week + 2)
            existing.duration = end - existing.week_started
            return {"status": "blocked (mitigated)", "index": index, "count": count}
        if policy == MitigatedEscalation.RESET:
            existing.mitigated = False

    existing.duration = PERSISTENT
    existing.escalation_count = 2
    return {"status": "escalated", "index": index, "count": count}


def add_custom_modifier(faction: Faction, name: str, check_bonus: dict = None,
                        duration: int = 1, week_started: int = None,
                        danger_delta: int = 0, description: str = "") -> dict:
    """User-defined modifier with its own active window."""
    check_bonus = dict(check_bonus or {})
    unknown = [c for c in check_bonus if c not in CHECKS]
    if unknown:
        return invalid_reference(f"Unknown check(s): {', '.join(unknown)}")
    if not name:
        return ambiguous("A custom modifier needs a name")
    if duration != PERSISTENT and duration < 1:
        return precondition("Duration must be at least 1 week (or persistent)")

    event = Event(name=name, kind=EventKind.CUSTOM.value, duration=duration,
                  week_started=faction.week if week_started is None else week_started,
                  check_bonus=check_bonus, danger_delta=danger_delta,
                  description=description)
    result = schedule_event(faction, event)
    faction.log_entry({"type": "custom_modifier", "name": name, "status": result["status"]})
    return {"success": True, "name": name, **result}


def remove_event(faction: Faction, index: int) -> dict:
    if not isinstance(index, int) or not 0 <= index < len(faction.events):
        return invalid_reference(f"No event at index {index}")
    event = faction.events.pop(index)
    _sync_rivalry(faction)
    return {"success": True, "removed": event.name}


# ─────────────────────────────────────────────────────
# OUTCOME
# ─────────────────────────────────────────────────────

@dataclass
class EventOutcome:
    """Collects what one event did. Handlers mutate the faction through it."""
    name: str
    faction: Faction
    rng: object = None
    lookup: object = None
    config: object = None
    event_pass: EventPass = None
    immune: str = ""
    deltas: dict = field(default_factory=dict)
    rolls: list = field(default_factory=list)
    scheduled: list = field(default_factory=list)
    notes: list = field(default_factory=list)

    def dice(self, expression: str, label: str = "") -> int:
        result = roll_dice(expression, label or self.name, self.rng)
        self.rolls.append(result)
        return result["total"]

    def change(self, attr: str, amount):
        old = getattr(self.faction, attr)
        new = max(0, old + amount)
        setattr(self.faction, attr, new)
        self.deltas[attr] = self.deltas.get(attr, 0) + (new - old)

    def lose_people(self, amount: int):
        self.change("supporters", -amount)
        self.change("population", -amount)

    def check(self, check: str, dc: int, label: str = "") -> dict:
        bonus = compute_bonus(self.faction, check, lookup=self.lookup)
        result = roll_check(bonus["total"], dc, label or self.name, self.rng)
        self.rolls.append(result)
        return result

    def schedule(self, event: Event) -> dict:
        result = schedule_event(self.faction, event)
        self.scheduled.append({"name": event.name, "status": result["status"]})
        return result

    def escalate(self, event: Event) -> dict:
        policy = (self.config or DEFAULT_CONFIG).escalation_policy()
        result = escalate_event(self.faction, event, self.event_pass, policy)
        self.scheduled.append({"name": event.name, "status": result["status"]})
        return result

    def pick(self, count: int, label: str):
        draw = pick_index(count, label, self.rng)
        if "error" in draw:
            return None
        self.rolls.append(draw)
        return draw["index"]

    def note(self, text: str):
        self.notes.append(text)

    def record(self) -> dict:
        row = EVENT_INDEX.get(self.name, {})
        return {
            "event": self.name,
            "positive": row.get("positive", False),
            "immune": self.immune,
            "deltas": self.deltas,
            "rolls": self.rolls,
            "scheduled": self.scheduled,
            "notes": self.notes,
            "summary": f"{self.name}" + (f": {'; '.join(self.notes)}" if self.notes else ""),
        }


def _table_event(out: EventOutcome, **payload) -> Event:
    """Entry for the current table row, starting next week."""
    row = EVENT_INDEX.get(out.name, {})
    payload.setdefault("duration", 1)
    return Event(name=out.name, week_started=out.faction.week + 1,
                 kind=EventKind.TABLE.value, description=row.get("desc", ""),
                 mitigate=row.get("mitigate", ""), dc=row.get("dc", 0), **payload)


def _penalty(check_list, value: int) -> dict:
    return {check: value for check in check_list}


# ─────────────────────────────────────────────────────
# HANDLERS: POSITIVE
# ─────────────────────────────────────────────────────

def _week_of_secrecy(out: EventOutcome):
    out.schedule(_table_event(out, check_bonus=_penalty(CHECKS, 6),
                              flags={"double_recruitment": True}))


def _settlement_event(out: EventOutcome, name: str, value: int):
    index = out.pick(len(SETTLEMENT_MODIFIERS), "Settlement modifier")
    modifier = SETTLEMENT_MODIFIERS[index]
    out.schedule(Event(name=name, week_started=out.faction.week + 1, duration=1,
                       kind=EventKind.TABLE.value,
                       description=f"Kintargo {modifier} {value:+d} for a week",
                       flags={"settlement": modifier, "value": value}))
    out.note(f"Kintargo {modifier} {value:+d} next week")


def _successful_protest(out: EventOutcome):
    gained = out.dice("2d6", "Protest supporters")
    out.change("supporters", gained)
    out.change("population", -gained)
    _settlement_event(out, "Successful Protest", 4)


def _reduced_threat(out: EventOutcome):
    out.schedule(_table_event(out, danger_delta=-10))


def _donation(out: EventOutcome):
    bonus = compute_bonus(out.faction, "loyalty", lookup=out.lookup)
    die = roll_dice("1d20", "Donation (Loyalty)", out.rng)
    out.rolls.append(die)
    amount = max(0, die["total"] + bonus["total"]) * 20
    out.change("treasury", amount)
    out.note(f"{amount} gp donated")


def _rising_support(out: EventOutcome):
    gained = out.dice("2d6", "Rising support")
    out.change("supporters", gained)
    out.change("population", -gained)


def _market_boom(out: EventOutcome):
    out.schedule(_table_event(out, flags={"market_refresh": True}))


def _all_quiet(out: EventOutcome):
    out.escalate(_table_event(out, check_bonus={"security": 1},
                              flags={"suppress_event": True}))


# ─────────────────────────────────────────────────────
# HANDLERS: NEGATIVE
# ─────────────────────────────────────────────────────

def _snitch(out: EventOutcome):
    check = out.check("loyalty", 15, "Snitch (Loyalty)")
    if not is_success(check["tier"]):
        out.change("supporters", -1)
        out.change("notoriety", out.dice("1d6", "Snitch notoriety"))
        out.note("The snitch talked")


def _rivalry(out: EventOutcome):
    teams = out.faction.operational_team_indices()
    picked = [teams[i] for i in pick_distinct(len(teams), 2, "Rival teams", out.rng)]
    out.escalate(_table_event(out, blocked_teams=picked))
    out.note(f"Teams {picked} feud")


def _dangerous_times(out: EventOutcome):
    out.escalate(_table_event(out, danger_delta=10, mitigated_danger_delta=5))


def _penalty_event(checks):
    def handler(out: EventOutcome):
        out.escalate(_table_event(out, check_bonus=_penalty(checks, -4),
                                  mitigated_check_bonus=_penalty(checks, -2)))
    return handler


def _missing_in_action(out: EventOutcome):
    faction = out.faction
    candidates = [i for i in faction.operational_team_indices()
                  if faction.teams[i].has_acted_this_week]
    if not candidates:
        candidates = faction.operational_team_indices()
    index = out.pick(len(candidates), "Missing team")
    if index is None:
        out.note("No team to lose")
        return
    team = faction.teams[candidates[index]]
    team.missing = True
    out.note(f"{team.label or team.type} missing")


def _cache_discovered(out: EventOutcome):
    faction = out.faction
    active = [i for i, c in enumerate(faction.caches) if c.active]
    index = out.pick(len(active), "Discovered cache")
    if index is not None:
        cache = faction.caches.pop(active[index])
        out.note(f"Cache at {cache.location or 'unknown'} lost")
        return
    lost = out.dice("1d6", "Cache Discovered losses")
    out.lose_people(lost)
    out.note(f"No cache to find: {lost} supporters lost")


def _disabled_team(out: EventOutcome):
    faction = out.faction
    teams = faction.operational_team_indices()
    index = out.pick(len(teams), "Disabled team")
    if index is None:
        out.note("No team to disable")
        return
    team = faction.teams[teams[index]]
    team.disabled = True
    out.note(f"{team.label or team.type} disabled")


def _invasion(out: EventOutcome):
    out.schedule(Event(name="Invasion", week_started=out.faction.week, duration=PERSISTENT,
                       kind=EventKind.RESPONSE.value,
                       description=EVENT_INDEX["Invasion"]["desc"],
                       flags={"choices": ["intervene", "ignore"]}))
    out.note("Awaiting response: intervene or ignore")


def _failed_protest(out: EventOutcome):
    check = out.check("security", 25, "Failed Protest (Security)")
    if not is_success(check["tier"]):
        lost = out.dice("2d6", "Protest losses")
        out.lose_people(lost)
    _settlement_event(out, "Failed Protest", -4)


def _ally_in_danger(out: EventOutcome):
    faction = out.faction
    allies = [a for a in faction.allies if a.is_active()]
    index = out.pick(len(allies), "Ally in danger")
    if index is None:
        out.note("No ally at risk")
        return
    ally = allies[index]
    level = ALLIES.get(ally.slug, {}).get("level", 0)
    dc = max(10, 20 - level)
    check = out.check("security", dc, f"Ally in Danger ({ally.slug})")
    if is_success(check["tier"]):
        ally.missing = True
        ally.missing_week = faction.week
        out.note(f"{ally.slug} goes into hiding for a week")
    else:
        ally.captured = True
        ally.danger_dc = dc
        out.note(f"{ally.slug} captured")


def _catastrophic_mission(out: EventOutcome):
    faction = out.faction
    teams = [i for i, t in enumerate(faction.teams)
             if not get_team_definition(t.type).get("core")]
    index = out.pick(len(teams), "Catastrophic mission")
    if index is None:
        out.note("No team in the field: Dangerous Times instead")
        out.name = "Dangerous Times"
        _dangerous_times(out)
        return

    team_index = teams[index]
    team = faction.teams[team_index]
    check = out.check("security", 20, "Catastrophic Mission (Security)")
    if is_success(check["tier"]):
        team.disabled = True
        out.note(f"{team.label or team.type} disabled")
    else:
        faction.remove_team(team_index)
        out.note(f"{team.label or team.type} destroyed")
    out.change("notoriety", out.dice("1d6", "Catastrophic notoriety"))


def _traitor(out: EventOutcome):
    faction = out.faction
    teams = faction.operational_team_indices()
    index = out.pick(len(teams), "Traitor's team")
    team_index = teams[index] if index is not None else None
    if team_index is not None:
        faction.teams[team_index].disabled = True

    check = out.check("loyalty", 20, "Traitor (Loyalty)")
    if is_success(check["tier"]):
        out.schedule(Event(name="Traitor Caught", week_started=faction.week, duration=PERSISTENT,
                           kind=EventKind.RESPONSE.value,
                           description="Decide the traitor's fate",
                           flags={"choices": ["execute", "exile", "imprison"],
                                  "team_index": team_index}))
        out.note("Traitor caught: execute, exile or imprison")
    else:
        out.change("notoriety", out.dice("2d6", "Traitor notoriety"))
        out.note("The traitor escapes")


def _devil_infiltration(out: EventOutcome):
    weeks = roll_reroll_six("Infiltration weeks", out.rng)
    out.rolls.append(weeks)
    out.schedule(_table_event(out, duration=weeks["total"], flags={"infiltration": True}))
    out.note(f"{weeks['total']} weeks of infiltration")


def _inquisition(out: EventOutcome):
    out.escalate(_table_event(out, flags={"loss_multiplier": 2,
                                          "mitigated_loss_multiplier": 1.5}))


EVENT_HANDLERS = {
    "Week of Secrecy": _week_of_secrecy,
    "Successful Protest": _successful_protest,
    "Reduced Threat": _reduced_threat,
    "Donation": _donation,
    "Rising Support": _rising_support,
    "Market Boom": _market_boom,
    "All Quiet": _all_quiet,
    "Snitch": _snitch,
    "Rivalry": _rivalry,
    "Dangerous Times": _dangerous_times,
    "Missing in Action": _missing_in_action,
    "Cache Discovered": _cache_discovered,
    "Increased Patrols": _penalty_event(["secrecy"]),
    "Low Morale": _penalty_event(["loyalty"]),
    "Sickness": _penalty_event(["security"]),
    "Disabled Team": _disabled_team,
    "Discord in the Ranks": _penalty_event(CHECKS),
    "Invasion": _invasion,
    "Failed Protest": _failed_protest,
    "Ally in Danger": _ally_in_danger,
    "Catastrophic Mission": _catastrophic_mission,
    "Traitor": _traitor,
    "Devil Infiltration": _devil_infiltration,
    "Inquisition": _inquisition,
}


# ─────────────────────────────────────────────────────
# APPLY
# ─────────────────────────────────────────────────────

def _immune_ally(faction: Faction, name: str) -> str:
    for ally in faction.allies:
        if ally.is_active() and ALLIES.get(ally.slug, {}).get("immune_to") == name:
            return ally.slug
    return ""


def apply_event(faction: Faction, name: str, rng=None, lookup=None, config=None,
                event_pass: EventPass = None) -> dict:
    """Apply one named table event (after immunity checks)."""
    handler = EVENT_HANDLERS.get(name)
    if handler is None:
        return invalid_reference(f"Unknown event: {name}")

    out = EventOutcome(name=name, faction=faction, rng=rng, lookup=lookup or NULL_LOOKUP,
                       config=config or DEFAULT_CONFIG, event_pass=event_pass or EventPass())

    immune = _immune_ally(faction, name)
    if immune:
        out.immune = immune
        gained = out.dice(ALLIES[immune].get("immunity_supporters", "1d6"), f"{immune} immunity")
        out.change("supporters", gained)
        out.change("population", -gained)
        out.note(f"{ALLIES[immune]['name']} negates it: +{gained} supporters")
    else:
        handler(out)

    record = out.record()
    record["success"] = True
    faction.log_entry({"type": "event", "event": name, "immune": immune,
                       "deltas": dict(out.deltas), "summary": record["summary"]})
    logger.info(f"Week {faction.week}: {record['summary']}")
    return record


def _draw(faction: Faction, rng, allow_roll_twice: bool = True) -> dict:
    danger = effective_danger(faction)["total"]
    while True:
        die = roll_d100("Event table", rng)
        total = die["total"] + danger
        row = lookup_event_row(total)
        if allow_roll_twice or row["name"] != "Roll Twice":
            return {"name": row["name"], "roll": die["total"], "danger": danger, "total": total}


def _has_flag(faction: Faction, flag: str) -> bool:
    return any(e.flags.get(flag) for e in faction.active_events())


def maybe_fire_event(faction: Faction, rng=None, config=None, lookup=None) -> dict:
    """
    One Event Engine pass: chance roll, table draw, effects.
    Returns the outcome record; fired=False when nothing happens.
    """
    config = config or DEFAULT_CONFIG
    if faction.pending_selection:
        return precondition("An event choice is pending; select or cancel it first")

    if _has_flag(faction, "suppress_event"):
        faction.weeks_without_event += 1
        logger.info(f"Week {faction.week}: events suppressed (All Quiet)")
        return {"success": True, "fired": False, "suppressed": True,
                "weeks_without_event": faction.weeks_without_event,
                "summary": "All quiet: no event this week"}

    chance = event_chance(faction, config)
    die = roll_d100("Event chance", rng)
    result = {"success": True, "chance": chance, "roll": die["total"]}

    if die["total"] > chance["chance"]:
        faction.weeks_without_event += 1
        result.update(fired=False, weeks_without_event=faction.weeks_without_event,
                      summary=f"No event ({die['total']} > {chance['chance']}%)")
        faction.log_entry({"type": "event_check", "fired": False, "roll": die["total"],
                           "chance": chance["chance"]})
        logger.info(f"Week {faction.week}: {result['summary']}")
        return result

    faction.weeks_without_event = 0
    result["fired"] = True

    if _has_flag(faction, "allow_event_reroll"):
        candidates = [_draw(faction, rng, allow_roll_twice=False) for _ in range(2)]
        faction.pending_selection = {"week": faction.week, "candidates": candidates}
        result.update(pending=True, candidates=candidates,
                      summary=f"Choose: {candidates[0]['name']} or {candidates[1]['name']}")
        logger.info(f"Week {faction.week}: {result['summary']}")
        return result

    first = _draw(faction, rng)
    draws = [first]
    if first["name"] == "Roll Twice":
        draws = [first] + [_draw(faction, rng, allow_roll_twice=False) for _ in range(2)]

    event_pass = EventPass()
    outcomes = [apply_event(faction, d["name"], rng, lookup, config, event_pass)
                for d in draws if d["name"] != "Roll Twice"]
    result.update(draws=draws, outcomes=outcomes,
                  summary="; ".join(o["summary"] for o in outcomes))
    return result


def select_pending_event(faction: Faction, index: int, rng=None, config=None,
                         lookup=None) -> dict:
    """Apply exactly one of the two manipulated candidates."""
    pending = faction.pending_selection
    if not pending:
        return precondition("No event choice is pending")
    candidates = pending.get("candidates", [])
    if not isinstance(index, int) or not 0 <= index < len(candidates):
        return invalid_reference(f"No candidate at index {index}")

    chosen = candidates[index]
    faction.pending_selection = None
    outcome = apply_event(faction, chosen["name"], rng, lookup, config, EventPass())
    outcome["selected"] = chosen
    return outcome


def cancel_pending_event(faction: Faction) -> dict:
    if not faction.pending_selection:
        return precondition("No event choice is pending")
    discarded = faction.pending_selection
    faction.pending_selection = None
    faction.log_entry({"type": "event_cancelled",
                       "candidates": [c["name"] for c in discarded.get("candidates", [])]})
    return {"success": True, "discarded": discarded}


# ─────────────────────────────────────────────────────
# MITIGATION
# ─────────────────────────────────────────────────────

def mitigate_event(faction: Faction, index: int, skill_bonus: int = 0, rng=None,
                   lookup=None) -> dict:
    """
    One attempt per week to soften a live event with its skill check.
    Rivalry ends outright; Devil Infiltration loses half its remaining weeks;
    the rest switch to their reduced magnitude.
    """
    if not isinstance(index, int) or not 0 <= index < len(faction.events):
        return invalid_reference(f"No event at index {index}")
    event = faction.events[index]

    if event.mitigated:
        return {"success": True, "noop": True, "event": event.name,
                "summary": f"{event.name} already mitigated"}
    if not event.mitigate:
        return precondition(f"{event.name} cannot be mitigated")
    if not event.is_live(faction.week):
        return precondition(f"{event.name} has already ended")
    if event.mitigation_attempt_week == faction.week:
        return precondition(f"{event.name}: mitigation already attempted this week")

    bonus = skill_bonus
    if event.mitigate in CHECKS:
        bonus += compute_bonus(faction, event.mitigate, lookup=lookup)["total"]
    check = roll_check(bonus, event.dc, f"Mitigate {event.name} ({event.mitigate})", rng)
    event.mitigation_attempt_week = faction.week

    record = {"success": True, "event": event.name, "check": check, "tier": check["tier"]}
    if not is_success(check["tier"]):
        record["summary"] = f"{event.name} persists"
    elif event.name == "Rivalry":
        faction.events.pop(index)
        _sync_rivalry(faction)
        record["summary"] = "Rivalry settled"
    elif event.name == "Devil Infiltration":
        start = max(faction.week, event.week_started)
        remaining = (event.week_started + event.duration - start) // 2
        record["summary"] = f"Infiltration cut to {remaining} more week(s)"
        if remaining == 0:
            faction.events.pop(index)
        else:
            event.duration = start - event.week_started + remaining
            event.mitigated = True
    else:
        event.mitigated = True
        record["summary"] = f"{event.name} mitigated"

    faction.log_entry({"type": "mitigation", "event": event.name, "tier": check["tier"]})
    logger.info(f"Week {faction.week}: {record['summary']}")
    return record


# ─────────────────────────────────────────────────────
# RESPONSES
# ─────────────────────────────────────────────────────

def _replace_with_persistent_low_morale(faction: Faction):
    index, existing = faction.find_live_event("Low Morale")
    if existing is not None:
        faction.events.pop(index)
    row = EVENT_INDEX["Low Morale"]
    faction.events.append(Event(name="Low Morale", week_started=faction.week + 1,
                                duration=PERSISTENT, kind=EventKind.TABLE.value,
                                description=row["desc"], mitigate=row["mitigate"], dc=row["dc"],
                                check_bonus={"loyalty": -4},
                                mitigated_check_bonus={"loyalty": -2},
                                escalation_count=2))


def _ignore_invasion(out: EventOutcome):
    faction = out.faction
    removable = [i for i, t in enumerate(faction.teams)
                 if not get_team_definition(t.type).get("core")]
    lost = pick_distinct(len(removable), out.dice("1d4", "Teams lost"), "Lost team", out.rng)
    for i in sorted((removable[j] for j in lost), reverse=True):
        team = faction.remove_team(i)
        out.note(f"{team.label or team.type} lost")

    operational = faction.operational_team_indices()
    for j in pick_distinct(len(operational), out.dice("1d4", "Teams disabled"),
                           "Disabled team", out.rng):
        faction.teams[operational[j]].disabled = True
    _replace_with_persistent_low_morale(faction)
    out.note("Low Morale persists")


def _traitor_team(faction: Faction, event: Event):
    return faction.get_team(event.flags.get("team_index"))


def _execute_traitor(out: EventOutcome, event: Event):
    check = out.check("loyalty", 20, "Execution (Loyalty)")
    if not is_success(check["tier"]):
        _replace_with_persistent_low_morale(out.faction)
        out.note("The execution shakes the ranks: Low Morale persists")
    else:
        out.note("The traitor is executed quietly")


def _exile_traitor(out: EventOutcome, event: Event):
    check = out.check("security", 25, "Exile (Security)")
    if not is_success(check["tier"]):
        out.change("notoriety", out.dice("2d6", "Exiled traitor talks"))
        out.note("The exile talks")
    else:
        out.note("The traitor leaves Kintargo")


def _imprison_traitor(out: EventOutcome, event: Event):
    out.schedule(Event(name="Traitor Imprisoned", week_started=out.faction.week,
                       duration=PERSISTENT, kind=EventKind.RESPONSE.value,
                       description="Secrecy DC 20 each week or the traitor escapes (+2d6 Notoriety)",
                       flags={"choices": ["persuade", "execute", "exile"],
                              "team_index": event.flags.get("team_index")}))
    out.note("The traitor is held")


def _persuade_traitor(out: EventOutcome, event: Event):
    check = out.check("loyalty", 20, "Persuasion (Loyalty)")
    if not is_success(check["tier"]):
        out.note("The traitor will not turn")
        return False
    team = _traitor_team(out.faction, event)
    if team is not None:
        team.disabled = False
    out.schedule(Event(name="Persuasion Bonus", week_started=out.faction.week + 1, duration=1,
                       kind=EventKind.RESPONSE.value, flags={"supporters_dice": "1d6"},
                       description="+1d6 supporters at next maintenance"))
    out.note("The traitor returns to the cause")
    return True


RESPONSES = {
    ("Invasion", "intervene"): lambda out, ev: out.note("The heroes confront the invader"),
    ("Invasion", "ignore"): lambda out, ev: _ignore_invasion(out),
    ("Traitor Caught", "execute"): _execute_traitor,
    ("Traitor Caught", "exile"): _exile_traitor,
    ("Traitor Caught", "imprison"): _imprison_traitor,
    ("Traitor Imprisoned", "persuade"): _persuade_traitor,
    ("Traitor Imprisoned", "execute"): _execute_traitor,
    ("Traitor Imprisoned", "exile"): _exile_traitor,
}


def respond_to_event(faction: Faction, name: str, choice: str, rng=None,
                     lookup=None, config=None) -> dict:
    """External decision for an event awaiting a response."""
    index, event = faction.find_live_event(name)
    if event is None or event.kind != EventKind.RESPONSE.value:
        return invalid_reference(f"No event awaiting a response: {name}")
    choices = event.flags.get("choices", [])
    if choice not in choices:
        return ambiguous(f"{name}: choose one of {choices}", options=choices)

    out = EventOutcome(name=name, faction=faction, rng=rng, lookup=lookup or NULL_LOOKUP,
                       config=config or DEFAULT_CONFIG)
    handled = RESPONSES[(name, choice)](out, event)

    # A failed persuasion keeps the prisoner
    if handled is not False:
        faction.events.remove(event)
        if name.startswith("Traitor") and choice in ("execute", "exile"):
            team = _traitor_team(faction, event)
            if team is not None:
                team.can_auto_recover_next_week = True

    record = out.record()
    record.update(success=True, choice=choice)
    faction.log_entry({"type": "response", "event": name, "choice": choice,
                       "deltas": dict(out.deltas), "summary": record["summary"]})
    logger.info(f"Week {faction.week}: {name} -> {choice}")
    return record


# ─────────────────────────────────────────────────────
# MAINTENANCE TICKS
# ─────────────────────────────────────────────────────

def _sync_rivalry(faction: Faction):
    blocked = set()
    for event in faction.active_events():
        blocked.update(event.blocked_teams)
    for i, team in enumerate(faction.teams):
        team.blocked_by_rivalry = i in blocked


def tick_ongoing_events(faction: Faction, rng=None, lookup=None) -> list:
    """Start-of-week effects of live events. Returns outcome records."""
    records = []
    _sync_rivalry(faction)

    for event in list(faction.active_events()):
        if event.flags.get("infiltration"):
            out = EventOutcome(name=event.name, faction=faction, rng=rng,
                               lookup=lookup or NULL_LOOKUP)
            gain = out.dice("1d6", "Infiltration notoriety")
            if is_success(out.check("loyalty", 15, "Infiltration (Loyalty)")["tier"]):
                gain = gain // 2
                out.note("Loyal ranks blunt the infiltration")
            out.change("notoriety", gain)
            records.append(out.record())

        elif event.name == "Traitor Imprisoned":
            out = EventOutcome(name=event.name, faction=faction, rng=rng,
                               lookup=lookup or NULL_LOOKUP)
            if not is_success(out.check("secrecy", 20, "Prisoner held (Secrecy)")["tier"]):
                out.change("notoriety", out.dice("2d6", "Escaped traitor"))
                faction.events.remove(event)
                out.note("The traitor escapes")
            records.append(out.record())

        elif event.flags.get("supporters_dice"):
            out = EventOutcome(name=event.name, faction=faction, rng=rng)
            gained = out.dice(event.flags["supporters_dice"], event.name)
            out.change("supporters", gained)
            out.change("population", -gained)
            records.append(out.record())

    return records


def supporter_loss_multiplier(faction: Faction) -> float:
    """Active Inquisition: 2, or 1.5 once mitigated."""
    multiplier = 1
    for event in faction.active_events():
        if "loss_multiplier" in event.flags:
            key = "mitigated_loss_multiplier" if event.mitigated else "loss_multiplier"
            multiplier = max(multiplier, event.flags[key])
    return multiplier
