"""
Silver Ravens Engine v1.0 — Action Resolver
One Team/Officer action per call: validate, roll, branch on result tier,
apply deltas, consume budget. Every call returns an outcome record the
host can render; failures are error dicts and leave the faction untouched.

Dispatch is a lookup table: ACTIONS[action_id] -> ActionDef(check, dc, effect).
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from config import DEFAULT_CONFIG
from dice import roll_dice, roll_check, is_success
from errors import precondition, invalid_reference, ambiguous, is_error
from events import schedule_event
from models import Faction, Team, Officer, Cache, Event, EventKind, PERSISTENT
from modifiers import (
    NULL_LOOKUP, compute_bonus, resolve_dc, calculate_earn_income, max_actions,
    max_teams, counted_teams, recruitment_bonus, has_active_strategist,
)
from roster import (
    TEAMS, ALLIES, OFFICER_ROLES, UNIVERSAL_ACTIONS, SPECIFIC_ACTIONS,
    get_team_definition, upgrade_options, can_upgrade, reroll_ally_for,
)
from tables import CHECKS, CACHE_LIMITS, CACHE_SIZE_ORDER

logger = logging.getLogger("rebellion.actions")


# ─────────────────────────────────────────────────────
# RESOLUTION CONTEXT
# ─────────────────────────────────────────────────────

@dataclass
class Resolution:
    """Working state of one action call. Collects every delta for the outcome record."""
    faction: Faction
    action_id: str
    team_index: Optional[int] = None
    officer_index: Optional[int] = None
    context: dict = field(default_factory=dict)
    lookup: object = None
    rng: object = None
    config: object = None

    check: Optional[str] = None
    roll: Optional[dict] = None
    tier: str = "success"              # scripted actions always "succeed"
    deltas: dict = field(default_factory=dict)
    rolls: list = field(default_factory=list)
    events: list = field(default_factory=list)
    notes: list = field(default_factory=list)

    @property
    def team(self) -> Optional[Team]:
        return self.faction.get_team(self.team_index)

    @property
    def success(self) -> bool:
        return is_success(self.tier)

    @property
    def critical(self) -> bool:
        return self.tier == "critical_success"

    @property
    def natural(self) -> int:
        return self.roll["natural"] if self.roll else 0

    def dice(self, expression: str, label: str) -> int:
        result = roll_dice(expression, label, self.rng)
        self.rolls.append(result)
        return result["total"]

    def change(self, attr: str, amount, label: str = ""):
        """Apply a delta to a counter, clamped at zero. Records the real change."""
        old = getattr(self.faction, attr)
        new = max(0, old + amount)
        setattr(self.faction, attr, new)
        self.deltas[attr] = self.deltas.get(attr, 0) + (new - old)
        if label:
            self.notes.append(f"{label}: {attr} {old} -> {new}")

    def schedule(self, event: Event) -> dict:
        result = schedule_event(self.faction, event)
        self.events.append({"name": event.name, "status": result["status"]})
        return result

    def note(self, text: str):
        self.notes.append(text)


@dataclass
class ActionDef:
    label: str
    check: Optional[str] = None            # None: scripted effect, no roll
    dc: object = None                      # spec for modifiers.resolve_dc
    effect: Callable = None
    universal: bool = False                # the faction can act without a team
    bands: bool = False                    # missing by 5+ is a critical failure
    nat1_notoriety: str = ""               # extra notoriety on a natural 1
    validate: Callable = None              # (faction, team_index, context) -> error or None
    check_for: Callable = None             # check/DC chosen at call time (hiring)


def _next_week_event(res: Resolution, name: str, **payload) -> Event:
    payload.setdefault("kind", EventKind.ACTION.value)
    payload.setdefault("duration", 1)
    return Event(name=name, week_started=res.faction.week + 1, **payload)


# ─────────────────────────────────────────────────────
# CHECK ACTIONS
# ─────────────────────────────────────────────────────

def _recruit_supporters(res: Resolution):
    faction = res.faction
    faction.recruited_this_phase = True
    if not res.success:
        res.note("No new supporters this week")
        return

    gained = res.dice("2d6", "Recruited supporters")
    if res.critical:
        gained += res.dice("1d6", "Recruitment (critical)")
    gained += recruitment_bonus(faction, res.lookup)
    if any(e.flags.get("double_recruitment") for e in faction.active_events()):
        gained *= 2
        res.note("Week of Secrecy doubles recruitment")

    res.change("supporters", gained, "Recruitment")
    res.change("population", -gained)


def _earn_gold(res: Resolution):
    team = res.team
    level = res.context.get("task_level", res.faction.rank)
    income = calculate_earn_income(level, team.rank_tier if team else 1,
                                   res.roll["total"], res.roll["dc"], res.natural)
    res.tier = income["tier"]
    res.context["income"] = income
    if income["gold"]:
        res.change("treasury", income["gold"], "Earned income")
    else:
        res.note("No income this week")


def _gather_info(res: Resolution):
    if not res.success:
        res.note("The rumors lead nowhere")
        return
    bonus = 4 if res.critical else 2
    res.schedule(_next_week_event(
        res, "Gathered Information", check_bonus={"secrecy": bonus},
        action_context="knowledge",
        description=f"+{bonus} to Knowledge checks next week"))


def _knowledge(res: Resolution):
    topic = res.context.get("topic", "")
    if res.success:
        res.note(f"Answer found{': ' + topic if topic else ''}")
    else:
        res.note("The question stays open")


def _reduce_danger(res: Resolution):
    if not res.success:
        res.note("The city stays tense")
        return
    amount = 10 if res.critical else 5
    res.schedule(_next_week_event(
        res, "Reduced Danger", danger_delta=-amount,
        description=f"-{amount} Danger next week"))


def _rescue_target(faction: Faction, context: dict):
    """Resolve the rescue target: (kind, key, object) or an error dict."""
    target = context.get("target")
    candidates = []
    for i, officer in enumerate(faction.officers):
        if officer.captured or officer.missing:
            candidates.append(("officer", i, officer))
    for ally in faction.allies:
        if ally.captured:
            candidates.append(("ally", ally.slug, ally))

    if target is None:
        if not candidates:
            return precondition("Nobody is captured")
        if len(candidates) > 1:
            return ambiguous("Several captives; choose a target",
                             options=[{"kind": k, "key": key} for k, key, _ in candidates])
        return candidates[0]

    kind, key = target.get("kind"), target.get("key")
    for candidate in candidates:
        if candidate[0] == kind and candidate[1] == key:
            return candidate
    if kind == "officer" and faction.get_officer(key) is None:
        return invalid_reference(f"No officer at index {key}")
    if kind == "ally" and faction.get_ally(key) is None:
        return invalid_reference(f"No ally named {key}")
    return precondition(f"{kind} {key} is not captured")


def _validate_rescue(faction: Faction, team_index, context: dict):
    target = _rescue_target(faction, context)
    if is_error(target):
        return target
    kind, key, obj = target
    if "target_level" not in context:
        if kind == "ally":
            context["target_level"] = ALLIES[obj.slug]["level"]
        else:
            context["target_ref"] = obj.actor_ref
    context["_rescue"] = (kind, key)
    return None


def _rescue(res: Resolution):
    kind, key = res.context["_rescue"]
    target = res.faction.get_ally(key) if kind == "ally" else res.faction.get_officer(key)
    if res.success:
        target.captured = False
        target.missing = False
        res.note(f"Rescued {kind} {key}")
    elif res.tier == "critical_failure":
        res.team.missing = True
        res.note("The rescue team is lost in the attempt")
    else:
        res.note("The rescue fails; the captive is still held")


def _sabotage(res: Resolution):
    if res.success:
        amount = 10 if res.critical else 5
        res.schedule(_next_week_event(
            res, "Sabotage", danger_delta=-amount,
            description=f"Hellknight operations disrupted: -{amount} Danger next week"))
        return
    if res.tier == "critical_failure":
        res.change("notoriety", res.dice("1d6", "Sabotage exposed"), "Sabotage exposed")
        res.team.disabled = True
    else:
        res.change("notoriety", 1, "Sabotage botched")


def _covert(res: Resolution):
    if res.success:
        res.note(res.context.get("goal", "Covert action succeeds"))
        return
    if res.tier == "critical_failure":
        res.change("notoriety", res.dice("1d6", "Covert action exposed"), "Covert action exposed")
    else:
        res.change("notoriety", 1, "Covert action noticed")


def _cache_size_allowed(faction: Faction, team_index, size: str, bonus_source) -> bool:
    if bonus_source == "hetamon":
        return size in ("small", "medium")
    team = faction.get_team(team_index)
    limit = get_team_definition(team.type).get("cache_size", "small") if team else "small"
    return CACHE_SIZE_ORDER.index(size) <= CACHE_SIZE_ORDER.index(limit)


def _validate_cache(faction: Faction, team_index, context: dict):
    size = context.get("size")
    if size not in CACHE_LIMITS:
        return ambiguous("Choose a cache size", options=list(CACHE_LIMITS))
    if not _cache_size_allowed(faction, team_index, size, context.get("_bonus_source")):
        return precondition(f"This team cannot build a {size} cache")
    limit = CACHE_LIMITS[size]["max_value"]
    value = context.get("value", 0)
    if limit is not None and value > limit:
        return precondition(f"A {size} cache holds at most {limit} gp (got {value})")
    if not context.get("location"):
        return ambiguous("A cache needs a location")
    return None


def _cache(res: Resolution):
    if not res.success:
        res.note("No safe spot found for the cache")
        return
    ctx = res.context
    res.faction.caches.append(Cache(size=ctx["size"], location=ctx["location"],
                                    value=ctx.get("value", 0), contents=ctx.get("contents", "")))
    res.note(f"{ctx['size'].capitalize()} cache hidden at {ctx['location']}")


def _disinformation(res: Resolution):
    if not res.success:
        res.note("Nobody believes the story")
        return
    amount = res.dice("2d6" if res.critical else "1d6", "Disinformation")
    res.change("notoriety", -amount, "Disinformation")


def _black_market(res: Resolution):
    if not res.success:
        res.note("The black market stays closed")
        return
    res.schedule(_next_week_event(
        res, "Black Market", flags={"black_market": True},
        description="Black market open next week"))


def _validate_dismiss(faction: Faction, team_index, context: dict):
    target = context.get("target_team")
    if target is None:
        return ambiguous("Choose the team to dismiss (target_team)")
    if faction.get_team(target) is None:
        return invalid_reference(f"No team at index {target}")
    if get_team_definition(faction.teams[target].type).get("core"):
        return precondition("The Silver Ravens cannot dismiss themselves")
    return None


def _dismiss(res: Resolution):
    team = res.faction.remove_team(res.context["target_team"])
    res.note(f"{team.label or team.type} dismissed")
    if not res.success:
        res.change("notoriety", res.dice("1d6", "Bitter former members"), "Dismissal resented")


# ─────────────────────────────────────────────────────
# SCRIPTED ACTIONS
# ─────────────────────────────────────────────────────

def _validate_location(faction: Faction, team_index, context: dict):
    if not context.get("location"):
        return ambiguous("Choose a location")
    return None


def _safehouse(res: Resolution):
    location = res.context["location"]
    res.schedule(_next_week_event(
        res, f"Safehouse: {location}", duration=PERSISTENT,
        check_bonus={"security": 1}, stack_group="safehouse",
        description="+1 Security (all safehouses together at most +5)"))


def _validate_change_officer(faction: Faction, team_index, context: dict):
    role = context.get("role")
    if role not in OFFICER_ROLES:
        return invalid_reference(f"Unknown officer role: {role}")
    index = context.get("officer_index")
    if index is not None and faction.get_officer(index) is None:
        return invalid_reference(f"No officer at index {index}")

    abilities = OFFICER_ROLES[role]["abilities"]
    attribute = context.get("selected_attribute", "")
    if attribute and attribute not in abilities:
        return ambiguous(f"{role} uses one of {abilities}", options=abilities)

    if role == "sentinel":
        checks = context.get("selected_checks") or []
        if len(set(checks)) != 2 or not set(checks) <= set(CHECKS):
            return ambiguous("A sentinel needs exactly two different checks", options=list(CHECKS))

    actor = context.get("actor_ref", "")
    if actor in ALLIES and not ALLIES[actor].get("can_be_officer"):
        return precondition(f"{ALLIES[actor]['name']} cannot serve as an officer")
    return None


def _change_officer(res: Resolution):
    ctx = res.context
    officer = Officer(role=ctx["role"], actor_ref=ctx.get("actor_ref", ""),
                      selected_attribute=ctx.get("selected_attribute", ""),
                      selected_checks=list(ctx.get("selected_checks") or []))
    index = ctx.get("officer_index")
    if index is None:
        res.faction.officers.append(officer)
        res.note(f"New {officer.role}: {officer.actor_ref or 'NPC'}")
    else:
        old = res.faction.officers[index]
        res.faction.officers[index] = officer
        res.note(f"Officer {index}: {old.role} -> {officer.role}")


def _guarantee(res: Resolution):
    res.schedule(_next_week_event(
        res, "Guaranteed Event", flags={"guarantee_event": True},
        description="An event is certain next week"))


def _validate_lie_low(faction: Faction, team_index, context: dict):
    if faction.actions_used_this_week > 0:
        return precondition("Lying low must be the week's only action")
    return None


def _lie_low(res: Resolution):
    faction = res.faction
    res.schedule(Event(name="Lie Low", week_started=faction.week, duration=1,
                       kind=EventKind.ACTION.value, flags={"lie_low": True},
                       description="The Silver Ravens take no other action this week"))

    index, inquisition = faction.find_live_event("Inquisition")
    if inquisition is not None and inquisition.is_persistent:
        bonus = compute_bonus(faction, "secrecy", {"action": "lieLow"}, res.lookup)
        check = roll_check(bonus["total"], 20, "Lie Low vs Inquisition", res.rng)
        res.rolls.append(check)
        if is_success(check["tier"]):
            faction.events.pop(index)
            res.note("The Inquisition loses the trail and ends")
        else:
            res.note("The Inquisition continues")


def _manipulate(res: Resolution):
    res.schedule(Event(name="Manipulated Events", week_started=res.faction.week, duration=1,
                       kind=EventKind.ACTION.value, flags={"allow_event_reroll": True},
                       description="This week's event is picked from two draws"))


def _hire_check(faction: Faction, context: dict):
    definition = TEAMS[context["team_type"]]
    return definition["hire_check"], definition["hire_dc"]


def _validate_recruit_team(faction: Faction, team_index, context: dict):
    team_type = context.get("team_type")
    if not team_type:
        return ambiguous("Choose a team type to recruit")
    if team_type not in TEAMS:
        return invalid_reference(f"Unknown team type: {team_type}")
    if "hire_dc" not in TEAMS[team_type]:
        return precondition(f"{TEAMS[team_type]['label']} cannot be hired directly")
    if counted_teams(faction) >= max_teams(faction):
        return precondition(f"Team limit reached ({max_teams(faction)}) at rank {faction.rank}")
    return None


def hire_team(res: Resolution):
    team_type = res.context["team_type"]
    definition = TEAMS[team_type]
    if res.success:
        res.faction.teams.append(Team(type=team_type, category=definition["category"],
                                      rank_tier=definition["rank"], label=definition["label"]))
        res.note(f"{definition['label']} join the Silver Ravens")
    elif res.tier == "critical_failure":
        res.change("notoriety", res.dice("1d6", "Recruitment exposed"), "Recruitment exposed")
    else:
        res.note(f"{definition['label']} decline")


def _refresh_market(res: Resolution):
    res.schedule(_next_week_event(
        res, "Market Refreshed", flags={"market_refresh": True},
        description="New stock on the market"))


def _validate_restore(faction: Faction, team_index, context: dict):
    target = context.get("target_team")
    if target is None:
        return ambiguous("Choose the disabled team to restore (target_team)")
    team = faction.get_team(target)
    if team is None:
        return invalid_reference(f"No team at index {target}")
    if not team.disabled:
        return precondition(f"Team {target} is not disabled")
    return None


def _restore(res: Resolution):
    team = res.faction.teams[res.context["target_team"]]
    team.disabled = False
    team.can_auto_recover_next_week = False
    res.note(f"{team.label or team.type} restored")


def _special(res: Resolution):
    res.note(res.context.get("description", "Special action"))


def _validate_special_order(faction: Faction, team_index, context: dict):
    if not context.get("item"):
        return ambiguous("A special order needs an item")
    if context.get("cost", 0) > faction.treasury:
        return precondition(f"Treasury {faction.treasury} cannot cover {context['cost']} gp")
    return None


def _special_order(res: Resolution):
    item = res.context["item"]
    cost = res.context.get("cost", 0)
    if cost:
        res.change("treasury", -cost, "Special order")
    res.schedule(_next_week_event(
        res, "Special Order", flags={"item": item},
        description=f"{item} arrives next week"))


def _urban_influence(res: Resolution):
    res.schedule(_next_week_event(
        res, "Urban Influence", check_bonus={"loyalty": 2},
        description="+2 to social checks (Loyalty) next week"))


def _validate_upgrade(faction: Faction, team_index, context: dict):
    target = context.get("target_team")
    if target is None:
        return ambiguous("Choose the team to upgrade (target_team)")
    team = faction.get_team(target)
    if team is None:
        return invalid_reference(f"No team at index {target}")
    if not can_upgrade(team.type):
        return precondition(f"{team.label or team.type} cannot be upgraded")
    options = upgrade_options(team.type)
    new_type = context.get("new_type")
    if new_type is None:
        if len(options) > 1:
            return ambiguous("Choose the upgrade path", options=options)
        context["new_type"] = new_type = options[0]
    if new_type not in options:
        return precondition(f"{team.type} cannot become {new_type}", options=options)
    cost = TEAMS[new_type].get("upgrade_cost", 0)
    if faction.treasury < cost:
        return precondition(f"Upgrade costs {cost} gp; treasury has {faction.treasury}")
    return None


def upgrade_team(res: Resolution):
    team = res.faction.teams[res.context["target_team"]]
    definition = TEAMS[res.context["new_type"]]
    res.change("treasury", -definition.get("upgrade_cost", 0), "Upgrade")
    old = team.type
    team.type = res.context["new_type"]
    team.category = definition["category"]
    team.rank_tier = definition["rank"]
    team.label = definition["label"]
    res.note(f"{old} -> {team.type}")


# ─────────────────────────────────────────────────────
# ACTION CATALOG
# ─────────────────────────────────────────────────────

def _label(action_id: str) -> str:
    return UNIVERSAL_ACTIONS.get(action_id) or SPECIFIC_ACTIONS.get(action_id, action_id)


ACTIONS = {
    # Check actions
    "blackMarket": ActionDef(_label("blackMarket"), "secrecy", 20, _black_market, nat1_notoriety="1d6"),
    "covert": ActionDef(_label("covert"), "secrecy", "caller", _covert, bands=True),
    "dismiss": ActionDef(_label("dismiss"), "loyalty", 10, _dismiss, universal=True,
                         validate=_validate_dismiss),
    "earnGold": ActionDef(_label("earnGold"), "security", "earn_income", _earn_gold),
    "gatherInfo": ActionDef(_label("gatherInfo"), "secrecy", 15, _gather_info, nat1_notoriety="1d6"),
    "knowledge": ActionDef(_label("knowledge"), "secrecy", "caller", _knowledge),
    "recruitSupporters": ActionDef(_label("recruitSupporters"), "loyalty", "rank", _recruit_supporters,
                                   universal=True, nat1_notoriety="1d6"),
    "reduceDanger": ActionDef(_label("reduceDanger"), "security", 15, _reduce_danger,
                              nat1_notoriety="1d6"),
    "rescue": ActionDef(_label("rescue"), "security", "level", _rescue, bands=True,
                        validate=_validate_rescue),
    "sabotage": ActionDef(_label("sabotage"), "secrecy", 20, _sabotage, bands=True),
    "cache": ActionDef(_label("cache"), "secrecy", {k: v["dc"] for k, v in CACHE_LIMITS.items()},
                       _cache, nat1_notoriety="1d6", validate=_validate_cache),
    "disinformation": ActionDef(_label("disinformation"), "secrecy", 20, _disinformation,
                                nat1_notoriety="1d6"),

    # Scripted actions (no check)
    "safehouse": ActionDef(_label("safehouse"), effect=_safehouse, validate=_validate_location),
    "changeOfficer": ActionDef(_label("changeOfficer"), effect=_change_officer, universal=True,
                               validate=_validate_change_officer),
    "guarantee": ActionDef(_label("guarantee"), effect=_guarantee, universal=True),
    "lieLow": ActionDef(_label("lieLow"), effect=_lie_low, universal=True, validate=_validate_lie_low),
    "manipulate": ActionDef(_label("manipulate"), effect=_manipulate),
    "recruitTeam": ActionDef(_label("recruitTeam"), effect=hire_team, universal=True,
                             validate=_validate_recruit_team, check_for=_hire_check),
    "refreshMarket": ActionDef(_label("refreshMarket"), effect=_refresh_market),
    "restore": ActionDef(_label("restore"), effect=_restore, validate=_validate_restore),
    "special": ActionDef(_label("special"), effect=_special, universal=True),
    "specialOrder": ActionDef(_label("specialOrder"), effect=_special_order,
                              validate=_validate_special_order),
    "urbanInfluence": ActionDef(_label("urbanInfluence"), effect=_urban_influence),
    "upgrade": ActionDef(_label("upgrade"), effect=upgrade_team, universal=True, validate=_validate_upgrade),
}


# ─────────────────────────────────────────────────────
# BONUS ACTION SOURCES
# ─────────────────────────────────────────────────────

def _manticce_eligible(faction: Faction, team_index, context: dict):
    ally = faction.get_ally("manticce")
    team = faction.get_team(team_index)
    if team is None or not ally.favorite_ref or team.manager_ref != ally.favorite_ref:
        return precondition("Manticce's favourite must manage the earning team")
    return None


def _hetamon_eligible(faction: Faction, team_index, context: dict):
    last = faction.monthly_actions.get("hetamon")
    if last is not None and faction.week - last < 4:
        return precondition(f"Hetamon's free cache is available again in week {last + 4}")
    return None


BONUS_SOURCES = {
    "manticce": {"ally": "manticce", "actions": ["earnGold"], "eligible": _manticce_eligible},
    "hetamon": {"ally": "hetamon", "actions": ["cache"], "eligible": _hetamon_eligible,
                "monthly": True, "needs_team": False},
}


def _check_bonus_source(faction: Faction, source: str, action_id: str, team_index, context: dict):
    spec = BONUS_SOURCES.get(source)
    if spec is None:
        return invalid_reference(f"Unknown bonus action source: {source}")
    if action_id not in spec["actions"]:
        return precondition(f"{source} grants a bonus {', '.join(spec['actions'])} only")
    if not faction.is_ally_active(spec["ally"]):
        return precondition(f"{ALLIES[spec['ally']]['name']} is not active")
    if source in faction.bonus_sources_used:
        return precondition(f"{source} bonus action already used this week")
    return spec["eligible"](faction, team_index, context)


# ─────────────────────────────────────────────────────
# VALIDATION
# ─────────────────────────────────────────────────────

def team_capabilities(faction: Faction, team: Team) -> list:
    caps = list(get_team_definition(team.type).get("caps", []))
    if team.led_by_ally and faction.is_ally_active(team.led_by_ally):
        caps.extend(ALLIES[team.led_by_ally].get("grants_caps", []))
    return caps


def _validate_actor(faction: Faction, action_id: str, action: ActionDef,
                    team_index, officer_index, bonus_source):
    if team_index is not None:
        team = faction.get_team(team_index)
        if team is None:
            return invalid_reference(f"No team at index {team_index}")
        if not team.is_operational():
            state = "disabled" if team.disabled else "missing"
            return precondition(f"{team.label or team.type} is {state}")
        if team.blocked_by_rivalry or any(team_index in e.blocked_teams
                                          for e in faction.active_events()):
            return precondition(f"{team.label or team.type} is blocked by rivalry this week")
        if team.has_acted_this_week:
            return precondition(f"{team.label or team.type} already acted this week")
        if action_id not in team_capabilities(faction, team) and not action.universal:
            return precondition(f"{team.label or team.type} cannot perform {action_id}")
        return None

    if officer_index is not None:
        officer = faction.get_officer(officer_index)
        if officer is None:
            return invalid_reference(f"No officer at index {officer_index}")
        if not officer.is_available():
            return precondition(f"Officer {officer_index} is unavailable")

    if action.universal:
        return None
    if action_id == "disinformation" and faction.is_ally_active("vendalfek"):
        return None
    if bonus_source and not BONUS_SOURCES.get(bonus_source, {}).get("needs_team", True):
        return None
    return precondition(f"{action_id} needs a team that can perform it")


def _validate(faction: Faction, action_id: str, action: ActionDef, team_index,
              officer_index, context: dict, bonus_source):
    error = _validate_actor(faction, action_id, action, team_index, officer_index, bonus_source)
    if error:
        return error

    if bonus_source:
        error = _check_bonus_source(faction, bonus_source, action_id, team_index, context)
        if error:
            return error
    elif faction.actions_used_this_week >= max_actions(faction):
        return precondition(f"No actions left this week ({faction.actions_used_this_week}/"
                            f"{max_actions(faction)})")

    if action_id == "recruitSupporters":
        if faction.recruited_this_phase:
            return precondition("Supporters were already recruited this phase")
        if faction.rank >= faction.max_rank:
            return precondition("The rebellion is at its maximum rank")

    if context.get("reroll"):
        check = action.check or (action.check_for(faction, context)[0] if action.check_for else None)
        ally = reroll_ally_for(check) if check else None
        if ally is None or not faction.is_ally_active(ally):
            return precondition(f"No reroll ally for {check}")
        if check in faction.rerolls_used:
            return precondition(f"The {check} reroll is spent this week")

    if action.validate:
        return action.validate(faction, team_index, context)
    return None


# ─────────────────────────────────────────────────────
# RESOLVE
# ─────────────────────────────────────────────────────

def _roll(res: Resolution, action: ActionDef) -> Optional[dict]:
    faction = res.faction
    if action.check_for:
        res.check, dc = action.check_for(faction, res.context)
        dc_info = {"dc": dc, "source": "hire"}
    else:
        res.check = action.check
        dc_info = resolve_dc(action.dc, faction, res.context, res.lookup)
        if is_error(dc_info):
            return dc_info

    bonus = compute_bonus(faction, res.check,
                          {"action": res.action_id, "team_index": res.team_index}, res.lookup)
    res.roll = roll_check(bonus["total"], dc_info["dc"], res.action_id, res.rng, action.bands)
    res.roll["parts"] = bonus["parts"]
    res.tier = res.roll["tier"]

    if res.context.get("reroll") and not res.success:
        first = res.roll
        res.roll = roll_check(bonus["total"], dc_info["dc"], f"{res.action_id} (reroll)",
                              res.rng, action.bands)
        res.roll["parts"] = bonus["parts"]
        res.roll["rerolled_from"] = first
        res.tier = res.roll["tier"]
        faction.rerolls_used.append(res.check)
        res.note(f"{ALLIES[reroll_ally_for(res.check)]['name']} grants a reroll")
    return None


def _apply_nat1_penalty(res: Resolution, action: ActionDef):
    if not action.nat1_notoriety or res.natural != 1:
        return
    team = res.team
    if team and get_team_definition(team.type).get("no_failure_notoriety"):
        res.note("Torrent discipline: no notoriety from the failure")
        return
    res.change("notoriety", res.dice(action.nat1_notoriety, "Natural 1"), "Natural 1")


def resolve_action(faction: Faction, action_id: str, team_index: int = None,
                   officer_index: int = None, context: dict = None, lookup=None,
                   rng=None, bonus_source: str = None, config=None) -> dict:
    """
    Run one action.

    team_index / officer_index name the actor; neither means the faction
    itself (universal actions). bonus_source spends a once-a-week bonus
    action from an ally instead of the weekly budget.
    """
    action = ACTIONS.get(action_id)
    if action is None:
        return invalid_reference(f"Unknown action: {action_id}")

    context = dict(context or {})
    if bonus_source:
        context["_bonus_source"] = bonus_source
    error = _validate(faction, action_id, action, team_index, officer_index, context, bonus_source)
    if error:
        logger.warning(f"{action_id} rejected: {error['error']}")
        return error

    res = Resolution(faction=faction, action_id=action_id, team_index=team_index,
                     officer_index=officer_index, context=context,
                     lookup=lookup or NULL_LOOKUP, rng=rng, config=config or DEFAULT_CONFIG)

    if action.check or action.check_for:
        error = _roll(res, action)
        if error:
            logger.warning(f"{action_id} rejected: {error['error']}")
            return error

    # Budget and team bookkeeping before the effect: effects may remove the team
    if bonus_source:
        faction.bonus_sources_used.append(bonus_source)
        if BONUS_SOURCES[bonus_source].get("monthly"):
            faction.monthly_actions[BONUS_SOURCES[bonus_source]["ally"]] = faction.week
    elif action_id == "lieLow":
        faction.actions_used_this_week = max_actions(faction)
    else:
        faction.actions_used_this_week += 1

    team = res.team
    if team is not None:
        team.has_acted_this_week = True
        team.current_action = action_id

    action.effect(res)
    _apply_nat1_penalty(res, action)

    record = {
        "success": True,
        "action": action_id,
        "label": action.label,
        "team_index": team_index,
        "officer_index": officer_index,
        "check": res.check,
        "roll": res.roll,
        "tier": res.tier,
        "deltas": res.deltas,
        "rolls": res.rolls,
        "events": res.events,
        "notes": res.notes,
        "bonus_action": bool(bonus_source),
        "actions_used": faction.actions_used_this_week,
        "summary": f"{action.label}: {res.tier.replace('_', ' ')}"
                   + (f". {'; '.join(res.notes)}" if res.notes else ""),
    }
    if "income" in context:
        record["income"] = context["income"]

    faction.log_entry({"type": "action", "action": action_id, "tier": res.tier,
                       "deltas": dict(res.deltas), "summary": record["summary"]})
    logger.info(f"Week {faction.week}: {record['summary']}")
    return record


# ─────────────────────────────────────────────────────
# STRATEGIST
# ─────────────────────────────────────────────────────

def set_strategist_target(faction: Faction, team_index: int) -> dict:
    """Pick the team that gets the strategist's +2 this week. Once per week."""
    if not has_active_strategist(faction):
        return precondition("No active strategist")
    if faction.strategist_bonus_used:
        return precondition("The strategist already chose a team this week")
    team = faction.get_team(team_index)
    if team is None:
        return invalid_reference(f"No team at index {team_index}")

    for other in faction.teams:
        other.is_strategist_target = False
    team.is_strategist_target = True
    faction.strategist_bonus_used = True
    return {"success": True, "team_index": team_index,
            "summary": f"Strategist backs {team.label or team.type} (+2)"}


def available_actions(faction: Faction, team_index: int = None) -> list:
    """Action ids the actor could attempt right now (ignoring budget)."""
    if team_index is None:
        ids = [a for a, d in ACTIONS.items() if d.universal]
        if faction.is_ally_active("vendalfek"):
            ids.append("disinformation")
        return ids
    team = faction.get_team(team_index)
    if team is None:
        return []
    caps = team_capabilities(faction, team)
    return [a for a in ACTIONS if a in caps or ACTIONS[a].universal]
