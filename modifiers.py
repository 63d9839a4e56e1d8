"""
Silver Ravens Engine v1.0 — Modifier Engine
Totals for the three organization checks (Loyalty, Security, Secrecy),
each with an ordered breakdown so every number on the sheet is auditable.

Order of parts (all additive):
  rank focus/secondary, temporary, officers, team manager, strategist
  target, team specials, allies, active events, capped stacks, custom
  modifiers.

Also home to the derived numbers the phases read: max actions,
recruitment bonus, effective danger, event chance, treasury minimum,
rank from supporters, DC resolution and earn income.
"""

import math

from config import DEFAULT_CONFIG
from errors import ambiguous
from models import Faction, EventKind
from roster import (
    OFFICER_ROLES, CHECK_ATTRIBUTES, ALLIES, get_team_definition,
)
from tables import (
    CHECKS, PROGRESSION, FOCUS_TYPES, EARN_INCOME_TABLE, TEAM_PROFICIENCY,
    STACK_CAPS,
)


# ─────────────────────────────────────────────────────
# EXTERNAL ATTRIBUTE LOOKUP
# ─────────────────────────────────────────────────────

class AttributeLookup:
    """Host-supplied character reads. Unknown refs read as 0, never raise."""

    def get_attribute_modifier(self, ref: str, key: str) -> int:
        return 0

    def get_level(self, ref: str) -> int:
        return 0


class DictAttributeLookup(AttributeLookup):
    """In-memory lookup: {ref: {"level": 7, "cha": 4, "dex": 2, ...}}."""

    def __init__(self, actors: dict = None):
        self.actors = actors or {}

    def get_attribute_modifier(self, ref: str, key: str) -> int:
        try:
            return int(self.actors.get(ref, {}).get(key, 0) or 0)
        except (TypeError, ValueError):
            return 0

    def get_level(self, ref: str) -> int:
        return self.get_attribute_modifier(ref, "level")


NULL_LOOKUP = AttributeLookup()


# ─────────────────────────────────────────────────────
# CHECK BONUS
# ─────────────────────────────────────────────────────

def _context_team(faction: Faction, context: dict):
    index = context.get("team_index")
    return faction.get_team(index) if index is not None else None


def officer_value(officer, lookup: AttributeLookup) -> int:
    """Best allowed attribute for the role, unless one is pinned."""
    role = OFFICER_ROLES.get(officer.role, {})
    abilities = [a for a in role.get("abilities", []) if a != "level"]
    if not abilities or not officer.actor_ref:
        return 0
    if officer.selected_attribute in abilities:
        return lookup.get_attribute_modifier(officer.actor_ref, officer.selected_attribute)
    return max(lookup.get_attribute_modifier(officer.actor_ref, a) for a in abilities)


def _officer_parts(faction: Faction, check: str, lookup: AttributeLookup) -> list:
    best = {}           # role -> (value, label)
    sentinels = 0
    for officer in faction.officers:
        if not officer.is_available():
            continue
        if officer.role == "sentinel":
            if check in officer.selected_checks:
                sentinels += 1
            continue
        role = OFFICER_ROLES.get(officer.role)
        if not role or role["target"] != check:
            continue
        value = officer_value(officer, lookup)
        label = f"{role['label']} ({officer.actor_ref or 'NPC'})"
        if officer.role not in best or value > best[officer.role][0]:
            best[officer.role] = (value, label)

    parts = [(label, value) for value, label in best.values()]
    if sentinels:
        parts.append(("Sentinel", sentinels))
    return parts


def has_active_strategist(faction: Faction) -> bool:
    return any(o.role == "strategist" and o.is_available() for o in faction.officers)


def _manager_value(team, check: str, lookup: AttributeLookup) -> int:
    attrs = CHECK_ATTRIBUTES.get(check, [])
    if not team.manager_ref or not attrs:
        return 0
    return max(lookup.get_attribute_modifier(team.manager_ref, a) for a in attrs)


def _team_parts(faction: Faction, check: str, team, action: str) -> list:
    parts = []

    # Passive team bonuses apply to every check of that category
    for other in faction.teams:
        definition = get_team_definition(other.type)
        passive = definition.get("passive", {})
        if check in passive and other.is_operational():
            parts.append((definition["label"], passive[check]))

    if team is None:
        return parts

    definition = get_team_definition(team.type)
    bonus = definition.get("action_bonus", {}).get(action)
    if bonus and bonus[0] == check:
        parts.append((f"{definition['label']} ({action})", bonus[1]))

    if action == "earnGold":
        proficiency, prof_bonus = team_proficiency(team.rank_tier)
        parts.append(("Half rank", math.ceil(faction.rank / 2)))
        parts.append((f"Proficiency ({proficiency})", prof_bonus))
    return parts


def _ally_parts(faction: Faction, check: str, action: str) -> list:
    parts = []
    for ally in faction.allies:
        if not ally.is_active():
            continue
        definition = ALLIES.get(ally.slug)
        if not definition:
            continue
        name = definition["name"]

        value = definition.get("bonuses", {}).get(check, 0)
        if value:
            parts.append((name, value))

        if ally.slug == "tayacet":
            table = definition["revealed_bonuses"] if ally.revealed else definition["hidden_bonuses"]
            if table.get(check):
                parts.append((name, table[check]))

        if definition.get("selected_bonus") and ally.selected_check == check:
            parts.append((name, definition["selected_bonus"]))

        bonus = definition.get("action_bonus", {}).get(action)
        if bonus and bonus[0] == check:
            # Vendalfek only adds on top of a real disinformation team
            if ally.slug == "vendalfek" and not faction.has_team_with_cap("disinformation"):
                continue
            parts.append((f"{name} ({action})", bonus[1]))
    return parts


def _event_parts(faction: Faction, check: str, action: str, custom: bool) -> list:
    parts = []
    stacks = {}
    for event in faction.active_events():
        if (event.kind == EventKind.CUSTOM.value) != custom:
            continue
        if event.action_context and event.action_context != action:
            continue
        value = event.current_check_bonus().get(check, 0)
        if not value:
            continue
        if event.stack_group:
            label, total = stacks.get(event.stack_group, (event.stack_group, 0))
            stacks[event.stack_group] = (label, total + value)
            continue
        parts.append((event.name, value))

    for group, (label, total) in stacks.items():
        cap = STACK_CAPS.get(group)
        if cap is not None:
            total = min(cap, total)
        parts.append((f"{label.capitalize()} (stacked)", total))
    return parts


def compute_bonus(faction: Faction, check: str, context: dict = None,
                  lookup: AttributeLookup = None) -> dict:
    """
    Total bonus for one check category with its ordered breakdown.

    context keys: action (action id), team_index (acting team).
    Returns {"check", "total", "parts": [{"label", "value"}]}.
    """
    context = context or {}
    lookup = lookup or NULL_LOOKUP
    action = context.get("action", "")
    team = _context_team(faction, context)

    parts = []

    def add(label, value):
        if value:
            parts.append({"label": label, "value": value})

    # Base from focus and rank
    rank_info = PROGRESSION.get(faction.rank, PROGRESSION[1])
    kind = FOCUS_TYPES.get(faction.focus, FOCUS_TYPES["loyalty"])[check]
    add("Focus" if kind == "focus" else "Secondary", rank_info[f"{kind}_bonus"])
    add("Temporary", faction.temp_bonuses.get(check, 0))

    for label, value in _officer_parts(faction, check, lookup):
        add(label, value)

    if team is not None:
        add("Manager", _manager_value(team, check, lookup))
        if team.is_strategist_target and has_active_strategist(faction):
            add("Strategist", 2)

    for label, value in _team_parts(faction, check, team, action):
        add(label, value)
    for label, value in _ally_parts(faction, check, action):
        add(label, value)
    for label, value in _event_parts(faction, check, action, custom=False):
        add(label, value)
    for label, value in _event_parts(faction, check, action, custom=True):
        add(label, value)

    return {
        "check": check,
        "total": sum(p["value"] for p in parts),
        "parts": parts,
    }


def compute_all_bonuses(faction: Faction, lookup: AttributeLookup = None,
                        config=None) -> dict:
    """Everything the sheet shows at once."""
    result = {check: compute_bonus(faction, check, lookup=lookup) for check in CHECKS}
    result["max_actions"] = max_actions(faction)
    result["actions_remaining"] = max(0, result["max_actions"] - faction.actions_used_this_week)
    result["recruitment_bonus"] = recruitment_bonus(faction, lookup)
    result["effective_danger"] = effective_danger(faction)
    result["event_chance"] = event_chance(faction, config)
    result["min_treasury"] = min_treasury(faction, config)
    return result


# ─────────────────────────────────────────────────────
# ACTIONS AND RECRUITMENT
# ─────────────────────────────────────────────────────

def max_actions(faction: Faction) -> int:
    base = PROGRESSION.get(faction.rank, PROGRESSION[1])["actions"]
    return base + (1 if has_active_strategist(faction) else 0)


def max_teams(faction: Faction) -> int:
    return PROGRESSION.get(faction.rank, PROGRESSION[1])["max_teams"]


def counted_teams(faction: Faction) -> int:
    """Unique teams and the Silver Ravens themselves never count toward the team cap."""
    definitions = [get_team_definition(t.type) for t in faction.teams]
    return sum(1 for d in definitions if not (d.get("unique") or d.get("core")))


def recruitment_bonus(faction: Faction, lookup: AttributeLookup = None) -> int:
    """Recruiters add their level to recruited supporters; several recruiters stack."""
    lookup = lookup or NULL_LOOKUP
    return sum(lookup.get_level(o.actor_ref) for o in faction.officers
               if o.role == "recruiter" and o.is_available() and o.actor_ref)


# ─────────────────────────────────────────────────────
# DANGER AND EVENT CHANCE
# ─────────────────────────────────────────────────────

def effective_danger(faction: Faction) -> dict:
    """Base danger plus every active danger-modifying event. Never below 0."""
    parts = [{"label": "Base danger", "value": faction.danger}]
    total = faction.danger
    for event in faction.active_events():
        delta = event.current_danger_delta()
        if delta:
            parts.append({"label": event.name, "value": delta})
            total += delta
    return {"total": max(0, total), "parts": parts}


def event_chance(faction: Faction, config=None) -> dict:
    """
    Percent chance that an event fires this week.
    Effective danger + notoriety, doubled after a quiet week, clamped.
    A guarantee effect forces 100.
    """
    config = config or DEFAULT_CONFIG
    for event in faction.active_events():
        if event.flags.get("guarantee_event"):
            return {"chance": 100, "guaranteed": True, "base": 100, "doubled": False}

    base = effective_danger(faction)["total"] + faction.notoriety
    doubled = faction.weeks_without_event > 0
    chance = base * 2 if doubled else base
    chance = min(config.event_chance_max, max(config.event_chance_min, chance))
    return {"chance": chance, "guaranteed": False, "base": base, "doubled": doubled}


# ─────────────────────────────────────────────────────
# TREASURY AND RANK
# ─────────────────────────────────────────────────────

def min_treasury(faction: Faction, config=None) -> int:
    return (config or DEFAULT_CONFIG).min_treasury_for(faction.rank)


def is_treasury_low(faction: Faction, config=None) -> bool:
    return faction.treasury < min_treasury(faction, config)


def calculate_rank(supporters: int, current_rank: int, max_rank: int, config=None) -> int:
    """Highest rank whose threshold the supporters meet. Never drops."""
    config = config or DEFAULT_CONFIG
    for rank in range(max_rank, 0, -1):
        if supporters >= config.min_supporters_for(rank):
            return max(rank, current_rank)
    return current_rank


# ─────────────────────────────────────────────────────
# DC RESOLUTION
# ─────────────────────────────────────────────────────

def resolve_dc(dc_spec, faction: Faction, context: dict = None,
               lookup: AttributeLookup = None) -> dict:
    """
    Turn a catalog DC spec into a number.
      int           literal
      "rank"        10 + rank
      "level"       10 + target level (context target_level, or lookup of target_ref)
      dict          keyed by context["size"] (cache tiers)
      "earn_income" income table DC at the task level (defaults to rank)
      "caller"      context["dc"], set by the GM
    """
    context = context or {}
    lookup = lookup or NULL_LOOKUP

    if isinstance(dc_spec, bool):
        return ambiguous(f"Unsupported DC spec: {dc_spec}")
    if isinstance(dc_spec, int):
        return {"dc": dc_spec, "source": "fixed"}
    if dc_spec == "rank":
        return {"dc": 10 + faction.rank, "source": "rank"}
    if dc_spec == "level":
        level = context.get("target_level")
        if level is None:
            level = lookup.get_level(context.get("target_ref", ""))
        return {"dc": 10 + int(level), "source": "level", "level": int(level)}
    if isinstance(dc_spec, dict):
        size = context.get("size")
        if size not in dc_spec:
            return ambiguous(f"Choose a size: {', '.join(dc_spec)}", options=list(dc_spec))
        return {"dc": dc_spec[size], "source": f"size:{size}"}
    if dc_spec == "earn_income":
        level = clamp_income_level(context.get("task_level", faction.rank))
        return {"dc": EARN_INCOME_TABLE[level]["dc"], "source": "earn_income", "level": level}
    if dc_spec == "caller":
        if context.get("dc") is None:
            return ambiguous("This action needs a DC set by the GM (context.dc)")
        return {"dc": int(context["dc"]), "source": "caller"}
    return ambiguous(f"Unsupported DC spec: {dc_spec}")


# ─────────────────────────────────────────────────────
# EARN INCOME
# ─────────────────────────────────────────────────────

def clamp_income_level(level) -> int:
    return max(0, min(20, int(level)))


def team_proficiency(rank_tier: int) -> tuple:
    return TEAM_PROFICIENCY.get(rank_tier, TEAM_PROFICIENCY[1])


def earn_income_modifier(rebellion_rank: int, team_tier: int) -> int:
    """Half rank (rounded up) + team proficiency bonus."""
    return math.ceil(rebellion_rank / 2) + team_proficiency(team_tier)[1]


def calculate_earn_income(level: int, team_tier: int, total: int, dc: int,
                          natural: int = 0) -> dict:
    """
    One week of work from the income table.
    Miss by 10+: nothing. Miss: failure column. Beat by 10+: next level's row.
    A natural 20 or 1 forces the best or worst row.
    Income is in copper; gold = copper / 100.
    """
    level = clamp_income_level(level)
    proficiency = team_proficiency(team_tier)[0]
    entry = EARN_INCOME_TABLE[level]
    difference = total - dc

    if natural == 1 or difference <= -10:
        tier, copper = "critical_failure", 0
    elif difference < 0:
        tier, copper = "failure", entry["failure"]
    elif natural == 20 or difference >= 10:
        tier, copper = "critical_success", EARN_INCOME_TABLE[min(21, level + 1)][proficiency]
    else:
        tier, copper = "success", entry[proficiency]

    return {
        "tier": tier,
        "copper": copper,
        "gold": copper / 100,
        "proficiency": proficiency,
        "level": level,
        "dc": dc,
    }
