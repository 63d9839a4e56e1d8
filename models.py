"""
Silver Ravens Engine v1.0 — Data Models
Typed state for the rebellion: teams, officers, allies, caches, events
and the Faction aggregate that owns them all.

All state is JSON-serializable for save/load/edit. Structure only; the
rules live in modifiers/actions/events/phases.
"""

import json
from dataclasses import dataclass, field, asdict, fields
from typing import Optional
from enum import Enum

from roster import get_team_definition


# Event.duration sentinel for open-ended events
PERSISTENT = -1


# ─────────────────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────────────────

class ResultTier(str, Enum):
    CRITICAL_SUCCESS = "critical_success"
    SUCCESS = "success"
    FAILURE = "failure"
    CRITICAL_FAILURE = "critical_failure"


class EventKind(str, Enum):
    TABLE = "table"          # rolled on the d100 + Danger table
    ACTION = "action"        # scheduled by a team action
    CUSTOM = "custom"        # user-defined modifier
    RESPONSE = "response"    # awaiting an external choice (traitor, invasion)


class WeekStep(str, Enum):
    MAINTENANCE_START = "maintenance_start"
    ATTRITION = "attrition"
    NOTORIETY_CHECK = "notoriety_check"
    TREASURY_CHECK = "treasury_check"
    RANK_UP = "rank_up"
    ACTIVITY = "activity"
    EVENT_PHASE = "event_phase"
    ARCHIVE = "archive"


WEEK_ORDER = [
    WeekStep.MAINTENANCE_START,
    WeekStep.ATTRITION,
    WeekStep.NOTORIETY_CHECK,
    WeekStep.TREASURY_CHECK,
    WeekStep.RANK_UP,
    WeekStep.ACTIVITY,
    WeekStep.EVENT_PHASE,
    WeekStep.ARCHIVE,
]


# ─────────────────────────────────────────────────────
# TEAM
# ─────────────────────────────────────────────────────

@dataclass
class Team:
    """An operative group. Identity is its position in Faction.teams."""
    type: str                               # roster.TEAMS slug
    category: str = ""
    rank_tier: int = 1                      # 1-3, drives proficiency
    label: str = ""
    current_action: str = ""
    manager_ref: str = ""                   # external character ref or empty
    led_by_ally: str = ""                   # ally slug (Molly grants covert/sabotage)

    disabled: bool = False
    missing: bool = False
    has_acted_this_week: bool = False
    is_strategist_target: bool = False
    can_auto_recover_next_week: bool = False
    blocked_by_rivalry: bool = False

    def is_operational(self) -> bool:
        return not self.disabled and not self.missing

    def can_act(self) -> bool:
        return self.is_operational() and not self.blocked_by_rivalry


# ─────────────────────────────────────────────────────
# OFFICER
# ─────────────────────────────────────────────────────

@dataclass
class Officer:
    role: str                               # roster.OFFICER_ROLES key
    actor_ref: str = ""
    selected_attribute: str = ""            # pins one of the role's attributes
    selected_checks: list = field(default_factory=list)   # sentinel only
    disabled: bool = False
    missing: bool = False
    captured: bool = False

    def is_available(self) -> bool:
        return not (self.disabled or self.missing or self.captured)


# ─────────────────────────────────────────────────────
# ALLY
# ─────────────────────────────────────────────────────

@dataclass
class Ally:
    slug: str                               # roster.ALLIES key
    enabled: bool = True
    missing: bool = False
    captured: bool = False
    revealed: bool = False                  # Tayacet's cover
    monthly_action_used_month: Optional[int] = None
    selected_check: str = ""                # Mialari
    favorite_ref: str = ""                  # Manticce's favourite character
    danger_dc: int = 0                      # return DC after Ally in Danger
    missing_week: int = 0

    def is_active(self) -> bool:
        return self.enabled and not self.missing and not self.captured


# ─────────────────────────────────────────────────────
# CACHE
# ─────────────────────────────────────────────────────

@dataclass
class Cache:
    size: str                               # small / medium / large
    location: str = ""
    value: float = 0
    active: bool = True
    contents: str = ""


# ─────────────────────────────────────────────────────
# EVENT
# ─────────────────────────────────────────────────────

@dataclass
class Event:
    """
    A scheduled or live rule-modifying occurrence.
    Active while week_started <= week < week_started + duration,
    or from week_started on when persistent.
    """
    name: str
    week_started: int = 0
    duration: int = 1                       # PERSISTENT for open-ended
    kind: str = "table"
    description: str = ""

    mitigated: bool = False
    mitigate: str = ""                      # skill that mitigates, if any
    dc: int = 0
    mitigation_attempt_week: int = 0
    escalation_count: int = 1

    # Effect payload
    check_bonus: dict = field(default_factory=dict)
    mitigated_check_bonus: dict = field(default_factory=dict)
    danger_delta: int = 0
    mitigated_danger_delta: int = 0
    action_context: str = ""                # bonus applies only to this action
    stack_group: str = ""                   # capped group (safehouse)
    blocked_teams: list = field(default_factory=list)
    flags: dict = field(default_factory=dict)

    @property
    def is_persistent(self) -> bool:
        return self.duration == PERSISTENT

    def is_active(self, week: int) -> bool:
        if self.week_started > week:
            return False
        return self.is_persistent or week < self.week_started + self.duration

    def is_live(self, week: int) -> bool:
        """Active now or scheduled for later."""
        return self.is_persistent or week < self.week_started + self.duration

    def expires_by(self, week: int) -> bool:
        return not self.is_persistent and self.week_started + self.duration <= week

    def current_check_bonus(self) -> dict:
        if self.mitigated and self.mitigated_check_bonus:
            return self.mitigated_check_bonus
        return self.check_bonus

    def current_danger_delta(self) -> int:
        if self.mitigated and self.mitigated_danger_delta:
            return self.mitigated_danger_delta
        return self.danger_delta


# ─────────────────────────────────────────────────────
# FACTION (aggregate root)
# ─────────────────────────────────────────────────────

@dataclass
class Faction:
    """The whole rebellion. Single instance, owns everything else."""

    week: int = 1
    rank: int = 1
    max_rank: int = 20
    supporters: int = 0
    population: int = 11900
    notoriety: int = 0
    treasury: float = 10.0
    danger: int = 20
    focus: str = "loyalty"

    # Weekly counters
    actions_used_this_week: int = 0
    recruited_this_phase: bool = False
    strategist_bonus_used: bool = False
    weeks_without_event: int = 0
    bonus_sources_used: list = field(default_factory=list)   # bonus action sources spent this week
    rerolls_used: list = field(default_factory=list)         # checks rerolled this week

    temp_bonuses: dict = field(default_factory=dict)         # check -> int
    custom_gifts: dict = field(default_factory=dict)         # rank -> text
    monthly_actions: dict = field(default_factory=dict)      # ally slug -> week last used

    teams: list = field(default_factory=list)        # list of Team
    officers: list = field(default_factory=list)     # list of Officer
    allies: list = field(default_factory=list)       # list of Ally
    caches: list = field(default_factory=list)       # list of Cache
    events: list = field(default_factory=list)       # list of Event

    # Manipulate: two candidate events awaiting an external pick
    pending_selection: Optional[dict] = None

    # Phase ledger for the current week
    completed_steps: list = field(default_factory=list)

    # Archived week summaries + audit trail
    history: list = field(default_factory=list)
    log: list = field(default_factory=list)

    # ── Helpers ──

    def get_team(self, index) -> Optional[Team]:
        if isinstance(index, int) and 0 <= index < len(self.teams):
            return self.teams[index]
        return None

    def remove_team(self, index: int) -> Team:
        """Pop a team and shift every event reference that points past it."""
        team = self.teams.pop(index)
        for event in self.events:
            if event.blocked_teams:
                event.blocked_teams = [i - 1 if i > index else i
                                       for i in event.blocked_teams if i != index]
            ref = event.flags.get("team_index")
            if isinstance(ref, int):
                if ref == index:
                    event.flags["team_index"] = None
                elif ref > index:
                    event.flags["team_index"] = ref - 1
        return team

    def get_officer(self, index) -> Optional[Officer]:
        if isinstance(index, int) and 0 <= index < len(self.officers):
            return self.officers[index]
        return None

    def get_ally(self, slug: str) -> Optional[Ally]:
        for ally in self.allies:
            if ally.slug == slug:
                return ally
        return None

    def is_ally_active(self, slug: str) -> bool:
        ally = self.get_ally(slug)
        return ally is not None and ally.is_active()

    def active_events(self) -> list:
        return [e for e in self.events if e.is_active(self.week)]

    def find_live_event(self, name: str):
        """(index, event) of the live entry with this name, or (None, None)."""
        for i, event in enumerate(self.events):
            if event.name == name and event.is_live(self.week):
                return i, event
        return None, None

    def is_event_active(self, name: str) -> bool:
        return any(e.name == name for e in self.active_events())

    def operational_team_indices(self) -> list:
        return [i for i, t in enumerate(self.teams) if t.is_operational()]

    def has_team_with_cap(self, cap: str) -> bool:
        return any(cap in get_team_definition(t.type).get("caps", [])
                   for t in self.teams)

    def log_entry(self, entry: dict):
        entry["week"] = self.week
        self.log.append(entry)


# ─────────────────────────────────────────────────────
# SERIALIZATION
# ─────────────────────────────────────────────────────

def _build(cls, data: dict):
    """Construct a dataclass from a dict, ignoring unknown keys (older/newer saves)."""
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in (data or {}).items() if k in known})


def team_from_dict(data: dict) -> Team:
    return _build(Team, data)


def officer_from_dict(data: dict) -> Officer:
    return _build(Officer, data)


def ally_from_dict(data: dict) -> Ally:
    return _build(Ally, data)


def cache_from_dict(data: dict) -> Cache:
    return _build(Cache, data)


def event_from_dict(data: dict) -> Event:
    return _build(Event, data)


COLLECTION_BUILDERS = {
    "teams": team_from_dict,
    "officers": officer_from_dict,
    "allies": ally_from_dict,
    "caches": cache_from_dict,
    "events": event_from_dict,
}


def faction_to_dict(faction: Faction) -> dict:
    data = asdict(faction)
    data["custom_gifts"] = {str(k): v for k, v in faction.custom_gifts.items()}
    return data


def faction_from_dict(data: dict) -> Faction:
    """Deserialize a faction. Missing keys fall back to defaults."""
    faction = Faction()

    # SCALARS
    faction.week = data.get("week", 1)
    faction.rank = data.get("rank", 1)
    faction.max_rank = data.get("max_rank", 20)
    faction.supporters = data.get("supporters", 0)
    faction.population = data.get("population", 11900)
    faction.notoriety = data.get("notoriety", 0)
    faction.treasury = data.get("treasury", 10.0)
    faction.danger = data.get("danger", 20)
    faction.focus = data.get("focus", "loyalty")

    # WEEKLY COUNTERS
    faction.actions_used_this_week = data.get("actions_used_this_week", 0)
    faction.recruited_this_phase = data.get("recruited_this_phase", False)
    faction.strategist_bonus_used = data.get("strategist_bonus_used", False)
    faction.weeks_without_event = data.get("weeks_without_event", 0)
    faction.bonus_sources_used = list(data.get("bonus_sources_used", []))
    faction.rerolls_used = list(data.get("rerolls_used", []))

    faction.temp_bonuses = dict(data.get("temp_bonuses", {}))
    faction.custom_gifts = {int(k): v for k, v in data.get("custom_gifts", {}).items()}
    faction.monthly_actions = dict(data.get("monthly_actions", {}))

    # COLLECTIONS
    for key, builder in COLLECTION_BUILDERS.items():
        setattr(faction, key, [builder(item) for item in data.get(key, [])])

    faction.pending_selection = data.get("pending_selection")
    faction.completed_steps = list(data.get("completed_steps", []))
    faction.history = list(data.get("history", []))
    faction.log = list(data.get("log", []))
    return faction


def faction_to_json(faction: Faction) -> str:
    """Serialize the complete faction to JSON."""
    return json.dumps(faction_to_dict(faction), indent=2, ensure_ascii=False)


def faction_from_json(json_str: str) -> Faction:
    return faction_from_dict(json.loads(json_str))
