"""
Silver Ravens Engine v1.0 — Rebellion Loop
The outer loop. Owns the faction (through the store), the random source
and the attribute lookup. The web server and the CLI both drive this object.

One mutation at a time: a call arriving while another is in flight is
rejected with PreconditionFailed, never interleaved.

Week state machine (one call per step):
  MAINTENANCE_START -> ATTRITION -> NOTORIETY_CHECK -> TREASURY_CHECK
  -> RANK_UP -> ACTIVITY (actions until end_activity) -> EVENT_PHASE
  -> ARCHIVE -> next week
"""

import random
import threading
from datetime import datetime

import actions
import events
import phases
from config import DEFAULT_CONFIG
from errors import precondition
from models import WeekStep, faction_to_dict
from modifiers import NULL_LOOKUP, compute_all_bonuses
from report import generate_weekly_report
from store import StateStore


class RebellionLoop:
    """
    Central week state machine. Every mutating call returns the engine's
    result dict and pushes a state update through the registered callbacks.
    """

    def __init__(self, config=None, lookup=None, rng=None):
        self.config = config or DEFAULT_CONFIG
        self.lookup = lookup or NULL_LOOKUP
        if rng is None and self.config.seed is not None:
            rng = random.Random(self.config.seed)
        self.rng = rng
        self.store: StateStore = StateStore(self.config.data_dir)
        self.phase: WeekStep = WeekStep.MAINTENANCE_START
        self.action_log: list[dict] = []        # Mechanical log entries
        self._lock = threading.Lock()

        # Callbacks: the web layer registers these to push updates
        self._on_phase_change = None
        self._on_state_update = None
        self._on_log_entry = None

    @property
    def faction(self):
        return self.store.get()

    # ─────────────────────────────────────────────────
    # INITIALIZATION
    # ─────────────────────────────────────────────────

    def init(self, data_dir: str = None, faction=None):
        """Load the newest save (or a fresh rebellion) and sync the phase."""
        if not self._lock.acquire(blocking=False):
            return precondition("Another operation is in progress")
        try:
            self.store = StateStore(data_dir or self.config.data_dir, faction)
            if faction is None:
                self.store.load_latest()
        finally:
            self._lock.release()
        self.phase = phases.next_step(self.faction)
        self._log_action("SESSION", f"Engine started. Week {self.faction.week}, "
                         f"rank {self.faction.rank}, next step {self.phase.value}")
        return {"success": True, "week": self.faction.week, "phase": self.phase.value}

    # ─────────────────────────────────────────────────
    # EXCLUSIVE EXECUTION
    # ─────────────────────────────────────────────────

    def _run(self, log_type: str, fn, *args, **kwargs) -> dict:
        if not self._lock.acquire(blocking=False):
            return precondition("Another operation is in progress")
        try:
            result = fn(*args, **kwargs)
        finally:
            self._lock.release()

        if result.get("success"):
            self._log_action(log_type, result.get("summary", ""))
        else:
            self._log_action("REJECTED", f"{log_type}: {result.get('error')}")
        self._set_phase(phases.next_step(self.faction))
        if self._on_state_update:
            self._on_state_update(self.get_full_state())
        return result

    def _set_phase(self, phase: WeekStep):
        old = self.phase
        self.phase = phase
        if self._on_phase_change and old != phase:
            self._on_phase_change(phase, {"phase": phase.value, "week": self.faction.week})

    # ─────────────────────────────────────────────────
    # WEEK STEPS
    # ─────────────────────────────────────────────────

    def step(self, step: str) -> dict:
        if step == WeekStep.ACTIVITY.value:
            return self.end_activity()
        return self._run("STEP", phases.run_step, self.faction, step,
                         self.rng, self.lookup, self.config)

    def end_activity(self) -> dict:
        return self._run("STEP", phases.run_step, self.faction, WeekStep.ACTIVITY,
                         self.rng, self.lookup, self.config)

    def perform_action(self, action_id: str, team_index: int = None,
                       officer_index: int = None, context: dict = None,
                       bonus_source: str = None) -> dict:
        if phases.next_step(self.faction) != WeekStep.ACTIVITY:
            return precondition(f"Actions happen during activity, not {self.phase.value}")
        return self._run("ACTION", actions.resolve_action, self.faction, action_id,
                         team_index=team_index, officer_index=officer_index,
                         context=context, lookup=self.lookup, rng=self.rng,
                         bonus_source=bonus_source, config=self.config)

    def set_strategist_target(self, team_index: int) -> dict:
        return self._run("STRATEGIST", actions.set_strategist_target, self.faction, team_index)

    def resolve_status(self, kind: str, key, choice: str, cost: float = None) -> dict:
        return self._run("STATUS", phases.resolve_status, self.faction, kind, key, choice,
                         self.rng, self.lookup, cost)

    # ─────────────────────────────────────────────────
    # EVENTS
    # ─────────────────────────────────────────────────

    def mitigate_event(self, index: int, skill_bonus: int = 0) -> dict:
        return self._run("MITIGATE", events.mitigate_event, self.faction, index,
                         skill_bonus, self.rng, self.lookup)

    def select_event(self, index: int) -> dict:
        return self._run("EVENT", events.select_pending_event, self.faction, index,
                         self.rng, self.config, self.lookup)

    def cancel_event(self) -> dict:
        return self._run("EVENT", events.cancel_pending_event, self.faction)

    def respond_to_event(self, name: str, choice: str) -> dict:
        return self._run("RESPONSE", events.respond_to_event, self.faction, name, choice,
                         self.rng, self.lookup, self.config)

    def add_custom_modifier(self, name: str, check_bonus: dict = None, duration: int = 1,
                            danger_delta: int = 0, description: str = "") -> dict:
        return self._run("MODIFIER", events.add_custom_modifier, self.faction, name,
                         check_bonus, duration, None, danger_delta, description)

    # ─────────────────────────────────────────────────
    # STATE
    # ─────────────────────────────────────────────────

    def update(self, partial: dict) -> dict:
        return self._run("UPDATE", self.store.update, partial)

    def get_full_state(self) -> dict:
        data = faction_to_dict(self.faction)
        data["phase"] = phases.next_step(self.faction).value
        data["bonuses"] = self.get_bonuses()
        data["action_log"] = self.action_log[-50:]
        return data

    def get_bonuses(self) -> dict:
        return compute_all_bonuses(self.faction, self.lookup, self.config)

    def run_week(self) -> list:
        """
        Run the rest of the week with no team actions.
        Stops before archive while a manipulated event pick is pending.
        """
        results = []
        start_week = self.faction.week
        while self.faction.week == start_week:
            step = phases.next_step(self.faction)
            if step == WeekStep.ARCHIVE and self.faction.pending_selection:
                names = [c.get("name") for c in self.faction.pending_selection.get("candidates", [])]
                results.append(precondition("An event choice is pending; select or cancel it first",
                                            options=names))
                break
            result = self.step(step.value)
            results.append(result)
            if not result.get("success"):
                break
        return results

    def report(self, weeks: int = None) -> str:
        return generate_weekly_report(self.faction, self.action_log, weeks)

    # ─────────────────────────────────────────────────
    # SAVE / LOAD
    # ─────────────────────────────────────────────────

    def save_game(self, filename: str = "") -> dict:
        return self._run("SAVE", self.store.save, filename)

    def load_game(self, filename: str) -> dict:
        return self._run("SESSION", self.store.load, filename)

    def list_saves(self) -> list[dict]:
        return self.store.list_saves()

    # ─────────────────────────────────────────────────
    # INTERNAL HELPERS
    # ─────────────────────────────────────────────────

    def _log_action(self, action_type: str, detail: str):
        """Add an entry to the action log."""
        entry = {
            "type": action_type,
            "detail": detail,
            "timestamp": datetime.now().isoformat(),
            "week": self.faction.week,
        }
        self.action_log.append(entry)
        if self._on_log_entry:
            self._on_log_entry(entry)
