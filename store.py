"""
Silver Ravens Engine v1.0 — State Store
The single owner of the Faction aggregate.

  get()            -> Faction
  update(partial)  shallow merge of top-level keys; a provided collection
                   (teams, officers, allies, caches, events) replaces the
                   whole list
  save()/load_latest()  save_*.json files in the data directory
"""

import glob
import json
import logging
import os
from dataclasses import MISSING, fields
from datetime import datetime

from errors import precondition, invalid_reference
from models import Faction, Team, COLLECTION_BUILDERS, faction_to_json, faction_from_json

logger = logging.getLogger("rebellion.store")

NON_NEGATIVE = ("supporters", "population", "notoriety", "treasury", "danger",
                "weeks_without_event", "actions_used_this_week")


def _field_defaults() -> dict:
    defaults = {}
    for f in fields(Faction):
        if f.default is not MISSING:
            defaults[f.name] = f.default
        else:
            defaults[f.name] = f.default_factory()
    return defaults


FIELD_DEFAULTS = _field_defaults()


def _type_error(key: str, value):
    """Message for a value whose type does not match the Faction field, else None."""
    default = FIELD_DEFAULTS[key]
    if key in COLLECTION_BUILDERS:
        if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
            return f"{key} must be a list of objects"
        return None
    if default is None:
        ok = value is None or isinstance(value, dict)
    elif isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, type(default))
    if not ok:
        expected = type(default).__name__ if default is not None else "object"
        return f"{key} must be {expected}, got {type(value).__name__}"
    return None


class StateStore:

    def __init__(self, data_dir: str, faction: Faction = None):
        self.data_dir = data_dir
        self.faction = faction if faction is not None else Faction()

    def get(self) -> Faction:
        return self.faction

    def update(self, partial: dict) -> dict:
        """Validate everything first, then apply. Nothing changes on error."""
        known = {f.name for f in fields(Faction)}
        unknown = [k for k in partial if k not in known]
        if unknown:
            return invalid_reference(f"Unknown field(s): {', '.join(sorted(unknown))}")

        for key, value in partial.items():
            error = _type_error(key, value)
            if error:
                return precondition(error)

        for key in NON_NEGATIVE:
            value = partial.get(key)
            if value is not None and value < 0:
                return precondition(f"{key} cannot be negative ({value})")
        rank = partial.get("rank")
        if rank is not None and rank < self.faction.rank:
            return precondition(f"Rank cannot drop ({self.faction.rank} -> {rank})")

        staged = {}
        try:
            for key, value in partial.items():
                if key in COLLECTION_BUILDERS:
                    builder = COLLECTION_BUILDERS[key]
                    staged[key] = [builder(item) for item in value]
                elif key == "custom_gifts":
                    staged[key] = {int(k): v for k, v in value.items()}
                else:
                    staged[key] = value
        except (TypeError, ValueError) as e:
            return precondition(f"Malformed update: {e}")

        for key, value in staged.items():
            setattr(self.faction, key, value)
        logger.info(f"State updated: {', '.join(sorted(staged))}")
        return {"success": True, "updated": sorted(staged),
                "summary": f"Updated {', '.join(sorted(staged))}"}

    def replace(self, faction: Faction):
        self.faction = faction

    # ─────────────────────────────────────────────────
    # SAVE / LOAD
    # ─────────────────────────────────────────────────

    def _save_name(self) -> str:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"save_week{self.faction.week:03d}_{stamp}.json"

    def save(self, filename: str = "") -> dict:
        if not filename:
            filename = self._save_name()
        if not filename.endswith(".json"):
            filename += ".json"
        filepath = os.path.join(self.data_dir, filename)
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            with open(filepath, "w", encoding="utf-8") as f:
                f.write(faction_to_json(self.faction))
        except OSError as e:
            logger.error(f"Save failed {filepath}: {e}")
            return precondition(str(e))
        logger.info(f"Saved: {filename}")
        return {"success": True, "filename": filename, "summary": f"Saved: {filename}"}

    def list_saves(self) -> list:
        if not os.path.isdir(self.data_dir):
            return []
        saves = sorted(glob.glob(os.path.join(self.data_dir, "save_*.json")),
                       key=os.path.getmtime, reverse=True)
        return [{
            "filename": os.path.basename(s),
            "size": os.path.getsize(s),
            "modified": datetime.fromtimestamp(os.path.getmtime(s)).strftime("%Y-%m-%d %H:%M"),
        } for s in saves]

    def load(self, filename: str) -> dict:
        filepath = os.path.join(self.data_dir, filename)
        if not os.path.exists(filepath) and not filepath.endswith(".json"):
            filepath += ".json"
        if not os.path.exists(filepath):
            return invalid_reference(f"File not found: {filename}")
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                self.faction = faction_from_json(f.read())
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.error(f"Load failed {filepath}: {e}")
            return precondition(str(e))
        logger.info(f"Loaded: {os.path.basename(filepath)}")
        return {"success": True, "filename": os.path.basename(filepath),
                "week": self.faction.week,
                "summary": f"Loaded: {os.path.basename(filepath)}"}

    def load_latest(self) -> Faction:
        """Newest readable save, or a fresh faction."""
        for save in self.list_saves():
            if self.load(save["filename"]).get("success"):
                return self.faction
        logger.info("No save found, starting a new rebellion")
        self.faction = new_faction()
        return self.faction


def new_faction() -> Faction:
    """Week 1: the Silver Ravens themselves and nothing else."""
    return Faction(teams=[Team(type="silverRavens", category="core", rank_tier=1,
                               label="Silver Ravens")])
