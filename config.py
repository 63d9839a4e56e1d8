"""
Silver Ravens Engine v1.0 — Configuration
Engine knobs with table defaults. Loaded from an optional JSON file,
then REBELLION_* environment variables on top.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Optional

from tables import PROGRESSION, MIN_TREASURY, DEFAULT_MIN_TREASURY

logger = logging.getLogger("rebellion.config")

ENGINE_DIR = os.path.dirname(os.path.abspath(__file__))


class MitigatedEscalation(str, Enum):
    """What a repeat occurrence does to a live event that was already mitigated."""
    BLOCK = "block"      # mitigated events never escalate; the repeat only refreshes the window
    RESET = "reset"      # repeat clears mitigation, then escalates normally
    KEEP = "keep"        # escalates to persistent but keeps the reduced magnitude


@dataclass
class EngineConfig:
    data_dir: str = os.path.join(ENGINE_DIR, "data")

    # Maintenance
    attrition_dc: int = 10
    notoriety_threshold: int = 100
    min_treasury: dict = field(default_factory=dict)     # rank -> override
    progression: dict = field(default_factory=dict)      # rank -> min_supporters override

    # Events
    event_chance_min: int = 10
    event_chance_max: int = 95
    mitigated_escalation: str = MitigatedEscalation.BLOCK.value

    # Host
    seed: Optional[int] = None
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    def min_treasury_for(self, rank: int) -> int:
        if rank in self.min_treasury:
            return self.min_treasury[rank]
        return MIN_TREASURY.get(rank, DEFAULT_MIN_TREASURY)

    def min_supporters_for(self, rank: int) -> int:
        if rank in self.progression:
            return self.progression[rank]
        return PROGRESSION[rank]["min_supporters"]

    def escalation_policy(self) -> MitigatedEscalation:
        return MitigatedEscalation(self.mitigated_escalation)


DEFAULT_CONFIG = EngineConfig()


_ENV_PREFIX = "REBELLION_"


def _coerce(raw: str, current):
    if isinstance(current, bool):
        return raw.lower() in ("1", "true", "yes", "on")
    if isinstance(current, int) or current is None:
        try:
            return int(raw)
        except ValueError:
            return raw
    return raw


def load_config(path: str = None) -> EngineConfig:
    """Build an EngineConfig from a JSON file (optional) plus environment overrides."""
    config = EngineConfig()
    known = {f.name for f in fields(EngineConfig)}

    if path and os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Config file unreadable {path}: {e}")
            data = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Unknown config key ignored: {key}")
                continue
            if key in ("min_treasury", "progression"):
                value = {int(k): int(v) for k, v in value.items()}
            setattr(config, key, value)

    for key in known:
        raw = os.environ.get(_ENV_PREFIX + key.upper())
        if raw is None or key in ("min_treasury", "progression"):
            continue
        setattr(config, key, _coerce(raw, getattr(config, key)))

    MitigatedEscalation(config.mitigated_escalation)
    return config


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
