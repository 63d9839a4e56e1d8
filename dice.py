"""
Silver Ravens Engine v1.0 — Dice Roller
Full audit trail on every roll. No hidden rolls.

Every draw goes through an injectable random source (anything with
randint(a, b)), so tests and replays can script exact results.
"""

import random
import re


def _source(rng):
    return rng if rng is not None else random


def roll_dice(expression: str, label: str = "", rng=None) -> dict:
    """
    Roll a dice expression like '2d6', '1d20+3', '2d4-1', 'd100'.
    Returns dict with full audit trail.
    """
    expr = expression.strip().lower().replace(" ", "")

    # Parse NdM+K
    match = re.match(r'^(\d*)d(\d+)([+-]\d+)?$', expr)
    if not match:
        return {"error": f"Invalid dice expression: {expression}"}

    n = int(match.group(1)) if match.group(1) else 1
    m = int(match.group(2))
    k = int(match.group(3)) if match.group(3) else 0

    src = _source(rng)
    individual = [src.randint(1, m) for _ in range(n)]
    total = sum(individual) + k

    result = {
        "expression": expression,
        "dice": individual,
        "modifier": k,
        "total": total,
        "label": label,
    }

    return result


def roll_d6(label: str = "", rng=None) -> dict:
    """Roll 1d6 with audit."""
    return roll_dice("1d6", label, rng)


def roll_2d6(label: str = "", rng=None) -> dict:
    """Roll 2d6 with audit."""
    return roll_dice("2d6", label, rng)


def roll_d20(label: str = "", rng=None) -> dict:
    """Roll 1d20 with audit."""
    return roll_dice("1d20", label, rng)


def roll_d100(label: str = "", rng=None) -> dict:
    """Roll a percentile die with audit."""
    return roll_dice("1d100", label, rng)


def roll_reroll_six(label: str = "", rng=None) -> dict:
    """1d6 where sixes are rerolled. Used for infiltration length."""
    src = _source(rng)
    dice = []
    value = src.randint(1, 6)
    dice.append(value)
    while value == 6:
        value = src.randint(1, 6)
        dice.append(value)
    return {"expression": "1d6 (reroll 6)", "dice": dice, "modifier": 0,
            "total": value, "label": label}


def pick_index(count: int, label: str = "", rng=None) -> dict:
    """Uniformly pick one index out of `count`. Audited like a die roll."""
    if count <= 0:
        return {"error": "Nothing to pick from", "label": label}
    value = _source(rng).randint(1, count)
    return {"expression": f"1d{count}", "dice": [value], "modifier": 0,
            "total": value, "index": value - 1, "label": label}


def pick_distinct(count: int, how_many: int, label: str = "", rng=None) -> list:
    """Pick up to `how_many` distinct indices out of `count`, in draw order."""
    remaining = list(range(count))
    picked = []
    while remaining and len(picked) < how_many:
        draw = pick_index(len(remaining), label, rng)
        picked.append(remaining.pop(draw["index"]))
    return picked


# ─────────────────────────────────────────────────────
# CHECKS
# ─────────────────────────────────────────────────────

def roll_check(bonus: int, dc: int, label: str = "", rng=None,
               bands: bool = False) -> dict:
    """
    d20 + bonus against a DC.

    natural 20 is always critical success, natural 1 always critical
    failure. Otherwise total >= dc succeeds; with `bands`, missing by 5
    or more is a critical failure.
    """
    die = roll_d20(label, rng)
    natural = die["total"]
    total = natural + bonus
    return {
        "label": label,
        "natural": natural,
        "bonus": bonus,
        "total": total,
        "dc": dc,
        "tier": degree_of_success(natural, total, dc, bands),
    }


def degree_of_success(natural: int, total: int, dc: int, bands: bool = False) -> str:
    if natural == 20:
        return "critical_success"
    if natural == 1:
        return "critical_failure"
    if total >= dc:
        return "success"
    if bands and dc - total >= 5:
        return "critical_failure"
    return "failure"


def is_success(tier: str) -> bool:
    return tier in ("success", "critical_success")


def _matches_range(roll_total: int, range_str: str) -> bool:
    """Check if a roll total falls within a range string like '1', '1-4', '120-999'."""
    if "-" in range_str:
        parts = range_str.split("-")
        return int(parts[0]) <= roll_total <= int(parts[1])
    return roll_total == int(range_str)
