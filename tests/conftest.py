from __future__ import annotations

import pytest

from models import Team
from modifiers import DictAttributeLookup
from roster import TEAMS
from store import new_faction


class ScriptedRNG:
    """randint() hands out queued values in order. Running dry fails the test."""

    def __init__(self, values):
        self.values = list(values)
        self.calls: list[tuple[int, int, int]] = []

    def randint(self, a: int, b: int) -> int:
        assert self.values, f"scripted RNG exhausted at randint({a}, {b})"
        value = self.values.pop(0)
        assert a <= value <= b, f"scripted {value} outside randint({a}, {b})"
        self.calls.append((a, b, value))
        return value

    @property
    def exhausted(self) -> bool:
        return not self.values


@pytest.fixture
def scripted():
    return ScriptedRNG


@pytest.fixture
def faction():
    """Fresh week-1 rebellion: only the Silver Ravens team (index 0)."""
    return new_faction()


@pytest.fixture
def add_team(faction):
    def _add(team_type: str, **kwargs) -> int:
        definition = TEAMS[team_type]
        faction.teams.append(Team(type=team_type, category=definition["category"],
                                  rank_tier=definition["rank"], label=definition["label"],
                                  **kwargs))
        return len(faction.teams) - 1
    return _add


@pytest.fixture
def lookup():
    return DictAttributeLookup({
        "pc_ezra": {"level": 5, "con": 1, "cha": 4, "str": 0, "wis": 2, "dex": 3, "int": 1},
        "pc_mira": {"level": 4, "con": 2, "cha": 1, "str": 3, "wis": 1, "dex": 4, "int": 2},
    })
