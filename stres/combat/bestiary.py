"""Combatant lookup: resolve a name from a trigger capture to level/HP/AC.

The engine only needs the CharacterLookup protocol. Bestiary is the built-in
implementation: a fixed table of common monsters plus an optional player
entry. Unresolved names get DEFAULT_STATS rather than failing.
"""

from __future__ import annotations

import re
from typing import Protocol

from pydantic import BaseModel


class CombatantStats(BaseModel):
    level: int = 1
    hp: int = 10
    ac: int = 10


DEFAULT_STATS = CombatantStats()

# name → (level, hp, ac)
MONSTERS: dict[str, tuple[int, int, int]] = {
    "goblin": (1, 7, 13),
    "rat": (1, 4, 10),
    "slime": (1, 10, 8),
    "skeleton": (1, 13, 13),
    "wolf": (2, 11, 13),
    "orc": (3, 15, 13),
    "bandit": (3, 11, 12),
    "ogre": (5, 59, 11),
    "troll": (6, 84, 15),
    "wyvern": (8, 110, 13),
    "demon": (12, 150, 16),
    "lich": (14, 135, 17),
    "dragon": (15, 200, 19),
}

PLAYER_NAMES = frozenset({"you", "i", "me", "player", "yourself"})


class CharacterLookup(Protocol):
    def resolve(self, name: str) -> CombatantStats | None: ...


def _singular(name: str) -> str:
    name = name.lower().strip()
    if name.endswith("ves"):
        return name[:-3] + "f"
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


class Bestiary:
    """Table-backed lookup. Player aliases resolve to the configured player stats."""

    def __init__(
        self,
        monsters: dict[str, tuple[int, int, int]] | None = None,
        player: CombatantStats | None = None,
    ) -> None:
        self._monsters = dict(MONSTERS if monsters is None else monsters)
        self._player = player

    def resolve(self, name: str) -> CombatantStats | None:
        key = name.lower().strip()
        if key in PLAYER_NAMES:
            return self._player
        entry = self._monsters.get(key) or self._monsters.get(_singular(key))
        if entry is None:
            return None
        level, hp, ac = entry
        return CombatantStats(level=level, hp=hp, ac=ac)


def is_player_name(name: str, extra: list[str] | None = None) -> bool:
    key = name.lower().strip()
    return key in PLAYER_NAMES or key in {n.lower() for n in extra or []}


def explicit_level(text: str) -> int | None:
    """Find "level 4" / "lvl 4" / "level-4" in a line."""
    match = re.search(r"\b(?:level|lvl)[\s-]*(\d+)", text, re.IGNORECASE)
    return int(match.group(1)) if match else None


def lookup_level(lookup: CharacterLookup, name: str, text: str = "") -> int:
    """Level for a named enemy: explicit level in the text, then lookup, then default."""
    level = explicit_level(text)
    if level is not None:
        return level
    stats = lookup.resolve(name)
    return stats.level if stats else DEFAULT_STATS.level
