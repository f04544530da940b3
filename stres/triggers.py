"""Declarative trigger tables and first-match-wins line classification.

A table is an ordered list of TriggerRule(tag, pattern, extract). Patterns are
compiled case-insensitive. match_line() walks the table in order and returns
the first rule whose pattern matches and whose extractor succeeds:

    "The goblin attacks you!"  → TriggerMatch(tag="combat_start",
                                  captures={"attacker": "goblin", "defender": "you"})

Extractors read capture groups into a dict of named strings. An extractor
that touches a group the pattern does not have (IndexError, KeyError) makes
that rule a non-match and matching continues with the next rule. Narrative
text is unstructured; a bad table entry must never raise into the chat loop.

Tables defined here:
  COMBAT_START        combat start triggers (attack lines, initiative, drawn weapons)
  COMBAT_END          combat end triggers (defeat, victory, flight, surrender)
  COMBAT_ACTIONS      player action classification while in combat
  QUALITY_INDICATORS  narrative quality vocabulary → quality class
Per-task-type tables live in stres.tasks.patterns.
"""

import logging
import re
from collections.abc import Callable
from typing import NamedTuple

logger = logging.getLogger(__name__)

Extractor = Callable[[re.Match], dict[str, str]]


class TriggerRule(NamedTuple):
    tag: str
    pattern: re.Pattern
    extract: Extractor | None = None


class TriggerMatch(NamedTuple):
    tag: str
    captures: dict[str, str]
    text: str


def rule(tag: str, pattern: str, extract: Extractor | None = None) -> TriggerRule:
    """Build a rule with a case-insensitive compiled pattern."""
    return TriggerRule(tag, re.compile(pattern, re.IGNORECASE), extract)


def groups(*names: str) -> Extractor:
    """Extractor mapping positional groups 1..n onto names; unmatched groups are omitted."""

    def _extract(match: re.Match) -> dict[str, str]:
        captures: dict[str, str] = {}
        for index, name in enumerate(names, start=1):
            value = match.group(index)
            if value:
                captures[name] = value.strip()
        return captures

    return _extract


def const(**values: str) -> Extractor:
    """Extractor that ignores the match and returns fixed captures."""

    def _extract(match: re.Match) -> dict[str, str]:
        return dict(values)

    return _extract


def match_line(text: str, table: list[TriggerRule]) -> TriggerMatch | None:
    """Return the first matching rule's tag and captures, or None."""
    if not text:
        return None
    for entry in table:
        match = entry.pattern.search(text)
        if not match:
            continue
        if entry.extract is None:
            return TriggerMatch(entry.tag, {}, text)
        try:
            captures = entry.extract(match)
        except (IndexError, KeyError, AttributeError) as e:
            logger.debug("Extractor for %r failed on %r: %s", entry.tag, text, e)
            continue
        return TriggerMatch(entry.tag, captures, text)
    return None


# ── Combat mode ──────────────────────────────────────────

COMBAT_START: list[TriggerRule] = [
    rule("combat_start", r"\b(\w+)\s+attacks?\s+(?:the\s+)?(\w+)", groups("attacker", "defender")),
    rule("combat_start", r"\b(\w+)\s+charges?\s+(?:at\s+)?(?:the\s+)?(\w+)", groups("attacker", "defender")),
    rule("combat_start", r"\b(\w+)\s+(?:draws?|unsheathes?|brandishes?)\s+(?:their\s+|his\s+|her\s+|my\s+|your\s+|its\s+|a\s+)?(?:weapon|sword|blade|axe)", groups("attacker")),
    rule("combat_start", r"\b(?:battle|combat|fight)\s+(?:begins|starts|is\s+initiated|initiates)"),
    rule("combat_start", r"\broll\s+(?:for\s+)?initiative"),
    rule("combat_start", r"\bhostile\s+intent"),
]

COMBAT_END: list[TriggerRule] = [
    rule("combat_end", r"\b(?:all\s+)?(?:the\s+)?(?:enemies|foes|opponents)\s+(?:are\s+)?(?:defeated|dead|slain|fallen)", const(outcome="victory", defeated="*")),
    rule("combat_end", r"\b(\w+)\s+(?:is|are|has\s+been|lies)\s+(?:defeated|dead|slain|killed)", lambda m: {"outcome": "victory", "defeated": m.group(1)}),
    rule("combat_end", r"\b(?:combat|battle|fight)\s+(?:ends|is\s+over|concluded|finished)", const(outcome="ended")),
    rule("combat_end", r"\b(?:flees?|retreats?|escapes?)\s+from\s+(?:the\s+)?(?:combat|battle|fight)", const(outcome="fled")),
    rule("combat_end", r"\b(?:surrenders?|yields?|gives?\s+up)\b", const(outcome="surrendered")),
    rule("combat_end", r"\b(?:victory|triumph)\b", const(outcome="victory")),
]

COMBAT_ACTIONS: list[TriggerRule] = [
    rule("attack", r"\b(?:attack|strike|hit|slash|stab|shoot)"),
    rule("cast", r"\b(?:cast|spell|magic)"),
    rule("defend", r"\b(?:defend|dodge|parry|block)"),
    rule("move", r"\b(?:move|run|charge|retreat)"),
    rule("use_item", r"\b(?:use|drink|throw)"),
]

# ── Quality vocabulary ───────────────────────────────────
# Order matters: hedged failure ("almost fails") is struggling, not failure.

QUALITY_INDICATORS: list[TriggerRule] = [
    rule("struggling", r"\b(?:barely|struggl\w*|difficult\w*|rough|sloppy|clumsy|with\s+(?:great\s+)?(?:difficulty|effort)|(?:almost|nearly)\s+(?:fails?|loses?)|just\s+(?:manages?|succeeds?))"),
    rule("failure", r"\b(?:fail(?:s|ed|ure)?|breaks?|broke|broken|snaps?|ruin(?:s|ed)?|botch(?:es|ed)?|shatter(?:s|ed)?|collapses?|fizzles?)\b"),
    rule("critical", r"\b(?:critical\s+(?:hit|success)|flawless\w*|perfect(?:ly)?|masterful\w*|masterwork|exceptional\w*|brilliant\w*)"),
    rule("success", r"\b(?:skilful\w*|skillful\w*|expertly|competent\w*|solid|cleanly|impressive\w*|well[-\s]made|with\s+ease|effortless\w*)"),
]

QUALITY_MULTIPLIERS: dict[str, float] = {
    "critical": 2.0,
    "success": 1.5,
    "default": 1.0,
    "struggling": 0.5,
    "failure": 0.25,
}


def classify_action(text: str) -> str | None:
    """Classify a combat-turn line into one of the reduced combat actions."""
    found = match_line(text, COMBAT_ACTIONS)
    return found.tag if found else None
