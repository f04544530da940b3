"""Tests for per-type start detection and detail extraction."""

import pytest

from stres.combat.bestiary import Bestiary
from stres.tasks.patterns import TASK_PATTERNS, clean_subject, extract_detail, parse_hours, spell_level
from stres.triggers import match_line


def _start(text: str):
    for task_type, patterns in TASK_PATTERNS.items():
        found = match_line(text, patterns.start)
        if found:
            return task_type, extract_detail(task_type, text, found.captures, Bestiary())
    return None, None


def test_smelting_ore():
    task_type, detail = _start("I start smelting iron ore")
    assert task_type == "crafting"
    assert detail.item_type == "ore"
    assert detail.material == "iron"
    assert detail.skill == "smelting"
    assert detail.item_level == 1


def test_item_table_beats_verb():
    task_type, detail = _start("I begin forging a steel sword.")
    assert task_type == "crafting"
    assert detail.item_type == "sword"
    assert detail.skill == "blacksmithing"
    assert detail.item_level == 2


def test_plural_item():
    _, detail = _start("She tries to brew healing potions")
    assert detail.item_type == "potions"
    assert detail.skill == "alchemy"


def test_combat_task_level_from_bestiary():
    task_type, detail = _start("You engage the orc")
    assert task_type == "combat"
    assert (detail.enemy, detail.enemy_level) == ("orc", 3)


def test_combat_task_explicit_level():
    _, detail = _start("You fight the level 4 bandit")
    assert (detail.enemy, detail.enemy_level) == ("bandit", 4)


def test_training_hours():
    task_type, detail = _start("I spend two hours training archery")
    assert task_type == "training"
    assert detail.skill == "archery"
    assert detail.duration_hours == 2.0


def test_lock_attempt_is_lockpicking():
    task_type, detail = _start("I attempt the lock")
    assert task_type == "training"
    assert detail.skill == "lockpicking"
    assert detail.duration_hours == 1.0


@pytest.mark.parametrize("text, skill, target", [
    ("I try to persuade the guard", "persuasion", "guard"),
    ("I begin negotiating with the merchant", "negotiation", "merchant"),
    ("I attempt to intimidate the thug", "intimidation", "thug"),
])
def test_social_skill_from_verb(text, skill, target):
    task_type, detail = _start(text)
    assert task_type == "social"
    assert (detail.skill, detail.target) == (skill, target)


def test_exploration_area():
    task_type, detail = _start("We venture into the Sunken Crypt.")
    assert task_type == "exploration"
    assert detail.area == "sunken crypt"


@pytest.mark.parametrize("text, school, level", [
    ("I begin casting a greater fire spell", "fire_magic", 3),
    ("I prepare a minor healing spell", "healing_magic", 1),
    ("I start channeling a spell", "magic", 2),
])
def test_magic_detail(text, school, level):
    task_type, detail = _start(text)
    assert task_type == "magic"
    assert (detail.school, detail.spell_level) == (school, level)


def test_no_start():
    assert _start("The barmaid pours an ale.") == (None, None)


def test_helpers():
    assert clean_subject("  The Old Mine!  ") == "old mine"
    assert parse_hours("after 3 hours of practice") == 3.0
    assert parse_hours("after 1.5 hours") == 1.5
    assert parse_hours("no time given") is None
    assert spell_level("a level 5 spell") == 5
