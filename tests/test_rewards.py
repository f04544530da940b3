"""Tests for the reward emitter."""

import pytest

from stres.models import (
    CombatDetail,
    CombatSession,
    CraftingDetail,
    ExplorationDetail,
    HitPoints,
    MagicDetail,
    Participant,
    SocialDetail,
    Task,
    TrainingDetail,
)
from stres.rewards import reward_for_combat, reward_for_task


def _completed(task_type, detail, quality=1.0) -> Task:
    task = Task(id=f"{task_type}-1", type=task_type, character_id="player", detail=detail)
    task.transition("in_progress")
    task.quality = quality
    task.transition("completed")
    return task


@pytest.mark.parametrize("task_type, detail, stats, skills", [
    ("combat", CombatDetail(enemy="orc", enemy_level=3), {"xp": 150}, {"combat": 30}),
    ("crafting", CraftingDetail(item_type="ore", skill="smelting"), {}, {"smelting": 25}),
    ("training", TrainingDetail(skill="archery", duration_hours=2), {}, {"archery": 20}),
    ("exploration", ExplorationDetail(area="old mine"), {"xp": 25}, {"exploration": 15}),
    ("magic", MagicDetail(spell="fire spell", school="fire_magic", spell_level=3), {}, {"fire_magic": 60}),
    ("social", SocialDetail(skill="negotiation", target="merchant"), {}, {"negotiation": 30}),
])
def test_base_formulas(task_type, detail, stats, skills):
    reward = reward_for_task(_completed(task_type, detail))
    assert reward.stat_deltas == stats
    assert reward.skill_deltas == skills
    assert reward.reason == "task_completed"
    assert reward.task_type == task_type


def test_critical_is_double_standard():
    detail = CraftingDetail(item_type="sword", material="steel", skill="blacksmithing", item_level=2)
    critical = reward_for_task(_completed("crafting", detail, 2.0))
    standard = reward_for_task(_completed("crafting", detail, 1.0))
    assert critical.skill_deltas["blacksmithing"] == 2 * standard.skill_deltas["blacksmithing"]


def test_failure_multiplier_scales_down():
    reward = reward_for_task(_completed("training", TrainingDetail(skill="lockpicking"), 0.25))
    assert reward.skill_deltas == {"lockpicking": 2.5}


def test_no_reward_unless_completed():
    task = Task(id="magic-1", type="magic", character_id="player", detail=MagicDetail())
    assert reward_for_task(task) is None
    task.transition("in_progress")
    assert reward_for_task(task) is None
    task.transition("cancelled")
    assert reward_for_task(task) is None


def _session(*enemies: tuple[str, int, int]) -> CombatSession:
    participants = [Participant(id="you", name="you", role="defender", is_player=True)]
    for name, level, hp in enemies:
        participants.append(Participant(
            id=name, name=name, role="attacker", level=level,
            hp=HitPoints(current=hp, max=10),
        ))
    return CombatSession(id="combat-1", participants=participants, round=3)


def test_combat_reward_sums_defeated_levels():
    reward = reward_for_combat(_session(("goblin", 1, 0), ("orc", 3, -2), ("wolf", 2, 5)), "player")
    assert reward.stat_deltas == {"xp": 200}
    assert reward.skill_deltas == {"combat": 20, "weapon": 10}
    assert reward.defeated == ["goblin", "orc"]
    assert reward.rounds == 3
    assert reward.target_character_id == "player"


def test_combat_without_defeats_has_no_reward():
    assert reward_for_combat(_session(("goblin", 1, 7)), "player") is None
