"""Reward emitter: pure Task / CombatSession → RewardCommand transformation.

Base rewards per task type (then multiplied by the task's quality):
  combat       enemy_level × 50 XP, enemy_level × 10 combat skill
  crafting     item_level × 25 crafting-skill XP
  training     duration_hours × 10 skill XP
  exploration  25 XP + 15 exploration skill
  magic        spell_level × 20 school skill
  social       30 skill XP

Combat sessions reward Σ level × 50 XP over defeated enemies plus a tenth of
that as combat skill and a twentieth as weapon skill. No I/O happens here;
stres.sinks applies the commands.
"""

from collections.abc import Callable

from stres.models import (
    CombatDetail,
    CombatReward,
    CombatSession,
    CraftingDetail,
    ExplorationDetail,
    MagicDetail,
    SocialDetail,
    Task,
    TaskReward,
    TaskType,
    TrainingDetail,
)

Deltas = tuple[dict[str, float], dict[str, float]]  # (stat_deltas, skill_deltas)

XP_PER_ENEMY_LEVEL = 50


def _combat(detail: CombatDetail) -> Deltas:
    return {"xp": detail.enemy_level * 50}, {"combat": detail.enemy_level * 10}


def _crafting(detail: CraftingDetail) -> Deltas:
    return {}, {detail.skill: detail.item_level * 25}


def _training(detail: TrainingDetail) -> Deltas:
    return {}, {detail.skill: detail.duration_hours * 10}


def _exploration(detail: ExplorationDetail) -> Deltas:
    return {"xp": 25}, {"exploration": 15}


def _magic(detail: MagicDetail) -> Deltas:
    return {}, {detail.school: detail.spell_level * 20}


def _social(detail: SocialDetail) -> Deltas:
    return {}, {detail.skill: 30}


REWARD_FORMULAS: dict[TaskType, Callable] = {
    "combat": _combat,
    "crafting": _crafting,
    "training": _training,
    "exploration": _exploration,
    "magic": _magic,
    "social": _social,
}


def _scale(values: dict[str, float], factor: float) -> dict[str, float]:
    return {k: round(v * factor, 2) for k, v in values.items()}


def reward_for_task(task: Task) -> TaskReward | None:
    """Reward for a completed task, or None for any other status."""
    if task.status != "completed":
        return None
    quality = task.quality if task.quality is not None else 1.0
    stats, skills = REWARD_FORMULAS[task.type](task.detail)
    return TaskReward(
        target_character_id=task.character_id,
        stat_deltas=_scale(stats, quality),
        skill_deltas=_scale(skills, quality),
        note=f"Completed {task.type} task ({task.detail.subject or task.type}) at quality ×{quality}",
        task_id=task.id,
        task_type=task.type,
        quality=quality,
        detail=task.detail,
    )


def reward_for_combat(session: CombatSession, character_id: str) -> CombatReward | None:
    """Reward for defeated enemies, or None when nobody was defeated."""
    defeated = [p for p in session.enemies() if p.defeated]
    xp = sum(p.level * XP_PER_ENEMY_LEVEL for p in defeated)
    if not xp:
        return None
    names = [p.name for p in defeated]
    return CombatReward(
        target_character_id=character_id,
        stat_deltas={"xp": xp},
        skill_deltas={"combat": xp // 10, "weapon": xp // 20},
        note=f"Defeated {', '.join(names)} in {session.round} rounds",
        session_id=session.id,
        rounds=session.round,
        defeated=names,
    )
