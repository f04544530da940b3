"""Core domain models.

All engine components operate on these types. Pydantic is used for
validation and serialisation at every data boundary (HTTP bodies, MCP tool
results, reward commands handed to the stats backend).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

ModeState = Literal["narrative", "combat"]

Role = Literal["user", "assistant", "system"]

MessageKind = Literal["narrative", "combat_system", "combat_summary"]

TaskType = Literal["combat", "crafting", "training", "social", "exploration", "magic"]

TaskStatus = Literal["pending", "in_progress", "completed", "cancelled", "failed"]

ParticipantRole = Literal["attacker", "defender", "player", "enemy"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "cancelled", "failed"})

_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"in_progress", "cancelled"}),
    "in_progress": frozenset({"completed", "cancelled", "failed"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "failed": frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStateError(ValueError):
    """Raised when a task status change would leave the allowed lifecycle."""


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

class Message(BaseModel):
    """A single entry in the conversation sent to the language model."""

    role: Role
    text: str
    kind: MessageKind = "narrative"


class Conversation(BaseModel):
    """Mutable conversation state owned by one Engine."""

    messages: list[Message] = Field(default_factory=list)
    world_info_enabled: bool = True


class NarrativeEvent(BaseModel):
    """One outgoing (user) or incoming (assistant) narrative line."""

    role: Literal["user", "assistant"]
    text: str


class ContextSnapshot(BaseModel):
    """Restorable copy of conversation state taken on combat entry."""

    captured_messages: list[Message]
    message_count: int
    world_info_enabled: bool
    captured_at: datetime = Field(default_factory=utcnow)
    consumed: bool = False


class ModelRequest(BaseModel):
    """Payload about to leave the process for the language model."""

    mode: ModeState
    messages: list[Message]
    max_tokens: int
    temperature: float = 0.7


# ---------------------------------------------------------------------------
# Combat
# ---------------------------------------------------------------------------

class HitPoints(BaseModel):
    current: int
    max: int


class Participant(BaseModel):
    """A combatant. Stats come from the combatant lookup or defaults."""

    id: str
    name: str
    role: ParticipantRole
    hp: HitPoints = Field(default_factory=lambda: HitPoints(current=10, max=10))
    ac: int = 10
    level: int = 1
    conditions: set[str] = Field(default_factory=set)
    is_player: bool = False

    @property
    def defeated(self) -> bool:
        return self.hp.current <= 0


class CombatSession(BaseModel):
    """Live combat state; exists only between combat entry and exit."""

    id: str
    started_at: datetime = Field(default_factory=utcnow)
    participants: list[Participant]
    round: int = Field(default=1, ge=1)
    terrain: str | None = None
    token_budget: int = 4000

    def participant(self, participant_id: str) -> Participant | None:
        for p in self.participants:
            if p.id == participant_id:
                return p
        return None

    def enemies(self) -> list[Participant]:
        return [p for p in self.participants if not p.is_player]

    def player(self) -> Participant | None:
        for p in self.participants:
            if p.is_player:
                return p
        return None

    def enemies_down(self) -> bool:
        """True when every non-player participant is at or below 0 HP."""
        enemies = self.enemies()
        return bool(enemies) and all(p.defeated for p in enemies)


# ---------------------------------------------------------------------------
# Tasks: detail payloads are a tagged union keyed by task type
# ---------------------------------------------------------------------------

class CombatDetail(BaseModel):
    kind: Literal["combat"] = "combat"
    enemy: str = "enemy"
    enemy_level: int = 1

    @property
    def subject(self) -> str:
        return self.enemy


class CraftingDetail(BaseModel):
    kind: Literal["crafting"] = "crafting"
    item_type: str = ""
    material: str = ""
    skill: str = "crafting"
    item_level: int = 1

    @property
    def subject(self) -> str:
        return self.item_type or self.skill


class TrainingDetail(BaseModel):
    kind: Literal["training"] = "training"
    skill: str = "training"
    duration_hours: float = 1.0

    @property
    def subject(self) -> str:
        return self.skill


class SocialDetail(BaseModel):
    kind: Literal["social"] = "social"
    skill: str = "persuasion"
    target: str = ""

    @property
    def subject(self) -> str:
        return self.target or self.skill


class ExplorationDetail(BaseModel):
    kind: Literal["exploration"] = "exploration"
    area: str = ""

    @property
    def subject(self) -> str:
        return self.area


class MagicDetail(BaseModel):
    kind: Literal["magic"] = "magic"
    spell: str = ""
    school: str = "magic"
    spell_level: int = 2

    @property
    def subject(self) -> str:
        return self.spell or self.school


TaskDetail = Annotated[
    Union[
        CombatDetail,
        CraftingDetail,
        TrainingDetail,
        SocialDetail,
        ExplorationDetail,
        MagicDetail,
    ],
    Field(discriminator="kind"),
]


class Task(BaseModel):
    """A tracked multi-turn activity. Never reopened after a terminal status."""

    id: str
    type: TaskType
    character_id: str
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: datetime | None = None
    status: TaskStatus = "pending"
    detail: TaskDetail
    quality: float | None = None
    attempts: int = 1

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, status: TaskStatus) -> None:
        """Move to a new status, enforcing pending→in_progress→terminal."""
        if status not in _TRANSITIONS[self.status]:
            raise TaskStateError(
                f"Task {self.id} cannot move from {self.status} to {status}"
            )
        self.status = status
        if status in TERMINAL_STATUSES:
            self.ended_at = utcnow()

    def elapsed_minutes(self, now: datetime | None = None) -> float:
        end = self.ended_at or now or utcnow()
        return (end - self.started_at).total_seconds() / 60


# ---------------------------------------------------------------------------
# Rewards: tagged union keyed by reason
# ---------------------------------------------------------------------------

class _RewardBase(BaseModel):
    target_character_id: str
    stat_deltas: dict[str, float] = Field(default_factory=dict)
    skill_deltas: dict[str, float] = Field(default_factory=dict)
    note: str = ""


class TaskReward(_RewardBase):
    """Reward for a completed Task."""

    reason: Literal["task_completed"] = "task_completed"
    task_id: str
    task_type: TaskType
    quality: float
    detail: TaskDetail


class CombatReward(_RewardBase):
    """Reward for a combat session that ended with defeated enemies."""

    reason: Literal["combat_victory"] = "combat_victory"
    session_id: str
    rounds: int
    defeated: list[str] = Field(default_factory=list)


RewardCommand = Annotated[
    Union[TaskReward, CombatReward],
    Field(discriminator="reason"),
]


# ---------------------------------------------------------------------------
# Engine outcome
# ---------------------------------------------------------------------------

class EngineOutcome(BaseModel):
    """Everything one engine call changed."""

    mode: ModeState
    mode_change: Literal["entered", "exited"] | None = None
    session: CombatSession | None = None
    summary: str | None = None
    action: str | None = None
    started: list[Task] = Field(default_factory=list)
    completed: list[Task] = Field(default_factory=list)
    failed: list[Task] = Field(default_factory=list)
    cancelled: list[Task] = Field(default_factory=list)
    rewards: list[RewardCommand] = Field(default_factory=list)
