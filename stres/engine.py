"""Engine: one narrative conversation with its mode controller and task ledger.

An Engine owns the conversation, the snapshot store (through the mode
controller), the combat session and the task map. Nothing is module-global;
callers hold the Engine and pass it around.

Per narrative line (handle()):
  1. append the line to the conversation
  2. mode controller: combat start in narrative, combat end in combat
  3. on combat entry, in-progress combat tasks are superseded
  4. task ledger: end pass then start pass. Combat task patterns are skipped
     while combat is active or when the line itself switched modes, so one
     fight never rewards twice.
  5. in combat, user lines are classified into a combat action

Rewards are collected on the returned EngineOutcome; deliver() hands them to
the stats sink after the state change is complete.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from stres.combat.bestiary import Bestiary, CharacterLookup
from stres.combat.controller import ModeController, ModeTransition
from stres.config import combat_settings, get_config, narrative_settings
from stres.llm import LLM
from stres.models import (
    Conversation,
    EngineOutcome,
    Message,
    ModelRequest,
    NarrativeEvent,
    Task,
    TaskType,
)
from stres.sinks import StatsSink, dispatch_rewards
from stres.tasks.ledger import TaskLedger
from stres.triggers import classify_action

logger = logging.getLogger(__name__)


class Exchange(BaseModel):
    """One user turn sent through the model and the reply fed back."""

    request: ModelRequest
    reply: str
    user: EngineOutcome
    assistant: EngineOutcome
    sink_errors: list[str] = Field(default_factory=list)


class Engine:
    def __init__(
        self,
        character_id: str | None = None,
        config: dict[str, Any] | None = None,
        lookup: CharacterLookup | None = None,
        conversation: Conversation | None = None,
        sink: StatsSink | None = None,
    ) -> None:
        self.config = config if config is not None else get_config()
        player = self.config.get("player", {})
        self.character_id = character_id or player.get("character_id", "player")
        self.conversation = conversation if conversation is not None else Conversation()
        self.lookup = lookup or Bestiary()
        self.sink = sink
        self.narrative = narrative_settings(self.config)
        self.controller = ModeController(
            self.conversation,
            combat_settings(self.config),
            self.lookup,
            character_id=self.character_id,
            player_names=player.get("names", []),
        )
        self.ledger = TaskLedger(self.character_id, self.lookup)

    @property
    def mode(self) -> str:
        return self.controller.mode

    # ── Narrative events ──────────────────────────────────

    def handle(self, event: NarrativeEvent) -> EngineOutcome:
        """Process one narrative line in arrival order."""
        _, outcome = self._ingest(event)
        return outcome

    def _ingest(self, event: NarrativeEvent) -> tuple[Message, EngineOutcome]:
        message = Message(role=event.role, text=event.text)
        self.conversation.messages.append(message)
        logger.debug("%s line: %.80s", event.role, event.text)

        transition = self.controller.observe(event.text)
        outcome = self._outcome(transition)

        exclude: tuple[TaskType, ...] = ()
        if transition is not None or self.controller.mode == "combat":
            exclude = ("combat",)
        if transition is not None and transition.change == "entered":
            outcome.cancelled.extend(self.ledger.supersede("combat"))

        update = self.ledger.observe(event.text, exclude)
        outcome.started.extend(update.started)
        outcome.completed.extend(update.completed)
        outcome.failed.extend(update.failed)
        outcome.rewards.extend(update.rewards)

        if event.role == "user" and self.controller.mode == "combat":
            outcome.action = classify_action(event.text)
        return message, outcome

    def _outcome(self, transition: ModeTransition | None) -> EngineOutcome:
        outcome = EngineOutcome(mode=self.controller.mode, session=self.controller.session)
        if transition is None:
            return outcome
        outcome.mode_change = transition.change
        outcome.session = transition.session
        outcome.summary = transition.summary
        if transition.reward is not None:
            outcome.rewards.append(transition.reward)
        return outcome

    # ── External commands ─────────────────────────────────

    def end_combat(self, reason: str = "fled") -> EngineOutcome:
        """Manual end (flee, surrender). Same exit path as a detected end."""
        return self._outcome(self.controller.exit(outcome=reason))

    def update_participant(
        self,
        participant_id: str,
        hp: int | None = None,
        conditions: set[str] | None = None,
    ) -> EngineOutcome:
        return self._outcome(self.controller.update_participant(participant_id, hp, conditions))

    def advance_round(self) -> EngineOutcome:
        return self._outcome(self.controller.advance_round())

    def cancel_task(self, task_id: str) -> Task:
        return self.ledger.cancel(task_id)

    def clear_tasks(self) -> list[Task]:
        """Cancel every in-progress task."""
        return self.ledger.clear()

    def status(self) -> dict[str, Any]:
        session = self.controller.session
        return {
            "character_id": self.character_id,
            "mode": self.controller.mode,
            "session": session.model_dump(mode="json") if session else None,
            "messages": len(self.conversation.messages),
            "world_info_enabled": self.conversation.world_info_enabled,
            "active_tasks": self.active_tasks(),
        }

    def active_tasks(self) -> list[dict[str, Any]]:
        elapsed = self.ledger.elapsed()
        return [
            {**t.model_dump(mode="json"), "elapsed_minutes": elapsed[t.id]}
            for t in self.ledger.active()
        ]

    # ── Outbound model requests ───────────────────────────

    def prepare_request(self, user_turn: str) -> ModelRequest:
        """Request for the next model call with the mode-appropriate payload."""
        return self.controller.outbound(user_turn, self.narrative)

    async def deliver(self, outcome: EngineOutcome) -> list[str]:
        return await dispatch_rewards(self.sink, outcome.rewards)

    async def send(self, llm: LLM, text: str, combat_llm: LLM | None = None) -> Exchange:
        """Handle a user turn, call the model, then handle its reply.

        combat_llm, when given, answers turns that go out in combat mode.
        The user turn's rewards are delivered before the model is called,
        so a failing model call raises LLMError without losing them.
        """
        message, user = self._ingest(NarrativeEvent(role="user", text=text))
        sink_errors = await self.deliver(user)
        history = [m for m in self.conversation.messages if m is not message]
        request = self.controller.outbound(text, self.narrative, history=history)

        client = combat_llm if request.mode == "combat" and combat_llm is not None else llm
        reply = await client(request)
        assistant = self.handle(NarrativeEvent(role="assistant", text=reply))

        sink_errors += await self.deliver(assistant)
        return Exchange(
            request=request,
            reply=reply,
            user=user,
            assistant=assistant,
            sink_errors=sink_errors,
        )
