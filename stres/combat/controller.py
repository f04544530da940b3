"""Mode controller: the Narrative ↔ Combat state machine.

States: narrative (initial) and combat. Exactly one CombatSession may be
active per conversation.

  narrative --combat start--> combat
      capture snapshot, build participants from trigger captures (generic
      "enemy" if none), disable world info if configured, append the
      combat_system message, acquire outbound rewriting.
      A start while combat is active is ignored.

  combat --combat end / flee / all enemies down--> narrative
      mark defeated participants, compute reward + summary, then in a
      finally block restore the snapshot and release rewriting. The summary
      is appended as a combat_summary message after the restore.
      An end while no combat is active is ignored.

The snapshot restore and the rewriting release are registered on an
ExitStack when combat is entered and closed on every exit path.
"""

from __future__ import annotations

import itertools
import logging
from contextlib import ExitStack
from typing import Literal

from pydantic import BaseModel

from stres.combat.bestiary import (
    DEFAULT_STATS,
    CharacterLookup,
    CombatantStats,
    is_player_name,
)
from stres.combat.context import CombatContext, build_combat_context
from stres.config import CombatSettings, NarrativeSettings
from stres.models import (
    CombatReward,
    CombatSession,
    Conversation,
    HitPoints,
    Message,
    ModelRequest,
    ModeState,
    Participant,
)
from stres.rewards import reward_for_combat
from stres.snapshot import SnapshotStore
from stres.triggers import COMBAT_END, COMBAT_START, TriggerMatch, match_line

logger = logging.getLogger(__name__)


class ModeTransition(BaseModel):
    change: Literal["entered", "exited"]
    session: CombatSession
    outcome: str = ""
    summary: str | None = None
    reward: CombatReward | None = None


def combat_summary(session: CombatSession) -> str:
    defeated = [p.name for p in session.enemies() if p.defeated]
    player = session.player()
    player_hp = f"{player.hp.current}/{player.hp.max}" if player else "unknown"
    return (
        f"[Combat Summary: {session.round} rounds, "
        f"defeated {', '.join(defeated) if defeated else 'none'}. "
        f"Player HP: {player_hp}]"
    )


class ModeController:
    def __init__(
        self,
        conversation: Conversation,
        settings: CombatSettings,
        lookup: CharacterLookup,
        character_id: str = "player",
        player_names: list[str] | None = None,
        player_stats: CombatantStats | None = None,
    ) -> None:
        self._conversation = conversation
        self._settings = settings
        self._lookup = lookup
        self._character_id = character_id
        self._player_names = list(player_names or [])
        self._player_stats = player_stats or DEFAULT_STATS
        self._snapshots = SnapshotStore(conversation)
        self._session: CombatSession | None = None
        self._scope: ExitStack | None = None
        self._rewriting = False
        self._ids = itertools.count(1)

    @property
    def mode(self) -> ModeState:
        return "combat" if self._session is not None else "narrative"

    @property
    def session(self) -> CombatSession | None:
        return self._session

    @property
    def snapshots(self) -> SnapshotStore:
        return self._snapshots

    @property
    def rewriting(self) -> bool:
        return self._rewriting

    # ── Detection ─────────────────────────────────────────

    def observe(self, text: str) -> ModeTransition | None:
        """Feed one narrative line; return the transition it caused, if any."""
        if self._session is None:
            found = match_line(text, COMBAT_START)
            if found:
                return self.enter(found, text)
            return None
        found = match_line(text, COMBAT_END)
        if not found:
            return None
        outcome = found.captures.get("outcome", "ended")
        defeated = found.captures.get("defeated")
        if defeated and defeated != "*" and is_player_name(defeated, self._player_names):
            outcome = "defeat"
        return self.exit(outcome=outcome, defeated=defeated)

    # ── Transitions ───────────────────────────────────────

    def enter(
        self,
        trigger: TriggerMatch | None = None,
        text: str = "",
        terrain: str | None = None,
    ) -> ModeTransition | None:
        if not self._settings.enabled:
            return None
        if self._session is not None:
            logger.debug("Combat start ignored: session %s already active", self._session.id)
            return None

        snapshot = self._snapshots.capture()
        scope = ExitStack()
        scope.callback(self._release_rewriting)
        scope.callback(self._snapshots.restore, snapshot)
        try:
            session = CombatSession(
                id=f"combat-{next(self._ids)}",
                participants=self._participants(trigger.captures if trigger else {}),
                terrain=terrain,
                token_budget=self._settings.prompt_token_budget,
            )
            self._session = session
            self._scope = scope
            if self._settings.disable_world_info:
                self._conversation.world_info_enabled = False
            self._conversation.messages.append(Message(
                role="system",
                text=self.context().system_prompt,
                kind="combat_system",
            ))
            self._rewriting = True
        except Exception:
            self._session = None
            self._scope = None
            scope.close()
            raise

        logger.info(
            "Combat %s started: %s",
            session.id, ", ".join(p.name for p in session.participants),
        )
        return ModeTransition(change="entered", session=session, outcome=text)

    def exit(self, outcome: str = "ended", defeated: str | None = None) -> ModeTransition | None:
        session = self._session
        if session is None:
            logger.debug("Combat end ignored: no active session")
            return None

        scope = self._scope
        try:
            self._mark_defeated(session, defeated)
            reward = reward_for_combat(session, self._character_id)
            summary = combat_summary(session)
        finally:
            self._session = None
            self._scope = None
            if scope is not None:
                scope.close()

        self._conversation.messages.append(
            Message(role="system", text=summary, kind="combat_summary")
        )
        logger.info("Combat %s ended (%s): %s", session.id, outcome, summary)
        return ModeTransition(
            change="exited",
            session=session,
            outcome=outcome,
            summary=summary,
            reward=reward,
        )

    # ── Per-round updates ─────────────────────────────────

    def update_participant(
        self,
        participant_id: str,
        hp: int | None = None,
        conditions: set[str] | None = None,
    ) -> ModeTransition | None:
        """Apply an HP/condition update; ends combat if every enemy is down.

        Raises KeyError for an unknown participant.
        """
        if self._session is None:
            return None
        participant = self._session.participant(participant_id)
        if participant is None:
            raise KeyError(participant_id)
        if hp is not None:
            participant.hp.current = min(hp, participant.hp.max)
        if conditions is not None:
            participant.conditions = set(conditions)
        return self._check_enemies_down()

    def advance_round(self) -> ModeTransition | None:
        if self._session is None:
            return None
        self._session.round += 1
        return self._check_enemies_down()

    def _check_enemies_down(self) -> ModeTransition | None:
        if self._session is not None and self._session.enemies_down():
            return self.exit(outcome="victory")
        return None

    # ── Outbound requests ─────────────────────────────────

    def context(self) -> CombatContext | None:
        if self._session is None:
            return None
        return build_combat_context(self._session, self._conversation.messages, self._settings)

    def outbound(
        self,
        user_turn: str,
        narrative: NarrativeSettings,
        history: list[Message] | None = None,
    ) -> ModelRequest:
        """Build the request for the next model call.

        In combat the payload is the lightweight context plus the new user
        turn; otherwise the full conversation plus the new user turn.
        """
        history = self._conversation.messages if history is None else history
        if self._rewriting and self._session is not None:
            context = build_combat_context(self._session, history, self._settings)
            return context.to_request(user_turn)
        messages = list(history)
        messages.append(Message(role="user", text=user_turn))
        return ModelRequest(
            mode="narrative",
            messages=messages,
            max_tokens=narrative.reply_token_budget,
            temperature=narrative.temperature,
        )

    # ── Helpers ───────────────────────────────────────────

    def _release_rewriting(self) -> None:
        self._rewriting = False

    def _participants(self, captures: dict[str, str]) -> list[Participant]:
        named = [
            (captures[role], role)
            for role in ("attacker", "defender")
            if captures.get(role)
        ]
        if not named:
            named = [("enemy", "enemy")]

        participants: list[Participant] = []
        seen: set[str] = set()
        for name, role in named:
            pid = name.lower()
            suffix = 2
            while pid in seen:
                pid = f"{name.lower()}-{suffix}"
                suffix += 1
            seen.add(pid)

            player = is_player_name(name, self._player_names)
            stats = self._lookup.resolve(name)
            if stats is None:
                stats = self._player_stats if player else DEFAULT_STATS
            participants.append(Participant(
                id=pid,
                name=name,
                role=role,
                hp=HitPoints(current=stats.hp, max=stats.hp),
                ac=stats.ac,
                level=stats.level,
                is_player=player,
            ))
        return participants

    def _mark_defeated(self, session: CombatSession, defeated: str | None) -> None:
        if not defeated:
            return
        for p in session.participants:
            if defeated == "*":
                if not p.is_player:
                    p.hp.current = min(p.hp.current, 0)
            elif p.name.lower() == defeated.lower() or p.id == defeated.lower():
                p.hp.current = min(p.hp.current, 0)
