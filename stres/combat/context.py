"""Lightweight combat context: the reduced replacement for the narrative context.

build_combat_context() is pure: the same session, history and settings give
the same context. The context holds:
  system_prompt  fixed combat rules + round + roster (Handlebars template)
  roster         "name: current/max HP (conditions)" in first-appearance order
  history        last k narrative lines, each truncated to a character cap
  tools          attack, cast, defend, move, use_item
  budgets        prompt ≈4000 tokens, reply ≈150 tokens

Tokens are estimated at four characters per token. When the prompt is over
budget the oldest history lines are dropped first.
"""

import math

from pydantic import BaseModel

from stres.config import CombatSettings
from stres.models import CombatSession, Message, ModelRequest, Participant
from stres.prompts import COMBAT_SYSTEM_TEMPLATE, render_prompt

CHARS_PER_TOKEN = 4


class ToolSpec(BaseModel):
    name: str
    description: str
    parameters: dict[str, str]


COMBAT_TOOLS: list[ToolSpec] = [
    ToolSpec(
        name="attack",
        description="Roll attack (d20 + modifier vs AC) and damage",
        parameters={"attacker": "string", "target": "string", "weapon": "string", "advantage": "boolean"},
    ),
    ToolSpec(
        name="cast",
        description="Cast a spell in combat, paying its MP cost",
        parameters={"caster": "string", "spell": "string", "targets": "array"},
    ),
    ToolSpec(
        name="defend",
        description="Take the defend action: +2 AC until next turn",
        parameters={"combatant": "string"},
    ),
    ToolSpec(
        name="move",
        description="Move up to 30ft",
        parameters={"combatant": "string", "distance_ft": "number"},
    ),
    ToolSpec(
        name="use_item",
        description="Consume or throw an item from inventory",
        parameters={"combatant": "string", "item": "string", "target": "string"},
    ),
]


class CombatContext(BaseModel):
    system_prompt: str
    roster: list[str]
    history: list[Message]
    tools: list[ToolSpec]
    prompt_token_budget: int
    reply_token_budget: int
    temperature: float

    def to_request(self, user_turn: str) -> ModelRequest:
        """Lightweight context plus the genuinely new user turn."""
        messages = [Message(role="system", text=self.system_prompt, kind="combat_system")]
        messages.extend(self.history)
        messages.append(Message(role="user", text=user_turn))
        return ModelRequest(
            mode="combat",
            messages=messages,
            max_tokens=self.reply_token_budget,
            temperature=self.temperature,
        )


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def status_line(participant: Participant) -> str:
    line = f"{participant.name}: {participant.hp.current}/{participant.hp.max} HP"
    if participant.conditions:
        line += f" ({', '.join(sorted(participant.conditions))})"
    return line


def recent_history(messages: list[Message], count: int, char_cap: int) -> list[Message]:
    """Last `count` narrative user/assistant lines, truncated to `char_cap` characters."""
    if count <= 0:
        return []
    narrative = [
        m for m in messages
        if m.kind == "narrative" and m.role in ("user", "assistant")
    ]
    return [
        Message(role=m.role, text=m.text[:char_cap])
        for m in narrative[-count:]
    ]


def build_combat_context(
    session: CombatSession,
    history: list[Message],
    settings: CombatSettings,
) -> CombatContext:
    roster = [status_line(p) for p in session.participants]
    system_prompt = render_prompt(COMBAT_SYSTEM_TEMPLATE, {
        "min_words": 50,
        "max_words": 100,
        "actions": [t.name for t in COMBAT_TOOLS],
        "round": session.round,
        "terrain": session.terrain,
        "roster": roster,
    })

    budget = min(settings.prompt_token_budget, session.token_budget)
    recent = recent_history(history, settings.history_lines, settings.line_char_cap)
    while recent and estimate_tokens(
        system_prompt + "".join(m.text for m in recent)
    ) > budget:
        recent.pop(0)

    return CombatContext(
        system_prompt=system_prompt,
        roster=roster,
        history=recent,
        tools=list(COMBAT_TOOLS),
        prompt_token_budget=budget,
        reply_token_budget=settings.reply_token_budget,
        temperature=settings.temperature,
    )
