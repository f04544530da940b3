"""Handlebars prompt rendering for the combat system prompt and outbound requests."""

from collections.abc import Callable
from typing import Any

import pybars

from stres.models import ModelRequest

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_join(this, items, separator=", "):
    """{{{join array ", "}}}: join plain strings."""
    return separator.join(str(i) for i in items)


_HELPERS: dict[str, Callable] = {
    "join": _helper_join,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


COMBAT_SYSTEM_TEMPLATE = """[COMBAT MODE ACTIVE]
You are managing tactical combat. Be concise and action-focused.

COMBAT RULES:
- Each turn: Movement → Action → Bonus Action → Reactions
- Always roll dice for attacks and damage
- Track HP, conditions, and positions
- Responses should be {{min_words}}-{{max_words}} words max

AVAILABLE ACTIONS: {{{join actions ", "}}}

Round {{round}}{{#if terrain}}, terrain: {{{terrain}}}{{/if}}
COMBATANTS:
{{#each roster}}- {{{this}}}
{{/each}}"""


def render_request(request: ModelRequest) -> str:
    """Flatten a ModelRequest into a text-completion prompt.

    System messages are emitted bare, user turns prefixed with "> " and
    assistant turns bare, separated by blank lines.
    """
    parts: list[str] = []
    for msg in request.messages:
        if msg.role == "user":
            parts.append(f"> {msg.text}")
        else:
            parts.append(msg.text)
    return "\n\n".join(parts)
