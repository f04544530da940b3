"""Tests for Handlebars prompt rendering: helpers, the combat system template,
request flattening and error handling."""

import pytest

from stres.models import Message, ModelRequest
from stres.prompts import COMBAT_SYSTEM_TEMPLATE, PromptError, render_prompt, render_request


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_missing_variable():
    assert render_prompt("Hello {{name}}!", {}) == "Hello !"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


def test_join_helper():
    assert render_prompt('{{{join items ", "}}}', {"items": ["attack", "defend"]}) == "attack, defend"


def test_combat_template():
    text = render_prompt(COMBAT_SYSTEM_TEMPLATE, {
        "min_words": 50,
        "max_words": 100,
        "actions": ["attack", "cast"],
        "round": 2,
        "terrain": "muddy ford",
        "roster": ["Grak's wolf: 11/11 HP", "you: 10/10 HP"],
    })
    assert text.startswith("[COMBAT MODE ACTIVE]")
    assert "50-100 words" in text
    assert "AVAILABLE ACTIONS: attack, cast" in text
    assert "Round 2, terrain: muddy ford" in text
    assert "- Grak's wolf: 11/11 HP\n" in text
    assert "- you: 10/10 HP\n" in text


def test_combat_template_without_terrain():
    text = render_prompt(COMBAT_SYSTEM_TEMPLATE, {"round": 1, "roster": [], "actions": []})
    assert "Round 1\n" in text
    assert "terrain" not in text


def test_render_request():
    request = ModelRequest(mode="narrative", max_tokens=512, messages=[
        Message(role="system", text="[rules]"),
        Message(role="assistant", text="The tavern is quiet."),
        Message(role="user", text="I order an ale."),
    ])
    assert render_request(request) == "[rules]\n\nThe tavern is quiet.\n\n> I order an ale."
