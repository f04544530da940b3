"""Tests for the Narrative ↔ Combat mode controller."""

import pytest

from stres.combat.bestiary import Bestiary, CombatantStats
from stres.combat.controller import ModeController, combat_summary
from stres.config import CombatSettings, NarrativeSettings
from stres.models import Conversation, Message


def _conversation() -> Conversation:
    return Conversation(messages=[
        Message(role="assistant", text="The road winds into the forest."),
        Message(role="user", text="I keep walking."),
    ])


@pytest.fixture
def conv() -> Conversation:
    return _conversation()


@pytest.fixture
def controller(conv) -> ModeController:
    return ModeController(conv, CombatSettings(), Bestiary())


# ── Entry ────────────────────────────────────────────────────


def test_enter_from_trigger(controller, conv):
    transition = controller.observe("The goblin attacks you!")
    assert transition.change == "entered"
    assert controller.mode == "combat"
    assert controller.rewriting is True

    session = controller.session
    assert session.id == "combat-1"
    assert [(p.name, p.role) for p in session.participants] == [("goblin", "attacker"), ("you", "defender")]
    goblin, you = session.participants
    assert (goblin.level, goblin.hp.max, goblin.ac) == (1, 7, 13)
    assert you.is_player and (you.hp.current, you.hp.max, you.ac) == (10, 10, 10)

    assert controller.snapshots.pending.message_count == 2
    assert conv.world_info_enabled is False
    assert conv.messages[-1].kind == "combat_system"


def test_unknown_name_gets_defaults(controller):
    controller.observe("The stranger attacks you!")
    stranger = controller.session.participant("stranger")
    assert (stranger.level, stranger.hp.current, stranger.ac) == (1, 10, 10)


def test_generic_enemy_without_captures(controller):
    controller.observe("Roll for initiative!")
    assert [(p.id, p.role) for p in controller.session.participants] == [("enemy", "enemy")]


def test_player_stats_used_for_player(conv):
    controller = ModeController(
        conv, CombatSettings(), Bestiary(),
        player_stats=CombatantStats(level=4, hp=32, ac=15),
    )
    controller.observe("The wolf attacks you")
    you = controller.session.participant("you")
    assert you.hp.max == 32 and you.level == 4


def test_configured_player_name(conv):
    controller = ModeController(conv, CombatSettings(), Bestiary(), player_names=["Aria"])
    controller.observe("The bandit attacks Aria")
    assert controller.session.participant("aria").is_player


def test_duplicate_names_get_distinct_ids(controller):
    controller.observe("The goblin attacks the goblin")
    assert [p.id for p in controller.session.participants] == ["goblin", "goblin-2"]


def test_entry_is_idempotent(controller, conv):
    controller.observe("The goblin attacks you!")
    snapshot = controller.snapshots.pending
    assert controller.enter() is None
    assert controller.observe("The orc charges at you!") is None
    assert controller.session.id == "combat-1"
    assert controller.snapshots.pending is snapshot
    assert sum(1 for m in conv.messages if m.kind == "combat_system") == 1


def test_disabled_combat(conv):
    controller = ModeController(conv, CombatSettings(enabled=False), Bestiary())
    assert controller.observe("The goblin attacks you!") is None
    assert controller.mode == "narrative"


def test_world_info_kept_when_configured(conv):
    controller = ModeController(conv, CombatSettings(disable_world_info=False), Bestiary())
    controller.observe("The goblin attacks you!")
    assert conv.world_info_enabled is True


def test_failed_entry_releases_everything(controller, conv, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("template broke")

    monkeypatch.setattr("stres.combat.controller.build_combat_context", boom)
    with pytest.raises(RuntimeError):
        controller.observe("The goblin attacks you!")
    assert controller.mode == "narrative"
    assert controller.rewriting is False
    assert conv.world_info_enabled is True
    assert len(conv.messages) == 2
    assert controller.snapshots.pending is None


# ── Exit ─────────────────────────────────────────────────────


def test_exit_on_defeat(controller, conv):
    controller.observe("The goblin attacks you!")
    conv.messages.append(Message(role="user", text="I swing at it."))
    transition = controller.observe("The goblin is defeated!")

    assert transition.change == "exited"
    assert transition.reward.stat_deltas == {"xp": 50}
    assert transition.summary == "[Combat Summary: 1 rounds, defeated goblin. Player HP: 10/10]"
    assert controller.mode == "narrative"
    assert controller.rewriting is False
    assert conv.world_info_enabled is True
    assert len(conv.messages) == 3
    assert conv.messages[-1].kind == "combat_summary"


def test_all_enemies_defeated(controller):
    controller.observe("The goblin attacks the orc")
    transition = controller.observe("All enemies are defeated")
    assert transition.reward.stat_deltas == {"xp": 200}
    assert transition.reward.defeated == ["goblin", "orc"]


def test_player_defeat(controller, conv):
    controller.observe("The goblin attacks you!")
    transition = controller.observe("You are defeated.")

    assert transition.outcome == "defeat"
    assert transition.reward is None
    assert transition.summary == "[Combat Summary: 1 rounds, defeated none. Player HP: 0/10]"
    assert controller.mode == "narrative"


def test_end_without_combat_is_noop(controller, conv):
    assert controller.observe("The goblin is defeated!") is None
    assert controller.exit() is None
    assert len(conv.messages) == 2


def test_manual_exit_restores_once(controller, conv):
    controller.observe("The goblin attacks you!")
    transition = controller.exit(outcome="fled")
    assert transition.outcome == "fled"
    assert transition.reward is None
    assert "defeated none" in transition.summary
    assert len(conv.messages) == 3

    assert controller.exit(outcome="fled") is None
    assert controller.observe("Victory!") is None
    assert len(conv.messages) == 3


def test_second_combat_gets_new_session(controller):
    controller.observe("The goblin attacks you!")
    controller.exit()
    controller.observe("The wolf attacks you!")
    assert controller.session.id == "combat-2"


# ── Participant updates ──────────────────────────────────────


def test_update_participant(controller):
    controller.observe("The orc attacks you!")
    assert controller.update_participant("orc", hp=5, conditions={"prone"}) is None
    orc = controller.session.participant("orc")
    assert orc.hp.current == 5
    assert orc.conditions == {"prone"}


def test_hp_capped_at_max(controller):
    controller.observe("The goblin attacks you!")
    controller.update_participant("goblin", hp=99)
    assert controller.session.participant("goblin").hp.current == 7


def test_all_enemies_down_ends_combat(controller):
    controller.observe("The orc attacks you!")
    transition = controller.update_participant("orc", hp=0)
    assert transition.change == "exited"
    assert transition.outcome == "victory"
    assert transition.reward.stat_deltas == {"xp": 150}
    assert controller.mode == "narrative"


def test_unknown_participant(controller):
    controller.observe("The orc attacks you!")
    with pytest.raises(KeyError):
        controller.update_participant("dragon", hp=0)


def test_advance_round(controller):
    controller.observe("The orc attacks you!")
    controller.advance_round()
    controller.advance_round()
    assert controller.session.round == 3
    transition = controller.update_participant("orc", hp=0)
    assert transition.summary.startswith("[Combat Summary: 3 rounds")


def test_updates_outside_combat(controller):
    assert controller.update_participant("orc", hp=0) is None
    assert controller.advance_round() is None


# ── Outbound rewriting ───────────────────────────────────────


def test_outbound_in_narrative(controller, conv):
    request = controller.outbound("I look around", NarrativeSettings())
    assert request.mode == "narrative"
    assert request.max_tokens == 512
    assert len(request.messages) == 3
    assert request.messages[-1].text == "I look around"


def test_outbound_in_combat(controller):
    controller.observe("The goblin attacks you!")
    request = controller.outbound("I parry", NarrativeSettings())
    assert request.mode == "combat"
    assert request.max_tokens == 150
    assert request.messages[0].kind == "combat_system"
    assert request.messages[-1].text == "I parry"
    assert all(m.kind != "combat_system" for m in request.messages[1:])


def test_outbound_reverts_after_exit(controller):
    controller.observe("The goblin attacks you!")
    controller.exit()
    request = controller.outbound("I catch my breath", NarrativeSettings())
    assert request.mode == "narrative"


def test_combat_summary_without_player(controller):
    controller.observe("The goblin attacks the orc")
    assert combat_summary(controller.session).endswith("Player HP: unknown]")
