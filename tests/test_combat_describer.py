"""Tests for combat wave aggregation, individual mode and the quick reads."""

import pytest

from models.events import EffectKind, Side
from models.game import HeroStats, OpponentInfo
from narration.combat_describer import CombatDescriber, WaveData, format_effect, format_wave_side


class _Recorder:
    def __init__(self):
        self.spoken = []
        self.alerts = []

    def speak(self, text):
        self.spoken.append(text)

    def alert(self, text):
        self.alerts.append(text)


@pytest.fixture
def recorder():
    return _Recorder()


@pytest.fixture
def describer(scheduler, recorder):
    combat = CombatDescriber(
        scheduler,
        speak=recorder.speak,
        alert=recorder.alert,
        batched=True,
        wave_timeout=1.5,
        health_report_delay=2.0,
        health_report_interval=5.0,
    )
    combat.start("Boss")
    return combat


def test_effects_within_window_form_one_summary(scheduler, recorder, describer):
    for amount, item in [(10, "Sword"), (10, "Sword"), (5, "Axe"), (10, "Sword"), (5, "Axe")]:
        describer.handle_effect(Side.PLAYER, EffectKind.DAMAGE, amount, item_name=item)
        scheduler.advance(0.2)
    assert recorder.spoken == []

    scheduler.advance(1.5)
    assert recorder.spoken == ["You: 40 damage (Sword)"]


def test_effect_after_timeout_starts_new_wave(scheduler, recorder, describer):
    describer.handle_effect(Side.PLAYER, EffectKind.DAMAGE, 10, item_name="Sword")
    scheduler.advance(1.6)
    describer.handle_effect(Side.PLAYER, EffectKind.HEAL, 5, item_name="Potion")
    scheduler.advance(1.6)
    assert recorder.spoken == ["You: 10 damage (Sword)", "You: 5 heal"]


def test_wave_speaks_one_line_per_side(scheduler, recorder, describer):
    describer.handle_effect(Side.OPPONENT, EffectKind.DAMAGE, 12, is_crit=True, item_name="Claw")
    describer.handle_effect(Side.OPPONENT, EffectKind.BURN, 3)
    describer.handle_effect(Side.OPPONENT, EffectKind.POISON, 2)
    describer.handle_effect(Side.PLAYER, EffectKind.SHIELD, 8, item_name="Buckler")
    scheduler.advance(2.0)
    assert recorder.spoken == [
        "You: 8 shield",
        "Boss: 12 damage (Claw), burn, poison, critical",
    ]


def test_unnarrated_kinds_are_ignored(scheduler, recorder, describer):
    describer.handle_effect(Side.PLAYER, EffectKind.HASTE, 1)
    describer.handle_effect(Side.PLAYER, EffectKind.CHARGE, 1)
    scheduler.advance(2.0)
    assert recorder.spoken == []


def test_opponent_freeze_is_an_immediate_alert(scheduler, recorder, describer):
    describer.handle_effect(Side.OPPONENT, EffectKind.FREEZE, 1, item_name="Ice")
    assert recorder.alerts == ["Frozen!"]
    scheduler.advance(2.0)
    assert recorder.spoken == []


def test_player_freeze_stays_in_the_wave(scheduler, recorder, describer):
    describer.handle_effect(Side.PLAYER, EffectKind.FREEZE, 1, item_name="Ice")
    scheduler.advance(2.0)
    assert recorder.alerts == []
    assert recorder.spoken == ["You: freeze"]


def test_switch_to_individual_flushes_wave_first(scheduler, recorder, describer):
    describer.handle_effect(Side.PLAYER, EffectKind.DAMAGE, 10, item_name="Sword")
    message = describer.toggle_mode()
    describer.handle_effect(Side.PLAYER, EffectKind.DAMAGE, 5, item_name="Sword")

    assert message == "Combat viewer set to individual action mode"
    assert recorder.spoken == ["You: 10 damage (Sword)", "Sword: 5 damage"]
    scheduler.advance(3.0)
    assert len(recorder.spoken) == 2


def test_individual_mode_lines(scheduler, recorder, describer):
    describer.set_batched(False)
    describer.handle_effect(Side.OPPONENT, EffectKind.DAMAGE, 5, is_crit=True, item_name="Dagger")
    describer.handle_effect(Side.PLAYER, EffectKind.SHIELD, 0, item_name="Potion")
    describer.handle_effect(Side.PLAYER, EffectKind.HEAL, 3, is_crit=True)
    assert recorder.spoken == ["Enemy Dagger: 5 damage, crit", "Potion: shield", "Item: 3 heal"]


def test_stop_flushes_pending_wave(scheduler, recorder, describer):
    describer.handle_effect(Side.PLAYER, EffectKind.DAMAGE, 7, item_name="Sword")
    describer.stop()
    assert recorder.spoken == ["You: 7 damage (Sword)"]

    describer.handle_effect(Side.PLAYER, EffectKind.DAMAGE, 7, item_name="Sword")
    scheduler.advance(2.0)
    assert recorder.spoken == ["You: 7 damage (Sword)"]


def test_cancel_discards_without_speaking(scheduler, recorder, describer):
    describer.handle_effect(Side.PLAYER, EffectKind.DAMAGE, 7, item_name="Sword")
    describer.cancel()
    scheduler.advance(10.0)
    assert recorder.spoken == []


def test_running_totals_and_summary(scheduler, recorder):
    from models.game import GameSnapshot

    snapshot = GameSnapshot(
        hero=HeroStats(health=40, shield=5),
        opponent=OpponentInfo(name="Boss", health=20, max_health=60),
    )
    combat = CombatDescriber(scheduler, recorder.speak, recorder.alert, query_snapshot=lambda: snapshot)
    assert combat.combat_summary() == "Not in combat."

    combat.start("Boss")
    combat.handle_effect(Side.PLAYER, EffectKind.DAMAGE, 30, item_name="Sword")
    combat.handle_effect(Side.OPPONENT, EffectKind.DAMAGE, 12, item_name="Claw")
    assert combat.damage_dealt == 30
    assert combat.damage_taken == 12
    assert combat.combat_summary() == "You dealt 30, took 12. Health: 40+5 vs 20"
    assert combat.player_health() == "40"
    assert combat.enemy_health() == "20"


def test_periodic_health_readout_in_batched_mode(scheduler, recorder):
    from models.game import GameSnapshot

    snapshot = GameSnapshot(
        hero=HeroStats(health=40, shield=5),
        opponent=OpponentInfo(name="Boss", health=20, max_health=60),
    )
    combat = CombatDescriber(
        scheduler, recorder.speak, recorder.alert, query_snapshot=lambda: snapshot,
        batched=True, health_report_delay=2.0, health_report_interval=5.0,
    )
    combat.start("Boss")
    scheduler.advance(2.1)
    assert recorder.spoken == ["You: 40 health, 5 shield. Boss: 20 health"]

    scheduler.advance(5.0)
    assert len(recorder.spoken) == 2

    combat.set_batched(False)
    scheduler.advance(20.0)
    assert len(recorder.spoken) == 2


def test_restart_while_active_resets_totals(scheduler, recorder, describer):
    describer.handle_effect(Side.PLAYER, EffectKind.DAMAGE, 9, item_name="Sword")
    describer.start("Dragon")
    assert recorder.spoken == ["You: 9 damage (Sword)"]
    assert describer.damage_dealt == 0
    assert describer.enemy_name == "Dragon"


def test_constructor_rejects_bad_timeout(scheduler, recorder):
    with pytest.raises(ValueError):
        CombatDescriber(scheduler, recorder.speak, recorder.alert, wave_timeout=0)


def test_format_helpers():
    wave = WaveData()
    assert format_wave_side("You", wave) is None
    wave.add(EffectKind.DAMAGE, 4, "", False)
    assert format_wave_side("You", wave) == "You: 4 damage"
    assert format_effect("Sword", Side.PLAYER, EffectKind.HASTE, 1, False) is None
