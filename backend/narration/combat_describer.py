"""
Combat Describer: narrates combat effects in one of two modes.

BATCHED MODE (default):
  Effects are accumulated per side into a "wave". After `wave_timeout` of
  inactivity (or on a mode switch / combat end) one summary per side is
  spoken: "You: 50 damage (Sword), 10 heal, burn, critical".
  A periodic health readout runs while batched mode is on.

INDIVIDUAL MODE:
  Every accepted effect is spoken immediately:
  "Sword: 10 damage" / "Enemy Dagger: 5 damage, crit".

Both modes: an opponent freeze is never batched, it is an urgent "Frozen!"
alert. Running damage totals feed the quick-read commands.
"""
import logging
from typing import Callable, Dict, FrozenSet, List, Optional

from config import settings as default_settings
from models.events import EffectKind, Side
from models.game import GameSnapshot
from services.scheduler import Scheduler, Timer

logger = logging.getLogger(__name__)

# Effect kinds narrated at all; everything else is ignored
NARRATED_EFFECTS: FrozenSet[EffectKind] = frozenset({
    EffectKind.DAMAGE,
    EffectKind.HEAL,
    EffectKind.SHIELD,
    EffectKind.BURN,
    EffectKind.POISON,
    EffectKind.SLOW,
    EffectKind.FREEZE,
})

# Kinds that only add a status word to the wave
_STATUS_EFFECTS: FrozenSet[EffectKind] = frozenset({
    EffectKind.BURN,
    EffectKind.POISON,
    EffectKind.SLOW,
    EffectKind.FREEZE,
})

FROZEN_ALERT = "Frozen!"


class WaveData:
    """Effects accumulated for one side during the current wave."""

    def __init__(self):
        self.total_damage = 0
        self.total_heal = 0
        self.total_shield = 0
        self.damage_by_item: Dict[str, int] = {}
        # dict as an insertion-ordered set
        self.status_effects: Dict[str, None] = {}
        self.had_crit = False

    def clear(self) -> None:
        self.total_damage = 0
        self.total_heal = 0
        self.total_shield = 0
        self.damage_by_item.clear()
        self.status_effects.clear()
        self.had_crit = False

    @property
    def has_activity(self) -> bool:
        return (
            self.total_damage > 0
            or self.total_heal > 0
            or self.total_shield > 0
            or bool(self.status_effects)
        )

    def top_item(self) -> Optional[str]:
        if not self.damage_by_item:
            return None
        # max() keeps the first item reaching the top total
        return max(self.damage_by_item.items(), key=lambda kv: kv[1])[0]

    def add(self, kind: EffectKind, amount: int, item_name: str, is_crit: bool) -> None:
        amount = max(0, amount)
        if kind == EffectKind.DAMAGE:
            self.total_damage += amount
            if item_name:
                self.damage_by_item[item_name] = self.damage_by_item.get(item_name, 0) + amount
        elif kind == EffectKind.HEAL:
            self.total_heal += amount
        elif kind == EffectKind.SHIELD:
            self.total_shield += amount
        elif kind in _STATUS_EFFECTS:
            self.status_effects[kind.value] = None
        if is_crit:
            self.had_crit = True


def format_wave_side(owner: str, wave: WaveData) -> Optional[str]:
    elements: List[str] = []
    if wave.total_damage > 0:
        top = wave.top_item()
        elements.append(f"{wave.total_damage} damage ({top})" if top else f"{wave.total_damage} damage")
    if wave.total_heal > 0:
        elements.append(f"{wave.total_heal} heal")
    if wave.total_shield > 0:
        elements.append(f"{wave.total_shield} shield")
    elements.extend(wave.status_effects)
    if not elements:
        return None
    result = f"{owner}: {', '.join(elements)}"
    if wave.had_crit:
        result += ", critical"
    return result


def format_effect(item_name: str, side: Side, kind: EffectKind, amount: int, is_crit: bool) -> Optional[str]:
    """Individual-mode line. Player: "Sword: 10 damage"; opponent: "Enemy Sword: 10 damage"."""
    if kind not in NARRATED_EFFECTS:
        return None
    prefix = "Enemy " if side == Side.OPPONENT else ""
    name = item_name or "Item"
    if kind in (EffectKind.DAMAGE, EffectKind.HEAL, EffectKind.SHIELD):
        effect = f"{amount} {kind.value}" if amount > 0 else kind.value
    else:
        effect = kind.value
    if is_crit and kind == EffectKind.DAMAGE:
        effect += ", crit"
    return f"{prefix}{name}: {effect}"


class CombatDescriber:
    """
    Combat wave aggregator. `speak` receives summaries and individual lines
    (non-interrupting); `alert` receives urgent one-word alerts.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        speak: Callable[[str], None],
        alert: Callable[[str], None],
        query_snapshot: Callable[[], Optional[GameSnapshot]] = lambda: None,
        batched: Optional[bool] = None,
        wave_timeout: Optional[float] = None,
        health_report_delay: Optional[float] = None,
        health_report_interval: Optional[float] = None,
        session_id: str = "-",
    ):
        self.wave_timeout = default_settings.wave_timeout if wave_timeout is None else wave_timeout
        self.health_report_delay = (
            default_settings.health_report_delay if health_report_delay is None else health_report_delay
        )
        self.health_report_interval = (
            default_settings.health_report_interval
            if health_report_interval is None else health_report_interval
        )
        if self.wave_timeout <= 0 or self.health_report_interval <= 0:
            raise ValueError("wave_timeout and health_report_interval must be > 0")

        self._speak = speak
        self._alert = alert
        self._query_snapshot = query_snapshot
        self.batched = default_settings.batched_combat_mode if batched is None else batched
        self.session_id = session_id

        self._wave_timer = Timer(scheduler, "combat-wave")
        self._health_timer = Timer(scheduler, "combat-health")
        self._waves: Dict[Side, WaveData] = {Side.PLAYER: WaveData(), Side.OPPONENT: WaveData()}

        self.active = False
        self.enemy_name = "Enemy"
        self.damage_dealt = 0
        self.damage_taken = 0

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def start(self, enemy_name: Optional[str] = None) -> None:
        if self.active:
            logger.info("[%s] Combat describer already active, restarting", self.session_id)
            self.stop()

        self.active = True
        self.enemy_name = enemy_name or "Enemy"
        self.damage_dealt = 0
        self.damage_taken = 0
        for wave in self._waves.values():
            wave.clear()
        if self.batched:
            self._health_timer.start(self.health_report_delay, self._on_health_report)
        logger.info(
            "[%s] Combat describer started, enemy = %s, mode = %s",
            self.session_id, self.enemy_name, "batched" if self.batched else "individual",
        )

    def stop(self) -> None:
        if not self.active:
            return
        self._health_timer.cancel()
        self.flush()
        self.active = False
        logger.info("[%s] Combat describer stopped", self.session_id)

    def cancel(self) -> None:
        """Tear down without speaking (session teardown)."""
        self._wave_timer.cancel()
        self._health_timer.cancel()
        for wave in self._waves.values():
            wave.clear()
        self.active = False

    def wave(self, side: Side) -> WaveData:
        return self._waves[side]

    # ── Modes ────────────────────────────────────────────────────────────────

    def toggle_mode(self) -> str:
        self.set_batched(not self.batched)
        message = (
            "Combat viewer set to batched action mode" if self.batched
            else "Combat viewer set to individual action mode"
        )
        logger.info("[%s] %s", self.session_id, message)
        return message

    def set_batched(self, batched: bool) -> None:
        if batched == self.batched:
            return
        if not batched:
            # In-flight wave goes out before the first individual line
            self._health_timer.cancel()
            self.flush()
        self.batched = batched
        if batched and self.active:
            self._health_timer.start(self.health_report_delay, self._on_health_report)

    # ── Effects ──────────────────────────────────────────────────────────────

    def handle_effect(
        self,
        side: Side,
        kind: EffectKind,
        amount: int = 0,
        is_crit: bool = False,
        item_name: str = "",
    ) -> None:
        if not self.active or kind not in NARRATED_EFFECTS:
            return
        amount = max(0, amount)

        if kind == EffectKind.DAMAGE:
            if side == Side.PLAYER:
                self.damage_dealt += amount
            else:
                self.damage_taken += amount

        if kind == EffectKind.FREEZE and side == Side.OPPONENT:
            self._alert(FROZEN_ALERT)
            return

        if self.batched:
            self._waves[side].add(kind, amount, item_name, is_crit)
            self._wave_timer.start(self.wave_timeout, self.flush)
        else:
            line = format_effect(item_name, side, kind, amount, is_crit)
            if line:
                self._speak(line)

    def flush(self) -> List[str]:
        """Speak one summary per side with activity, then clear both waves."""
        self._wave_timer.cancel()
        spoken: List[str] = []
        owners = {Side.PLAYER: "You", Side.OPPONENT: self.enemy_name}
        for side in (Side.PLAYER, Side.OPPONENT):
            wave = self._waves[side]
            if wave.has_activity:
                line = format_wave_side(owners[side], wave)
                if line:
                    spoken.append(line)
        for wave in self._waves.values():
            wave.clear()
        for line in spoken:
            self._speak(line)
        return spoken

    # ── Quick reads ──────────────────────────────────────────────────────────

    def combat_summary(self) -> str:
        if not self.active:
            return "Not in combat."
        snapshot = self._query_snapshot()
        parts = [f"You dealt {self.damage_dealt}, took {self.damage_taken}"]
        if snapshot is not None:
            hero = snapshot.hero
            mine = _health_with_shield(hero.health, hero.shield or 0)
            opponent = snapshot.opponent
            theirs = _health_with_shield(opponent.health, opponent.shield) if opponent else "unknown"
            parts.append(f"Health: {mine} vs {theirs}")
        return ". ".join(parts)

    def player_health(self) -> str:
        snapshot = self._query_snapshot()
        return str(snapshot.hero.health) if snapshot is not None else "0"

    def enemy_health(self) -> str:
        snapshot = self._query_snapshot()
        if snapshot is None or snapshot.opponent is None:
            return "0"
        return str(snapshot.opponent.health)

    def health_report(self) -> Optional[str]:
        snapshot = self._query_snapshot()
        if snapshot is None:
            return None
        parts = []
        hero = snapshot.hero
        if hero.shield:
            parts.append(f"You: {hero.health} health, {hero.shield} shield")
        else:
            parts.append(f"You: {hero.health} health")
        opponent = snapshot.opponent
        if opponent is not None:
            if opponent.shield:
                parts.append(f"{self.enemy_name}: {opponent.health} health, {opponent.shield} shield")
            else:
                parts.append(f"{self.enemy_name}: {opponent.health} health")
        return ". ".join(parts)

    def _on_health_report(self) -> None:
        if not self.active or not self.batched:
            return
        try:
            report = self.health_report()
        except Exception:
            logger.warning("[%s] Health report failed", self.session_id, exc_info=True)
            report = None
        if report:
            self._speak(report)
        self._health_timer.start(self.health_report_interval, self._on_health_report)


def _health_with_shield(health: int, shield: int) -> str:
    return f"{health}+{shield}" if shield > 0 else f"{health}"
