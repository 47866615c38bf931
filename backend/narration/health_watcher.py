import logging
from typing import Callable, Dict, Optional

from config import settings as default_settings
from models.events import Side

logger = logging.getLogger(__name__)

_ALERTS: Dict[Side, Dict[str, str]] = {
    Side.PLAYER: {"critical": "Critical health!", "low": "Low health!"},
    Side.OPPONENT: {"critical": "Enemy critical!", "low": "Enemy low!"},
}


class ThresholdFlags:
    """Sticky per-actor flags; cleared only when a new encounter starts."""

    def __init__(self):
        self.low_announced = False
        self.crit_announced = False

    def reset(self) -> None:
        self.low_announced = False
        self.crit_announced = False


class HealthThresholdWatcher:
    """
    Emits one urgent alert per threshold per actor per encounter.
    Health oscillating around a threshold does not re-fire it.
    """

    def __init__(
        self,
        alert: Callable[[str], None],
        low_ratio: Optional[float] = None,
        critical_ratio: Optional[float] = None,
        session_id: str = "-",
    ):
        self.low_ratio = default_settings.low_health_ratio if low_ratio is None else low_ratio
        self.critical_ratio = (
            default_settings.critical_health_ratio if critical_ratio is None else critical_ratio
        )
        if not (0 < self.critical_ratio <= self.low_ratio <= 1):
            raise ValueError("expected 0 < critical_ratio <= low_ratio <= 1")
        self._alert = alert
        self.session_id = session_id
        self.flags: Dict[Side, ThresholdFlags] = {
            Side.PLAYER: ThresholdFlags(),
            Side.OPPONENT: ThresholdFlags(),
        }

    def reset(self) -> None:
        """New encounter: every threshold may fire once again."""
        for flags in self.flags.values():
            flags.reset()

    def observe(self, side: Side, health: int, max_health: int) -> Optional[str]:
        if max_health <= 0:
            # Snapshot not populated yet
            return None
        return self.check(side, health / max_health)

    def check(self, side: Side, ratio: float) -> Optional[str]:
        """Returns the alert spoken, if any."""
        flags = self.flags[side]
        alerts = _ALERTS[side]
        if ratio <= self.critical_ratio and not flags.crit_announced:
            flags.crit_announced = True
            flags.low_announced = True
            message = alerts["critical"]
        elif ratio <= self.low_ratio and not flags.low_announced:
            flags.low_announced = True
            message = alerts["low"]
        else:
            return None
        logger.info("[%s] Health threshold crossed (%s, %.2f): %s", self.session_id, side.value, ratio, message)
        self._alert(message)
        return message
