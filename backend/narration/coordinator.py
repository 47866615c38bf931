"""
Announcement Coordinator: debounce + throttle for state announcements.

A single logical transition in the host (buying an item, a board animation
finishing) arrives as a burst of 3–6 events within milliseconds. Normal
requests are therefore:
  1. dropped if the last announcement was less than `throttle_window` ago,
  2. absorbed into the debounce timer if one is already armed,
  3. otherwise arm the debounce timer (`debounce_delay`).
When the timer fires the throttle is checked again (an urgent announcement
may have gone out meanwhile), the navigation data is refreshed and one
utterance is spoken.

Urgent requests cancel the pending timer and speak right away.
While the host reports an input-modal focus (e.g. a confirmation dialog)
every request is suppressed.
"""
import logging
from typing import Callable, List, Optional

from config import settings as default_settings
from models.narration import AnnouncementRequest, Priority
from services.scheduler import Scheduler, Timer
from services.speech import NarrationSink

logger = logging.getLogger(__name__)


class AnnouncementCoordinator:
    def __init__(
        self,
        scheduler: Scheduler,
        sink: NarrationSink,
        compose: Callable[[], Optional[str]],
        refresh: Callable[[], None],
        is_suppressed: Callable[[], bool] = lambda: False,
        debounce_delay: Optional[float] = None,
        throttle_window: Optional[float] = None,
        session_id: str = "-",
    ):
        self.debounce_delay = (
            default_settings.debounce_delay if debounce_delay is None else debounce_delay
        )
        self.throttle_window = (
            default_settings.throttle_window if throttle_window is None else throttle_window
        )
        if self.debounce_delay < 0 or self.throttle_window < 0:
            raise ValueError("debounce_delay and throttle_window must be >= 0")

        self._scheduler = scheduler
        self._sink = sink
        self._compose = compose
        self._refresh = refresh
        self._is_suppressed = is_suppressed
        self.session_id = session_id

        self._timer = Timer(scheduler, "announce-debounce")
        self._pending_texts: List[str] = []
        self._pending_interrupt = False
        self.last_announce_time: Optional[float] = None

    # ── Public API ───────────────────────────────────────────────────────────

    @property
    def pending(self) -> bool:
        return self._timer.pending

    def request_announcement(self, urgent: bool = False) -> None:
        """Ask for the current-state summary to be spoken."""
        self.submit(AnnouncementRequest(
            interrupt=urgent,
            priority=Priority.URGENT if urgent else Priority.NORMAL,
        ))

    def submit(self, request: AnnouncementRequest) -> None:
        if self._is_suppressed():
            logger.debug("[%s] Announcement suppressed: modal focus", self.session_id)
            return

        if request.urgent:
            self._speak_urgent(request)
            return

        if self.in_throttle_window():
            logger.info(
                "[%s] Announcement throttled, %.2fs since last",
                self.session_id, self._scheduler.now() - self.last_announce_time,
            )
            return

        if request.text:
            text = request.text.strip()
            if text and text not in self._pending_texts:
                self._pending_texts.append(text)
        self._pending_interrupt = self._pending_interrupt or request.interrupt

        if self._timer.pending:
            logger.debug("[%s] Announcement absorbed into pending debounce", self.session_id)
            return

        self._timer.start(self.debounce_delay, self._on_debounce_expired)

    def in_throttle_window(self) -> bool:
        if self.last_announce_time is None:
            return False
        return self._scheduler.now() - self.last_announce_time < self.throttle_window

    def cancel(self) -> None:
        """Drop any pending debounced announcement."""
        self._timer.cancel()
        self._pending_texts = []
        self._pending_interrupt = False

    # ── Internal ─────────────────────────────────────────────────────────────

    def _speak_urgent(self, request: AnnouncementRequest) -> None:
        self.cancel()
        text = request.text
        if not text:
            self._safe_refresh()
            text = self._safe_compose()
        if not text:
            return
        self._sink.speak(text, interrupt=True)
        self.last_announce_time = self._scheduler.now()
        logger.info("[%s] Urgent announcement: %.60s", self.session_id, text)

    def _on_debounce_expired(self) -> None:
        texts = self._pending_texts
        interrupt = self._pending_interrupt
        self._pending_texts = []
        self._pending_interrupt = False

        if self._is_suppressed():
            logger.debug("[%s] Debounced announcement suppressed: modal focus", self.session_id)
            return
        if self.in_throttle_window():
            logger.info("[%s] Debounced announcement throttled at fire time", self.session_id)
            return

        self._safe_refresh()
        text = ". ".join(texts) if texts else self._safe_compose()
        if not text:
            return
        self._sink.speak(text, interrupt=interrupt)
        self.last_announce_time = self._scheduler.now()
        logger.info("[%s] Debounced announcement: %.60s", self.session_id, text)

    def _safe_refresh(self) -> None:
        try:
            self._refresh()
        except Exception:
            logger.warning("[%s] Refresh before announcement failed", self.session_id, exc_info=True)

    def _safe_compose(self) -> Optional[str]:
        try:
            return self._compose()
        except Exception:
            logger.warning("[%s] Composing state summary failed", self.session_id, exc_info=True)
            return None
