"""
Narration session: the single owner of every narration component.

One NarrationSession exists per attached game. Domain events, user input and
host notifications all enter through it on the owning event loop; it routes
them to the coordinator, the combat describer, the health watcher and the
navigator, and every utterance leaves through one NarrationSink.

  StateTransition      refresh; on an actual change speak the state name and
                       run the state settle chain; settled → debounced summary
  ContentRevealed      refresh + debounced summary
  UserActionCompleted  refresh; speak the outcome; summary or settle refresh
  CombatEffect         → combat describer (combat only)
  HealthChanged        → health watcher (combat only)
  SessionModeChanged   combat / replay enter & exit
  CombatOutcome        urgent victory / defeat line

No exception escapes ingest(), handle_input() or a timer callback.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from config import Settings, settings as default_settings
from models.events import (
    CombatEffectEvent, CombatOutcomeEvent, ContentRevealedEvent, HealthChangedEvent,
    SessionMode, SessionModeChangedEvent, StateTransitionEvent, UserAction,
    UserActionCompletedEvent, parse_event,
)
from models.game import GameSnapshot, RunState, describe_state
from models.narration import AnnouncementRequest, NavCommand, Priority
from narration.combat_describer import CombatDescriber
from narration.coordinator import AnnouncementCoordinator
from narration.health_watcher import HealthThresholdWatcher
from narration.navigator import GameActions, Navigator
from services.scheduler import AsyncioScheduler, Scheduler, SettleChain, Timer
from services.speech import MessageBuffer, NarrationSink, SpeechBackend

logger = logging.getLogger(__name__)


class EventHandler(Protocol):
    """Typed subscriber interface: one method per domain event kind."""

    def on_state_transition(self, event: StateTransitionEvent) -> None: ...

    def on_combat_effect(self, event: CombatEffectEvent) -> None: ...

    def on_health_changed(self, event: HealthChangedEvent) -> None: ...

    def on_content_revealed(self, event: ContentRevealedEvent) -> None: ...

    def on_session_mode_changed(self, event: SessionModeChangedEvent) -> None: ...

    def on_user_action_completed(self, event: UserActionCompletedEvent) -> None: ...

    def on_combat_outcome(self, event: CombatOutcomeEvent) -> None: ...


# One typed call per event kind; no lookup by name
_DISPATCH: Dict[type, Callable[[EventHandler, Any], None]] = {
    StateTransitionEvent: lambda h, e: h.on_state_transition(e),
    CombatEffectEvent: lambda h, e: h.on_combat_effect(e),
    HealthChangedEvent: lambda h, e: h.on_health_changed(e),
    ContentRevealedEvent: lambda h, e: h.on_content_revealed(e),
    SessionModeChangedEvent: lambda h, e: h.on_session_mode_changed(e),
    UserActionCompletedEvent: lambda h, e: h.on_user_action_completed(e),
    CombatOutcomeEvent: lambda h, e: h.on_combat_outcome(e),
}


class EventBus:
    """In-process event source for hosts that publish typed events directly."""

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler. Returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: Any) -> None:
        dispatch = _DISPATCH.get(type(event))
        if dispatch is None:
            logger.debug("Event bus: no handler method for %r", event)
            return
        for handler in list(self._handlers):
            try:
                dispatch(handler, event)
            except Exception:
                logger.exception("Event bus: handler failed (type=%s)", type(event).__name__)


class NarrationSession:
    def __init__(
        self,
        session_id: str,
        query_snapshot: Callable[[], Optional[GameSnapshot]],
        backend: SpeechBackend,
        actions: Optional[GameActions] = None,
        scheduler: Optional[Scheduler] = None,
        settings: Settings = default_settings,
    ):
        self.session_id = session_id
        self.settings = settings
        self.scheduler = scheduler or AsyncioScheduler()
        self._query_snapshot = query_snapshot
        self._alive = True
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.modal_focus = False
        self.current_state: Optional[RunState] = None

        self.sink = NarrationSink(
            backend, self.scheduler, dedup_window=settings.speech_dedup_window, session_id=session_id,
        )
        self.messages = MessageBuffer(settings.message_buffer_size)
        self.combat = CombatDescriber(
            self.scheduler,
            speak=self._speak_combat,
            alert=self._alert,
            query_snapshot=self.query_snapshot,
            batched=settings.batched_combat_mode,
            wave_timeout=settings.wave_timeout,
            health_report_delay=settings.health_report_delay,
            health_report_interval=settings.health_report_interval,
            session_id=session_id,
        )
        self.watcher = HealthThresholdWatcher(
            self._alert,
            low_ratio=settings.low_health_ratio,
            critical_ratio=settings.critical_health_ratio,
            session_id=session_id,
        )
        self.navigator = Navigator(
            self._speak,
            actions=actions,
            combat=self.combat,
            messages=self.messages,
            session_id=session_id,
        )
        self.coordinator = AnnouncementCoordinator(
            self.scheduler,
            self.sink,
            compose=self.navigator.compose_summary,
            refresh=self.refresh,
            is_suppressed=lambda: self.modal_focus,
            debounce_delay=settings.debounce_delay,
            throttle_window=settings.throttle_window,
            session_id=session_id,
        )

        self._state_chain = SettleChain(self.scheduler, "state-settle")
        self._replay_chain = SettleChain(self.scheduler, "replay-settle")
        self._action_settle = Timer(self.scheduler, "action-settle")

    # ── Lifecycle ────────────────────────────────────────────────────────────

    @property
    def alive(self) -> bool:
        return self._alive

    def close(self) -> None:
        """Tear down every timer; nothing is spoken afterwards."""
        if not self._alive:
            return
        self._alive = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.coordinator.cancel()
        self.combat.cancel()
        self._state_chain.cancel()
        self._replay_chain.cancel()
        self._action_settle.cancel()
        logger.info("[%s] Narration session closed", self.session_id)

    def subscribe_events(self, source: EventBus) -> None:
        """Receive domain events from a host event source until close()."""
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = source.subscribe(self)

    # ── Snapshot access ──────────────────────────────────────────────────────

    def query_snapshot(self) -> Optional[GameSnapshot]:
        """Fresh snapshot, or the last good one when the query fails."""
        try:
            snapshot = self._query_snapshot()
        except Exception:
            logger.warning("[%s] Snapshot query failed", self.session_id, exc_info=True)
            return self.navigator.snapshot
        if snapshot is None:
            return self.navigator.snapshot
        if not isinstance(snapshot, GameSnapshot):
            logger.warning(
                "[%s] Snapshot query returned %s, keeping previous data",
                self.session_id, type(snapshot).__name__,
            )
            return self.navigator.snapshot
        return snapshot

    def refresh(self) -> None:
        snapshot = self.query_snapshot()
        if snapshot is not None:
            self.navigator.refresh(snapshot)

    # ── Speech routes ────────────────────────────────────────────────────────

    def _speak(self, text: str, interrupt: bool = True) -> None:
        if self._alive:
            self.sink.speak(text, interrupt)

    def _announce(self, text: str) -> None:
        # Event-driven speech stays quiet while an input modal has focus
        if self.modal_focus:
            logger.debug("[%s] Suppressed while modal focused: %s", self.session_id, text)
            return
        self._speak(text)

    def _speak_combat(self, text: str) -> None:
        if self._alive:
            self.messages.add(text)
            self.sink.speak(text, interrupt=False)

    def _alert(self, text: str) -> None:
        if not self._alive:
            return
        self.messages.add(text)
        self.coordinator.submit(AnnouncementRequest(text=text, interrupt=True, priority=Priority.URGENT))

    # ── Inputs ───────────────────────────────────────────────────────────────

    def ingest(self, event: Any) -> None:
        if not self._alive:
            return
        dispatch = _DISPATCH.get(type(event))
        if dispatch is None:
            logger.debug("[%s] Ignoring unknown event %r", self.session_id, event)
            return
        try:
            self.refresh()
            dispatch(self, event)
        except Exception:
            logger.exception("[%s] Event handler failed (type=%s)", self.session_id, type(event).__name__)

    def ingest_payload(self, payload: Dict[str, Any]) -> bool:
        """Validate a JSON event payload and ingest it. Returns False for unknown payloads."""
        event = parse_event(payload)
        if event is None:
            logger.debug("[%s] Dropping unrecognised event payload: %.80s", self.session_id, payload)
            return False
        self.ingest(event)
        return True

    def post_threadsafe(self, event: Any) -> None:
        """Hand an event over from a foreign thread to the owning loop."""
        self.scheduler.call_soon_threadsafe(self.ingest, event)

    def handle_input(self, command: Union[NavCommand, str]) -> None:
        if not self._alive:
            return
        try:
            command = NavCommand(command)
        except ValueError:
            logger.info("[%s] Unknown input command %r", self.session_id, command)
            return
        try:
            self.refresh()
            self.navigator.handle(command)
        except Exception:
            logger.exception("[%s] Input handler failed (command=%s)", self.session_id, command.value)

    def set_modal_focus(self, active: bool) -> None:
        self.modal_focus = active
        logger.debug("[%s] Modal focus %s", self.session_id, "on" if active else "off")

    def on_refresh_requested(self) -> None:
        if not self._alive:
            return
        self.refresh()
        self.coordinator.request_announcement()

    def on_mode_changed(self, mode: SessionMode, entered: bool, enemy_name: Optional[str] = None) -> None:
        if not self._alive:
            return
        if mode == SessionMode.COMBAT:
            if entered:
                self._enter_combat(enemy_name)
            else:
                self.combat.stop()
                self.refresh()
                self.navigator.exit_combat()
        elif entered:
            self._replay_chain.cancel()
            self.navigator.enter_replay()
            self.refresh()
            self.coordinator.request_announcement(urgent=True)
        else:
            self._exit_replay()

    # ── Event handlers ───────────────────────────────────────────────────────

    def on_state_transition(self, event: StateTransitionEvent) -> None:
        if event.state != self.current_state:
            previous = self.current_state
            self.current_state = event.state
            logger.info(
                "[%s] State %s -> %s", self.session_id,
                previous.value if previous else None, event.state.value,
            )
            self._announce(describe_state(event.state))
            self._state_chain.start(
                self.settings.state_settle_delays,
                step=lambda _: self.refresh(),
                is_alive=lambda: self._alive,
                on_done=self.coordinator.request_announcement,
            )
        elif event.settled:
            self.coordinator.request_announcement()

    def on_content_revealed(self, event: ContentRevealedEvent) -> None:
        self.coordinator.request_announcement()

    def on_combat_effect(self, event: CombatEffectEvent) -> None:
        if not self.combat.active:
            return
        self.combat.handle_effect(event.side, event.kind, event.amount, event.is_crit, event.item_name)

    def on_health_changed(self, event: HealthChangedEvent) -> None:
        if not self.combat.active:
            return
        self.watcher.observe(event.side, event.health, event.max_health)

    def on_session_mode_changed(self, event: SessionModeChangedEvent) -> None:
        self.on_mode_changed(event.mode, event.entered, event.enemy_name)

    def on_user_action_completed(self, event: UserActionCompletedEvent) -> None:
        action = event.action
        name = event.card_name or "item"

        if action == UserAction.NOT_ENOUGH_SPACE:
            self._alert(f"No space for {name}")
            return
        if action == UserAction.CANT_AFFORD:
            self._alert(f"Cannot afford {name}")
            return

        text = _action_text(action, name, event.price, event.destination)
        self.messages.add(text)
        self._announce(text)

        if action in (UserAction.PURCHASE, UserAction.SALE, UserAction.DISPOSAL):
            self.coordinator.request_announcement()
        elif action == UserAction.SELECTION:
            self._action_settle.start(self.settings.selection_settle_delay, self._settled_refresh)
        elif action == UserAction.SKILL_EQUIPPED:
            self._action_settle.start(self.settings.skill_equip_settle_delay, self._settled_refresh)

    def on_combat_outcome(self, event: CombatOutcomeEvent) -> None:
        if event.victory:
            text = f"Victory! {event.victories} wins"
        else:
            text = f"Defeat! Lost {abs(event.prestige_delta)} prestige. {event.prestige} remaining"
        self._alert(text)

    # ── Internal ─────────────────────────────────────────────────────────────

    def _enter_combat(self, enemy_name: Optional[str]) -> None:
        self._replay_chain.cancel()
        self.refresh()
        if not enemy_name:
            snapshot = self.navigator.snapshot
            enemy_name = snapshot.opponent.name if snapshot and snapshot.opponent else None
        self.watcher.reset()
        self.combat.start(enemy_name)
        self.navigator.enter_combat()

    def _exit_replay(self) -> None:
        self.navigator.begin_replay_exit()
        self._replay_chain.start(
            self.settings.replay_settle_delays,
            step=lambda _: self.refresh(),
            is_alive=lambda: self._alive,
            on_done=self._resume_after_replay,
        )

    def _resume_after_replay(self) -> None:
        self.navigator.resume_free()
        self.refresh()
        self.coordinator.request_announcement()

    def _settled_refresh(self) -> None:
        if not self._alive:
            return
        self.refresh()
        self.coordinator.request_announcement()


def _action_text(action: UserAction, name: str, price: int, destination: Optional[str]) -> str:
    if action == UserAction.PURCHASE:
        return f"Bought {name} for {price} gold" if price > 0 else f"Got {name}"
    if action == UserAction.SALE:
        return f"Sold {name} for {price} gold" if price > 0 else f"Sold {name}"
    if action == UserAction.DISPOSAL:
        return f"Removed {name}"
    if action == UserAction.MOVE:
        return f"Moved {name} to {destination or 'board'}"
    if action == UserAction.SKILL_EQUIPPED:
        return f"Equipped {name}"
    return f"Selected {name}"


class SessionManager:
    """Registry of active NarrationSessions, keyed by session id."""

    def __init__(self):
        self._sessions: Dict[str, NarrationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def start_session(
        self,
        session_id: str,
        query_snapshot: Callable[[], Optional[GameSnapshot]],
        backend: SpeechBackend,
        actions: Optional[GameActions] = None,
        scheduler: Optional[Scheduler] = None,
        settings: Settings = default_settings,
    ) -> NarrationSession:
        """Create a session, replacing (and closing) any existing one with the same id."""
        self.stop_session(session_id)
        session = NarrationSession(
            session_id, query_snapshot, backend, actions=actions, scheduler=scheduler, settings=settings,
        )
        self._sessions[session_id] = session
        logger.info("[%s] Session manager: session started", session_id)
        return session

    def get(self, session_id: str) -> Optional[NarrationSession]:
        return self._sessions.get(session_id)

    def stop_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session:
            session.close()
            logger.info("[%s] Session manager: session stopped", session_id)


session_manager = SessionManager()
