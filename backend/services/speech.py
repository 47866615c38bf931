"""
Narration sink: the last stop before the speech backend.

NarrationSink applies a short global duplicate filter and shields the rest of
the pipeline from backend faults: a backend that raises loses that one
utterance, nothing else.
"""
import asyncio
import logging
from collections import deque
from typing import Deque, List, Optional, Protocol

from config import settings as default_settings
from services.scheduler import Scheduler

logger = logging.getLogger(__name__)


class SpeechBackend(Protocol):
    def speak(self, text: str, interrupt: bool) -> None: ...


class LoggingSpeechBackend:
    """Backend that only logs; used when no screen reader is attached."""

    def speak(self, text: str, interrupt: bool) -> None:
        logger.info("SPEAK%s: %s", " (interrupt)" if interrupt else "", text)


class QueueSpeechBackend:
    """
    Queues utterances for an async consumer (the host bridge sender loop).
    Fire-and-forget: speak() never awaits.
    """

    def __init__(self, maxsize: int = 0):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def speak(self, text: str, interrupt: bool) -> None:
        self.queue.put_nowait({"type": "speak", "text": text, "interrupt": interrupt})


class NarrationSink:
    def __init__(
        self,
        backend: SpeechBackend,
        scheduler: Scheduler,
        dedup_window: Optional[float] = None,
        session_id: str = "-",
    ):
        self._backend = backend
        self._scheduler = scheduler
        self.dedup_window = (
            default_settings.speech_dedup_window if dedup_window is None else dedup_window
        )
        if self.dedup_window < 0:
            raise ValueError("dedup_window must be >= 0")
        self.session_id = session_id
        self._last_text = ""
        self._last_time: Optional[float] = None

    def speak(self, text: Optional[str], interrupt: bool = True) -> bool:
        """Forward text to the backend. Returns True if it was handed over."""
        if not text or not text.strip():
            return False
        text = text.strip()

        now = self._scheduler.now()
        if (
            text == self._last_text
            and self._last_time is not None
            and now - self._last_time < self.dedup_window
        ):
            logger.info("[%s] Skipping duplicate speech: %.30s", self.session_id, text)
            return False

        self._last_text = text
        self._last_time = now
        try:
            self._backend.speak(text, interrupt)
        except Exception:
            logger.warning(
                "[%s] Speech backend failed for %.30s", self.session_id, text, exc_info=True
            )
            return False
        return True


class MessageBuffer:
    """
    Bounded history of notable announcements, browsable by the user.
    Newest is at the end; the cursor starts on the newest message.
    """

    def __init__(self, max_messages: int = 50):
        self._messages: Deque[str] = deque(maxlen=max_messages)
        self._index = -1

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, message: Optional[str]) -> None:
        if not message or not message.strip():
            return
        self._messages.append(message.strip())
        self._index = len(self._messages) - 1

    def read_newest(self) -> List[str]:
        if not self._messages:
            return ["No messages"]
        self._index = len(self._messages) - 1
        return [self._current()]

    def read_previous(self) -> List[str]:
        if not self._messages:
            return ["No messages"]
        if self._index > 0:
            self._index -= 1
            return [self._current()]
        return ["First message", self._current()]

    def read_next(self) -> List[str]:
        if not self._messages:
            return ["No messages"]
        if self._index < len(self._messages) - 1:
            self._index += 1
            return [self._current()]
        return ["Last message", self._current()]

    def _current(self) -> str:
        return f"{self._messages[self._index]}, {self._index + 1} of {len(self._messages)}"
