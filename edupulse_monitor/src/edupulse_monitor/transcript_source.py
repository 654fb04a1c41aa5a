"""
Transcript Sources

Strategy interface for the speech-to-text capability consumed by the
monitor, plus two implementations:

- PushTranscriptSource: live events pushed in from outside (the dashboard's
  browser speech recognition forwards interim/final results through the API)
- ScriptedTranscriptSource: deterministic classroom phrases emitted on a
  timer, used when no live capability is available
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Sequence

from edupulse_monitor.errors import InvalidState, SourceError

logger = logging.getLogger(__name__)


# Demo lecture on quadratic equations, with a few digressions
SAMPLE_PHRASES: List[str] = [
    "Let's start with quadratic equations today",
    "A quadratic equation has the form ax squared plus bx plus c equals zero",
    "The discriminant helps us find the nature of roots",
    "We can solve this using the quadratic formula",
    "Let me give you a real world example",
    "Remember to factor the polynomial first",
    "The coefficient of x squared must not be zero",
    "Now let's practice some problems",
    "Can anyone tell me the formula for roots",
    "The parabola opens upward when a is positive",
    "Let's take a short break here",
    "Now back to our main topic",
    "The roots can be real or complex",
    "By the way, did you watch yesterday's match?",
    "Coming back to mathematics...",
    "Factorization is another method to solve quadratics",
]


@dataclass(frozen=True)
class TranscriptEvent:
    """One recognition result. Final events are committed and never revised."""
    text: str
    is_final: bool = True


class TranscriptSource(ABC):
    """Speech-to-text capability consumed by TeacherMonitor."""

    mode = "live"

    def __init__(self):
        self.running = False
        # Set when the stream ended on purpose (not an unexpected stop)
        self.exhausted = False

    def is_available(self) -> bool:
        return True

    async def start(self):
        self.running = True
        self.exhausted = False

    async def stop(self):
        self.running = False

    @abstractmethod
    def events(self) -> AsyncIterator[TranscriptEvent]:
        """Async iterator of transcript events, raising SourceError on failure."""


class _EndOfStream:
    pass


@dataclass(frozen=True)
class _Failure:
    message: str


_END = _EndOfStream()


class PushTranscriptSource(TranscriptSource):
    """
    Live source fed by push()/push_error()/push_end().

    join() waits until every pushed item has been consumed, which lets
    callers (and tests) synchronize with the monitor's consumer task.
    """

    def __init__(self, available: bool = True, language: str = "en-IN"):
        super().__init__()
        self.available = available
        self.language = language
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()

    def is_available(self) -> bool:
        return self.available

    def push(self, text: str, is_final: bool = True):
        """Queue a recognition result."""
        self._ensure_running()
        self._queue.put_nowait(TranscriptEvent(text=text, is_final=is_final))

    def push_error(self, message: str):
        """Report a recognition failure (e.g. 'network', 'not-allowed')."""
        self._ensure_running()
        self._queue.put_nowait(_Failure(message))

    def push_end(self):
        """Signal that recognition ended (the monitor decides whether to restart)."""
        self._ensure_running()
        self._queue.put_nowait(_END)

    async def join(self):
        await self._queue.join()

    async def stop(self):
        await super().stop()
        # Drop anything not yet consumed so join() cannot hang
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def events(self) -> AsyncIterator[TranscriptEvent]:
        while self.running:
            item = await self._queue.get()
            try:
                if item is _END:
                    return
                if isinstance(item, _Failure):
                    raise SourceError(f"Speech recognition error: {item.message}")
                yield item
            finally:
                self._queue.task_done()

    def _ensure_running(self):
        if not self.running:
            raise InvalidState("Transcript source is not running")


class ScriptedTranscriptSource(TranscriptSource):
    """Deterministic fallback emitting one final phrase per interval."""

    mode = "simulation"

    def __init__(
        self,
        phrases: Optional[Sequence[str]] = None,
        interval_seconds: float = 3.0,
        repeat: bool = True,
    ):
        super().__init__()
        self.phrases = list(phrases) if phrases is not None else list(SAMPLE_PHRASES)
        self.interval_seconds = interval_seconds
        self.repeat = repeat
        self.emitted = 0

    async def start(self):
        await super().start()
        self.emitted = 0

    async def events(self) -> AsyncIterator[TranscriptEvent]:
        if not self.phrases:
            self.exhausted = True
            return
        while self.running:
            await asyncio.sleep(self.interval_seconds)
            if not self.running:
                return
            if not self.repeat and self.emitted >= len(self.phrases):
                self.exhausted = True
                return
            phrase = self.phrases[self.emitted % len(self.phrases)]
            self.emitted += 1
            yield TranscriptEvent(text=phrase, is_final=True)
