"""
Teacher Topic Monitor

Session controller for teacher topic-adherence monitoring:
- Consumes transcript events from a live source (or the scripted fallback)
- Scores every final segment against the curriculum vocabulary
- Pushes live analysis snapshots to callbacks
- Produces a SessionReport on stop()

One TeacherMonitor owns at most one active session. Create one monitor per
teacher/classroom; there is no shared global state.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

from edupulse_monitor.analysis import LiveAnalysis, build_analysis
from edupulse_monitor.config import MonitorConfig
from edupulse_monitor.errors import InvalidState, SourceError, SourceUnavailable
from edupulse_monitor.report_generator import SessionReport, generate_report
from edupulse_monitor.segment_scorer import SegmentScorer
from edupulse_monitor.session_state import MonitoringSession, SegmentAnalysis, SessionPhase
from edupulse_monitor.topic_vocabulary import TopicVocabulary
from edupulse_monitor.transcript_source import (
    ScriptedTranscriptSource,
    TranscriptEvent,
    TranscriptSource,
)

logger = logging.getLogger(__name__)

LIVE_MODE = "live"
SIMULATION_MODE = "simulation"


@dataclass
class MonitoringCallbacks:
    """
    UI hooks. Each may be a plain function or a coroutine function.

    on_transcript(cumulative_text, interim_text)
    on_analysis(LiveAnalysis)
    on_error(SourceError)
    """
    on_transcript: Optional[Callable[..., Any]] = None
    on_analysis: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[..., Any]] = None


@dataclass(frozen=True)
class StartResult:
    success: bool
    mode: str  # "live" or "simulation"

    def to_dict(self) -> dict:
        return {"success": self.success, "mode": self.mode}


class TeacherMonitor:
    """
    Controls one monitoring session at a time.

    Lifecycle: idle -> listening -> stopped. Segments arriving after stop()
    are rejected with InvalidState.
    """

    def __init__(
        self,
        vocabulary: Optional[TopicVocabulary] = None,
        transcript_source: Optional[TranscriptSource] = None,
        fallback_source: Optional[TranscriptSource] = None,
        config: Optional[MonitorConfig] = None,
        scorer: Optional[SegmentScorer] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize TeacherMonitor.

        Args:
            vocabulary: Curriculum keyword index (built-in curriculum if None)
            transcript_source: Live speech-to-text source (optional)
            fallback_source: Source used in simulation mode (scripted phrases if None)
            config: Monitor settings (read from environment if None)
            scorer: Segment scorer
            clock: Time provider, injectable for tests
        """
        self.config = config or MonitorConfig.from_env()
        self.vocabulary = vocabulary or TopicVocabulary.from_env(self.config)
        self.transcript_source = transcript_source
        self.fallback_source = fallback_source or ScriptedTranscriptSource(
            interval_seconds=self.config.simulation_interval_seconds
        )
        self.scorer = scorer or SegmentScorer()
        self._clock = clock

        self.phase = SessionPhase.IDLE
        self.mode: Optional[str] = None
        self.session: Optional[MonitoringSession] = None
        self.keywords: Tuple[str, ...] = ()
        self.last_report: Optional[SessionReport] = None
        self._callbacks = MonitoringCallbacks()
        self._active_source: Optional[TranscriptSource] = None
        self._consumer_task: Optional[asyncio.Task] = None
        # Serializes start()/stop() so one consumer task exists at a time
        self._lifecycle_lock = asyncio.Lock()

    # ==================== Lifecycle ====================

    def init_transcript_source(self) -> bool:
        """Check whether the live transcription capability is available."""
        if self.transcript_source is None or not self.transcript_source.is_available():
            logger.warning("⚠️ [TeacherMonitor] Speech recognition not available, simulation mode will be used")
            return False
        return True

    @property
    def is_listening(self) -> bool:
        return self.phase is SessionPhase.LISTENING

    async def start(
        self,
        topic: str,
        subject: str,
        callbacks: Optional[MonitoringCallbacks] = None,
    ) -> StartResult:
        """
        Start a monitoring session.

        Any session still listening is finalized and its report discarded.

        Args:
            topic: Expected lecture topic
            subject: Subject name (should match the curriculum)
            callbacks: UI hooks

        Returns:
            StartResult with the source mode ("live" or "simulation")
        """
        if not isinstance(topic, str) or not topic.strip():
            raise ValueError("topic must be a non-empty string")
        if not isinstance(subject, str) or not subject.strip():
            raise ValueError("subject must be a non-empty string")

        async with self._lifecycle_lock:
            if self.is_listening:
                logger.warning("⚠️ [TeacherMonitor] Session already running, finalizing it before restart")
                await self._stop_locked()

            self.session = MonitoringSession(
                subject=subject.strip(),
                topic=topic.strip(),
                started_at=self._clock(),
            )
            self.keywords = self.vocabulary.lookup(self.session.subject, self.session.topic)
            self._callbacks = callbacks or MonitoringCallbacks()
            self.last_report = None

            source, self.mode = await self._acquire_source()
            self._active_source = source
            self.phase = SessionPhase.LISTENING
            self._consumer_task = asyncio.create_task(self._run(source))

            logger.info(
                f"🎙️ [TeacherMonitor] Monitoring '{self.session.topic}' ({self.session.subject}) "
                f"in {self.mode} mode with {len(self.keywords)} keywords"
            )
            return StartResult(success=True, mode=self.mode)

    async def stop(self) -> SessionReport:
        """
        Stop the active session and generate its report.

        Raises:
            InvalidState: If no session is listening
        """
        async with self._lifecycle_lock:
            return await self._stop_locked()

    async def _stop_locked(self) -> SessionReport:
        # Caller holds _lifecycle_lock
        if not self.is_listening or self.session is None:
            raise InvalidState("No active monitoring session to stop")

        self.phase = SessionPhase.STOPPED

        task = self._consumer_task
        self._consumer_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self._stop_source(self._active_source)
        self._active_source = None

        report = generate_report(self.session, self.keywords, ended_at=self._clock())
        self.last_report = report
        logger.info(
            f"🛑 [TeacherMonitor] Session stopped: {report.on_topic_percentage}% on-topic, "
            f"grade {report.grade}, {len(self.session.segments)} segments"
        )
        return report

    # ==================== Analysis ====================

    def analyze_segment(self, text: str) -> SegmentAnalysis:
        """
        Score a finalized segment and add it to the session.

        Raises:
            InvalidState: If no session is listening (late segments are rejected)
        """
        if not self.is_listening or self.session is None:
            raise InvalidState("Segment received while no session is listening")

        result = self.scorer.score(text, self.keywords)
        segment = SegmentAnalysis(
            text=text,
            timestamp=self._clock(),
            score=result.score,
            is_on_topic=result.is_on_topic,
            matched_keywords=result.matched_keywords,
            word_count=result.word_count,
            match_count=result.match_count,
        )
        self.session.add_segment(segment, result.is_off_topic_instance)
        return segment

    def get_analysis(self) -> LiveAnalysis:
        """Live snapshot of the running session."""
        if not self.is_listening or self.session is None:
            raise InvalidState("No active monitoring session")
        return build_analysis(self.session, now=self._clock())

    async def process_event(self, event: TranscriptEvent):
        """
        Handle one transcript event.

        Final events are scored and appended; interim events are only
        surfaced through on_transcript.
        """
        if not self.is_listening or self.session is None:
            raise InvalidState("Transcript event received while no session is listening")

        if not event.is_final:
            await self._emit(self._callbacks.on_transcript, self.session.full_transcript, event.text)
            return

        separator = ". " if self.mode == SIMULATION_MODE else " "
        self.session.append_transcript(event.text, separator)
        self.analyze_segment(event.text)
        await self._emit(self._callbacks.on_analysis, self.get_analysis())
        await self._emit(self._callbacks.on_transcript, self.session.full_transcript, "")

    # ==================== Source supervision ====================

    async def _acquire_source(self) -> Tuple[TranscriptSource, str]:
        live = self.transcript_source
        try:
            if live is None or not live.is_available():
                raise SourceUnavailable("Speech recognition not supported")
            await live.start()
            return live, LIVE_MODE
        except SourceUnavailable as e:
            logger.warning(f"⚠️ [TeacherMonitor] {e}, using simulation mode")
        except Exception as e:
            logger.error(f"❌ [TeacherMonitor] Failed to start recognition: {e}", exc_info=True)

        await self.fallback_source.start()
        return self.fallback_source, SIMULATION_MODE

    async def _run(self, source: Optional[TranscriptSource]):
        """Consume sources until stopped; a source error may hand over to the fallback."""
        while source is not None and self.is_listening:
            source = await self._consume(source)

    async def _consume(self, source: TranscriptSource) -> Optional[TranscriptSource]:
        """
        Supervised consumption of one source.

        Returns the next source to consume (fallback after an error) or None.
        """
        restarts = 0
        while self.is_listening:
            try:
                async for event in source.events():
                    restarts = 0
                    await self.process_event(event)
            except asyncio.CancelledError:
                raise
            except SourceError as e:
                return await self._handle_source_error(source, e)
            except Exception as e:
                return await self._handle_source_error(source, SourceError(f"Transcript source failed: {e}", cause=e))

            if not self.is_listening or source.exhausted:
                return None

            # Stream ended while still listening: restart with backoff
            if restarts >= self.config.source_max_restarts:
                return await self._handle_source_error(
                    source,
                    SourceError(f"Transcript source stopped unexpectedly after {restarts} restarts"),
                )
            delay = self.config.source_restart_backoff_seconds * (2 ** restarts)
            restarts += 1
            logger.warning(
                f"⚠️ [TeacherMonitor] Transcript source stopped unexpectedly, "
                f"restart {restarts}/{self.config.source_max_restarts} in {delay:.2f}s"
            )
            await asyncio.sleep(delay)
            try:
                await source.start()
            except Exception as e:
                return await self._handle_source_error(source, SourceError(f"Failed to restart recognition: {e}", cause=e))
        return None

    async def _handle_source_error(self, source: TranscriptSource, error: SourceError) -> Optional[TranscriptSource]:
        logger.error(f"❌ [TeacherMonitor] {error}")
        await self._emit(self._callbacks.on_error, error)
        await self._stop_source(source)

        if not self.is_listening:
            return None
        if self.config.fallback_on_source_error and source is not self.fallback_source:
            logger.info("🔄 [TeacherMonitor] Switching to simulation mode after source error")
            await self.fallback_source.start()
            self._active_source = self.fallback_source
            self.mode = SIMULATION_MODE
            return self.fallback_source

        # Session stays open for stop(); no further live input is consumed
        self._active_source = None
        return None

    async def _stop_source(self, source: Optional[TranscriptSource]):
        if source is None:
            return
        try:
            await source.stop()
        except Exception as e:
            logger.warning(f"⚠️ [TeacherMonitor] Error stopping transcript source: {e}")

    async def _emit(self, callback: Optional[Callable[..., Any]], *args):
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"❌ [TeacherMonitor] Callback {getattr(callback, '__name__', callback)} failed: {e}", exc_info=True)
