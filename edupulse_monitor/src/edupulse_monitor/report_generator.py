"""
Session Report Generator

Turns a finished MonitoringSession into a SessionReport: letter grade,
status, time breakdown, off-topic excerpts and improvement suggestions.

The grade scale (90/85/80/75/70/60/50) is independent of the status bands
(85/75/60/45); both derive from the same on-topic percentage.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from edupulse_monitor.analysis import LiveAnalysis, build_analysis
from edupulse_monitor.session_state import MonitoringSession, OffTopicInstance, SegmentAnalysis

GRADE_BREAKPOINTS = [
    (90, "A+"),
    (85, "A"),
    (80, "B+"),
    (75, "B"),
    (70, "C+"),
    (60, "C"),
    (50, "D"),
]

MAX_OFF_TOPIC_EXCERPTS = 5
DETAILED_SEGMENT_COUNT = 10
MAX_UNUSED_KEYWORDS = 5

FOCUS_THRESHOLD = 75
DIGRESSION_THRESHOLD = 3
MIN_AVG_WORDS_PER_SEGMENT = 10


def grade_for(on_topic_percentage: int) -> str:
    for threshold, grade in GRADE_BREAKPOINTS:
        if on_topic_percentage >= threshold:
            return grade
    return "F"


@dataclass(frozen=True)
class Suggestion:
    """One improvement suggestion."""
    type: str  # focus, digression, coverage, pacing
    message: str
    priority: str  # high, medium, low

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "message": self.message, "priority": self.priority}


@dataclass(frozen=True)
class SessionReport:
    """Final report for a monitoring session."""
    topic: str
    subject: str
    session_start: datetime
    session_end: datetime
    analysis: LiveAnalysis
    grade: str
    suggestions: Tuple[Suggestion, ...] = field(default_factory=tuple)
    off_topic_segments: Tuple[OffTopicInstance, ...] = field(default_factory=tuple)
    detailed_analysis: Tuple[SegmentAnalysis, ...] = field(default_factory=tuple)

    @property
    def on_topic_percentage(self) -> int:
        return self.analysis.on_topic_percentage

    @property
    def status(self) -> str:
        return self.analysis.status

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable representation (analysis fields are flattened)."""
        data = self.analysis.to_dict()
        data.update({
            "topic": self.topic,
            "subject": self.subject,
            "session_start": self.session_start.isoformat(),
            "session_end": self.session_end.isoformat(),
            "grade": self.grade,
            "suggestions": [s.to_dict() for s in self.suggestions],
            "off_topic_segments": [o.to_dict() for o in self.off_topic_segments],
            "detailed_analysis": [s.to_dict() for s in self.detailed_analysis],
        })
        return data


def generate_suggestions(
    segments: List[SegmentAnalysis],
    on_topic_percentage: int,
    off_topic_instance_count: int,
    keywords: Iterable[str],
) -> List[Suggestion]:
    """
    Apply the fixed suggestion rules. All applicable rules fire, in order.

    Args:
        segments: Analysed segments (arrival order)
        on_topic_percentage: Running on-topic score
        off_topic_instance_count: Number of recorded off-topic instances
        keywords: Topic vocabulary used for the session
    """
    suggestions: List[Suggestion] = []

    if on_topic_percentage < FOCUS_THRESHOLD:
        suggestions.append(Suggestion(
            type="focus",
            message="Try to stay more focused on the main topic keywords",
            priority="high",
        ))

    if off_topic_instance_count > DIGRESSION_THRESHOLD:
        suggestions.append(Suggestion(
            type="digression",
            message="Reduce off-topic digressions to improve lecture clarity",
            priority="medium",
        ))

    used = set()
    for segment in segments:
        used.update(segment.matched_keywords)
    unused = [kw for kw in keywords if kw not in used][:MAX_UNUSED_KEYWORDS]
    if unused:
        suggestions.append(Suggestion(
            type="coverage",
            message=f"Consider covering these concepts: {', '.join(unused)}",
            priority="low",
        ))

    if segments:
        avg_words = sum(s.word_count for s in segments) / len(segments)
        if avg_words < MIN_AVG_WORDS_PER_SEGMENT:
            suggestions.append(Suggestion(
                type="pacing",
                message="Try to speak in longer, more complete sentences",
                priority="low",
            ))

    return suggestions


def generate_report(
    session: MonitoringSession,
    keywords: Iterable[str],
    ended_at: Optional[datetime] = None,
) -> SessionReport:
    """
    Build the final report from session state.

    Args:
        session: Finished session
        keywords: Topic vocabulary used for scoring (for coverage suggestions)
        ended_at: End timestamp (defaults to datetime.now())
    """
    ended_at = ended_at or datetime.now()
    analysis = build_analysis(session, now=ended_at)

    suggestions = generate_suggestions(
        session.segments,
        analysis.on_topic_percentage,
        len(session.off_topic_instances),
        keywords,
    )

    return SessionReport(
        topic=session.topic,
        subject=session.subject,
        session_start=session.started_at,
        session_end=ended_at,
        analysis=analysis,
        grade=grade_for(analysis.on_topic_percentage),
        suggestions=tuple(suggestions),
        off_topic_segments=tuple(session.off_topic_instances[:MAX_OFF_TOPIC_EXCERPTS]),
        detailed_analysis=tuple(session.segments[-DETAILED_SEGMENT_COUNT:]),
    )
