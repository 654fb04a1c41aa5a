"""
Monitoring Session State

Data model for one teacher monitoring session.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List

OFF_TOPIC_EXCERPT_LENGTH = 100


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (round() uses banker's rounding)."""
    return int(math.floor(value + 0.5))


class SessionPhase(Enum):
    """Controller lifecycle."""
    IDLE = "idle"
    LISTENING = "listening"
    STOPPED = "stopped"


@dataclass(frozen=True)
class SegmentAnalysis:
    """Analysis of one finalized transcript segment."""
    text: str
    timestamp: datetime
    score: float
    is_on_topic: bool
    matched_keywords: FrozenSet[str]
    word_count: int
    match_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "score": self.score,
            "is_on_topic": self.is_on_topic,
            "matched_keywords": sorted(self.matched_keywords),
            "word_count": self.word_count,
            "match_count": self.match_count,
        }


@dataclass(frozen=True)
class OffTopicInstance:
    """Excerpt of an off-topic segment."""
    text: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "timestamp": self.timestamp.isoformat()}


@dataclass
class MonitoringSession:
    """
    Mutable state of the active session.

    Owned by TeacherMonitor; running_on_topic_score is recomputed on every
    appended segment.
    """
    subject: str
    topic: str
    started_at: datetime = field(default_factory=datetime.now)
    full_transcript: str = ""
    segments: List[SegmentAnalysis] = field(default_factory=list)
    off_topic_instances: List[OffTopicInstance] = field(default_factory=list)
    running_on_topic_score: int = 0

    def __post_init__(self):
        self.subject = self.subject.lower()
        self.topic = self.topic.lower()

    def append_transcript(self, text: str, separator: str = " "):
        self.full_transcript += text + separator

    def add_segment(self, segment: SegmentAnalysis, is_off_topic_instance: bool):
        """Append a scored segment and refresh aggregates."""
        self.segments.append(segment)
        if is_off_topic_instance:
            self.off_topic_instances.append(OffTopicInstance(
                text=segment.text[:OFF_TOPIC_EXCERPT_LENGTH],
                timestamp=segment.timestamp,
            ))
        self.running_on_topic_score = calculate_on_topic_score(self.segments)

    @property
    def on_topic_count(self) -> int:
        return sum(1 for s in self.segments if s.is_on_topic)


def calculate_on_topic_score(segments: List[SegmentAnalysis]) -> int:
    """Percentage of segments classified on-topic (0 when empty)."""
    if not segments:
        return 0
    on_topic = sum(1 for s in segments if s.is_on_topic)
    return round_half_up(100 * on_topic / len(segments))
