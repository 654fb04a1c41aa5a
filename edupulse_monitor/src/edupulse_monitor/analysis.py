"""
Live Session Analysis

Snapshot of a running session, pushed to the UI after every segment.

Time breakdown is apportioned by the on-topic segment ratio; no per-segment
speaking time is tracked.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from edupulse_monitor.session_state import MonitoringSession, round_half_up

STATUS_BANDS = [
    (85, "Excellent"),
    (75, "Exemplary"),
    (60, "Good"),
    (45, "Needs Improvement"),
]
OFF_TRACK = "Off Track"


def status_for(on_topic_percentage: int) -> str:
    for threshold, label in STATUS_BANDS:
        if on_topic_percentage >= threshold:
            return label
    return OFF_TRACK


@dataclass(frozen=True)
class LiveAnalysis:
    """Aggregated view of the session so far."""
    on_topic_percentage: int
    off_topic_percentage: int
    total_duration_minutes: int
    on_topic_minutes: int
    off_topic_minutes: int
    segments_analyzed: int
    off_topic_instances: int
    status: str
    transcript: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_analysis(session: MonitoringSession, now: Optional[datetime] = None) -> LiveAnalysis:
    """
    Compute the live snapshot for a session.

    Args:
        session: Session to summarize
        now: Reference time for duration (defaults to datetime.now())
    """
    now = now or datetime.now()
    elapsed_minutes = max((now - session.started_at).total_seconds(), 0.0) / 60
    total_duration = round_half_up(elapsed_minutes)

    on_topic_percentage = session.running_on_topic_score
    on_topic_minutes = round_half_up(total_duration * on_topic_percentage / 100)

    return LiveAnalysis(
        on_topic_percentage=on_topic_percentage,
        off_topic_percentage=100 - on_topic_percentage,
        total_duration_minutes=total_duration,
        on_topic_minutes=on_topic_minutes,
        off_topic_minutes=total_duration - on_topic_minutes,
        segments_analyzed=len(session.segments),
        off_topic_instances=len(session.off_topic_instances),
        status=status_for(on_topic_percentage),
        transcript=session.full_transcript,
    )
