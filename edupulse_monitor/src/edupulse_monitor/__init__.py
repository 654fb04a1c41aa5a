"""EduPulse teacher topic-adherence monitor"""
from .errors import InvalidState, MonitoringError, SourceError, SourceUnavailable
from .report_generator import SessionReport
from .teacher_monitor import MonitoringCallbacks, StartResult, TeacherMonitor
from .topic_vocabulary import TopicVocabulary
from .transcript_source import PushTranscriptSource, ScriptedTranscriptSource, TranscriptEvent

__all__ = [
    "InvalidState",
    "MonitoringCallbacks",
    "MonitoringError",
    "PushTranscriptSource",
    "ScriptedTranscriptSource",
    "SessionReport",
    "SourceError",
    "SourceUnavailable",
    "StartResult",
    "TeacherMonitor",
    "TopicVocabulary",
    "TranscriptEvent",
]
