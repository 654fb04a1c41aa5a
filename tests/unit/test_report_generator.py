"""
Unit Tests for Live Analysis and Report Generation

Tests running score aggregation, status/grade bands, time breakdown and
improvement suggestions.
"""

import json
import pytest
import sys
import os
from datetime import datetime, timedelta

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "edupulse_monitor", "src"))

from edupulse_monitor.analysis import build_analysis, status_for
from edupulse_monitor.report_generator import generate_report, generate_suggestions, grade_for
from edupulse_monitor.session_state import (
    MonitoringSession,
    SegmentAnalysis,
    calculate_on_topic_score,
    round_half_up,
)

START = datetime(2026, 3, 2, 9, 0, 0)


def make_segment(text="quadratic equation formula roots and more words here today", on_topic=True, minute=0, matched=None, word_count=None):
    return SegmentAnalysis(
        text=text,
        timestamp=START + timedelta(minutes=minute),
        score=100.0 if on_topic else 0.0,
        is_on_topic=on_topic,
        matched_keywords=frozenset(matched or ()),
        word_count=len(text.split()) if word_count is None else word_count,
    )


def make_session(flags, text=None, matched=None):
    session = MonitoringSession(subject="Mathematics", topic="Quadratic Equations", started_at=START)
    for i, on_topic in enumerate(flags):
        segment = make_segment(text=text or f"segment number {i} with a few extra words to pad it out", on_topic=on_topic, minute=i, matched=matched)
        session.add_segment(segment, not on_topic and segment.word_count > 5)
    return session


class TestLiveAnalysis:
    """Test suite for running score and live snapshot."""

    def test_empty_session(self):
        session = make_session([])
        analysis = build_analysis(session, now=START)

        assert session.running_on_topic_score == 0
        assert analysis.on_topic_percentage == 0
        assert analysis.off_topic_percentage == 100
        assert analysis.segments_analyzed == 0
        assert analysis.status == "Off Track"

    def test_subject_and_topic_lower_cased(self):
        session = make_session([])
        assert session.subject == "mathematics"
        assert session.topic == "quadratic equations"

    def test_running_score_invariant(self):
        flags = [True, False, True, True, False, True, True, True]
        session = MonitoringSession(subject="mathematics", topic="algebra", started_at=START)
        on_topic = 0
        for n, flag in enumerate(flags, start=1):
            session.add_segment(make_segment(on_topic=flag), False)
            on_topic += flag
            assert session.running_on_topic_score == round_half_up(100 * on_topic / n)

    def test_round_half_up(self):
        """1 of 8 on-topic is 12.5% -> 13 (not banker's 12)."""
        session = make_session([True] + [False] * 7)
        assert session.running_on_topic_score == 13
        assert round_half_up(2.5) == 3
        assert round_half_up(0.49) == 0

    def test_calculate_on_topic_score_empty(self):
        assert calculate_on_topic_score([]) == 0

    def test_eight_of_ten_on_topic(self):
        session = make_session([True] * 8 + [False] * 2)
        analysis = build_analysis(session, now=START + timedelta(minutes=30))

        assert analysis.on_topic_percentage == 80
        assert analysis.status == "Exemplary"
        assert grade_for(analysis.on_topic_percentage) == "B+"

    def test_time_breakdown(self):
        session = make_session([True] * 8 + [False] * 2)
        analysis = build_analysis(session, now=START + timedelta(minutes=30))

        assert analysis.total_duration_minutes == 30
        assert analysis.on_topic_minutes == 24
        assert analysis.off_topic_minutes == 6

    def test_duration_rounds_half_up(self):
        session = make_session([True])
        analysis = build_analysis(session, now=START + timedelta(seconds=90))
        assert analysis.total_duration_minutes == 2

    def test_off_topic_instances_counted(self):
        session = make_session([True, False, False])
        analysis = build_analysis(session, now=START)
        assert analysis.off_topic_instances == 2

    def test_analysis_idempotent(self):
        session = make_session([True, False, True])
        now = START + timedelta(minutes=12)
        assert build_analysis(session, now=now) == build_analysis(session, now=now)

    @pytest.mark.parametrize("score,status", [
        (100, "Excellent"),
        (85, "Excellent"),
        (84, "Exemplary"),
        (75, "Exemplary"),
        (74, "Good"),
        (60, "Good"),
        (59, "Needs Improvement"),
        (45, "Needs Improvement"),
        (44, "Off Track"),
        (0, "Off Track"),
    ])
    def test_status_bands(self, score, status):
        assert status_for(score) == status


class TestReportGenerator:
    """Test suite for report generation."""

    @pytest.mark.parametrize("score,grade", [
        (100, "A+"), (90, "A+"), (89, "A"), (85, "A"), (84, "B+"), (80, "B+"),
        (79, "B"), (75, "B"), (74, "C+"), (70, "C+"), (69, "C"), (60, "C"),
        (59, "D"), (50, "D"), (49, "F"), (0, "F"),
    ])
    def test_grade_breakpoints(self, score, grade):
        assert grade_for(score) == grade

    def test_report_fields(self):
        session = make_session([True] * 8 + [False] * 2)
        ended = START + timedelta(minutes=30)

        report = generate_report(session, ["quadratic"], ended_at=ended)

        assert report.topic == "quadratic equations"
        assert report.subject == "mathematics"
        assert report.session_start == START
        assert report.session_end == ended
        assert report.on_topic_percentage == 80
        assert report.status == "Exemplary"
        assert report.grade == "B+"

    def test_off_topic_excerpts_capped_and_truncated(self):
        long_text = "off topic " * 30
        session = make_session([False] * 7, text=long_text)

        report = generate_report(session, [], ended_at=START)

        assert len(report.off_topic_segments) == 5
        assert all(len(o.text) == 100 for o in report.off_topic_segments)
        assert report.analysis.off_topic_instances == 7

    def test_detailed_analysis_keeps_last_ten(self):
        session = make_session([True] * 12)
        report = generate_report(session, [], ended_at=START)

        assert len(report.detailed_analysis) == 10
        assert report.detailed_analysis[0] is session.segments[2]
        assert report.detailed_analysis[-1] is session.segments[-1]

    def test_all_suggestions_fire(self):
        """Low score, many digressions, uncovered keywords, short segments."""
        session = MonitoringSession(subject="mathematics", topic="quadratic equations", started_at=START)
        for i in range(5):
            segment = make_segment(text="one two three four five six", on_topic=False, minute=i)
            session.add_segment(segment, True)

        report = generate_report(session, ["quadratic", "roots", "formula", "parabola", "vertex", "factor"], ended_at=START)

        types = [s.type for s in report.suggestions]
        assert types == ["focus", "digression", "coverage", "pacing"]
        assert [s.priority for s in report.suggestions] == ["high", "medium", "low", "low"]
        coverage = report.suggestions[2]
        assert coverage.message == "Consider covering these concepts: quadratic, roots, formula, parabola, vertex"

    def test_no_suggestions_for_good_session(self):
        words = " ".join(["quadratic"] * 12)
        session = make_session([True] * 4, text=words, matched={"quadratic"})

        suggestions = generate_suggestions(session.segments, session.running_on_topic_score, 0, ["quadratic"])
        assert suggestions == []

    def test_digression_needs_more_than_three(self):
        suggestions = generate_suggestions([], 100, 3, [])
        assert all(s.type != "digression" for s in suggestions)
        suggestions = generate_suggestions([], 100, 4, [])
        assert [s.type for s in suggestions] == ["digression"]

    def test_pacing_skipped_without_segments(self):
        suggestions = generate_suggestions([], 0, 0, [])
        assert [s.type for s in suggestions] == ["focus"]

    def test_unknown_subject_session_is_off_track(self):
        session = make_session([False] * 4)
        report = generate_report(session, (), ended_at=START)

        assert report.status == "Off Track"
        assert report.grade == "F"

    def test_report_is_json_serialisable(self):
        session = make_session([True, False], matched={"quadratic", "roots"})
        data = generate_report(session, ["quadratic"], ended_at=START + timedelta(minutes=5)).to_dict()

        encoded = json.loads(json.dumps(data))
        assert encoded["grade"] == "D"
        assert encoded["on_topic_percentage"] == 50
        assert encoded["session_start"] == START.isoformat()
        assert encoded["detailed_analysis"][0]["matched_keywords"] == ["quadratic", "roots"]

    def test_report_reconstructible_from_segments(self):
        """Replaying recorded segments onto a fresh session yields the same report."""
        original = make_session([True, False, True, False, False, True, True])
        ended = START + timedelta(minutes=20)
        keywords = ["quadratic", "roots"]

        replayed = MonitoringSession(subject=original.subject, topic=original.topic, started_at=original.started_at)
        for segment in original.segments:
            replayed.add_segment(segment, not segment.is_on_topic and segment.word_count > 5)
        replayed.full_transcript = original.full_transcript

        assert generate_report(replayed, keywords, ended_at=ended) == generate_report(original, keywords, ended_at=ended)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
