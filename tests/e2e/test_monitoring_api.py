"""
End-to-End Tests for the Monitoring API

Tests the full HTTP flow a teacher dashboard drives:
- Start a live session, push recognition results, poll analysis
- Stop and persist the report, list sessions and alerts
- Simulation mode when the browser has no speech recognition
- Server-Sent-Events stream of analysis, transcript and report events
- Invalid state and auth errors
"""

import json
import pytest
import time
import sys
import os
from concurrent.futures import ThreadPoolExecutor

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "backend"))
sys.path.insert(0, os.path.join(project_root, "edupulse_monitor", "src"))

from fastapi.testclient import TestClient

import main
from lib.auth import get_current_user, require_teacher
from edupulse_monitor.config import MonitorConfig
from edupulse_monitor.report_store import SessionReportStore

TEACHER = {"id": "teacher-1", "email": "t1@school.test", "role": "teacher", "full_name": "Asha", "profile": {}}

ON_TOPIC = "We can solve this using the quadratic formula"
OFF_TOPIC = "Let's talk about something else entirely today"


class TestMonitoringApi:
    """Test suite for the monitoring endpoints."""

    @pytest.fixture
    def client(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)

        config = MonitorConfig(simulation_interval_seconds=60, on_topic_alert_threshold=70)
        main._config = config
        main._vocabulary = None
        main._report_store = SessionReportStore(config=config)
        main._classrooms.clear()
        main.app.dependency_overrides[require_teacher] = lambda: TEACHER

        with TestClient(main.app) as test_client:
            yield test_client

        main.app.dependency_overrides.clear()
        main._classrooms.clear()

    def start(self, client, live=True, topic="Quadratic Equations"):
        return client.post(
            "/api/monitoring/start",
            json={"topic": topic, "subject": "Mathematics", "live": live},
        )

    def test_health_check(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["supabase_connected"] is False
        assert data["active_sessions"] == 0

    def test_curriculum(self, client):
        data = client.get("/api/curriculum").json()

        assert list(data) == ["mathematics", "science", "english", "history"]
        assert "quadratic equations" in data["mathematics"]

    def test_live_session_flow(self, client):
        response = self.start(client)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["mode"] == "live"
        assert "discriminant" in body["keywords"]
        assert body["language"] == "en-IN"

        interim = client.post("/api/monitoring/transcript", json={"text": "we can", "is_final": False})
        assert interim.status_code == 200
        assert interim.json()["analysis"]["segments_analyzed"] == 0

        pushed = client.post("/api/monitoring/transcript", json={"text": ON_TOPIC})
        analysis = pushed.json()["analysis"]
        assert analysis["segments_analyzed"] == 1
        assert analysis["on_topic_percentage"] == 100
        assert analysis["transcript"] == ON_TOPIC + " "

        pushed = client.post("/api/monitoring/transcript", json={"text": OFF_TOPIC})
        assert pushed.json()["analysis"]["on_topic_percentage"] == 50

        polled = client.get("/api/monitoring/analysis").json()
        assert polled["segments_analyzed"] == 2
        assert polled["off_topic_instances"] == 1
        assert client.get("/").json()["active_sessions"] == 1

    def test_stop_persists_report_and_alert(self, client):
        self.start(client)
        client.post("/api/monitoring/transcript", json={"text": ON_TOPIC})
        client.post("/api/monitoring/transcript", json={"text": OFF_TOPIC})

        response = client.post("/api/monitoring/stop")

        assert response.status_code == 200
        data = response.json()
        assert data["session_id"]
        assert data["report"]["on_topic_percentage"] == 50
        assert data["report"]["grade"] == "D"
        assert data["report"]["status"] == "Needs Improvement"

        sessions = client.get("/api/teacher-sessions", params={"teacher_id": "teacher-1"}).json()
        assert len(sessions) == 1
        assert sessions[0]["id"] == data["session_id"]
        assert sessions[0]["report"]["subject"] == "mathematics"

        alerts = client.get("/api/alerts").json()
        assert len(alerts) == 1
        assert alerts[0]["session_id"] == data["session_id"]

    def test_no_alert_for_focused_session(self, client):
        self.start(client)
        client.post("/api/monitoring/transcript", json={"text": ON_TOPIC})
        client.post("/api/monitoring/stop")

        assert client.get("/api/alerts").json() == []

    def test_push_without_session_conflicts(self, client):
        response = client.post("/api/monitoring/transcript", json={"text": ON_TOPIC})
        assert response.status_code == 409

    def test_analysis_without_session_conflicts(self, client):
        assert client.get("/api/monitoring/analysis").status_code == 409

    def test_stop_twice_conflicts(self, client):
        self.start(client)
        assert client.post("/api/monitoring/stop").status_code == 200
        assert client.post("/api/monitoring/stop").status_code == 409

    def test_simulation_mode_when_live_unsupported(self, client):
        body = self.start(client, live=False).json()

        assert body["mode"] == "simulation"
        # Pushed results are only accepted from a live source
        assert client.post("/api/monitoring/transcript", json={"text": ON_TOPIC}).status_code == 409
        assert client.post("/api/monitoring/stop").status_code == 200

    def test_source_error_halts_live_input(self, client):
        self.start(client)
        client.post("/api/monitoring/transcript", json={"text": ON_TOPIC})

        response = client.post("/api/monitoring/error", json={"message": "network"})

        assert response.status_code == 200
        assert response.json() == {"mode": "live", "source_running": False}
        report = client.post("/api/monitoring/stop").json()["report"]
        assert report["segments_analyzed"] == 1

    def test_event_stream_until_report(self, client):
        self.start(client)
        entry = main._classrooms["teacher-1"]

        def read_stream():
            with client.stream("GET", "/api/monitoring/stream") as response:
                return response.headers["content-type"], response.read().decode()

        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(read_stream)
            deadline = time.monotonic() + 5
            while not entry.subscribers:
                assert time.monotonic() < deadline, "stream did not subscribe"
                time.sleep(0.01)

            client.post("/api/monitoring/transcript", json={"text": ON_TOPIC})
            stopped = client.post("/api/monitoring/stop").json()
            content_type, body = future.result(timeout=10)

        assert content_type.startswith("text/event-stream")
        assert body.endswith("\n\n")
        frames = [frame for frame in body.split("\n\n") if frame]
        assert all(frame.startswith("data: ") for frame in frames)

        events = [json.loads(frame[len("data: "):]) for frame in frames]
        assert [e["event"] for e in events] == ["analysis", "transcript", "report"]
        assert events[0]["data"]["on_topic_percentage"] == 100
        assert events[1]["data"] == {"transcript": ON_TOPIC + " ", "interim": ""}
        assert events[2]["data"] == stopped["report"]
        assert entry.subscribers == []

    def test_start_reports_configured_language(self, client):
        main._config = MonitorConfig(simulation_interval_seconds=60, transcript_language="hi-IN")

        assert self.start(client).json()["language"] == "hi-IN"

    def as_user(self, user):
        main.app.dependency_overrides[require_teacher] = lambda: user

    def record_session(self, client, teacher_id):
        self.as_user({**TEACHER, "id": teacher_id})
        self.start(client)
        client.post("/api/monitoring/transcript", json={"text": ON_TOPIC})
        return client.post("/api/monitoring/stop").json()["session_id"]

    def test_teacher_sees_only_own_sessions(self, client):
        self.record_session(client, "teacher-1")
        own_id = self.record_session(client, "teacher-2")

        sessions = client.get("/api/teacher-sessions").json()
        assert [s["id"] for s in sessions] == [own_id]

        response = client.get("/api/teacher-sessions", params={"teacher_id": "teacher-1"})
        assert response.status_code == 403

    def test_admin_sees_all_sessions(self, client):
        first_id = self.record_session(client, "teacher-1")
        self.record_session(client, "teacher-2")
        self.as_user({**TEACHER, "id": "admin-1", "role": "admin"})

        assert len(client.get("/api/teacher-sessions").json()) == 2
        filtered = client.get("/api/teacher-sessions", params={"teacher_id": "teacher-1"}).json()
        assert [s["id"] for s in filtered] == [first_id]

    def test_empty_topic_rejected(self, client):
        assert self.start(client, topic="").status_code == 422
        assert self.start(client, topic="   ").status_code == 422

    def test_invalid_date_filter(self, client):
        response = client.get("/api/teacher-sessions", params={"date": "yesterday"})
        assert response.status_code == 422

    def test_student_forbidden(self, client):
        main.app.dependency_overrides.pop(require_teacher)
        main.app.dependency_overrides[get_current_user] = lambda: {**TEACHER, "role": "student"}

        response = self.start(client)

        assert response.status_code == 403
        assert response.json()["detail"] == "Teacher access required"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
