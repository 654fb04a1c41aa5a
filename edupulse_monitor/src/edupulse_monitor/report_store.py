"""
Session Report Store

Persists finished monitoring reports and raises alerts for sessions that
stayed below the on-topic threshold.

Uses Supabase when a client is given; otherwise (or when a database call
fails) falls back to in-memory storage.
"""

import json
import logging
import re
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from edupulse_monitor.config import MonitorConfig
from edupulse_monitor.report_generator import SessionReport

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "teacher_sessions"
ALERTS_TABLE = "alerts"

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """
    Parse a stored ISO timestamp.

    Postgres returns 1-6 fractional digits and may use a trailing "Z";
    datetime.fromisoformat() before Python 3.11 accepts neither.
    """
    text = value.strip().replace(" ", "T", 1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


class SessionReportStore:
    """
    Stores teacher session reports and alerts.

    Rows in teacher_sessions:
        id, teacher_id, timestamp, topic, subject, on_topic_percentage,
        grade, status, report (JSON text)
    """

    def __init__(self, supabase_client=None, config: Optional[MonitorConfig] = None):
        """
        Initialize SessionReportStore.

        Args:
            supabase_client: Supabase client instance (optional)
            config: Monitor settings (alert threshold)
        """
        self.supabase = supabase_client
        self.use_supabase = supabase_client is not None
        self.config = config or MonitorConfig.from_env()

        # Always initialize in-memory fallback (used in error cases)
        self._in_memory_sessions: List[Dict[str, Any]] = []
        self._in_memory_alerts: List[Dict[str, Any]] = []

    def report_to_row(self, report: SessionReport, teacher_id: Optional[str]) -> Dict[str, Any]:
        """
        Convert a SessionReport to a storage row.

        Args:
            report: Finished session report
            teacher_id: Owner of the session

        Returns:
            Dictionary representation
        """
        return {
            "id": uuid.uuid4().hex,
            "teacher_id": teacher_id,
            "timestamp": datetime.now().isoformat(),
            "topic": report.topic,
            "subject": report.subject,
            "on_topic_percentage": report.on_topic_percentage,
            "grade": report.grade,
            "status": report.status,
            "report": json.dumps(report.to_dict()),
        }

    def row_to_dict(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Decode the stored report JSON back into the row."""
        data = dict(row)
        raw = data.get("report")
        if isinstance(raw, str):
            data["report"] = json.loads(raw or "{}")
        return data

    async def save(self, report: SessionReport, teacher_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Save a report and raise an alert when it is below threshold.

        Returns:
            Stored row (report decoded)
        """
        row = self.report_to_row(report, teacher_id)

        if self.use_supabase:
            try:
                result = self.supabase.table(SESSIONS_TABLE).insert(row).execute()
                if result.data:
                    row = result.data[0]
            except Exception as e:
                logger.warning(f"⚠️ [SessionReportStore] Error saving session to database: {e}")
                self._in_memory_sessions.append(row)
        else:
            self._in_memory_sessions.append(row)

        if report.on_topic_percentage < self.config.on_topic_alert_threshold:
            await self.add_alert({
                "type": "warning",
                "category": "teacher",
                "message": (
                    f"Teacher session below threshold: {report.on_topic_percentage}% "
                    f"on-topic for {report.topic}"
                ),
                "session_id": row.get("id"),
            })

        return self.row_to_dict(row)

    async def add_alert(self, alert: Dict[str, Any]) -> Dict[str, Any]:
        record = {"id": uuid.uuid4().hex, "timestamp": datetime.now().isoformat(), **alert}
        logger.warning(f"🚨 [SessionReportStore] {record['message']}")

        if self.use_supabase:
            try:
                self.supabase.table(ALERTS_TABLE).insert(record).execute()
                return record
            except Exception as e:
                logger.warning(f"⚠️ [SessionReportStore] Error saving alert to database: {e}")

        self._in_memory_alerts.append(record)
        return record

    async def list_sessions(
        self,
        teacher_id: Optional[str] = None,
        on_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """
        List saved sessions, optionally filtered by teacher and calendar day.
        """
        rows = list(self._in_memory_sessions)
        if self.use_supabase:
            try:
                query = self.supabase.table(SESSIONS_TABLE).select("*")
                if teacher_id:
                    query = query.eq("teacher_id", teacher_id)
                result = query.order("timestamp", desc=False).execute()
                rows = (result.data or []) + rows
            except Exception as e:
                logger.warning(f"⚠️ [SessionReportStore] Error loading sessions from database: {e}")

        if teacher_id:
            rows = [r for r in rows if r.get("teacher_id") == teacher_id]
        if on_date:
            rows = [r for r in rows if parse_timestamp(r["timestamp"]).date() == on_date]
        return [self.row_to_dict(r) for r in rows]

    async def list_alerts(self) -> List[Dict[str, Any]]:
        if self.use_supabase:
            try:
                result = self.supabase.table(ALERTS_TABLE).select("*").order("timestamp", desc=False).execute()
                return (result.data or []) + list(self._in_memory_alerts)
            except Exception as e:
                logger.warning(f"⚠️ [SessionReportStore] Error loading alerts from database: {e}")
        return list(self._in_memory_alerts)
