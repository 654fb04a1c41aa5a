"""
FastAPI Backend for EduPulse Teacher Topic Monitoring

Provides REST API endpoints with:
- JWT Authentication (teacher role)
- Live transcript ingestion from the dashboard's speech recognition
- Live analysis polling and Server-Sent-Events streaming
- Report persistence and below-threshold alerts (Supabase or in-memory)
"""

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import os
import sys
import json
import asyncio
from datetime import datetime as dt
import logging
import signal

# Setup enhanced logging with pretty formatting
from lib.logger import setup_logging, get_logger

setup_logging(level=logging.INFO, use_colors=True)

logger = get_logger("backend.main")

# Add the edupulse_monitor package to Python path
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)

package_src = os.path.join(project_root, 'edupulse_monitor', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

from lib.supabase_client import get_optional_supabase_client, is_supabase_configured
from lib.auth import require_teacher

from edupulse_monitor.config import MonitorConfig
from edupulse_monitor.errors import InvalidState, SourceError
from edupulse_monitor.report_store import SessionReportStore
from edupulse_monitor.teacher_monitor import MonitoringCallbacks, TeacherMonitor
from edupulse_monitor.topic_vocabulary import TopicVocabulary
from edupulse_monitor.transcript_source import PushTranscriptSource

TRANSCRIPT_JOIN_TIMEOUT_SECONDS = 5.0


@dataclass
class ClassroomEntry:
    """Monitor, live source and SSE subscribers for one teacher."""
    monitor: TeacherMonitor
    source: PushTranscriptSource
    subscribers: List[asyncio.Queue] = field(default_factory=list)


_config: Optional[MonitorConfig] = None
_vocabulary: Optional[TopicVocabulary] = None
_report_store: Optional[SessionReportStore] = None
_classrooms: Dict[str, ClassroomEntry] = {}


def get_config() -> MonitorConfig:
    global _config
    if _config is None:
        _config = MonitorConfig.from_env()
    return _config


def get_vocabulary() -> TopicVocabulary:
    """Get or create the shared curriculum vocabulary (read-only)."""
    global _vocabulary
    if _vocabulary is None:
        _vocabulary = TopicVocabulary.from_env(get_config())
    return _vocabulary


def get_report_store() -> SessionReportStore:
    """Get or create the report store (Supabase when configured)."""
    global _report_store
    if _report_store is None:
        _report_store = SessionReportStore(get_optional_supabase_client(), config=get_config())
    return _report_store


def get_classroom(teacher_id: str) -> ClassroomEntry:
    """Get or create the monitoring entry owned by a teacher."""
    entry = _classrooms.get(teacher_id)
    if entry is None:
        config = get_config()
        source = PushTranscriptSource(language=config.transcript_language)
        monitor = TeacherMonitor(
            vocabulary=get_vocabulary(),
            transcript_source=source,
            config=config,
        )
        entry = ClassroomEntry(monitor=monitor, source=source)
        _classrooms[teacher_id] = entry
    return entry


# Initialize FastAPI app
app = FastAPI(
    title="EduPulse Teacher Monitoring API",
    description="Topic-adherence monitoring for classroom lectures",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidState)
async def invalid_state_handler(request: Request, exc: InvalidState):
    logger.warning("Invalid monitoring state", data={"path": request.url.path, "detail": str(exc)})
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ==================== Pydantic Models ====================

class StartMonitoringRequest(BaseModel):
    topic: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    live: bool = True  # False when the browser has no speech recognition


class StartMonitoringResponse(BaseModel):
    success: bool
    mode: str
    keywords: List[str]
    language: str  # BCP-47 tag for the dashboard recognizer


class TranscriptChunk(BaseModel):
    text: str
    is_final: bool = True


class SourceErrorReport(BaseModel):
    message: str


# ==================== Helper Functions ====================

def broadcast(entry: ClassroomEntry, event: str, data: Any):
    """Fan a message out to every SSE subscriber of the classroom."""
    message = {"event": event, "data": data}
    for queue in list(entry.subscribers):
        queue.put_nowait(message)


def build_callbacks(entry: ClassroomEntry) -> MonitoringCallbacks:
    def on_transcript(cumulative: str, interim: str):
        broadcast(entry, "transcript", {"transcript": cumulative, "interim": interim})

    def on_analysis(analysis):
        broadcast(entry, "analysis", analysis.to_dict())

    def on_error(error: SourceError):
        broadcast(entry, "error", error.to_dict())

    return MonitoringCallbacks(on_transcript=on_transcript, on_analysis=on_analysis, on_error=on_error)


async def wait_for_processing(entry: ClassroomEntry):
    try:
        await asyncio.wait_for(entry.source.join(), timeout=TRANSCRIPT_JOIN_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Transcript processing still pending", data={"timeout_s": TRANSCRIPT_JOIN_TIMEOUT_SECONDS})


# ==================== API Endpoints ====================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "EduPulse Teacher Monitoring API",
        "version": "1.0.0",
        "supabase_connected": is_supabase_configured(),
        "active_sessions": sum(1 for e in _classrooms.values() if e.monitor.is_listening),
    }


@app.get("/api/curriculum")
async def get_curriculum():
    """Subjects and topics known to the keyword index."""
    vocabulary = get_vocabulary()
    return {subject: vocabulary.topics(subject) for subject in vocabulary.subjects()}


@app.post("/api/monitoring/start", response_model=StartMonitoringResponse)
async def start_monitoring(request: StartMonitoringRequest, user: dict = Depends(require_teacher)):
    """Start a topic monitoring session (live or simulation)."""
    logger.request("POST", "/api/monitoring/start", user_id=user["id"], data={
        "topic": request.topic,
        "subject": request.subject,
        "live": request.live,
    })

    entry = get_classroom(user["id"])
    entry.source.available = request.live
    entry.monitor.init_transcript_source()

    try:
        result = await entry.monitor.start(request.topic, request.subject, build_callbacks(entry))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    logger.success("Monitoring started", data={"mode": result.mode, "keywords": len(entry.monitor.keywords)})
    return StartMonitoringResponse(
        success=result.success,
        mode=result.mode,
        keywords=list(entry.monitor.keywords),
        language=entry.source.language,
    )


@app.post("/api/monitoring/transcript")
async def push_transcript(chunk: TranscriptChunk, user: dict = Depends(require_teacher)):
    """
    Ingest one speech recognition result from the dashboard.

    Waits until the monitor has processed it and returns the live analysis.
    """
    entry = get_classroom(user["id"])
    entry.source.push(chunk.text, is_final=chunk.is_final)
    await wait_for_processing(entry)
    return {"analysis": entry.monitor.get_analysis().to_dict()}


@app.post("/api/monitoring/error")
async def report_source_error(report: SourceErrorReport, user: dict = Depends(require_teacher)):
    """Forward a speech recognition error reported by the dashboard."""
    entry = get_classroom(user["id"])
    entry.source.push_error(report.message)
    await wait_for_processing(entry)
    return {"mode": entry.monitor.mode, "source_running": entry.source.running}


@app.get("/api/monitoring/analysis")
async def get_analysis(user: dict = Depends(require_teacher)):
    """Live analysis snapshot of the running session."""
    entry = get_classroom(user["id"])
    return entry.monitor.get_analysis().to_dict()


@app.get("/api/monitoring/stream")
async def stream_monitoring(user: dict = Depends(require_teacher)):
    """
    Stream transcript/analysis/error/report events with SSE.
    The stream ends after the final report.
    """
    entry = get_classroom(user["id"])
    queue: asyncio.Queue = asyncio.Queue()
    entry.subscribers.append(queue)

    async def generate():
        try:
            while True:
                message = await queue.get()
                yield f"data: {json.dumps(message)}\n\n"
                if message["event"] == "report":
                    break
        finally:
            if queue in entry.subscribers:
                entry.subscribers.remove(queue)

    return StreamingResponse(generate(), media_type="text/event-stream")


@app.post("/api/monitoring/stop")
async def stop_monitoring(user: dict = Depends(require_teacher)):
    """Stop the session, persist the report and return it."""
    entry = get_classroom(user["id"])
    start_time = dt.now()

    logger.section("MONITORING SESSION STOP", {"teacher_id": user["id"]})
    report = await entry.monitor.stop()
    report_data = report.to_dict()

    logger.subsection("Saving Session Report")
    saved = await get_report_store().save(report, teacher_id=user["id"])
    broadcast(entry, "report", report_data)

    logger.success("Session report stored", data={
        "session_id": saved.get("id"),
        "on_topic_percentage": report.on_topic_percentage,
        "grade": report.grade,
        "status": report.status,
        "duration_ms": f"{(dt.now() - start_time).total_seconds() * 1000:.2f}",
    })
    logger.end_section()

    return {"session_id": saved.get("id"), "report": report_data}


@app.get("/api/teacher-sessions")
async def list_teacher_sessions(
    teacher_id: Optional[str] = None,
    date: Optional[str] = None,
    user: dict = Depends(require_teacher),
):
    """
    Saved session reports, filtered by teacher and/or day (YYYY-MM-DD).

    Teachers only see their own sessions; admins may query any teacher
    (or all of them when teacher_id is omitted).
    """
    if user.get("role") != "admin":
        if teacher_id and teacher_id != user["id"]:
            raise HTTPException(status_code=403, detail="Cannot view another teacher's sessions")
        teacher_id = user["id"]

    on_date = None
    if date:
        try:
            on_date = dt.fromisoformat(date).date()
        except ValueError:
            raise HTTPException(status_code=422, detail=f"Invalid date: {date}")

    return await get_report_store().list_sessions(teacher_id=teacher_id, on_date=on_date)


@app.get("/api/alerts")
async def list_alerts(user: dict = Depends(require_teacher)):
    return await get_report_store().list_alerts()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop any session still listening so consumer tasks end cleanly."""
    for teacher_id, entry in _classrooms.items():
        if entry.monitor.is_listening:
            report = await entry.monitor.stop()
            await get_report_store().save(report, teacher_id=teacher_id)
            logger.info("🛑 Monitoring session closed on shutdown", data={"teacher_id": teacher_id})


if __name__ == "__main__":
    import uvicorn

    def handle_exit(*args):
        """Handle graceful shutdown."""
        logger.section("SERVER SHUTDOWN", {"reason": "SIGTERM received"})
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    try:
        uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
