from fastapi import FastAPI, UploadFile, File, Form, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import os

from app.schemas import (
    AnswerRequest,
    DraftRequest,
    FieldUpdateRequest,
    SignalRequest,
    SubmissionResult,
    TerminateRequest,
)
from app.db.interview_store import JsonInterviewStore
from app.integrity.signals import PushSignalSource
from app.interview.errors import AlreadyAnswered, InvalidTransition, TerminationInFlight, ValidationError
from app.interview.evaluator import build_scorer
from app.interview.intake import apply_field, prefill_from_resume
from app.interview.models import CandidateProfile
from app.interview.questions import build_question_generator
from app.resume.parser import extract_resume_fields
from app.session.clock import AsyncioClock
from app.session.registry import session_registry
from app.session_controller import SessionController
from app.system_metrics import set_metric, get_metrics_snapshot
from core.config import CLOCK_TICK_SEC, DEFAULT_INTERVIEW_MODE, MAX_RESUME_BYTES
from core.state import InterviewMode

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

app = FastAPI(title="Proctored Interview Engine")
logger = logging.getLogger("app.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

SESSION_CLEANUP_TTL_SEC = max(60, int(os.getenv("SESSION_CLEANUP_TTL_SEC", "1800")))
SESSION_CLEANUP_INTERVAL_SEC = max(30, int(os.getenv("SESSION_CLEANUP_INTERVAL_SEC", "120")))
_session_cleanup_task: asyncio.Task | None = None

interview_store = JsonInterviewStore()


class _RegistryFinalizer:
    async def on_session_finalized(self, interview, report) -> None:
        session_registry.mark_inactive(interview.id)
        set_metric("sessions_active", float(session_registry.active_count()))


_registry_finalizer = _RegistryFinalizer()


def _build_controller(candidate: CandidateProfile, mode: InterviewMode) -> SessionController:
    return SessionController.create(
        candidate,
        mode,
        clock=AsyncioClock(tick_seconds=CLOCK_TICK_SEC),
        scorer=build_scorer(),
        question_generator=build_question_generator(),
        signal_source=PushSignalSource(),
        listeners=[interview_store, _registry_finalizer],
    )


def _require_controller(session_id: str) -> SessionController:
    controller = session_registry.get_controller(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Interview session not found")
    session_registry.touch(session_id)
    return controller


async def cleanup_sessions(ttl_sec: float) -> int:
    evicted: list[SessionController] = []
    removed = session_registry.cleanup_inactive(ttl_sec, evicted=evicted)
    for controller in evicted:
        await controller.stop()
    if removed > 0:
        set_metric("sessions_active", float(session_registry.active_count()))
        logger.info("[SYSTEM] cleaned inactive sessions=%s abandoned=%s", removed, len(evicted))
    return removed


@app.on_event("startup")
async def startup_banner():
    global _session_cleanup_task
    logger.info("[SYSTEM] CORS allow_origins=%s", _allowed_origins)
    logger.info("[SYSTEM] interview store=%s default_mode=%s", interview_store.path, DEFAULT_INTERVIEW_MODE)

    async def _session_cleanup_loop():
        while True:
            await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SEC)
            await cleanup_sessions(SESSION_CLEANUP_TTL_SEC)

    _session_cleanup_task = asyncio.create_task(_session_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _session_cleanup_task
    if _session_cleanup_task is not None:
        _session_cleanup_task.cancel()
        try:
            await _session_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _session_cleanup_task = None
    for controller in session_registry.controllers():
        await controller.stop()
    logger.info("[SYSTEM] shutdown complete")


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "service": "interview-engine"}


@app.post("/api/interview/session")
async def create_interview_session(
    file: UploadFile | None = File(None),
    position: str = Form(""),
    mode: str = Form(DEFAULT_INTERVIEW_MODE),
):
    try:
        interview_mode = InterviewMode(str(mode or "").strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown interview mode: {mode}")

    candidate = CandidateProfile()
    prefilled: list[str] = []
    if file is not None:
        content = await file.read(MAX_RESUME_BYTES + 1)
        if len(content) > MAX_RESUME_BYTES:
            raise HTTPException(
                status_code=413,
                detail=f"Resume exceeds {MAX_RESUME_BYTES // (1024 * 1024)} MB upload limit",
            )
        try:
            fields = extract_resume_fields(file.filename, content)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except Exception as exc:
            raise HTTPException(status_code=500, detail=f"Resume parsing failed: {exc}")
        prefilled = prefill_from_resume(candidate, fields)

    if str(position or "").strip():
        try:
            apply_field(candidate, "position", position)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail={"field": exc.field, "message": str(exc)})

    controller = _build_controller(candidate, interview_mode)
    session_registry.register(controller.session_id, controller)
    set_metric("sessions_active", float(session_registry.active_count()))
    return {"session": controller.snapshot(), "prefilled": prefilled}


@app.get("/api/interview/completed")
async def list_completed_interviews(limit: int = 50):
    return {"interviews": interview_store.list_completed(limit=limit)}


@app.get("/api/interview/{session_id}")
async def get_interview_session(session_id: str):
    return _require_controller(session_id).snapshot()


@app.post("/api/interview/{session_id}/field")
async def update_candidate_field(session_id: str, req: FieldUpdateRequest):
    controller = _require_controller(session_id)
    try:
        controller.provide_field(req.field, req.value)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail={"field": exc.field, "message": str(exc)})
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return controller.snapshot()


@app.post("/api/interview/{session_id}/start")
async def start_interview(session_id: str):
    controller = _require_controller(session_id)
    try:
        await controller.start_interview()
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return controller.snapshot()


@app.post("/api/interview/{session_id}/draft")
async def update_draft(session_id: str, req: DraftRequest):
    controller = _require_controller(session_id)
    controller.update_draft(req.text)
    return {"status": controller.status.value, "draft_length": len(controller.draft)}


@app.post("/api/interview/{session_id}/answer", response_model=SubmissionResult)
async def submit_answer(session_id: str, req: AnswerRequest):
    controller = _require_controller(session_id)
    try:
        response = await controller.submit_response(req.text, question_index=req.question_index)
    except (AlreadyAnswered, TerminationInFlight) as exc:
        return SubmissionResult(accepted=False, reason=str(exc), session=controller.snapshot())
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return SubmissionResult(accepted=True, response=response.to_dict(), session=controller.snapshot())


@app.post("/api/interview/{session_id}/signal")
async def publish_signal(session_id: str, req: SignalRequest):
    controller = _require_controller(session_id)
    delivered = controller.signal_source.publish(req.kind, req.value)
    return {"delivered": delivered, "session": controller.snapshot()}


@app.post("/api/interview/{session_id}/terminate")
async def terminate_interview(session_id: str, req: TerminateRequest | None = None):
    controller = _require_controller(session_id)
    reason = req.reason if req is not None else TerminateRequest().reason
    try:
        report = await controller.terminate_session(reason)
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {
        "report": report.to_dict() if report is not None else None,
        "session": controller.snapshot(),
    }


@app.get("/api/interview/{session_id}/report")
async def get_interview_report(session_id: str):
    controller = session_registry.get_controller(session_id)
    if controller is None:
        stored = interview_store.get_report(session_id)
        if stored is None:
            raise HTTPException(status_code=404, detail="Interview session not found")
        return stored
    if controller.report is None:
        raise HTTPException(status_code=409, detail="Report is available once the interview has finished")
    return controller.report.to_dict()


@app.get("/api/system/metrics")
def system_metrics_route():
    return get_metrics_snapshot(extra={
        "sessions_registered": len(session_registry.controllers()),
    })
