"""FastAPI routes for interview session control."""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from api.schemas import (
    ConfigureReq,
    DeleteResp,
    MessagesResp,
    ProviderInfo,
    ReportResp,
    SessionInfo,
    SessionListResp,
    SessionReq,
    StartReq,
    StartSessionReq,
    SubmitAnswerReq,
)
from interview_session.errors import ValidationFailedError
from interview_session.models import AnswerResult, ConfigureResult, CreateResult, StartResult
from resume_intake import extract_resume_text
from services.container import Services
from session_reports import generate_report_pdf


router = APIRouter(prefix="/v1/interview")

FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def get_services(request: Request) -> Services:  # Container built by the app lifespan
    return request.app.state.services


def _safe_slug(value: str) -> str:  # Sanitize value for filenames
    if not value:
        return ""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return re.sub(r"-+", "-", slug).strip("-")


def _text_field(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


async def _start_payload(request: Request, services: Services) -> StartReq:
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_TYPES):
        form = await request.form()
        resume = _text_field(form.get("resume_content"))
        upload = form.get("resume_file")
        if isinstance(upload, UploadFile) and upload.filename:
            data = await upload.read()
            resume = extract_resume_text(
                upload.filename,
                upload.content_type,
                data,
                max_bytes=services.settings.MAX_UPLOAD_BYTES,
            )
        return StartReq(
            target_position=_text_field(form.get("target_position")),
            resume_content=resume,
            job_description=_text_field(form.get("job_description")),
            company_name=_text_field(form.get("company_name")),
            additional_info=_text_field(form.get("additional_info")),
        )
    raw = await request.body()
    if not raw:
        return StartReq()
    try:
        body: Dict[str, Any] = json.loads(raw)
        return StartReq.model_validate(body)
    except (ValueError, ValidationError) as exc:
        raise ValidationFailedError(f"Invalid request body: {exc}", code="INVALID_REQUEST_BODY") from exc


@router.post("/start", response_model=CreateResult)
async def start(request: Request, services: Services = Depends(get_services)) -> CreateResult:
    payload = await _start_payload(request, services)
    return await services.machine.create_session(
        payload.target_position,
        payload.resume_content,
        job_description=payload.job_description,
        company_name=payload.company_name,
        additional_info=payload.additional_info,
    )


@router.post("/configure", response_model=ConfigureResult)
async def configure(req: ConfigureReq, services: Services = Depends(get_services)) -> ConfigureResult:
    return await services.machine.configure_session(req.session_id, req.role_correction)


@router.post("/start_session", response_model=StartResult)
async def start_session(req: StartSessionReq, services: Services = Depends(get_services)) -> StartResult:
    return await services.machine.start_session(
        req.session_id,
        req.provider,
        model=req.model,
        difficulty=req.difficulty,
        total_questions=req.total_questions,
    )


@router.get("/session/{session_id}", response_model=SessionInfo)
async def session_info(session_id: str, services: Services = Depends(get_services)) -> SessionInfo:
    record = await services.machine.get_session(session_id)
    return SessionInfo.from_record(record)


@router.delete("/session/{session_id}", response_model=DeleteResp)
async def delete_session(session_id: str, services: Services = Depends(get_services)) -> DeleteResp:
    await services.machine.delete_session(session_id)
    return DeleteResp(session_id=session_id, deleted=True)


@router.post("/submit_answer", response_model=AnswerResult)
async def submit_answer(req: SubmitAnswerReq, services: Services = Depends(get_services)) -> AnswerResult:
    return await services.machine.submit_answer(req.session_id, req.answer)


@router.get("/report", response_model=ReportResp)
async def fetch_report(
    session_id: Optional[str] = None,
    services: Services = Depends(get_services),
) -> ReportResp:
    report = await services.machine.get_report(session_id)
    return ReportResp.from_report(report)


@router.post("/report/regenerate", response_model=ReportResp)
async def regenerate_report(req: SessionReq, services: Services = Depends(get_services)) -> ReportResp:
    report = await services.machine.regenerate_report(req.session_id)
    return ReportResp.from_report(report)


@router.get("/report.pdf")
async def fetch_report_pdf(
    session_id: Optional[str] = None,
    services: Services = Depends(get_services),
) -> Response:
    report = await services.machine.get_report(session_id)
    record = await services.machine.get_session(report.session_id)
    payload = generate_report_pdf(record, report)
    filename = f"{_safe_slug(record.target_position) or 'interview'}-{record.session_id[:8]}-report.pdf"
    headers = {"Content-Disposition": f"attachment; filename=\"{filename}\""}
    return Response(content=payload, media_type="application/pdf", headers=headers)


@router.get("/sessions", response_model=SessionListResp)
async def list_sessions(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    services: Services = Depends(get_services),
) -> SessionListResp:
    records = services.machine.list_sessions(limit, offset)
    return SessionListResp(
        sessions=[SessionInfo.from_record(record) for record in records],
        stats=services.machine.session_stats(),
        limit=limit,
        offset=offset,
    )


@router.get("/providers", response_model=List[ProviderInfo])
async def providers(services: Services = Depends(get_services)) -> List[ProviderInfo]:
    return [ProviderInfo.model_validate(row) for row in services.machine.describe_providers()]


@router.get("/{session_id}/messages", response_model=MessagesResp)
async def session_messages(session_id: str, services: Services = Depends(get_services)) -> MessagesResp:
    messages = await services.machine.get_messages(session_id)
    return MessagesResp(session_id=session_id, messages=messages)
