from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Callable

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from disputeshield.api.contracts import ChecklistItemResponse, ChecklistRequest, ChecklistResponse
from disputeshield.config import settings
from disputeshield.export.evidence import (
    EvidenceItem,
    evaluate,
    missing_recommended_count,
    needs_completeness_warning,
    rank_by_priority,
    rank_by_strength,
)
from disputeshield.exporting import ExportError, export_pdf, export_zip
from disputeshield.models import AttachmentItem, DisputeCase
from disputeshield.session import DisputeSession
from disputeshield.verification import VerificationStrategy

logger = logging.getLogger("disputeshield.api")

VerificationStrategyGetter = Callable[[], VerificationStrategy]


def _checklist_item(item: EvidenceItem) -> ChecklistItemResponse:
    return ChecklistItemResponse(
        id=item.category.id.value,
        label=item.label,
        rationale=item.category.rationale,
        priority=item.priority,
        present=item.present,
    )


def _export_http_error(exc: ExportError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"message": exc.message, "reset_verification": exc.reset_verification},
    )


def _parse_case(raw_case: str) -> DisputeCase:
    try:
        return DisputeCase.model_validate_json(raw_case)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"message": "Dispute case payload is invalid.", "errors": exc.errors(include_url=False)},
        ) from exc


async def _build_session(
    raw_case: str,
    token: str | None,
    files: list[UploadFile] | None,
    notes: list[str] | None,
) -> DisputeSession:
    session = DisputeSession(case=_parse_case(raw_case), verification_token=token)
    uploads = files or []
    if len(uploads) > settings.max_attachment_files:
        raise HTTPException(
            status_code=413,
            detail=f"Too many attachments in one export (max {settings.max_attachment_files}).",
        )

    aligned_notes = list(notes or [])
    for index, upload in enumerate(uploads):
        safe_name = PurePosixPath(upload.filename or "").name or "attachment.bin"
        content = await upload.read(settings.max_attachment_file_bytes + 1)
        if len(content) > settings.max_attachment_file_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File '{safe_name}' exceeds max size of {settings.max_attachment_file_bytes} bytes.",
            )
        note = aligned_notes[index] if index < len(aligned_notes) else ""
        session.add_attachment(safe_name, content, note)
    return session


def _download_headers(file_name: str, page_count: int, warnings: list[str]) -> dict[str, str]:
    headers = {
        "Content-Disposition": f'attachment; filename="{file_name}"',
        "X-Page-Count": str(page_count),
    }
    if warnings:
        headers["X-Export-Warnings"] = " | ".join(warnings)
    return headers


def build_exports_router(*, get_verification_strategy: VerificationStrategyGetter) -> APIRouter:
    router = APIRouter()

    @router.post("/checklist")
    def checklist(payload: ChecklistRequest) -> ChecklistResponse:
        attachments = [
            AttachmentItem(file_name=item.file_name, content=b"", note=item.note) for item in payload.attachments
        ]
        items = evaluate(payload.case, attachments)
        return ChecklistResponse(
            reason=payload.case.reason.value,
            by_priority=[_checklist_item(item) for item in rank_by_priority(items)],
            by_strength=[_checklist_item(item) for item in rank_by_strength(items)],
            missing_count=sum(1 for item in items if not item.present),
            missing_recommended_count=missing_recommended_count(items),
            completeness_warning=needs_completeness_warning(items),
        )

    @router.post("/exports/pdf")
    async def export_pdf_endpoint(
        case: str = Form(...),
        token: str | None = Form(default=None),
        notes: list[str] | None = Form(default=None),
        files: list[UploadFile] | None = File(default=None),
    ) -> Response:
        session = await _build_session(case, token, files, notes)
        try:
            result = await run_in_threadpool(
                export_pdf, session, verifier=get_verification_strategy(), settings=settings
            )
        except ExportError as exc:
            raise _export_http_error(exc) from exc

        return Response(
            content=result.content,
            media_type="application/pdf",
            headers=_download_headers(result.file_name, result.page_count, result.warnings),
        )

    @router.post("/exports/zip")
    async def export_zip_endpoint(
        case: str = Form(...),
        token: str | None = Form(default=None),
        notes: list[str] | None = Form(default=None),
        files: list[UploadFile] | None = File(default=None),
    ) -> Response:
        session = await _build_session(case, token, files, notes)
        try:
            result = await run_in_threadpool(
                export_zip, session, verifier=get_verification_strategy(), settings=settings
            )
        except ExportError as exc:
            raise _export_http_error(exc) from exc

        return Response(
            content=result.content,
            media_type="application/zip",
            headers=_download_headers(result.file_name, result.page_count, result.warnings),
        )

    return router
