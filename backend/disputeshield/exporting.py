from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging

from disputeshield.config import Settings
from disputeshield.export import (
    ComposedDocument,
    DocumentGenerationError,
    PacketAssemblyError,
    archive_file_name,
    assemble,
    compose,
    evaluate,
    needs_completeness_warning,
)
from disputeshield.export.evidence import EvidenceItem, missing_recommended_count
from disputeshield.session import DisputeSession, SessionSnapshot
from disputeshield.verification import VerificationStrategy

logger = logging.getLogger("disputeshield.exporting")

PDF_FILE_NAME = "chargeback-evidence.pdf"

ORDER_ID_REQUIRED_MESSAGE = "Order ID is required."
HUMAN_VERIFY_MESSAGE = "Verify you're human to export."
VERIFICATION_FAILED_MESSAGE = "Human verification failed. Please try again."
PDF_FAILED_MESSAGE = "Failed to generate PDF. Please try again."
ZIP_FAILED_MESSAGE = "Failed to generate ZIP. Please try again."

COMPLETENESS_WARNING = "Two or more recommended evidence items are missing."
ATTACHMENT_TIP = "Tip: banks often prefer screenshots/PDFs of tracking, policies, and customer communications."


class ExportError(Exception):
    """Base for failures reported to the user; ``message`` is safe to show as-is."""

    status_code = 500
    reset_verification = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ExportValidationError(ExportError):
    status_code = 400


class VerificationFailedError(ExportError):
    status_code = 403
    reset_verification = True


class ExportGenerationError(ExportError):
    status_code = 500


@dataclass(frozen=True)
class PdfExport:
    content: bytes
    file_name: str
    page_count: int
    evidence_items: list[EvidenceItem]
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ZipExport:
    content: bytes
    file_name: str
    page_count: int
    evidence_items: list[EvidenceItem]
    warnings: list[str] = field(default_factory=list)


def export_warnings(
    snapshot: SessionSnapshot,
    evidence_items: list[EvidenceItem],
    *,
    page_count: int | None,
    max_recommended_pages: int,
) -> list[str]:
    warnings: list[str] = []
    if needs_completeness_warning(evidence_items):
        warnings.append(COMPLETENESS_WARNING)
    if not snapshot.attachments:
        warnings.append(ATTACHMENT_TIP)
    if page_count is not None and page_count > max_recommended_pages:
        warnings.append(
            f"Evidence document is {page_count} pages; issuers may skim anything over {max_recommended_pages}."
        )
    return warnings


def _gate(session: DisputeSession, verifier: VerificationStrategy, *, action: str) -> SessionSnapshot:
    snapshot = session.snapshot()
    if not snapshot.case.has_order_id:
        raise ExportValidationError(ORDER_ID_REQUIRED_MESSAGE)

    token = session.verification_token
    if verifier.requires_token and not (token and token.strip()):
        raise ExportValidationError(HUMAN_VERIFY_MESSAGE)

    try:
        verified = verifier.verify_human(token)
    except Exception:
        logger.exception("verification_check_failed", extra={"event": "verification_check_failed", "action": action})
        verified = False

    if not verified:
        session.discard_verification_token()
        logger.info("export_verification_failed", extra={"event": "export_verification_failed", "action": action})
        raise VerificationFailedError(VERIFICATION_FAILED_MESSAGE)
    return snapshot


def _compose(snapshot: SessionSnapshot, settings: Settings, generated_at: datetime | None) -> tuple[list[EvidenceItem], ComposedDocument]:
    evidence_items = evaluate(snapshot.case, snapshot.attachments)
    document = compose(
        snapshot.case,
        snapshot.attachments,
        evidence_items,
        generated_at=generated_at,
        show_branding=settings.show_branding_footer,
    )
    return evidence_items, document


def export_pdf(
    session: DisputeSession,
    *,
    verifier: VerificationStrategy,
    settings: Settings,
    generated_at: datetime | None = None,
) -> PdfExport:
    snapshot = _gate(session, verifier, action="pdf")
    try:
        evidence_items, document = _compose(snapshot, settings, generated_at)
    except DocumentGenerationError as exc:
        raise ExportGenerationError(PDF_FAILED_MESSAGE) from exc

    warnings = export_warnings(
        snapshot,
        evidence_items,
        page_count=document.page_count,
        max_recommended_pages=settings.max_recommended_pages,
    )
    logger.info(
        "pdf_export_completed",
        extra={
            "event": "pdf_export_completed",
            "page_count": document.page_count,
            "missing_recommended": missing_recommended_count(evidence_items),
        },
    )
    return PdfExport(
        content=document.content,
        file_name=PDF_FILE_NAME,
        page_count=document.page_count,
        evidence_items=evidence_items,
        warnings=warnings,
    )


def export_zip(
    session: DisputeSession,
    *,
    verifier: VerificationStrategy,
    settings: Settings,
    generated_at: datetime | None = None,
) -> ZipExport:
    snapshot = _gate(session, verifier, action="zip")
    try:
        evidence_items, document = _compose(snapshot, settings, generated_at)
        content = assemble(
            snapshot.case,
            snapshot.attachments,
            document.content,
            evidence_items,
            include_submission_notes=settings.include_submission_notes,
        )
    except (DocumentGenerationError, PacketAssemblyError) as exc:
        raise ExportGenerationError(ZIP_FAILED_MESSAGE) from exc

    warnings = export_warnings(
        snapshot,
        evidence_items,
        page_count=document.page_count,
        max_recommended_pages=settings.max_recommended_pages,
    )
    file_name = archive_file_name(snapshot.case.order_id)
    logger.info(
        "zip_export_completed",
        extra={
            "event": "zip_export_completed",
            "file_name": file_name,
            "page_count": document.page_count,
            "attachments": len(snapshot.attachments),
        },
    )
    return ZipExport(
        content=content,
        file_name=file_name,
        page_count=document.page_count,
        evidence_items=evidence_items,
        warnings=warnings,
    )
