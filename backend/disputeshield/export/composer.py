from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
import logging
from typing import Sequence

from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas
from reportlab.rl_config import defaultPageSize

from disputeshield.export.evidence import EvidenceItem, rank_by_priority, rank_by_strength
from disputeshield.export.text import (
    EMPTY_VALUE_PLACEHOLDER,
    ENTRY_SEPARATOR,
    display_value,
    format_attachment_entry,
    has_value,
    normalize_timeline_event,
    wrap_text,
)
from disputeshield.models import AttachmentItem, DisputeCase, reason_display

logger = logging.getLogger("disputeshield.export")

DOCUMENT_TITLE = "Chargeback Evidence"
FONT_NAME = "Helvetica"
PAGE_SIZE = defaultPageSize
MARGIN = 50
BODY_SIZE = 12
HEADING_SIZE = 14
TITLE_SIZE = 20
LINE_GAP = 6
CONTINUATION_INDENT = 16
TEXT_WIDTH = PAGE_SIZE[0] - 2 * MARGIN
WRAP_WIDTH = 90
BULLET = "• "

FOOTER_TEXT_Y = 30
FOOTER_TEXT_SIZE = 10
BRANDING_TEXT = "Generated by DisputeShield.app"
BRANDING_Y = 42
BRANDING_SIZE = 9


class DocumentGenerationError(RuntimeError):
    """Raised when the evidence PDF cannot be rendered."""


@dataclass(frozen=True)
class ComposedDocument:
    content: bytes
    page_count: int


@dataclass(frozen=True)
class _FooterLine:
    text: str
    y: float
    size: int


class _PageCursor:
    """Tracks the current page and baseline, starting a new page when a line would not fit."""

    def __init__(self, pdf: canvas.Canvas, footer: Sequence[_FooterLine]) -> None:
        self._pdf = pdf
        self._footer = footer
        self._top = PAGE_SIZE[1] - MARGIN
        self.y = self._top
        self.page_count = 1

    def ensure_space(self, lines: int, size: int) -> None:
        required = lines * (size + LINE_GAP)
        if self.y - required < MARGIN:
            self._close_page()
            self.page_count += 1
            self.y = self._top

    def skip(self, amount: float) -> None:
        self.y -= amount

    def draw_line(self, text: str, size: int = BODY_SIZE, indent: float = 0) -> None:
        self.ensure_space(1, size)
        self._pdf.setFont(FONT_NAME, size)
        self._pdf.drawString(MARGIN + indent, self.y, text)
        self.y -= size + LINE_GAP

    def draw_bulleted(self, lines: Sequence[str]) -> None:
        if not lines:
            return
        first, *rest = lines
        self.draw_line(f"{BULLET}{first}")
        for line in rest:
            self.draw_line(line, indent=CONTINUATION_INDENT)

    def finish(self) -> None:
        self._close_page()

    def _close_page(self) -> None:
        for line in self._footer:
            self._pdf.setFont(FONT_NAME, line.size)
            self._pdf.drawString(MARGIN, line.y, line.text)
        self._pdf.showPage()


def _footer_lines(generated_at: datetime, show_branding: bool) -> list[_FooterLine]:
    stamp = generated_at.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    lines = [_FooterLine(f"Generated by DisputeShield on {stamp}", FOOTER_TEXT_Y, FOOTER_TEXT_SIZE)]
    if show_branding:
        lines.insert(0, _FooterLine(BRANDING_TEXT, BRANDING_Y, BRANDING_SIZE))
    return lines


def wrap_to_width(
    text: str,
    wrap_width: int = WRAP_WIDTH,
    max_width: float = TEXT_WIDTH - CONTINUATION_INDENT,
    size: int = BODY_SIZE,
) -> list[str]:
    """Character wrap, then split again wherever a line is wider than ``max_width`` points.

    Capitals and wide glyphs overflow the column long before ``wrap_width``
    characters. A single word wider than the column still gets a line to itself.
    """
    lines: list[str] = []
    for line in wrap_text(text, wrap_width):
        current = ""
        for word in line.split():
            candidate = f"{current} {word}" if current else word
            if current and stringWidth(candidate, FONT_NAME, size) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines


def _amount_text(case: DisputeCase) -> str:
    if not has_value(case.amount):
        return EMPTY_VALUE_PLACEHOLDER
    return f"{case.amount.strip()} {case.currency.strip()}".strip()


def _render(
    case: DisputeCase,
    attachments: Sequence[AttachmentItem],
    evidence_items: Sequence[EvidenceItem],
    *,
    generated_at: datetime,
    show_branding: bool,
    wrap_width: int,
) -> ComposedDocument:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=PAGE_SIZE, invariant=1)
    pdf.setTitle(DOCUMENT_TITLE)
    pdf.setCreator("DisputeShield")
    cursor = _PageCursor(pdf, _footer_lines(generated_at, show_branding))

    cursor.draw_line(DOCUMENT_TITLE, TITLE_SIZE)
    cursor.skip(8)

    cursor.draw_line("Summary", HEADING_SIZE)
    cursor.draw_line(f"Merchant: {display_value(case.merchant_name)}")
    cursor.draw_line(f"Order ID: {display_value(case.order_id)}")
    cursor.draw_line(f"Amount: {_amount_text(case)}")
    cursor.draw_line(f"Dispute Reason: {display_value(reason_display(case.dispute_reason))}")

    cursor.skip(10)
    cursor.draw_line("Key Evidence Summary (Prioritized for Review)", HEADING_SIZE)
    for item in rank_by_strength(evidence_items):
        cursor.draw_line(f"{BULLET}{item.label}{ENTRY_SEPARATOR}{item.status_label}")

    cursor.skip(10)
    cursor.draw_line("Evidence Checklist", HEADING_SIZE)
    for item in rank_by_priority(evidence_items):
        cursor.draw_line(f"{BULLET}{item.label} ({item.priority}){ENTRY_SEPARATOR}{item.status_label}")

    cursor.skip(10)
    cursor.draw_line("Timeline", HEADING_SIZE)
    if not case.timeline:
        cursor.draw_line("No timeline events added.")
    for event in case.timeline:
        cursor.draw_bulleted(wrap_to_width(normalize_timeline_event(event), wrap_width))

    cursor.skip(10)
    cursor.draw_line("Attachment Index", HEADING_SIZE)
    if not attachments:
        cursor.draw_line("No attachments included.")
    for attachment in attachments:
        entry = format_attachment_entry(attachment.file_name, attachment.note)
        cursor.draw_bulleted(wrap_to_width(entry, wrap_width))

    cursor.finish()
    pdf.save()
    return ComposedDocument(content=buffer.getvalue(), page_count=cursor.page_count)


def compose(
    case: DisputeCase,
    attachments: Sequence[AttachmentItem],
    evidence_items: Sequence[EvidenceItem],
    *,
    generated_at: datetime | None = None,
    show_branding: bool = True,
    wrap_width: int = WRAP_WIDTH,
) -> ComposedDocument:
    """Render the evidence PDF: summary, ranked evidence, checklist, timeline and attachment index.

    Every page carries the generation footer. Any rendering problem surfaces as
    ``DocumentGenerationError``; no partial document is returned.
    """
    try:
        document = _render(
            case,
            attachments,
            evidence_items,
            generated_at=generated_at or datetime.now(timezone.utc),
            show_branding=show_branding,
            wrap_width=wrap_width,
        )
    except Exception as exc:
        logger.exception("document_generation_failed", extra={"event": "document_generation_failed"})
        raise DocumentGenerationError("document generation failed") from exc

    logger.info(
        "document_composed",
        extra={
            "event": "document_composed",
            "page_count": document.page_count,
            "timeline_events": len(case.timeline),
            "attachments": len(attachments),
        },
    )
    return document
