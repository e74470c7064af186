from __future__ import annotations

from io import BytesIO
import logging
from pathlib import PurePosixPath, PureWindowsPath
from typing import Sequence
import zipfile

from disputeshield.export.evidence import EvidenceItem, rank_by_priority
from disputeshield.export.text import (
    csv_escape,
    display_value,
    format_attachment_entry,
    has_value,
    normalize_timeline_event,
    sanitize_filename_part,
)
from disputeshield.models import AttachmentItem, DisputeCase, reason_display

logger = logging.getLogger("disputeshield.export")

ARCHIVE_PREFIX = "dispute-evidence"
DOCUMENT_PATH = "evidence.pdf"
SUMMARY_PATH = "summary.txt"
TIMELINE_PATH = "timeline.csv"
ATTACHMENTS_DIR = "attachments"
ATTACHMENT_INDEX_PATH = f"{ATTACHMENTS_DIR}/index.csv"
ATTACHMENT_README_PATH = f"{ATTACHMENTS_DIR}/README.txt"
SUBMISSION_NOTES_PATH = "submission-notes.txt"

ATTACHMENT_README = "Place screenshots/tracking proofs here before submitting."
TIMELINE_CSV_HEADER = "index,event"
ATTACHMENT_CSV_HEADER = "filename,size_bytes,note"
FALLBACK_ATTACHMENT_NAME = "attachment.bin"

# Fixed entry timestamp so identical inputs produce identical archives.
_ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_RESERVED_ATTACHMENT_NAMES = {"index.csv", "readme.txt"}

SUMMARY_FIELDS: list[tuple[str, str]] = [
    ("Merchant Name", "merchant_name"),
    ("Order ID", "order_id"),
    ("Amount", "amount"),
    ("Currency", "currency"),
    ("Dispute Reason", "dispute_reason"),
    ("Customer Email", "customer_email"),
    ("Billing Address", "billing_address"),
    ("IP Address", "ip_address"),
    ("Tracking Number", "tracking_number"),
    ("Carrier", "carrier"),
    ("Delivery Date", "delivery_date"),
    ("Policy URL", "policy_url"),
    ("Refund Policy Excerpt", "refund_policy_excerpt"),
    ("Customer Communication Notes", "customer_communication_notes"),
]


class PacketAssemblyError(RuntimeError):
    """Raised when the evidence ZIP cannot be built."""


def archive_file_name(order_id: str) -> str:
    return f"{ARCHIVE_PREFIX}-{sanitize_filename_part(order_id)}.zip"


def build_summary_text(case: DisputeCase, evidence_items: Sequence[EvidenceItem]) -> str:
    lines = [f"{label}: {display_value(getattr(case, field_name))}" for label, field_name in SUMMARY_FIELDS]
    lines.extend(["", "Checklist:"])
    lines.extend(
        f"- {item.label} ({item.priority}): {item.status_label}" for item in rank_by_priority(evidence_items)
    )
    return "\n".join(lines)


def build_timeline_csv(case: DisputeCase) -> str:
    lines = [TIMELINE_CSV_HEADER]
    for index, event in enumerate(case.timeline, start=1):
        lines.append(f"{index},{csv_escape(normalize_timeline_event(event))}")
    return "\n".join(lines)


def build_attachment_index_csv(entries: Sequence[tuple[str, AttachmentItem]]) -> str:
    lines = [ATTACHMENT_CSV_HEADER]
    for stored_name, attachment in entries:
        lines.append(",".join([csv_escape(stored_name), str(attachment.size_bytes), csv_escape(attachment.note)]))
    return "\n".join(lines)


def build_submission_notes(case: DisputeCase, attachments: Sequence[AttachmentItem]) -> str:
    reason = display_value(reason_display(case.dispute_reason))
    amount = display_value(case.amount)
    if has_value(case.amount) and has_value(case.currency):
        amount = f"{case.amount.strip()} {case.currency.strip()}"

    lines = [
        "Dispute submission notes",
        "",
        f"Reason: {reason}",
        f"Order ID: {display_value(case.order_id)}",
        f"Amount: {amount}",
        "",
        "Attachments:",
    ]
    if attachments:
        lines.extend(f"- {format_attachment_entry(item.file_name, item.note)}" for item in attachments)
    else:
        lines.append("- None provided")

    lines.extend(["", "Timeline:"])
    events = [normalize_timeline_event(event) for event in case.timeline]
    events = [event for event in events if event]
    if events:
        lines.extend(f"- {event}" for event in events)
    else:
        lines.append("- None provided")

    if has_value(case.policy_url):
        lines.extend(["", f"Policy URL: {case.policy_url.strip()}"])
    return "\n".join(lines)


def _base_name(file_name: str) -> str:
    # Strip both separator styles so uploads from any OS stay inside attachments/.
    name = PureWindowsPath(PurePosixPath(file_name).name).name.strip()
    if name in {"", ".", ".."}:
        return FALLBACK_ATTACHMENT_NAME
    return name


def _dedupe_name(name: str, taken: set[str]) -> str:
    if name.lower() not in taken:
        return name
    path = PurePosixPath(name)
    stem, suffix = path.stem, path.suffix
    counter = 2
    while True:
        candidate = f"{stem}_{counter}{suffix}"
        if candidate.lower() not in taken:
            return candidate
        counter += 1


def attachment_entries(attachments: Sequence[AttachmentItem]) -> list[tuple[str, AttachmentItem]]:
    """Pair each attachment with its stored name inside ``attachments/``, in insertion order."""
    taken = set(_RESERVED_ATTACHMENT_NAMES)
    entries: list[tuple[str, AttachmentItem]] = []
    for attachment in attachments:
        stored_name = _dedupe_name(_base_name(attachment.file_name), taken)
        taken.add(stored_name.lower())
        entries.append((stored_name, attachment))
    return entries


def _write_entry(archive: zipfile.ZipFile, path: str, data: bytes | str) -> None:
    info = zipfile.ZipInfo(path, date_time=_ENTRY_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    archive.writestr(info, data)


def _build_archive(
    case: DisputeCase,
    attachments: Sequence[AttachmentItem],
    document_bytes: bytes,
    evidence_items: Sequence[EvidenceItem],
    include_submission_notes: bool,
) -> bytes:
    entries = attachment_entries(attachments)
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        _write_entry(archive, DOCUMENT_PATH, document_bytes)
        _write_entry(archive, SUMMARY_PATH, build_summary_text(case, evidence_items))
        _write_entry(archive, TIMELINE_PATH, build_timeline_csv(case))
        for stored_name, attachment in entries:
            _write_entry(archive, f"{ATTACHMENTS_DIR}/{stored_name}", attachment.content)
        _write_entry(archive, ATTACHMENT_INDEX_PATH, build_attachment_index_csv(entries))
        _write_entry(archive, ATTACHMENT_README_PATH, ATTACHMENT_README)
        if include_submission_notes:
            _write_entry(archive, SUBMISSION_NOTES_PATH, build_submission_notes(case, attachments))
    return buffer.getvalue()


def assemble(
    case: DisputeCase,
    attachments: Sequence[AttachmentItem],
    document_bytes: bytes,
    evidence_items: Sequence[EvidenceItem],
    *,
    include_submission_notes: bool = True,
) -> bytes:
    try:
        content = _build_archive(case, attachments, document_bytes, evidence_items, include_submission_notes)
    except Exception as exc:
        logger.exception("packet_assembly_failed", extra={"event": "packet_assembly_failed"})
        raise PacketAssemblyError("packet assembly failed") from exc

    logger.info(
        "packet_assembled",
        extra={
            "event": "packet_assembled",
            "attachments": len(attachments),
            "timeline_events": len(case.timeline),
            "archive_bytes": len(content),
        },
    )
    return content
