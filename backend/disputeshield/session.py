from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Iterable

from disputeshield.models import AttachmentItem, DisputeCase

logger = logging.getLogger("disputeshield.session")

_EDITABLE_FIELDS = frozenset(name for name in DisputeCase.model_fields if name != "timeline")


class SessionError(ValueError):
    """Raised when a session edit refers to an unknown field, event or attachment."""


@dataclass(frozen=True)
class SessionSnapshot:
    case: DisputeCase
    attachments: tuple[AttachmentItem, ...]


class DisputeSession:
    """The single dispute case being edited, plus its attachments.

    Edits replace the case and attachment values rather than mutating them, so
    snapshots handed to the export pipeline stay stable.
    """

    def __init__(
        self,
        case: DisputeCase | None = None,
        attachments: Iterable[AttachmentItem] = (),
        verification_token: str | None = None,
    ) -> None:
        self._case = case.model_copy(deep=True) if case is not None else DisputeCase()
        self._attachments: list[AttachmentItem] = []
        self.verification_token = verification_token
        for item in attachments:
            self._append_attachment(item)

    @property
    def case(self) -> DisputeCase:
        return self._case

    @property
    def attachments(self) -> tuple[AttachmentItem, ...]:
        return tuple(self._attachments)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(case=self._case.model_copy(deep=True), attachments=tuple(self._attachments))

    def update_field(self, field_name: str, value: str) -> DisputeCase:
        if field_name not in _EDITABLE_FIELDS:
            raise SessionError(f"Unknown or non-text case field '{field_name}'.")
        self._case = self._case.model_copy(update={field_name: value})
        return self._case

    def add_timeline_event(self, text: str) -> bool:
        trimmed = text.strip()
        if not trimmed:
            return False
        self._case = self._case.model_copy(update={"timeline": [*self._case.timeline, trimmed]})
        return True

    def remove_timeline_event(self, index: int) -> str:
        timeline = list(self._case.timeline)
        if index < 0 or index >= len(timeline):
            raise SessionError(f"Timeline event index {index} is out of range.")
        removed = timeline.pop(index)
        self._case = self._case.model_copy(update={"timeline": timeline})
        return removed

    def add_attachment(self, file_name: str, content: bytes, note: str = "") -> AttachmentItem:
        item = AttachmentItem(file_name=file_name, content=content, note=note)
        self._append_attachment(item)
        return item

    def add_attachments(self, files: Iterable[tuple[str, bytes]]) -> list[AttachmentItem]:
        return [self.add_attachment(file_name, content) for file_name, content in files]

    def update_attachment_note(self, attachment_id: str, note: str) -> AttachmentItem:
        index = self._attachment_index(attachment_id)
        updated = replace(self._attachments[index], note=note)
        self._attachments[index] = updated
        return updated

    def remove_attachment(self, attachment_id: str) -> AttachmentItem:
        index = self._attachment_index(attachment_id)
        return self._attachments.pop(index)

    def discard_verification_token(self) -> None:
        if self.verification_token is not None:
            logger.info("verification_token_discarded", extra={"event": "verification_token_discarded"})
        self.verification_token = None

    def _append_attachment(self, item: AttachmentItem) -> None:
        if any(existing.id == item.id for existing in self._attachments):
            raise SessionError(f"Duplicate attachment id '{item.id}'.")
        self._attachments.append(item)

    def _attachment_index(self, attachment_id: str) -> int:
        for index, item in enumerate(self._attachments):
            if item.id == attachment_id:
                return index
        raise SessionError(f"Attachment '{attachment_id}' not found.")
