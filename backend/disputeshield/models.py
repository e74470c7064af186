from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


class DisputeReason(str, Enum):
    FRAUDULENT = "fraudulent"
    PRODUCT_NOT_RECEIVED = "product_not_received"
    PRODUCT_UNACCEPTABLE = "product_unacceptable"
    CREDIT_NOT_PROCESSED = "credit_not_processed"
    DUPLICATE = "duplicate"
    OTHER = "other"


DISPUTE_REASON_LABELS: dict[DisputeReason, str] = {
    DisputeReason.FRAUDULENT: "Fraudulent transaction",
    DisputeReason.PRODUCT_NOT_RECEIVED: "Product not received",
    DisputeReason.PRODUCT_UNACCEPTABLE: "Product unacceptable",
    DisputeReason.CREDIT_NOT_PROCESSED: "Credit not processed",
    DisputeReason.DUPLICATE: "Duplicate charge",
    DisputeReason.OTHER: "Other",
}


def resolve_reason(value: str | None) -> DisputeReason:
    """Map free-form reason input onto the closed set, defaulting to ``other``."""
    normalized = "_".join((value or "").strip().lower().replace("-", " ").split())
    try:
        return DisputeReason(normalized)
    except ValueError:
        return DisputeReason.OTHER


def reason_display(value: str | None) -> str:
    """Label for a recognised reason, the raw text otherwise, '' when blank."""
    raw = (value or "").strip()
    if not raw:
        return ""
    reason = resolve_reason(raw)
    if reason is DisputeReason.OTHER and raw.lower() != DisputeReason.OTHER.value:
        return raw
    return DISPUTE_REASON_LABELS[reason]


class DisputeCase(BaseModel):
    merchant_name: str = Field(default="", max_length=200)
    order_id: str = Field(default="", max_length=120)
    amount: str = Field(default="", max_length=40)
    currency: str = Field(default="USD", max_length=12)
    dispute_reason: str = Field(default="", max_length=2000)
    timeline: list[str] = Field(default_factory=list)
    customer_email: str = Field(default="", max_length=320)
    billing_address: str = Field(default="", max_length=1000)
    ip_address: str = Field(default="", max_length=64)
    tracking_number: str = Field(default="", max_length=120)
    carrier: str = Field(default="", max_length=120)
    delivery_date: str = Field(default="", max_length=64)
    policy_url: str = Field(default="", max_length=2000)
    refund_policy_excerpt: str = Field(default="", max_length=5000)
    customer_communication_notes: str = Field(default="", max_length=5000)

    @model_validator(mode="after")
    def drop_blank_timeline_events(self) -> "DisputeCase":
        self.timeline = [event.strip() for event in self.timeline if event.strip()]
        return self

    @property
    def has_order_id(self) -> bool:
        return bool(self.order_id.strip())

    @property
    def reason(self) -> DisputeReason:
        return resolve_reason(self.dispute_reason)


def new_attachment_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class AttachmentItem:
    file_name: str
    content: bytes = field(repr=False)
    note: str = ""
    id: str = field(default_factory=new_attachment_id)

    @property
    def size_bytes(self) -> int:
        return len(self.content)
