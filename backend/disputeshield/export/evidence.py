from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Literal, Sequence

from disputeshield.export.text import has_value
from disputeshield.models import AttachmentItem, DisputeCase, DisputeReason, resolve_reason


EvidencePriority = Literal["critical", "recommended"]
_PRIORITY_ORDER: dict[str, int] = {"critical": 0, "recommended": 1}
COMPLETENESS_WARNING_THRESHOLD = 2

PresencePredicate = Callable[[DisputeCase, Sequence[AttachmentItem]], bool]


class EvidenceCategoryId(str, Enum):
    PROOF_OF_DELIVERY = "proof_of_delivery"
    AUTHORIZATION_SIGNALS = "authorization_signals"
    POLICIES = "policies"
    CUSTOMER_COMMUNICATIONS = "customer_communications"
    TIMELINE = "timeline"
    ATTACHMENTS = "attachments"
    TRACKING_DETAILS = "tracking_details"
    CARRIER_CONFIRMATION = "carrier_confirmation"
    DELIVERY_DATE = "delivery_date"
    BILLING_ADDRESS_MATCH = "billing_address_match"
    IP_MATCH = "ip_match"
    EMAIL_MATCH = "email_match"
    POLICY_EXCERPT = "policy_excerpt"
    POLICY_URL = "policy_url"


@dataclass(frozen=True)
class EvidenceCategory:
    id: EvidenceCategoryId
    label: str
    rationale: str
    is_present: PresencePredicate


@dataclass(frozen=True)
class EvidenceItem:
    category: EvidenceCategory
    priority: EvidencePriority
    present: bool

    @property
    def label(self) -> str:
        return self.category.label

    @property
    def status_label(self) -> str:
        return "Present" if self.present else "Missing"


def _field_present(field_name: str) -> PresencePredicate:
    def predicate(case: DisputeCase, attachments: Sequence[AttachmentItem]) -> bool:
        return has_value(getattr(case, field_name))

    return predicate


def _proof_of_delivery(case: DisputeCase, attachments: Sequence[AttachmentItem]) -> bool:
    return (has_value(case.tracking_number) and has_value(case.carrier)) or has_value(case.delivery_date)


def _authorization_signals(case: DisputeCase, attachments: Sequence[AttachmentItem]) -> bool:
    return has_value(case.billing_address) or has_value(case.ip_address) or has_value(case.customer_email)


def _policies(case: DisputeCase, attachments: Sequence[AttachmentItem]) -> bool:
    return has_value(case.policy_url) or has_value(case.refund_policy_excerpt)


def _timeline(case: DisputeCase, attachments: Sequence[AttachmentItem]) -> bool:
    return len(case.timeline) > 0


def _attachments(case: DisputeCase, attachments: Sequence[AttachmentItem]) -> bool:
    return len(attachments) > 0


_CATEGORIES: list[EvidenceCategory] = [
    EvidenceCategory(
        EvidenceCategoryId.PROOF_OF_DELIVERY,
        "Proof of delivery",
        "Tracking with a named carrier, or a confirmed delivery date, shows the order arrived.",
        _proof_of_delivery,
    ),
    EvidenceCategory(
        EvidenceCategoryId.AUTHORIZATION_SIGNALS,
        "Proof of authorization",
        "Billing address, IP address or email tie the purchase to the cardholder.",
        _authorization_signals,
    ),
    EvidenceCategory(
        EvidenceCategoryId.POLICIES,
        "Policies",
        "A published refund or return policy shows the customer agreed to the terms.",
        _policies,
    ),
    EvidenceCategory(
        EvidenceCategoryId.CUSTOMER_COMMUNICATIONS,
        "Customer communication",
        "Messages with the customer show good-faith handling of the order.",
        _field_present("customer_communication_notes"),
    ),
    EvidenceCategory(
        EvidenceCategoryId.TIMELINE,
        "Timeline of events",
        "A dated sequence of events lets the reviewer follow the order history.",
        _timeline,
    ),
    EvidenceCategory(
        EvidenceCategoryId.ATTACHMENTS,
        "Supporting attachments",
        "Screenshots and documents back up every claim made in the summary.",
        _attachments,
    ),
    EvidenceCategory(
        EvidenceCategoryId.TRACKING_DETAILS,
        "Tracking number",
        "A tracking number lets the issuer check the shipment independently.",
        _field_present("tracking_number"),
    ),
    EvidenceCategory(
        EvidenceCategoryId.CARRIER_CONFIRMATION,
        "Carrier confirmation",
        "Naming the carrier makes the tracking number verifiable.",
        _field_present("carrier"),
    ),
    EvidenceCategory(
        EvidenceCategoryId.DELIVERY_DATE,
        "Delivery date",
        "A delivery date pins down when the customer received the goods.",
        _field_present("delivery_date"),
    ),
    EvidenceCategory(
        EvidenceCategoryId.BILLING_ADDRESS_MATCH,
        "Billing address match",
        "A billing address matching the card on file counters fraud claims.",
        _field_present("billing_address"),
    ),
    EvidenceCategory(
        EvidenceCategoryId.IP_MATCH,
        "IP address match",
        "The purchase IP address links the order to the cardholder's device or location.",
        _field_present("ip_address"),
    ),
    EvidenceCategory(
        EvidenceCategoryId.EMAIL_MATCH,
        "Customer email match",
        "A customer email already associated with the cardholder supports authorization.",
        _field_present("customer_email"),
    ),
    EvidenceCategory(
        EvidenceCategoryId.POLICY_EXCERPT,
        "Refund policy excerpt",
        "Quoting the relevant policy text shows exactly which terms apply.",
        _field_present("refund_policy_excerpt"),
    ),
    EvidenceCategory(
        EvidenceCategoryId.POLICY_URL,
        "Policy URL",
        "A public policy link shows the terms were available before purchase.",
        _field_present("policy_url"),
    ),
]

EVIDENCE_CATEGORIES: dict[EvidenceCategoryId, EvidenceCategory] = {
    category.id: category for category in _CATEGORIES
}

_C = EvidenceCategoryId
REASON_EVIDENCE_MAP: dict[DisputeReason, list[tuple[EvidenceCategoryId, EvidencePriority]]] = {
    DisputeReason.FRAUDULENT: [
        (_C.AUTHORIZATION_SIGNALS, "critical"),
        (_C.BILLING_ADDRESS_MATCH, "critical"),
        (_C.IP_MATCH, "critical"),
        (_C.EMAIL_MATCH, "recommended"),
        (_C.PROOF_OF_DELIVERY, "recommended"),
        (_C.CUSTOMER_COMMUNICATIONS, "recommended"),
        (_C.TIMELINE, "recommended"),
        (_C.ATTACHMENTS, "recommended"),
    ],
    DisputeReason.PRODUCT_NOT_RECEIVED: [
        (_C.PROOF_OF_DELIVERY, "critical"),
        (_C.TRACKING_DETAILS, "critical"),
        (_C.CARRIER_CONFIRMATION, "critical"),
        (_C.DELIVERY_DATE, "recommended"),
        (_C.CUSTOMER_COMMUNICATIONS, "recommended"),
        (_C.TIMELINE, "recommended"),
        (_C.ATTACHMENTS, "recommended"),
    ],
    DisputeReason.PRODUCT_UNACCEPTABLE: [
        (_C.POLICIES, "critical"),
        (_C.POLICY_EXCERPT, "critical"),
        (_C.CUSTOMER_COMMUNICATIONS, "critical"),
        (_C.POLICY_URL, "recommended"),
        (_C.PROOF_OF_DELIVERY, "recommended"),
        (_C.TIMELINE, "recommended"),
        (_C.ATTACHMENTS, "recommended"),
    ],
    DisputeReason.CREDIT_NOT_PROCESSED: [
        (_C.POLICIES, "critical"),
        (_C.POLICY_EXCERPT, "critical"),
        (_C.CUSTOMER_COMMUNICATIONS, "critical"),
        (_C.POLICY_URL, "recommended"),
        (_C.TIMELINE, "recommended"),
        (_C.ATTACHMENTS, "recommended"),
    ],
    DisputeReason.DUPLICATE: [
        (_C.TIMELINE, "critical"),
        (_C.ATTACHMENTS, "critical"),
        (_C.AUTHORIZATION_SIGNALS, "recommended"),
        (_C.CUSTOMER_COMMUNICATIONS, "recommended"),
    ],
    DisputeReason.OTHER: [
        (_C.PROOF_OF_DELIVERY, "critical"),
        (_C.AUTHORIZATION_SIGNALS, "critical"),
        (_C.POLICIES, "recommended"),
        (_C.CUSTOMER_COMMUNICATIONS, "recommended"),
        (_C.TIMELINE, "recommended"),
        (_C.ATTACHMENTS, "recommended"),
    ],
}


def evidence_plan(reason: DisputeReason | str | None) -> list[tuple[EvidenceCategoryId, EvidencePriority]]:
    resolved = reason if isinstance(reason, DisputeReason) else resolve_reason(reason)
    return list(REASON_EVIDENCE_MAP.get(resolved, REASON_EVIDENCE_MAP[DisputeReason.OTHER]))


def evaluate(case: DisputeCase, attachments: Sequence[AttachmentItem]) -> list[EvidenceItem]:
    items: list[EvidenceItem] = []
    for category_id, priority in evidence_plan(case.dispute_reason):
        category = EVIDENCE_CATEGORIES[category_id]
        items.append(
            EvidenceItem(
                category=category,
                priority=priority,
                present=bool(category.is_present(case, attachments)),
            )
        )
    return items


def _priority_key(item: EvidenceItem) -> tuple[int, str]:
    return (_PRIORITY_ORDER[item.priority], item.label)


def rank_by_priority(items: Sequence[EvidenceItem]) -> list[EvidenceItem]:
    return sorted(items, key=_priority_key)


def rank_by_strength(items: Sequence[EvidenceItem]) -> list[EvidenceItem]:
    return sorted(items, key=lambda item: (0 if item.present else 1, *_priority_key(item)))


def missing_recommended_count(items: Sequence[EvidenceItem]) -> int:
    return sum(1 for item in items if item.priority == "recommended" and not item.present)


def needs_completeness_warning(items: Sequence[EvidenceItem]) -> bool:
    return missing_recommended_count(items) >= COMPLETENESS_WARNING_THRESHOLD
