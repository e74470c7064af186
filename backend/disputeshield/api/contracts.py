from pydantic import BaseModel, Field

from disputeshield.models import DisputeCase


class AttachmentDescriptor(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    note: str = Field(default="", max_length=2000)
    size_bytes: int = Field(default=0, ge=0)


class ChecklistRequest(BaseModel):
    case: DisputeCase
    attachments: list[AttachmentDescriptor] = Field(default_factory=list)


class ChecklistItemResponse(BaseModel):
    id: str
    label: str
    rationale: str
    priority: str
    present: bool


class ChecklistResponse(BaseModel):
    reason: str
    by_priority: list[ChecklistItemResponse]
    by_strength: list[ChecklistItemResponse]
    missing_count: int
    missing_recommended_count: int
    completeness_warning: bool
