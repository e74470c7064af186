from disputeshield.export.composer import ComposedDocument, DocumentGenerationError, compose
from disputeshield.export.evidence import (
    EvidenceItem,
    evaluate,
    needs_completeness_warning,
    rank_by_priority,
    rank_by_strength,
)
from disputeshield.export.packet import PacketAssemblyError, archive_file_name, assemble

__all__ = [
    "ComposedDocument",
    "DocumentGenerationError",
    "EvidenceItem",
    "PacketAssemblyError",
    "archive_file_name",
    "assemble",
    "compose",
    "evaluate",
    "needs_completeness_warning",
    "rank_by_priority",
    "rank_by_strength",
]
