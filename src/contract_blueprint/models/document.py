"""Document registry records for the Contract Blueprint pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional

from .enums import AnalysisFeature


@dataclass(frozen=True)
class DocumentMeta:
    """
    Uploaded document as listed by the document registry.

    Routing only ever looks at byte_size, the requested features and the
    optional page count hint; file bytes are read by the backends.
    """
    document_id: str
    original_filename: str
    byte_size: int
    stored_path: str
    upload_timestamp: datetime
    features: FrozenSet[AnalysisFeature] = field(
        default_factory=lambda: frozenset({AnalysisFeature.TEXT})
    )
    page_count: Optional[int] = None
