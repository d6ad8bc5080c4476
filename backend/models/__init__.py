"""Data models for Manual Navigator."""
from .document import TextFragment, PageRecord
from .knowledge import (
    Category,
    CATEGORIES,
    CATEGORY_KEYS,
    KnowledgeItem,
    KnowledgeBuckets,
    CompressedPage,
    RetrievalContext,
)
from .session import ManualSession, ExtractionStatus
from .api import QueryRequest, QueryResponse, ResponseMetadata, TokenUsage, ImagePayload

__all__ = [
    "TextFragment",
    "PageRecord",
    "Category",
    "CATEGORIES",
    "CATEGORY_KEYS",
    "KnowledgeItem",
    "KnowledgeBuckets",
    "CompressedPage",
    "RetrievalContext",
    "ManualSession",
    "ExtractionStatus",
    "QueryRequest",
    "QueryResponse",
    "ResponseMetadata",
    "TokenUsage",
    "ImagePayload",
]
