"""Knowledge index data models and category definitions."""
from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class Category:
    """Display metadata and extraction instruction for one knowledge category."""
    key: str
    label: str
    color: str
    instruction: str


SAFETY = "safety"
PARTS = "parts"
WARRANTY = "warranty"
PROCEDURES = "procedures"
ERRORS = "errors"
VIDEO = "video"

# Declaration order is the rendering order of the knowledge index
CATEGORIES: Dict[str, Category] = {
    SAFETY: Category(
        key=SAFETY,
        label="Safety",
        color="#ff4d4f",
        instruction=(
            "Extract safety warnings, cautions, hazards, and operating restrictions. "
            "Remove pages without explicit safety info."
        ),
    ),
    PARTS: Category(
        key=PARTS,
        label="Parts & Specs",
        color="#1890ff",
        instruction=(
            "Extract component names, model numbers, port types, dimensions, weight, "
            "and specifications."
        ),
    ),
    WARRANTY: Category(
        key=WARRANTY,
        label="Warranty",
        color="#52c41a",
        instruction="Extract warranty duration, coverage terms, claim procedures, and support contacts.",
    ),
    PROCEDURES: Category(
        key=PROCEDURES,
        label="Procedures",
        color="#fa8c16",
        instruction="Extract step-by-step instructions, setup guides, and maintenance procedures.",
    ),
    ERRORS: Category(
        key=ERRORS,
        label="Errors & Diagnostics",
        color="#eb2f96",
        instruction=(
            "Extract error codes, troubleshooting tables, diagnostic LED states, "
            "and problem/solution lists."
        ),
    ),
    VIDEO: Category(
        key=VIDEO,
        label="Links & Tutorials",
        color="#722ed1",
        instruction="Extract URLs, QR codes, and references to video tutorials or online guides.",
    ),
}

CATEGORY_KEYS: List[str] = list(CATEGORIES)


@dataclass
class KnowledgeItem:
    """A normalized fact attributed to a source page."""
    page: int
    text: str

    def to_dict(self) -> Dict[str, object]:
        return {"page": self.page, "text": self.text}


# Category key -> items in categorizer order. Absent key means nothing found.
KnowledgeBuckets = Dict[str, List[KnowledgeItem]]


@dataclass
class CompressedPage:
    """Page text after the compression step of one extraction run."""
    page_num: int
    text: str


@dataclass
class RetrievalContext:
    """Context handed to the answer generator for one chat turn.

    Attributes:
        category: Detected intent category
        text: Rendered context (may be empty)
        source: Which fallback level produced the text:
            "category", "all_buckets", "raw_pages" or "none"
    """
    category: str
    text: str
    source: str = "none"


def count_items(buckets: KnowledgeBuckets) -> int:
    """Total number of knowledge items across all buckets."""
    return sum(len(items) for items in buckets.values())
