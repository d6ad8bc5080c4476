"""Manual session aggregate owning pages and derived knowledge."""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from models.document import PageRecord
from models.knowledge import CATEGORY_KEYS, KnowledgeBuckets, KnowledgeItem


class ExtractionStatus(str, Enum):
    """Lifecycle of a session's knowledge index."""
    UNEXTRACTED = "unextracted"
    EXTRACTING = "extracting"
    READY = "ready"
    FAILED = "failed"


# Per-category state reported alongside the pruned bucket mapping
CATEGORY_UNEXTRACTED = "unextracted"
CATEGORY_EMPTY = "empty"
CATEGORY_POPULATED = "populated"


@dataclass
class ManualSession:
    """
    One loaded manual: its pages and the knowledge derived from them.

    Buckets are derived state. They are only ever replaced as a whole
    (see replace_buckets) and are discarded when the pages change.
    """
    manual_id: str
    name: str
    pages: List[PageRecord] = field(default_factory=list)
    buckets: KnowledgeBuckets = field(default_factory=dict)
    status: ExtractionStatus = ExtractionStatus.UNEXTRACTED
    last_error: str = ""
    category_stats: Dict[str, int] = field(
        default_factory=lambda: {key: 0 for key in CATEGORY_KEYS}
    )
    total_queries: int = 0
    resolved_queries: int = 0
    date_added: datetime = field(default_factory=datetime.now)
    _extraction_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def is_extracting(self) -> bool:
        return self._extraction_lock.locked()

    def try_begin_extraction(self) -> bool:
        """Claim the extraction slot; returns False if a run is already in flight."""
        if not self._extraction_lock.acquire(blocking=False):
            return False
        self.status = ExtractionStatus.EXTRACTING
        return True

    def end_extraction(self) -> None:
        self._extraction_lock.release()

    def replace_pages(self, pages: List[PageRecord]) -> None:
        """Swap in new pages; knowledge derived from the old ones is dropped."""
        self.pages = list(pages)
        self.buckets = {}
        self.status = ExtractionStatus.UNEXTRACTED
        self.last_error = ""

    def replace_buckets(self, buckets: KnowledgeBuckets) -> None:
        self.buckets = buckets
        self.status = ExtractionStatus.READY
        self.last_error = ""

    def mark_failed(self, message: str) -> None:
        # Buckets from a previous successful run are kept
        self.status = ExtractionStatus.FAILED
        self.last_error = message

    def record_category(self, category: str) -> None:
        self.category_stats[category] = self.category_stats.get(category, 0) + 1

    def record_query(self) -> None:
        self.total_queries += 1

    def record_resolved(self) -> None:
        # A query counts as resolved once an answer was generated
        self.resolved_queries += 1

    def category_state(self, category: str) -> str:
        """Distinguish "not yet categorized" from "categorized, found nothing"."""
        if self.buckets.get(category):
            return CATEGORY_POPULATED
        if self.status == ExtractionStatus.READY:
            return CATEGORY_EMPTY
        return CATEGORY_UNEXTRACTED

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible snapshot for the storage collaborator."""
        return {
            "id": self.manual_id,
            "name": self.name,
            "pageCount": self.page_count,
            "dateAdded": self.date_added.isoformat(),
            "pages": [page.to_dict() for page in self.pages],
            "knowledge": {
                key: [item.to_dict() for item in items]
                for key, items in self.buckets.items()
            },
            "status": self.status.value,
            "categoryStats": dict(self.category_stats),
            "totalQueries": self.total_queries,
            "resolvedQueries": self.resolved_queries,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualSession":
        session = cls(
            manual_id=str(data["id"]),
            name=data.get("name", ""),
            pages=[PageRecord.from_dict(p) for p in data.get("pages", [])],
        )
        if data.get("dateAdded"):
            session.date_added = datetime.fromisoformat(data["dateAdded"])
        knowledge = data.get("knowledge") or {}
        if knowledge:
            session.buckets = {
                key: [KnowledgeItem(page=int(i["page"]), text=i["text"]) for i in items]
                for key, items in knowledge.items()
                if key in CATEGORY_KEYS and items
            }
        status = data.get("status")
        if status in (ExtractionStatus.READY.value, ExtractionStatus.FAILED.value):
            session.status = ExtractionStatus(status)
        session.category_stats.update(data.get("categoryStats") or {})
        session.total_queries = int(data.get("totalQueries") or 0)
        session.resolved_queries = int(data.get("resolvedQueries") or 0)
        return session
