"""In-memory library of loaded manuals with cross-manual search."""
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from models.document import PageRecord
from models.session import ManualSession
from config import SEARCH_RESULT_LIMIT

logger = logging.getLogger(__name__)


@dataclass
class SearchHit:
    """One page of one manual matching a search term."""
    manual_id: str
    manual_name: str
    page_num: int
    snippet: str
    image_ref: Optional[str] = None


class ManualLibrary:
    """Registry of manual sessions, keyed by manual id."""

    def __init__(self):
        self._manuals: Dict[str, ManualSession] = {}

    def add(self, name: str, pages: List[PageRecord]) -> ManualSession:
        manual_id = self._generate_manual_id()
        session = ManualSession(manual_id=manual_id, name=name, pages=list(pages))
        self._manuals[manual_id] = session
        logger.info(f"Added manual {manual_id}: {name} ({len(pages)} pages)")
        return session

    def get(self, manual_id: str) -> Optional[ManualSession]:
        return self._manuals.get(manual_id)

    def list(self) -> List[ManualSession]:
        return list(self._manuals.values())

    def remove(self, manual_id: str) -> bool:
        removed = self._manuals.pop(manual_id, None)
        if removed:
            logger.info(f"Removed manual {manual_id}")
        return removed is not None

    def search(self, query: str, limit: int = SEARCH_RESULT_LIMIT) -> List[SearchHit]:
        """
        Case-insensitive substring search over every page of every manual.

        The snippet spans 50 characters before the first match to 100
        characters after its start.
        """
        if not query or not query.strip():
            return []

        lower_query = query.lower()
        hits = []
        for session in self._manuals.values():
            for page in session.pages:
                lower_text = page.text.lower()
                idx = lower_text.find(lower_query)
                if idx == -1:
                    continue
                snippet = page.text[max(0, idx - 50):idx + 100]
                hits.append(SearchHit(
                    manual_id=session.manual_id,
                    manual_name=session.name,
                    page_num=page.page_num,
                    snippet=f"...{snippet}...",
                    image_ref=page.image_ref
                ))

        logger.info(f"Search '{query}' matched {len(hits)} pages")
        return hits[:limit]

    def _generate_manual_id(self) -> str:
        """
        Generate a unique manual ID.

        Returns:
            Random hex ID, safe to generate from concurrent request threads
        """
        return f"manual_{uuid.uuid4().hex[:12]}"
