"""
Retrieval context builder for Manual Navigator.

Detects the intent category of a chat question with ordered keyword rules
and assembles a bounded context string from the knowledge buckets, falling
back to all buckets and then to raw page text.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from models.document import PageRecord
from models.knowledge import (
    CATEGORY_KEYS,
    KnowledgeBuckets,
    KnowledgeItem,
    RetrievalContext,
    SAFETY,
    PARTS,
    WARRANTY,
    PROCEDURES,
    ERRORS,
    VIDEO,
)
from config import MAX_RAW_CONTEXT_CHARS

logger = logging.getLogger(__name__)

SOURCE_CATEGORY = "category"
SOURCE_ALL_BUCKETS = "all_buckets"
SOURCE_RAW_PAGES = "raw_pages"
SOURCE_NONE = "none"


class ContextBuilder:
    """
    Builds the retrieval context for one chat turn.

    Intent rules are tried in order and the first match wins. Keywords are
    matched as plain substrings, so "safety" triggers the "safe" rule and
    "specifications" the "spec" rule.
    """

    DEFAULT_CATEGORY = PROCEDURES

    INTENT_RULES: List[Tuple[str, Tuple[str, ...]]] = [
        (SAFETY, ("safe", "warning", "danger", "hazard", "caution")),
        (PARTS, ("part", "spec", "dimension", "weight", "model", "cpu", "ram", "gpu")),
        (WARRANTY, ("warranty", "coverage", "support", "contact", "claim")),
        (ERRORS, ("error", "code", "diagnostic", "troubleshoot", "problem", "fix")),
        (VIDEO, ("video", "tutorial", "link", "url", "guide")),
    ]

    CATEGORY_SEPARATOR = "\n---\n"
    FLAT_SEPARATOR = "\n"

    def __init__(self, max_raw_chars: int = MAX_RAW_CONTEXT_CHARS):
        self.max_raw_chars = max_raw_chars
        self._patterns = [
            (category, re.compile("|".join(re.escape(k) for k in keywords)))
            for category, keywords in self.INTENT_RULES
        ]

    def detect_category(self, query: Optional[str]) -> str:
        """Return the intent category for a question, defaulting to procedures."""
        query_lower = (query or "").lower()
        for category, pattern in self._patterns:
            match = pattern.search(query_lower)
            if match:
                logger.debug(f"Intent: {category} (matched '{match.group(0)}') - {query_lower[:50]}")
                return category
        logger.debug(f"Intent: {self.DEFAULT_CATEGORY} (default) - {query_lower[:50]}")
        return self.DEFAULT_CATEGORY

    def build_context(
        self,
        query: Optional[str],
        buckets: KnowledgeBuckets,
        raw_pages: Sequence[PageRecord]
    ) -> RetrievalContext:
        """
        Assemble the context for a question. First non-empty source wins:

        1. Items of the detected category
        2. Items of every category, flattened in category order
        3. Raw page text, truncated to the character budget

        Args:
            query: User question
            buckets: Current knowledge buckets
            raw_pages: Reconstructed pages of the manual

        Returns:
            RetrievalContext with the detected category, the text and the
            fallback level that produced it
        """
        category = self.detect_category(query)

        text = self._render_items(buckets.get(category) or [], self.CATEGORY_SEPARATOR)
        if text:
            return self._result(category, text, SOURCE_CATEGORY)

        flattened = [
            item
            for key in CATEGORY_KEYS
            for item in buckets.get(key) or []
        ]
        text = self._render_items(flattened, self.FLAT_SEPARATOR)
        if text:
            return self._result(category, text, SOURCE_ALL_BUCKETS)

        if raw_pages:
            text = self.FLAT_SEPARATOR.join(
                f"[Page {page.page_num}] {page.text}" for page in raw_pages
            )[:self.max_raw_chars]
            if text:
                return self._result(category, text, SOURCE_RAW_PAGES)

        return self._result(category, "", SOURCE_NONE)

    @staticmethod
    def _render_items(items: Sequence[KnowledgeItem], separator: str) -> str:
        return separator.join(f"[Page {item.page}] {item.text}" for item in items)

    @staticmethod
    def _result(category: str, text: str, source: str) -> RetrievalContext:
        logger.info(f"Context for category={category}: source={source}, {len(text)} chars")
        return RetrievalContext(category=category, text=text, source=source)
