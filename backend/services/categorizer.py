"""
Knowledge categorizer.

Sends the compressed manual to the LLM, repairs and parses its JSON answer,
and normalizes it into per-category knowledge buckets with placeholder and
noise entries filtered out.
"""

import json
import logging
import re
from typing import Any, List, Optional, Sequence

from models.knowledge import CATEGORY_KEYS, CompressedPage, KnowledgeBuckets, KnowledgeItem
from services.errors import ParseFailure
from services.llm_client import LLMClient, LLMClientError
from services.response_parser import parse_json_from_response
from config import CATEGORIZER_MODEL

logger = logging.getLogger(__name__)

CATEGORIZATION_PROMPT = """You are a product manual categorizer. Extract and SPLIT content from each page into the CORRECT categories.

CATEGORY DEFINITIONS:

1. **safety** - Extract ONLY:
   - "WARNING", "CAUTION", "DANGER", "HAZARD" statements
   - Electric shock, fire, injury risks
   - Safety certifications (UL, CE safety marks)
   - "Do not" safety instructions

2. **parts** - Extract ONLY:
   - Hardware components (ports, connectors, buttons, slots)
   - Numbered component lists (1. Card reader, 2. USB-C...)
   - Technical specifications (CPU, RAM, storage, display)
   - Dimensions, weight, materials
   - Model numbers, part numbers
   - Performance specs (frequency, speed, capacity)
   - DO NOT include warranty text here

3. **warranty** - Extract ONLY:
   - Warranty duration ("1 year", "3 years", "limited warranty")
   - Coverage terms, limitations, exclusions
   - How to claim warranty
   - Contact info for warranty service
   - Any text containing "warranty", "coverage", "guarantee"

4. **procedures** - Extract ONLY:
   - Setup/installation steps
   - How-to instructions
   - Maintenance procedures
   - Configuration guides

5. **errors** - Extract ONLY:
   - Error codes (E001, Error 5...)
   - Troubleshooting steps
   - LED indicator meanings
   - "If X happens, do Y"

6. **video** - Extract ONLY:
   - URLs starting with http://, https://, or www.
   - QR codes
   - Video/support links

CRITICAL RULES:
- A SINGLE PAGE can appear in MULTIPLE categories if it has mixed content
- SPLIT the content: warranty text goes to warranty, specs go to parts
- Example: If page 6 has specs AND warranty info, create TWO entries:
  - {"page": 6, "text": "specs only..."} in parts
  - {"page": 6, "text": "warranty only..."} in warranty
- Remove unnecessary * and other symbols or trademarks.
- Use newlines wherever necessary.
- Preserve line breaks in text
- Output format per item: {"page": number, "text": "relevant content only"}

OUTPUT: Valid JSON only:
{"safety":[],"parts":[],"warranty":[],"procedures":[],"errors":[],"video":[]}"""

PLACEHOLDER_VALUES = {"none", "n/a", "na", "-"}
PLACEHOLDER_PREFIXES = ("no ", "none ", "please visit")
MIN_ITEM_LENGTH = 3


class KnowledgeCategorizer:
    """Turns compressed pages into normalized knowledge buckets."""

    def __init__(
        self,
        llm_client: LLMClient,
        model: str = CATEGORIZER_MODEL,
        max_tokens: int = 8192
    ):
        self.llm_client = llm_client
        self.model = model
        self.max_tokens = max_tokens

    def categorize(self, compressed_pages: Sequence[CompressedPage]) -> KnowledgeBuckets:
        """
        Categorize the whole manual in one LLM call.

        Args:
            compressed_pages: Pages in page order

        Returns:
            Buckets keyed by category; categories with no items are absent

        Raises:
            ParseFailure: Response could not be parsed into a JSON object
            InvalidResponseStructure: LLM response had no text
            LLMClientError: LLM call failed in both JSON and plain mode
        """
        context = self.build_context(compressed_pages)
        prompt = CATEGORIZATION_PROMPT + "\n\nMANUAL CONTENT:\n" + context

        raw = self._request(prompt)
        data = parse_json_from_response(raw)
        if not isinstance(data, dict):
            raise ParseFailure(f"Expected a JSON object, got {type(data).__name__}")

        buckets = self.normalize(data)
        logger.info(
            f"Categorized {len(compressed_pages)} pages into "
            f"{sum(len(v) for v in buckets.values())} items across {len(buckets)} categories"
        )
        return buckets

    def _request(self, prompt: str) -> str:
        # Not every model supports JSON mode; retry plain and let the parser cope
        try:
            response = self.llm_client.generate(
                prompt,
                model=self.model,
                json_mode=True,
                max_tokens=self.max_tokens,
                temperature=0.2
            )
        except LLMClientError as e:
            logger.warning(f"JSON mode request failed ({e.error.code}), retrying without JSON mode")
            response = self.llm_client.generate(
                prompt,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.2
            )
        return response.text

    @staticmethod
    def build_context(compressed_pages: Sequence[CompressedPage]) -> str:
        return "\n\n".join(
            f"[PAGE {page.page_num}]:\n{page.text}" for page in compressed_pages
        )

    @staticmethod
    def normalize(data: dict) -> KnowledgeBuckets:
        """
        Normalize raw categorizer output into knowledge buckets.

        Items may be {"page", "text"} objects, objects with arbitrary fields
        instead of "text", or bare strings. Placeholder and noise entries are
        dropped, and so are categories left without items.
        """
        buckets: KnowledgeBuckets = {}

        for key in CATEGORY_KEYS:
            raw_items = data.get(key)
            if not isinstance(raw_items, list) or not raw_items:
                continue

            normalized: List[KnowledgeItem] = []
            for raw in raw_items:
                item = normalize_item(raw)
                if item is not None:
                    normalized.append(item)

            if normalized:
                buckets[key] = normalized

        return buckets


def normalize_item(raw: Any) -> Optional[KnowledgeItem]:
    """Normalize one raw item; returns None for placeholders and noise."""
    if isinstance(raw, str):
        raw = {"text": raw}
    if not isinstance(raw, dict):
        return None

    page = _page_number(raw.get("page"))

    text = raw.get("text")
    if not isinstance(text, str):
        text = _synthesize_text(raw)

    cleaned = re.sub(r"\s+", " ", text).strip()
    if is_placeholder_text(cleaned):
        return None
    return KnowledgeItem(page=page, text=cleaned)


def is_placeholder_text(text: Optional[str]) -> bool:
    """True for empty, filler ("N/A", "None ...") or too-short text."""
    if not text:
        return True
    cleaned = re.sub(r"\s+", " ", str(text)).strip()
    if not cleaned:
        return True
    lowered = cleaned.lower()
    if lowered in PLACEHOLDER_VALUES:
        return True
    if lowered.startswith(PLACEHOLDER_PREFIXES):
        return True
    return len(cleaned) < MIN_ITEM_LENGTH


def _page_number(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.strip()
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _synthesize_text(raw: dict) -> str:
    """Build "key: value" text from the non-page fields of a structured item."""
    parts = []
    for key, value in raw.items():
        if key == "page" or value is None or isinstance(value, bool):
            continue
        if isinstance(value, str):
            if value.strip():
                parts.append(f"{key}: {value}")
        elif isinstance(value, (int, float)):
            parts.append(f"{key}: {value}")
        elif isinstance(value, list):
            if value:
                parts.append(f"{key}: {', '.join(_flat(v) for v in value)}")
        elif isinstance(value, dict):
            parts.append(f"{key}: {json.dumps(value, ensure_ascii=False)}")
    return " | ".join(parts)


def _flat(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)
