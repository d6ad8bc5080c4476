"""Per-page compression with bypass and fallback policy."""
import logging
from typing import Callable, List, Optional, Sequence

from models.document import PageRecord
from models.knowledge import CompressedPage
from services.compression_client import CompressionClient
from services.errors import TransportFailure
from config import (
    SCALEDOWN_MODEL,
    COMPRESSION_RATE,
    COMPRESSION_MIN_LENGTH,
    COMPRESSION_MIN_RESULT_LENGTH,
)

logger = logging.getLogger(__name__)

# (page index starting at 1, total pages)
ProgressCallback = Callable[[int, int], None]

FAILURE_MARKERS = ("unavailable", "Invalid")

PAGE_CLEANING_PROMPT = """Clean and format this product manual page while preserving ALMOST ALL (95%+) of the content.

CRITICAL FORMATTING INSTRUCTIONS:
1.  **Reconstruct Tables & Lists:** PDF text extraction often jumbles columns. You MUST reorder these into a clean, sequential vertical list.
2.  **Use Pipe Separators:** If items are in columns, separate them with " | ". Example: "1. Card reader | 6. USB-A"
3.  **One Item Per Line:** Every numbered component, specification line, or warning must be on its own line.
4.  **Preserve Punctuation:** Keep all periods, commas, colons, and brackets exactly as they appear.

PRESERVE EXACTLY (Do NOT Filter):
- All text content (descriptions, notes, specs)
- All numbers and technical values
- All punctuation and formatting
- All columns and table structures

REMOVE ONLY:
- Repeated page headers/footers
- Page numbers (e.g. "Page 5 of 8")
- Marketing slogans
- Unnecessary symbols (e.g. trademark and copyright marks) where possible without breaking technical terms.

OUTPUT FORMAT (Generic Example):
1. [Component Name] | [Component Name]
2. [Component Name] - [Specifications with punctuation.]

[Section Title]
- [Detail 1] | [Detail 2]

Notes:
- [Note text with punctuation.]"""


class CompressionAdapter:
    """Applies the compression service to page text without ever failing a batch."""

    def __init__(
        self,
        client: CompressionClient,
        model: str = SCALEDOWN_MODEL,
        rate: float = COMPRESSION_RATE,
        min_length: int = COMPRESSION_MIN_LENGTH
    ):
        self.client = client
        self.model = model
        self.rate = rate
        self.min_length = min_length

    def compress(
        self,
        page_text: str,
        instruction_prompt: str = PAGE_CLEANING_PROMPT,
        model: Optional[str] = None,
        rate: Optional[float] = None
    ) -> str:
        """
        Compress one page, returning the text to use downstream.

        Short pages are returned untouched without calling the service. A
        result is accepted only if it is long enough and carries no failure
        marker; otherwise, and on any transport error, the original text is
        returned.
        """
        if len(page_text) < self.min_length:
            return page_text

        try:
            result = self.client.compress(
                context=page_text,
                prompt=instruction_prompt,
                model=model or self.model,
                rate=self.rate if rate is None else rate
            )
        except TransportFailure as e:
            logger.warning(f"Compression failed, keeping original text: {e}")
            return page_text

        if self._is_usable(result):
            return result

        logger.warning(f"Compression result rejected, keeping original text: {result[:60]!r}")
        return page_text

    def compress_pages(
        self,
        pages: Sequence[PageRecord],
        progress: Optional[ProgressCallback] = None
    ) -> List[CompressedPage]:
        """
        Compress pages one at a time, in page order.

        Pages whose text is blank are dropped from the result.
        """
        compressed = []
        total = len(pages)

        for index, page in enumerate(pages, start=1):
            if progress:
                progress(index, total)

            text = page.text or ""
            if len(text) < self.min_length and not text.strip():
                logger.debug(f"Dropping blank page {page.page_num}")
                continue

            compressed.append(CompressedPage(
                page_num=page.page_num,
                text=self.compress(text)
            ))

        logger.info(f"Compressed {len(compressed)} of {total} pages")
        return compressed

    @staticmethod
    def _is_usable(result: Optional[str]) -> bool:
        if not result or len(result) <= COMPRESSION_MIN_RESULT_LENGTH:
            return False
        return not any(marker in result for marker in FAILURE_MARKERS)
