"""Knowledge extraction run: compress every page, then categorize the manual."""
import logging
import time
from typing import Callable, Optional

from models.knowledge import KnowledgeBuckets, count_items
from models.session import ManualSession
from services.compression_adapter import CompressionAdapter
from services.categorizer import KnowledgeCategorizer
from services.errors import ExtractionInProgress

logger = logging.getLogger(__name__)

# Receives a human readable status line
StatusCallback = Callable[[str], None]


class KnowledgeExtractor:
    """Runs the extraction pipeline against a manual session."""

    def __init__(self, compressor: CompressionAdapter, categorizer: KnowledgeCategorizer):
        self.compressor = compressor
        self.categorizer = categorizer
        logger.info("Initialized KnowledgeExtractor")

    def extract(
        self,
        session: ManualSession,
        status: Optional[StatusCallback] = None
    ) -> KnowledgeBuckets:
        """
        Rebuild the session's knowledge buckets.

        Only one run per session may be in flight; a second request is
        rejected rather than queued. The session's buckets are replaced only
        once the categorizer output has been fully parsed and normalized. On
        failure the previous buckets stay in place and the error propagates.

        Raises:
            ExtractionInProgress: Another run holds the session
            ParseFailure, InvalidResponseStructure, LLMClientError: Categorization failed
        """
        if not session.try_begin_extraction():
            raise ExtractionInProgress(session.manual_id)

        report = status or (lambda message: None)
        start_time = time.time()

        try:
            def on_page(index: int, total: int) -> None:
                report(f"Compressing page {index}/{total}...")

            compressed = self.compressor.compress_pages(session.pages, progress=on_page)

            report("Analyzing with AI...")
            buckets = self.categorizer.categorize(compressed)
            session.replace_buckets(buckets)
        except Exception as e:
            session.mark_failed(str(e))
            logger.error(
                f"Knowledge extraction failed for manual {session.manual_id}: {e}",
                exc_info=True,
                extra={"manual_id": session.manual_id}
            )
            raise
        finally:
            session.end_extraction()

        total_found = count_items(buckets)
        elapsed_ms = int((time.time() - start_time) * 1000)
        report(f"Ready! Found {total_found} knowledge items")
        logger.info(
            f"Extracted {total_found} knowledge items for manual {session.manual_id} in {elapsed_ms}ms",
            extra={"manual_id": session.manual_id, "items": total_found}
        )
        return buckets
