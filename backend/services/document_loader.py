"""Document loading service for PDF manuals."""
import base64
import logging
from typing import Callable, List, Optional
import fitz  # PyMuPDF

from models.document import PageRecord, TextFragment
from services.text_structurer import TextStructurer
from services.llm_client import LLMClient, LLMClientError, ImageData
from services.errors import InvalidResponseStructure
from config import OCR_MIN_TEXT_LENGTH

logger = logging.getLogger(__name__)

OCR_PROMPT = """Extract ALL text visible in this page image. Include every word exactly as shown.
Preserve table structure: output each table row on its own line with columns separated by " | ".
Include numbered lists, labels, notes, headers, and footnotes. Do not summarize or paraphrase."""

THUMBNAIL_SCALE = 0.5
OCR_SCALE = 2.0


class DocumentLoader:
    """Loads PDF manuals into reconstructed page records."""

    def __init__(
        self,
        structurer: Optional[TextStructurer] = None,
        llm_client: Optional[LLMClient] = None,
        ocr_min_length: int = OCR_MIN_TEXT_LENGTH
    ):
        """
        Initialize DocumentLoader.

        Args:
            structurer: Text structurer used to rebuild page text
            llm_client: LLM client for the vision OCR fallback; None disables it
            ocr_min_length: Pages with less structured text than this go to OCR
        """
        self.structurer = structurer or TextStructurer()
        self.llm_client = llm_client
        self.ocr_min_length = ocr_min_length

    def load_pdf(
        self,
        filepath: str,
        progress: Optional[Callable[[int, int], None]] = None
    ) -> List[PageRecord]:
        """Load a PDF from disk."""
        pdf_document = fitz.open(filepath)
        try:
            return self._load(pdf_document, progress)
        finally:
            pdf_document.close()

    def load_bytes(
        self,
        data: bytes,
        progress: Optional[Callable[[int, int], None]] = None
    ) -> List[PageRecord]:
        """Load a PDF from an in-memory upload."""
        pdf_document = fitz.open(stream=data, filetype="pdf")
        try:
            return self._load(pdf_document, progress)
        finally:
            pdf_document.close()

    def _load(self, pdf_document, progress) -> List[PageRecord]:
        pages = []
        total_pages = len(pdf_document)

        for page_index in range(total_pages):
            if progress:
                progress(page_index + 1, total_pages)

            page = pdf_document[page_index]
            pages.append(self._load_page(page, page_index + 1))

        logger.info(f"Loaded {total_pages} pages")
        return pages

    def _load_page(self, page, page_num: int) -> PageRecord:
        page_height = page.rect.height
        fragments = self.extract_fragments(page)
        text = self.structurer.structure(fragments, page_height)

        links = [
            link["uri"]
            for link in page.get_links()
            if link.get("uri")
        ]

        image_ref = _render_data_url(page, THUMBNAIL_SCALE, quality=80)

        if len(text) < self.ocr_min_length and self.llm_client is not None:
            ocr_text = self._ocr_page(page, page_num)
            if ocr_text and len(ocr_text) > len(text):
                logger.info(f"Using OCR text for page {page_num} ({len(ocr_text)} chars)")
                text = ocr_text

        return PageRecord(page_num=page_num, text=text, image_ref=image_ref, links=links)

    @staticmethod
    def extract_fragments(page) -> List[TextFragment]:
        """
        Collect text spans as fragments in PDF user space.

        PyMuPDF reports coordinates from the top edge; Y is flipped so the
        structurer receives the parser convention (origin bottom-left).
        """
        page_height = page.rect.height
        fragments = []

        blocks = page.get_text("dict").get("blocks", [])
        for block in blocks:
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    x0, _, x1, _ = span["bbox"]
                    baseline = span.get("origin", (x0, span["bbox"][3]))[1]
                    fragments.append(TextFragment(
                        text=span.get("text"),
                        x=x0,
                        y=page_height - baseline,
                        width=x1 - x0
                    ))

        return fragments

    def _ocr_page(self, page, page_num: int) -> str:
        try:
            pixmap = page.get_pixmap(matrix=fitz.Matrix(OCR_SCALE, OCR_SCALE))
            image = ImageData(
                base64=base64.b64encode(pixmap.tobytes("jpeg", jpg_quality=90)).decode("ascii"),
                mime_type="image/jpeg"
            )
            response = self.llm_client.generate(OCR_PROMPT, image=image, temperature=0.0)
            return response.text.strip()
        except (LLMClientError, InvalidResponseStructure) as e:
            logger.warning(f"OCR fallback failed for page {page_num}, keeping extracted text: {e}")
            return ""


def _render_data_url(page, scale: float, quality: int) -> str:
    pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
    encoded = base64.b64encode(pixmap.tobytes("jpeg", jpg_quality=quality)).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"
