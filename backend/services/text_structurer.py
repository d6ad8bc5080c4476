"""Row/column text reconstruction from positioned PDF fragments."""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from models.document import TextFragment
from config import ROW_TOLERANCE, CONTIGUOUS_GAP, COLUMN_GAP

logger = logging.getLogger(__name__)

COLUMN_SEPARATOR = " | "
# Width guess per character when the parser reports none
FALLBACK_CHAR_WIDTH = 5.0


@dataclass
class _Placed:
    """Fragment resolved to top-down page coordinates."""
    text: str
    x: float
    top: float
    width: float


@dataclass
class _Row:
    top: float  # reference Y: the first fragment that opened the row
    items: List[_Placed] = field(default_factory=list)


class TextStructurer:
    """
    Rebuilds reading-order text for one page from unordered text fragments.

    Fragments are grouped into rows by a Y tolerance band, rows are emitted
    top to bottom, and fragments inside a row left to right. Horizontal gaps
    decide the joiner: nothing for contiguous runs, a space for word gaps
    and " | " for gaps wide enough to be a table column.
    """

    def __init__(
        self,
        row_tolerance: float = ROW_TOLERANCE,
        contiguous_gap: float = CONTIGUOUS_GAP,
        column_gap: float = COLUMN_GAP
    ):
        self.row_tolerance = row_tolerance
        self.contiguous_gap = contiguous_gap
        self.column_gap = column_gap

    def structure(
        self,
        fragments: Sequence[TextFragment],
        page_height: Optional[float] = None
    ) -> str:
        """
        Reconstruct page text.

        Args:
            fragments: Positioned text runs in any order
            page_height: Page height used to flip PDF user-space Y values to
                top-down. When None, Y values are taken as already top-down.

        Returns:
            Newline-joined rows, or "" when nothing usable was given
        """
        placed = self._place(fragments, page_height)
        if not placed:
            return ""

        rows = self._cluster_rows(placed)

        lines = []
        for row in rows:
            line = self._join_row(row.items)
            line = re.sub(r"\s+", " ", line).strip()
            if line:
                lines.append(line)

        logger.debug(f"Structured {len(placed)} fragments into {len(lines)} lines")
        return "\n".join(lines)

    def _place(
        self,
        fragments: Sequence[TextFragment],
        page_height: Optional[float]
    ) -> List[_Placed]:
        placed = []
        skipped = 0
        for fragment in fragments or []:
            text = getattr(fragment, "text", None)
            if not isinstance(text, str) or not text:
                skipped += 1
                continue

            x = _as_float(getattr(fragment, "x", None))
            y = _as_float(getattr(fragment, "y", None))
            # Missing coordinates land at the top-left corner
            if y is None:
                top = 0.0
            elif page_height is not None:
                top = page_height - y
            else:
                top = y

            placed.append(_Placed(
                text=text,
                x=x if x is not None else 0.0,
                top=top,
                width=_as_float(getattr(fragment, "width", None)) or 0.0,
            ))

        if skipped:
            logger.debug(f"Skipped {skipped} fragments without text")
        return placed

    def _cluster_rows(self, placed: List[_Placed]) -> List[_Row]:
        """
        Single pass over fragments in position order. Each fragment joins
        the first row whose reference Y is within tolerance, otherwise it
        opens a new row. Sorting first makes the result independent of the
        order the parser emitted fragments in.
        """
        rows: List[_Row] = []
        for item in sorted(placed, key=_position_key):
            row = next(
                (r for r in rows if abs(r.top - item.top) < self.row_tolerance),
                None
            )
            if row is None:
                row = _Row(top=item.top)
                rows.append(row)
            row.items.append(item)

        rows.sort(key=lambda r: r.top)
        for row in rows:
            row.items.sort(key=lambda i: (i.x, i.top, i.text, i.width))
        return rows

    def _join_row(self, items: List[_Placed]) -> str:
        parts = []
        previous = None
        for item in items:
            if previous is not None:
                previous_width = previous.width or len(previous.text) * FALLBACK_CHAR_WIDTH
                gap = item.x - (previous.x + previous_width)
                if gap > self.column_gap:
                    parts.append(COLUMN_SEPARATOR)
                elif gap > self.contiguous_gap:
                    parts.append(" ")
            parts.append(item.text)
            previous = item
        return "".join(parts).strip()


def _position_key(item: _Placed) -> Tuple[float, float, str, float]:
    return (item.top, item.x, item.text, item.width)


def _as_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    # NaN breaks sort ordering; treat non-finite values as missing
    return result if math.isfinite(result) else None
