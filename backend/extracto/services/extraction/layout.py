"""Reading-order text reconstruction from positioned glyphs."""

import math
import re
from collections.abc import Iterable

from extracto.services.extraction.models import Glyph

ZERO_WIDTH_RE = re.compile(r"[\u200b-\u200d\u2060\ufeff\u00ad]")


def _is_blank(text: str) -> bool:
    """True for text made only of whitespace or zero-width characters."""
    return not ZERO_WIDTH_RE.sub("", text).strip()


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class LayoutTextExtractor:
    """Rebuild lines and columns of a statement page from its native glyphs.

    Glyphs are clustered into rows by vertical position, ordered left to right
    inside each row, and separated by a number of spaces proportional to the
    horizontal gap so amount and date columns keep their alignment.
    """

    def __init__(
        self,
        row_tolerance: float = 3.0,
        units_per_space: float = 4.0,
        max_spaces: int = 10,
    ):
        self.row_tolerance = row_tolerance
        self.units_per_space = units_per_space
        self.max_spaces = max_spaces

    def extract(self, glyphs: Iterable[Glyph], page_height: float) -> str:
        """
        Reconstruct page text from glyphs.

        Args:
            glyphs: Native text runs with bottom-up Y coordinates
            page_height: Height of the page in the same units

        Returns:
            Newline-joined rows, top to bottom
        """
        rows = self._group_rows(glyphs, page_height)
        return "\n".join(self._render_row(row) for row in rows)

    def _group_rows(self, glyphs: Iterable[Glyph], page_height: float) -> list[list[Glyph]]:
        positioned = [(page_height - g.y, g) for g in glyphs if not _is_blank(g.text)]
        positioned.sort(key=lambda item: item[0])

        rows: list[tuple[float, list[Glyph]]] = []
        for top_y, glyph in positioned:
            for row_y, members in rows:
                if abs(row_y - top_y) <= self.row_tolerance:
                    members.append(glyph)
                    break
            else:
                rows.append((top_y, [glyph]))

        return [sorted(members, key=lambda g: g.x) for _, members in rows]

    def _render_row(self, row: list[Glyph]) -> str:
        parts: list[str] = []
        last_end_x: float | None = None

        for glyph in row:
            if last_end_x is not None:
                spaces = _round_half_up((glyph.x - last_end_x) / self.units_per_space)
                if spaces > 0:
                    parts.append(" " * min(spaces, self.max_spaces))
            parts.append(glyph.text)
            last_end_x = glyph.x + (glyph.width or 0)

        return "".join(parts)


def glyphs_from_page(page) -> list[Glyph]:
    """
    Collect native text spans from a PyMuPDF page as glyphs.

    PyMuPDF reports top-down coordinates; span origins (baselines) are
    flipped so glyphs carry native bottom-up Y like the PDF content stream.

    Args:
        page: fitz.Page

    Returns:
        List of glyphs in content-stream order
    """
    page_height = page.rect.height
    glyphs: list[Glyph] = []

    text_dict = page.get_text("dict")
    for block in text_dict.get("blocks", []):
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "")
                if not text:
                    continue
                x0, _, x1, _ = span["bbox"]
                origin_x, origin_y = span["origin"]
                glyphs.append(
                    Glyph(
                        text=text,
                        x=origin_x,
                        y=page_height - origin_y,
                        width=x1 - x0,
                    )
                )

    return glyphs
