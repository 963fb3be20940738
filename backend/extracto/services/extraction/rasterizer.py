"""Page rendering and image encoding using PyMuPDF and Pillow."""

import asyncio
import io
import logging
import math

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from extracto.exceptions import PageRenderError, UnsupportedInputError
from extracto.services.extraction.layout import glyphs_from_page
from extracto.services.extraction.models import Bitmap, Glyph

logger = logging.getLogger(__name__)

ENCODINGS = {
    "jpeg": ("JPEG", "image/jpeg"),
    "png": ("PNG", "image/png"),
}

# Extra shrink on top of the size ratio to absorb JPEG overhead
COMPRESSION_HEADROOM = 0.8


class PdfDocument:
    """A PDF opened from bytes for the duration of one extraction."""

    def __init__(self, content: bytes):
        try:
            self._doc = fitz.open(stream=content, filetype="pdf")
        except Exception as e:
            raise UnsupportedInputError(f"Could not open PDF: {e}") from e

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def page_glyphs(self, page_index: int) -> tuple[list[Glyph], float]:
        """Return the native glyphs of a page and the page height."""
        page = self._doc.load_page(page_index)
        return glyphs_from_page(page), page.rect.height

    def load_page(self, page_index: int):
        return self._doc.load_page(page_index)

    def close(self) -> None:
        self._doc.close()

    def __enter__(self) -> "PdfDocument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _encode(image: Image.Image, encoding: str, quality: int) -> Bitmap:
    pil_format, mime_type = ENCODINGS[encoding]
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    buffer = io.BytesIO()
    if pil_format == "JPEG":
        image.save(buffer, format=pil_format, quality=quality, optimize=True)
    else:
        image.save(buffer, format=pil_format, optimize=True)

    return Bitmap(
        data=buffer.getvalue(),
        mime_type=mime_type,
        width=image.width,
        height=image.height,
    )


class PageRasterizer:
    """Render PDF pages to bitmaps at a configurable scale."""

    def __init__(self, scale: float = 1.5, jpeg_quality: int = 75):
        self.scale = scale
        self.jpeg_quality = jpeg_quality

    async def render(
        self,
        document: PdfDocument,
        page_index: int,
        scale: float | None = None,
        encoding: str = "jpeg",
    ) -> Bitmap:
        """
        Render one page off the event loop.

        Args:
            document: Open PDF document
            page_index: 0-based page index
            scale: Zoom factor (defaults to the rasterizer's scale)
            encoding: 'jpeg' for transmission-bound pages, 'png' for local OCR

        Returns:
            Encoded page bitmap

        Raises:
            PageRenderError: If the page cannot be rendered
        """
        scale = scale or self.scale
        try:
            return await asyncio.to_thread(self._render_sync, document, page_index, scale, encoding)
        except Exception as e:
            raise PageRenderError(f"Could not render page {page_index + 1}: {e}") from e

    def _render_sync(
        self, document: PdfDocument, page_index: int, scale: float, encoding: str
    ) -> Bitmap:
        page = document.load_page(page_index)
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)

        if encoding == "png":
            return Bitmap(
                data=pix.tobytes("png"),
                mime_type="image/png",
                width=pix.width,
                height=pix.height,
            )

        image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        bitmap = _encode(image, encoding, self.jpeg_quality)
        logger.debug(
            f"Rendered page {page_index + 1} at x{scale} "
            f"({bitmap.width}x{bitmap.height}, {bitmap.size / 1024:.0f}KB)"
        )
        return bitmap


def rasterize_image(content: bytes, encoding: str = "png", quality: int = 75) -> Bitmap:
    """
    Decode an uploaded image and re-encode its first frame.

    Raises:
        PageRenderError: If the bytes are not a decodable image
    """
    try:
        with Image.open(io.BytesIO(content)) as image:
            image.seek(0)
            return _encode(image.copy(), encoding, quality)
    except (UnidentifiedImageError, OSError) as e:
        raise PageRenderError(f"Could not decode image: {e}") from e


def compress_image(bitmap: Bitmap, max_bytes: int, quality: int = 60) -> Bitmap:
    """
    Downscale and recompress an image so it is likely to fit under max_bytes.

    A single lossy attempt: callers decide what to do if the result is still
    over the ceiling.
    """
    factor = min(1.0, math.sqrt(max_bytes / max(bitmap.size, 1))) * COMPRESSION_HEADROOM

    with Image.open(io.BytesIO(bitmap.data)) as image:
        width = max(1, int(image.width * factor))
        height = max(1, int(image.height * factor))
        resized = image.convert("RGB").resize((width, height), Image.Resampling.LANCZOS)

    compressed = _encode(resized, "jpeg", quality)
    logger.info(
        f"Compressed image {bitmap.size / 1024:.0f}KB -> {compressed.size / 1024:.0f}KB "
        f"({bitmap.width}x{bitmap.height} -> {width}x{height})"
    )
    return compressed
