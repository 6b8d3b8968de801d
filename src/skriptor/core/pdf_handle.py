"""PyMuPDF document handle with explicit, idempotent release."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import fitz  # PyMuPDF

from .errors import DecodeError, PageRangeError
from .models import ChannelKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImagePlacement:
    """A draw instruction on a page that paints an embedded raster image."""
    xref: int
    name: str
    width: int
    height: int
    smask: int = 0


@dataclass(frozen=True)
class RawImage:
    """Pixels of a resolved image object, one of the supported channel layouts."""
    pixels: bytes
    width: int
    height: int
    channels: ChannelKind


class PdfHandle:
    """An opened PDF bound to one ingestion request.

    PyMuPDF is not thread safe, so a handle must only be used from the thread
    that opened it. Always release it through ``with`` or ``open_pdf``.
    """

    def __init__(self, document: fitz.Document):
        self._doc = document
        self._closed = False
        self.close_count = 0
        self.page_count = document.page_count

    @classmethod
    def open(cls, data: bytes, password: Optional[str] = None) -> "PdfHandle":
        """Open a PDF from bytes.

        Raises:
            DecodeError: bytes are empty or not a PDF, the document has no
                pages, or it is encrypted without a usable password.
        """
        if not data:
            raise DecodeError("Empty PDF buffer")

        try:
            document = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise DecodeError(f"Unable to open PDF: {e}") from e

        # filetype is only a hint; HTML, SVG and text open as 1-page documents
        if not document.is_pdf:
            document.close()
            raise DecodeError("Not a PDF document")

        if document.needs_pass and not (password and document.authenticate(password)):
            document.close()
            raise DecodeError("PDF is encrypted and no valid password was supplied")

        if document.page_count == 0:
            document.close()
            raise DecodeError("PDF has no pages")

        return cls(document)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def metadata(self) -> Dict[str, str]:
        self._ensure_open()
        return {key: value for key, value in (self._doc.metadata or {}).items() if value}

    def get_page(self, page_number: int) -> fitz.Page:
        """Return a 1-indexed page."""
        self._ensure_open()
        if page_number < 1 or page_number > self.page_count:
            raise PageRangeError(page_number, self.page_count)
        return self._doc.load_page(page_number - 1)

    def image_instructions(self, page_number: int) -> List[ImagePlacement]:
        """List the image-painting instructions of a page in drawing order.

        Inline images carry no object reference and are skipped.
        """
        page = self.get_page(page_number)
        objects = {entry[0]: entry for entry in page.get_images(full=True)}
        placements = []
        for info in page.get_image_info(xrefs=True):
            xref = info.get("xref", 0)
            if not xref:
                continue
            entry = objects.get(xref)
            placements.append(
                ImagePlacement(
                    xref=xref,
                    name=entry[7] if entry else f"xref{xref}",
                    width=int(info.get("width") or (entry[2] if entry else 0)),
                    height=int(info.get("height") or (entry[3] if entry else 0)),
                    smask=entry[1] if entry else 0,
                )
            )
        return placements

    def resolve_image(self, xref: int, smask: int = 0) -> Optional[RawImage]:
        """Resolve an image object into raw pixels.

        Missing or malformed objects yield ``None`` instead of raising.
        """
        self._ensure_open()
        try:
            pix = fitz.Pixmap(self._doc, xref)
        except Exception as e:
            logger.debug(f"Image object {xref} could not be resolved: {e}")
            return None

        try:
            if smask and not pix.alpha:
                try:
                    pix = fitz.Pixmap(pix, fitz.Pixmap(self._doc, smask))
                except Exception as e:
                    logger.debug(f"Ignoring soft mask {smask} of image {xref}: {e}")

            colorants = pix.n - pix.alpha
            if colorants not in (1, 3):
                pix = fitz.Pixmap(fitz.csRGB, pix)
            elif colorants == 1 and pix.alpha:
                # gray + alpha has no matching channel layout
                pix = fitz.Pixmap(pix, 0)

            channels = ChannelKind(pix.n)
        except Exception as e:
            logger.debug(f"Image object {xref} has an unsupported layout: {e}")
            return None

        if pix.width <= 0 or pix.height <= 0:
            return None
        return RawImage(pixels=bytes(pix.samples), width=pix.width, height=pix.height, channels=channels)

    def close(self) -> None:
        """Release the native document. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.close_count += 1
        self._doc.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise DecodeError("PDF handle is already closed")

    def __enter__(self) -> "PdfHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@contextmanager
def open_pdf(data: bytes, password: Optional[str] = None) -> Iterator[PdfHandle]:
    """Open a PDF and guarantee it is closed on every exit path."""
    handle = PdfHandle.open(data, password=password)
    try:
        yield handle
    finally:
        handle.close()
