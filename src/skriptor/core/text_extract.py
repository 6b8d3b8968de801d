"""Plain text extraction from an opened PDF."""

from typing import List, NamedTuple

from .pdf_handle import PdfHandle


class TextExtraction(NamedTuple):
    text: str
    page_count: int
    pages: List[str]


def extract_page_texts(handle: PdfHandle) -> List[str]:
    """Return the text of every page in order."""
    return [handle.get_page(number).get_text() for number in range(1, handle.page_count + 1)]


def extract_text(handle: PdfHandle) -> TextExtraction:
    """Merge the text of all pages into one continuous string.

    Page boundaries are not marked in ``text``; ``pages`` keeps the per-page
    texts for callers that need page positions.
    """
    pages = extract_page_texts(handle)
    text = "\n".join(page.rstrip("\n") for page in pages)
    return TextExtraction(text=text, page_count=handle.page_count, pages=pages)
