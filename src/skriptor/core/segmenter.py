"""Rule-based section splitting, used when AI structuring is unavailable."""

import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .models import (
    ParsedSection,
    SectionType,
    StructuredDocument,
    StructuredSection,
    TocEntry,
)

INTRO_TITLE = "Einleitung"
CONTENT_TITLE = "Inhalt"
MIN_SECTION_CHARS = 100
MAX_HEADER_CHARS = 100

HEADER_PATTERNS = [
    re.compile(r"^(\d+\.[\d.]*)\s+(.+)$"),                        # 1. Section, 1.1 Subsection
    re.compile(r"^(Kapitel|Chapter)\s+(\d+)[:\s]+(.+)$", re.IGNORECASE),
    re.compile(r"^([IVXLCDM]+\.?)\s+(.+)$"),                      # roman numerals
    re.compile(r"^([A-Z][A-Z\s]{2,})$"),                          # ALL CAPS
]


def clean_text(text: str) -> str:
    text = text.replace("\r\n", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def match_header(line: str) -> Optional[str]:
    """Return a header title if the line matches one of the heading patterns."""
    for pattern in HEADER_PATTERNS:
        match = pattern.match(line)
        if match:
            return " ".join(group for group in match.groups() if group).strip()
    return None


def _looks_like_title(line: str, prev_line: str, next_line: str) -> bool:
    # Short line after a blank line, followed by text, without sentence punctuation
    if not 3 < len(line) < MAX_HEADER_CHARS:
        return False
    if prev_line or not next_line:
        return False
    return not line.endswith((".", ",", ";"))



def tag_lines(pages: Sequence[str], first_page: Optional[int] = 1) -> List[Tuple[str, Optional[int]]]:
    """Split page texts into lines tagged with their 1-indexed page number.

    Runs of blank lines collapse into one and leading or trailing blank lines
    are dropped. With ``first_page=None`` every line is tagged ``None``.
    """
    tagged: List[Tuple[str, Optional[int]]] = []
    for offset, page_text in enumerate(pages):
        page = first_page + offset if first_page is not None else None
        for line in page_text.replace("\r\n", "\n").rstrip("\n").split("\n"):
            blank = not line.strip()
            if blank and (not tagged or not tagged[-1][0].strip()):
                continue
            tagged.append((line, page))
    while tagged and not tagged[-1][0].strip():
        tagged.pop()
    return tagged


def split_sections(text: str) -> List[ParsedSection]:
    """Split merged document text into titled sections.

    Lines before the first header become an introduction section. Sections
    under ``MIN_SECTION_CHARS`` are folded into the next one so that one-line
    false-positive headers do not survive as sections.
    """
    return _segment(tag_lines([clean_text(text)], first_page=None))


def split_page_sections(pages: Sequence[str]) -> List[ParsedSection]:
    """Like :func:`split_sections`, with page ranges taken from the pages each section's lines sit on."""
    return _segment(tag_lines(pages))


def _segment(lines: List[Tuple[str, Optional[int]]]) -> List[ParsedSection]:
    sections: List[ParsedSection] = []
    current_title: Optional[str] = None
    current_lines: List[str] = []
    current_start: Optional[int] = None
    current_end: Optional[int] = None
    current_intro = False

    def flush() -> None:
        if current_title is not None and current_lines:
            sections.append(
                ParsedSection(
                    title=current_title,
                    content="\n".join(current_lines).strip(),
                    order_index=len(sections),
                    page_start=current_start,
                    page_end=current_end,
                    is_intro=current_intro,
                )
            )

    for i, (raw_line, page) in enumerate(lines):
        line = raw_line.strip()
        if not line:
            continue

        title = match_header(line)
        if title is None:
            prev_line = lines[i - 1][0].strip() if i > 0 else ""
            next_line = lines[i + 1][0].strip() if i + 1 < len(lines) else ""
            if _looks_like_title(line, prev_line, next_line):
                title = line

        if title:
            flush()
            current_title, current_lines, current_intro = title, [], False
            current_start = current_end = page
        elif current_title is not None:
            current_lines.append(line)
            current_end = page
        else:
            current_title, current_lines, current_intro = INTRO_TITLE, [line], True
            current_start = current_end = page

    flush()

    if not sections:
        content = "\n".join(line for line, _ in lines).strip()
        return [ParsedSection(title=CONTENT_TITLE, content=content, order_index=0)]

    return merge_short_sections(sections)


def merge_short_sections(sections: List[ParsedSection], min_chars: int = MIN_SECTION_CHARS) -> List[ParsedSection]:
    """Fold every too-short section into its successor, keeping both titles.

    The merged section starts on the short section's page and keeps the
    successor's intro flag.
    """
    pending = [section.model_copy() for section in sections]
    merged: List[ParsedSection] = []
    for i, section in enumerate(pending):
        if len(section.content) < min_chars and i < len(pending) - 1:
            following = pending[i + 1]
            following.content = f"{section.content}\n\n{following.content}"
            following.title = f"{section.title} - {following.title}"
            if section.page_start is not None:
                following.page_start = section.page_start
            continue
        merged.append(section.model_copy(update={"order_index": len(merged)}))
    return merged


def fallback_document(
    text: str,
    filename: str,
    page_count: int,
    page_texts: Optional[Sequence[str]] = None,
) -> StructuredDocument:
    """Build a structured document from the heuristic sections alone.

    With ``page_texts`` the sections carry the pages they were found on, so
    extracted images can be joined to them.
    """
    parsed_sections = split_page_sections(page_texts) if page_texts is not None else split_sections(text)

    sections: List[StructuredSection] = []
    toc: List[TocEntry] = []
    chapter = 0
    for parsed in parsed_sections:
        if parsed.is_intro:
            chapter_number = "intro"
        else:
            chapter += 1
            chapter_number = str(chapter)
        sections.append(
            StructuredSection(
                title=parsed.title,
                content=parsed.content,
                section_type=SectionType.CHAPTER,
                level=0,
                chapter_number=chapter_number,
                page_start=parsed.page_start,
                page_end=parsed.page_end,
            )
        )
        toc.append(
            TocEntry(
                title=parsed.title,
                page=parsed.page_start,
                section_type=SectionType.CHAPTER,
                chapter_number=chapter_number,
            )
        )

    if page_count > 0 and len(sections) == 1:
        sections[0].page_start, sections[0].page_end = 1, page_count
        toc[0].page = 1

    return StructuredDocument(title=Path(filename).stem or filename, sections=sections, table_of_contents=toc)
