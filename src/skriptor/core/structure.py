"""AI-assisted hierarchical structuring of extracted document text."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from tenacity import Retrying, stop_after_attempt, wait_exponential

from .errors import StructuringError
from .logging_config import get_audit_logger, log_stage_failure
from .models import (
    DocumentMetadata,
    SectionType,
    StructuredDocument,
    StructuredSection,
    TocEntry,
)
from .prompts import (
    STRUCTURE_SYSTEM_PROMPT,
    TRUNCATION_MARKER,
    build_user_prompt,
    image_hint,
)

logger = get_audit_logger("structure")

FALLBACK_SECTION_TITLE = "Inhalt"
MAX_LEVEL = 2


def document_title_from_filename(filename: str) -> str:
    return Path(filename).stem or filename


def truncate_text(text: str, max_chars: int) -> str:
    """Cut text to the model's character budget, marking the cut."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def _page(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        page = int(value)
    except (TypeError, ValueError):
        return None
    return page if page > 0 else None


def _level(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        level = int(value)
    except (TypeError, ValueError):
        return 0
    return min(max(level, 0), MAX_LEVEL)


def _chapter_number(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return "0"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or "0"


def _optional_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _keywords(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def normalize_section(raw: Dict[str, Any], position: int) -> Optional[StructuredSection]:
    """Coerce one model-produced section onto the section schema.

    Returns ``None`` for entries carrying neither title nor content.
    """
    title = _optional_text(raw.get("title"))
    content = raw.get("content")
    content = content if isinstance(content, str) else ("" if content is None else str(content))
    if not title and not content.strip():
        return None

    page_start = _page(raw.get("pageStart", raw.get("page_start")))
    page_end = _page(raw.get("pageEnd", raw.get("page_end")))
    if page_start is not None and page_end is not None and page_end < page_start:
        page_end = page_start

    return StructuredSection(
        title=title or f"Abschnitt {position + 1}",
        content=content,
        section_type=SectionType.coerce(raw.get("section_type")),
        level=_level(raw.get("level")),
        chapter_number=_chapter_number(raw.get("chapter_number")),
        page_start=page_start,
        page_end=page_end,
        summary=_optional_text(raw.get("summary")),
        task_number=_optional_text(raw.get("task_number")),
        keywords=_keywords(raw.get("keywords")),
        solution_id=_optional_text(raw.get("solution_id")),
        exercise_id=_optional_text(raw.get("exercise_id")),
    )


def _toc_entry(raw: Dict[str, Any]) -> Optional[TocEntry]:
    title = _optional_text(raw.get("title"))
    if not title:
        return None
    section_type = raw.get("section_type")
    return TocEntry(
        title=title,
        page=_page(raw.get("page")),
        section_type=SectionType.coerce(section_type) if section_type is not None else None,
        level=_level(raw.get("level")),
        chapter_number=_chapter_number(raw.get("chapter_number")),
    )


def parse_structured_response(content: Optional[str], filename: str) -> StructuredDocument:
    """Parse and validate the model's JSON answer.

    Raises:
        StructuringError: empty answer, invalid JSON, or no usable section.
    """
    if not content or not content.strip():
        raise StructuringError("No response from model")
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise StructuringError(f"Model response is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise StructuringError("Model response is not a JSON object")

    raw_sections = parsed.get("sections")
    if not isinstance(raw_sections, list):
        raise StructuringError("Model response has no sections list")
    sections = []
    for position, raw in enumerate(raw_sections):
        section = normalize_section(raw, position) if isinstance(raw, dict) else None
        if section is not None:
            sections.append(section)
    if not sections:
        raise StructuringError("Model response contains no usable sections")

    raw_toc = parsed.get("tableOfContents") or parsed.get("table_of_contents") or []
    toc = [entry for entry in (_toc_entry(item) for item in raw_toc if isinstance(item, dict)) if entry]

    raw_metadata = parsed.get("metadata") if isinstance(parsed.get("metadata"), dict) else None
    title = (
        _optional_text(raw_metadata.get("title") if raw_metadata else None)
        or _optional_text(parsed.get("title"))
        or document_title_from_filename(filename)
    )
    metadata = None
    if raw_metadata is not None:
        metadata = DocumentMetadata(
            author=_optional_text(raw_metadata.get("author")),
            institution=_optional_text(raw_metadata.get("institution")),
        )

    return StructuredDocument(
        title=title,
        summary=_optional_text(parsed.get("summary")) or "",
        sections=sections,
        table_of_contents=toc,
        metadata=metadata,
    )


def degraded_document(text: str, filename: str, page_count: int) -> StructuredDocument:
    """Single-section document carrying the full, untruncated text."""
    has_pages = page_count > 0
    return StructuredDocument(
        title=document_title_from_filename(filename),
        summary="",
        sections=[
            StructuredSection(
                title=FALLBACK_SECTION_TITLE,
                content=text,
                section_type=SectionType.CHAPTER,
                level=0,
                chapter_number="0",
                page_start=1 if has_pages else None,
                page_end=page_count if has_pages else None,
            )
        ],
        table_of_contents=[TocEntry(title=FALLBACK_SECTION_TITLE, page=1 if has_pages else None)],
    )


class DocumentStructurer:
    """Structure document text into typed, leveled sections with a language model.

    Every failure degrades to :func:`degraded_document`; callers never see a
    structuring error.
    """

    def __init__(
        self,
        client,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_chars: int = 100_000,
        attempts: int = 1,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_chars = max_chars
        self.attempts = max(1, attempts)

    def structure(
        self,
        text: str,
        filename: str,
        page_count: int,
        images_by_page: Optional[Dict[int, List[dict]]] = None,
    ) -> StructuredDocument:
        """
        Structure ``text`` into a hierarchical document.

        Args:
            text: Merged text of all pages
            filename: Original file name, used for the default title
            page_count: Number of pages in the source PDF
            images_by_page: Page number -> images present on that page

        Returns:
            The structured document, or the degraded single-section document
        """
        try:
            document = self._structure(text, filename, page_count, images_by_page or {})
        except Exception as e:
            error = e if isinstance(e, StructuringError) else StructuringError(f"Structuring failed: {e}")
            log_stage_failure(logger, "structuring", error, filename=filename, page_count=page_count)
            return degraded_document(text, filename, page_count)

        logger.info(
            "document_structured",
            filename=filename,
            sections=len(document.sections),
            toc_entries=len(document.table_of_contents),
        )
        return document

    def _structure(
        self,
        text: str,
        filename: str,
        page_count: int,
        images_by_page: Dict[int, List[dict]],
    ) -> StructuredDocument:
        if len(text) > self.max_chars:
            logger.warning("text_truncated", filename=filename, original_chars=len(text), max_chars=self.max_chars)
        prompt = build_user_prompt(filename, page_count, truncate_text(text, self.max_chars), image_hint(images_by_page))
        content = self._complete(STRUCTURE_SYSTEM_PROMPT, prompt)
        return parse_structured_response(content, filename)

    def _complete(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        for attempt in Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=1, min=4, max=10),
            reraise=True,
        ):
            with attempt:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=self.temperature,
                    response_format={"type": "json_object"},
                )
                return response.choices[0].message.content if response.choices else None
        return None
