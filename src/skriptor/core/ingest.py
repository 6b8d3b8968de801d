"""PDF ingest pipeline: PyMuPDF -> text + images -> AI structure -> blob store + PostgreSQL."""

import asyncio
import time
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

import openai

from .alt_text import AltTextGenerator
from .blob_store import BlobStore, create_blob_store
from .config import Settings
from .errors import DecodeError, DownloadError, PersistenceError, SkriptorError
from .image_extract import RasterImageExtractor
from .image_storage import AltTextFn, ImageStorage
from .logging_config import get_audit_logger, log_ingestion_event, log_stage_failure
from .models import (
    EncodedImage,
    ImageExtractionOptions,
    ImageExtractionResult,
    IngestionResult,
    StoredImage,
    StructuredDocument,
    StructuredSection,
)
from .pdf_handle import PdfHandle
from .repository import DocumentRepository
from .segmenter import fallback_document
from .structure import DocumentStructurer
from .text_extract import TextExtraction, extract_text

logger = get_audit_logger("ingest")

DEFAULT_FILENAME = "document.pdf"


def build_images_by_page(images: Sequence[EncodedImage]) -> Dict[int, List[Dict[str, int]]]:
    """Group image references by page for the structuring hint."""
    by_page: Dict[int, List[Dict[str, int]]] = defaultdict(list)
    for image in images:
        by_page[image.page_number].append({"pageNumber": image.page_number, "imageIndex": image.image_index})
    return dict(by_page)


def images_for_section(section: StructuredSection, stored: Sequence[StoredImage]) -> List[StoredImage]:
    """Select the stored images whose page lies in the section's page range.

    A section without a start page gets no images; a missing end page means
    the section covers its start page only.
    """
    if section.page_start is None:
        return []
    start = section.page_start
    end = section.page_end if section.page_end is not None else start
    return [image for image in stored if start <= image.page_number <= end]


def image_binding(image: StoredImage) -> Dict[str, Any]:
    return {
        "id": f"{image.page_number}-{image.image_index}",
        "storage_path": image.public_url,
        "alt_text": f"Abbildung von Seite {image.page_number}",
        "page_number": image.page_number,
        "width": image.width,
        "height": image.height,
    }


def section_rows(document_id: str, document: StructuredDocument, stored: Sequence[StoredImage]) -> List[Dict[str, Any]]:
    """Flatten structured sections into ``sections`` table rows, in document order."""
    rows = []
    for index, section in enumerate(document.sections):
        rows.append(
            {
                "document_id": document_id,
                "title": section.title,
                "content": section.content,
                "order_index": index,
                "page_start": section.page_start,
                "page_end": section.page_end,
                "ai_summary": section.summary,
                "section_type": section.section_type.value,
                "metadata": {
                    "task_number": section.task_number,
                    "keywords": list(section.keywords),
                    "level": section.level,
                    "chapter_number": section.chapter_number,
                    "solution_id": section.solution_id,
                    "exercise_id": section.exercise_id,
                },
                "images": [image_binding(image) for image in images_for_section(section, stored)],
            }
        )
    return rows


class IngestionOrchestrator:
    """Coordinates one ingestion request end to end.

    Only a missing source, an unreadable PDF and a failed section insert are
    fatal. Image extraction, upload, metadata, alt text and document field
    updates are logged and absorbed; structuring failures degrade to a
    single-section document.
    """

    def __init__(
        self,
        source_store: BlobStore,
        repository: DocumentRepository,
        image_storage: ImageStorage,
        structurer: Optional[DocumentStructurer] = None,
        image_options: Optional[ImageExtractionOptions] = None,
        alt_text_generator: Optional[AltTextFn] = None,
        use_ai: bool = True,
    ):
        self.source_store = source_store
        self.repository = repository
        self.image_storage = image_storage
        self.structurer = structurer
        self.image_extractor = RasterImageExtractor(image_options)
        self.alt_text_generator = alt_text_generator
        self.use_ai = use_ai and structurer is not None

    @classmethod
    def from_settings(cls, settings: Settings, client=None, use_ai: Optional[bool] = None) -> "IngestionOrchestrator":
        """Wire the pipeline from configuration.

        Raises:
            ConfigurationError: database or model credentials are missing.
        """
        use_ai = settings.use_ai if use_ai is None else use_ai
        settings.require("database_url")
        if use_ai or settings.alt_text:
            if client is None:
                settings.require("openai_api_key")
                client = openai.OpenAI(api_key=settings.openai_api_key)

        repository = DocumentRepository(settings.database_url)
        image_storage = ImageStorage(create_blob_store(settings, settings.image_bucket), repository)
        structurer = None
        if use_ai:
            structurer = DocumentStructurer(
                client,
                model=settings.model,
                temperature=settings.temperature,
                max_chars=settings.max_chars,
                attempts=settings.llm_attempts,
            )
        alt_text_generator = AltTextGenerator(client, model=settings.vision_model) if settings.alt_text else None

        return cls(
            source_store=create_blob_store(settings, settings.source_bucket),
            repository=repository,
            image_storage=image_storage,
            structurer=structurer,
            image_options=settings.image_options(),
            alt_text_generator=alt_text_generator,
            use_ai=use_ai,
        )

    async def ingest(
        self,
        document_id: str,
        source_path: str,
        owner_id: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> IngestionResult:
        """Download a stored PDF and ingest it.

        The owner defaults to the first component of ``source_path``
        (``<owner>/<name>.pdf``) and the filename to the document row's
        ``original_filename``.
        """
        owner_id = owner_id or source_path.split("/", 1)[0]
        if filename is None:
            filename = await self._original_filename(document_id)

        try:
            data = await asyncio.to_thread(self.source_store.download, source_path)
        except Exception as e:
            raise DownloadError(f"PDF could not be downloaded: {e}", source_path=source_path) from e
        if not data:
            raise DownloadError("PDF download returned no data", source_path=source_path)

        return await self.ingest_bytes(data, document_id, owner_id, filename)

    async def reprocess(
        self,
        document_id: str,
        source_path: str,
        owner_id: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> IngestionResult:
        """Drop previous images and sections of a document, then ingest it again."""
        owner_id = owner_id or source_path.split("/", 1)[0]
        await asyncio.to_thread(self.image_storage.delete_all, document_id, owner_id)
        await asyncio.to_thread(self.repository.delete_sections, document_id)
        return await self.ingest(document_id, source_path, owner_id=owner_id, filename=filename)

    async def ingest_bytes(self, data: bytes, document_id: str, owner_id: str, filename: str) -> IngestionResult:
        start_time = time.time()
        log = logger.bind(document_id=document_id, owner_id=owner_id)
        log.info("ingestion_started", filename=filename, size_bytes=len(data))

        with PdfHandle.open(data) as handle:
            try:
                extraction = extract_text(handle)
            except SkriptorError:
                raise
            except Exception as e:
                raise DecodeError(f"Text extraction failed: {e}", document_id=document_id) from e

            try:
                image_result = await self.image_extractor.extract(handle)
            except Exception as e:
                log_stage_failure(log, "image_extraction", e, document_id=document_id)
                image_result = ImageExtractionResult(total_pages=handle.page_count)

        images_by_page = build_images_by_page(image_result.images)
        document = await asyncio.to_thread(
            self._structure, extraction, filename, images_by_page
        )

        stored, has_images = await self._store_images(image_result.images, document_id, owner_id, log)

        await self._update_document(document_id, document, extraction.page_count, has_images, log)

        rows = section_rows(document_id, document, stored)
        try:
            await asyncio.to_thread(self.repository.insert_sections, rows)
        except PersistenceError as e:
            log_stage_failure(log, "persist_sections", e, fatal=True, sections=len(rows))
            raise
        except Exception as e:
            log_stage_failure(log, "persist_sections", e, fatal=True, sections=len(rows))
            raise PersistenceError("Failed to insert sections", cause=e, document_id=document_id) from e

        result = IngestionResult(
            title=document.title,
            sections_count=len(document.sections),
            total_pages=extraction.page_count,
            images_extracted=len(stored),
            pages_with_images=image_result.pages_with_images,
            table_of_contents=document.table_of_contents,
        )
        log_ingestion_event(
            log,
            document_id=document_id,
            owner_id=owner_id,
            title=result.title,
            pages=result.total_pages,
            sections_created=result.sections_count,
            images_stored=result.images_extracted,
            pages_with_images=result.pages_with_images,
            structured_by="ai" if self.use_ai else "heuristic",
            processing_time_ms=(time.time() - start_time) * 1000,
        )
        return result

    def _structure(
        self,
        extraction: TextExtraction,
        filename: str,
        images_by_page: Dict[int, List[Dict[str, int]]],
    ) -> StructuredDocument:
        if self.use_ai:
            return self.structurer.structure(extraction.text, filename, extraction.page_count, images_by_page)
        return fallback_document(extraction.text, filename, extraction.page_count, page_texts=extraction.pages)

    async def _store_images(self, images, document_id: str, owner_id: str, log):
        if not images:
            return [], False

        try:
            stored = await asyncio.to_thread(self.image_storage.upload, images, owner_id, document_id)
        except Exception as e:
            log_stage_failure(log, "image_upload", e, images=len(images))
            return [], False

        if not stored:
            return stored, False

        try:
            await asyncio.to_thread(
                self.image_storage.save_metadata, stored, document_id, self.alt_text_generator
            )
        except Exception as e:
            log_stage_failure(log, "image_metadata", e, images=len(stored))
            return stored, False
        return stored, True

    async def _update_document(self, document_id, document, page_count, has_images, log) -> None:
        fields: Dict[str, Any] = {
            "total_pages": page_count,
            "title": document.title,
            "ai_summary": document.summary,
            "author": document.metadata.author if document.metadata else None,
            "institution": document.metadata.institution if document.metadata else None,
        }
        if has_images:
            fields["has_images"] = True
        try:
            await asyncio.to_thread(self.repository.update_document, document_id, fields)
        except Exception as e:
            log_stage_failure(log, "update_document", e, fields=sorted(fields))

    async def _original_filename(self, document_id: str) -> str:
        try:
            row = await asyncio.to_thread(self.repository.get_document, document_id)
        except Exception as e:
            log_stage_failure(logger, "load_document", e, document_id=document_id)
            return DEFAULT_FILENAME
        return (row or {}).get("original_filename") or DEFAULT_FILENAME
