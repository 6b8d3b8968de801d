"""Upload extracted images and persist their metadata."""

from typing import Any, Callable, Dict, List, Optional, Sequence

from .blob_store import BlobStore
from .errors import ImageUploadError
from .logging_config import get_audit_logger, log_stage_failure
from .models import EncodedImage, StoredImage
from .repository import DocumentRepository

logger = get_audit_logger("image_storage")

DEFAULT_ALT_TEXT = "Abbildung im Dokument"

AltTextFn = Callable[[str, int], str]


def storage_path(owner_id: str, document_id: str, page_number: int, image_index: int, fmt: str) -> str:
    """Deterministic object path; re-uploading the same image overwrites it."""
    return f"{owner_id}/{document_id}/page-{page_number}-img-{image_index}.{fmt}"


def document_prefix(owner_id: str, document_id: str) -> str:
    return f"{owner_id}/{document_id}/"


class ImageStorage:
    """Blob uploads plus the ``document_images`` metadata table."""

    def __init__(self, blob_store: BlobStore, repository: DocumentRepository):
        self.blob_store = blob_store
        self.repository = repository

    def upload(self, images: Sequence[EncodedImage], owner_id: str, document_id: str) -> List[StoredImage]:
        """Upload every image; failed uploads are logged and left out of the result."""
        stored: List[StoredImage] = []
        for image in images:
            path = storage_path(owner_id, document_id, image.page_number, image.image_index, image.format)
            try:
                self.blob_store.upload(path, image.data, image.content_type)
                public_url = self.blob_store.public_url(path)
            except Exception as e:
                error = ImageUploadError(f"Upload failed: {e}", storage_path=path)
                log_stage_failure(
                    logger,
                    "image_upload",
                    error,
                    document_id=document_id,
                    page_number=image.page_number,
                    image_index=image.image_index,
                )
                continue

            stored.append(
                StoredImage(
                    storage_path=path,
                    public_url=public_url,
                    width=image.width,
                    height=image.height,
                    page_number=image.page_number,
                    image_index=image.image_index,
                )
            )

        logger.info("images_uploaded", document_id=document_id, uploaded=len(stored), attempted=len(images))
        return stored

    def save_metadata(
        self,
        stored: Sequence[StoredImage],
        document_id: str,
        alt_text_generator: Optional[AltTextFn] = None,
    ) -> None:
        """Insert one metadata row per stored image.

        Alt-text generation is best effort; only a failed batch insert raises
        (``PersistenceError`` from the repository).
        """
        if not stored:
            return

        rows: List[Dict[str, Any]] = []
        for image in stored:
            alt_text = DEFAULT_ALT_TEXT
            if alt_text_generator is not None:
                try:
                    alt_text = alt_text_generator(image.public_url, image.page_number) or DEFAULT_ALT_TEXT
                except Exception as e:
                    log_stage_failure(
                        logger,
                        "alt_text",
                        e,
                        document_id=document_id,
                        page_number=image.page_number,
                        image_index=image.image_index,
                    )
            rows.append(
                {
                    "document_id": document_id,
                    "storage_path": image.public_url,
                    "alt_text": alt_text,
                    "page_number": image.page_number,
                    "width": image.width,
                    "height": image.height,
                }
            )

        self.repository.insert_image_metadata(rows)

    def list_images(self, document_id: str) -> List[Dict[str, Any]]:
        return self.repository.list_image_metadata(document_id)

    def delete_all(self, document_id: str, owner_id: str) -> int:
        """Remove every stored object and metadata row of a document."""
        paths = self.blob_store.list(document_prefix(owner_id, document_id))
        removed = self.blob_store.remove(paths) if paths else 0
        self.repository.delete_image_metadata(document_id)
        logger.info("images_deleted", document_id=document_id, owner_id=owner_id, removed=removed)
        return removed
