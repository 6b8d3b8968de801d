"""Shared fixtures: in-memory PDFs, blob store, repository and model client fakes."""

import io
import json
from types import SimpleNamespace
from typing import Any, Dict, Iterable, List, Optional, Sequence

import fitz
import pytest
from PIL import Image

from skriptor.core.errors import PersistenceError


def png_bytes(width: int, height: int, color=(200, 30, 30), mode: str = "RGB") -> bytes:
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_pdf(pages: Sequence[Dict[str, Any]], **save_options) -> bytes:
    """Build a PDF in memory.

    Each page dict may carry ``text`` and ``images``, a list of
    ``(width, height)`` or ``(width, height, mode)`` tuples.
    """
    doc = fitz.open()
    color_seed = 0
    for page_def in pages:
        page = doc.new_page(width=595, height=842)
        if page_def.get("text"):
            page.insert_text((56, 72), page_def["text"], fontsize=10)
        top = 400
        for image in page_def.get("images", []):
            width, height = image[0], image[1]
            mode = image[2] if len(image) > 2 else "RGB"
            color_seed += 1
            # distinct colors keep PyMuPDF from sharing one image object
            color = (color_seed * 37 % 256, color_seed * 91 % 256, color_seed * 53 % 256)
            page.insert_image(fitz.Rect(56, top, 56 + width, top + height), stream=png_bytes(width, height, color, mode))
            top += height + 10
    data = doc.tobytes(**save_options)
    doc.close()
    return data


class FakeBlobStore:
    """Dict-backed blob store; paths in ``fail_paths`` raise on upload."""

    def __init__(self, bucket: str = "document-images", objects: Optional[Dict[str, bytes]] = None):
        self.bucket = bucket
        self.objects: Dict[str, bytes] = dict(objects or {})
        self.content_types: Dict[str, str] = {}
        self.fail_paths = set()
        self.uploads: List[str] = []

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        self.uploads.append(path)
        if path in self.fail_paths:
            raise ConnectionError(f"upload rejected for {path}")
        self.objects[path] = data
        self.content_types[path] = content_type

    def download(self, path: str) -> bytes:
        if path not in self.objects:
            raise FileNotFoundError(path)
        return self.objects[path]

    def public_url(self, path: str) -> str:
        return f"https://blobs.test/{self.bucket}/{path}"

    def list(self, prefix: str) -> List[str]:
        return sorted(path for path in self.objects if path.startswith(prefix))

    def remove(self, paths: Iterable[str]) -> int:
        removed = 0
        for path in paths:
            if self.objects.pop(path, None) is not None:
                removed += 1
        return removed


class FakeRepository:
    """Records every write; ``fail_*`` flags simulate database outages."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self.document = document
        self.updates: List[Dict[str, Any]] = []
        self.sections: List[Dict[str, Any]] = []
        self.images: List[Dict[str, Any]] = []
        self.deleted_sections = 0
        self.deleted_images = 0
        self.fail_sections = False
        self.fail_images = False
        self.fail_update = False

    def get_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        return self.document

    def update_document(self, document_id: str, fields: Dict[str, Any]) -> None:
        if self.fail_update:
            raise ConnectionError("database unavailable")
        self.updates.append(dict(fields))

    def insert_sections(self, rows: List[Dict[str, Any]]) -> None:
        if self.fail_sections:
            raise PersistenceError("Failed to insert sections", cause=ConnectionError("boom"), rows=len(rows))
        self.sections.extend(rows)

    def delete_sections(self, document_id: str) -> int:
        removed = len(self.sections)
        self.deleted_sections += removed
        self.sections = []
        return removed

    def insert_image_metadata(self, rows: List[Dict[str, Any]]) -> None:
        if self.fail_images:
            raise PersistenceError("Failed to save image metadata", rows=len(rows))
        self.images.extend(rows)

    def list_image_metadata(self, document_id: str) -> List[Dict[str, Any]]:
        return sorted(
            (row for row in self.images if row["document_id"] == document_id),
            key=lambda row: row["page_number"],
        )

    def delete_image_metadata(self, document_id: str) -> int:
        before = len(self.images)
        self.images = [row for row in self.images if row["document_id"] != document_id]
        self.deleted_images += before - len(self.images)
        return before - len(self.images)


class FakeCompletions:
    def __init__(self, responses: Sequence[Any]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, (dict, list)):
            response = json.dumps(response)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=response))])


class FakeOpenAI:
    """Stand-in for ``openai.OpenAI`` exposing ``chat.completions.create``."""

    def __init__(self, *responses: Any):
        self.completions = FakeCompletions(responses or ("{}",))
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self) -> List[Dict[str, Any]]:
        return self.completions.calls


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def repository():
    return FakeRepository()
