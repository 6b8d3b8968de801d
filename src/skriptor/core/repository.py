"""PostgreSQL persistence for documents, sections and image metadata."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from .errors import PersistenceError

logger = logging.getLogger(__name__)

DOCUMENT_UPDATE_COLUMNS = ("title", "ai_summary", "author", "institution", "total_pages", "has_images")

SECTION_COLUMNS = (
    "document_id",
    "title",
    "content",
    "order_index",
    "page_start",
    "page_end",
    "ai_summary",
    "section_type",
    "metadata",
    "images",
)

IMAGE_COLUMNS = ("document_id", "storage_path", "alt_text", "page_number", "width", "height")

_JSON_COLUMNS = {"metadata", "images"}


def _insert_sql(table: str, columns: Sequence[str]) -> str:
    placeholders = ", ".join(["%s"] * len(columns))
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


def _row_values(row: Dict[str, Any], columns: Sequence[str]) -> tuple:
    return tuple(Jsonb(row.get(column)) if column in _JSON_COLUMNS else row.get(column) for column in columns)


class DocumentRepository:
    """Reads and writes against the relational store.

    Each call opens its own connection; batch inserts run in one transaction
    so a failed batch leaves no partial rows behind.
    """

    def __init__(self, db_url: str):
        self.db_url = db_url

    def _connect(self) -> psycopg.Connection:
        return psycopg.connect(self.db_url)

    def get_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    "SELECT id, user_id, title, original_filename, storage_path FROM documents WHERE id = %s",
                    (document_id,),
                )
                return cur.fetchone()

    def update_document(self, document_id: str, fields: Dict[str, Any]) -> None:
        """Update the auxiliary fields of a document row."""
        columns = [column for column in DOCUMENT_UPDATE_COLUMNS if column in fields]
        if not columns:
            return
        assignments = ", ".join(f"{column} = %s" for column in columns)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"UPDATE documents SET {assignments}, updated_at = now() WHERE id = %s",
                    (*[fields[column] for column in columns], document_id),
                )
            conn.commit()

    def insert_sections(self, rows: List[Dict[str, Any]]) -> None:
        """Insert all sections of a document in one transaction.

        Raises:
            PersistenceError: the batch insert failed.
        """
        if not rows:
            return
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.executemany(
                        _insert_sql("sections", SECTION_COLUMNS),
                        [_row_values(row, SECTION_COLUMNS) for row in rows],
                    )
                conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(
                "Failed to insert sections", cause=e, document_id=rows[0].get("document_id"), rows=len(rows)
            ) from e
        logger.info(f"Saved {len(rows)} sections for document {rows[0].get('document_id')}")

    def delete_sections(self, document_id: str) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM sections WHERE document_id = %s", (document_id,))
                deleted = cur.rowcount
            conn.commit()
        return deleted

    def insert_image_metadata(self, rows: List[Dict[str, Any]]) -> None:
        """Insert image metadata rows in one transaction.

        Raises:
            PersistenceError: the batch insert failed.
        """
        if not rows:
            return
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.executemany(
                        _insert_sql("document_images", IMAGE_COLUMNS),
                        [_row_values(row, IMAGE_COLUMNS) for row in rows],
                    )
                conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(
                "Failed to save image metadata", cause=e, document_id=rows[0].get("document_id"), rows=len(rows)
            ) from e

    def list_image_metadata(self, document_id: str) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    "SELECT id, document_id, storage_path, alt_text, page_number, width, height "
                    "FROM document_images WHERE document_id = %s ORDER BY page_number ASC",
                    (document_id,),
                )
                return cur.fetchall()

    def delete_image_metadata(self, document_id: str) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM document_images WHERE document_id = %s", (document_id,))
                deleted = cur.rowcount
            conn.commit()
        return deleted
