"""Records passed between the ingestion stages."""

from enum import Enum, IntEnum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


ImageFormat = Literal["png", "jpeg"]


class ChannelKind(IntEnum):
    """Bytes per pixel of a raw image buffer."""
    GRAY = 1
    RGB = 3
    RGBA = 4

    @property
    def pil_mode(self) -> str:
        return {ChannelKind.GRAY: "L", ChannelKind.RGB: "RGB", ChannelKind.RGBA: "RGBA"}[self]


class SectionType(str, Enum):
    """Closed taxonomy of content blocks in a learning document."""
    CHAPTER = "chapter"
    SUBCHAPTER = "subchapter"
    LEARNING_OBJECTIVES = "learning_objectives"
    TASK = "task"
    PRACTICE_IMPULSE = "practice_impulse"
    REFLECTION = "reflection"
    TIP = "tip"
    SUMMARY = "summary"
    DEFINITION = "definition"
    EXAMPLE = "example"
    IMPORTANT = "important"
    EXERCISE = "exercise"
    SOLUTION = "solution"
    REFERENCE = "reference"

    @classmethod
    def coerce(cls, value: object) -> "SectionType":
        """Map any model-supplied value onto the taxonomy, defaulting to chapter."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.CHAPTER


class ExtractedImage(BaseModel):
    """Raw pixels taken off a page's image object store."""
    model_config = ConfigDict(frozen=True)

    pixels: bytes = Field(repr=False)
    width: int
    height: int
    page_number: int
    image_index: int
    channels: ChannelKind

    @property
    def expected_size(self) -> int:
        return self.width * self.height * int(self.channels)


class EncodedImage(BaseModel):
    """An extracted image after codec conversion."""
    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    width: int
    height: int
    page_number: int
    image_index: int
    format: ImageFormat = "png"

    @property
    def content_type(self) -> str:
        return "image/jpeg" if self.format == "jpeg" else "image/png"


class StoredImage(BaseModel):
    """An encoded image after upload to the blob store."""
    model_config = ConfigDict(frozen=True)

    storage_path: str
    public_url: str
    width: int
    height: int
    page_number: int
    image_index: int


class ImageExtractionOptions(BaseModel):
    """Tuning knobs for raster image extraction."""
    min_width: int = Field(50, ge=0)
    min_height: int = Field(50, ge=0)
    max_images: int = Field(100, ge=0)
    output_format: ImageFormat = "png"
    quality: int = Field(85, ge=1, le=100)
    batch_size: int = Field(5, ge=1)


class ImageExtractionResult(BaseModel):
    images: List[EncodedImage] = Field(default_factory=list)
    total_pages: int = 0
    pages_with_images: List[int] = Field(default_factory=list)


class StructuredSection(BaseModel):
    """One typed, leveled content block of a structured document."""
    title: str
    content: str
    section_type: SectionType = SectionType.CHAPTER
    level: int = Field(0, ge=0, le=2)
    chapter_number: str = "0"
    page_start: Optional[int] = None
    page_end: Optional[int] = None
    summary: Optional[str] = None
    task_number: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    solution_id: Optional[str] = None
    exercise_id: Optional[str] = None


class TocEntry(BaseModel):
    title: str
    page: Optional[int] = None
    section_type: Optional[SectionType] = None
    level: int = 0
    chapter_number: str = "0"


class DocumentMetadata(BaseModel):
    author: Optional[str] = None
    institution: Optional[str] = None


class StructuredDocument(BaseModel):
    """Structurer output; section order is the final document order."""
    title: str
    summary: str = ""
    sections: List[StructuredSection] = Field(default_factory=list)
    table_of_contents: List[TocEntry] = Field(default_factory=list)
    metadata: Optional[DocumentMetadata] = None


class ParsedSection(BaseModel):
    """Output of the rule-based segmenter."""
    title: str
    content: str
    order_index: int
    page_start: Optional[int] = None
    page_end: Optional[int] = None
    is_intro: bool = False


class IngestionResult(BaseModel):
    """Summary returned to the caller after a successful ingestion."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    title: str
    sections_count: int = Field(alias="sectionsCount")
    total_pages: int = Field(alias="totalPages")
    images_extracted: int = Field(alias="imagesExtracted")
    pages_with_images: List[int] = Field(default_factory=list, alias="pagesWithImages")
    table_of_contents: List[TocEntry] = Field(default_factory=list, alias="tableOfContents")

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
