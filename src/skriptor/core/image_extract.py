"""Raster image extraction: page draw instructions -> raw pixels -> PNG/JPEG."""

import asyncio
import io
from typing import List, Optional

from PIL import Image

from .batching import batched_gather
from .errors import ImageConversionError, PageRangeError
from .logging_config import get_audit_logger, log_stage_failure
from .models import (
    EncodedImage,
    ExtractedImage,
    ImageExtractionOptions,
    ImageExtractionResult,
)
from .pdf_handle import ImagePlacement, PdfHandle, RawImage

logger = get_audit_logger("image_extract")

PNG_COMPRESS_LEVEL = 6


def encode_image(image: ExtractedImage, output_format: str = "png", quality: int = 85) -> EncodedImage:
    """Re-encode a raw pixel buffer as PNG or JPEG.

    Raises:
        ImageConversionError: the buffer is shorter than
            ``width * height * channels`` or the codec rejected it.
    """
    expected = image.expected_size
    if len(image.pixels) < expected:
        raise ImageConversionError(
            "Image data size mismatch",
            page_number=image.page_number,
            image_index=image.image_index,
            expected=expected,
            actual=len(image.pixels),
        )

    buffer = io.BytesIO()
    try:
        pil_image = Image.frombytes(image.channels.pil_mode, (image.width, image.height), image.pixels[:expected])
        if output_format == "jpeg":
            if pil_image.mode == "RGBA":
                pil_image = pil_image.convert("RGB")
            pil_image.save(buffer, format="JPEG", quality=quality)
        else:
            pil_image.save(buffer, format="PNG", compress_level=PNG_COMPRESS_LEVEL)
    except Exception as e:
        raise ImageConversionError(
            f"Codec conversion failed: {e}",
            page_number=image.page_number,
            image_index=image.image_index,
        ) from e

    return EncodedImage(
        data=buffer.getvalue(),
        width=image.width,
        height=image.height,
        page_number=image.page_number,
        image_index=image.image_index,
        format=output_format,
    )


async def resolve_image(handle: PdfHandle, placement: ImagePlacement) -> Optional[RawImage]:
    """Resolve the image object behind a draw instruction, ``None`` if unusable."""
    try:
        return handle.resolve_image(placement.xref, smask=placement.smask)
    except PageRangeError:
        raise
    except Exception as e:
        logger.debug("image_resolution_failed", xref=placement.xref, name=placement.name, error=str(e))
        return None


class RasterImageExtractor:
    """Extract embedded raster images page by page in bounded batches.

    The caller owns the ``PdfHandle`` and must close it.
    """

    def __init__(self, options: Optional[ImageExtractionOptions] = None):
        self.options = options or ImageExtractionOptions()

    def _too_small(self, width: int, height: int) -> bool:
        return width < self.options.min_width or height < self.options.min_height

    async def extract(self, handle: PdfHandle) -> ImageExtractionResult:
        pages = list(range(1, handle.page_count + 1))
        max_images = self.options.max_images

        images = await batched_gather(
            pages,
            lambda page_number: self.extract_page(handle, page_number),
            batch_size=self.options.batch_size,
            stop_when=lambda collected: len(collected) >= max_images,
        )
        images = images[:max_images]

        result = ImageExtractionResult(
            images=images,
            total_pages=handle.page_count,
            pages_with_images=sorted({image.page_number for image in images}),
        )
        logger.info(
            "images_extracted",
            images=len(result.images),
            pages_with_images=result.pages_with_images,
            total_pages=result.total_pages,
        )
        return result

    async def extract_page(self, handle: PdfHandle, page_number: int) -> List[EncodedImage]:
        """Extract and encode the images of one page; failures stay local to the page."""
        try:
            placements = handle.image_instructions(page_number)
        except PageRangeError:
            raise
        except Exception as e:
            log_stage_failure(logger, "image_extraction", e, page_number=page_number)
            return []

        encoded: List[EncodedImage] = []
        for placement in placements:
            # skip icons and artifacts before paying for decoding
            if placement.width and placement.height and self._too_small(placement.width, placement.height):
                continue

            raw = await resolve_image(handle, placement)
            if raw is None or self._too_small(raw.width, raw.height):
                continue

            extracted = ExtractedImage(
                pixels=raw.pixels,
                width=raw.width,
                height=raw.height,
                page_number=page_number,
                image_index=len(encoded),
                channels=raw.channels,
            )
            try:
                image = await asyncio.to_thread(
                    encode_image, extracted, self.options.output_format, self.options.quality
                )
            except ImageConversionError as e:
                log_stage_failure(
                    logger,
                    "image_conversion",
                    e,
                    page_number=page_number,
                    image_index=extracted.image_index,
                    image_name=placement.name,
                )
                continue
            encoded.append(image)

        return encoded
