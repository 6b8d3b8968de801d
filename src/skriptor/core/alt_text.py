"""Alt text for extracted figures via a vision-capable model."""

import base64
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from .image_storage import DEFAULT_ALT_TEXT
from .prompts import ALT_TEXT_PROMPT

logger = logging.getLogger(__name__)

MAX_ALT_TEXT_CHARS = 150


class AltTextGenerator:
    """Callable ``(image_url, page_number) -> caption``; never raises."""

    def __init__(self, client, model: str = "gpt-4o", max_tokens: int = 100):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    def __call__(self, image_url: str, page_number: int) -> str:
        context = f"Bild von Seite {page_number} eines akademischen Dokuments."
        if image_url.startswith("file://"):
            # local blob store: the model cannot fetch the file, send it inline
            path = Path(unquote(urlparse(image_url).path))
            try:
                data = path.read_bytes()
            except OSError as e:
                logger.warning(f"Cannot read image {path} for alt text: {e}")
                return DEFAULT_ALT_TEXT
            mime_type = "image/jpeg" if path.suffix.lower() in (".jpg", ".jpeg") else "image/png"
            return self.describe_bytes(data, context, mime_type)
        return self.describe(image_url, context)

    def describe_bytes(self, data: bytes, context: str, mime_type: str = "image/png") -> str:
        encoded = base64.b64encode(data).decode("ascii")
        return self.describe(f"data:{mime_type};base64,{encoded}", context)

    def describe(self, image_url: str, context: str) -> str:
        """Ask the model for a short German caption, falling back to a generic one."""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": ALT_TEXT_PROMPT.format(context=context[:300])},
                            # low detail keeps the request cheap
                            {"type": "image_url", "image_url": {"url": image_url, "detail": "low"}},
                        ],
                    }
                ],
                max_tokens=self.max_tokens,
            )
            caption: Optional[str] = response.choices[0].message.content if response.choices else None
        except Exception as e:
            logger.warning(f"Alt text generation failed: {e}")
            return DEFAULT_ALT_TEXT

        caption = (caption or "").strip()
        if not caption:
            return DEFAULT_ALT_TEXT
        return caption[:MAX_ALT_TEXT_CHARS]
