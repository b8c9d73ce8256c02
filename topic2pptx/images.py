"""Slide illustrations: Imagen generation, URL fetching and the fallback chain.

For each slide the first source that works wins:
pre-supplied ``imageData`` → Imagen (first ``max_image_slides`` slides, when
augmentation is on) → ``imageUrl`` fetch → no image. A failing source is
logged and skipped; it never fails the export.
"""
import asyncio
import base64
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from .catalog import PRIMARY_IMAGE_MODEL, sanitize_image_model
from .errors import ImageResolutionError
from .models import Deck, Slide
from .security import truncate

logger = logging.getLogger(__name__)

IMAGE_STYLE_SUFFIX = "modern flat illustration, minimalist, high quality, 16:9"
PROMPT_BULLETS = 3

_JPEG_URL = re.compile(r"\.jpe?g($|\?)", re.I)


def auto_prompt(slide: Slide) -> str:
    bullets = ", ".join(slide.bullets[:PROMPT_BULLETS])
    return f"{slide.title}. {bullets}. {IMAGE_STYLE_SUFFIX}"


def prompt_for(slide: Slide) -> str:
    return (slide.image_prompt or "").strip() or auto_prompt(slide)


def mime_for_url(url: str) -> str:
    return "image/jpeg" if _JPEG_URL.search(url) else "image/png"


def to_data_url(mime: str, blob: bytes) -> str:
    return f"data:{mime};base64,{base64.b64encode(blob).decode('ascii')}"


def _image_bytes(data: Dict[str, Any]) -> Optional[str]:
    """Base64 image payload from any of the response shapes Imagen returns."""
    if not isinstance(data, dict):
        return None
    paths = (
        ("generatedImages", "image", "imageBytes"),
        ("predictions", "bytesBase64Encoded"),
        ("predictions", "bytesBase64"),
        ("images", "b64_data"),
    )
    for head, *rest in paths:
        node = data.get(head)
        if not isinstance(node, list) or not node:
            continue
        node = node[0]
        for part in rest:
            node = node.get(part) if isinstance(node, dict) else None
        if isinstance(node, str) and node:
            return node
    return None


class ImagenClient:
    def __init__(self, api_key: str, base_url: str,
                 default_model: str = PRIMARY_IMAGE_MODEL, timeout: float = 60.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.timeout = timeout
        self.transport = transport

    async def generate_data_url(self, prompt: str, model: Optional[str] = None) -> str:
        """Generate one 16:9 image and return it as a PNG data URL."""
        model = sanitize_image_model(model, self.default_model)
        url = f"{self.base_url}/models/{model}:predict"
        headers = {"x-goog-api-key": self.api_key}
        data = {
            "instances": [{"prompt": prompt}],
            "parameters": {"sampleCount": 1, "aspectRatio": "16:9"},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(url, headers=headers, json=data)
        except httpx.HTTPError as e:
            raise ImageResolutionError(f"Imagen request failed on {model}: {e}") from e

        if r.status_code >= 400:
            logger.error("Imagen status=%s body=%s", r.status_code, truncate(r.text, 800))
            raise ImageResolutionError(f"Imagen {r.status_code}: {truncate(r.text)}")
        try:
            b64 = _image_bytes(r.json())
        except ValueError as e:
            raise ImageResolutionError("Imagen returned a non-JSON body") from e
        if not b64:
            raise ImageResolutionError("Imagen returned no image bytes.")
        return f"data:image/png;base64,{b64}"


async def fetch_as_data_url(url: str, timeout: float = 30.0,
                            transport: Optional[httpx.AsyncBaseTransport] = None) -> str:
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport,
                                     follow_redirects=True) as client:
            r = await client.get(url, headers={"Cache-Control": "no-store"})
    except httpx.HTTPError as e:
        raise ImageResolutionError(f"Fetch image failed: {e}") from e
    if r.status_code >= 400:
        raise ImageResolutionError(f"Fetch image failed {r.status_code}")
    return to_data_url(mime_for_url(url), r.content)


class ImageResolver:
    def __init__(self, imagen: Optional[ImagenClient], max_image_slides: int = 1,
                 timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.imagen = imagen
        self.max_image_slides = max_image_slides
        self.timeout = timeout
        self.transport = transport

    def should_generate(self, index: int, augment: bool) -> bool:
        return augment and index < self.max_image_slides

    async def resolve(self, slide: Slide, index: int, augment: bool) -> Optional[str]:
        """Return a data URL for ``slide`` or None. Never raises."""
        if slide.image_data:
            return slide.image_data

        if self.should_generate(index, augment):
            if self.imagen is None:
                logger.warning("Slide %d: image generation requested but no API key is configured", index + 1)
            else:
                try:
                    return await self.imagen.generate_data_url(prompt_for(slide))
                except Exception as e:
                    logger.error("Slide %d: image gen error: %s", index + 1, e)

        if slide.image_url:
            try:
                return await fetch_as_data_url(slide.image_url, timeout=self.timeout,
                                               transport=self.transport)
            except Exception as e:
                logger.warning("Slide %d: image url fail (%s): %s", index + 1, slide.image_url, e)

        return None

    async def resolve_deck(self, deck: Deck, augment: bool) -> Deck:
        """Return a copy of ``deck`` with ``imageData`` filled where an image resolved."""
        resolved: List[Optional[str]] = await asyncio.gather(
            *(self.resolve(s, i, augment) for i, s in enumerate(deck.slides)))
        slides = [
            s if data is None or data == s.image_data else s.model_copy(update={"image_data": data})
            for s, data in zip(deck.slides, resolved)
        ]
        return deck.model_copy(update={"slides": slides})
