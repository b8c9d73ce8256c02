"""Model allow-lists and capability sanitization.

Text generation needs JSON mode, so only text models may reach
``generateContent``; image generation has its own independent list.
Anything unknown collapses to the context default.
"""
from typing import Optional

TEXT_MODELS = ("gemini-1.5-flash", "gemini-1.5-pro", "gemini-2.0-flash")
PRIMARY_TEXT_MODEL = "gemini-1.5-flash"
FALLBACK_TEXT_MODEL = "gemini-1.5-pro"

IMAGE_MODELS = ("imagen-3.0-fast-generate-001", "imagen-4.0-generate-001")
PRIMARY_IMAGE_MODEL = "imagen-3.0-fast-generate-001"


def _clean(name: Optional[str]) -> str:
    return (name or "").lower()


def sanitize_text_model(name: Optional[str]) -> str:
    name = _clean(name)
    return name if name in TEXT_MODELS else PRIMARY_TEXT_MODEL


def sanitize_image_model(name: Optional[str], default: str = PRIMARY_IMAGE_MODEL) -> str:
    name = _clean(name)
    if name in IMAGE_MODELS:
        return name
    # A misconfigured default must not leak a non-image model either
    default = _clean(default)
    return default if default in IMAGE_MODELS else PRIMARY_IMAGE_MODEL
