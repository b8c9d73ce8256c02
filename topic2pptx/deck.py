"""Parse-and-validate boundary for decks coming out of the model.

Nothing downstream (cache, export, rendering) re-checks a Deck, so every
structural guarantee is enforced here.
"""
import json
import re
from collections.abc import Mapping
from typing import Any, Dict, List

from .errors import InvalidDeckError
from .models import Deck, Slide

MIN_BULLETS = 3
PLACEHOLDER_BULLET = "(fill in)"
DEFAULT_TOPIC = "Untitled"

_LINE_BREAK = re.compile(r"\r?\n")


def parse_model_output(text: str) -> Dict[str, Any]:
    """Extract a JSON object from model output (handles ```json fences or prose-wrapped JSON)."""
    if not text or not text.strip():
        raise InvalidDeckError("Empty response from model")

    candidates = []
    m = re.search(r"```json\s*(\{.*?\})\s*```", text, flags=re.S | re.I)
    if m:
        candidates.append(m.group(1))
    m = re.search(r"(\{.*\})", text, flags=re.S)
    if m:
        candidates.append(m.group(1))
    candidates.append(text)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise InvalidDeckError("Model output is not a JSON object")


def _bullets_from(raw: Mapping) -> List[str]:
    bullets: List[str] = []
    items = raw.get("bullets")
    if isinstance(items, (list, tuple)):
        bullets = [str("" if x is None else x).strip() for x in items]
        bullets = [b for b in bullets if b]

    body = raw.get("body")
    if not bullets and isinstance(body, str):
        bullets = [line.strip() for line in _LINE_BREAK.split(body)]
        bullets = [b for b in bullets if b]

    while len(bullets) < MIN_BULLETS:
        bullets.append(PLACEHOLDER_BULLET)
    return bullets


def _normalize_slide(raw: Mapping, index: int) -> Slide:
    fallback = f"Slide {index + 1}"
    title = raw.get("title")
    title = str(title).strip() if title is not None else ""

    prompt = raw.get("imagePrompt")
    return Slide(
        title=title or fallback,
        bullets=_bullets_from(raw),
        image_prompt=prompt if isinstance(prompt, str) else None,
    )


def normalize_deck(raw: Any) -> Deck:
    """Turn an untrusted payload into a Deck.

    Raises InvalidDeckError if ``raw`` is not a mapping or no slide entry
    survives filtering. Slides keep their order; non-mapping entries are
    dropped before titles are numbered.
    """
    if not isinstance(raw, Mapping):
        raise InvalidDeckError("Deck invalid: expected an object")

    entries = raw.get("slides")
    if not isinstance(entries, (list, tuple)):
        entries = []
    entries = [s for s in entries if isinstance(s, Mapping)]
    slides = [_normalize_slide(s, i) for i, s in enumerate(entries)]
    if not slides:
        raise InvalidDeckError("Deck.slides empty")

    topic = raw.get("topic")
    theme = raw.get("theme")
    style = raw.get("style")
    return Deck(
        topic=DEFAULT_TOPIC if topic is None else str(topic),
        slides=slides,
        theme=theme if isinstance(theme, str) else None,
        style=style if style in ("professional", "casual") else "professional",
    )
