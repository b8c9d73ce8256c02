import base64
import binascii
import io
import logging
import re
from typing import Optional, Tuple

from pptx import Presentation
from pptx.parts.image import Image as PptxImage
from pptx.util import Emu, Inches, Pt

from .models import Deck, Slide

logger = logging.getLogger(__name__)

# 16:9, 10in x 5.625in
SLIDE_WIDTH = Inches(10)
SLIDE_HEIGHT = Inches(5.625)
BLANK_LAYOUT = 6

TITLE_BOX = (Inches(0.5), Inches(0.5), Inches(8), Inches(0.8))
BODY_BOX = (Inches(0.5), Inches(1.5), Inches(5.4), Inches(4.5))
IMAGE_BOX = (Inches(6.1), Inches(1.5), Inches(3.5), Inches(4.5))

FONTS = {"professional": "Calibri", "casual": "Segoe Print"}

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.S)


def decode_data_url(data_url: str) -> Optional[bytes]:
    m = _DATA_URL.match(data_url or "")
    if not m:
        return None
    try:
        return base64.b64decode(m.group("data"), validate=False)
    except (binascii.Error, ValueError):
        return None


def _contain(blob: bytes, box_w: int, box_h: int) -> Tuple[int, int]:
    """Scale the image to fit inside the box, keeping its aspect ratio."""
    px_w, px_h = PptxImage.from_blob(blob).size
    if not px_w or not px_h:
        return box_w, box_h
    scale = min(box_w / px_w, box_h / px_h)
    return int(px_w * scale), int(px_h * scale)


def _add_image(slide, blob: bytes):
    left, top, box_w, box_h = IMAGE_BOX
    width, height = _contain(blob, box_w, box_h)
    # Center within the image box
    left = Emu(left + (box_w - width) // 2)
    top = Emu(top + (box_h - height) // 2)
    slide.shapes.add_picture(io.BytesIO(blob), left, top, width=width, height=height)


def _render_slide(prs: Presentation, s: Slide, font: str):
    slide = prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT])

    # Title
    title = slide.shapes.add_textbox(*TITLE_BOX).text_frame
    title.word_wrap = True
    p = title.paragraphs[0]
    p.text = s.title or "Slide"
    p.font.bold = True
    p.font.size = Pt(28)
    p.font.name = font

    # Bullets
    body = slide.shapes.add_textbox(*BODY_BOX).text_frame
    body.word_wrap = True
    for i, b in enumerate(s.bullets):
        p = body.paragraphs[0] if i == 0 else body.add_paragraph()
        p.text = f"• {b}"
        p.font.size = Pt(18)
        p.font.name = font

    if s.image_data:
        blob = decode_data_url(s.image_data)
        if blob is None:
            logger.warning("Skipping undecodable image on slide %r", s.title)
            return
        try:
            _add_image(slide, blob)
        except Exception as e:
            logger.warning("Could not place image on slide %r: %s", s.title, e)


def build_presentation(deck: Deck) -> bytes:
    prs = Presentation()
    prs.slide_width = SLIDE_WIDTH
    prs.slide_height = SLIDE_HEIGHT
    prs.core_properties.title = deck.topic

    font = FONTS.get(deck.style, FONTS["professional"])
    for s in deck.slides:
        _render_slide(prs, s, font)

    bio = io.BytesIO()
    prs.save(bio)
    return bio.getvalue()
