from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_SLIDES = 4
MAX_SLIDES = 10
DEFAULT_SLIDES = 6
DEFAULT_LANGUAGE = "vi"

Style = Literal["professional", "casual"]


class Slide(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    bullets: List[str] = Field(default_factory=list)
    image_prompt: Optional[str] = Field(default=None, alias="imagePrompt")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    image_data: Optional[str] = Field(default=None, alias="imageData",
                                      description="data: URL of an embeddable image")


class Deck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    topic: str
    slides: List[Slide] = Field(..., min_length=1)
    theme: Optional[str] = None
    style: Style = "professional"


class GenerateRequest(BaseModel):
    topic: Optional[str] = None
    slides: int = DEFAULT_SLIDES
    lang: str = DEFAULT_LANGUAGE
    model: Optional[str] = None

    @field_validator("slides")
    @classmethod
    def clamp_slides(cls, v):
        return max(MIN_SLIDES, min(v, MAX_SLIDES))


class ExportRequest(BaseModel):
    """A (possibly user-edited) deck plus export options."""

    model_config = ConfigDict(populate_by_name=True)

    topic: str = "Untitled"
    slides: List[Slide] = Field(default_factory=list)
    theme: Optional[str] = None
    style: Optional[str] = None
    with_images: bool = Field(default=False, alias="withImages")
    augment_images: Optional[bool] = Field(default=None, alias="augmentImages")

    @property
    def wants_images(self) -> bool:
        if self.augment_images is not None:
            return self.augment_images
        return self.with_images

    def to_deck(self) -> Deck:
        style = self.style if self.style in ("professional", "casual") else "professional"
        return Deck(topic=self.topic, slides=self.slides, theme=self.theme, style=style)


class ImageRequest(BaseModel):
    prompt: Optional[str] = None
    model: Optional[str] = None


class ImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_data_url: str = Field(..., alias="imageDataUrl")
