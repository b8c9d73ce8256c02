"""Exception types shared by the generation pipeline and the HTTP layer."""

from typing import Optional


class DeckGenError(Exception):
    """Base class for every error this package raises on purpose."""

    status_code = 500


class InputValidationError(DeckGenError):
    """Caller input is missing or malformed (absent topic, empty slides...)."""

    status_code = 400


class ConfigurationError(DeckGenError):
    """A required setting (usually the API key) is not configured."""


class InvalidDeckError(DeckGenError, ValueError):
    """Raised by the normalizer when a payload cannot become a Deck."""


class GenerationError(DeckGenError):
    """The text-generation service did not produce a usable answer."""

    def __init__(self, message: str, status: Optional[int] = None,
                 model: Optional[str] = None, body: str = ""):
        self.status = status
        self.model = model
        self.body = body
        super().__init__(message)


class TransientServiceError(GenerationError):
    """429/503 from the service; worth retrying after a delay."""

    def __init__(self, message: str, status: Optional[int] = None,
                 model: Optional[str] = None, body: str = "",
                 retry_after: Optional[float] = None):
        super().__init__(message, status=status, model=model, body=body)
        self.retry_after = retry_after


class StructuralServiceError(GenerationError):
    """The chosen model cannot do JSON mode; the next attempt switches model."""


class GenerationTimeoutError(GenerationError):
    status_code = 504


class ImageResolutionError(DeckGenError):
    """One step of the image chain failed. Recovered unless called standalone."""
