"""Retry plan and the per-attempt state machine.

A plan is the ordered list of models one generation request may try:
the requested model twice, then the fixed fallback. ``transition`` maps a
single HTTP outcome to the next state without touching the network.
"""
import json
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .backoff import parse_retry_delay
from .catalog import FALLBACK_TEXT_MODEL, PRIMARY_TEXT_MODEL, sanitize_text_model
from .errors import GenerationError, TransientServiceError
from .security import truncate

TRANSIENT_STATUSES = (429, 503)
JSON_MODE_UNSUPPORTED = re.compile(r"JSON mode (is )?not enabled", re.I)


@dataclass(frozen=True)
class AttemptResponse:
    status: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass(frozen=True)
class Pending:
    model: str


@dataclass(frozen=True)
class Succeeded:
    model: str
    text: str


@dataclass(frozen=True)
class FailedTransient:
    error: TransientServiceError


@dataclass(frozen=True)
class FailedTerminal:
    error: GenerationError


AttemptState = Union[Pending, Succeeded, FailedTransient, FailedTerminal]


@dataclass(frozen=True)
class RetryPlan:
    models: Tuple[str, ...]

    @classmethod
    def for_model(cls, requested: Optional[str]) -> "RetryPlan":
        model = sanitize_text_model(requested)
        return cls((model, model, FALLBACK_TEXT_MODEL))

    def __len__(self) -> int:
        return len(self.models)

    def model_at(self, index: int) -> str:
        return sanitize_text_model(self.models[index])

    def redirect(self, index: int, model: str) -> "RetryPlan":
        """Return a plan whose entry ``index`` is replaced by ``model``."""
        if index >= len(self.models):
            return self
        models = list(self.models)
        models[index] = model
        return RetryPlan(tuple(models))


def _first_candidate_text(body: str) -> Optional[str]:
    try:
        data = json.loads(body)
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text.strip() else None


def transition(state: Pending, response: AttemptResponse) -> AttemptState:
    """Classify one attempt made with ``state.model``.

    Returns Succeeded, Pending (the model the next attempt must use after a
    JSON-mode capability error), FailedTransient or FailedTerminal.
    """
    model = state.model
    if response.ok:
        text = _first_candidate_text(response.body)
        if text is None:
            return FailedTerminal(GenerationError(
                f"Gemini returned no structured output on {model}",
                status=response.status, model=model, body=truncate(response.body)))
        return Succeeded(model=model, text=text)

    if response.status == 400 and JSON_MODE_UNSUPPORTED.search(response.body or ""):
        return Pending(PRIMARY_TEXT_MODEL)

    if response.status in TRANSIENT_STATUSES:
        return FailedTransient(TransientServiceError(
            f"Gemini {response.status} on {model}",
            status=response.status, model=model, body=truncate(response.body),
            retry_after=parse_retry_delay(response.body)))

    return FailedTerminal(GenerationError(
        f"Gemini {response.status} on {model}: {truncate(response.body)}",
        status=response.status, model=model, body=response.body))
