import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .backoff import Sleep, plan_retrying
from .errors import GenerationError, StructuralServiceError
from .retry_plan import AttemptResponse, Pending, RetryPlan, Succeeded, transition
from .security import truncate

logger = logging.getLogger(__name__)

# =========================
# Prompts
# =========================
SYSTEM_PROMPT = (
    "You are an expert slide designer. "
    "You answer with JSON that matches the response schema exactly."
)

USER_PROMPT_TMPL = (
    'Create {count} slides about the topic "{topic}" (language: {language}).\n'
    "Each slide has:\n"
    "- title: short\n"
    "- bullets: 3-5 bullet points, no repeated ideas\n"
    "- imagePrompt: a short English description for an illustration "
    "(flat illustration, minimalist, 16:9)\n"
    "Return JSON matching the schema."
)

DECK_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "slides": {
            "type": "array",
            "minItems": 4,
            "maxItems": 10,
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "bullets": {
                        "type": "array",
                        "minItems": 3,
                        "maxItems": 5,
                        "items": {"type": "string"},
                    },
                    "imagePrompt": {"type": "string"},
                },
                "required": ["title", "bullets"],
            },
        }
    },
    "required": ["slides"],
}


def build_prompt(topic: str, count: int, language: str) -> str:
    return USER_PROMPT_TMPL.format(topic=topic, count=count, language=language)


# =========================
# Gemini (native, JSON mode)
# =========================
class GeminiClient:
    """Runs the model-fallback protocol against ``models/*:generateContent``.

    Attempts are strictly sequential: the outcome of each one decides which
    model the next one uses and how long to wait before it.
    """

    def __init__(self, api_key: str, base_url: str, timeout: float = 60.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 sleep: Sleep = asyncio.sleep):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.sleep = sleep

    async def generate(self, topic: str, count: int, language: str,
                       model: Optional[str] = None) -> str:
        """Return the raw JSON text of a generated deck.

        Raises GenerationError (or a subclass) with the upstream status and
        body when no attempt of the plan succeeds.
        """
        prompt = build_prompt(topic, count, language)
        plan = RetryPlan.for_model(model)

        async for attempt in plan_retrying(len(plan), sleep=self.sleep):
            with attempt:
                index = attempt.retry_state.attempt_number - 1
                current = plan.model_at(index)
                response = await self._call_gemini(current, prompt)
                state = transition(Pending(current), response)

                if isinstance(state, Succeeded):
                    if index:
                        logger.info("Gemini succeeded on %s after %d failed attempt(s)", current, index)
                    return state.text
                if isinstance(state, Pending):
                    plan = plan.redirect(index + 1, state.model)
                    logger.warning("%s has no JSON mode; next attempt uses %s", current, state.model)
                    raise StructuralServiceError(
                        f"Gemini 400 on {current}: JSON mode is not enabled",
                        status=response.status, model=current, body=truncate(response.body))
                raise state.error

        raise GenerationError("Gemini retry plan exhausted")

    async def _call_gemini(self, model: str, prompt: str) -> AttemptResponse:
        url = f"{self.base_url}/models/{model}:generateContent"
        headers = {"x-goog-api-key": self.api_key}
        data = {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": DECK_SCHEMA,
            },
        }
        logger.debug("Gemini request model=%s", model)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(url, headers=headers, json=data)
        except httpx.HTTPError as e:
            raise GenerationError(f"Gemini request failed on {model}: {e}", model=model) from e
        return AttemptResponse(status=r.status_code, body=r.content.decode("utf-8", errors="replace"))
