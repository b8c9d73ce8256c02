"""Time-bounded memoization of generated decks.

Entries are keyed by ``model|language|count|topic`` (lowercased) and expire
lazily: a stale entry stays in memory until the next generation for the same
key overwrites it. Concurrent misses for one key share a single in-flight
generation task; each caller bounds its own wait, and the generation is
cancelled once nobody is waiting for it.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Protocol

from .catalog import sanitize_text_model
from .deck import normalize_deck, parse_model_output
from .errors import GenerationTimeoutError
from .models import Deck

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


class TextGenerator(Protocol):
    def generate(self, topic: str, count: int, language: str,
                 model: Optional[str] = None) -> Awaitable[str]: ...


@dataclass(frozen=True)
class CacheEntry:
    deck: Deck
    created_at: float


def cache_key(model: str, language: str, count: int, topic: str) -> str:
    return f"{model}|{language}|{count}|{topic}".lower()


class DeckCache:
    def __init__(self, generator: TextGenerator, ttl: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic,
                 timeout: Optional[float] = None):
        self.generator = generator
        self.ttl = ttl
        self.clock = clock
        self.timeout = timeout
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._waiters: Dict[asyncio.Task, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, key: str) -> Optional[Deck]:
        entry = self._entries.get(key)
        if entry is None or self.clock() - entry.created_at >= self.ttl:
            return None
        return entry.deck

    async def get_or_generate(self, topic: str, count: int, language: str,
                              model: Optional[str] = None,
                              timeout: Optional[float] = None) -> Deck:
        """Return a cached deck or generate, normalize and store a new one.

        The shared generation is bounded by the cache-wide timeout. Each
        caller's wait is bounded by its own ``timeout`` (seconds, defaulting
        to the cache-wide one); when the last waiter gives up, the
        generation is cancelled.
        """
        model = sanitize_text_model(model)
        key = cache_key(model, language, count, topic)

        deck = self.lookup(key)
        if deck is not None:
            logger.debug("Deck cache hit: %s", key)
            return deck

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._generate(key, topic, count, language, model))
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.debug("Joining in-flight generation: %s", key)

        deadline = self.timeout if timeout is None else timeout
        self._waiters[task] = self._waiters.get(task, 0) + 1
        try:
            # One waiter giving up must not cancel the generation others are awaiting
            return await asyncio.wait_for(asyncio.shield(task), deadline)
        except asyncio.TimeoutError as e:
            raise GenerationTimeoutError(
                f"Deck generation timed out after {deadline:g}s", model=model) from e
        finally:
            self._release(task)

    def _release(self, task: asyncio.Task) -> None:
        left = self._waiters.pop(task, 1) - 1
        if left > 0:
            self._waiters[task] = left
        elif not task.done():
            logger.info("No caller left waiting; cancelling generation")
            # New callers must start afresh rather than join a cancelled task
            for key, t in list(self._in_flight.items()):
                if t is task:
                    del self._in_flight[key]
            task.cancel()

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception retrieved even if every waiter already left
            task.exception()

    async def _generate(self, key: str, topic: str, count: int, language: str,
                        model: str) -> Deck:
        try:
            text = await asyncio.wait_for(
                self.generator.generate(topic, count, language, model), self.timeout)
        except asyncio.TimeoutError as e:
            raise GenerationTimeoutError(
                f"Deck generation timed out after {self.timeout:g}s", model=model) from e

        parsed = parse_model_output(text)
        deck = normalize_deck({"topic": topic, "slides": parsed.get("slides")})
        self._entries[key] = CacheEntry(deck=deck, created_at=self.clock())
        logger.info("Generated deck with %d slides for %r (%s)", len(deck.slides), topic, model)
        return deck
