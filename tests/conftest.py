from __future__ import annotations

import json
from typing import Callable, List, Union

import httpx
import pytest

Scripted = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


def gemini_ok(payload) -> httpx.Response:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def gemini_error(status: int, message: str = "boom", details=None) -> httpx.Response:
    error = {"code": status, "message": message}
    if details is not None:
        error["details"] = details
    return httpx.Response(status, json={"error": error})


def deck_payload(n: int = 4) -> dict:
    return {
        "slides": [
            {"title": f"Point {i + 1}", "bullets": ["a", "b", "c"], "imagePrompt": f"picture {i + 1}"}
            for i in range(n)
        ]
    }


class ScriptedTransport(httpx.MockTransport):
    """Replays canned responses in order and records every request."""

    def __init__(self, responses: List[Scripted]):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"unexpected request: {request.method} {request.url}")
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        if callable(nxt):
            return nxt(request)
        return nxt

    @property
    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
