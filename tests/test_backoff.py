from __future__ import annotations

import json

import pytest

from topic2pptx.backoff import backoff_delay, parse_retry_delay, plan_retrying
from topic2pptx.errors import GenerationError, StructuralServiceError, TransientServiceError


def retry_info(delay) -> str:
    return json.dumps({
        "error": {
            "code": 429,
            "details": [
                {"@type": "type.googleapis.com/google.rpc.QuotaFailure"},
                {"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": delay},
            ],
        }
    })


def test_default_backoff_doubles() -> None:
    assert [backoff_delay(i) for i in range(3)] == pytest.approx([0.8, 1.6, 3.2])


def test_server_hint_wins() -> None:
    assert backoff_delay(2, retry_after=5.0) == 5.0
    assert backoff_delay(0, retry_after=0.0) == 0.0


@pytest.mark.parametrize("raw, seconds", [("12s", 12.0), ("1.5s", 1.5), ("500ms", 0.5), ("2m", 120.0), ("1h", 3600.0), ("7", 7.0)])
def test_parse_retry_delay_units(raw, seconds) -> None:
    assert parse_retry_delay(retry_info(raw)) == pytest.approx(seconds)


@pytest.mark.parametrize("body", [
    None,
    "",
    "Service Unavailable",
    json.dumps({"error": {"code": 429, "message": "slow down"}}),
    json.dumps({"error": {"details": [{"@type": "google.rpc.ErrorInfo", "retryDelay": "3s"}]}}),
    json.dumps([1, 2, 3]),
])
def test_parse_retry_delay_without_hint(body) -> None:
    assert parse_retry_delay(body) is None


@pytest.mark.asyncio
async def test_plan_retrying_waits_only_for_transient(sleeps, fake_sleep) -> None:
    outcomes = [
        StructuralServiceError("no json mode"),
        TransientServiceError("busy", status=429),
        TransientServiceError("busy", status=503, retry_after=4.0),
        None,
    ]
    calls = 0
    async for attempt in plan_retrying(4, sleep=fake_sleep):
        with attempt:
            exc = outcomes[calls]
            calls += 1
            if exc is not None:
                raise exc
    assert calls == 4
    # structural: no wait; transient #2: 0.8 * 2**1; transient #3: server hint
    assert sleeps == pytest.approx([1.6, 4.0])


@pytest.mark.asyncio
async def test_plan_retrying_reraises_terminal_immediately(sleeps, fake_sleep) -> None:
    calls = 0
    with pytest.raises(GenerationError) as exc:
        async for attempt in plan_retrying(3, sleep=fake_sleep):
            with attempt:
                calls += 1
                raise GenerationError("bad request", status=400)
    assert calls == 1
    assert sleeps == []
    assert exc.value.status == 400


@pytest.mark.asyncio
async def test_plan_retrying_reraises_last_error_when_exhausted(sleeps, fake_sleep) -> None:
    with pytest.raises(TransientServiceError) as exc:
        async for attempt in plan_retrying(3, sleep=fake_sleep):
            with attempt:
                n = attempt.retry_state.attempt_number
                raise TransientServiceError(f"busy {n}", status=429)
    assert str(exc.value) == "busy 3"
    assert sleeps == pytest.approx([0.8, 1.6])
