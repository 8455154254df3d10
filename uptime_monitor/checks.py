from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable

import httpx
import structlog

from .config import Target

logger = structlog.get_logger(__name__)

DEFAULT_SLOW_THRESHOLD_MS = 2500

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Outcome:
    target: Target
    up: bool
    status_code: int
    elapsed_ms: int | None = None
    slow: bool = False
    error: str | None = None
    attempts: int = 1

    @property
    def name(self) -> str:
        return self.target.name or "Service"

    @property
    def url(self) -> str:
        return self.target.url or ""


def _failed(target: Target, error: str) -> Outcome:
    return Outcome(target=target, up=False, status_code=0, elapsed_ms=None, slow=False, error=error)


async def _fetch(target: Target, client: httpx.AsyncClient) -> tuple[int, float, bool | None]:
    started = time.perf_counter()
    async with client.stream(
        "GET",
        str(target.url),
        follow_redirects=True,
        timeout=target.timeout_seconds,
    ) as resp:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        text_ok: bool | None = None
        # The body is only pulled off the wire when there is something to look for.
        if target.expected_text:
            await resp.aread()
            text_ok = target.expected_text.lower() in (resp.text or "").lower()
        return resp.status_code, elapsed_ms, text_ok


async def probe(
    target: Target,
    client: httpx.AsyncClient,
    *,
    slow_threshold_ms: int = DEFAULT_SLOW_THRESHOLD_MS,
) -> Outcome:
    """
    Issue one GET against ``target`` and classify the result.

    The whole exchange is bounded by ``target.timeout_seconds``; on expiry the
    request task is cancelled, which closes the streamed response. Transport
    errors and timeouts never propagate, they become a failing ``Outcome``
    with ``status_code=0``.
    """
    if not target.url:
        return _failed(target, "no url configured")

    try:
        status_code, elapsed, text_ok = await asyncio.wait_for(
            _fetch(target, client),
            timeout=target.timeout_seconds,
        )
    except asyncio.TimeoutError:
        return _failed(target, f"timed out after {target.timeout_seconds:g}s")
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return _failed(target, f"{type(e).__name__}: {e}" if str(e) else type(e).__name__)
    except OSError as e:
        return _failed(target, f"{type(e).__name__}: {e}")

    if target.expected_status is not None:
        status_ok = status_code == target.expected_status
    else:
        status_ok = 200 <= status_code < 300

    error: str | None = None
    if not status_ok:
        expected = target.expected_status if target.expected_status is not None else "2xx"
        error = f"unexpected status {status_code} (expected {expected})"
    elif text_ok is False:
        error = f"expected text {target.expected_text!r} not found"

    elapsed_ms = int(round(elapsed))
    return Outcome(
        target=target,
        up=status_ok and text_ok is not False,
        status_code=status_code,
        elapsed_ms=elapsed_ms,
        slow=elapsed_ms > slow_threshold_ms,
        error=error,
    )


async def probe_with_retries(
    target: Target,
    client: httpx.AsyncClient,
    *,
    retries: int = 2,
    cooldown_seconds: float = 1.0,
    slow_threshold_ms: int = DEFAULT_SLOW_THRESHOLD_MS,
    sleep: SleepFunc = asyncio.sleep,
) -> Outcome:
    """Probe up to ``retries + 1`` times; return the first success or the last failure."""
    max_attempts = max(0, int(retries)) + 1
    attempt = 1
    outcome = replace(await probe(target, client, slow_threshold_ms=slow_threshold_ms), attempts=attempt)
    while not outcome.up:
        logger.info(
            "probe attempt failed",
            target=target.name,
            attempt=attempt,
            max_attempts=max_attempts,
            status_code=outcome.status_code,
            error=outcome.error,
        )
        if attempt >= max_attempts:
            break
        await sleep(cooldown_seconds)
        attempt += 1
        outcome = replace(await probe(target, client, slow_threshold_ms=slow_threshold_ms), attempts=attempt)
    return outcome
