"""Polling policies for update calls answered with "accepted, poll for result".

A policy is a plain value; ``policy.start(context)`` returns a fresh
per-call strategy. The response processor awaits ``strategy(status)`` between
status reads; the strategy sleeps for the next delay or raises
:class:`PollingTimeoutError` once its attempt or deadline budget is spent.
"""

from __future__ import annotations

import asyncio
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol

from loguru import logger

from icreactor.agent.types import RequestStatus
from icreactor.utils.exceptions import PollingTimeoutError

TERMINAL_STATUSES = frozenset({RequestStatus.REPLIED, RequestStatus.REJECTED, RequestStatus.DONE})
MIN_JITTERED_DELAY_MS = 50.0


class PollStrategy(Protocol):
    attempt: int

    async def __call__(self, status: RequestStatus) -> None: ...


class _Strategy(ABC):
    """Shared attempt/deadline bookkeeping."""

    def __init__(self, context: str, max_attempts: int | None, deadline_ms: float | None):
        self.context = context
        self.max_attempts = max_attempts
        self.deadline_ms = deadline_ms
        self.attempt = 0
        self._start = time.monotonic()

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self._start) * 1000

    @abstractmethod
    def _next_delay(self) -> tuple[float, str]:
        """Seconds to sleep before the next attempt and the phase name for logs."""

    def _log(self, status: RequestStatus, phase: str, delay_ms: float) -> None:
        logger.debug(
            "[Polling] {} attempt={} elapsed={}ms status={} phase={} nextDelay={}ms",
            self.context, self.attempt, int(self.elapsed_ms()), status.value, phase, round(delay_ms),
        )

    async def __call__(self, status: RequestStatus) -> None:
        if status in TERMINAL_STATUSES:
            return
        self.attempt += 1
        elapsed = self.elapsed_ms()
        if self.max_attempts is not None and self.attempt >= self.max_attempts:
            raise PollingTimeoutError(self.context, self.attempt, elapsed)
        delay_ms, phase = self._next_delay()
        if self.deadline_ms is not None and elapsed + delay_ms > self.deadline_ms:
            raise PollingTimeoutError(self.context, self.attempt, elapsed)
        self._log(status, phase, delay_ms)
        await asyncio.sleep(delay_ms / 1000)


def _with_jitter(base_ms: float, ratio: float, floor_ms: float) -> float:
    if ratio <= 0:
        return base_ms
    spread = base_ms * ratio
    return max(floor_ms, base_ms - spread + random.random() * spread * 2)


@dataclass(slots=True)
class PollingPolicy:
    """Exponential-backoff polling bounded by attempts and/or a deadline."""

    interval_ms: float = 100.0
    backoff_multiplier: float = 1.5
    max_interval_ms: float = 5_000.0
    jitter_ratio: float = 0.0
    max_attempts: int | None = None
    deadline_ms: float | None = 300_000.0

    def start(self, context: str = "operation") -> PollStrategy:
        return _BackoffStrategy(self, context)


class _BackoffStrategy(_Strategy):
    def __init__(self, policy: PollingPolicy, context: str):
        super().__init__(context, policy.max_attempts, policy.deadline_ms)
        self.policy = policy

    def _next_delay(self) -> tuple[float, str]:
        p = self.policy
        base = min(p.max_interval_ms, p.interval_ms * (p.backoff_multiplier ** (self.attempt - 1)))
        return _with_jitter(base, p.jitter_ratio, 0.0), "backoff"


@dataclass(slots=True)
class TieredPollingPolicy:
    """
    Three-phase polling:

    1. fast: ``fast_attempts`` polls at ``fast_delay_ms``;
    2. ramp: until ``ramp_until_ms`` has elapsed the delay grows from
       ``fast_delay_ms`` towards ``plateau_delay_ms`` along a 0.7 power curve;
    3. plateau: steady ``plateau_delay_ms``.

    Every delay gets +/- ``jitter_ratio`` randomness with a 50ms floor. Progress
    logs are throttled to one per second outside the fast phase, with a forced
    heartbeat after ``max_log_interval_ms`` of silence.
    """

    context: str = "operation"
    fast_attempts: int = 10
    fast_delay_ms: float = 100.0
    ramp_until_ms: float = 20_000.0
    plateau_delay_ms: float = 5_000.0
    jitter_ratio: float = 0.4
    max_log_interval_ms: float = 15_000.0
    max_attempts: int | None = None
    deadline_ms: float | None = None

    def start(self, context: str | None = None) -> PollStrategy:
        return _TieredStrategy(self, context or self.context)

    def compute_delay(self, elapsed_ms: float, attempt: int) -> tuple[float, str]:
        """Un-jittered delay and phase name for the given progress."""
        if attempt < self.fast_attempts:
            return self.fast_delay_ms, "fast"
        if elapsed_ms < self.ramp_until_ms:
            progress = elapsed_ms / self.ramp_until_ms
            base = self.fast_delay_ms + (self.plateau_delay_ms - self.fast_delay_ms) * progress**0.7
            return base, "ramp"
        return self.plateau_delay_ms, "plateau"


class _TieredStrategy(_Strategy):
    def __init__(self, policy: TieredPollingPolicy, context: str):
        super().__init__(context, policy.max_attempts, policy.deadline_ms)
        self.policy = policy
        self._last_log_ms = 0.0

    def _next_delay(self) -> tuple[float, str]:
        base, phase = self.policy.compute_delay(self.elapsed_ms(), self.attempt)
        return _with_jitter(base, self.policy.jitter_ratio, MIN_JITTERED_DELAY_MS), phase

    def _log(self, status: RequestStatus, phase: str, delay_ms: float) -> None:
        now = self.elapsed_ms()
        since_last = now - self._last_log_ms
        if since_last < 1_000 and phase != "fast" and delay_ms < 1_000:
            return
        if since_last > self.policy.max_log_interval_ms:
            phase += "+heartbeat"
        self._last_log_ms = now
        logger.info(
            "[Polling] {} attempt={} elapsed={}ms status={} phase={} nextDelay={}ms",
            self.context, self.attempt, int(now), status.value, phase, round(delay_ms),
        )


DEFAULT_POLLING_POLICY = PollingPolicy()
