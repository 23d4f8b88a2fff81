"""Lightweight timing helpers for logging request and inference latency."""
import time
from contextlib import contextmanager
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Return current time in milliseconds using high-resolution timer."""
    return time.perf_counter() * 1000


@contextmanager
def time_operation(label: str, log_fn: Optional[Callable[[str], None]] = None, min_ms: float = 0.0):
    """
    Time the enclosed block and log "<label>: <elapsed>ms".

    The line is emitted even when the block raises, so failed inference
    calls still show how long they took before failing.

    Example:
        with time_operation("openai.score_properties"):
            reply = client.complete_json(system_prompt, user_prompt)
    """
    start = now_ms()
    try:
        yield
    finally:
        elapsed = now_ms() - start
        if elapsed >= min_ms:
            (log_fn or logger.debug)(f"{label}: {elapsed:.2f}ms")


def log_elapsed(start_ms: float, label: str, log_fn: Optional[Callable[[str], None]] = None) -> float:
    """
    Log elapsed time since start_ms and return the current time, for chaining:

        t = now_ms()
        t = log_elapsed(t, "load_candidates")
        t = log_elapsed(t, "score_candidates")
    """
    elapsed = now_ms() - start_ms
    (log_fn or logger.debug)(f"{label}: {elapsed:.2f}ms")
    return now_ms()
