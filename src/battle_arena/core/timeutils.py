"""Millisecond timestamp helpers shared by cooldowns and records."""

from __future__ import annotations

import math
import time


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def remaining_seconds(last_ms: int | None, cooldown_seconds: int, now: int) -> int:
    """Whole seconds left on a cooldown, rounded up. 0 when it has elapsed.

    Never more than cooldown_seconds, even when last_ms is ahead of now.

    Args:
        last_ms: Timestamp of the last action, or None if there was none.
        cooldown_seconds: Cooldown length.
        now: Current time in epoch milliseconds.
    """
    if last_ms is None:
        return 0
    remaining_ms = last_ms + cooldown_seconds * 1000 - now
    if remaining_ms <= 0:
        return 0
    return min(math.ceil(remaining_ms / 1000), cooldown_seconds)
