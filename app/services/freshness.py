from __future__ import annotations

import time


def describe_last_updated(last_success_at: int | None, now: float | None = None) -> str:
    """Human "last updated" label for the cached prices."""
    if last_success_at is None:
        return "Never"
    current = time.time() if now is None else now
    diff_sec = int(max(current - last_success_at, 0))
    if diff_sec < 60:
        return "Just now"
    if diff_sec < 3600:
        return f"{diff_sec // 60}m ago"
    return f"{diff_sec // 3600}h ago"


def is_stale(last_success_at: int | None, stale_after_sec: float, now: float | None = None) -> bool:
    if last_success_at is None:
        return True
    current = time.time() if now is None else now
    return (current - last_success_at) > stale_after_sec
