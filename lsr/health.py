from __future__ import annotations


def is_running(state: str | None, status: str | None) -> bool:
    """Classify a container from what the runtime reports about it.

    Running when the lifecycle state is "running", or when the free-text
    status mentions "up" or "running" (case-insensitive). The two signals
    are not always consistent, so either one is enough.
    """
    if (state or "") == "running":
        return True
    text = (status or "").lower()
    return "up" in text or "running" in text
