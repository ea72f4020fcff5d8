"""Named cleanup callbacks run when memory crosses the configured threshold."""

import gc
import logging
from typing import Callable, Dict

logger = logging.getLogger(__name__)

CLEANUP_ERRORS = (RuntimeError, ValueError, KeyError, TypeError)


class CleanupRegistry:
    def __init__(self) -> None:
        self._callbacks: Dict[str, Callable[[], int]] = {}
        self.gc_count = 0

    def register(self, name: str, callback: Callable[[], int]) -> None:
        """Register ``callback``; it returns how many entries it released."""
        self._callbacks[name] = callback

    def run(self) -> Dict[str, int]:
        released: Dict[str, int] = {}
        for name, callback in list(self._callbacks.items()):
            try:
                released[name] = callback()
            except CLEANUP_ERRORS as exc:  # One failing callback must not block the rest  # policy_guard: allow-silent-handler
                logger.warning("Cleanup callback %s failed: %s", name, exc)
                released[name] = 0

        collected = gc.collect()
        self.gc_count += 1
        released["gc"] = collected
        return released
