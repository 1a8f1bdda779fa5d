"""Notifications queued during a request and dispatched after the commit.

A failed dispatch is logged and reported as False; it never reverses the
state change that queued it.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Outbox:
    def __init__(self) -> None:
        self._pending: list[tuple[str, Callable[..., Any], tuple, dict]] = []

    def add(self, label: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._pending.append((label, func, args, kwargs))

    def __len__(self) -> int:
        return len(self._pending)

    def drain(self) -> dict[str, bool]:
        results: dict[str, bool] = {}
        pending, self._pending = self._pending, []
        for label, func, args, kwargs in pending:
            try:
                results[label] = bool(func(*args, **kwargs))
            except Exception:
                logger.exception("Outbox: %s failed", label)
                results[label] = False
            if not results[label]:
                logger.warning("Outbox: %s not delivered", label)
        return results


def get_outbox() -> Outbox:
    return Outbox()
