"""In-process pub/sub for cart-changed notifications (header badge, mini cart)."""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartChanged:
    session_id: str
    cart_id: str | None
    item_count: int
    reason: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


CartChangedHandler = Callable[[CartChanged], Awaitable[None]]


class CartEvents:
    """Delivers CartChanged to every subscriber; one failing handler never blocks the rest."""

    def __init__(self) -> None:
        self._handlers: list[CartChangedHandler] = []

    def subscribe(self, handler: CartChangedHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)
            logger.debug(f"Cart events subscriber added, total: {len(self._handlers)}")

    def unsubscribe(self, handler: CartChangedHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def emit(self, event: CartChanged) -> None:
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception as e:
                logger.error(f"Cart event handler error ({event.reason}): {e}")
