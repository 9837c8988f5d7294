"""Bounded polling for the order a cart turned into."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from storefront.core.config import PollingConfig
from storefront.core.exceptions import StorefrontException
from storefront.domain.entities import Order
from storefront.integrations.commerce_client import CommerceClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PollingPolicy:
    attempts: int
    delay_seconds: float

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("Polling needs at least one attempt")
        if self.delay_seconds < 0:
            raise ValueError("Polling delay cannot be negative")

    @property
    def max_wait_seconds(self) -> float:
        """Upper bound on time spent sleeping; no sleep follows the last attempt."""
        return (self.attempts - 1) * self.delay_seconds

    @classmethod
    def primary(cls, config: PollingConfig) -> PollingPolicy:
        return cls(config.attempts, config.delay_seconds)

    @classmethod
    def retry(cls, config: PollingConfig) -> PollingPolicy:
        return cls(config.retry_attempts, config.retry_delay_seconds)


class OrderLocator:
    """Looks up the order created from a cart, e.g. by a payment webhook."""

    def __init__(
        self,
        client: CommerceClient,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        self.client = client
        self._sleep = sleep or asyncio.sleep

    async def find_order_for_cart(self, cart_id: str, policy: PollingPolicy) -> Order | None:
        for attempt in range(1, policy.attempts + 1):
            try:
                order = await self.client.retrieve_order_by_cart(cart_id)
            except StorefrontException as e:
                # transient per-attempt failures never abort the poll
                logger.warning(
                    f"Order lookup for cart {cart_id} failed (attempt {attempt}/{policy.attempts}): {e}"
                )
                order = None

            if order is not None:
                logger.info(f"Found order {order.id} for cart {cart_id} on attempt {attempt}")
                return order

            if attempt < policy.attempts:
                await self._sleep(policy.delay_seconds)

        logger.info(f"No order found for cart {cart_id} after {policy.attempts} attempts")
        return None
