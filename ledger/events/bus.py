"""
Event Bus

In-process pub/sub between the dashboard feed and PortfolioService.
Subscriptions match ledger event types with shell-style wildcards:
- "prices"          price ticks coming in
- "position_*"      opened and closed
- "*"               everything the service announces
"""
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Tuple
import asyncio
import fnmatch
from loguru import logger

from .base import BaseEvent


EventHandler = Callable[[BaseEvent], Awaitable[None]]


class IEventBus(ABC):
    """What PortfolioService needs from a bus"""

    @abstractmethod
    async def publish(self, event: BaseEvent) -> None:
        """Deliver event to every handler whose pattern matches its type"""
        pass

    @abstractmethod
    async def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """
        Register handler for event types matching event_type

        Returns:
            Subscription ID (for unsubscribing)
        """
        pass

    @abstractmethod
    async def unsubscribe(self, subscription_id: str) -> None:
        pass


class InMemoryEventBus(IEventBus):
    """
    Single-process bus

    Handlers for one event run concurrently; a failing handler is
    logged and does not affect the others.
    """

    def __init__(self):
        self._handlers: Dict[str, Tuple[str, EventHandler]] = {}
        self._counter = 0

        logger.info("Initialized InMemoryEventBus")

    async def publish(self, event: BaseEvent) -> None:
        handlers = [
            handler for pattern, handler in self._handlers.values()
            if fnmatch.fnmatch(event.event_type, pattern)
        ]

        if not handlers:
            logger.debug(f"No subscribers for event type: {event.event_type}")
            return

        await asyncio.gather(*(self._deliver(handler, event) for handler in handlers))

    async def _deliver(self, handler: EventHandler, event: BaseEvent) -> None:
        try:
            await handler(event)
        except Exception as e:
            logger.opt(exception=e).error(f"Error in event handler for {event.event_type}: {e}")

    async def subscribe(self, event_type: str, handler: EventHandler) -> str:
        self._counter += 1
        subscription_id = f"sub_{self._counter}"

        self._handlers[subscription_id] = (event_type, handler)

        logger.debug(f"Added subscription {subscription_id} for pattern: {event_type}")

        return subscription_id

    async def unsubscribe(self, subscription_id: str) -> None:
        if self._handlers.pop(subscription_id, None) is None:
            logger.warning(f"Subscription {subscription_id} not found")
        else:
            logger.debug(f"Removed subscription {subscription_id}")
