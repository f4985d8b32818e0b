"""
Channel registry for manager lifecycle and response notifications.

Follows publisher-subscriber pattern: the manager publishes, consumers
subscribe, neither knows about the other.

Design Principles:
- Closed channel set (core.ontology.Channel); unknown names are rejected
- Multiple independent subscribers per channel, no ordering promise
- Supports both sync and async handlers
- Non-blocking (async handlers scheduled via create_task)
- A failing handler is logged and never breaks the publisher

Architecture:
    Dispatcher / Classifier → ChannelRegistry → [UI, Logger, Recorder, ...]

Usage:
    from infrastructure.event_bus import ChannelRegistry
    from core.ontology import Channel

    channels = ChannelRegistry()

    def on_rebuild(response, manager):
        redraw(response.individuals())

    channels.subscribe(Channel.REBUILD, on_rebuild)
    channels.publish(Channel.REBUILD, response, manager)
"""
from typing import Callable, List, Dict, Any, Optional, Union
import asyncio
from collections import defaultdict
import logging

from core.ontology import Channel


logger = logging.getLogger("minerva.event_bus")


ChannelName = Union[Channel, str]


def as_channel(channel: ChannelName) -> Channel:
    """Coerce a channel name; raises ValueError for names outside the set."""
    try:
        return Channel(channel)
    except ValueError:
        valid = ", ".join(c.value for c in Channel)
        raise ValueError(f"Unknown channel {channel!r} (expected one of: {valid})") from None


class ChannelRegistry:
    """
    Enumeration-keyed multi-map of subscriber lists.

    Thread Safety:
        NOT thread-safe. A manager runs on a single logical thread of
        control; async handlers are scheduled on the running event loop.
    """

    def __init__(self):
        """Initialize empty subscriber lists."""
        self._subscribers: Dict[Channel, List[Callable]] = defaultdict(list)
        self._async_subscribers: Dict[Channel, List[Callable]] = defaultdict(list)

    def subscribe(self, channel: ChannelName, handler: Callable[..., Any]) -> Callable[..., Any]:
        """
        Subscribe to a channel with a synchronous handler.

        Args:
            channel: Channel to listen on
            handler: Callable taking the channel's positional arguments

        Returns:
            The handler itself (see on())
        """
        channel = as_channel(channel)
        if handler not in self._subscribers[channel]:
            self._subscribers[channel].append(handler)
            logger.debug(f"Subscribed sync handler to {channel.value}")
        return handler

    def subscribe_async(self, channel: ChannelName, handler: Callable[..., Any]) -> Callable[..., Any]:
        """
        Subscribe to a channel with an async handler.

        The coroutine is scheduled on the running loop when the channel
        fires; if no loop is running the call is skipped with a warning.
        """
        channel = as_channel(channel)
        if handler not in self._async_subscribers[channel]:
            self._async_subscribers[channel].append(handler)
            logger.debug(f"Subscribed async handler to {channel.value}")
        return handler

    def on(self, channel: ChannelName) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """
        Decorator form of subscribe().

        Example:
            @channels.on(Channel.MERGE)
            def on_merge(response, manager): ...
        """
        def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
            if asyncio.iscoroutinefunction(handler):
                return self.subscribe_async(channel, handler)
            return self.subscribe(channel, handler)
        return decorator

    def publish(self, channel: ChannelName, *args: Any) -> None:
        """
        Fire a channel.

        Note:
            - Sync handlers run immediately, in subscription order
            - Async handlers are scheduled and run in the background
            - Exceptions in handlers are logged but don't propagate
        """
        channel = as_channel(channel)
        logger.debug(f"Publishing {channel.value} ({len(args)} args)")

        for handler in list(self._subscribers[channel]):
            try:
                handler(*args)
            except Exception as e:
                logger.error(
                    f"Error in sync handler for {channel.value}: {e}",
                    exc_info=True
                )

        for handler in list(self._async_subscribers[channel]):
            try:
                try:
                    loop = asyncio.get_running_loop()
                    loop.create_task(handler(*args))
                except RuntimeError:
                    logger.warning(
                        f"Cannot schedule async handler for {channel.value}: "
                        "no event loop running"
                    )
            except Exception as e:
                logger.error(
                    f"Error scheduling async handler for {channel.value}: {e}",
                    exc_info=True
                )

    def unsubscribe(self, channel: ChannelName, handler: Callable) -> None:
        """Remove a handler (must be the same instance that was subscribed)."""
        channel = as_channel(channel)

        if handler in self._subscribers[channel]:
            self._subscribers[channel].remove(handler)
            logger.debug(f"Unsubscribed sync handler from {channel.value}")

        if handler in self._async_subscribers[channel]:
            self._async_subscribers[channel].remove(handler)
            logger.debug(f"Unsubscribed async handler from {channel.value}")

    def clear_subscribers(self, channel: Optional[ChannelName] = None) -> None:
        """
        Clear all subscribers for a channel (or all channels).

        Warning:
            This is primarily for testing. Use with caution in production.
        """
        if channel is None:
            self._subscribers.clear()
            self._async_subscribers.clear()
            logger.info("Cleared all channel subscribers")
        else:
            channel = as_channel(channel)
            self._subscribers[channel].clear()
            self._async_subscribers[channel].clear()
            logger.info(f"Cleared subscribers for {channel.value}")

    def subscriber_count(self, channel: Optional[ChannelName] = None) -> int:
        """Count subscribers (sync + async) on one channel or all channels."""
        if channel is None:
            total = sum(len(handlers) for handlers in self._subscribers.values())
            total += sum(len(handlers) for handlers in self._async_subscribers.values())
            return total
        channel = as_channel(channel)
        return len(self._subscribers[channel]) + len(self._async_subscribers[channel])
