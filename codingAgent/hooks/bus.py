"""In-process publish/subscribe bus with correlation-id request/response.

One bus instance is created by the application and passed to every component
that needs it. Subscriptions are registered at component construction and
live for the process lifetime; there is no teardown.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Optional, Union

from .types import HookMessage, MessageBusType

LOGGER = logging.getLogger(__name__)

Handler = Callable[[HookMessage], Union[None, Awaitable[None]]]


class MessageBus:
    """Typed pub/sub channel.

    Handlers run in subscription order. A handler that raises is logged and
    does not prevent the remaining handlers from receiving the message.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[MessageBusType, List[Handler]] = defaultdict(list)

    def subscribe(self, message_type: MessageBusType, handler: Handler) -> None:
        self._subscribers[message_type].append(handler)
        LOGGER.debug(f"Subscribed {getattr(handler, '__qualname__', handler)} to {message_type.value}")

    def unsubscribe(self, message_type: MessageBusType, handler: Handler) -> None:
        handlers = self._subscribers.get(message_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self, message_type: MessageBusType) -> int:
        return len(self._subscribers.get(message_type, []))

    async def publish(self, message: HookMessage) -> None:
        """Deliver ``message`` to every subscriber of its type."""
        # Copy so handlers may (un)subscribe while we iterate
        for handler in list(self._subscribers.get(message.type, [])):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                LOGGER.error(
                    f"Bus handler failed for {message.type.value} "
                    f"(correlation={message.correlation_id}): {e}",
                    exc_info=True,
                )

    async def request(
        self,
        message: HookMessage,
        response_type: MessageBusType,
        timeout: Optional[float] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> Optional[HookMessage]:
        """Publish ``message`` and wait for the first response with the same correlation id.

        Args:
            message: Request message; its ``correlation_id`` keys the response.
            response_type: Message type the response is published as.
            timeout: Seconds to wait after publishing. ``None`` waits indefinitely.
            signal: Abort signal; when set the wait ends early.

        Returns:
            The first matching response, or ``None`` on timeout or abort.
            Later duplicates for the same correlation id are ignored.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _on_response(response: HookMessage) -> None:
            if response.correlation_id != message.correlation_id:
                return
            if future.done():
                LOGGER.debug(f"Ignoring duplicate response for {message.correlation_id}")
                return
            future.set_result(response)

        self.subscribe(response_type, _on_response)
        try:
            await self.publish(message)
            if future.done():
                return future.result()
            if signal is not None and signal.is_set():
                return None

            waiters = {future}
            abort_waiter = None
            if signal is not None:
                abort_waiter = asyncio.ensure_future(signal.wait())
                waiters.add(abort_waiter)
            try:
                done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
            finally:
                if abort_waiter is not None:
                    abort_waiter.cancel()

            if future in done:
                return future.result()
            if abort_waiter is not None and abort_waiter in done:
                LOGGER.info(f"Bus request {message.correlation_id} aborted")
            else:
                LOGGER.warning(f"Bus request {message.correlation_id} timed out after {timeout}s")
            return None
        finally:
            self.unsubscribe(response_type, _on_response)
            if not future.done():
                future.cancel()
