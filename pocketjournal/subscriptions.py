# -*- coding: utf-8 -*-
"""Reactive query subscriptions.

A :class:`Subscription` is a live view over one query. It starts with the
current result and receives a complete new snapshot every time the
:class:`SubscriptionRegistry` broadcasts (the store broadcasts after every
mutation that changed the table). There is no dependency tracking: every live
query is re-run on every broadcast.

Subscriptions are consumed as async iterators::

    async with await store.get_by_name("Weight") as sub:
        async for entries in sub:
            ...

or push-style through :meth:`Subscription.add_listener`.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Tuple
import asyncio
import logging

from .errors import StorageUnavailableError

logger = logging.getLogger(__name__)

Query = Callable[[], Awaitable[Any]]
Listener = Callable[[Any], None]
ErrorListener = Callable[[BaseException], None]

_CLOSED = object()


class _Failure:
    """Queued marker for a query that failed while refreshing."""

    def __init__(self, error: BaseException) -> None:
        self.error = error


class Subscription:
    """Async iterator of full result snapshots for one query shape."""

    def __init__(
        self,
        registry: "SubscriptionRegistry",
        key: Hashable,
        query: Query,
        skip: Optional[Callable[[Any], bool]] = None,
    ) -> None:
        self.key = key
        self._registry = registry
        self.query = query
        self._skip = skip
        self._queue: asyncio.Queue = asyncio.Queue()
        self._listeners: List[Tuple[Listener, Optional[ErrorListener]]] = []
        self.closed = False

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def deliver(self, snapshot: Any) -> None:
        """Queue *snapshot* and notify listeners, unless closed or skipped.

        With listeners attached only the latest snapshot stays queued.
        """
        # unsubscribed while the query was running
        if self.closed:
            return
        if self._skip is not None and self._skip(snapshot):
            return
        if isinstance(snapshot, list):
            snapshot = list(snapshot)
        if self._listeners:
            self._drain()
        self._queue.put_nowait(snapshot)
        for on_snapshot, _ in list(self._listeners):
            try:
                on_snapshot(snapshot)
            except Exception:
                logger.exception("Listener on subscription %r failed", self.key)

    def deliver_failure(self, error: BaseException) -> None:
        """Queue *error* for the iterator, tell listeners and unsubscribe."""
        if self.closed:
            return
        logger.error("Subscription %r failed to refresh: %s", self.key, error)
        self._queue.put_nowait(_Failure(error))
        listeners = list(self._listeners)
        self._unregister()
        for _, on_error in listeners:
            if on_error is None:
                continue
            try:
                on_error(error)
            except Exception:
                logger.exception("Error listener on subscription %r failed", self.key)

    def add_listener(
        self, listener: Listener, on_error: Optional[ErrorListener] = None
    ) -> None:
        """Call *listener* with every snapshot delivered from now on.

        *on_error* receives the exception if a refresh fails; the
        subscription is closed afterwards.
        """
        self._listeners.append((listener, on_error))

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [pair for pair in self._listeners if pair[0] is not listener]

    @property
    def pending(self) -> int:
        """Number of snapshots queued but not yet consumed."""
        return self._queue.qsize()

    def _drain(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()

    def _unregister(self) -> None:
        self.closed = True
        self._registry.discard(self)
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Iteration / cancellation
    # ------------------------------------------------------------------

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            raise item.error
        return item

    def close(self) -> None:
        """Unsubscribe; queued snapshots are discarded and iteration ends."""
        if self.closed:
            return
        self._unregister()
        self._drain()
        self._queue.put_nowait(_CLOSED)

    async def aclose(self) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class SubscriptionRegistry:
    """Live subscriptions grouped by query shape."""

    def __init__(self) -> None:
        self._live: Dict[Hashable, List[Subscription]] = {}

    async def open(
        self,
        key: Hashable,
        query: Query,
        skip: Optional[Callable[[Any], bool]] = None,
    ) -> Subscription:
        """Register a subscription for *key* and load its first snapshot."""
        sub = Subscription(self, key, query, skip=skip)
        self._live.setdefault(key, []).append(sub)
        try:
            snapshot = await query()
        except BaseException:
            sub.close()
            raise
        sub.deliver(snapshot)
        logger.debug("Opened subscription %r (%d live)", key, len(self))
        return sub

    def discard(self, sub: Subscription) -> None:
        subs = self._live.get(sub.key)
        if not subs or sub not in subs:
            return
        subs.remove(sub)
        if not subs:
            del self._live[sub.key]
        logger.debug("Closed subscription %r (%d live)", sub.key, len(self))

    async def broadcast(self) -> None:
        """Re-run each live query once and deliver it to all its subscribers."""
        for key, subs in list(self._live.items()):
            if not subs:
                continue
            try:
                snapshot = await subs[0].query()
            except StorageUnavailableError as exc:
                for sub in list(subs):
                    sub.deliver_failure(exc)
                continue
            for sub in list(subs):
                sub.deliver(snapshot)

    def close_all(self) -> None:
        for subs in list(self._live.values()):
            for sub in list(subs):
                sub.close()

    def keys(self) -> List[Hashable]:
        return list(self._live)

    def __len__(self) -> int:
        return sum(len(subs) for subs in self._live.values())
