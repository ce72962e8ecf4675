# -*- coding: utf-8 -*-
"""Repository facade: the public API used by the UI.

This module does not contain any UI code. It turns calendar days into
half-open millisecond ranges and forwards everything else to
:class:`~pocketjournal.db.EntryStore` unchanged (empty names or values are
stored as given).
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from . import days
from .db import EntryStore
from .model import Entry
from .subscriptions import Subscription


class SortMode(str, Enum):
    """How the home list is ordered."""

    NONE = "none"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"
    KIND_ASC = "kind_asc"


class EntryRepository:
    """Single entry point into the entry store."""

    def __init__(self, store: EntryStore) -> None:
        self.store = store

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------

    async def insert(self, entry: Entry) -> Optional[int]:
        return await self.store.insert(entry)

    async def update(self, entry: Entry) -> None:
        await self.store.update(entry)

    async def delete(self, entry: Entry) -> None:
        await self.store.delete(entry)

    async def delete_by_id(self, entry_id: int) -> None:
        await self.store.delete_by_id(entry_id)

    # -----------------------------------------------------------------
    # Subscriptions
    # -----------------------------------------------------------------

    async def subscribe_all(self) -> Subscription:
        return await self.store.get_all()

    async def subscribe_by_date_range(self, start: int, end: int) -> Subscription:
        return await self.store.get_by_date_range(start, end)

    async def subscribe_by_day(self, instant_ms: int) -> Subscription:
        """Entries recorded on the local calendar day of *instant_ms*."""
        start, end = days.day_range(instant_ms)
        return await self.store.get_by_date_range(start, end)

    async def subscribe_by_name(self, name: str) -> Subscription:
        return await self.store.get_by_name(name)

    async def subscribe_by_id(self, entry_id: int) -> Subscription:
        return await self.store.get_by_id(entry_id)

    async def subscribe_today(self) -> Subscription:
        return await self.subscribe_by_day(days.now_ms())

    async def subscribe_today_sorted_by(
        self, sort_mode: Union[SortMode, str] = SortMode.NONE
    ) -> Subscription:
        """Today's entries in *sort_mode* order; "today" is read at call time."""
        sort_mode = SortMode(sort_mode)
        start, end = days.day_range(days.now_ms())
        if sort_mode is SortMode.NAME_ASC:
            return await self.store.get_by_date_range_by_name_asc(start, end)
        if sort_mode is SortMode.NAME_DESC:
            return await self.store.get_by_date_range_by_name_desc(start, end)
        if sort_mode is SortMode.KIND_ASC:
            return await self.store.get_by_date_range_by_kind_asc(start, end)
        return await self.store.get_by_date_range(start, end)

    async def subscribe_all_sorted_by(
        self, sort_mode: Union[SortMode, str] = SortMode.NONE
    ) -> Subscription:
        sort_mode = SortMode(sort_mode)
        if sort_mode is SortMode.NAME_ASC:
            return await self.store.get_all_by_name_asc()
        if sort_mode is SortMode.NAME_DESC:
            return await self.store.get_all_by_name_desc()
        if sort_mode is SortMode.KIND_ASC:
            return await self.store.get_all_by_kind_asc()
        return await self.store.get_all()

    async def subscribe_categories(self) -> Subscription:
        return await self.store.get_categories()

    # -----------------------------------------------------------------
    # Point-in-time reads
    # -----------------------------------------------------------------

    async def count_by_name_like(self, pattern: str) -> int:
        """Point-in-time LIKE count; a single read, never reactive."""
        return await self.store.count_by_name_like(pattern)

    async def category_exists(self, name: str) -> bool:
        """Return True if any entry already uses *name* (LIKE match)."""
        return await self.store.count_by_name_like(name) > 0
