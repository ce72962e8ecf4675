# -*- coding: utf-8 -*-
"""Record model for PocketJournal.

Pure data: the value-kind enumeration, the entry row and the category pair.
No database I/O happens here.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class EntryKind(str, Enum):
    """Closed set of value kinds, in their declared (sort) order."""

    BOOLEAN = "BOOLEAN"
    INT = "INT"
    FLOAT = "FLOAT"
    STRING = "STRING"
    NONE = "NONE"

    @property
    def rank(self) -> int:
        """Position of this kind in declaration order."""
        return list(EntryKind).index(self)


@dataclass(frozen=True)
class Entry:
    """One user-recorded data point.

    ``id`` is 0 until the store assigns one; ``timestamp`` is milliseconds
    since the epoch.
    """

    name: str
    kind: EntryKind
    value: str
    timestamp: int
    id: int = 0

    def with_changes(self, **changes) -> "Entry":
        """Return a copy with *changes* applied (used for edits)."""
        return replace(self, **changes)


@dataclass(frozen=True)
class Category:
    """A distinct entry name and the kind of its first stored entry."""

    name: str
    kind: EntryKind
