# -*- coding: utf-8 -*-
"""Exception types raised by the PocketJournal store."""
from __future__ import annotations


class PocketJournalError(Exception):
    """Base class for all PocketJournal errors."""


class StorageUnavailableError(PocketJournalError):
    """The database could not be opened, read or written."""


class SchemaVersionError(StorageUnavailableError):
    """The database file was written with an unsupported schema."""


class MalformedValueError(PocketJournalError, ValueError):
    """An entry value cannot be read under its declared kind."""
