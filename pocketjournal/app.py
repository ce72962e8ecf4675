# -*- coding: utf-8 -*-
"""Composition root for PocketJournal.

Builds the store and the repository facade explicitly and hands the facade to
the caller (the UI). Nothing here is a global: each call opens its own store.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
import logging

from .config import load_config, resolve_db_path
from .db import EntryStore
from .repository import EntryRepository

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "WARNING") -> logging.Logger:
    """Set the package log level and attach one stream handler."""
    package_logger = logging.getLogger("pocketjournal")
    package_logger.setLevel(level.upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
    return package_logger


@asynccontextmanager
async def open_repository(
    db_path: Optional[str] = None,
    cfg: Optional[Dict[str, object]] = None,
) -> AsyncIterator[EntryRepository]:
    """Open the entry store and yield the facade bound to it."""
    if cfg is None:
        cfg = load_config()
    configure_logging(str(cfg.get("log_level", "WARNING")))
    store = EntryStore(db_path or resolve_db_path(cfg))
    async with store:
        yield EntryRepository(store)
