# -*- coding: utf-8 -*-
"""PocketJournal package.

Modules:
    model:         Entry record, value kinds and categories.
    values:        Reader-side interpretation of entry values.
    days:          Local calendar-day helpers.
    db:            SQLite schema + async entry store.
    subscriptions: Reactive query subscriptions.
    repository:    Facade used by the UI.
    config:        JSON config file and database path.
    app:           Composition root (store + facade + logging).
    errors:        Exception types.
"""

__all__ = [
    "app",
    "config",
    "days",
    "db",
    "errors",
    "model",
    "repository",
    "subscriptions",
    "values",
]
