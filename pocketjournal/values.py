# -*- coding: utf-8 -*-
"""Reader-side helpers for entry values.

The store keeps every value as text and never validates it. Readers that need
a typed value call :func:`interpret_value`; writers use :func:`format_value`
to produce the canonical text.
"""
from __future__ import annotations

from typing import Union

from .errors import MalformedValueError
from .model import Entry, EntryKind

Value = Union[bool, int, float, str]

_BOOLEAN_TEXT = {"true": True, "false": False}


def interpret_value(entry: Entry) -> Value:
    """Return *entry.value* parsed according to *entry.kind*."""
    kind = entry.kind
    text = entry.value
    if kind is EntryKind.NONE:
        raise MalformedValueError(f"Entry {entry.name!r} has no kind chosen")
    if kind is EntryKind.STRING:
        return text
    if kind is EntryKind.BOOLEAN:
        # strict: only the exact lowercase words are accepted
        if text not in _BOOLEAN_TEXT:
            raise MalformedValueError(f"Not a boolean: {text!r}")
        return _BOOLEAN_TEXT[text]
    try:
        if kind is EntryKind.INT:
            return int(text)
        return float(text)
    except ValueError as exc:
        raise MalformedValueError(f"Not a {kind.value.lower()}: {text!r}") from exc


def format_value(value: Value) -> str:
    """Render *value* as the text stored in an entry."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
