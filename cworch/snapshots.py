"""Helpers for taking readable snapshots of contract storage."""

from __future__ import annotations

from typing import Iterable


def parse_storage(storage: Iterable[tuple[bytes, bytes]]) -> list[tuple[str, str]]:
    """Decode raw storage pairs into text, replacing invalid UTF-8."""
    return [
        (key.decode("utf-8", errors="replace"), value.decode("utf-8", errors="replace"))
        for key, value in storage
    ]