"""Text utility helpers."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_whitespace(value: str) -> str:
    """Collapse repeated whitespace and trim ends."""
    return _WHITESPACE_RE.sub(" ", value).strip()


def ellipsize(value: str, width: int) -> str:
    """Shorten long strings to ``width`` characters."""
    if width <= 0:
        return ""
    if len(value) <= width:
        return value
    if width <= 1:
        return "…"
    return f"{value[: width - 1]}…"


def progress_label(current: int, total: int) -> str:
    """``[ 3/12]``-style counter padded to the width of ``total``."""
    digits = len(str(total))
    return f"[{current:>{digits}}/{total}]"


def plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
