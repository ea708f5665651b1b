from __future__ import annotations

from .registry import detect_format, get_reader, get_writer

__all__ = ["detect_format", "get_reader", "get_writer"]
