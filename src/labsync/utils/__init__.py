"""Shared helpers for labsync."""

from .datetime import now_utc, ensure_aware, to_iso_string, parse_iso, duration_ms

__all__ = ["now_utc", "ensure_aware", "to_iso_string", "parse_iso", "duration_ms"]
