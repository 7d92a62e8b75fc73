"""Shared helpers for Cortex core."""

from cortex.core.utils.datetime_utils import (
    utc_now,
    ensure_utc,
    parse_iso_datetime,
    format_iso,
    days_between,
)

__all__ = ["utc_now", "ensure_utc", "parse_iso_datetime", "format_iso", "days_between"]
