"""
phaseguard Utilities Package.

This module exports shared helpers for JSON persistence and formatting.
"""

from phaseguard.utils.files import read_json, sanitize_target_for_path, write_json_atomic
from phaseguard.utils.formatting import format_cost, format_duration, parse_timestamp, utc_now_iso

__all__ = [
    "read_json",
    "sanitize_target_for_path",
    "write_json_atomic",
    "format_cost",
    "format_duration",
    "parse_timestamp",
    "utc_now_iso",
]
