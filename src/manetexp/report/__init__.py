"""Sweep summary output and result plots."""

from manetexp.report.summary import HEADER_POLICIES, SENTINEL_KEYS, SUMMARY_FIELDS, SweepOutputManager

__all__ = [
    "HEADER_POLICIES",
    "SENTINEL_KEYS",
    "SUMMARY_FIELDS",
    "SweepOutputManager",
]
