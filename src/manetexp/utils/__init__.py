"""Small file and formatting helpers."""

from manetexp.utils.io import deep_merge, dump_json, ensure_parent, fmt_number, load_yaml

__all__ = [
    "deep_merge",
    "dump_json",
    "ensure_parent",
    "fmt_number",
    "load_yaml",
]
