"""MANET routing comparison: reception accounting, throughput sampling and sweep reporting."""

__version__ = "0.1.0"
