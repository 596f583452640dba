"""Batch travel distance/duration computation over AMap for table records."""

__version__ = "0.1.0"
