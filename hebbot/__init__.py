"""Hebbot — weekly news aggregation from chat messages and emoji reactions."""

__version__ = "2.1.0"
