"""Conduit articles API: articles, comments, favorites and feeds."""

__version__ = "1.0.0"
