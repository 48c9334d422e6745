"""Dropbox-backed blob storage."""

__version__ = "1.0.0"
