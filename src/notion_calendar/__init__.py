"""Notion calendar feed and global ticket identifiers."""

__version__ = "0.1.0"
