"""Database models package."""

from .article import DEFAULT_SUMMARY, Article

__all__ = ["Article", "DEFAULT_SUMMARY"]
