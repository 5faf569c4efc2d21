"""Autobiography exchange: pairs autobiography authors with reviewers over email."""

__version__ = "0.3.0"

__all__ = ["__version__"]
