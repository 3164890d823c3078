"""Review workflow payloads."""

from .notifier import ReviewNotifier

__all__ = ["ReviewNotifier"]
