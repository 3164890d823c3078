"""Reuse Intelligence Module."""

from .ranker import ReuseRanker

__all__ = ["ReuseRanker"]
