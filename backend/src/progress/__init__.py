"""Completion aggregator: per-lesson completion rolled up into course progress."""

from src.progress.router import router
from src.progress.service import CompletionAggregator, compute_completion_percentage


__all__ = [
    "CompletionAggregator",
    "compute_completion_percentage",
    "router",
]
