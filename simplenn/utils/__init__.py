"""Utilities around the engine: progress reporting and sequence framing."""

from .progress import NullProgress, ProgressBar, ProgressIndicator
from .sliding_window import SlidingWindowSequence

__all__ = ["NullProgress", "ProgressBar", "ProgressIndicator", "SlidingWindowSequence"]
