"""
Progress aggregator module.

Per-variant progress channels and the batch-level aggregator built on them.
"""

from modules.progress_aggregator.channel import (
    ProgressPublisher,
    VariantProgressSubscription,
    progress_channel
)
from modules.progress_aggregator.aggregator import ProgressAggregator, is_newer, summarize

__all__ = [
    "ProgressPublisher",
    "VariantProgressSubscription",
    "progress_channel",
    "ProgressAggregator",
    "is_newer",
    "summarize",
]
