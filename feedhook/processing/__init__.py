"""
FeedHook Processing Module
=========================

Feed fetching, image extraction and novelty detection.
"""

from .image_extractor import ImageExtractor
from .feed_fetcher import FeedFetcher
from .entry_processor import EntryProcessor, ProcessingResult

__all__ = [
    'ImageExtractor',
    'FeedFetcher',
    'EntryProcessor',
    'ProcessingResult'
]
