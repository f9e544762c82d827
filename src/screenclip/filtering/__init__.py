"""
Event filtering for the screenclip package.
"""

from .dedup import DedupSet
from .event_filter import EventFilter, FilterStats

__all__ = [
    "DedupSet",
    "EventFilter",
    "FilterStats",
]
