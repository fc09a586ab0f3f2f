"""Shared utilities: event plumbing and formatting helpers."""
from .events import EventEmitter, FileProgress, Subscription
from .formatting import file_category, generate_id, guess_content_type, human_size

__all__ = [
    "EventEmitter",
    "FileProgress",
    "Subscription",
    "file_category",
    "generate_id",
    "guess_content_type",
    "human_size",
]
