"""Data models for the dictionary API."""

from .response import (
    DictionaryEntry,
    ErrorResponse,
    HealthResponse,
    MetricsResponse,
    RandomEntryResponse,
    ReloadResponse,
    SearchResponse,
    StatusResponse,
    TextSegment,
    TranslationResult,
)
from .request import SearchRequest

__all__ = [
    "DictionaryEntry",
    "ErrorResponse",
    "HealthResponse",
    "MetricsResponse",
    "RandomEntryResponse",
    "ReloadResponse",
    "SearchResponse",
    "StatusResponse",
    "TextSegment",
    "TranslationResult",
    "SearchRequest",
]
