"""Response models for API endpoints."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.dictionary import DictionaryStats
from ..protocol.states import MainState


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TextSegment(BaseModel):
    """A piece of entry text, flagged when the search pattern matched it."""

    text: str = Field(..., description="Segment text")
    match: bool = Field(False, description="Whether the search pattern matched this segment")


class TranslationResult(BaseModel):
    """One German sub-entry with its English counterpart."""

    german: str = Field(..., description="German sub-entry")
    english: str = Field(..., description="English sub-entry")
    german_segments: List[TextSegment] = Field(default_factory=list, description="Highlighted German text")
    english_segments: List[TextSegment] = Field(default_factory=list, description="Highlighted English text")


class DictionaryEntry(BaseModel):
    """A decoded dictionary line."""

    line: str = Field(..., description="The raw dictionary line")
    translations: List[TranslationResult] = Field(
        ..., description="Sub-entry pairs; empty if the line could not be decoded"
    )


class SearchResponse(BaseModel):
    """Response for search queries."""

    query: str = Field(..., description="Cleaned search query")
    pattern: str = Field(..., description="Regular expression the query was expanded to")
    total_results: int = Field(..., description="Total number of matching lines")
    returned_results: int = Field(..., description="Number of entries in this response")
    entries: List[DictionaryEntry] = Field(..., description="Matching entries, best first")
    cache_hit: bool = Field(..., description="Whether result was served from the result cache")
    execution_time_ms: float = Field(..., description="Query execution time in milliseconds")
    suggestions: Optional[List[str]] = Field(None, description="Close headwords if nothing matched")
    timestamp: datetime = Field(default_factory=_now, description="Response timestamp")


class RandomEntryResponse(BaseModel):
    """A random dictionary entry."""

    entry: DictionaryEntry = Field(..., description="The randomly chosen entry")
    timestamp: datetime = Field(default_factory=_now, description="Response timestamp")


class StatusResponse(BaseModel):
    """Controller state and dictionary statistics."""

    state: MainState = Field(..., description="Controller state")
    ready: bool = Field(..., description="Whether searches are accepted")
    stats: DictionaryStats = Field(..., description="Dictionary statistics")
    load_progress: Optional[float] = Field(None, description="Dictionary download progress in percent")
    search_progress: Optional[float] = Field(None, description="Progress of the running search in percent")
    update_status: Optional[str] = Field(None, description="Background update status (loading, done, error)")
    update_text: Optional[str] = Field(None, description="Human readable background update status")
    location: str = Field("", description="Last searched term")
    pending_query: Optional[str] = Field(None, description="Query of the outstanding request")
    diagnostic: Optional[str] = Field(None, description="Environment and error log in the Error state")
    reloads: int = Field(0, description="Number of explicit reloads")
    timestamp: datetime = Field(default_factory=_now, description="Status timestamp")


class ReloadResponse(BaseModel):
    """Response for an explicit reload."""

    state: MainState = Field(..., description="Controller state right after the reload")
    reloads: int = Field(..., description="Number of explicit reloads so far")
    timestamp: datetime = Field(default_factory=_now, description="Reload timestamp")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=_now, description="Error timestamp")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Application version")
    uptime: float = Field(..., description="Service uptime in seconds")
    timestamp: datetime = Field(default_factory=_now, description="Check timestamp")
    dependencies: Dict[str, str] = Field(..., description="Dependency status")


class MetricsResponse(BaseModel):
    """Performance metrics response."""

    total_searches: int = Field(..., description="Searches run by the worker")
    total_matches: int = Field(..., description="Matching lines found across all searches")
    average_search_time_ms: float = Field(..., description="Average worker search time")
    cached_queries: int = Field(..., description="Queries held in the result cache")
    dictionary_lines: int = Field(..., description="Lines in the loaded dictionary")
    memory_usage_mb: float = Field(..., description="Resident memory of this process in MB")
    timestamp: datetime = Field(default_factory=_now, description="Metrics timestamp")
