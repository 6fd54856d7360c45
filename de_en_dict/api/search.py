"""Search API endpoints."""

import time
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Query

from ..config import get_settings
from ..core.codec import decode_line
from ..core.pattern import highlight
from ..exceptions import LineDecodeError
from ..models.request import SearchRequest
from ..models.response import (
    DictionaryEntry,
    RandomEntryResponse,
    SearchResponse,
    TextSegment,
    TranslationResult,
)
from ..protocol.controller import MainController
from .dependencies import get_controller

router = APIRouter(prefix="/api/v1", tags=["search"])
settings = get_settings()
logger = structlog.get_logger(__name__)


def _segments(text: str, pattern: str) -> List[TextSegment]:
    return [TextSegment(text=segment, match=matched) for segment, matched in highlight(text, pattern)]


def build_entry(line: str, pattern: str = "") -> DictionaryEntry:
    """
    Decode a dictionary line for display.

    Args:
        line: Raw dictionary line
        pattern: Loose search pattern to highlight, or "" for none

    Returns:
        DictionaryEntry; a malformed line keeps its raw text and has no translations
    """
    try:
        pairs = decode_line(line)
    except LineDecodeError as e:
        logger.warning("Cannot display malformed line", reason=e.reason, line=line)
        return DictionaryEntry(line=line, translations=[])
    return DictionaryEntry(
        line=line,
        translations=[
            TranslationResult(
                german=pair.german,
                english=pair.english,
                german_segments=_segments(pair.german, pattern),
                english_segments=_segments(pair.english, pattern),
            )
            for pair in pairs
        ],
    )


async def run_search(
    controller: MainController,
    query: str,
    max_results: Optional[int] = None,
    include_suggestions: bool = True,
) -> SearchResponse:
    """Run a search through the controller and shape the response."""
    if len(query) > settings.max_query_length:
        raise HTTPException(
            status_code=400,
            detail=f"Query too long. Maximum length is {settings.max_query_length} characters",
        )

    start_time = time.time()
    outcome = await controller.search(query)
    limit = max_results or settings.max_results
    entries = [build_entry(line, outcome.pattern) for line in outcome.matches[:limit]]
    execution_time = (time.time() - start_time) * 1000

    logger.info(
        "Search completed",
        query=outcome.query,
        total_results=len(outcome.matches),
        cache_hit=outcome.cache_hit,
        execution_time_ms=round(execution_time, 2),
    )
    return SearchResponse(
        query=outcome.query,
        pattern=outcome.pattern,
        total_results=len(outcome.matches),
        returned_results=len(entries),
        entries=entries,
        cache_hit=outcome.cache_hit,
        execution_time_ms=execution_time,
        suggestions=outcome.suggestions if include_suggestions and not outcome.matches else None,
    )


@router.get(
    "/search/{query}",
    response_model=SearchResponse,
    summary="Search the dictionary",
    description="Ranked search over German and English entries; '*' matches any text",
)
async def search_word(
    query: str = Path(..., description="The term to search for", min_length=1, max_length=100),
    max_results: Optional[int] = Query(
        None,
        ge=1,
        le=1000,
        description="Maximum number of entries to return",
    ),
    include_suggestions: bool = Query(
        True,
        description="Whether to include suggestions for no-match queries",
    ),
    controller: MainController = Depends(get_controller),
) -> SearchResponse:
    """
    Search the dictionary for a term.

    Umlauts, accents and similar variants match each other, so "Strasse"
    also finds "Straße". Results are ranked with whole-word matches at the
    start of an entry first.
    """
    return await run_search(controller, query, max_results, include_suggestions)


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Search with request body",
    description="Search the dictionary using a structured request body",
)
async def search_with_body(
    request: SearchRequest,
    controller: MainController = Depends(get_controller),
) -> SearchResponse:
    """Search the dictionary using a JSON request body."""
    return await run_search(controller, request.query, request.max_results, request.include_suggestions)


@router.get(
    "/random",
    response_model=RandomEntryResponse,
    summary="Random entry",
    description="Get a randomly chosen dictionary entry",
)
async def random_entry(controller: MainController = Depends(get_controller)) -> RandomEntryResponse:
    """Get a random dictionary entry."""
    line = await controller.random_entry()
    return RandomEntryResponse(entry=build_entry(line))
