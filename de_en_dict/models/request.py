"""Request models for API endpoints."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SearchRequest(BaseModel):
    """Request model for search queries."""

    query: str = Field(..., min_length=1, max_length=100, description="Search query")
    max_results: Optional[int] = Field(
        None, ge=1, le=1000, description="Maximum number of entries to return"
    )
    include_suggestions: bool = Field(
        default=True, description="Whether to include suggestions for no-match queries"
    )

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        """Reject queries that are only whitespace."""
        if not v.strip():
            raise ValueError("Query cannot be empty")
        return v
