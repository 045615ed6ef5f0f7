"""Vector search data models."""

from typing import Any

from pydantic import BaseModel, Field


class SearchHit(BaseModel):
    """One ranked result of a vector search.

    Attributes:
        id: Document identifier.
        score: Similarity score (higher is more similar).
        document: Projected document fields, when requested.
    """

    id: str = Field(description="Document identifier")
    score: float = Field(description="Similarity score")
    document: dict[str, Any] | None = Field(
        default=None,
        description="Projected document fields",
    )
