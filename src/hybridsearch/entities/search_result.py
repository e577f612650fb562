"""SearchResult entity - the ranking engine's output unit."""

from pydantic import BaseModel, Field

SNIPPET_LINES = 5
SNIPPET_MAX_CHARS = 200


def extract_snippet(content: str) -> str:
    """Return a short single-line sample of chunk content for display."""
    lines = content.split("\n")[:SNIPPET_LINES]
    return " ".join(lines)[:SNIPPET_MAX_CHARS]


class SearchResult(BaseModel):
    """A document hit with its fused score.

    Results are identified by ``path`` during fusion: hits on the same path
    from the vector and keyword sub-queries collapse into one result.
    ``vector_score`` and ``text_score`` keep the per-source rank values for
    diagnostics and stay unset when a source did not return the path.
    """

    path: str
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    snippet: str = ""
    score: float = Field(default=0.0, ge=0.0, description="Final fused score")
    vector_score: float | None = None
    text_score: float | None = None
