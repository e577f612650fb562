"""Status and read entities returned by the search engine."""

from pydantic import BaseModel, Field


class IndexStatus(BaseModel):
    """Snapshot of the index and the collaborators serving it."""

    files: int = Field(..., ge=0)
    chunks: int = Field(..., ge=0)
    provider: str
    model: str
    storage_type: str


class ReadResult(BaseModel):
    """A slice of a document read from the indexed directory."""

    path: str
    text: str
