"""Pydantic models for extracted text and indexed chunks."""

from pydantic import BaseModel, Field


class RawSegment(BaseModel):
    """A piece of text produced by the document extractor, before chunking.

    Attributes:
        text:     Extracted plain text (or a placeholder when extraction failed).
        metadata: Format specific details, e.g. {"page": 3} or {"sheet": "Q1"}.
    """

    text: str
    metadata: dict = Field(default_factory=dict)


class ChunkMetadata(BaseModel):
    """Metadata stored alongside every chunk.

    Attributes:
        source: File name of the originating document.
        group:  Document group guid (or "conversation" for loose conversation files).
        path:   Path of the file relative to the files root.
        type:   Lowercased file extension, e.g. ".pdf".
    """

    model_config = {"extra": "allow"}

    source: str
    group: str
    path: str
    type: str


class DocumentChunk(BaseModel):
    """A chunk of text plus its embedding, the unit of retrieval.

    Attributes:
        id:        Deterministic chunk id (UUID5 over path and chunk index).
        text:      The chunk text.
        metadata:  ChunkMetadata as a plain dict (may carry format specific keys).
        embedding: The embedding vector. Empty until the chunk has been embedded.
    """

    id: str
    text: str
    metadata: dict = Field(default_factory=dict)
    embedding: list[float] = Field(default_factory=list)


class ScoredChunk(BaseModel):
    """A retrieval hit."""

    chunk: DocumentChunk
    score: float
