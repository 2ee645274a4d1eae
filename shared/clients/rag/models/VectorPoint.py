"""VectorPoint model: the payload stored alongside each chunk vector in an external index."""

from pydantic import BaseModel, Field

from shared.models.chunk import DocumentChunk


class VectorPoint(BaseModel):
    """Payload of one point in a Qdrant collection.

    Attributes:
        chunk_id: Id of the DocumentChunk, also used as the point id.
        seq:      Insertion position within the compile run, used to break score ties.
        text:     Raw text of the chunk.
        metadata: Chunk metadata (source, group, path, type, ...).
    """

    chunk_id: str
    seq: int
    text: str
    metadata: dict = Field(default_factory=dict)

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk, seq: int) -> "VectorPoint":
        return cls(chunk_id=chunk.id, seq=seq, text=chunk.text, metadata=chunk.metadata)

    def to_point(self, vector: list[float]) -> dict:
        """Build the Qdrant point body ``{id, vector, payload}``."""
        return {"id": self.chunk_id, "vector": vector, "payload": self.model_dump()}

    def to_chunk(self) -> DocumentChunk:
        # vectors are not requested on search, the chunk comes back without embedding
        return DocumentChunk(id=self.chunk_id, text=self.text, metadata=self.metadata)
