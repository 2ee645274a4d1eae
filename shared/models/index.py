"""Pydantic models describing compile runs and index state."""

from pydantic import BaseModel, ConfigDict, Field


class CompileResult(BaseModel):
    """Outcome of a compile run.

    Attributes:
        document_count: Number of files that went through extraction.
        chunk_count:    Number of chunks written to the index.
        vector_store:   Backend that received the chunks ("memory" or "qdrant").
        message:        Human readable summary.
    """

    model_config = ConfigDict(populate_by_name=True)

    document_count: int = Field(default=0, alias="documentCount")
    chunk_count: int = Field(default=0, alias="chunkCount")
    vector_store: str = Field(default="memory", alias="vectorStore")
    message: str = ""

    def to_wire(self) -> dict:
        return {"success": True, **self.model_dump(by_alias=True)}


class IndexStats(BaseModel):
    """Database statistics for the global index."""

    model_config = ConfigDict(populate_by_name=True)

    total_documents: int = Field(default=0, alias="totalDocuments")
    total_chunks: int = Field(default=0, alias="totalChunks")
    last_compiled: str = Field(default="Never", alias="lastCompiled")
    vector_store_type: str = Field(default="In-Memory", alias="vectorStoreType")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
