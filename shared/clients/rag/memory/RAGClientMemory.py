"""File backed vector index: an in-memory list of chunks persisted as one JSON snapshot."""

import asyncio
import json
import math
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.file_io import read_json, write_json_atomic
from shared.models.chunk import DocumentChunk, ScoredChunk


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors, 0.0 when either has zero length or norm."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class RAGClientMemory(RAGClientInterface):
    """Linear-scan index over a ``vector-store.json`` snapshot.

    The snapshot is read once on first use. Writes replace the file through a
    temp file and rename, so a concurrent reader sees the old or the new
    snapshot, never a partial one.
    """

    def __init__(self, helper_config: HelperConfig, snapshot_path: Path):
        self.logging = helper_config.get_logger()
        self._snapshot_path = snapshot_path
        self._chunks: list[DocumentChunk] | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_backend_name(self) -> str:
        return "memory"

    def get_snapshot_path(self) -> Path:
        return self._snapshot_path

    ##########################################
    ############### SNAPSHOT #################
    ##########################################

    def _read_snapshot(self) -> list[DocumentChunk]:
        try:
            raw = read_json(self._snapshot_path)
        except (OSError, json.JSONDecodeError) as e:
            self.logging.error("Vector store snapshot %s is unreadable, treating it as empty: %s", self._snapshot_path, e)
            return []
        if raw is None:
            return []
        try:
            return [DocumentChunk.model_validate(item) for item in raw.get("chunks", [])]
        except (AttributeError, PydanticValidationError) as e:
            self.logging.error("Vector store snapshot %s is corrupt, treating it as empty: %s", self._snapshot_path, e)
            return []

    async def _get_chunks(self) -> list[DocumentChunk]:
        if self._chunks is None:
            self._chunks = await asyncio.to_thread(self._read_snapshot)
            self.logging.debug("Loaded %d chunks from %s", len(self._chunks), self._snapshot_path)
        return self._chunks

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def is_available(self) -> bool:
        return True

    async def upsert_all(self, chunks: list[DocumentChunk]) -> None:
        data = {"chunks": [chunk.model_dump() for chunk in chunks]}
        await asyncio.to_thread(write_json_atomic, self._snapshot_path, data)
        self._chunks = list(chunks)
        self.logging.info("Wrote %d chunks to snapshot %s", len(chunks), self._snapshot_path)

    async def top_k(self, query_embedding: list[float], k: int) -> list[ScoredChunk]:
        if k <= 0:
            return []
        chunks = await self._get_chunks()
        if not chunks:
            return []

        mismatched = sum(1 for c in chunks if len(c.embedding) != len(query_embedding))
        if mismatched:
            self.logging.warning(
                "%d of %d chunks in %s have a different dimension than the query, they score 0.0",
                mismatched, len(chunks), self._snapshot_path,
            )

        scored = [ScoredChunk(chunk=c, score=cosine_similarity(query_embedding, c.embedding)) for c in chunks]
        # sorted() is stable, ties keep insertion order
        scored.sort(key=lambda hit: -hit.score)
        return scored[:k]

    async def clear(self) -> None:
        def _remove() -> None:
            self._snapshot_path.unlink(missing_ok=True)

        await asyncio.to_thread(_remove)
        self._chunks = []
        self.logging.info("Removed snapshot %s", self._snapshot_path)

    async def count(self) -> int:
        return len(await self._get_chunks())
