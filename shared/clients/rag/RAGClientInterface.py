from abc import ABC, abstractmethod

from shared.models.chunk import DocumentChunk, ScoredChunk


class RAGClientInterface(ABC):
    """Contract shared by every vector index backend.

    Backends are interchangeable: the compiler writes through ``upsert_all``
    and the ask service reads through ``top_k`` without knowing which one it
    talks to. Scores are cosine similarities, higher is better.
    """

    ##########################################
    ################ GETTER ##################
    ##########################################

    @abstractmethod
    def get_backend_name(self) -> str:
        """
        Returns the backend identifier reported to callers. E.g. "memory" or "qdrant"
        """
        pass

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        """Acquire resources. No-op for backends that do not need any."""

    async def close(self) -> None:
        """Release resources acquired in boot()."""

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def is_available(self) -> bool:
        """Check whether the backend can currently serve requests."""
        pass

    @abstractmethod
    async def upsert_all(self, chunks: list[DocumentChunk]) -> None:
        """Replace the whole index content with ``chunks``.

        Readers see either the previous content or the new one, never a mix.

        Raises:
            IndexUnavailableError: If the backend cannot be reached.
        """
        pass

    @abstractmethod
    async def top_k(self, query_embedding: list[float], k: int) -> list[ScoredChunk]:
        """Return the ``k`` chunks most similar to ``query_embedding``.

        Results are ordered by descending score, ties by insertion order.
        ``k <= 0`` or an empty index yield an empty list.

        Raises:
            IndexUnavailableError: If the backend cannot be reached.
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove all indexed chunks."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Number of indexed chunks."""
        pass
