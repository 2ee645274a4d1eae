"""Compile service.

Reads every uploaded document, extracts and splits its text into chunks,
generates embeddings via an EmbedClient, and replaces the vector index with
the result. Every run is a full rebuild.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.errors import ConfigurationError, IndexUnavailableError, NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperSettings import HelperSettings
from shared.helper.file_io import is_safe_id
from shared.ingest.DocumentExtractor import DocumentExtractor
from shared.ingest.TextChunker import TextChunker
from shared.models.chunk import DocumentChunk, RawSegment
from shared.models.index import CompileResult, IndexStats
from shared.models.settings import VECTOR_STORE_MEMORY, VECTOR_STORE_QDRANT, Settings
from shared.stores.FileStore import FileStore

DOC_CONCURRENCY = 5     # max parallel document extractions
CONVERSATION_GROUP = "conversation"


@dataclass
class SourceDocument:
    path: Path
    group: str


def make_chunk_id(relative_path: str, chunk_index: int) -> str:
    """Build a deterministic UUID5 chunk id.

    The same file always yields the same ids, so recompiling an unchanged
    corpus reproduces the index exactly.

    Args:
        relative_path (str): File path relative to the files root.
        chunk_index (int): Zero-based chunk index within the file.

    Returns:
        str: UUID string, also usable as a Qdrant point ID.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{relative_path}:{chunk_index}"))


class CompileService:
    """Orchestrates extraction, chunking, embedding and index replacement."""

    def __init__(
        self,
        helper_config: HelperConfig,
        helper_settings: HelperSettings,
        file_store: FileStore,
        embed_manager: EmbedClientManager,
        rag_manager: RAGClientManager,
        extractor: DocumentExtractor | None = None,
        chunker: TextChunker | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._settings = helper_settings
        self._file_store = file_store
        self._embed_manager = embed_manager
        self._rag_manager = rag_manager
        self._extractor = extractor or DocumentExtractor(helper_config)
        self._chunker = chunker or TextChunker()

    ##########################################
    ############### CORE COMPILE #############
    ##########################################

    async def compile(self, api_key: str | None = None) -> CompileResult:
        """Rebuild the global index from all group documents.

        Args:
            api_key (str | None): Embedding credential overriding settings and env.

        Returns:
            CompileResult: Document and chunk counts plus the backend written to.

        Raises:
            ConfigurationError: If no embedding credential is available. Nothing is touched.
            ProviderError: If embedding fails. The previous index stays in place.
        """
        settings = self._settings.load()
        embed_key = self._require_embedding_key(api_key, settings)

        sources = [
            SourceDocument(path=path, group=group_id)
            for group_id in self._file_store.list_group_ids()
            for path in self._file_store.list_group_documents(group_id)
        ]
        self.logging.info("Starting compile of %d documents...", len(sources))
        return await self._compile_sources(sources, settings, embed_key, conversation_id=None)

    async def compile_conversation(self, conversation_id: str, api_key: str | None = None) -> CompileResult:
        """Rebuild the index of one conversation from its loose and group sub-folder files.

        Raises:
            ValidationError: If the conversation id is invalid.
            NotFoundError: If the conversation has no files folder.
            ConfigurationError: If no embedding credential is available.
        """
        if not is_safe_id(conversation_id):
            raise ValidationError("Missing conversation GUID")
        if not self._file_store.get_conversation_dir(conversation_id).is_dir():
            raise NotFoundError("No files for conversation", detail=conversation_id)
        settings = self._settings.load()
        embed_key = self._require_embedding_key(api_key, settings)

        sources = [
            SourceDocument(path=path, group=group_id or CONVERSATION_GROUP)
            for path, group_id in self._file_store.list_conversation_documents(conversation_id)
        ]
        self.logging.info("Starting compile of %d documents for conversation %s...", len(sources), conversation_id)
        return await self._compile_sources(sources, settings, embed_key, conversation_id=conversation_id)

    async def _compile_sources(
        self,
        sources: list[SourceDocument],
        settings: Settings,
        embed_key: str,
        conversation_id: str | None,
    ) -> CompileResult:
        if not sources:
            self.logging.info("No documents to compile, index left untouched.")
            return CompileResult(document_count=0, chunk_count=0, vector_store=VECTOR_STORE_MEMORY, message="No documents to compile")

        chunks = await self._build_chunks(sources)
        if not chunks:
            self.logging.info("Documents produced no chunks, index left untouched.")
            return CompileResult(document_count=len(sources), chunk_count=0, vector_store=VECTOR_STORE_MEMORY, message="No documents were processed")

        embed_client = self._embed_manager.create_client(api_key=embed_key)
        await embed_client.boot()
        try:
            vectors = await embed_client.embed_batch([c.text for c in chunks])
        except Exception as exc:
            self.logging.error("Embedding failed, previous index kept: %s", exc)
            raise
        finally:
            await embed_client.close()

        chunks = [chunk.model_copy(update={"embedding": vector}) for chunk, vector in zip(chunks, vectors)]
        vector_store = await self._write_index(chunks, settings, conversation_id)

        self.logging.info(
            "Compile complete: %d documents, %d chunks, vector store '%s'.",
            len(sources), len(chunks), vector_store, color="green",
        )
        return CompileResult(
            document_count=len(sources),
            chunk_count=len(chunks),
            vector_store=vector_store,
            message="Database compiled successfully",
        )

    ##########################################
    ############ DOCUMENT CHUNKS #############
    ##########################################

    async def _build_chunks(self, sources: list[SourceDocument]) -> list[DocumentChunk]:
        """Extract and chunk all sources with bounded parallelism, keeping source order."""
        sem = asyncio.Semaphore(DOC_CONCURRENCY)
        per_document = await asyncio.gather(*[self._chunk_document(source, sem) for source in sources])
        return [chunk for chunks in per_document for chunk in chunks]

    async def _chunk_document(self, source: SourceDocument, sem: asyncio.Semaphore) -> list[DocumentChunk]:
        async with sem:
            # the extractor never raises, broken files come back as placeholder segments
            segments: list[RawSegment] = await asyncio.to_thread(self._extractor.extract, source.path)

        relative_path = source.path.relative_to(self._file_store.get_root()).as_posix()
        base_metadata = {
            "source": source.path.name,
            "group": source.group,
            "path": relative_path,
            "type": source.path.suffix.lower(),
        }

        chunks: list[DocumentChunk] = []
        for segment in segments:
            for text in self._chunker.split(segment.text):
                if not text.strip():
                    continue
                chunks.append(DocumentChunk(
                    id=make_chunk_id(relative_path, len(chunks)),
                    text=text,
                    metadata={**segment.metadata, **base_metadata},
                ))
        self.logging.debug("Document '%s': %d segments, %d chunks.", relative_path, len(segments), len(chunks))
        return chunks

    ##########################################
    ################ INDEX ###################
    ##########################################

    async def _write_index(self, chunks: list[DocumentChunk], settings: Settings, conversation_id: str | None) -> str:
        """Write the file snapshot, then push to Qdrant when configured.

        Returns:
            str: "qdrant" when the external index was updated, otherwise "memory".
        """
        await self._rag_manager.get_memory_client(conversation_id).upsert_all(chunks)

        qdrant = self._rag_manager.get_qdrant_client(settings, conversation_id=conversation_id)
        if qdrant is None:
            return VECTOR_STORE_MEMORY

        await qdrant.boot()
        try:
            await qdrant.upsert_all(chunks)
            return VECTOR_STORE_QDRANT
        except IndexUnavailableError as exc:
            self.logging.error("Qdrant upsert failed, only the file index was updated: %s", exc.detail or exc.message)
            return VECTOR_STORE_MEMORY
        finally:
            await qdrant.close()

    async def truncate(self, conversation_id: str | None = None) -> None:
        """Clear the global (or one conversation's) index. Source documents stay.

        The external collection is dropped best effort, an unreachable Qdrant
        is logged and does not fail the call.
        """
        if conversation_id is not None and not is_safe_id(conversation_id):
            raise ValidationError("Invalid conversation GUID")
        await self._rag_manager.get_memory_client(conversation_id).clear()

        qdrant = self._rag_manager.get_qdrant_client(self._settings.load(), conversation_id=conversation_id)
        if qdrant is None:
            return
        await qdrant.boot()
        try:
            await qdrant.clear()
        except IndexUnavailableError as exc:
            self.logging.warning("Could not clear Qdrant collection: %s", exc.detail or exc.message)
        finally:
            await qdrant.close()

    async def stats(self) -> IndexStats:
        """Live statistics of the global index."""
        settings = self._settings.load()
        total_documents = sum(len(self._file_store.list_group_documents(g)) for g in self._file_store.list_group_ids())

        memory = self._rag_manager.get_memory_client()
        snapshot = memory.get_snapshot_path()
        total_chunks = await memory.count()
        last_compiled = "Never"
        if snapshot.exists():
            last_compiled = datetime.fromtimestamp(snapshot.stat().st_mtime).astimezone().isoformat(timespec="seconds")

        vector_store_type = "In-Memory"
        qdrant = self._rag_manager.get_qdrant_client(settings)
        if qdrant is not None:
            vector_store_type = "Qdrant"
            await qdrant.boot()
            try:
                total_chunks = await qdrant.count()
            except IndexUnavailableError as exc:
                self.logging.warning("Qdrant unavailable for stats, reporting the file index: %s", exc.detail or exc.message)
            finally:
                await qdrant.close()

        return IndexStats(
            total_documents=total_documents,
            total_chunks=total_chunks,
            last_compiled=last_compiled,
            vector_store_type=vector_store_type,
        )

    ##########################################
    ############## CREDENTIALS ###############
    ##########################################

    def _require_embedding_key(self, api_key: str | None, settings: Settings) -> str:
        key = self._settings.resolve_embedding_key(override=api_key, settings=settings)
        if not key:
            raise ConfigurationError("API key is required for embedding")
        return key
