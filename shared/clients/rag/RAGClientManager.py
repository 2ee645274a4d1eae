from pathlib import Path

import httpx

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.memory.RAGClientMemory import RAGClientMemory
from shared.errors import IndexUnavailableError
from shared.helper.HelperConfig import HelperConfig
from shared.models.settings import VECTOR_STORE_QDRANT, Settings

SNAPSHOT_FILE_NAME = "vector-store.json"


class RAGClientManager:
    """
    Selects the vector index backend for an operation from the current settings.

    The file snapshot backend is always available and is the fallback whenever
    the external service is not configured or not reachable.
    """

    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._transport = transport

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_collection_name(self, conversation_id: str | None = None) -> str:
        """
        Returns:
            str: "conv_{id}" for a conversation, otherwise RAG_QDRANT_COLLECTION (default "documents").
        """
        if conversation_id:
            return f"conv_{conversation_id}"
        return self.helper_config.get_string_val("RAG_QDRANT_COLLECTION", default="documents")

    def get_snapshot_path(self, conversation_id: str | None = None) -> Path:
        root = self.helper_config.get_files_root()
        if conversation_id:
            return root / conversation_id / SNAPSHOT_FILE_NAME
        return root / SNAPSHOT_FILE_NAME

    def is_qdrant_configured(self, settings: Settings) -> bool:
        return settings.vector_store_kind.lower() == VECTOR_STORE_QDRANT

    ##########################################
    ############### FACTORIES ################
    ##########################################

    def get_memory_client(self, conversation_id: str | None = None) -> RAGClientMemory:
        return RAGClientMemory(helper_config=self.helper_config, snapshot_path=self.get_snapshot_path(conversation_id))

    def get_qdrant_client(self, settings: Settings, conversation_id: str | None = None) -> RAGClientInterface | None:
        """
        Instantiates the Qdrant client when the settings select it.

        Returns:
            RAGClientInterface | None: A not yet booted client, or None when Qdrant is not configured.
        """
        if not self.is_qdrant_configured(settings):
            return None
        class_name = "RAGClientQdrant"
        module = __import__(f"shared.clients.rag.qdrant.{class_name}", fromlist=[class_name])
        client_class = getattr(module, class_name)
        return client_class(
            helper_config=self.helper_config,
            collection_name=self.get_collection_name(conversation_id),
            base_url=settings.vector_store_endpoint,
            transport=self._transport,
        )

    ##########################################
    ############### SELECTION ################
    ##########################################

    async def open_for_query(self, settings: Settings, conversation_id: str | None = None) -> RAGClientInterface | None:
        """
        Returns the first non-empty index for a question, booted. The caller closes it.

        Order: Qdrant conversation collection, Qdrant global collection (both
        only when configured and reachable), conversation snapshot, global
        snapshot.

        Returns:
            RAGClientInterface | None: The index to query, or None for a direct answer.
        """
        scopes = [conversation_id, None] if conversation_id else [None]

        for scope in scopes:
            client = self.get_qdrant_client(settings, conversation_id=scope)
            if client is None:
                break
            await client.boot()
            try:
                if await client.count() > 0:
                    self.logging.debug("Using Qdrant collection %s", client.get_collection_name())
                    return client
            except IndexUnavailableError as e:
                self.logging.warning("Qdrant unavailable (%s), falling back to the file index", e.detail or e.message)
                await client.close()
                break
            await client.close()

        return await self.open_snapshot_for_query(conversation_id)

    async def open_snapshot_for_query(self, conversation_id: str | None = None) -> RAGClientMemory | None:
        """
        Returns the first non-empty file snapshot, conversation before global.

        Also used when the external service fails after it was selected.

        Returns:
            RAGClientMemory | None: The snapshot index, or None when there is none.
        """
        scopes = [conversation_id, None] if conversation_id else [None]
        for scope in scopes:
            memory = self.get_memory_client(scope)
            if not memory.get_snapshot_path().exists():
                continue
            if await memory.count() > 0:
                self.logging.debug("Using file index %s", memory.get_snapshot_path())
                return memory

        self.logging.info("No usable vector index for conversation %s", conversation_id)
        return None
