import asyncio

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.errors import AppError, IndexUnavailableError, ProviderError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperSettings import HelperSettings
from shared.helper.file_io import is_safe_id
from shared.models.chunk import ScoredChunk
from shared.models.message import DebugTraceEntry, Message
from shared.models.settings import Settings
from shared.stores.DebugStore import DebugStore
from shared.stores.MessageStore import MessageStore
from server.models.requests import AskRequest
from server.models.responses import AskResult, AskSource

HTML_FORMAT_INSTRUCTION = (
    "Format your answer as an HTML fragment using only <p>, <ul>, <ol>, <li>, "
    "<strong>, <em>, <code>, <pre> and <a> tags. Do not use Markdown and do not "
    "wrap the answer in <html> or <body> tags."
)

SOURCE_TYPE_WEB = "web"


class AskService:
    """Answers a question inside a conversation: retrieve -> compose -> complete -> record."""

    def __init__(
        self,
        helper_config: HelperConfig,
        helper_settings: HelperSettings,
        message_store: MessageStore,
        debug_store: DebugStore,
        embed_manager: EmbedClientManager,
        llm_manager: LLMClientManager,
        rag_manager: RAGClientManager,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._settings = helper_settings
        self._messages = message_store
        self._debug = debug_store
        self._embed_manager = embed_manager
        self._llm_manager = llm_manager
        self._rag_manager = rag_manager

    ##########################################
    ############### CORE #####################
    ##########################################

    async def ask(self, request: AskRequest) -> AskResult:
        """Answer ``request.message`` with RAG when an index has hits, otherwise directly.

        Validation and credential checks happen before anything is written.
        Once the user message is recorded, every failure also records a
        system message in the conversation before the error is raised.

        Args:
            request (AskRequest): The question plus per-call overrides.

        Returns:
            AskResult: The answer, whether retrieval was used, and its sources.

        Raises:
            ValidationError: Missing conversation id or empty message.
            ConfigurationError: Unknown provider or no credential for it.
            ProviderError: The LLM call failed.
        """
        conversation_id = (request.conversation_id or "").strip()
        question = (request.message or "").strip()
        if not conversation_id or not is_safe_id(conversation_id):
            raise ValidationError("Missing conversation GUID")
        if not question:
            raise ValidationError("Missing question")

        settings = await asyncio.to_thread(self._settings.load)
        provider = (request.provider or settings.provider).lower()
        if request.model:
            model = request.model
        elif provider == settings.provider.lower():
            model = settings.model
        else:
            model = None
        api_key = self._settings.resolve_api_key(provider, override=request.api_key, settings=settings)
        llm_client = self._llm_manager.create_client(provider, api_key=api_key, model=model)

        index, embed_key = await self._select_index(request, provider, settings, conversation_id)

        try:
            await asyncio.to_thread(
                self._messages.append,
                conversation_id,
                Message(role="user", content=question, source_type=SOURCE_TYPE_WEB if request.web_search else None),
            )
        except Exception:
            if index:
                await index.close()
            raise

        try:
            hits = await self._retrieve(index, embed_key, question, request.top_k, conversation_id) if index else []
            used_rag = bool(hits)

            system_prompt = f"{request.system_prompt or settings.system_prompt}\n\n{HTML_FORMAT_INSTRUCTION}"
            user_message = self._compose_user_message(question, hits)
            params = settings.llm_parameters
            await self._trace(conversation_id, "request", {
                "provider": provider,
                "model": llm_client.chat_model,
                "systemPrompt": system_prompt,
                "userMessage": user_message,
                "parameters": params.model_dump(),
                "usedRag": used_rag,
            })

            await llm_client.boot()
            try:
                answer = await llm_client.do_chat(system_prompt, user_message, params)
            finally:
                await llm_client.close()

            await self._trace(conversation_id, "response", {"provider": provider, "model": llm_client.chat_model, "answer": answer})
            stored = await asyncio.to_thread(
                self._messages.append,
                conversation_id,
                Message(
                    role="assistant",
                    content=answer,
                    used_rag=used_rag,
                    source_type=SOURCE_TYPE_WEB if request.web_search else None,
                ),
            )
        except AppError as exc:
            await self._record_failure(conversation_id, exc)
            raise
        except Exception as exc:
            self.logging.exception("Unexpected error while answering in conversation %s", conversation_id)
            error = ProviderError("Error processing your question", reason="http", detail=str(exc))
            await self._record_failure(conversation_id, error)
            raise error from exc

        self.logging.info(
            "Answered question in conversation %s (provider=%s, usedRag=%s, hits=%d)",
            conversation_id, provider, used_rag, len(hits),
        )
        return AskResult(answer=answer, used_rag=used_rag, sources=self._sources(hits), message_id=stored.id)

    ##########################################
    ############### RETRIEVAL ################
    ##########################################

    async def _select_index(self, request: AskRequest, provider: str, settings: Settings, conversation_id: str) -> tuple[RAGClientInterface | None, str | None]:
        """Pick the index for this question, or (None, None) for a direct answer."""
        if request.web_search or request.direct:
            return None, None

        embed_override = request.api_key if provider == "openai" else None
        embed_key = self._settings.resolve_embedding_key(override=embed_override, settings=settings)
        if not embed_key:
            self.logging.info("No embedding credential configured, answering without retrieval.")
            return None, None

        index = await self._rag_manager.open_for_query(settings, conversation_id)
        return index, embed_key

    async def _retrieve(self, index: RAGClientInterface, embed_key: str, question: str, k: int, conversation_id: str) -> list[ScoredChunk]:
        """Embed the question and fetch the top ``k`` chunks.

        A failing external index is retried on the file snapshot. Embedding
        failures degrade to no hits.
        """
        try:
            query_vector = await self._embed_question(embed_key, question)
            if query_vector is None:
                return []
            try:
                return await index.top_k(query_vector, k)
            except IndexUnavailableError as exc:
                self.logging.warning("Vector index failed mid-query, retrying on the file index: %s", exc.detail or exc.message)
        finally:
            await index.close()

        snapshot = await self._rag_manager.open_snapshot_for_query(conversation_id)
        if snapshot is None:
            return []
        try:
            return await snapshot.top_k(query_vector, k)
        finally:
            await snapshot.close()

    async def _embed_question(self, embed_key: str, question: str) -> list[float] | None:
        embed_client = self._embed_manager.create_client(api_key=embed_key)
        try:
            await embed_client.boot()
            return await embed_client.embed(question)
        except ProviderError as exc:
            self.logging.warning("Embedding the question failed (%s), answering directly: %s", exc.reason, exc.message)
            return None
        finally:
            await embed_client.close()

    def _compose_user_message(self, question: str, hits: list[ScoredChunk]) -> str:
        if not hits:
            return question
        blocks = [
            f"[{number}] Source: {hit.chunk.metadata.get('source', 'unknown')}\n{hit.chunk.text}"
            for number, hit in enumerate(hits, start=1)
        ]
        context = "\n\n---\n\n".join(blocks)
        return (
            "Use the following context from the user's documents to answer the question. "
            "If the context does not contain the answer, say so.\n\n"
            f"Context:\n{context}\n\n"
            f"Question: {question}"
        )

    def _sources(self, hits: list[ScoredChunk]) -> list[AskSource]:
        sources: dict[str, AskSource] = {}
        for hit in hits:
            meta = hit.chunk.metadata
            key = meta.get("path") or meta.get("source") or hit.chunk.id
            if key not in sources:
                sources[key] = AskSource(
                    source=meta.get("source", "unknown"),
                    path=meta.get("path", ""),
                    group=meta.get("group"),
                    score=hit.score,
                )
        return list(sources.values())

    ##########################################
    ############### RECORDING ################
    ##########################################

    async def _trace(self, conversation_id: str, trace_type: str, content: dict) -> None:
        await asyncio.to_thread(self._debug.append, conversation_id, DebugTraceEntry(type=trace_type, content=content))

    async def _record_failure(self, conversation_id: str, error: AppError) -> None:
        """Best effort: the original error is what the caller must see."""
        try:
            await asyncio.to_thread(
                self._messages.append,
                conversation_id,
                Message(role="system", content=f"Error: {error.message}"),
            )
            await self._trace(conversation_id, "response", {"error": error.to_dict()})
        except Exception as exc:
            self.logging.error("Could not record the failure in conversation %s: %s", conversation_id, exc)
