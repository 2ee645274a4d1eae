import uuid

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.errors import IndexUnavailableError, ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import DocumentChunk, ScoredChunk
from shared.models.config import EnvConfig

UPSERT_BATCH_SIZE = 100  # max points per upsert call


class RAGClientQdrant(ClientInterface, RAGClientInterface):
    """Vector index on a Qdrant server, spoken to over its REST API.

    ``collection_name`` is an alias. Every ``upsert_all`` builds a new physical
    collection ``{alias}_{suffix}`` and re-points the alias in one atomic
    aliases call, so searches hit the previous collection until the swap.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        collection_name: str,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(helper_config=helper_config, transport=transport)
        self._base_url = base_url or self.get_config_val("BASE_URL", default="http://localhost:6333", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._distance = self.get_config_val("DISTANCE", default="Cosine", val_type="string")
        self._collection_name = collection_name

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "rag"

    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_backend_name(self) -> str:
        return "qdrant"

    def get_collection_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:6333"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="DISTANCE", val_type="string", default="Cosine"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_collection(self, name: str) -> str:
        return f"/collections/{name}"

    def _get_endpoint_points(self, name: str) -> str:
        return f"/collections/{name}/points"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_count(self) -> str:
        return f"/collections/{self._collection_name}/points/count"

    def _get_endpoint_aliases(self) -> str:
        return "/collections/aliases"

    def _get_endpoint_list_aliases(self) -> str:
        return "/aliases"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_search_payload(self, query_embedding: list[float], k: int) -> dict:
        return {"vector": query_embedding, "limit": k, "with_payload": True, "with_vector": False}

    def get_alias_swap_payload(self, new_collection: str, old_collection: str | None) -> dict:
        actions: list[dict] = []
        if old_collection:
            actions.append({"delete_alias": {"alias_name": self._collection_name}})
        actions.append({"create_alias": {"collection_name": new_collection, "alias_name": self._collection_name}})
        return {"actions": actions}

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _call(self, method: str, endpoint: str, json: dict | None = None, params: dict | None = None, allow_404: bool = False) -> httpx.Response:
        """do_request() with every failure mapped onto IndexUnavailableError.

        Raises:
            IndexUnavailableError: On transport failures and non-2xx responses
                (except 404 when ``allow_404`` is set).
        """
        try:
            response = await self.do_request(method=method, endpoint=endpoint, json=json, params=params)
        except ProviderError as e:
            raise IndexUnavailableError("Qdrant is unreachable", detail=e.detail)
        if response.status_code == 404 and allow_404:
            return response
        if response.status_code >= 300:
            self.logging.error("Qdrant %s %s failed with status %d: %s", method, endpoint, response.status_code, response.text[:300])
            raise IndexUnavailableError(f"Qdrant request failed with status {response.status_code}", detail=response.text[:300])
        return response

    async def is_available(self) -> bool:
        try:
            await self._call("GET", self._get_endpoint_healthcheck())
            return True
        except IndexUnavailableError as e:
            self.logging.warning("Qdrant at %s is not available: %s", self._base_url, e.detail or e.message)
            return False

    async def _get_alias_target(self) -> str | None:
        resp = await self._call("GET", self._get_endpoint_list_aliases())
        for alias in resp.json().get("result", {}).get("aliases", []):
            if alias.get("alias_name") == self._collection_name:
                return alias.get("collection_name")
        return None

    async def _has_physical_collection(self, name: str) -> bool:
        resp = await self._call("GET", "/collections")
        return any(c.get("name") == name for c in resp.json().get("result", {}).get("collections", []))

    async def _drop_collection(self, name: str) -> None:
        await self._call("DELETE", self._get_endpoint_collection(name), allow_404=True)

    async def upsert_all(self, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            await self.clear()
            return

        physical = f"{self._collection_name}_{uuid.uuid4().hex[:12]}"
        vector_size = len(chunks[0].embedding)
        await self._call(
            "PUT",
            self._get_endpoint_collection(physical),
            json={"vectors": {"size": vector_size, "distance": self._distance}},
        )
        self.logging.info("Created Qdrant collection %s (vector size %d)", physical, vector_size)

        try:
            for start in range(0, len(chunks), UPSERT_BATCH_SIZE):
                batch = chunks[start:start + UPSERT_BATCH_SIZE]
                points = [
                    VectorPoint.from_chunk(chunk, seq=start + i).to_point(chunk.embedding)
                    for i, chunk in enumerate(batch)
                ]
                await self._call("PUT", self._get_endpoint_points(physical), json={"points": points}, params={"wait": "true"})
                self.logging.debug("Upserted points %d-%d of %d into %s", start + 1, start + len(batch), len(chunks), physical)

            old_target = await self._get_alias_target()
            if old_target is None and await self._has_physical_collection(self._collection_name):
                # a plain collection holds the alias name, it has to go before the alias can exist
                await self._drop_collection(self._collection_name)
            await self._call("POST", self._get_endpoint_aliases(), json=self.get_alias_swap_payload(physical, old_target))
        except IndexUnavailableError:
            try:
                await self._drop_collection(physical)
            except IndexUnavailableError:
                self.logging.warning("Could not remove partial Qdrant collection %s", physical)
            raise

        self.logging.info("Alias %s now points to %s (%d points)", self._collection_name, physical, len(chunks))
        if old_target and old_target != physical:
            await self._drop_collection(old_target)

    async def top_k(self, query_embedding: list[float], k: int) -> list[ScoredChunk]:
        if k <= 0:
            return []
        resp = await self._call("POST", self._get_endpoint_search(), json=self.get_search_payload(query_embedding, k), allow_404=True)
        if resp.status_code == 404:
            return []
        hits: list[tuple[float, int, DocumentChunk]] = []
        for item in resp.json().get("result", []):
            point = VectorPoint.model_validate(item.get("payload") or {})
            hits.append((float(item.get("score", 0.0)), point.seq, point.to_chunk()))
        # Qdrant does not define the order of equal scores
        hits.sort(key=lambda hit: (-hit[0], hit[1]))
        return [ScoredChunk(chunk=chunk, score=score) for score, _, chunk in hits]

    async def clear(self) -> None:
        target = await self._get_alias_target()
        if target:
            await self._call("POST", self._get_endpoint_aliases(), json={"actions": [{"delete_alias": {"alias_name": self._collection_name}}]})
            await self._drop_collection(target)
        await self._drop_collection(self._collection_name)
        self.logging.info("Cleared Qdrant collection %s", self._collection_name)

    async def count(self) -> int:
        resp = await self._call("POST", self._get_endpoint_count(), json={"exact": True}, allow_404=True)
        if resp.status_code == 404:
            return 0
        return int(resp.json().get("result", {}).get("count", 0))
