from abc import abstractmethod

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.errors import AuthenticationError, ProviderError

from shared.helper.HelperConfig import HelperConfig

EMBED_BATCH_SIZE = 100  # max inputs per embedding request


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig, api_key: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        if not api_key:
            raise AuthenticationError("An embedding API key is required")
        self._api_key = api_key
        super().__init__(helper_config=helper_config, transport=transport)

        self.batch_size = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_BATCH_SIZE", default=EMBED_BATCH_SIZE))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    @abstractmethod
    def get_model_name(self) -> str:
        """
        Returns the embedding model name sent with every request.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/embeddings")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send one embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            ProviderError: If the HTTP request fails or the response does not
                contain one vector per input.
        """
        texts = [texts] if isinstance(texts, str) else texts
        body = self.get_embed_payload(texts)
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body, raise_on_error=True)
        try:
            vectors = self.extract_embeddings_from_response(response.json())
        except ValueError as e:
            raise ProviderError("Invalid embedding response", reason="bad_response", detail=str(e))
        if len(vectors) != len(texts):
            raise ProviderError(
                "Embedding response returned %d vectors for %d inputs" % (len(vectors), len(texts)),
                reason="bad_response",
            )
        return vectors

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        vectors = await self.do_embed([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts, split into requests of at most ``batch_size`` inputs.

        Returns:
            list[list[float]]: One vector per input, in input order.
        """
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            vectors.extend(await self.do_embed(batch))
            self.logging.debug(
                "Embedded batch %d-%d of %d texts with %s",
                start + 1, start + len(batch), len(texts), self.get_engine_name(),
            )
        return vectors
