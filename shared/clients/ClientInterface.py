from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes

from shared.errors import ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """Base for every outgoing HTTP client (LLM, embedding, vector index).

    Configuration is read from ``{TYPE}_{ENGINE}_{KEY}`` environment variables,
    e.g. ``LLM_ANTHROPIC_BASE_URL``. The httpx client only exists between
    ``boot()`` and ``close()``.
    """

    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        # created by boot(), the transport is only swapped in tests
        self._client: httpx.AsyncClient | None = None
        self._transport = transport
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """Read every required key once so a missing one fails at construction time.

        Raises:
            ValueError: If a required value is missing or cannot be parsed.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """Client family, e.g. "llm", "embed" or "rag"."""
        pass

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """Display name of the backend, e.g. "OpenAI" or "Qdrant"."""
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """Environment keys (without prefix) the client reads."""
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return f"{self.get_client_type()}_{self.get_engine_name()}_{raw_key}".upper()

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Read one prefixed configuration value.

        Args:
            raw_key (str): Key without prefix, e.g. "BASE_URL".
            default (Any): Value used when the variable is not set.
            val_type (str): "string", "number", "bool" or "list".

        Raises:
            ValueError: For an unknown ``val_type`` or a missing required value.
        """
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        reader = readers.get(val_type)
        if reader is None:
            raise ValueError(f"Unsupported config value type '{val_type}' for {self._get_config_key_name(raw_key)}")
        return reader(self._get_config_key_name(raw_key), default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers carrying the credential, empty when the backend needs none."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """Base URL every endpoint is appended to, e.g. "https://api.openai.com/v1"."""
        pass

    ################ ERRORS ##################
    def _classify_status(self, response: httpx.Response) -> str:
        """
        Map a non-2xx response onto a ProviderError reason.

        Returns:
            str: "auth", "rate_limit", "content_policy" or "http".
        """
        if response.status_code in (401, 403):
            return "auth"
        if response.status_code == 429:
            return "rate_limit"
        if response.status_code == 400 and "content_policy" in response.text:
            return "content_policy"
        return "http"

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        endpoint: str = "",
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send one request to ``{base_url}{endpoint}``.

        Args:
            method: HTTP method.
            endpoint: Path below the base URL, leading slash optional.
            json: JSON body.
            params: Query parameters.
            additional_headers: Extra headers, applied after the auth header.
            raise_on_error: Turn a non-2xx status into a ProviderError.

        Returns:
            httpx.Response: The raw response.

        Raises:
            RuntimeError: If boot() has not been called.
            ProviderError: On timeout or transport failure, and on non-2xx
                status when ``raise_on_error`` is set.
        """
        if self._client is None:
            raise RuntimeError("HTTP client not initialised. Call boot() before making requests.")

        path = endpoint.strip().lstrip("/")
        url = self._get_base_url().rstrip("/") + (f"/{path}" if path else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        try:
            response = await self._client.request(method, url, headers=headers, params=params, json=json)
        except httpx.TimeoutException as e:
            self.logging.error("Request to %s timed out after %ss", url, self.timeout)
            raise ProviderError(f"{self._get_engine_name()} request timed out", reason="timeout", detail=str(e))
        except httpx.TransportError as e:
            self.logging.error("Request to %s failed: %s", url, e)
            raise ProviderError(f"{self._get_engine_name()} is unreachable", reason="network", detail=str(e))

        if raise_on_error and response.status_code >= 300:
            self.logging.error("Request to %s failed with status %d: %s", url, response.status_code, response.text[:500])
            raise ProviderError(
                f"{self._get_engine_name()} request failed with status {response.status_code}",
                reason=self._classify_status(response),
                detail=response.text[:500],
            )
        return response
