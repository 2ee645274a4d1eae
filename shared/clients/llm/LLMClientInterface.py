from abc import abstractmethod

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.errors import AuthenticationError, ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.settings import LLMParameters


class LLMClientInterface(ClientInterface):
    def __init__(
        self,
        helper_config: HelperConfig,
        api_key: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise AuthenticationError(f"Missing {self._get_engine_name()} API key")
        self._api_key = api_key
        super().__init__(helper_config=helper_config, transport=transport)

        # chat / completion config
        self.chat_model = model or self.get_config_val("MODEL", default=self._get_default_model(), val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    @abstractmethod
    def _get_default_model(self) -> str:
        """Returns the model used when neither the settings nor the env name one."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, system_prompt: str, user_message: str, params: LLMParameters) -> dict:
        """Build the backend-specific request body for a single-turn chat request.

        Args:
            system_prompt (str): Full system prompt, formatting instructions included.
            user_message (str): The composed user turn (context block and question).
            params (LLMParameters): Sampling parameters from the settings.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            str: The assistant reply text.

        Raises:
            ValueError: If the response does not contain a valid reply.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, system_prompt: str, user_message: str, params: LLMParameters) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Returns:
            str: The assistant reply text.

        Raises:
            ProviderError: If the HTTP request fails or the reply cannot be extracted.
        """
        body = self.get_chat_payload(system_prompt, user_message, params)
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=body,
            raise_on_error=True,
        )
        try:
            return self.extract_chat_response(response.json())
        except ValueError as e:
            raise ProviderError(f"Invalid {self.get_engine_name()} chat response", reason="bad_response", detail=str(e))
