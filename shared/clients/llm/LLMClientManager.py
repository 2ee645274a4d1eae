import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.errors import ConfigurationError


class LLMClientManager:
    """Manager class to instantiate the LLM client for a provider.

    Exactly one client is created per ask call, selected by the provider name
    from the settings (or the request override).
    """

    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._transport = transport

    def get_supported_providers(self) -> list[str]:
        """Provider names accepted by create_client(), from LLM_PROVIDERS."""
        return self.helper_config.get_list_val("LLM_PROVIDERS", default=["openai", "anthropic"])

    def create_client(self, provider: str, api_key: str | None, model: str | None = None) -> LLMClientInterface:
        """Instantiate the LLM client for ``provider``.

        Args:
            provider (str): Provider name, case-insensitive (e.g. "anthropic").
            api_key (str | None): Credential for the provider.
            model (str | None): Model name, falls back to LLM_{PROVIDER}_MODEL.

        Returns:
            LLMClientInterface: A not yet booted client.

        Raises:
            ConfigurationError: If the provider is unsupported.
            AuthenticationError: If no api_key is given.
        """
        engine = (provider or "").strip().lower()
        if engine not in [p.lower() for p in self.get_supported_providers()]:
            raise ConfigurationError(f"Unsupported LLM provider '{provider}'")
        class_name = f"LLMClient{engine.capitalize()}"
        try:
            module = __import__(
                f"shared.clients.llm.{engine}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Unsupported LLM provider '{provider}'", detail=str(e))
        client = client_class(helper_config=self.helper_config, api_key=api_key, model=model, transport=self._transport)
        self.logging.debug("Instantiated LLM client for provider: %s (model %s)", engine, client.chat_model)
        return client
