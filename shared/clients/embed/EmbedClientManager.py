import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.errors import ConfigurationError


class EmbedClientManager:
    """
    Manager class to create the Embed client for the configured engine.

    A new client is created per call because the credential is resolved per
    request (request override, stored settings or env).
    """

    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._transport = transport

    def _get_engine_from_env(self) -> str:
        """
        Reads the Embed engine from ENV configuration.

        Returns:
            str: The capitalised name of the Embed engine (e.g. "Openai").
        """
        engine = self.helper_config.get_string_val("EMBED_ENGINE", default="openai")
        #lowercase all and uppercase first letter for the class name
        return engine.strip().lower().capitalize()

    def create_client(self, api_key: str | None) -> EmbedClientInterface:
        """
        Instantiates the Embed client for the engine specified in the configuration.

        Args:
            api_key (str | None): Credential for the embedding provider.

        Returns:
            EmbedClientInterface: A not yet booted Embed client.

        Raises:
            AuthenticationError: If no api_key is given.
            ConfigurationError: If the engine is unsupported.
        """
        engine = self._get_engine_from_env()
        className = f"EmbedClient{engine}"
        try:
            module = __import__(
                f"shared.clients.embed.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Unsupported Embed engine specified: '{engine}'", detail=str(e))
        client = client_class(helper_config=self.helper_config, api_key=api_key, transport=self._transport)
        self.logging.debug("Instantiated Embed client for engine: %s", engine)
        return client
