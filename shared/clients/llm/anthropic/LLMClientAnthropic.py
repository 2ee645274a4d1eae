from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.models.config import EnvConfig
from shared.models.settings import LLMParameters

ANTHROPIC_VERSION = "2023-06-01"


class LLMClientAnthropic(LLMClientInterface):

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Anthropic"

    def _get_default_model(self) -> str:
        return "claude-3-5-sonnet-latest"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.anthropic.com/v1"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self.get_config_val("BASE_URL", default="https://api.anthropic.com/v1", val_type="string")

    def _get_endpoint_chat(self) -> str:
        return "/messages"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, system_prompt: str, user_message: str, params: LLMParameters) -> dict:
        """Build the Anthropic messages request body.

        The system prompt is a top-level field. The messages API has no
        presence/frequency penalties; ``top_p`` is only sent when it differs
        from 1.0 since newer models reject it together with ``temperature``.
        """
        payload = {
            "model": self.chat_model,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_message}],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        if params.top_p != 1.0:
            payload["top_p"] = params.top_p
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        blocks = response_data.get("content") or []
        texts = [block.get("text", "") for block in blocks if block.get("type", "text") == "text"]
        if not texts:
            raise ValueError(
                "Anthropic response does not contain a text block. "
                "Response keys: %s" % list(response_data.keys())
            )
        return "".join(texts)
