"""Pydantic model for the user-editable runtime settings record (app-settings.json)."""

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PROVIDER = "openai"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

VECTOR_STORE_MEMORY = "memory"
VECTOR_STORE_QDRANT = "qdrant"


class LLMParameters(BaseModel):
    """Sampling parameters forwarded to the LLM provider."""

    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: int = 2000
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0


class Settings(BaseModel):
    """Process-wide settings record.

    Field aliases are the keys used in the persisted JSON file, so files written
    by earlier versions of the application load unchanged. Unknown keys are kept.

    Attributes:
        provider:              LLM provider name ("openai", "anthropic").
        model:                 Model name passed to the provider.
        system_prompt:         Base system prompt for every completion.
        api_key:               Stored credential for ``provider``. Optional, env is the fallback.
        vector_store_kind:     "memory" (file snapshot) or "qdrant" (external service).
        vector_store_endpoint: Base URL of the external vector service.
        llm_parameters:        Sampling parameters, flattened into the file.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    provider: str = Field(default=DEFAULT_PROVIDER, alias="llm_provider")
    model: str = Field(default=DEFAULT_MODEL, alias="llm_model")
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    api_key: str | None = Field(default=None, alias="llm_api_key")
    vector_store_kind: str = Field(default=VECTOR_STORE_MEMORY, alias="vector_store")
    vector_store_endpoint: str | None = Field(default=None, alias="vector_store_url")
    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: int = 2000
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0

    @property
    def llm_parameters(self) -> LLMParameters:
        return LLMParameters(
            temperature=self.temperature,
            top_p=self.top_p,
            max_tokens=self.max_tokens,
            presence_penalty=self.presence_penalty,
            frequency_penalty=self.frequency_penalty,
        )

    def to_file_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
