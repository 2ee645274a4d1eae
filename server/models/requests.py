from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class AskRequest(BaseModel):
    """A chat question. Provider, model, prompt and key override the stored settings for this call only."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(default="", alias="conversationId")
    message: str = Field(default="", validation_alias=AliasChoices("message", "question"))
    api_key: str | None = Field(default=None, alias="apiKey")
    provider: str | None = None
    model: str | None = None
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    web_search: bool = Field(default=False, alias="webSearch")
    direct: bool = False
    top_k: int = Field(default=4, alias="topK", ge=1, le=50)


class CompileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str | None = Field(default=None, alias="apiKey")


class GroupRequest(BaseModel):
    name: str = ""


class MessageRequest(BaseModel):
    """A message appended by the client (e.g. upload notices)."""

    model_config = ConfigDict(populate_by_name=True)

    role: str = "user"
    content: str = ""
    source_type: str | None = Field(default=None, alias="sourceType")
    source_url: str | None = Field(default=None, alias="sourceUrl")
