from pydantic import BaseModel, ConfigDict, Field


class AskSource(BaseModel):
    """A document that contributed context to an answer."""

    source: str
    path: str
    group: str | None = None
    score: float


class AskResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answer: str
    used_rag: bool = Field(alias="usedRag")
    sources: list[AskSource] = Field(default_factory=list)
    message_id: str | None = Field(default=None, alias="messageId")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
