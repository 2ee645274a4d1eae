"""Pydantic models for the conversation log and the debug trace log."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["user", "assistant", "system"]
TraceType = Literal["request", "response"]


class Message(BaseModel):
    """A single conversation message.

    ``id`` and ``timestamp`` (epoch milliseconds) are assigned by the store when
    they are missing. Wire format uses camelCase keys.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    role: MessageRole
    content: str
    timestamp: int | None = None
    source_type: str | None = Field(default=None, alias="sourceType")
    source_url: str | None = Field(default=None, alias="sourceUrl")
    used_rag: bool | None = Field(default=None, alias="usedRag")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class DebugTraceEntry(BaseModel):
    """A provider request or response captured for one conversation."""

    id: str | None = None
    type: TraceType
    content: Any = None
    timestamp: int | None = None
