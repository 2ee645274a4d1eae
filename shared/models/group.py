"""Pydantic models for document groups and uploaded files."""

from pydantic import BaseModel, ConfigDict, Field


class DocumentGroup(BaseModel):
    """A named bucket of uploaded documents.

    ``document_count`` is computed from the group directory whenever groups are
    read, the value persisted in document-groups.json is informational only.
    """

    model_config = ConfigDict(populate_by_name=True)

    guid: str
    name: str
    created_at: str = Field(alias="createdAt")
    document_count: int = Field(default=0, alias="documentCount")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class UploadedFile(BaseModel):
    """A file found under the files root. There is no stored record, only the filesystem."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    path: str
    size: int
    last_modified: str = Field(alias="lastModified")
    group_id: str | None = Field(default=None, alias="groupId")
    conversation_id: str | None = Field(default=None, alias="conversationId")
    type: str

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class UploadItem(BaseModel):
    """One file handed over by the upload collaborator."""

    name: str
    content: bytes
