import asyncio

from fastapi import APIRouter, File, Request, UploadFile

from server.models.requests import GroupRequest
from shared.errors import ValidationError
from shared.models.group import UploadItem

router = APIRouter(prefix="/api", tags=["documents"])


##########################################
################ GROUPS ##################
##########################################

@router.get("/document-groups")
async def list_groups(request: Request) -> dict:
    groups = await asyncio.to_thread(request.app.state.group_store.list_groups)
    return {"groups": [g.to_wire() for g in groups]}


@router.post("/document-groups")
async def create_group(request: Request, body: GroupRequest) -> dict:
    group, created = await asyncio.to_thread(request.app.state.group_store.create, body.name)
    if not created:
        return {"message": "Group already exists", "group": group.to_wire()}
    return group.to_wire()


@router.put("/document-groups")
async def rename_group(request: Request, body: GroupRequest, guid: str = "") -> dict:
    if not guid:
        raise ValidationError("Missing group GUID")
    group = await asyncio.to_thread(request.app.state.group_store.rename, guid, body.name)
    return {"success": True, "group": group.to_wire()}


@router.delete("/document-groups")
async def delete_group(request: Request, guid: str = "") -> dict:
    if not guid:
        raise ValidationError("Missing group GUID")
    await asyncio.to_thread(request.app.state.group_store.delete, guid)
    return {"success": True}


##########################################
################# FILES ##################
##########################################

@router.get("/files")
async def list_files(request: Request, groupId: str | None = None, conversation: str | None = None) -> dict:
    files = await asyncio.to_thread(request.app.state.file_store.list_files, groupId, conversation)
    return {"files": [f.to_wire() for f in files]}


@router.delete("/files")
async def delete_file(request: Request, file: str = "") -> dict:
    await asyncio.to_thread(request.app.state.file_store.delete_file, file)
    return {"success": True}


@router.post("/upload")
async def upload_files(
    request: Request,
    groupId: str | None = None,
    conversation: str | None = None,
    file: list[UploadFile] = File(default=[]),
) -> dict:
    """Store uploaded files under the group (and conversation) folder."""
    items = [UploadItem(name=f.filename or "file", content=await f.read()) for f in file]
    saved = await asyncio.to_thread(request.app.state.file_store.save_uploads, groupId, conversation, items)
    return {"saved": saved}
