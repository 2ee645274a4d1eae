import asyncio

from fastapi import APIRouter, Request

from server.models.requests import MessageRequest
from shared.errors import ValidationError
from shared.models.message import Message

router = APIRouter(prefix="/api", tags=["conversation"])


@router.get("/messages")
async def list_messages(request: Request, conversation: str = "") -> dict:
    if not conversation:
        raise ValidationError("Missing conversation parameter")
    messages = await asyncio.to_thread(request.app.state.message_store.read_all, conversation)
    return {"messages": [m.to_wire() for m in messages]}


@router.post("/messages")
async def add_message(request: Request, body: MessageRequest, conversation: str = "") -> dict:
    """Append a client-side message (e.g. an upload notice) to the conversation log."""
    if not conversation:
        raise ValidationError("Missing conversation parameter")
    if body.role not in ("user", "assistant", "system"):
        raise ValidationError(f"Invalid role '{body.role}'")
    message = Message(role=body.role, content=body.content, source_type=body.source_type, source_url=body.source_url)
    stored = await asyncio.to_thread(request.app.state.message_store.append, conversation, message)
    return {"message": stored.to_wire()}


@router.get("/debug/{conversation_id}")
async def list_debug_messages(request: Request, conversation_id: str) -> dict:
    entries = await asyncio.to_thread(request.app.state.debug_store.read_all, conversation_id)
    return {"debugMessages": [e.model_dump() for e in entries]}
