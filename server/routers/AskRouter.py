from fastapi import APIRouter, Request

from server.models.requests import AskRequest

router = APIRouter(prefix="/api/rag", tags=["ask"])


@router.post("/ask")
async def ask(request: Request, body: AskRequest, conversation: str | None = None) -> dict:
    """Answer a question inside a conversation.

    The conversation id may come in the body or as ``?conversation=``.

    Returns:
        dict: {"answer", "usedRag", "sources", "messageId"}
    """
    if conversation and not body.conversation_id:
        body = body.model_copy(update={"conversation_id": conversation})
    ask_service = request.app.state.ask_service
    result = await ask_service.ask(body)
    return result.to_wire()
