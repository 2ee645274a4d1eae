from fastapi import APIRouter, Request

from server.models.requests import CompileRequest

router = APIRouter(prefix="/api/rag", tags=["index"])


@router.post("/compile")
async def compile_index(request: Request, body: CompileRequest | None = None) -> dict:
    """Rebuild the global index from all group documents."""
    compile_service = request.app.state.compile_service
    result = await compile_service.compile(api_key=body.api_key if body else None)
    return result.to_wire()


@router.post("/embed")
async def compile_conversation(request: Request, conversation: str = "", body: CompileRequest | None = None) -> dict:
    """Rebuild the index of one conversation from its uploaded files."""
    compile_service = request.app.state.compile_service
    result = await compile_service.compile_conversation(conversation, api_key=body.api_key if body else None)
    return {**result.to_wire(), "embedded": result.chunk_count}


@router.post("/truncate")
async def truncate_index(request: Request, conversation: str | None = None) -> dict:
    """Clear the global index, or one conversation's index with ``?conversation=``."""
    await request.app.state.compile_service.truncate(conversation_id=conversation)
    return {"success": True, "message": "Database truncated successfully"}


@router.get("/stats")
async def index_stats(request: Request) -> dict:
    stats = await request.app.state.compile_service.stats()
    return stats.to_wire()
