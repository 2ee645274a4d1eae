import asyncio

from fastapi import APIRouter, Request

from shared.models.settings import Settings

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _to_wire(settings: Settings) -> dict:
    # the stored credential never leaves the server
    data = settings.to_file_dict()
    data.pop("llm_api_key", None)
    data["has_api_key"] = bool(settings.api_key)
    return data


@router.get("")
async def get_settings(request: Request) -> dict:
    settings = await asyncio.to_thread(request.app.state.helper_settings.load)
    return _to_wire(settings)


@router.post("")
async def save_settings(request: Request, body: dict) -> dict:
    """Full update, ``llm_provider`` and ``llm_model`` are required."""
    settings = await asyncio.to_thread(request.app.state.helper_settings.save, body)
    return {"success": True, "settings": _to_wire(settings)}


@router.patch("")
async def update_settings(request: Request, body: dict) -> dict:
    settings = await asyncio.to_thread(request.app.state.helper_settings.update, body)
    return {"success": True, "settings": _to_wire(settings)}
