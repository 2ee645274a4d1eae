"""FastAPI application entry point for the document chat backend."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.logging.logging_setup import setup_logging
from shared.errors import AppError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperSettings import HelperSettings
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.stores.DebugStore import DebugStore
from shared.stores.FileStore import FileStore
from shared.stores.GroupStore import GroupStore
from shared.stores.MessageStore import MessageStore
from services.rag_compile.CompileService import CompileService
from server.core.AskService import AskService
from server.routers.AskRouter import router as ask_router
from server.routers.ConversationRouter import router as conversation_router
from server.routers.DocumentRouter import router as document_router
from server.routers.IndexRouter import router as index_router
from server.routers.SettingsRouter import router as settings_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


def init_services(state, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
    """Wire stores, client managers and services onto ``state``.

    ``transport`` replaces the network for every outgoing HTTP client.
    """
    state.helper_config = helper_config
    state.helper_settings = HelperSettings(helper_config=helper_config)
    state.file_store = FileStore(helper_config=helper_config)
    state.group_store = GroupStore(helper_config=helper_config, file_store=state.file_store)
    state.message_store = MessageStore(helper_config=helper_config)
    state.debug_store = DebugStore(helper_config=helper_config)

    embed_manager = EmbedClientManager(helper_config=helper_config, transport=transport)
    llm_manager = LLMClientManager(helper_config=helper_config, transport=transport)
    rag_manager = RAGClientManager(helper_config=helper_config, transport=transport)

    state.compile_service = CompileService(
        helper_config=helper_config,
        helper_settings=state.helper_settings,
        file_store=state.file_store,
        embed_manager=embed_manager,
        rag_manager=rag_manager,
    )
    state.ask_service = AskService(
        helper_config=helper_config,
        helper_settings=state.helper_settings,
        message_store=state.message_store,
        debug_store=state.debug_store,
        embed_manager=embed_manager,
        llm_manager=llm_manager,
        rag_manager=rag_manager,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    helper_config = HelperConfig(logger=logging)
    init_services(app.state, helper_config)

    settings = app.state.helper_settings.load()
    logging.info(
        "Serving files from %s (provider=%s, model=%s, vector store=%s)",
        helper_config.get_files_root(), settings.provider, settings.model, settings.vector_store_kind,
    )

    # clients are created per request, nothing to close on shutdown
    yield

    logging.info("Shutting down.")


app = FastAPI(
    title="docchat",
    description=(
        "Document-grounded chat backend. Uploaded documents are organised in groups, "
        "compiled into a vector index via POST /api/rag/compile and used as context "
        "for answers from POST /api/rag/ask."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logging.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.detail)
    else:
        logging.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(ask_router)
app.include_router(index_router)
app.include_router(conversation_router)
app.include_router(settings_router)
app.include_router(document_router)


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting docchat API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
