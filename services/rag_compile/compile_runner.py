"""Compile runner entry point.

Rebuilds the vector index from the uploaded documents without the API
server running. Run directly for a one-shot global compile.

Usage:
    python -m services.rag_compile.compile_runner
    python -m services.rag_compile.compile_runner --conversation <id>
    python -m services.rag_compile.compile_runner --truncate
"""

import argparse
import asyncio
import sys

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.errors import AppError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperSettings import HelperSettings
from shared.logging.logging_setup import setup_logging
from shared.stores.FileStore import FileStore
from services.rag_compile.CompileService import CompileService


def build_compile_service(config: HelperConfig) -> CompileService:
    return CompileService(
        helper_config=config,
        helper_settings=HelperSettings(helper_config=config),
        file_store=FileStore(helper_config=config),
        embed_manager=EmbedClientManager(helper_config=config),
        rag_manager=RAGClientManager(helper_config=config),
    )


async def main(argv: list[str] | None = None) -> int:
    """Run one compile or truncate and return the process exit code."""
    parser = argparse.ArgumentParser(description="Compile uploaded documents into the vector index.")
    parser.add_argument("--conversation", help="compile or truncate only this conversation's index")
    parser.add_argument("--truncate", action="store_true", help="clear the index instead of compiling")
    parser.add_argument("--api-key", help="embedding API key, overrides settings and OPENAI_API_KEY")
    args = parser.parse_args(argv)

    logger = setup_logging()
    config = HelperConfig(logger=logger)
    compile_service = build_compile_service(config)

    try:
        if args.truncate:
            await compile_service.truncate(conversation_id=args.conversation)
            logger.info("Index truncated.", color="green")
        elif args.conversation:
            result = await compile_service.compile_conversation(args.conversation, api_key=args.api_key)
            logger.info("%s: %d documents, %d chunks.", result.message, result.document_count, result.chunk_count)
        else:
            result = await compile_service.compile(api_key=args.api_key)
            logger.info("%s: %d documents, %d chunks.", result.message, result.document_count, result.chunk_count)
    except AppError as e:
        logger.error("Compile aborted: %s%s", e.message, f" ({e.detail})" if e.detail else "")
        return 1
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
