"""Command line entry point.

Usage:
    knowledge-bot update faq data/pricing.json
    knowledge-bot query faq "How much is Plan X?" --top-k 3
    knowledge-bot clear faq
    knowledge-bot serve
"""

import argparse
import asyncio
import sys
from pathlib import Path

import uvicorn

from knowledge_bot.config import get_settings
from knowledge_bot.container import Services, build_services
from knowledge_bot.exceptions import KnowledgeBotError
from knowledge_bot.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def run_update(services: Services, collection: str, file: Path) -> int:
    """Ingest a knowledge file; exit code 1 if any document failed."""
    results = await services.ingestion.ingest_file(collection, file)
    for result in results:
        if result.error is None:
            print(f"OK    {result.title or '(untitled)'} -> {result.record_id}")
        else:
            print(f"FAIL  {result.title or '(untitled)'}: {result.error.user_message()}")
    failed = sum(1 for r in results if not r.success)
    print(f"\n{len(results) - failed}/{len(results)} documents ingested into {collection}")
    return 1 if failed else 0


async def run_query(
    services: Services,
    collection: str,
    question: str,
    top_k: int | None,
    budget: int | None,
) -> int:
    """Answer a question and print the sources used."""
    answer = await services.query.answer(collection, question, top_k=top_k, token_budget=budget)
    print(answer.text)
    if answer.sources:
        print("\nSources:")
        for index, source in enumerate(answer.sources, start=1):
            label = source.title or source.record_id
            suffix = " (truncated)" if source.truncated else ""
            print(f"  [{index}] {label} score={source.score:.3f}{suffix}")
    return 0


async def run_clear(services: Services, collection: str) -> int:
    await services.store.clear(collection)
    print(f"Cleared collection {collection}")
    return 0


async def _dispatch(args: argparse.Namespace) -> int:
    services = build_services(get_settings())
    try:
        if args.command == "update":
            return await run_update(services, args.collection, args.file)
        if args.command == "query":
            return await run_query(
                services, args.collection, args.question, args.top_k, args.budget
            )
        return await run_clear(services, args.collection)
    except KnowledgeBotError as e:
        logger.error(e.message, extra={"code": e.code.value, "details": e.details})
        print(e.user_message(), file=sys.stderr)
        return 1
    finally:
        await services.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="knowledge-bot",
        description="Manage and query the knowledge base",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    update = commands.add_parser("update", help="Upsert knowledge from a JSON file")
    update.add_argument("collection", help="Collection name")
    update.add_argument("file", type=Path, help="JSON knowledge file")

    query = commands.add_parser("query", help="Answer a question from a collection")
    query.add_argument("collection", help="Collection name")
    query.add_argument("question", help="Question to answer")
    query.add_argument("--top-k", type=int, default=None, help="Candidates to retrieve")
    query.add_argument("--budget", type=int, default=None, help="Token budget")

    clear = commands.add_parser("clear", help="Delete every record of a collection")
    clear.add_argument("collection", help="Collection name")

    commands.add_parser("serve", help="Run the HTTP API")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings=settings)

    if args.command == "serve":
        uvicorn.run(
            "knowledge_bot.api.app:app",
            host=settings.api_host,
            port=settings.api_port,
        )
        return

    sys.exit(asyncio.run(_dispatch(args)))


if __name__ == "__main__":
    main()
