from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace

from .config import SearchConfig
from .core.builder import build_engine
from .core.engine import HybridSearchEngine
from .core.intent import classify_search_intent, get_intent_weights
from .errors import MnemosearchError
from .maintenance.scheduler import MaintenanceScheduler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mnemosearch")
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--db", help="Path to the SQLite database (overrides MNEMOSEARCH_DB_PATH)")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    sub = parser.add_subparsers(dest="command")

    search = sub.add_parser("search", help="Hybrid search within a project")
    search.add_argument("project", help="Project id")
    search.add_argument("query", help="Search text")
    search.add_argument("--limit", type=int, default=10)

    classify = sub.add_parser("classify", help="Show the intent of a query")
    classify.add_argument("query")

    sub.add_parser("rebuild-index", help="Rebuild the keyword index from stored memories")
    sub.add_parser("backfill", help="Embed memories that have no stored embedding")
    sub.add_parser("schedule", help="Run the periodic backfill until interrupted")
    return parser


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _classify(query: str) -> int:
    classification = classify_search_intent(query)
    weights = get_intent_weights(classification.intent)
    _print_json(
        {
            **classification.model_dump(mode="json"),
            "weights": weights.model_dump(mode="json"),
        }
    )
    return 0


async def _search(engine: HybridSearchEngine, project: str, query: str, limit: int) -> int:
    response = await engine.hybrid_search(project, query, limit)
    _print_json(response.model_dump(mode="json"))
    return 0


async def _rebuild(engine: HybridSearchEngine) -> int:
    ok = await engine.rebuild_lexical_index()
    print("rebuilt" if ok else "keyword index unavailable")
    return 0 if ok else 1


async def _backfill(engine: HybridSearchEngine) -> int:
    report = await engine.run_embedding_backfill()
    _print_json(report.model_dump(mode="json"))
    return 0 if report.failed == 0 else 1


async def _schedule(engine: HybridSearchEngine) -> int:
    scheduler = MaintenanceScheduler(
        engine.run_embedding_backfill, cron=engine.config.backfill_cron
    )
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
    return 0


async def _run(args: argparse.Namespace, config: SearchConfig) -> int:
    engine = build_engine(config)
    await engine.start()
    try:
        if args.command == "search":
            return await _search(engine, args.project, args.query, args.limit)
        if args.command == "rebuild-index":
            return await _rebuild(engine)
        if args.command == "backfill":
            return await _backfill(engine)
        return await _schedule(engine)
    finally:
        await engine.close()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        try:
            from importlib.metadata import version

            print(version("mnemosearch"))
        except Exception:
            print("mnemosearch")
        return 0

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "classify":
        return _classify(args.query)

    try:
        config = SearchConfig.from_env()
        if args.db:
            config = replace(config, db_path=args.db)
        return asyncio.run(_run(args, config))
    except MnemosearchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
