"""Command line entry point: ``python -m bestbets_indexer``."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import structlog

from bestbets_indexer.config import Settings, validate_config
from bestbets_indexer.errors import BestBetsError
from bestbets_indexer.logging_config import configure_logging
from bestbets_indexer.pipeline import PipelineReport, build_pipeline

log = structlog.get_logger()


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bestbets-indexer",
        description="Publish best bets categories into a fresh index behind an alias.",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="check the indexer config and exit",
    )
    parser.add_argument("--content-dir", help="directory of category XML files")
    parser.add_argument("--hostname", help="published-content host to fetch categories from")
    return parser.parse_args(argv)


async def _publish(settings: Settings) -> PipelineReport:
    pipeline = build_pipeline(settings)
    try:
        return await pipeline.run()
    finally:
        await pipeline.aclose()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = Settings()
    if args.content_dir:
        settings.source.content_dir = args.content_dir
    if args.hostname:
        settings.source.hostname = args.hostname
    configure_logging(settings.logging)

    issues = validate_config(settings.indexer)
    for issue in issues:
        log.error("config_invalid", field=issue.field, message=issue.message)
    if issues:
        return 2
    if args.validate_only:
        log.info("config_valid")
        return 0

    try:
        report = asyncio.run(_publish(settings))
    except BestBetsError as exc:
        log.error("publish_failed", code=exc.code.value, message=exc.message)
        print(json.dumps(exc.to_dict()))
        return 1

    print(json.dumps(report.to_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
