"""Run the image pipeline over a JSON file of content entries.

Usage:
    python -m contentmigrate entries.json
    python -m contentmigrate entries.json --no-generate --concurrency 5
    python -m contentmigrate entries.json --output migrated.json --reset-ledger

The input is a JSON array of entries ({"id", "title", "category", "summary",
"tags", "image_url"}). The output holds the entries with their new image URLs plus
the per-entry results. Exit code is 1 when any entry failed, 2 on bad input.

Everything else (bucket, API key, directories) comes from CONTENTMIGRATE_* env vars
or a .env file - see contentmigrate.config.settings.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from contentmigrate.config import Settings, get_settings
from contentmigrate.domain.entities import ContentEntry
from contentmigrate.domain.exceptions import ConfigurationException, ValidationException
from contentmigrate.infrastructure.lifecycle import ImagePipeline
from contentmigrate.infrastructure.observability import configure_logging

logger = logging.getLogger("contentmigrate")

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_BAD_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contentmigrate",
        description="Resolve, generate and re-host images for content entries.",
    )
    parser.add_argument("entries", type=Path, help="JSON file with an array of entries")
    parser.add_argument(
        "--no-generate",
        action="store_true",
        help="Do not generate images for entries without an image URL",
    )
    parser.add_argument("--concurrency", type=int, default=None, help="Entries per chunk")
    parser.add_argument("--max-retries", type=int, default=None, help="Extra retry rounds")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write the updated entries (default: <entries>.out.json)",
    )
    parser.add_argument(
        "--reset-ledger",
        action="store_true",
        help="Forget all recorded image tasks before processing",
    )
    return parser


def load_entries(path: Path) -> list[ContentEntry]:
    """Parse the input file.

    Raises:
        ValidationException: File is unreadable, not an array of objects, or holds a malformed entry
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationException(f"Cannot read entries from {path}: {e}") from e

    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        raise ValidationException(f"{path} must contain a JSON array of objects")

    entries: list[ContentEntry] = []
    for index, item in enumerate(raw):
        try:
            entries.append(ContentEntry.from_dict(item))
        except (ValueError, TypeError) as e:
            # Unknown image_origin, tags that aren't a list, ...
            raise ValidationException(f"{path}: invalid entry at index {index}: {e}") from e
    return entries


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    images_update: dict[str, Any] = {}
    if args.concurrency is not None:
        images_update["concurrency"] = max(1, args.concurrency)
    if args.max_retries is not None:
        images_update["max_retries"] = max(0, args.max_retries)
    if args.no_generate:
        images_update["generate_if_missing"] = False
    if not images_update:
        return settings
    return settings.model_copy(
        update={"images": settings.images.model_copy(update=images_update)}
    )


async def run(args: argparse.Namespace, settings: Settings) -> int:
    entries = load_entries(args.entries)
    output_path = args.output or args.entries.with_suffix(".out.json")

    async with ImagePipeline.build(settings) as pipeline:
        if args.reset_ledger:
            await pipeline.ledger.clear_all_tasks()

        result = await pipeline.processor.process_all(
            entries, generate_if_missing=settings.images.generate_if_missing
        )
        stats = await pipeline.ledger.get_stats()

    payload = {
        "summary": result.summary(),
        "ledger": stats,
        "entries": [entry.to_dict() for entry in entries],
        "results": {entry_id: res.to_dict() for entry_id, res in result.results.items()},
    }
    await asyncio.to_thread(
        output_path.write_text,
        json.dumps(payload, indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    logger.info("Wrote %d entries to %s", len(entries), output_path)

    for entry_id in result.failed:
        logger.error("Image failed for %s: %s", entry_id, result.results[entry_id].error)

    return EXIT_FAILURES if result.failed else EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = apply_overrides(get_settings(), args)
    configure_logging(settings.log.level, settings.log.json_format, settings.app_name)

    try:
        return asyncio.run(run(args, settings))
    except (ValidationException, ConfigurationException) as e:
        logger.error("%s", e.message)
        return EXIT_BAD_INPUT


if __name__ == "__main__":
    sys.exit(main())
