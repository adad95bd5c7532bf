#!/usr/bin/env python3
"""CLI for certificate rendering tasks.

Usage:
    python -m cli <command>

Commands:
    render  Render one certificate to a file
    batch   Render certificates for every participant in a JSON file
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_EXHAUSTED = 1
EXIT_INVALID = 2

_EXTENSIONS = {
    "image/png": "png",
    "image/svg+xml": "svg",
    "application/pdf": "pdf",
}


def _parse_backends(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


def _load_json(path: str):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _load_config(args: argparse.Namespace) -> dict:
    """Config from a JSON file, a preset, or the plain defaults."""
    if args.config:
        return _load_json(args.config)
    if args.preset:
        from rendering.presets import preset_config

        return preset_config(args.preset).model_dump(by_alias=True)
    return {}


async def _close_clients() -> None:
    from core.http_client import close_http_client

    await close_http_client()


def cmd_render(args: argparse.Namespace) -> int:
    """Render one certificate through the fallback chain."""
    from core.config import get_settings
    from schemas import ExhaustedResult, RenderContext
    from services.certificates_service import ConfigInvalidError, generate

    config = _load_config(args)
    if args.participant:
        context = RenderContext.model_validate(_load_json(args.participant))
    else:
        context = RenderContext(
            user_name=args.name or "",
            event_name=args.event or "",
            event_date=args.date,
        )
    priority = _parse_backends(args.backends) or get_settings().backend_names

    async def run():
        try:
            return await generate(config, context, priority)
        finally:
            await _close_clients()

    try:
        result = asyncio.run(run())
    except ConfigInvalidError as e:
        logger.error(f"Invalid template config: {e.errors}")
        return EXIT_INVALID
    except ValueError as e:
        logger.error(str(e))
        return EXIT_INVALID

    for attempt in result.attempts:
        outcome = attempt.status.value
        if attempt.failure:
            outcome += f" ({attempt.failure.value}: {attempt.detail})"
        logger.info(f"  {attempt.backend}: {outcome} in {attempt.duration_ms:.0f}ms")

    if isinstance(result, ExhaustedResult):
        logger.error("All render backends failed")
        return EXIT_EXHAUSTED

    output = Path(args.output)
    if not output.suffix:
        output = output.with_suffix("." + _EXTENSIONS.get(result.mime_type, "bin"))
    output.write_bytes(result.content)
    logger.info(
        f"Rendered with {result.backend}: {output} ({len(result.content)} bytes)"
    )
    return EXIT_OK


def cmd_batch(args: argparse.Namespace) -> int:
    """Render every participant, as one combined PDF or one file each."""
    from core.config import get_settings
    from schemas import ExhaustedResult, RenderContext
    from services.batch_service import (
        BatchItem,
        generate_batch,
        generate_combined_document,
    )
    from services.certificates_service import ConfigInvalidError

    config = _load_config(args)
    participants = [
        RenderContext.model_validate(raw) for raw in _load_json(args.participants)
    ]
    if not participants:
        logger.error("No participants in input file")
        return EXIT_INVALID

    if not args.separate:

        async def run_combined():
            try:
                return await generate_combined_document(config, participants)
            finally:
                await _close_clients()

        try:
            result = asyncio.run(run_combined())
        except ConfigInvalidError as e:
            logger.error(f"Invalid template config: {e.errors}")
            return EXIT_INVALID

        if isinstance(result, ExhaustedResult):
            logger.error(f"PDF generation failed: {result.attempts[0].detail}")
            return EXIT_EXHAUSTED

        output = Path(args.output or "certificates.pdf")
        output.write_bytes(result.content)
        logger.info(f"Wrote {len(participants)} pages to {output}")
        return EXIT_OK

    priority = _parse_backends(args.backends) or get_settings().backend_names
    items = [
        BatchItem(config=config, context=context, item_id=str(i))
        for i, context in enumerate(participants)
    ]

    async def run_batch():
        try:
            return await generate_batch(items, priority, concurrency=args.concurrency)
        finally:
            await _close_clients()

    try:
        batch = asyncio.run(run_batch())
    except ValueError as e:
        logger.error(str(e))
        return EXIT_INVALID

    output_dir = Path(args.output or "certificates")
    output_dir.mkdir(parents=True, exist_ok=True)
    for success in sorted(batch.succeeded, key=lambda s: s.index):
        extension = _EXTENSIONS.get(success.result.mime_type, "bin")
        path = output_dir / f"certificate-{success.index + 1:04d}.{extension}"
        path.write_bytes(success.result.content)

    for failure in sorted(batch.failed, key=lambda f: f.index):
        logger.warning(
            f"Participant {failure.index + 1} failed ({failure.reason.value}): "
            f"{failure.message}"
        )

    logger.info(
        f"Batch complete: {len(batch.succeeded)} rendered, "
        f"{len(batch.failed)} failed -> {output_dir}"
    )
    return EXIT_OK if not batch.failed else EXIT_EXHAUSTED


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--config", help="Template config JSON file")
    source.add_argument(
        "--preset",
        choices=["modern", "classic", "elegant", "minimalist", "blank"],
        help="Start from a built-in template",
    )
    parser.add_argument(
        "--backends",
        help="Comma-separated backend chain (default: RENDER_BACKENDS)",
    )


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Certificate renderer CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    render_parser = subparsers.add_parser(
        "render",
        help="Render one certificate to a file",
    )
    _add_config_args(render_parser)
    render_parser.add_argument("--participant", help="Participant JSON file")
    render_parser.add_argument("--name", help="Participant name")
    render_parser.add_argument("--event", help="Event name")
    render_parser.add_argument(
        "--date", type=date.fromisoformat, help="Event date (YYYY-MM-DD)"
    )
    render_parser.add_argument(
        "-o", "--output", default="certificate", help="Output file"
    )

    batch_parser = subparsers.add_parser(
        "batch",
        help="Render certificates for every participant in a JSON file",
    )
    _add_config_args(batch_parser)
    batch_parser.add_argument(
        "participants", help="JSON file with a list of participants"
    )
    batch_parser.add_argument(
        "--separate",
        action="store_true",
        help="One file per participant through the fallback chain",
    )
    batch_parser.add_argument(
        "--concurrency", type=int, default=None, help="Worker count (--separate)"
    )
    batch_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output PDF (default certificates.pdf), or output directory "
        "with --separate (default certificates/)",
    )

    args = parser.parse_args()

    if args.command == "render":
        return cmd_render(args)
    elif args.command == "batch":
        return cmd_batch(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
