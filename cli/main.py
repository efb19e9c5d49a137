#!/usr/bin/env python3
"""
Content record CLI

Operator commands against the content record of one skapp domain.

1) record
   - Append an entry to a log:
       main.py --domain skapp.hns record newcontent <skylink> --metadata '{"a": 1}'

2) ensure
   - Warm the index and current page of every log.

3) register
   - Add the domain to the shared skapp name dictionary.

4) show-index / show-page
   - Print the index of a log, or one of its pages, as JSON.

5) verify
   - Compare the index entry count with the current page.
     Exits with status 1 on a mismatch when --strict is given.

The HTTP runtime is started separately, e.g.:

    uvicorn runtime.api.server:app --reload
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

# Ensure project root is on sys.path when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from configs.settings import settings
from core.log.models import ContentInfo
from core.log.paths import LogKind
from exceptions.exceptions import ContentRecordError, InconsistencyError
from runtime.agents.content_record_agent import ContentRecordAgent


def _print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _parse_metadata(raw: str) -> Dict[str, Any]:
    try:
        metadata = json.loads(raw)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"metadata is not valid JSON: {e}")
    if not isinstance(metadata, dict):
        raise argparse.ArgumentTypeError("metadata must be a JSON object")
    return metadata


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_record(agent: ContentRecordAgent, kind: LogKind, content: str, metadata: Dict[str, Any]) -> int:
    info = ContentInfo(content=content, metadata=metadata)
    result = await agent.context.engine.append(kind, info)
    print(f"[content-record] ✓ Recorded {kind.value} entry → {result.ref.page_path}#{result.ref.position}")
    return 0


async def cmd_ensure(agent: ContentRecordAgent) -> int:
    warmed = await agent.context.precreator.ensure_hierarchy()
    for kind in warmed:
        print(f"[content-record] ✓ {kind.value} hierarchy ready")
    missing = set(agent.context.paths.kinds) - set(warmed)
    return 1 if missing else 0


async def cmd_register(agent: ContentRecordAgent) -> int:
    context = agent.context
    if await context.registry.register(context.domain):
        print(f"[content-record] ✓ Registered {context.domain}")
    else:
        print(f"[content-record] {context.domain} already registered")
    return 0


async def cmd_show_index(agent: ContentRecordAgent, kind: LogKind) -> int:
    index = await agent.context.engine.read_index(kind)
    _print_json(index.to_document())
    return 0


async def cmd_show_page(agent: ContentRecordAgent, kind: LogKind, page_number: int) -> int:
    page = await agent.context.engine.read_page(kind, page_number)
    _print_json(page.to_document())
    return 0


async def cmd_verify(agent: ContentRecordAgent, kind: LogKind, strict: bool) -> int:
    try:
        report = await agent.context.engine.verify(kind, strict=strict)
    except InconsistencyError as e:
        print(f"[content-record] ✗ {e}", file=sys.stderr)
        return 1
    _print_json(report.model_dump())
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Content record CLI")
    parser.add_argument(
        "--domain",
        required=True,
        help="Skapp domain or referrer URL owning the logs (e.g. skapp.hns)",
    )
    parser.add_argument(
        "--write-mode",
        default=None,
        choices=settings.WRITE_MODES,
        help="Override CONTENT_RECORD_WRITE_MODE",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    kinds = [kind.value for kind in LogKind]

    # record
    p_record = subparsers.add_parser("record", help="Append an entry to a log")
    p_record.add_argument("kind", choices=kinds)
    p_record.add_argument("content", help="Content identifier (skylink)")
    p_record.add_argument(
        "--metadata",
        type=_parse_metadata,
        default={},
        help="JSON object stored alongside the content",
    )

    # ensure
    subparsers.add_parser("ensure", help="Warm index and current page of every log")

    # register
    subparsers.add_parser("register", help="Register the domain in the name dictionary")

    # show-index
    p_index = subparsers.add_parser("show-index", help="Print the index of a log")
    p_index.add_argument("kind", choices=kinds)

    # show-page
    p_page = subparsers.add_parser("show-page", help="Print one page of a log")
    p_page.add_argument("kind", choices=kinds)
    p_page.add_argument("page_number", type=int)

    # verify
    p_verify = subparsers.add_parser("verify", help="Check index/page consistency")
    p_verify.add_argument("kind", choices=kinds)
    p_verify.add_argument("--strict", action="store_true", help="Exit 1 on mismatch")

    return parser


def build_agent(write_mode: str | None = None) -> ContentRecordAgent:
    return ContentRecordAgent.from_settings(settings, write_mode=write_mode)


async def run(args: argparse.Namespace, agent: ContentRecordAgent) -> int:
    try:
        await agent.init(args.domain)
        command: str = args.command
        if command == "record":
            return await cmd_record(agent, LogKind(args.kind), args.content, args.metadata)
        if command == "ensure":
            return await cmd_ensure(agent)
        if command == "register":
            return await cmd_register(agent)
        if command == "show-index":
            return await cmd_show_index(agent, LogKind(args.kind))
        if command == "show-page":
            return await cmd_show_page(agent, LogKind(args.kind), args.page_number)
        if command == "verify":
            return await cmd_verify(agent, LogKind(args.kind), args.strict)
        raise ValueError(f"Unknown command: {command}")
    except (ValueError, ContentRecordError) as e:
        print(f"[content-record] ✗ {e}", file=sys.stderr)
        return 1
    finally:
        await agent.close()


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    agent = build_agent(args.write_mode)
    sys.exit(asyncio.run(run(args, agent)))


if __name__ == "__main__":
    main()
