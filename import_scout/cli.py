"""
Import Scout CLI.

Runs a full research session from the command line or prints the stored
data of an earlier session.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from core.errors import ResearchError

from .config import Settings
from .pipeline import ResearchPipeline
from .telemetry import configure_logging

logger = structlog.get_logger(__name__)


class ImportScoutCLI:
    def __init__(self, settings: Optional[Settings] = None, pipeline: Optional[ResearchPipeline] = None):
        self.settings = settings
        self._pipeline = pipeline

    def pipeline(self, *, memory: bool = False) -> ResearchPipeline:
        if self._pipeline is None:
            settings = (self.settings or Settings.from_env()).validate()
            self._pipeline = ResearchPipeline.from_settings(settings, memory=memory)
        return self._pipeline

    @staticmethod
    def _emit(payload: Dict[str, Any], output: Optional[str]) -> None:
        text = json.dumps(payload, indent=2, ensure_ascii=False)
        if output:
            Path(output).write_text(text, encoding="utf-8")
            print(f"Results saved to: {output}")
        else:
            print(text)

    async def run_research(self, args: argparse.Namespace) -> int:
        pipeline = self.pipeline(memory=args.memory)
        try:
            dossier = await pipeline.research(
                args.query,
                args.country,
                use_regional_language=args.regional_language,
            )
        finally:
            await pipeline.close()

        opportunity = dossier["opportunity"]
        print(f"Session: {dossier['session_id']}", file=sys.stderr)
        print(f"Opportunity score: {opportunity['opportunity_score']}", file=sys.stderr)
        self._emit(dossier, args.output)
        return 0

    async def show_session(self, args: argparse.Namespace) -> int:
        pipeline = self.pipeline()
        try:
            data = await pipeline.get_session_data(args.session_id)
        finally:
            await pipeline.close()
        self._emit({"session_id": args.session_id, "data": data}, args.output)
        return 0

    async def run_async_command(self, args: argparse.Namespace) -> int:
        try:
            if args.command == "research":
                return await self.run_research(args)
            if args.command == "show":
                return await self.show_session(args)
        except ResearchError as exc:
            logger.error("cli.failed", command=args.command, code=exc.code, message=exc.message)
            print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
            return 1
        print(f"Unknown command: {args.command}")
        return 1


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="import-scout",
        description="Import opportunity research",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  import-scout research "wireless earbuds" --country CL
  import-scout research "yoga mats" --memory --output dossier.json
  import-scout show 3f1c2a9e-...
  import-scout serve --port 8080
        """,
    )
    parser.add_argument("--log-level", default=None, help="Log level (default IMPORT_SCOUT_LOG_LEVEL or INFO)")
    parser.add_argument("--json-logs", action="store_true", help="Render logs as JSON")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    research_parser = subparsers.add_parser("research", help="Run every research stage for a product query")
    research_parser.add_argument("query", help="Free-text product query")
    research_parser.add_argument("--country", default=None, help="ISO 3166-1 alpha-2 target country (default US)")
    research_parser.add_argument(
        "--regional-language",
        action="store_true",
        help="Translate the trend keyword into the country's language",
    )
    research_parser.add_argument("--memory", action="store_true", help="Keep session data in memory only")
    research_parser.add_argument("--output", default=None, help="Write the dossier to this JSON file")

    show_parser = subparsers.add_parser("show", help="Print the stored data of a session")
    show_parser.add_argument("session_id", help="Session id returned by a research run")
    show_parser.add_argument("--output", default=None, help="Write the session data to this JSON file")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=int(os.getenv("PORT", 8080)))

    return parser


async def _main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(args.log_level, json_output=args.json_logs)
    return await ImportScoutCLI().run_async_command(args)


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    configure_logging(args.log_level, json_output=args.json_logs)
    uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    if args.command == "serve":
        return serve(args)
    return asyncio.run(_main(argv))


if __name__ == "__main__":
    sys.exit(main())
