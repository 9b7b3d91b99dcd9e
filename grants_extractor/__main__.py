"""
CLI entry point for grants-extractor.

Usage:
    python -m grants_extractor feed
    python -m grants_extractor search "climate resilience" --limit 20
    python -m grants_extractor ai-search "rural broadband" --focus-areas technology,community
    python -m grants_extractor details https://simpler.grants.gov/opportunity/123
    python -m grants_extractor parse listing page.html
    python -m grants_extractor checklist requirements.json --body draft.md
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

import structlog

# Log level mapping
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

PARSE_KINDS = ("feed", "listing", "labeled", "detail")


def setup_logging(level: str = "INFO", json_output: bool = False):
    """Configure structured logging (to stderr, keeping stdout for JSON output)."""
    log_level = LOG_LEVELS.get(level.upper(), logging.INFO)

    if json_output:
        processors = [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="grants_extractor",
        description="Grant discovery extraction and requirement matching",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest the grants RSS feed
  python -m grants_extractor feed

  # Search the listing site (3 pages, 20 results)
  python -m grants_extractor search "artificial intelligence" --limit 20 --pages 3

  # Force the canned dataset
  python -m grants_extractor --mode fallback search education

  # Parse a saved page without any network access
  python -m grants_extractor parse listing saved_results.html

  # Score a checklist against a draft
  python -m grants_extractor checklist requirements.json --title "Project" --body draft.md
        """,
    )

    parser.add_argument("--config", type=str, help="Path to settings YAML file")
    parser.add_argument(
        "--mode",
        choices=["live", "fallback", "auto"],
        help="Override extraction mode from settings",
    )
    parser.add_argument("--output", type=str, help="Write JSON output to this file instead of stdout")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Output logs as JSON (for production)")
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    commands = parser.add_subparsers(dest="command")

    commands.add_parser("feed", help="Ingest the grants RSS feed")

    search = commands.add_parser("search", help="Search the listing site")
    search.add_argument("query", help="Search text")
    search.add_argument("--limit", type=int, help="Maximum results")
    search.add_argument("--pages", type=int, help="Maximum pages")

    ai_search = commands.add_parser("ai-search", help="AI grant search")
    ai_search.add_argument("query", help="Search text")
    ai_search.add_argument("--focus-areas", type=str, help="Comma-separated focus areas")
    ai_search.add_argument("--organization-type", type=str, help="Applicant organization type")
    ai_search.add_argument(
        "--promote",
        action="store_true",
        help="Emit full grant records instead of the labeled search results",
    )

    details = commands.add_parser("details", help="Scrape one grant detail page")
    details.add_argument("url", help="Grant page URL")
    details.add_argument("--opportunity-number", type=str, help="Known opportunity number")

    parse = commands.add_parser("parse", help="Run a parser over a local file")
    parse.add_argument("kind", choices=PARSE_KINDS, help="Parser to run")
    parse.add_argument("path", help="File to parse ('-' for stdin)")
    parse.add_argument("--limit", type=int, default=50, help="Result cap for listing pages")
    parse.add_argument("--source-url", type=str, default="", help="Source URL for detail pages")

    checklist = commands.add_parser("checklist", help="Score a requirement checklist")
    checklist.add_argument("requirements", help="JSON file with a list of requirements")
    checklist.add_argument("--title", type=str, help="Narrative title")
    checklist.add_argument("--summary", type=str, help="Narrative summary")
    checklist.add_argument("--body", type=str, help="File holding the narrative body")

    return parser


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def run_parse(args) -> object:
    """Run one of the pure parsers over a local file."""
    from .parsers import DetailPageParser, FeedParser, HtmlListingParser, LabeledTextParser

    content = _read(args.path)

    if args.kind == "feed":
        result = FeedParser().parse(content)
    elif args.kind == "listing":
        result = HtmlListingParser().parse(content, limit=args.limit)
    elif args.kind == "labeled":
        result = LabeledTextParser().parse(content)
    else:
        return DetailPageParser().parse(content, source_url=args.source_url).to_dict()

    return {
        "grants": [record.to_dict() for record in result],
        "strategy": result.strategy,
        "total": len(result),
        "skipped": result.skipped,
    }


def run_checklist(args, settings) -> dict:
    """Rescore a checklist file against the narrative."""
    from .core.models import ChecklistRequirement
    from .orchestrator import GrantExtractor

    data = json.loads(_read(args.requirements))
    if not isinstance(data, list):
        raise ValueError("Requirements file must hold a JSON list")

    requirements = [ChecklistRequirement.from_dict(item) for item in data]
    body = _read(args.body) if args.body else None

    extractor = GrantExtractor(settings=settings)
    return extractor.rescore_checklist(requirements, args.title, args.summary, body).to_dict()


async def main_async(args, settings):
    """Async main function for network workflows."""
    from .orchestrator import GrantExtractor

    logger = structlog.get_logger(__name__)
    logger.info("starting_grants_extractor", command=args.command, mode=settings.extraction_mode)

    async with GrantExtractor(settings=settings) as extractor:
        if args.command == "feed":
            return (await extractor.ingest_feed()).to_dict()

        if args.command == "search":
            return (await extractor.search_listing(args.query, args.limit, args.pages)).to_dict()

        if args.command == "ai-search":
            focus_areas = [a.strip() for a in args.focus_areas.split(",")] if args.focus_areas else None
            outcome = await extractor.ai_search(args.query, focus_areas, args.organization_type)
            if args.promote and outcome.source == "ai_search":
                outcome.records = extractor.promote(outcome.records)
            return outcome.to_dict()

        if args.command == "details":
            details = await extractor.scrape_details(args.url, args.opportunity_number)
            return {"success": True, "grantDetails": details.to_dict()}

    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__
        print(f"grants-extractor {__version__}")
        sys.exit(0)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    setup_logging(args.log_level, args.json_logs)
    logger = structlog.get_logger(__name__)

    from .config.loader import load_settings

    try:
        settings = load_settings(args.config)
        if args.mode:
            settings = replace(settings, extraction_mode=args.mode)

        if args.command == "parse":
            output = run_parse(args)
        elif args.command == "checklist":
            output = run_checklist(args, settings)
        else:
            output = asyncio.run(main_async(args, settings))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        logger.exception("fatal_error", error=str(e))
        sys.exit(1)

    if args.output:
        from .orchestrator import save_json
        save_json(output, args.output)
    else:
        print(json.dumps(output, ensure_ascii=False, indent=2))

    sys.exit(0)


if __name__ == "__main__":
    main()
