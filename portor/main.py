"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys

import orjson

from portor.config import config, Config
from portor.errors import RegistryError, ValidationError
from portor.logging_conf import setup_logging
from portor.parse.models import SearchCriteria

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Sole proprietorship registry scraper")
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Bypass cache reads (development)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help=f"Bind address (default: {config.HOST})")
    serve.add_argument("--port", type=int, default=None, help=f"Port (default: {config.PORT})")

    lookup = commands.add_parser("lookup", help="Fetch one detail record")
    lookup.add_argument("--id", default="", help="8-digit business id (MBO)")
    lookup.add_argument("--vat-id", default="", help="11-digit owner VAT id (OIB)")
    lookup.add_argument("--registry-id", default="", help="Registry's own record id")

    search = commands.add_parser("search", help="Search listings")
    search.add_argument("query", help="Business name, MBO or OIB")
    search.add_argument("--page", type=int, default=1, help="Result page (default: 1)")

    return parser.parse_args(argv)


async def run_command(args: argparse.Namespace) -> dict:
    """Run a lookup or search command and return the published payload."""
    # Imported here so `serve` does not build a second lookup
    from portor.api.main import build_lookup

    lookup = build_lookup()
    if args.no_cache:
        lookup.cache_enabled = False

    if args.command == "lookup":
        criteria = SearchCriteria.for_lookup(
            registry_id=args.registry_id,
            business_id=args.id,
            owner_vat_id=args.vat_id,
        )
        tenant = await lookup.get_tenant(criteria)
        return {"data": tenant.as_record()}

    result = await lookup.search(args.query, page=args.page)
    return result.model_dump(by_alias=True)


def serve(args: argparse.Namespace) -> None:
    import uvicorn

    from portor.api.main import create_app

    app = create_app()
    if args.no_cache:
        app.state.lookup.cache_enabled = False
    uvicorn.run(app, host=args.host or config.HOST, port=args.port or config.PORT)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging("DEBUG" if args.debug else None)

    try:
        Config.validate()
    except ValueError as e:
        logger.error(str(e))
        return 2

    if args.command == "serve":
        serve(args)
        return 0

    try:
        payload = asyncio.run(run_command(args))
    except ValidationError as e:
        logger.error(f"Invalid parameters: {e}")
        return 2
    except RegistryError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    print(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
    return 0


if __name__ == "__main__":
    sys.exit(main())
