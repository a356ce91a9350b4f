"""
Agora entry point.

``agora --mode api`` serves the HTTP API.  ``agora --mode cli --api-key KEY`` serves it in a
background thread and opens an interactive client bound to one community.
"""

import argparse
import logging
import sys
import threading

from agora.api.app import run_api
from agora.config import settings

logger = logging.getLogger(__name__)


def _init_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # One INFO line per outbound request drowns the agent trace
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agora", description="Run the Agora community agent service"
    )
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Serve the REST API, or serve it and chat with it from this terminal (default: api)",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s)")
    parser.add_argument(
        "--port", type=int, default=settings.API_PORT, help="Bind port (default: %(default)s)"
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument("--api-key", help="Community webhook API key for the CLI client")
    return parser


def _start_api_thread(host: str, port: int) -> threading.Thread:
    thread = threading.Thread(
        target=run_api,
        kwargs={"host": host, "port": port, "reload": False, "log_level": "warning"},
        name="agora-api",
        daemon=True,
    )
    thread.start()
    return thread


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, configure logging and launch the selected mode."""
    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    if args.mode == "cli" and not args.api_key:
        parser.error("--api-key is required in cli mode")

    settings.LOG_LEVEL = args.log_level
    _init_logging(settings.LOG_LEVEL)
    logger.info("Starting Agora [%s mode]", args.mode)
    logger.debug("Settings: %s", settings.model_dump(exclude={"SUPABASE_SERVICE_ROLE_KEY"}))

    if args.mode == "api":
        run_api(host=args.host, port=args.port, reload=settings.DEBUG)
        return

    _start_api_thread(args.host, args.port)

    # Lazy import, the API-only mode never needs the client
    from agora.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    run_cli(args.api_key, base_url=f"http://localhost:{args.port}")


if __name__ == "__main__":
    main()
