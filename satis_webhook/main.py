"""Composition root for the Satis webhook receiver.

This module is the ONLY location that imports both core domain logic
and concrete adapter implementations. All wiring of dependencies
happens here, creating a clear entry point for the application.

Module Structure:
- Configuration loading via config module
- Adapter instantiation
- Core service initialization
- Entry point selection (serve or rebuild)
"""

import argparse
import asyncio
import logging
import sys

from satis_webhook.adapters.catalog.json_catalog import JsonRepositoryCatalog
from satis_webhook.adapters.cli.commands import CLICommandHandler
from satis_webhook.adapters.config.yaml_loader import YamlConfigLoader
from satis_webhook.adapters.process.subprocess_runner import SubprocessRunner
from satis_webhook.adapters.webhook.http_server import WebhookHTTPServer
from satis_webhook.adapters.webhook.receiver import WebhookReceiver
from satis_webhook.config import Settings, load_settings
from satis_webhook.core.rebuild_service import RebuildService


def configure_logging(log_level: str, log_format: str) -> None:
    """Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json, text).
    """
    # Map string level to logging constant
    level = getattr(logging, log_level, logging.INFO)

    if log_format == "json":
        format_str = '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}'
    else:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Logs go to stderr; stdout carries rebuild progress in CLI mode
    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="satis-webhook",
        description="Rebuild a Satis repository when a source-control webhook fires.",
    )
    parser.add_argument("--env-file", help="Path to a .env file with server settings")
    parser.add_argument("--config", help="Path to config.yml (overrides settings)")

    subparsers = parser.add_subparsers(dest="command")
    serve = subparsers.add_parser("serve", help="Run the webhook HTTP server (default)")
    serve.add_argument("--host", help="Host to listen on")
    serve.add_argument("--port", type=int, help="Port to listen on")

    rebuild = subparsers.add_parser("rebuild", help="Run a rebuild now")
    rebuild.add_argument(
        "--repository-url",
        help="Only rebuild this repository (default: all repositories)",
    )
    return parser


def create_rebuild_service(settings: Settings) -> RebuildService:
    """Wire adapters into the rebuild service."""
    return RebuildService(
        config_loader=YamlConfigLoader(),
        catalog=JsonRepositoryCatalog(),
        runner=SubprocessRunner(cwd=settings.working_dir),
        config_file=settings.config_file,
    )


async def serve(settings: Settings, rebuild_service: RebuildService) -> None:
    """Run the webhook HTTP server until cancelled."""
    logger = logging.getLogger(__name__)

    webhook_receiver = WebhookReceiver(rebuild_port=rebuild_service)
    http_server = WebhookHTTPServer(
        webhook_receiver=webhook_receiver,
        host=settings.webhook_host,
        port=settings.webhook_port,
        trust_proxy_headers=settings.trust_proxy_headers,
    )
    await http_server.start()
    logger.info(f"Using build configuration from {settings.config_file}")

    # Keep the server running
    try:
        while True:
            await asyncio.sleep(1)
    finally:
        await http_server.stop()


def main(argv: list[str] | None = None) -> None:
    """Application entry point.

    Exit codes:
        0: Successful shutdown or rebuild
        1: Fatal startup or runtime error
        130: Interrupted by user (SIGINT/KeyboardInterrupt)
        other: Exit code of the rebuild (255 when it could not start)
    """
    args = build_parser().parse_args(argv)

    settings = load_settings(args.env_file)
    overrides = {}
    if args.config:
        overrides["config_file"] = args.config
    if getattr(args, "host", None):
        overrides["webhook_host"] = args.host
    if getattr(args, "port", None):
        overrides["webhook_port"] = args.port
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings.log_level, settings.log_format)
    logger = logging.getLogger(__name__)

    rebuild_service = create_rebuild_service(settings)

    if args.command == "rebuild":
        exit_code = CLICommandHandler(rebuild_service).rebuild(args.repository_url)
        sys.exit(exit_code)

    try:
        asyncio.run(serve(settings, rebuild_service))
    except KeyboardInterrupt:
        logger.warning("Shutdown requested by user (SIGINT)")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
