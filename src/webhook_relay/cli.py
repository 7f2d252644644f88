"""Command line entry point.

    webhook-relay serve [--host HOST] [--port PORT] [--env-file PATH]
    webhook-relay trigger-workflow OWNER REPO WORKFLOW [--ref REF] [--input KEY=VALUE ...]
"""

import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional

import uvicorn
from prometheus_client import start_http_server

from .core.logging_config import setup_logging
from .core.settings import ENV_FILE, RelaySettings
from .integrations.github import GitHubActionsClient, GitHubDispatchError
from .main import create_app

logger = logging.getLogger(__name__)


def _parse_inputs(pairs: List[str]) -> Dict[str, str]:
    inputs = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {pair!r}")
        inputs[key] = value
    return inputs


def serve(settings: RelaySettings, host: Optional[str], port: Optional[int]) -> int:
    """Run the relay until SIGINT/SIGTERM."""
    app = create_app(settings)

    if settings.metrics_port and settings.metrics_port != (port or settings.port):
        start_http_server(settings.metrics_port, registry=app.state.observability.registry)
        logger.info(f"Metrics available on :{settings.metrics_port}/metrics")

    host = host or settings.host
    port = port or settings.port
    logger.info(f"Server starting, view documentation at http://localhost:{port}/docs")

    config = uvicorn.Config(app, host=host, port=port, log_config=None)
    server = uvicorn.Server(config)
    server.run()

    # uvicorn sets started only if lifespan startup (bus connect) succeeded
    if not server.started:
        logger.error("Startup failed, exiting")
        return 1
    logger.info("Server exited gracefully")
    return 0


def trigger_workflow(settings: RelaySettings, args: argparse.Namespace) -> int:
    if not settings.github_pat:
        logger.error("GITHUB_PAT is not set")
        return 1

    client = GitHubActionsClient(token=settings.github_pat)
    try:
        asyncio.run(
            client.trigger_workflow(
                args.owner, args.repo, args.workflow, args.ref, _parse_inputs(args.input)
            )
        )
    except (GitHubDispatchError, argparse.ArgumentTypeError) as e:
        logger.error(f"Error triggering workflow: {e}")
        return 1

    print("Workflow triggered successfully!")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="webhook-relay", description="Webhook ingestion and relay service")
    parser.add_argument("--env-file", default=str(ENV_FILE), help="dotenv file to load (default: .env)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Start the services.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    trigger = subparsers.add_parser("trigger-workflow", help="Trigger a GitHub Actions workflow")
    trigger.add_argument("owner")
    trigger.add_argument("repo")
    trigger.add_argument("workflow", help="Workflow file name or ID")
    trigger.add_argument("--ref", default="main")
    trigger.add_argument("--input", action="append", default=[], metavar="KEY=VALUE")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = RelaySettings.from_env(env_file=args.env_file)
        setup_logging(settings.log_level, settings.log_output_paths)
    except ValueError as e:
        print(f"Failed to initialize observability: {e}", file=sys.stderr)
        return 1

    if args.command == "serve":
        return serve(settings, args.host, args.port)
    return trigger_workflow(settings, args)


if __name__ == "__main__":
    sys.exit(main())
