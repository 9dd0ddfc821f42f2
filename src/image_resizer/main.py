"""Main module for the image resizer CLI."""

import sys
import argparse

import uvicorn

from . import __version__
from .app import create_app
from .core import ResizerConfig, configure_logging


def build_parser() -> argparse.ArgumentParser:
    """Build the `image-resizer` argument parser with its subcommands."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="image-resizer",
        description="Image Resizer - resize/crop images over HTTP with a disk cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve images from ./public, fetching nothing remotely
  image-resizer serve --image-dir ./public --no-proxy

  # Proxy mode with a one-hour cache in /var/cache/resizer
  image-resizer serve --cache-folder /var/cache/resizer --ttl-ms 3600000

  # Show version
  image-resizer version
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    serve_parser: argparse.ArgumentParser = subparsers.add_parser(
        "serve", help="Run the resizer HTTP server"
    )
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")
    serve_parser.add_argument(
        "--cache-folder", default=None, help="Cache directory (default: temp dir)"
    )
    serve_parser.add_argument(
        "--ttl-ms", type=int, default=None, help="Cache entry lifetime in milliseconds"
    )
    serve_parser.add_argument(
        "--image-dir", default=None, help="Root for local images (default: cwd)"
    )
    serve_parser.add_argument(
        "--no-proxy",
        action="store_true",
        help="Read images from --image-dir instead of fetching them over HTTP",
    )
    serve_parser.add_argument(
        "--engine", default=None, help="Image engine backend (default: pillow)"
    )
    serve_parser.add_argument(
        "--fetch-timeout",
        type=float,
        default=None,
        help="Timeout in seconds for remote fetches (default: none)",
    )
    serve_parser.add_argument("--route", default=None, help="Route path (default: /)")
    serve_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers.add_parser("version", help="Show version information")

    return parser


def config_from_args(args: argparse.Namespace) -> ResizerConfig:
    """Merge CLI flags over the environment-derived configuration."""
    return ResizerConfig.from_env(
        cache_folder=args.cache_folder,
        ttl_ms=args.ttl_ms,
        image_dir=args.image_dir,
        allow_proxy=False if args.no_proxy else None,
        engine=args.engine,
        fetch_timeout=args.fetch_timeout,
        route=args.route,
        debug=True if args.debug else None,
    )


def main() -> None:
    """
    Entry point for the `image-resizer` command.

    `serve` builds the configuration once and runs the app under uvicorn;
    `version` prints version information.
    """
    parser = build_parser()
    args: argparse.Namespace = parser.parse_args()

    if args.command == "serve":
        config = config_from_args(args)
        logger = configure_logging(config)
        logger.info(
            f"Starting image resizer on {args.host}:{args.port} "
            f"(proxy={config.allow_proxy}, cache={config.cache_folder})"
        )
        uvicorn.run(
            create_app(config),
            host=args.host,
            port=args.port,
            log_level="debug" if config.debug else "info",
        )

    elif args.command == "version":
        print("Image Resizer CLI")
        print(f"Version {__version__}")
        print("Resize/crop images over HTTP with a fingerprint-addressed disk cache")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
