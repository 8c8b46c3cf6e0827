"""Command-line interface for the Storefront Server."""

import argparse
import asyncio
from typing import Optional, Sequence


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storefront-server",
        description="Storefront Server - Browse the catalog, manage the cart and place orders",
    )
    parser.add_argument(
        "--mode",
        choices=["stdio", "http"],
        default="stdio",
        help="stdio serves MCP clients, http serves the REST API",
    )

    http = parser.add_argument_group("http mode")
    http.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    http.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    http.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.mode == "http":
        from .http_server import run_http_server

        print(f"Starting Storefront HTTP Server on {args.host}:{args.port}")
        if args.reload:
            print("Hot reload enabled")
        print(f"API documentation available at http://{args.host}:{args.port}/docs")
        run_http_server(host=args.host, port=args.port, reload=args.reload)
        return

    from .server import main as server_main

    asyncio.run(server_main())


if __name__ == "__main__":
    main()
