#!/usr/bin/env python3
"""Command line launcher for the OpenAI API Proxy"""
import argparse
import os

import uvicorn

from app.core.config import load_config
from app.core.logging import setup_logging, get_logger


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load-balancing OpenAI API Proxy")
    parser.add_argument(
        "--config",
        default=os.environ.get("CONFIG_PATH", "config.yaml"),
        help="YAML configuration file (default: $CONFIG_PATH or config.yaml)",
    )
    parser.add_argument("--host", help="Bind address, overrides server.host")
    parser.add_argument("--port", type=int, help="Bind port, overrides server.port")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(log_level=args.log_level)
    logger = get_logger()

    # The app module loads its configuration through get_config(), which reads CONFIG_PATH
    os.environ["CONFIG_PATH"] = args.config
    server = load_config(args.config).server

    host = args.host or server.host
    port = args.port or server.port
    logger.info(f"Config: {args.config}, listening on {host}:{port}")

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        log_config=None,  # loguru owns output through InterceptHandler
        access_log=True,
    )


if __name__ == "__main__":
    main()
