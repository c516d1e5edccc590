#!/usr/bin/env python3
"""
Treasury Withdrawal Service - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Starts the HTTP API over the treasury withdrawal engine.

- Loads configuration from CLI, environment and .env
- Refuses to start without TREASURY_PRIVATE_KEY (exit 1)
- Runs the FastAPI application under uvicorn

============================================================
USAGE
============================================================
Direct execution:
    python app.py --port 8080

With PM2:
    pm2 start app.py --interpreter python --name treasury -- --log-format json

In-memory accounting (lost on restart):
    python app.py --ephemeral

============================================================
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import uvicorn

from api.main import create_app
from withdrawal_engine.config import WithdrawalEngineConfig
from withdrawal_engine.service import WithdrawalService
from withdrawal_engine.types import ConfigurationError


logger = logging.getLogger("treasury")


# ============================================================
# LOGGING
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logger


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="treasury-withdrawal",
        description="Treasury withdrawal service (12 withdrawal strategies over HTTP)",
    )
    parser.add_argument("--host", type=str, default=None, help="Bind address (default: HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: PORT or 8080)")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default=None,
        help="Log format (default: LOG_FORMAT or text)",
    )
    parser.add_argument(
        "--ephemeral",
        action="store_true",
        help="Keep accounting in memory instead of the database",
    )
    return parser


def build_config(args: argparse.Namespace) -> WithdrawalEngineConfig:
    """Environment configuration with CLI overrides applied."""
    config = WithdrawalEngineConfig.from_env()
    if args.host is not None:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.log_level is not None:
        config.server.log_level = args.log_level
    if args.log_format is not None:
        config.server.log_format = args.log_format
    if args.ephemeral:
        config.storage.ephemeral = True
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code
    """
    args = create_parser().parse_args(argv)
    config = build_config(args)
    setup_logging(config.server.log_level, config.server.log_format)

    try:
        service = WithdrawalService.from_config(config)
    except ConfigurationError as e:
        logger.critical(f"FATAL: {e.message}")
        return 1

    logger.info("=" * 60)
    logger.info(f"Treasury withdrawal service on {config.server.host}:{config.server.port}")
    logger.info(f"Endpoints: {', '.join(service.strategy_ids)}")
    logger.info("=" * 60)

    uvicorn.run(
        create_app(service),
        host=config.server.host,
        port=config.server.port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
