#!/usr/bin/env python3
"""
RoutePilot Runner

Start the RoutePilot gateway server.

Usage:
    python run.py
    python run.py --port 8080
    python run.py --simulate --autostart
    python run.py --debug
"""

import argparse
import os

import uvicorn
from loguru import logger


def main():
    parser = argparse.ArgumentParser(description="RoutePilot Gateway")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use scripted routes and an in-memory tunnel instead of the host",
    )
    parser.add_argument(
        "--autostart",
        action="store_true",
        help="Start route analysis on startup",
    )

    args = parser.parse_args()

    # The app factory reads its settings from the environment
    if args.simulate:
        os.environ["ROUTEPILOT_PROBE_MODE"] = "static"
        os.environ["ROUTEPILOT_TUNNEL_MODE"] = "memory"
    if args.autostart:
        os.environ["ROUTEPILOT_AUTOSTART_ANALYSIS"] = "true"
    if args.debug:
        os.environ["ROUTEPILOT_DEBUG"] = "true"

    logger.info(f"Starting RoutePilot Gateway on {args.host}:{args.port}")

    uvicorn.run(
        "gateway.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload or args.debug,
        log_level="debug" if args.debug else "info",
    )


if __name__ == "__main__":
    main()
