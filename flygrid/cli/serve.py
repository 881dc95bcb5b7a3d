# Copyright 2026 Firefly Software Solutions Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""FlyGrid Server CLI.

Command-line interface for starting the FlyGrid node pool service.

Usage:
    flygrid-serve [--host HOST] [--port PORT] [--reload]

    Or with Python:
    python -m flygrid.cli.serve

Pool configuration is read from the environment when the app starts:
    FLYGRID_NODE_LIST=http://10.0.0.5:5555/wd/hub,http://10.0.0.6:5555/wd/hub
    FLYGRID_REDIS_URL=redis://localhost:6379/0
    FLYGRID_REFRESH_INTERVAL=30
"""

from __future__ import annotations

import argparse
import os
import sys

from flygrid.utils.logger import level_from_name, setup_logger


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="flygrid-serve",
        description="Start the FlyGrid node pool service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  flygrid-serve                       # Start on the default port
  flygrid-serve --port 8080           # Custom port
  flygrid-serve --refresh-interval 30 # Reconcile with the provider every 30s
        """,
    )
    parser.add_argument(
        "--host",
        default=os.environ.get("FLYGRID_HOST", "0.0.0.0"),
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("FLYGRID_PORT", "5000")),
        help="Port to bind to (default: 5000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("FLYGRID_LOG_LEVEL", "info").lower(),
        choices=["debug", "info", "warning", "error", "critical"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--config-file",
        default=os.environ.get("FLYGRID_CONFIG_FILE", ""),
        help="JSON node pool configuration file",
    )
    parser.add_argument(
        "--refresh-interval",
        type=float,
        default=None,
        help="Seconds between background refresh passes (0 disables)",
    )
    return parser


def main() -> None:
    """Main entry point for the serve command."""
    args = create_parser().parse_args()

    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is not installed. Install it with:")
        print("  pip install uvicorn[standard]")
        sys.exit(1)

    setup_logger(level=level_from_name(args.log_level))

    # The app reads its pool configuration from the environment at startup.
    os.environ["FLYGRID_LOG_LEVEL"] = args.log_level
    if args.config_file:
        os.environ["FLYGRID_CONFIG_FILE"] = args.config_file
    if args.refresh_interval is not None:
        os.environ["FLYGRID_REFRESH_INTERVAL"] = str(args.refresh_interval)

    print()
    print("  FlyGrid node pool")
    print()
    print(f"  Host:      {args.host}")
    print(f"  Port:      {args.port}")
    print(f"  Reload:    {args.reload}")
    print(f"  Log Level: {args.log_level}")
    print()
    print(f"  API Docs:  http://{args.host}:{args.port}/docs")
    print(f"  Health:    http://{args.host}:{args.port}/health")
    print()

    uvicorn.run(
        "flygrid.service.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
