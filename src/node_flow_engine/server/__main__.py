"""
Node Flow Engine HTTP Service

Starts the FastAPI server for the flow engine API.

Usage:
    python -m node_flow_engine.server                   # Host/port from config (default 127.0.0.1:9847)
    python -m node_flow_engine.server --port 8080       # Custom port
    python -m node_flow_engine.server --flows-dir ./flows
"""

import argparse
import sys
from pathlib import Path

import uvicorn

from ..config import load_config, validate_config_dict
from .app import create_app


def main():
    parser = argparse.ArgumentParser(
        description="Node Flow Engine HTTP Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default: config.local.yaml)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: server.host from config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: server.port from config)",
    )
    parser.add_argument(
        "--flows-dir",
        type=Path,
        default=None,
        help="Directory of <id>.json flow files (default: flows_dir from config)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development (uses the config file only)",
    )

    args = parser.parse_args()

    config = load_config(args.config)
    errors = validate_config_dict(config)
    if errors:
        for error in errors:
            print(f"Config error: {error}", file=sys.stderr)
        sys.exit(1)
    if args.flows_dir is not None:
        config["flows_dir"] = str(args.flows_dir)

    host = args.host or config["server"]["host"]
    port = args.port or config["server"]["port"]

    print(f"Starting Node Flow Engine on http://{host}:{port}")
    print(f"API docs: http://{host}:{port}/docs")
    print(f"Flows: {config['flows_dir']}")
    print()

    if args.reload:
        uvicorn.run(
            "node_flow_engine.server.app:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level="info",
        )
    else:
        uvicorn.run(create_app(config), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
