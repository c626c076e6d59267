from __future__ import annotations

import argparse
import logging
from typing import Optional

import uvicorn

from handshare.main import create_app
from handshare.services.config_store import ConfigStore

logger = logging.getLogger("handshare.server")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the hand pose relay server.")
    parser.add_argument("--config", default=None, help="YAML config path (default: $HANDSHARE_CONFIG).")
    parser.add_argument("--host", default=None, help="Bind address (overrides server.host).")
    parser.add_argument("--port", type=int, default=None, help="Bind port (overrides server.port).")
    parser.add_argument("--log-level", default="info", help="uvicorn log level.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    store = ConfigStore(args.config)
    host = args.host or store.config.server.host
    port = args.port if args.port is not None else store.config.server.port
    app = create_app(store.path)
    logger.info("[Server] relay listening on %s:%d (config %s)", host, port, store.path)
    uvicorn.run(app, host=host, port=port, log_level=str(args.log_level).lower())


if __name__ == "__main__":
    main()
