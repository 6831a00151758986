"""CLI entry-point for running the ProcureFlow API server."""
from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv
import uvicorn

from packages.ims_client import ImsClient, ImsClientError

from .app import create_app
from .config import load_config

LOGGER = logging.getLogger("procureflow.web")
ROOT = Path(__file__).resolve().parents[2]


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    host_default = os.getenv("PROCUREFLOW_WEB_HOST", "0.0.0.0")
    port_default = int(os.getenv("PORT") or os.getenv("PROCUREFLOW_WEB_PORT", "4000"))
    parser = argparse.ArgumentParser(description="Run the ProcureFlow API server")
    parser.add_argument(
        "--host",
        default=host_default,
        help="Host interface to bind (default: %(default)s)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=port_default,
        help="Port to listen on (default: %(default)s)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Run the ASGI server hosting the web application."""

    load_dotenv(ROOT / ".env")
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    args = _parse_args(argv)

    client = _init_ims_client()
    app = create_app(client_provider=lambda: client, config=config, logger=LOGGER)
    LOGGER.info("Starting ProcureFlow API on http://%s:%s", args.host, args.port)

    uvicorn.run(app, host=args.host, port=args.port, log_level=config.log_level.lower())


def _init_ims_client() -> ImsClient | None:
    try:
        client = ImsClient()
    except ImsClientError as exc:
        LOGGER.error("Failed to configure the IMS client: %s", exc)
        return None
    LOGGER.info("Forwarding IMS requests to %s", client.base_url)
    return client


if __name__ == "__main__":
    main()
