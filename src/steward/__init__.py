"""Steward operations agent.

Serve with Gunicorn: gunicorn steward:app --worker-class uvicorn.workers.UvicornWorker
"""

import argparse
import logging

import uvicorn

from steward.app import create_app
from steward.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


configure_logging(Settings().log_level)
app = create_app()


def main(argv: list[str] | None = None) -> None:
    """Development server; host and port default to the STEWARD_ settings."""
    settings = Settings()
    parser = argparse.ArgumentParser(description="Run the Steward API with uvicorn")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args(argv)

    uvicorn.run(
        "steward:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
