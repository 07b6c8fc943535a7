"""Entry point for the example application.

Serves the restmap example app with uvicorn.  Configuration is read
from environment variables (see ``restmap.core.config``), for example
``RESTMAP_BASE_URL``, ``RESTMAP_SYNC_PATH`` and ``DATABASE_URL``.

Usage:
    python run.py
"""
import asyncio
import logging
import os

from uvicorn import Config, Server

from restmap_example import create_app


async def run_app() -> None:
    """Start the example app using Uvicorn.

    Host and port are read from environment variables `APP_HOST` and
    `APP_PORT`. Defaults are `127.0.0.1` and `8000`.
    """
    host = os.getenv("APP_HOST", "127.0.0.1")
    port = int(os.getenv("APP_PORT", "8000"))
    config = Config(app=create_app(), host=host, port=port, reload=False, log_level="info")
    server = Server(config)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(run_app())
    except (KeyboardInterrupt, SystemExit):
        logging.getLogger(__name__).info("Stopped")
