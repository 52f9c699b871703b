#!/usr/bin/env python
"""
AuthorStack Sales API launcher.

Usage:
    python run_server.py --dev        uvicorn with auto-reload
    python run_server.py              uvicorn, WORKERS processes
    python run_server.py --gunicorn   gunicorn with gunicorn.conf.py
    python run_server.py --init-db    create tables in both stores and exit

Settings are validated before any server starts, so a missing DATABASE_URL,
DOCUMENT_STORE_URL or REDIS_URL is reported once instead of per worker.
"""

import argparse
import asyncio
import os
import subprocess
import sys

from pydantic import ValidationError

APP = "authorstack.main:app"


def load_settings():
    from authorstack.config import get_settings

    try:
        return get_settings()
    except ValidationError as e:
        missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        sys.exit(f"Invalid configuration: {missing}")


async def init_db(settings) -> None:
    """Connect to both stores and create any missing tables."""
    from authorstack.container import ServiceContainer

    container = ServiceContainer.build(settings)
    try:
        await container.startup(create_tables=True)
    finally:
        await container.shutdown()


def run_uvicorn(settings, port: int, dev: bool) -> None:
    import uvicorn

    options = {"host": settings.api_host, "port": port, "proxy_headers": True, "server_header": False}
    if dev:
        options.update(reload=True, reload_dirs=["authorstack"], log_level="debug")
    else:
        options.update(workers=int(os.getenv("WORKERS", 4)), log_level=settings.monitoring.log_level.lower())

    uvicorn.run(APP, **options)


def run_gunicorn(port: int) -> None:
    env = dict(os.environ, API_PORT=str(port))
    subprocess.run(["gunicorn", APP, "-c", "gunicorn.conf.py"], check=True, env=env)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="AuthorStack Sales API server")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--dev", action="store_true", help="Auto-reload development server")
    mode.add_argument("--gunicorn", action="store_true", help="Run under gunicorn")
    mode.add_argument("--init-db", action="store_true", help="Create tables and exit")
    parser.add_argument("--port", type=int, default=None, help="Port (default: API_PORT or 8000)")
    args = parser.parse_args()

    settings = load_settings()
    port = args.port or settings.api_port

    if args.init_db:
        asyncio.run(init_db(settings))
    elif args.gunicorn:
        run_gunicorn(port)
    else:
        run_uvicorn(settings, port, dev=args.dev)
