"""
Gunicorn configuration for the AuthorStack Sales API.

    gunicorn authorstack.main:app -c gunicorn.conf.py

Each Uvicorn worker runs the application lifespan, so every worker opens its
own store connections and fails to boot if a required store is unreachable.
The API and AI rate limits live in Redis and are shared by all workers.
"""

import multiprocessing
import os

bind = f"{os.getenv('API_HOST', '0.0.0.0')}:{os.getenv('API_PORT', '8000')}"

# asyncpg connections are per worker; keep the default modest
workers = int(os.getenv("WEB_CONCURRENCY", min(multiprocessing.cpu_count() * 2, 8)))
worker_class = "uvicorn.workers.UvicornWorker"

# AI calls can take most of the provider timeout
timeout = int(os.getenv("WORKER_TIMEOUT", 90))
graceful_timeout = 30
keepalive = 5
max_requests = 5000
max_requests_jitter = 500

proc_name = "authorstack-sales-api"

# Application events are structured by structlog; RequestLoggingMiddleware
# already records every request
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = None


def when_ready(server):
    server.log.info("AuthorStack Sales API listening on %s with %s workers", bind, workers)


def worker_abort(worker):
    worker.log.warning("Worker %s aborted after exceeding %ss", worker.pid, timeout)
