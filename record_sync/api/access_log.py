"""
Combined-format access log for the dashboard.

One line per request, in the Apache "combined" layout, appended to
``<log_dir>/access.log``.
"""
import logging
import time
from pathlib import Path

from fastapi import FastAPI, Request

ACCESS_LOGGER_NAME = "record_sync.access"


def get_access_logger(path: str | Path) -> logging.Logger:
    """Logger writing bare lines to ``path``; the directory is created if missing."""
    path = Path(path)
    logger = logging.getLogger(f"{ACCESS_LOGGER_NAME}.{path.resolve()}")
    if not logger.handlers:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def combined_line(
    client: str,
    method: str,
    target: str,
    http_version: str,
    status: int,
    size: str,
    referer: str,
    user_agent: str,
    when: float | None = None,
) -> str:
    stamp = time.strftime("%d/%b/%Y:%H:%M:%S %z", time.localtime(when))
    return (
        f'{client} - - [{stamp}] "{method} {target} HTTP/{http_version}" '
        f'{status} {size} "{referer}" "{user_agent}"'
    )


def install_access_log(app: FastAPI, path: str | Path) -> None:
    """Register an HTTP middleware that appends one combined line per request."""
    access_logger = get_access_logger(path)

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        # an exception from the route is answered with a 500 further out
        status, size = 500, "-"
        try:
            response = await call_next(request)
            status = response.status_code
            size = response.headers.get("content-length", "-")
            return response
        finally:
            target = request.url.path
            if request.url.query:
                target = f"{target}?{request.url.query}"
            access_logger.info(
                combined_line(
                    client=request.client.host if request.client else "-",
                    method=request.method,
                    target=target,
                    http_version=request.scope.get("http_version", "1.1"),
                    status=status,
                    size=size,
                    referer=request.headers.get("referer", "-"),
                    user_agent=request.headers.get("user-agent", "-"),
                )
            )
