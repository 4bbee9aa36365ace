import logging
import time
import uuid
from collections.abc import Callable
from typing import Any, Optional

from fastapi import FastAPI, Request, Response
from rich.console import Console
from rich.logging import RichHandler
from starlette.middleware.base import BaseHTTPMiddleware


# Set up rich console
console = Console()

logger = logging.getLogger("community_analytics.request")

DEFAULT_EXCLUDE_PATHS = ["/health", "/docs", "/redoc", "/openapi.json"]

METHOD_COLORS = {
    "GET": "green",
    "POST": "blue",
    "PUT": "yellow",
    "PATCH": "yellow",
    "DELETE": "red",
}


def configure_logging(level: int = logging.INFO) -> None:
    """Route application logs through a rich handler."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def _status_color(status_code: int) -> str:
    if status_code < 300:
        return "green"
    if status_code < 400:
        return "blue"
    if status_code < 500:
        return "yellow"
    return "red"


def _log_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request with its outcome and timing in a single entry.

    An incoming X-Request-ID header is reused so that a caller can correlate
    its own logs with ours; otherwise a new ID is generated. Both the ID and
    the processing time are echoed back as response headers.
    """

    def __init__(
        self,
        app: Any,
        exclude_paths: Optional[list[str]] = None,
    ):
        super().__init__(app)
        self.exclude_paths = exclude_paths or DEFAULT_EXCLUDE_PATHS

    async def dispatch(
        self, request: Request, call_next: Callable[..., Any]
    ) -> Response:
        if any(
            request.url.path.startswith(path) for path in self.exclude_paths
        ):
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"
        client_ip = request.client.host if request.client else None
        method_color = METHOD_COLORS.get(method, "white")

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error(
                f"[{method_color}]{method}[/] {path} | "
                f"Error: [red]{e}[/] | "
                f"Time: [cyan]{elapsed_ms}ms[/] | "
                f"Client: {client_ip} | "
                f"ID: [dim]{request_id}[/]",
                exc_info=True,
            )
            # Let FastAPI turn it into a 500
            raise

        elapsed = time.perf_counter() - start_time
        elapsed_ms = round(elapsed * 1000, 2)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(elapsed)

        logger.log(
            _log_level(response.status_code),
            f"[{method_color}]{method}[/] {path} | "
            f"Status: [{_status_color(response.status_code)}]"
            f"{response.status_code}[/] | "
            f"Time: [cyan]{elapsed_ms}ms[/] | "
            f"Client: {client_ip} | "
            f"ID: [dim]{request_id}[/]",
        )

        return response


def setup_request_logging_middleware(
    app: FastAPI,
    exclude_paths: Optional[list[str]] = None,
) -> None:
    """Add request logging middleware to FastAPI app."""
    app.add_middleware(
        RequestLoggingMiddleware,
        exclude_paths=exclude_paths,
    )
