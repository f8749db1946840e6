"""
Structured request logging and application-wide log configuration.

Every request gets an ``x-request-id`` (taken from the caller when present)
that is echoed on the response and attached to the completion log line.
Credentials and session material in headers are masked before logging.
"""

import json
import logging
import re
import time
import traceback
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


# Sensitive header patterns to mask in logs
SENSITIVE_HEADER_PATTERNS = [
    re.compile(r'authorization', re.IGNORECASE),
    re.compile(r'cookie', re.IGNORECASE),
    re.compile(r'token', re.IGNORECASE),
    re.compile(r'api[_-]?key', re.IGNORECASE),
    re.compile(r'secret', re.IGNORECASE),
    re.compile(r'session', re.IGNORECASE),
]

# Don't log health checks to reduce noise
SKIP_PATHS = ('/health', '/ready')


def mask_headers(headers: dict) -> dict:
    """
    Mask sensitive headers while preserving useful debugging information.

    For authorization headers the scheme is kept and the credential masked.
    """
    masked = {}
    for key, value in headers.items():
        if any(pattern.search(key) for pattern in SENSITIVE_HEADER_PATTERNS):
            parts = value.split(' ', 1) if isinstance(value, str) else []
            if key.lower() == 'authorization' and len(parts) == 2:
                masked[key] = f"{parts[0]} [REDACTED]"
            else:
                masked[key] = "[REDACTED]"
        else:
            masked[key] = value
    return masked


def should_log_request(path: str) -> bool:
    return not path.startswith(SKIP_PATHS)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one structured line per request with timing and status."""

    def __init__(self, app: ASGIApp, identity_header: str = "X-Identity-User-Id"):
        super().__init__(app)
        self.identity_header = identity_header

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
        request.state.request_id = request_id

        if not should_log_request(request.url.path):
            response = await call_next(request)
            response.headers['x-request-id'] = request_id
            return response

        start_time = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration = time.perf_counter() - start_time
            status_code = response.status_code if response is not None else 500
            log_data = {
                'event': 'request_completed',
                'request_id': request_id,
                'method': request.method,
                'path': request.url.path,
                'status_code': status_code,
                'duration_ms': round(duration * 1000, 2),
                'identity': request.headers.get(self.identity_header),
            }
            if logger.isEnabledFor(logging.DEBUG):
                log_data['headers'] = mask_headers(dict(request.headers))

            if status_code >= 500:
                logger.error(json.dumps(log_data))
            elif status_code >= 400:
                logger.warning(json.dumps(log_data))
            else:
                logger.info(json.dumps(log_data))

            if response is not None:
                response.headers['x-request-id'] = request_id


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if hasattr(record, 'request_id'):
            log_data['request_id'] = record.request_id

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data)


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Configure application-wide logging on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Whether to format logs as JSON
    """
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    if json_logs:
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('kombu').setLevel(logging.WARNING)
