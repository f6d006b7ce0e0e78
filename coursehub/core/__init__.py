# Core infrastructure
from coursehub.core.context import (
    clear_context,
    get_context,
    get_request_id,
    get_trace_id,
    get_user_id,
    set_request_id,
    set_trace_id,
    set_user_id,
)
from coursehub.core.database import init_async_cassandra, shutdown_async_cassandra
from coursehub.core.logging import configure_structlog, get_logger, log_anomaly
from coursehub.core.middleware import RequestContextMiddleware


__all__ = [
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_trace_id",
    "get_user_id",
    "init_async_cassandra",
    "log_anomaly",
    "set_request_id",
    "set_trace_id",
    "set_user_id",
    "shutdown_async_cassandra",
]
