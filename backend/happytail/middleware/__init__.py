"""Middleware package."""

from happytail.middleware.logging import LoggingMiddleware
from happytail.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RequestIDMiddleware"]
