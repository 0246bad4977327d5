"""
HTTP middlewares.
"""
from photolog.middlewares.logging_middleware import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
