"""
Middleware for Mechmate.
"""
from mechmate.middleware.correlation import CorrelationIdMiddleware

__all__ = ["CorrelationIdMiddleware"]
