"""
Utility modules for Mechmate.
"""
from mechmate.utils.logger import setup_logger
from mechmate.utils.formatting import format_timeframe

__all__ = [
    "setup_logger",
    "format_timeframe",
]
