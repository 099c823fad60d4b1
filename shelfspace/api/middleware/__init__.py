"""
API middleware components.
"""

from .error_handler import (
    setup_exception_handlers,
    create_error_response,
)


__all__ = [
    "setup_exception_handlers",
    "create_error_response",
]
