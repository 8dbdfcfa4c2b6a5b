"""
Utilities package for AgroFácil.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of domain-specific logic.
"""

from agrofacil.utils.logging import EnvironmentFilter, JsonFormatter, configure_logging, get_logger

__all__ = [
    "EnvironmentFilter",
    "JsonFormatter",
    "configure_logging",
    "get_logger",
]
