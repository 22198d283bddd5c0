"""
Utilities package for pgmodel.

Cross-cutting helpers only; keep this package free of model or SQL logic.
"""

from pgmodel.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
