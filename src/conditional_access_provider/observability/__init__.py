"""
Observability package - logging, metrics and tracing for the provider.
"""

from .logging import ProviderLogger, setup_structured_logging

__all__ = [
    "ProviderLogger",
    "setup_structured_logging",
]
