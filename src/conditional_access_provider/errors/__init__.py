"""
Error handling module for the Conditional Access provider.

This module provides an error hierarchy that converts into lifecycle
diagnostics and provides clear categorization for different types of failures.
"""

from .provider_errors import (
    BadResponseError,
    ConfigurationError,
    ConvergenceTimeoutError,
    ExternalServiceError,
    GraphAPIError,
    GraphTransportError,
    ProviderError,
    ReconciliationError,
    UnrecognizedSubtypeError,
    ValidationError,
)

__all__ = [
    "ProviderError",
    "ValidationError",
    "ConfigurationError",
    "ExternalServiceError",
    "GraphAPIError",
    "GraphTransportError",
    "BadResponseError",
    "UnrecognizedSubtypeError",
    "ConvergenceTimeoutError",
    "ReconciliationError",
]
