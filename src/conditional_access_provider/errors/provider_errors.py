"""
Provider error hierarchy with categorization and retry hints.

This module defines the error types used throughout the Conditional Access
provider, providing clear categorization and conversion into the structured
diagnostics returned by resource lifecycle operations.
"""

from conditional_access_provider.constants import ERROR_BAD_API_RESPONSE
from conditional_access_provider.models.common import Diagnostic


class ProviderError(Exception):
    """
    Base error class for all provider-related exceptions.

    Provides categorization, retry behavior, and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize provider error.

        Args:
            message: Human-readable error description
            category: Error category (validation, api, transport, timeout, ...)
            retryable: Whether re-running the operation may succeed
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.user_action = user_action
        self.cause = cause

    def as_diagnostic(self, summary: str, attribute: str | None = None) -> Diagnostic:
        """Convert to an error diagnostic with the given summary."""
        return Diagnostic(
            severity="error",
            summary=summary,
            detail=str(self),
            attribute=attribute,
        )

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class ValidationError(ProviderError):
    """Error in resource configuration or identifier validation."""

    def __init__(
        self, message: str, field: str | None = None, user_action: str | None = None
    ):
        action = user_action or "Check resource configuration and fix validation errors"
        if field:
            message = f"Validation error in field '{field}': {message}"
        super().__init__(
            message=message, category="validation", retryable=False, user_action=action
        )
        self.field = field


class ConfigurationError(ProviderError):
    """Error in provider configuration."""

    def __init__(
        self, message: str, retryable: bool = False, user_action: str | None = None
    ):
        super().__init__(
            message=message,
            category="configuration",
            retryable=retryable,
            user_action=user_action or "Review and correct provider configuration",
        )


class ExternalServiceError(ProviderError):
    """Error communicating with external services."""

    def __init__(
        self,
        service: str,
        message: str,
        retryable: bool = True,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        action = user_action or f"Check {service} connectivity and credentials"
        super().__init__(
            message=f"{service} error: {message}",
            category="external",
            retryable=retryable,
            user_action=action,
            cause=cause,
        )


class GraphAPIError(ExternalServiceError):
    """Microsoft Graph returned a status code outside the expected set."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        retryable: bool = True,
        method: str | None = None,
        uri: str | None = None,
    ):
        if status_code:
            message = f"HTTP {status_code}: {message}"

        # 429 is the only retryable client error
        if status_code and 400 <= status_code < 500 and status_code != 429:
            retryable = False

        super().__init__(
            service="Microsoft Graph",
            message=message,
            retryable=retryable,
            user_action="Check the service principal's Graph permissions and the request payload",
        )
        self.status_code = status_code
        self.response_body = response_body
        self.method = method
        self.uri = uri

    @property
    def not_found(self) -> bool:
        return self.status_code == 404

    def body_preview(self, limit: int = 2048) -> str | None:
        """Return a truncated preview of the response body for logging."""

        if self.response_body is None:
            return None

        if len(self.response_body) <= limit:
            return self.response_body

        return f"{self.response_body[:limit]}...<truncated>"


class GraphTransportError(ExternalServiceError):
    """Network-level failure talking to Microsoft Graph or the token endpoint."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(
            service="Microsoft Graph",
            message=message,
            retryable=True,
            user_action="Check network connectivity to Microsoft Graph",
            cause=cause,
        )


class BadResponseError(ProviderError):
    """Response body could not be decoded or is missing required data."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(
            message=f"{ERROR_BAD_API_RESPONSE}: {message}",
            category="bad_response",
            retryable=False,
            user_action="Inspect provider logs for the raw response body",
            cause=cause,
        )


class UnrecognizedSubtypeError(BadResponseError):
    """Polymorphic response carried a type tag that matches no known variant."""

    def __init__(self, odata_type: str | None, expected: tuple[str, ...]):
        super().__init__(
            f"unrecognized @odata.type {odata_type!r}, expected one of {', '.join(expected)}"
        )
        self.odata_type = odata_type
        self.expected = expected


class ConvergenceTimeoutError(ProviderError):
    """Remote state did not reach the expected state before the deadline."""

    def __init__(
        self,
        message: str,
        last_state: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(
            message=message,
            category="timeout",
            retryable=True,
            user_action="Re-run the operation or raise the operation timeout",
        )
        self.last_state = last_state
        self.timeout = timeout


class ReconciliationError(ProviderError):
    """Error raised when a lifecycle operation cannot be completed."""

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        user_action: str | None = None,
    ):
        super().__init__(
            message=message,
            category="reconciliation",
            retryable=retryable,
            user_action=user_action
            or "Inspect provider logs and resource configuration for issues",
        )
