"""Centralized provider settings using pydantic-settings.

This module provides a single source of truth for all provider configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from conditional_access_provider import constants


class Settings(BaseSettings):
    """Provider configuration loaded from environment variables.

    All settings have sensible defaults except the service principal
    credentials, which must be supplied before the provider talks to Graph.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Service principal credentials
    tenant_id: str = Field(
        default="",
        description="Entra ID tenant the provider manages",
        validation_alias="ARM_TENANT_ID",
    )
    client_id: str = Field(
        default="",
        description="Application (client) ID of the service principal",
        validation_alias="ARM_CLIENT_ID",
    )
    client_secret: str = Field(
        default="",
        description="Client secret of the service principal",
        validation_alias="ARM_CLIENT_SECRET",
    )

    # Endpoints
    authority_host: str = Field(
        default=constants.DEFAULT_AUTHORITY_HOST,
        description="Entra ID authority used to obtain access tokens",
        validation_alias="AUTHORITY_HOST",
    )
    graph_endpoint: str = Field(
        default=constants.DEFAULT_GRAPH_ENDPOINT,
        description="Microsoft Graph endpoint",
        validation_alias="GRAPH_ENDPOINT",
    )
    graph_api_version: str = Field(
        default=constants.DEFAULT_GRAPH_API_VERSION,
        description="Microsoft Graph API version (beta or v1.0)",
        validation_alias="GRAPH_API_VERSION",
    )

    # HTTP behaviour
    request_timeout_seconds: int = Field(
        default=constants.DEFAULT_REQUEST_TIMEOUT,
        gt=0,
        validation_alias="GRAPH_REQUEST_TIMEOUT_SECONDS",
        description="Timeout for a single Graph request",
    )
    max_retries: int = Field(
        default=constants.DEFAULT_MAX_RETRIES,
        ge=0,
        validation_alias="GRAPH_MAX_RETRIES",
        description="Retries for throttled (429) or unavailable (503/504) responses",
    )
    consistency_retry_attempts: int = Field(
        default=constants.DEFAULT_CONSISTENCY_RETRY_ATTEMPTS,
        ge=0,
        validation_alias="CONSISTENCY_RETRY_ATTEMPTS",
        description="Retries for 404s caused by read-after-write propagation delay",
    )
    consistency_retry_max_delay_seconds: float = Field(
        default=constants.DEFAULT_CONSISTENCY_RETRY_MAX_DELAY,
        ge=0,
        validation_alias="CONSISTENCY_RETRY_MAX_DELAY_SECONDS",
        description="Upper bound for the backoff between consistency retries",
    )

    # Lifecycle timeouts
    create_timeout_seconds: float = Field(
        default=constants.DEFAULT_OPERATION_TIMEOUT,
        gt=0,
        validation_alias="CREATE_TIMEOUT_SECONDS",
        description="Deadline for a create operation including convergence",
    )
    read_timeout_seconds: float = Field(
        default=constants.DEFAULT_OPERATION_TIMEOUT,
        gt=0,
        validation_alias="READ_TIMEOUT_SECONDS",
        description="Deadline for a read operation",
    )
    update_timeout_seconds: float = Field(
        default=constants.DEFAULT_OPERATION_TIMEOUT,
        gt=0,
        validation_alias="UPDATE_TIMEOUT_SECONDS",
        description="Deadline for an update operation including convergence",
    )
    delete_timeout_seconds: float = Field(
        default=constants.DEFAULT_OPERATION_TIMEOUT,
        gt=0,
        validation_alias="DELETE_TIMEOUT_SECONDS",
        description="Deadline for a delete operation including confirmation",
    )

    # Polling behaviour
    update_poll_min_interval_seconds: float = Field(
        default=constants.DEFAULT_UPDATE_POLL_MIN_INTERVAL,
        ge=0,
        validation_alias="UPDATE_POLL_MIN_INTERVAL_SECONDS",
        description="Minimum interval between convergence probes",
    )
    delete_poll_min_interval_seconds: float = Field(
        default=constants.DEFAULT_DELETE_POLL_MIN_INTERVAL,
        ge=0,
        validation_alias="DELETE_POLL_MIN_INTERVAL_SECONDS",
        description="Minimum interval between deletion probes",
    )
    continuous_target_occurrence: int = Field(
        default=constants.DEFAULT_CONTINUOUS_TARGET_OCCURRENCE,
        ge=1,
        validation_alias="CONTINUOUS_TARGET_OCCURRENCE",
        description="Consecutive target observations required before a wait succeeds",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )

    @property
    def graph_base_url(self) -> str:
        """Versioned Graph base URL, e.g. https://graph.microsoft.com/beta."""
        return f"{self.graph_endpoint.rstrip('/')}/{self.graph_api_version.strip('/')}"

    @property
    def has_credentials(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)


# Global settings instance - initialized once at module import
settings = Settings()
