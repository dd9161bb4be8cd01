"""
Provider entry point.

Builds the shared Graph transport from settings and exposes one resource
instance per supported resource type.
"""

import logging

from .constants import (
    RESOURCE_AUTHENTICATION_STRENGTH_POLICY,
    RESOURCE_CONDITIONAL_ACCESS_POLICY,
    RESOURCE_NAMED_LOCATION,
)
from .errors import ConfigurationError
from .observability.logging import setup_structured_logging
from .services import (
    AuthenticationStrengthPolicyResource,
    BaseResource,
    ConditionalAccessPolicyResource,
    NamedLocationResource,
)
from .settings import Settings
from .settings import settings as default_settings
from .utils.conditional_access_api import ConditionalAccessClient
from .utils.graph_client import GraphClient

logger = logging.getLogger(__name__)

RESOURCE_CLASSES: dict[str, type[BaseResource]] = {
    RESOURCE_AUTHENTICATION_STRENGTH_POLICY: AuthenticationStrengthPolicyResource,
    RESOURCE_NAMED_LOCATION: NamedLocationResource,
    RESOURCE_CONDITIONAL_ACCESS_POLICY: ConditionalAccessPolicyResource,
}


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the logging settings to the root logger."""
    settings = settings or default_settings
    setup_structured_logging(
        log_level=settings.log_level,
        enable_json_formatting=settings.json_logs,
        correlation_id_enabled=settings.correlation_ids,
    )


class Provider:
    """
    Conditional Access provider.

    Usage:
        async with Provider.from_settings() as provider:
            result = await provider.resource("azuread_named_location").read(location_id)
    """

    def __init__(self, graph: GraphClient, settings: Settings | None = None):
        self.graph = graph
        self.settings = settings or default_settings
        self.client = ConditionalAccessClient(graph)
        self.resources: dict[str, BaseResource] = {
            name: cls(self.client, self.settings) for name, cls in RESOURCE_CLASSES.items()
        }

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Provider":
        """
        Build a provider from settings.

        Raises:
            ConfigurationError: If the service principal credentials are missing
        """
        settings = settings or default_settings
        graph = GraphClient.from_settings(settings)
        logger.info(
            f"Configured Conditional Access provider for tenant {settings.tenant_id}"
        )
        return cls(graph, settings)

    def resource(self, resource_type: str) -> BaseResource:
        try:
            return self.resources[resource_type]
        except KeyError:
            raise ConfigurationError(
                f"unsupported resource type {resource_type!r}",
                user_action=f"Use one of: {', '.join(sorted(self.resources))}",
            ) from None

    async def close(self) -> None:
        await self.graph.close()

    async def __aenter__(self) -> "Provider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
