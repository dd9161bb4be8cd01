"""Conditional access policy resource."""

from typing import cast

from ..constants import RESOURCE_CONDITIONAL_ACCESS_POLICY
from ..models.graph_api import ConditionalAccessPolicy
from ..models.resources import ConditionalAccessPolicySpec, ResourceSpec
from .base_resource import BaseResource


class ConditionalAccessPolicyResource(BaseResource):
    """Manages conditional access policies."""

    resource_type = RESOURCE_CONDITIONAL_ACCESS_POLICY
    spec_class = ConditionalAccessPolicySpec

    @property
    def api(self):
        return self.client.policies

    async def fetch(
        self, resource_id: str, disable_retries: bool = False
    ) -> ConditionalAccessPolicy:
        policy, _ = await self.api.get(resource_id, disable_retries=disable_retries)
        return policy

    async def post(self, spec: ResourceSpec) -> ConditionalAccessPolicy:
        policy, _ = await self.api.create(
            cast(ConditionalAccessPolicySpec, spec).to_graph_model()
        )
        return policy

    async def patch(
        self,
        resource_id: str,
        spec: ResourceSpec,
        changed: list[str] | None,
        prior: ResourceSpec | None,
    ) -> None:
        desired = cast(ConditionalAccessPolicySpec, spec).to_graph_model(resource_id)
        previous = None
        if prior is not None:
            previous = cast(ConditionalAccessPolicySpec, prior).to_graph_model(resource_id)
        # Nested condition blocks are replaced wholesale, so send them all
        await self.api.update(desired, prior=previous)

    async def remove(self, resource_id: str) -> None:
        await self.api.delete(resource_id)
