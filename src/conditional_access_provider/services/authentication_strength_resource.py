"""
Authentication strength policy resource.

Graph rejects ``allowedCombinations`` in a PATCH, so an update is split into
a PATCH of the descriptive fields and a POST to ``updateAllowedCombinations``,
each sent only when the corresponding fields changed.
"""

from typing import Any, cast

from ..constants import RESOURCE_AUTHENTICATION_STRENGTH_POLICY
from ..models.graph_api import AuthenticationStrengthPolicy
from ..models.resources import AuthenticationStrengthPolicySpec, ResourceSpec
from .base_resource import BaseResource

_DESCRIPTIVE_FIELDS = {"display_name", "description"}


class AuthenticationStrengthPolicyResource(BaseResource):
    """Manages authentication strength policies."""

    resource_type = RESOURCE_AUTHENTICATION_STRENGTH_POLICY
    spec_class = AuthenticationStrengthPolicySpec

    @property
    def api(self):
        return self.client.authentication_strength_policies

    async def fetch(
        self, resource_id: str, disable_retries: bool = False
    ) -> AuthenticationStrengthPolicy:
        policy, _ = await self.api.get(resource_id, disable_retries=disable_retries)
        return policy

    async def post(self, spec: ResourceSpec) -> AuthenticationStrengthPolicy:
        policy, _ = await self.api.create(
            cast(AuthenticationStrengthPolicySpec, spec).to_graph_model()
        )
        return policy

    async def patch(
        self,
        resource_id: str,
        spec: ResourceSpec,
        changed: list[str] | None,
        prior: ResourceSpec | None,
    ) -> None:
        desired = cast(AuthenticationStrengthPolicySpec, spec)
        if changed is None or _DESCRIPTIVE_FIELDS & set(changed):
            await self.api.update(desired.to_graph_model(resource_id))

        if changed is None or "allowed_combinations" in changed:
            self.logger.info(
                f"Updating allowed combinations of {self.resource_type} {resource_id}",
                resource_id=resource_id,
            )
            await self.api.update_allowed_combinations(
                resource_id, desired.allowed_combinations
            )

    async def remove(self, resource_id: str) -> None:
        await self.api.delete(resource_id)

    def to_state(
        self, resource_id: str, observed: AuthenticationStrengthPolicy
    ) -> dict[str, Any]:
        state = super().to_state(resource_id, observed)
        state["policy_type"] = observed.policy_type
        state["requirements_satisfied"] = observed.requirements_satisfied
        return state
