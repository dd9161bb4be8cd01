"""
Conditional Access entity clients for Microsoft Graph.

Each client exposes the List/Get/Create/Update/Delete operations of one
entity collection. Every method performs a single round trip (plus the
transport's own retries) and returns the decoded model together with the
HTTP status code.
"""

from __future__ import annotations

import logging
from typing import Any

from conditional_access_provider.constants import (
    AUTHENTICATION_STRENGTH_POLICIES_ENTITY,
    CONDITIONAL_ACCESS_POLICIES_ENTITY,
    NAMED_LOCATIONS_ENTITY,
)
from conditional_access_provider.errors import (
    BadResponseError,
    UnrecognizedSubtypeError,
    ValidationError,
)
from conditional_access_provider.models.graph_api import (
    NAMED_LOCATION_TYPES,
    AuthenticationStrengthPolicy,
    ConditionalAccessPolicy,
    CountryNamedLocation,
    IpNamedLocation,
    parse_named_location,
)
from conditional_access_provider.utils.graph_client import (
    GraphClient,
    ODataQuery,
    decode_json,
    parse_model,
    retry_on_404,
)

logger = logging.getLogger(__name__)


async def _list_pages(
    graph: GraphClient, entity: str, query: ODataQuery | None
) -> tuple[list[Any], int]:
    """Collect ``value`` items across all ``@odata.nextLink`` pages."""
    items: list[Any] = []
    response = await graph.get(entity, query=query)
    while True:
        data = decode_json(response)
        if not isinstance(data, dict) or not isinstance(data.get("value"), list):
            raise BadResponseError(f"list response for {entity} has no 'value' array")
        items.extend(data["value"])
        next_link = data.get("@odata.nextLink")
        if not next_link:
            return items, response.status_code
        response = await graph.get(next_link)


class AuthenticationStrengthPoliciesClient:
    """Performs operations on authentication strength policies."""

    entity = AUTHENTICATION_STRENGTH_POLICIES_ENTITY

    def __init__(self, graph: GraphClient) -> None:
        self.graph = graph

    async def list(
        self, query: ODataQuery | None = None
    ) -> tuple[list[AuthenticationStrengthPolicy], int]:
        items, status = await _list_pages(self.graph, self.entity, query)
        return [parse_model(AuthenticationStrengthPolicy, item) for item in items], status

    async def create(
        self, policy: AuthenticationStrengthPolicy
    ) -> tuple[AuthenticationStrengthPolicy, int]:
        response = await self.graph.post(
            self.entity, body=policy.to_graph_payload(), valid_status_codes=(201,)
        )
        created = parse_model(AuthenticationStrengthPolicy, decode_json(response))
        logger.info(f"Created authentication strength policy {created.id}")
        return created, response.status_code

    async def get(
        self,
        policy_id: str,
        query: ODataQuery | None = None,
        disable_retries: bool = False,
    ) -> tuple[AuthenticationStrengthPolicy, int]:
        response = await self.graph.get(
            f"{self.entity}/{policy_id}",
            query=query,
            consistency_failure=retry_on_404,
            disable_retries=disable_retries,
        )
        return (
            parse_model(AuthenticationStrengthPolicy, decode_json(response)),
            response.status_code,
        )

    async def update(self, policy: AuthenticationStrengthPolicy) -> int:
        """
        Amend an existing policy's display name and description.

        Graph rejects ``allowedCombinations`` in a PATCH; use
        :meth:`update_allowed_combinations` for those.
        """
        if not policy.id:
            raise ValidationError(
                "cannot update authentication strength policy with nil ID", field="id"
            )
        body = policy.to_graph_payload()
        for read_only in ("id", "allowedCombinations", "policyType", "requirementsSatisfied"):
            body.pop(read_only, None)

        response = await self.graph.patch(
            f"{self.entity}/{policy.id}",
            body=body,
            valid_status_codes=(204,),
            consistency_failure=retry_on_404,
        )
        return response.status_code

    async def update_allowed_combinations(
        self, policy_id: str, allowed_combinations: list[str]
    ) -> int:
        response = await self.graph.post(
            f"{self.entity}/{policy_id}/updateAllowedCombinations",
            body={"allowedCombinations": list(allowed_combinations)},
            valid_status_codes=(200,),
            consistency_failure=retry_on_404,
        )
        return response.status_code

    async def delete(self, policy_id: str) -> int:
        response = await self.graph.delete(
            f"{self.entity}/{policy_id}",
            valid_status_codes=(204,),
            consistency_failure=retry_on_404,
        )
        return response.status_code


def _named_location(data: Any) -> IpNamedLocation | CountryNamedLocation:
    odata_type = data.get("@odata.type") if isinstance(data, dict) else None
    if odata_type not in NAMED_LOCATION_TYPES:
        raise UnrecognizedSubtypeError(odata_type, NAMED_LOCATION_TYPES)
    try:
        return parse_named_location(data)
    except ValueError as e:
        raise BadResponseError(f"named location body is invalid: {e}", cause=e) from e


class NamedLocationsClient:
    """Performs operations on named locations (IP and country variants)."""

    entity = NAMED_LOCATIONS_ENTITY

    def __init__(self, graph: GraphClient) -> None:
        self.graph = graph

    async def list(
        self, query: ODataQuery | None = None
    ) -> tuple[list[IpNamedLocation | CountryNamedLocation], int]:
        items, status = await _list_pages(self.graph, self.entity, query)
        return [_named_location(item) for item in items], status

    async def create(
        self, location: IpNamedLocation | CountryNamedLocation
    ) -> tuple[IpNamedLocation | CountryNamedLocation, int]:
        response = await self.graph.post(
            self.entity, body=location.to_graph_payload(), valid_status_codes=(201,)
        )
        created = _named_location(decode_json(response))
        logger.info(f"Created named location {created.id}")
        return created, response.status_code

    async def get(
        self,
        location_id: str,
        query: ODataQuery | None = None,
        disable_retries: bool = False,
    ) -> tuple[IpNamedLocation | CountryNamedLocation, int]:
        response = await self.graph.get(
            f"{self.entity}/{location_id}",
            query=query,
            consistency_failure=retry_on_404,
            disable_retries=disable_retries,
        )
        return _named_location(decode_json(response)), response.status_code

    async def update(self, location: IpNamedLocation | CountryNamedLocation) -> int:
        if not location.id:
            raise ValidationError("cannot update named location with nil ID", field="id")
        body = location.to_graph_payload()
        body.pop("id", None)

        response = await self.graph.patch(
            f"{self.entity}/{location.id}",
            body=body,
            valid_status_codes=(204,),
            consistency_failure=retry_on_404,
        )
        return response.status_code

    async def delete(self, location_id: str) -> int:
        response = await self.graph.delete(
            f"{self.entity}/{location_id}",
            valid_status_codes=(204,),
            consistency_failure=retry_on_404,
        )
        return response.status_code


class ConditionalAccessPoliciesClient:
    """Performs operations on conditional access policies."""

    entity = CONDITIONAL_ACCESS_POLICIES_ENTITY

    def __init__(self, graph: GraphClient) -> None:
        self.graph = graph

    async def list(
        self, query: ODataQuery | None = None
    ) -> tuple[list[ConditionalAccessPolicy], int]:
        items, status = await _list_pages(self.graph, self.entity, query)
        return [parse_model(ConditionalAccessPolicy, item) for item in items], status

    async def create(
        self, policy: ConditionalAccessPolicy
    ) -> tuple[ConditionalAccessPolicy, int]:
        response = await self.graph.post(
            self.entity, body=policy.to_graph_payload(), valid_status_codes=(201,)
        )
        created = parse_model(ConditionalAccessPolicy, decode_json(response))
        logger.info(f"Created conditional access policy {created.id}")
        return created, response.status_code

    async def get(
        self,
        policy_id: str,
        query: ODataQuery | None = None,
        disable_retries: bool = False,
    ) -> tuple[ConditionalAccessPolicy, int]:
        response = await self.graph.get(
            f"{self.entity}/{policy_id}",
            query=query,
            consistency_failure=retry_on_404,
            disable_retries=disable_retries,
        )
        return (
            parse_model(ConditionalAccessPolicy, decode_json(response)),
            response.status_code,
        )

    async def update(
        self,
        policy: ConditionalAccessPolicy,
        prior: ConditionalAccessPolicy | None = None,
    ) -> int:
        """
        Replace an existing policy.

        Blocks present in ``prior`` but absent from ``policy`` are cleared
        with explicit nulls.
        """
        if not policy.id:
            raise ValidationError(
                "cannot update conditional access policy with nil ID", field="id"
            )
        body = policy.to_patch_payload(prior)
        body.pop("id", None)

        response = await self.graph.patch(
            f"{self.entity}/{policy.id}",
            body=body,
            valid_status_codes=(204,),
            consistency_failure=retry_on_404,
        )
        return response.status_code

    async def delete(self, policy_id: str) -> int:
        response = await self.graph.delete(
            f"{self.entity}/{policy_id}",
            valid_status_codes=(204,),
            consistency_failure=retry_on_404,
        )
        return response.status_code


class ConditionalAccessClient:
    """Bundle of the Conditional Access entity clients sharing one transport."""

    def __init__(self, graph: GraphClient) -> None:
        self.graph = graph
        self.authentication_strength_policies = AuthenticationStrengthPoliciesClient(
            graph
        )
        self.named_locations = NamedLocationsClient(graph)
        self.policies = ConditionalAccessPoliciesClient(graph)
