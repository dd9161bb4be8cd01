"""Unit tests for the Conditional Access entity clients (HTTP mocked with respx)."""

import json
import time
from typing import get_type_hints
from unittest.mock import AsyncMock

import httpx
import pytest
import respx
from azure.core.credentials import AccessToken

from conditional_access_provider.errors import (
    BadResponseError,
    GraphAPIError,
    UnrecognizedSubtypeError,
    ValidationError,
)
from conditional_access_provider.models.graph_api import (
    AuthenticationStrengthPolicy,
    CountryNamedLocation,
    IpNamedLocation,
    IpRange,
)
from conditional_access_provider.utils.conditional_access_api import (
    AuthenticationStrengthPoliciesClient,
    ConditionalAccessClient,
)
from conditional_access_provider.utils.graph_client import GraphClient, ODataQuery

GRAPH_BASE_URL = "https://graph.microsoft.com/beta"
LOCATIONS_URL = f"{GRAPH_BASE_URL}/identity/conditionalAccess/namedLocations"
STRENGTH_URL = f"{GRAPH_BASE_URL}/policies/authenticationStrengthPolicies"
POLICIES_URL = f"{GRAPH_BASE_URL}/identity/conditionalAccess/policies"

LOCATION_ID = "11111111-2222-3333-4444-555555555555"

COUNTRY_BODY = {
    "@odata.type": "#microsoft.graph.countryNamedLocation",
    "id": LOCATION_ID,
    "displayName": "Blocked countries",
    "countriesAndRegions": ["KP", "IR"],
    "includeUnknownCountriesAndRegions": False,
    "countryLookupMethod": "clientIpAddress",
    "createdDateTime": "2024-01-01T00:00:00Z",
}

IP_BODY = {
    "@odata.type": "#microsoft.graph.ipNamedLocation",
    "id": LOCATION_ID,
    "displayName": "Head office",
    "isTrusted": True,
    "ipRanges": [
        {"@odata.type": "#microsoft.graph.iPv4CidrRange", "cidrAddress": "203.0.113.0/24"}
    ],
}


@pytest.fixture
def ca_client() -> ConditionalAccessClient:
    credential = AsyncMock()
    credential.get_token.return_value = AccessToken("token", int(time.time()) + 3600)
    graph = GraphClient(
        tenant_id="tenant-id",
        client_id="client-id",
        client_secret="client-secret",
        consistency_retry_attempts=2,
        consistency_retry_max_delay=0,
        initial_retry_delay=0,
        credential=credential,
    )
    return ConditionalAccessClient(graph)


@pytest.fixture
def graph_routes():
    with respx.mock(assert_all_called=False) as router:
        yield router


class TestNamedLocations:
    """Tests for the named locations client."""

    @pytest.mark.asyncio
    async def test_get_returns_country_variant(self, ca_client, graph_routes):
        graph_routes.get(f"{LOCATIONS_URL}/{LOCATION_ID}").mock(
            return_value=httpx.Response(200, json=COUNTRY_BODY)
        )

        location, status = await ca_client.named_locations.get(LOCATION_ID)

        assert status == 200
        assert isinstance(location, CountryNamedLocation)
        assert location.countries_and_regions == ["KP", "IR"]

    @pytest.mark.asyncio
    async def test_get_returns_ip_variant(self, ca_client, graph_routes):
        graph_routes.get(f"{LOCATIONS_URL}/{LOCATION_ID}").mock(
            return_value=httpx.Response(200, json=IP_BODY)
        )

        location, _ = await ca_client.named_locations.get(LOCATION_ID)

        assert isinstance(location, IpNamedLocation)
        assert location.is_trusted is True
        assert location.ip_ranges[0].cidr_address == "203.0.113.0/24"

    @pytest.mark.asyncio
    async def test_unknown_subtype_is_an_error(self, ca_client, graph_routes):
        body = {**COUNTRY_BODY, "@odata.type": "#microsoft.graph.compliantNetworkNamedLocation"}
        graph_routes.get(f"{LOCATIONS_URL}/{LOCATION_ID}").mock(
            return_value=httpx.Response(200, json=body)
        )

        with pytest.raises(UnrecognizedSubtypeError) as exc_info:
            await ca_client.named_locations.get(LOCATION_ID)

        assert exc_info.value.odata_type == "#microsoft.graph.compliantNetworkNamedLocation"

    @pytest.mark.asyncio
    async def test_non_json_body_is_bad_response(self, ca_client, graph_routes):
        graph_routes.get(f"{LOCATIONS_URL}/{LOCATION_ID}").mock(
            return_value=httpx.Response(200, text="<html>oops</html>")
        )

        with pytest.raises(BadResponseError):
            await ca_client.named_locations.get(LOCATION_ID)

    @pytest.mark.asyncio
    async def test_get_retries_consistency_404(self, ca_client, graph_routes):
        route = graph_routes.get(f"{LOCATIONS_URL}/{LOCATION_ID}").mock(
            side_effect=[httpx.Response(404), httpx.Response(200, json=COUNTRY_BODY)]
        )

        location, _ = await ca_client.named_locations.get(LOCATION_ID)

        assert location.id == LOCATION_ID
        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_list_follows_next_link(self, ca_client, graph_routes):
        route = graph_routes.get(url__startswith=LOCATIONS_URL).mock(
            side_effect=[
                httpx.Response(
                    200,
                    json={
                        "value": [COUNTRY_BODY],
                        "@odata.nextLink": f"{LOCATIONS_URL}?$skiptoken=page2",
                    },
                ),
                httpx.Response(200, json={"value": [IP_BODY]}),
            ]
        )

        locations, status = await ca_client.named_locations.list(
            ODataQuery(filter="displayName eq 'x'")
        )

        assert status == 200
        assert [type(loc) for loc in locations] == [CountryNamedLocation, IpNamedLocation]
        assert route.calls[0].request.url.params["$filter"] == "displayName eq 'x'"
        assert route.calls[1].request.url.params["$skiptoken"] == "page2"

    @pytest.mark.asyncio
    async def test_create_sends_tagged_payload(self, ca_client, graph_routes):
        route = graph_routes.post(LOCATIONS_URL).mock(
            return_value=httpx.Response(201, json=IP_BODY)
        )
        location = IpNamedLocation(
            display_name="Head office",
            ip_ranges=[
                IpRange(
                    odata_type="#microsoft.graph.iPv4CidrRange",
                    cidr_address="203.0.113.0/24",
                )
            ],
            is_trusted=True,
        )

        created, status = await ca_client.named_locations.create(location)

        assert status == 201
        assert created.id == LOCATION_ID
        sent = json.loads(route.calls.last.request.content)
        assert sent == {
            "@odata.type": "#microsoft.graph.ipNamedLocation",
            "displayName": "Head office",
            "ipRanges": [
                {
                    "@odata.type": "#microsoft.graph.iPv4CidrRange",
                    "cidrAddress": "203.0.113.0/24",
                }
            ],
            "isTrusted": True,
        }

    @pytest.mark.asyncio
    async def test_update_without_id_is_rejected(self, ca_client):
        with pytest.raises(ValidationError):
            await ca_client.named_locations.update(CountryNamedLocation(display_name="x"))

    @pytest.mark.asyncio
    async def test_update_patches_without_id(self, ca_client, graph_routes):
        route = graph_routes.patch(f"{LOCATIONS_URL}/{LOCATION_ID}").mock(
            return_value=httpx.Response(204)
        )

        status = await ca_client.named_locations.update(
            CountryNamedLocation(
                id=LOCATION_ID, display_name="Blocked", countries_and_regions=["KP"]
            )
        )

        assert status == 204
        sent = json.loads(route.calls.last.request.content)
        assert "id" not in sent
        assert sent["@odata.type"] == "#microsoft.graph.countryNamedLocation"

    @pytest.mark.asyncio
    async def test_delete(self, ca_client, graph_routes):
        route = graph_routes.delete(f"{LOCATIONS_URL}/{LOCATION_ID}").mock(
            return_value=httpx.Response(204)
        )

        assert await ca_client.named_locations.delete(LOCATION_ID) == 204
        assert route.call_count == 1


class TestAuthenticationStrengthPolicies:
    """Tests for the authentication strength policies client."""

    def test_combination_parameter_is_a_builtin_list(self):
        hints = get_type_hints(
            AuthenticationStrengthPoliciesClient.update_allowed_combinations
        )
        assert hints["allowed_combinations"] == list[str]

    @pytest.mark.asyncio
    async def test_update_omits_allowed_combinations(self, ca_client, graph_routes):
        route = graph_routes.patch(f"{STRENGTH_URL}/abc").mock(
            return_value=httpx.Response(204)
        )

        await ca_client.authentication_strength_policies.update(
            AuthenticationStrengthPolicy(
                id="abc",
                display_name="Strong",
                description="Strong auth",
                allowed_combinations=["fido2"],
            )
        )

        sent = json.loads(route.calls.last.request.content)
        assert sent == {"displayName": "Strong", "description": "Strong auth"}

    @pytest.mark.asyncio
    async def test_update_allowed_combinations(self, ca_client, graph_routes):
        route = graph_routes.post(f"{STRENGTH_URL}/abc/updateAllowedCombinations").mock(
            return_value=httpx.Response(200, json={})
        )

        status = await ca_client.authentication_strength_policies.update_allowed_combinations(
            "abc", ["fido2", "x509CertificateMultiFactor"]
        )

        assert status == 200
        sent = json.loads(route.calls.last.request.content)
        assert sent == {"allowedCombinations": ["fido2", "x509CertificateMultiFactor"]}

    @pytest.mark.asyncio
    async def test_create_with_wrong_status_fails(self, ca_client, graph_routes):
        graph_routes.post(STRENGTH_URL).mock(return_value=httpx.Response(200, json={}))

        with pytest.raises(GraphAPIError) as exc_info:
            await ca_client.authentication_strength_policies.create(
                AuthenticationStrengthPolicy(display_name="x", allowed_combinations=["fido2"])
            )

        assert exc_info.value.status_code == 200


class TestConditionalAccessPolicies:
    """Tests for the conditional access policies client."""

    @pytest.mark.asyncio
    async def test_list_without_value_is_bad_response(self, ca_client, graph_routes):
        graph_routes.get(POLICIES_URL).mock(return_value=httpx.Response(200, json={}))

        with pytest.raises(BadResponseError):
            await ca_client.policies.list()

    @pytest.mark.asyncio
    async def test_get_parses_policy(self, ca_client, graph_routes):
        graph_routes.get(f"{POLICIES_URL}/pol").mock(
            return_value=httpx.Response(
                200,
                json={
                    "id": "pol",
                    "displayName": "Block legacy auth",
                    "state": "enabled",
                    "conditions": {
                        "clientAppTypes": ["exchangeActiveSync", "other"],
                        "applications": {"includeApplications": ["All"]},
                        "users": {"includeUsers": ["All"]},
                    },
                    "grantControls": {"operator": "OR", "builtInControls": ["block"]},
                },
            )
        )

        policy, _ = await ca_client.policies.get("pol")

        assert policy.display_name == "Block legacy auth"
        assert policy.grant_controls.built_in_controls == ["block"]
        assert policy.conditions.users.include_users == ["All"]
