"""Unit tests for AuthenticationStrengthPolicyResource lifecycle operations."""

from unittest.mock import MagicMock

import pytest

from conditional_access_provider.errors import GraphAPIError
from conditional_access_provider.models.graph_api import AuthenticationStrengthPolicy
from conditional_access_provider.services.authentication_strength_resource import (
    AuthenticationStrengthPolicyResource,
)

POLICY_ID = "00000000-0000-0000-0000-000000000001"

CONFIG = {
    "display_name": "Phishing resistant",
    "description": "FIDO2 or Windows Hello",
    "allowed_combinations": ["fido2", "windowsHelloForBusiness"],
}


def _policy(**overrides) -> AuthenticationStrengthPolicy:
    data = {
        "id": POLICY_ID,
        "display_name": CONFIG["display_name"],
        "description": CONFIG["description"],
        "allowed_combinations": list(CONFIG["allowed_combinations"]),
        "policy_type": "custom",
        "requirements_satisfied": "mfa",
    }
    data.update(overrides)
    return AuthenticationStrengthPolicy(**data)


@pytest.fixture
def api(ca_client_mock: MagicMock) -> MagicMock:
    return ca_client_mock.authentication_strength_policies


@pytest.fixture
def resource(ca_client_mock, fast_settings) -> AuthenticationStrengthPolicyResource:
    return AuthenticationStrengthPolicyResource(ca_client_mock, fast_settings)


class TestCreate:
    """Tests for create."""

    @pytest.mark.asyncio
    async def test_create_waits_for_convergence_then_reads(self, resource, api):
        api.create.return_value = (_policy(), 201)
        api.get.side_effect = [
            (_policy(description="stale"), 200),
            (_policy(), 200),
            (_policy(), 200),
            (_policy(), 200),
        ]

        result = await resource.create(CONFIG)

        assert not result.has_errors
        assert result.id == POLICY_ID
        assert result.state["description"] == CONFIG["description"]
        assert result.state["policy_type"] == "custom"
        # Pending, Updated, Updated, then the final read
        assert api.get.await_count == 4

        sent = api.create.await_args.args[0]
        assert sent.id is None
        assert sent.allowed_combinations == CONFIG["allowed_combinations"]

    @pytest.mark.asyncio
    async def test_create_with_empty_id_reports_bad_response(self, resource, api):
        api.create.return_value = (_policy(id=""), 201)

        result = await resource.create(CONFIG)

        assert result.has_errors
        diagnostic = result.diagnostics[0]
        assert "Bad API response" in diagnostic.detail
        assert "new resource" in diagnostic.summary
        assert diagnostic.summary.startswith("Create failed")
        api.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_config_is_rejected_before_any_request(self, resource, api):
        result = await resource.create({**CONFIG, "allowed_combinations": []})

        assert result.has_errors
        assert "allowed_combinations" in result.diagnostics[0].detail
        api.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_config_key_is_rejected(self, resource, api):
        result = await resource.create({**CONFIG, "colour": "blue"})

        assert result.has_errors
        api.create.assert_not_awaited()


class TestRead:
    """Tests for read."""

    @pytest.mark.asyncio
    async def test_read_populates_state(self, resource, api):
        api.get.return_value = (_policy(), 200)

        result = await resource.read(POLICY_ID)

        assert result.state == {
            "id": POLICY_ID,
            "display_name": CONFIG["display_name"],
            "description": CONFIG["description"],
            "allowed_combinations": CONFIG["allowed_combinations"],
            "policy_type": "custom",
            "requirements_satisfied": "mfa",
        }

    @pytest.mark.asyncio
    async def test_read_of_missing_policy_removes_it(self, resource, api):
        api.get.side_effect = GraphAPIError("not found", status_code=404)

        result = await resource.read(POLICY_ID)

        assert result.removed
        assert result.diagnostics == []

    @pytest.mark.asyncio
    async def test_read_server_error_becomes_diagnostic(self, resource, api):
        api.get.side_effect = GraphAPIError("boom", status_code=500)

        result = await resource.read(POLICY_ID)

        assert result.has_errors
        assert POLICY_ID in result.diagnostics[0].summary
        assert "HTTP 500" in result.diagnostics[0].detail


class TestUpdate:
    """Tests for update."""

    @pytest.mark.asyncio
    async def test_description_change_only_patches(self, resource, api):
        new_config = {**CONFIG, "description": "Updated"}
        api.get.return_value = (_policy(description="Updated"), 200)

        result = await resource.update(POLICY_ID, new_config, prior=CONFIG)

        assert not result.has_errors
        api.update.assert_awaited_once()
        assert api.update.await_args.args[0].id == POLICY_ID
        api.update_allowed_combinations.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_combination_change_uses_dedicated_action(self, resource, api):
        new_config = {**CONFIG, "allowed_combinations": ["fido2"]}
        api.get.return_value = (_policy(allowed_combinations=["fido2"]), 200)

        result = await resource.update(POLICY_ID, new_config, prior=CONFIG)

        assert not result.has_errors
        api.update.assert_not_awaited()
        api.update_allowed_combinations.assert_awaited_once_with(POLICY_ID, ["fido2"])

    @pytest.mark.asyncio
    async def test_update_without_prior_sends_everything(self, resource, api):
        api.get.return_value = (_policy(), 200)

        result = await resource.update(POLICY_ID, CONFIG)

        assert not result.has_errors
        api.update.assert_awaited_once()
        api.update_allowed_combinations.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unchanged_config_skips_requests(self, resource, api):
        api.get.return_value = (_policy(), 200)

        result = await resource.update(POLICY_ID, CONFIG, prior={**CONFIG, "id": POLICY_ID})

        assert not result.has_errors
        api.update.assert_not_awaited()
        api.update_allowed_combinations.assert_not_awaited()
        api.get.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_convergence_timeout_becomes_diagnostic(self, resource, api):
        api.get.return_value = (_policy(description="stale"), 200)

        result = await resource.update(
            POLICY_ID, {**CONFIG, "description": "Updated"}, prior=CONFIG, timeout=0.2
        )

        assert result.has_errors
        diagnostic = result.diagnostics[0]
        assert diagnostic.summary == (
            f"Update failed for azuread_authentication_strength_policy {POLICY_ID}"
        )
        assert "raise the operation timeout" in diagnostic.detail


class TestDelete:
    """Tests for delete."""

    @pytest.mark.asyncio
    async def test_delete_polls_until_absent(self, resource, api):
        gone = GraphAPIError("gone", status_code=404)
        api.get.side_effect = [
            (_policy(), 200),
            (_policy(), 200),
            gone,
            gone,
        ]

        result = await resource.delete(POLICY_ID)

        assert result.removed
        api.delete.assert_awaited_once_with(POLICY_ID)
        # Confirmation probes bypass the consistency retries
        for call in api.get.await_args_list[1:]:
            assert call.kwargs["disable_retries"] is True

    @pytest.mark.asyncio
    async def test_delete_of_absent_policy_succeeds(self, resource, api):
        api.get.side_effect = GraphAPIError("gone", status_code=404)

        result = await resource.delete(POLICY_ID)

        assert result.removed
        api.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_probe_failure_aborts(self, resource, api):
        api.get.side_effect = [
            (_policy(), 200),
            GraphAPIError("forbidden", status_code=403),
        ]

        result = await resource.delete(POLICY_ID)

        assert result.has_errors
        assert "HTTP 403" in result.diagnostics[0].detail
        assert api.get.await_count == 2


class TestImport:
    """Tests for import id validation."""

    @pytest.mark.asyncio
    async def test_invalid_import_id(self, resource, api):
        result = await resource.import_id("not-a-uuid")

        assert result.has_errors
        assert result.diagnostics[0].attribute == "id"
        api.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_valid_import_id_reads(self, resource, api):
        api.get.return_value = (_policy(), 200)

        result = await resource.import_id(POLICY_ID)

        assert not result.has_errors
        assert result.state["id"] == POLICY_ID
