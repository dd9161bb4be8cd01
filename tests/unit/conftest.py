"""Shared pytest fixtures for provider unit tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from conditional_access_provider.settings import Settings


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with polling intervals removed so lifecycle tests run instantly."""
    return Settings(
        _env_file=None,
        ARM_TENANT_ID="tenant-id",
        ARM_CLIENT_ID="client-id",
        ARM_CLIENT_SECRET="client-secret",
        UPDATE_POLL_MIN_INTERVAL_SECONDS=0,
        DELETE_POLL_MIN_INTERVAL_SECONDS=0,
        CONTINUOUS_TARGET_OCCURRENCE=2,
        CREATE_TIMEOUT_SECONDS=5,
        READ_TIMEOUT_SECONDS=5,
        UPDATE_TIMEOUT_SECONDS=5,
        DELETE_TIMEOUT_SECONDS=5,
    )


def _entity_api_mock() -> MagicMock:
    mock = MagicMock()
    mock.get = AsyncMock()
    mock.list = AsyncMock()
    mock.create = AsyncMock()
    mock.update = AsyncMock(return_value=204)
    mock.delete = AsyncMock(return_value=204)
    return mock


@pytest.fixture
def ca_client_mock() -> MagicMock:
    """Mock ConditionalAccessClient with async entity operations."""
    mock = MagicMock()
    mock.authentication_strength_policies = _entity_api_mock()
    mock.authentication_strength_policies.update_allowed_combinations = AsyncMock(
        return_value=200
    )
    mock.named_locations = _entity_api_mock()
    mock.policies = _entity_api_mock()
    return mock
