"""
Pydantic models for the Microsoft Graph Conditional Access entities.

These models mirror the JSON representations used on the wire. Field names
are snake_case in Python and camelCase (by alias) in request and response
bodies; serialize with ``model_dump(by_alias=True, exclude_none=True)``.

Named locations are polymorphic: the ``@odata.type`` field selects either
:class:`IpNamedLocation` or :class:`CountryNamedLocation`. Use
:func:`parse_named_location` to obtain the concrete variant.
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from conditional_access_provider.constants import (
    ODATA_TYPE_COUNTRY_NAMED_LOCATION,
    ODATA_TYPE_IP_NAMED_LOCATION,
)


class GraphModel(BaseModel):
    """Base for Graph entities: accept either field names or wire aliases."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_graph_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_patch_payload(self, prior: "GraphModel | None" = None) -> dict[str, Any]:
        """
        Body for a PATCH that replaces ``prior`` with this model.

        Graph leaves omitted properties unchanged, so properties set in
        ``prior`` but not here are sent as explicit ``null``.
        """
        payload = self.to_graph_payload()
        if prior is not None:
            _clear_removed(payload, prior.to_graph_payload())
        return payload


def _clear_removed(payload: dict[str, Any], prior: dict[str, Any]) -> None:
    for key, previous in prior.items():
        if key not in payload:
            payload[key] = None
        elif isinstance(previous, dict) and isinstance(payload[key], dict):
            _clear_removed(payload[key], previous)


# =============================================================================
# Authentication strength policies
# =============================================================================


class AuthenticationStrengthPolicy(GraphModel):
    """A set of authentication method combinations satisfying a policy."""

    id: str | None = None
    display_name: str | None = Field(None, alias="displayName")
    description: str | None = None
    policy_type: str | None = Field(
        None, alias="policyType", description="builtIn or custom (read-only)"
    )
    requirements_satisfied: str | None = Field(
        None, alias="requirementsSatisfied", description="mfa or none (read-only)"
    )
    allowed_combinations: list[str] | None = Field(None, alias="allowedCombinations")
    created_date_time: datetime | None = Field(None, alias="createdDateTime")
    modified_date_time: datetime | None = Field(None, alias="modifiedDateTime")


# =============================================================================
# Named locations
# =============================================================================


class IpRange(GraphModel):
    """A single CIDR range of an IP named location."""

    odata_type: str | None = Field(None, alias="@odata.type")
    cidr_address: str = Field(..., alias="cidrAddress")


class NamedLocationBase(GraphModel):
    id: str | None = None
    display_name: str | None = Field(None, alias="displayName")
    created_date_time: datetime | None = Field(None, alias="createdDateTime")
    modified_date_time: datetime | None = Field(None, alias="modifiedDateTime")


class IpNamedLocation(NamedLocationBase):
    odata_type: Literal["#microsoft.graph.ipNamedLocation"] = Field(
        ODATA_TYPE_IP_NAMED_LOCATION, alias="@odata.type"
    )
    ip_ranges: list[IpRange] | None = Field(None, alias="ipRanges")
    is_trusted: bool | None = Field(None, alias="isTrusted")


class CountryNamedLocation(NamedLocationBase):
    odata_type: Literal["#microsoft.graph.countryNamedLocation"] = Field(
        ODATA_TYPE_COUNTRY_NAMED_LOCATION, alias="@odata.type"
    )
    countries_and_regions: list[str] | None = Field(None, alias="countriesAndRegions")
    include_unknown_countries_and_regions: bool | None = Field(
        None, alias="includeUnknownCountriesAndRegions"
    )
    country_lookup_method: str | None = Field(None, alias="countryLookupMethod")


NamedLocation = Annotated[
    IpNamedLocation | CountryNamedLocation, Field(discriminator="odata_type")
]

NAMED_LOCATION_TYPES: tuple[str, ...] = (
    ODATA_TYPE_IP_NAMED_LOCATION,
    ODATA_TYPE_COUNTRY_NAMED_LOCATION,
)

_named_location_adapter = TypeAdapter(NamedLocation)


def parse_named_location(data: Any) -> IpNamedLocation | CountryNamedLocation:
    """
    Validate a named location body into its concrete variant.

    Raises:
        pydantic.ValidationError: If the tag is missing or unknown, or the
            body does not match the selected variant
    """
    return _named_location_adapter.validate_python(data)


# =============================================================================
# Conditional access policies
# =============================================================================


class ConditionalAccessApplications(GraphModel):
    include_applications: list[str] | None = Field(None, alias="includeApplications")
    exclude_applications: list[str] | None = Field(None, alias="excludeApplications")
    include_user_actions: list[str] | None = Field(None, alias="includeUserActions")


class ConditionalAccessUsers(GraphModel):
    include_users: list[str] | None = Field(None, alias="includeUsers")
    exclude_users: list[str] | None = Field(None, alias="excludeUsers")
    include_groups: list[str] | None = Field(None, alias="includeGroups")
    exclude_groups: list[str] | None = Field(None, alias="excludeGroups")
    include_roles: list[str] | None = Field(None, alias="includeRoles")
    exclude_roles: list[str] | None = Field(None, alias="excludeRoles")


class ConditionalAccessLocations(GraphModel):
    include_locations: list[str] | None = Field(None, alias="includeLocations")
    exclude_locations: list[str] | None = Field(None, alias="excludeLocations")


class ConditionalAccessPlatforms(GraphModel):
    include_platforms: list[str] | None = Field(None, alias="includePlatforms")
    exclude_platforms: list[str] | None = Field(None, alias="excludePlatforms")


class ConditionalAccessConditionSet(GraphModel):
    applications: ConditionalAccessApplications | None = None
    users: ConditionalAccessUsers | None = None
    client_app_types: list[str] | None = Field(None, alias="clientAppTypes")
    locations: ConditionalAccessLocations | None = None
    platforms: ConditionalAccessPlatforms | None = None
    sign_in_risk_levels: list[str] | None = Field(None, alias="signInRiskLevels")
    user_risk_levels: list[str] | None = Field(None, alias="userRiskLevels")


class AuthenticationStrengthReference(GraphModel):
    id: str | None = None
    display_name: str | None = Field(None, alias="displayName")


class ConditionalAccessGrantControls(GraphModel):
    operator: str | None = None
    built_in_controls: list[str] | None = Field(None, alias="builtInControls")
    custom_authentication_factors: list[str] | None = Field(
        None, alias="customAuthenticationFactors"
    )
    terms_of_use: list[str] | None = Field(None, alias="termsOfUse")
    authentication_strength: AuthenticationStrengthReference | None = Field(
        None, alias="authenticationStrength"
    )


class ApplicationEnforcedRestrictionsSessionControl(GraphModel):
    is_enabled: bool | None = Field(None, alias="isEnabled")


class CloudAppSecuritySessionControl(GraphModel):
    is_enabled: bool | None = Field(None, alias="isEnabled")
    cloud_app_security_type: str | None = Field(None, alias="cloudAppSecurityType")


class PersistentBrowserSessionControl(GraphModel):
    is_enabled: bool | None = Field(None, alias="isEnabled")
    mode: str | None = None


class SignInFrequencySessionControl(GraphModel):
    is_enabled: bool | None = Field(None, alias="isEnabled")
    type: str | None = None
    value: int | None = None


class ConditionalAccessSessionControls(GraphModel):
    application_enforced_restrictions: (
        ApplicationEnforcedRestrictionsSessionControl | None
    ) = Field(None, alias="applicationEnforcedRestrictions")
    cloud_app_security: CloudAppSecuritySessionControl | None = Field(
        None, alias="cloudAppSecurity"
    )
    persistent_browser: PersistentBrowserSessionControl | None = Field(
        None, alias="persistentBrowser"
    )
    sign_in_frequency: SignInFrequencySessionControl | None = Field(
        None, alias="signInFrequency"
    )
    disable_resilience_defaults: bool | None = Field(
        None, alias="disableResilienceDefaults"
    )


class ConditionalAccessPolicy(GraphModel):
    id: str | None = None
    display_name: str | None = Field(None, alias="displayName")
    state: str | None = None
    conditions: ConditionalAccessConditionSet | None = None
    grant_controls: ConditionalAccessGrantControls | None = Field(
        None, alias="grantControls"
    )
    session_controls: ConditionalAccessSessionControls | None = Field(
        None, alias="sessionControls"
    )
    created_date_time: datetime | None = Field(None, alias="createdDateTime")
    modified_date_time: datetime | None = Field(None, alias="modifiedDateTime")
