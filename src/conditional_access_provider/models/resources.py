"""
Pydantic models for the declarative resource configurations.

Each spec model is the typed desired state of one resource type, built from
the caller's mapping of field name to configured value. Specs convert to the
Graph wire models for requests (``to_graph_model``) and are rebuilt from
observed Graph entities (``from_graph_model``) so that desired and observed
state can be compared field by field.
"""

import ipaddress
from typing import Any, Literal, Self, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from conditional_access_provider.constants import (
    ODATA_TYPE_IPV4_CIDR_RANGE,
    ODATA_TYPE_IPV6_CIDR_RANGE,
)
from conditional_access_provider.models.graph_api import (
    ApplicationEnforcedRestrictionsSessionControl,
    AuthenticationStrengthPolicy,
    AuthenticationStrengthReference,
    CloudAppSecuritySessionControl,
    ConditionalAccessApplications,
    ConditionalAccessConditionSet,
    ConditionalAccessGrantControls,
    ConditionalAccessLocations,
    ConditionalAccessPlatforms,
    ConditionalAccessPolicy,
    ConditionalAccessSessionControls,
    ConditionalAccessUsers,
    CountryNamedLocation,
    IpNamedLocation,
    IpRange,
    PersistentBrowserSessionControl,
    SignInFrequencySessionControl,
)


def _normalize(value: Any) -> Any:
    """Reduce a value to a comparable form; lists of scalars compare as sets."""
    if isinstance(value, BaseModel):
        return {
            name: _normalize(getattr(value, name)) for name in type(value).model_fields
        }
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, list):
        items = [_normalize(v) for v in value]
        if all(isinstance(v, str | int | float | bool) for v in items):
            return sorted(items, key=repr)
        return items
    return value


def values_equal(left: Any, right: Any) -> bool:
    """Structural equality used for convergence checks."""
    return _normalize(left) == _normalize(right)


def _non_empty(value: str, field: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{field} must not be empty")
    return value


class ResourceSpec(BaseModel):
    """Base for resource specs: unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    def to_state(self) -> dict[str, Any]:
        """Caller-visible representation of this spec."""
        return self.model_dump()

    def differing_fields(
        self, other: "ResourceSpec", fields: list[str] | None = None
    ) -> list[str]:
        """Names of the given fields (default: all) whose values differ."""
        names = fields if fields is not None else list(type(self).model_fields)
        return [
            name
            for name in names
            if not values_equal(getattr(self, name), getattr(other, name))
        ]


# =============================================================================
# Authentication strength policy
# =============================================================================


class AuthenticationStrengthPolicySpec(ResourceSpec):
    """Desired state of an authentication strength policy."""

    display_name: str = Field(..., description="Display name of the policy")
    description: str = Field(..., description="Description of the policy")
    allowed_combinations: list[str] = Field(
        ...,
        min_length=1,
        description="Authentication method combinations, e.g. 'password,sms'",
    )

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v):
        return _non_empty(v, "display_name")

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return _non_empty(v, "description")

    @field_validator("allowed_combinations")
    @classmethod
    def validate_allowed_combinations(cls, v):
        for combination in v:
            _non_empty(combination, "allowed_combinations")
        return v

    def to_graph_model(self, policy_id: str | None = None) -> AuthenticationStrengthPolicy:
        return AuthenticationStrengthPolicy(
            id=policy_id,
            display_name=self.display_name,
            description=self.description,
            allowed_combinations=list(self.allowed_combinations),
        )

    @classmethod
    def from_graph_model(cls, policy: AuthenticationStrengthPolicy) -> Self:
        # Observed state is not validated: Graph is the source of truth
        return cls.model_construct(
            display_name=policy.display_name or "",
            description=policy.description or "",
            allowed_combinations=list(policy.allowed_combinations or []),
        )


# =============================================================================
# Named location
# =============================================================================


class IpLocationSpec(BaseModel):
    """IP-range-based location criteria."""

    model_config = ConfigDict(extra="forbid")

    ip_ranges: list[str] = Field(
        ..., min_length=1, description="IPv4 or IPv6 ranges in CIDR notation"
    )
    trusted: bool = Field(False, description="Whether the location is trusted")

    @field_validator("ip_ranges")
    @classmethod
    def validate_ip_ranges(cls, v):
        for cidr in v:
            if "/" not in cidr:
                raise ValueError(f"'{cidr}' is not in CIDR notation")
            try:
                ipaddress.ip_network(cidr, strict=False)
            except ValueError as e:
                raise ValueError(f"'{cidr}' is not a valid CIDR range: {e}") from e
        return v


class CountryLocationSpec(BaseModel):
    """Country-list-based location criteria."""

    model_config = ConfigDict(extra="forbid")

    countries_and_regions: list[str] = Field(
        ..., min_length=1, description="ISO 3166-1 alpha-2 country codes"
    )
    include_unknown_countries_and_regions: bool = Field(
        False, description="Whether unknown countries and regions match"
    )
    country_lookup_method: Literal["clientIpAddress", "authenticatorAppGps"] = Field(
        "clientIpAddress", description="How the sign-in country is determined"
    )

    @field_validator("countries_and_regions")
    @classmethod
    def validate_country_codes(cls, v):
        for code in v:
            if len(code) != 2 or not code.isalpha() or not code.isupper():
                raise ValueError(
                    f"'{code}' is not an uppercase ISO 3166-1 alpha-2 country code"
                )
        return v


class NamedLocationSpec(ResourceSpec):
    """Desired state of a named location: exactly one of ``ip`` or ``country``."""

    display_name: str = Field(..., description="Display name of the location")
    ip: IpLocationSpec | None = Field(None, description="IP range criteria")
    country: CountryLocationSpec | None = Field(None, description="Country criteria")

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v):
        return _non_empty(v, "display_name")

    @model_validator(mode="after")
    def validate_exactly_one_kind(self) -> Self:
        if (self.ip is None) == (self.country is None):
            raise ValueError("exactly one of `ip` or `country` must be specified")
        return self

    def to_graph_model(
        self, location_id: str | None = None
    ) -> IpNamedLocation | CountryNamedLocation:
        if self.ip is not None:
            return IpNamedLocation(
                id=location_id,
                display_name=self.display_name,
                ip_ranges=[
                    IpRange(odata_type=_cidr_odata_type(cidr), cidr_address=cidr)
                    for cidr in self.ip.ip_ranges
                ],
                is_trusted=self.ip.trusted,
            )
        country = cast(CountryLocationSpec, self.country)
        return CountryNamedLocation(
            id=location_id,
            display_name=self.display_name,
            countries_and_regions=list(country.countries_and_regions),
            include_unknown_countries_and_regions=country.include_unknown_countries_and_regions,
            country_lookup_method=country.country_lookup_method,
        )

    @classmethod
    def from_graph_model(cls, location: IpNamedLocation | CountryNamedLocation) -> Self:
        match location:
            case IpNamedLocation():
                return cls.model_construct(
                    display_name=location.display_name or "",
                    ip=flatten_ip_location(location),
                    country=None,
                )
            case CountryNamedLocation():
                return cls.model_construct(
                    display_name=location.display_name or "",
                    ip=None,
                    country=flatten_country_location(location),
                )
        raise TypeError(f"unsupported named location type {type(location).__name__}")


def _cidr_odata_type(cidr: str) -> str:
    network = ipaddress.ip_network(cidr, strict=False)
    if network.version == 6:
        return ODATA_TYPE_IPV6_CIDR_RANGE
    return ODATA_TYPE_IPV4_CIDR_RANGE


def flatten_ip_location(location: IpNamedLocation) -> IpLocationSpec:
    return IpLocationSpec.model_construct(
        ip_ranges=[r.cidr_address for r in location.ip_ranges or []],
        trusted=bool(location.is_trusted),
    )


def flatten_country_location(location: CountryNamedLocation) -> CountryLocationSpec:
    return CountryLocationSpec.model_construct(
        countries_and_regions=list(location.countries_and_regions or []),
        include_unknown_countries_and_regions=bool(
            location.include_unknown_countries_and_regions
        ),
        country_lookup_method=location.country_lookup_method or "clientIpAddress",
    )


# =============================================================================
# Conditional access policy
# =============================================================================


class ApplicationsSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    included_applications: list[str] = Field(default_factory=list)
    excluded_applications: list[str] = Field(default_factory=list)
    included_user_actions: list[str] = Field(default_factory=list)


class UsersSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    included_users: list[str] = Field(default_factory=list)
    excluded_users: list[str] = Field(default_factory=list)
    included_groups: list[str] = Field(default_factory=list)
    excluded_groups: list[str] = Field(default_factory=list)
    included_roles: list[str] = Field(default_factory=list)
    excluded_roles: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_has_inclusion(self) -> Self:
        if not (self.included_users or self.included_groups or self.included_roles):
            raise ValueError(
                "one of included_users, included_groups or included_roles is required"
            )
        return self


class LocationsSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    included_locations: list[str] = Field(..., min_length=1)
    excluded_locations: list[str] = Field(default_factory=list)


class PlatformsSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    included_platforms: list[str] = Field(..., min_length=1)
    excluded_platforms: list[str] = Field(default_factory=list)


class ConditionsSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    applications: ApplicationsSpec
    users: UsersSpec
    client_app_types: list[str] = Field(..., min_length=1)
    locations: LocationsSpec | None = None
    platforms: PlatformsSpec | None = None
    sign_in_risk_levels: list[str] = Field(default_factory=list)
    user_risk_levels: list[str] = Field(default_factory=list)


class GrantControlsSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    operator: Literal["AND", "OR"]
    built_in_controls: list[str] = Field(default_factory=list)
    custom_authentication_factors: list[str] = Field(default_factory=list)
    terms_of_use: list[str] = Field(default_factory=list)
    authentication_strength_policy_id: str | None = None

    @model_validator(mode="after")
    def validate_has_control(self) -> Self:
        if not (
            self.built_in_controls
            or self.custom_authentication_factors
            or self.terms_of_use
            or self.authentication_strength_policy_id
        ):
            raise ValueError("grant_controls must specify at least one control")
        return self


class SessionControlsSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    application_enforced_restrictions_enabled: bool = False
    cloud_app_security_policy: (
        Literal["blockDownloads", "mcasConfigured", "monitorOnly"] | None
    ) = None
    disable_resilience_defaults: bool = False
    persistent_browser_mode: Literal["always", "never"] | None = None
    sign_in_frequency: int | None = Field(None, gt=0)
    sign_in_frequency_period: Literal["hours", "days"] | None = None

    @model_validator(mode="after")
    def validate_sign_in_frequency(self) -> Self:
        if (self.sign_in_frequency is None) != (self.sign_in_frequency_period is None):
            raise ValueError(
                "sign_in_frequency and sign_in_frequency_period must be set together"
            )
        return self


class ConditionalAccessPolicySpec(ResourceSpec):
    """Desired state of a conditional access policy."""

    display_name: str
    state: Literal["enabled", "disabled", "enabledForReportingButNotEnforced"]
    conditions: ConditionsSpec
    grant_controls: GrantControlsSpec | None = None
    session_controls: SessionControlsSpec | None = None

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v):
        return _non_empty(v, "display_name")

    @model_validator(mode="after")
    def validate_has_controls(self) -> Self:
        if self.grant_controls is None and self.session_controls is None:
            raise ValueError("at least one of grant_controls or session_controls is required")
        return self

    def to_graph_model(self, policy_id: str | None = None) -> ConditionalAccessPolicy:
        c = self.conditions
        conditions = ConditionalAccessConditionSet(
            applications=ConditionalAccessApplications(
                include_applications=c.applications.included_applications,
                exclude_applications=c.applications.excluded_applications,
                include_user_actions=c.applications.included_user_actions,
            ),
            users=ConditionalAccessUsers(
                include_users=c.users.included_users,
                exclude_users=c.users.excluded_users,
                include_groups=c.users.included_groups,
                exclude_groups=c.users.excluded_groups,
                include_roles=c.users.included_roles,
                exclude_roles=c.users.excluded_roles,
            ),
            client_app_types=c.client_app_types,
            sign_in_risk_levels=c.sign_in_risk_levels,
            user_risk_levels=c.user_risk_levels,
        )
        if c.locations is not None:
            conditions.locations = ConditionalAccessLocations(
                include_locations=c.locations.included_locations,
                exclude_locations=c.locations.excluded_locations,
            )
        if c.platforms is not None:
            conditions.platforms = ConditionalAccessPlatforms(
                include_platforms=c.platforms.included_platforms,
                exclude_platforms=c.platforms.excluded_platforms,
            )

        policy = ConditionalAccessPolicy(
            id=policy_id,
            display_name=self.display_name,
            state=self.state,
            conditions=conditions,
        )

        if (g := self.grant_controls) is not None:
            policy.grant_controls = ConditionalAccessGrantControls(
                operator=g.operator,
                built_in_controls=g.built_in_controls,
                custom_authentication_factors=g.custom_authentication_factors,
                terms_of_use=g.terms_of_use,
            )
            if g.authentication_strength_policy_id:
                policy.grant_controls.authentication_strength = (
                    AuthenticationStrengthReference(id=g.authentication_strength_policy_id)
                )

        if (s := self.session_controls) is not None:
            session = ConditionalAccessSessionControls(
                disable_resilience_defaults=s.disable_resilience_defaults
            )
            if s.application_enforced_restrictions_enabled:
                session.application_enforced_restrictions = (
                    ApplicationEnforcedRestrictionsSessionControl(is_enabled=True)
                )
            if s.cloud_app_security_policy:
                session.cloud_app_security = CloudAppSecuritySessionControl(
                    is_enabled=True, cloud_app_security_type=s.cloud_app_security_policy
                )
            if s.persistent_browser_mode:
                session.persistent_browser = PersistentBrowserSessionControl(
                    is_enabled=True, mode=s.persistent_browser_mode
                )
            if s.sign_in_frequency is not None:
                session.sign_in_frequency = SignInFrequencySessionControl(
                    is_enabled=True,
                    type=s.sign_in_frequency_period,
                    value=s.sign_in_frequency,
                )
            policy.session_controls = session

        return policy

    @classmethod
    def from_graph_model(cls, policy: ConditionalAccessPolicy) -> Self:
        c = policy.conditions or ConditionalAccessConditionSet()
        apps = c.applications or ConditionalAccessApplications()
        users = c.users or ConditionalAccessUsers()

        conditions = ConditionsSpec.model_construct(
            applications=ApplicationsSpec.model_construct(
                included_applications=list(apps.include_applications or []),
                excluded_applications=list(apps.exclude_applications or []),
                included_user_actions=list(apps.include_user_actions or []),
            ),
            users=UsersSpec.model_construct(
                included_users=list(users.include_users or []),
                excluded_users=list(users.exclude_users or []),
                included_groups=list(users.include_groups or []),
                excluded_groups=list(users.exclude_groups or []),
                included_roles=list(users.include_roles or []),
                excluded_roles=list(users.exclude_roles or []),
            ),
            client_app_types=list(c.client_app_types or []),
            locations=None,
            platforms=None,
            sign_in_risk_levels=list(c.sign_in_risk_levels or []),
            user_risk_levels=list(c.user_risk_levels or []),
        )
        if c.locations is not None:
            conditions.locations = LocationsSpec.model_construct(
                included_locations=list(c.locations.include_locations or []),
                excluded_locations=list(c.locations.exclude_locations or []),
            )
        if c.platforms is not None:
            conditions.platforms = PlatformsSpec.model_construct(
                included_platforms=list(c.platforms.include_platforms or []),
                excluded_platforms=list(c.platforms.exclude_platforms or []),
            )

        grant_controls = None
        if (g := policy.grant_controls) is not None:
            grant_controls = GrantControlsSpec.model_construct(
                operator=g.operator,
                built_in_controls=list(g.built_in_controls or []),
                custom_authentication_factors=list(g.custom_authentication_factors or []),
                terms_of_use=list(g.terms_of_use or []),
                authentication_strength_policy_id=(
                    g.authentication_strength.id if g.authentication_strength else None
                ),
            )

        session_controls = None
        if (s := policy.session_controls) is not None:
            cas = s.cloud_app_security
            browser = s.persistent_browser
            frequency = s.sign_in_frequency
            frequency_enabled = bool(frequency and frequency.is_enabled)
            session_controls = SessionControlsSpec.model_construct(
                application_enforced_restrictions_enabled=bool(
                    s.application_enforced_restrictions
                    and s.application_enforced_restrictions.is_enabled
                ),
                cloud_app_security_policy=(
                    cas.cloud_app_security_type if cas and cas.is_enabled else None
                ),
                disable_resilience_defaults=bool(s.disable_resilience_defaults),
                persistent_browser_mode=(
                    browser.mode if browser and browser.is_enabled else None
                ),
                sign_in_frequency=frequency.value if frequency_enabled else None,
                sign_in_frequency_period=frequency.type if frequency_enabled else None,
            )

        return cls.model_construct(
            display_name=policy.display_name or "",
            state=policy.state,
            conditions=conditions,
            grant_controls=grant_controls,
            session_controls=session_controls,
        )
