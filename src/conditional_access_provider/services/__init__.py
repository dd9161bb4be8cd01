"""
Services package - Lifecycle logic for Conditional Access resources.

Contains the resource classes implementing create, read, update and delete
for each resource type on top of the Graph entity clients.
"""

from .authentication_strength_resource import AuthenticationStrengthPolicyResource
from .base_resource import BaseResource
from .conditional_access_policy_resource import ConditionalAccessPolicyResource
from .named_location_resource import NamedLocationResource

__all__ = [
    "BaseResource",
    "AuthenticationStrengthPolicyResource",
    "NamedLocationResource",
    "ConditionalAccessPolicyResource",
]
