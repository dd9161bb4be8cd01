"""
Constants used throughout the Conditional Access provider.

This module defines all constant values used by the provider including:
- Microsoft Graph endpoints and entity paths
- OData type discriminators
- Poll state labels
- Default timeouts and retry configuration
"""

# Microsoft Graph endpoints
DEFAULT_GRAPH_ENDPOINT = "https://graph.microsoft.com"
DEFAULT_GRAPH_API_VERSION = "beta"
DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"
GRAPH_DEFAULT_SCOPE = ".default"

# Entity collection paths (relative to the versioned Graph base URL)
AUTHENTICATION_STRENGTH_POLICIES_ENTITY = "/policies/authenticationStrengthPolicies"
NAMED_LOCATIONS_ENTITY = "/identity/conditionalAccess/namedLocations"
CONDITIONAL_ACCESS_POLICIES_ENTITY = "/identity/conditionalAccess/policies"

# OData type discriminators
ODATA_TYPE_IP_NAMED_LOCATION = "#microsoft.graph.ipNamedLocation"
ODATA_TYPE_COUNTRY_NAMED_LOCATION = "#microsoft.graph.countryNamedLocation"
ODATA_TYPE_IPV4_CIDR_RANGE = "#microsoft.graph.iPv4CidrRange"
ODATA_TYPE_IPV6_CIDR_RANGE = "#microsoft.graph.iPv6CidrRange"

# Resource type names exposed by the provider
RESOURCE_AUTHENTICATION_STRENGTH_POLICY = "azuread_authentication_strength_policy"
RESOURCE_NAMED_LOCATION = "azuread_named_location"
RESOURCE_CONDITIONAL_ACCESS_POLICY = "azuread_conditional_access_policy"

# Poll state labels
STATE_PENDING = "Pending"
STATE_UPDATED = "Updated"
STATE_ABSENT = "Absent"

# Lifecycle operation names
OPERATION_CREATE = "create"
OPERATION_READ = "read"
OPERATION_UPDATE = "update"
OPERATION_DELETE = "delete"

# Timeout constants (in seconds)
DEFAULT_OPERATION_TIMEOUT = 300  # 5 minutes
DEFAULT_REQUEST_TIMEOUT = 60

# Polling configuration
DEFAULT_UPDATE_POLL_MIN_INTERVAL = 5.0
DEFAULT_DELETE_POLL_MIN_INTERVAL = 1.0
DEFAULT_CONTINUOUS_TARGET_OCCURRENCE = 5

# Retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_CONSISTENCY_RETRY_ATTEMPTS = 8
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_CONSISTENCY_RETRY_MAX_DELAY = 10.0
THROTTLING_STATUS_CODES = frozenset({429, 503, 504})

# Error message templates
ERROR_BAD_API_RESPONSE = "Bad API response"
ERROR_NIL_ID = "Object ID returned for {} is nil/empty"
ERROR_INVALID_IMPORT_ID = "specified ID ({!r}) is not valid: {}"
