"""
Utils package - Utility modules for Conditional Access provider functionality.

Contains helper modules for:
- Microsoft Graph transport and entity clients
- State-refresh polling for eventual consistency
- Identifier validation
"""

from conditional_access_provider.utils.polling import (
    StateChangeConf,
    WaitTimeoutError,
    convergence_refresh,
    deletion_refresh,
)
from conditional_access_provider.utils.validation import (
    validate_import_id,
    validate_resource_id,
)

__all__ = [
    "StateChangeConf",
    "WaitTimeoutError",
    "convergence_refresh",
    "deletion_refresh",
    "validate_import_id",
    "validate_resource_id",
]
