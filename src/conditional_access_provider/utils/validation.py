"""
Validation utilities for resource identifiers.

Configuration payloads are validated by the pydantic spec models; this
module covers the identifiers passed to lifecycle operations.
"""

import logging
import uuid

from conditional_access_provider.constants import ERROR_INVALID_IMPORT_ID
from conditional_access_provider.errors import ValidationError

logger = logging.getLogger(__name__)


def validate_resource_id(resource_id: str | None, resource_type: str = "resource") -> str:
    """
    Validate that a resource id is a non-empty string.

    Raises:
        ValidationError: If the id is missing or blank
    """
    if not resource_id or not resource_id.strip():
        raise ValidationError(f"{resource_type} ID cannot be empty", field="id")
    return resource_id


def validate_import_id(resource_id: str, resource_type: str = "resource") -> str:
    """
    Validate an id supplied for import; Graph object ids are UUIDs.

    Args:
        resource_id: Id to validate
        resource_type: Type of resource for error messages

    Returns:
        The id, unchanged

    Raises:
        ValidationError: If the id is not a UUID
    """
    validate_resource_id(resource_id, resource_type)
    try:
        uuid.UUID(resource_id)
    except ValueError as e:
        raise ValidationError(
            ERROR_INVALID_IMPORT_ID.format(resource_id, e),
            field="id",
            user_action=f"Import {resource_type} using its object ID (a UUID)",
        ) from e

    logger.debug(f"Validated {resource_type} import ID: {resource_id}")
    return resource_id
