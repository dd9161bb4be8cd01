"""
Common models shared across different resource types.

This module defines the structures returned by every resource lifecycle
operation: the diagnostics reported to the caller and the lifecycle result
carrying the observed state.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class Diagnostic(BaseModel):
    """A structured message reported to the infrastructure-as-code host."""

    severity: Literal["error", "warning"] = Field(
        ..., description="Diagnostic severity"
    )
    summary: str = Field(..., description="One-line summary of the problem")
    detail: str = Field("", description="Full error text")
    attribute: str | None = Field(
        None, description="Configuration attribute the diagnostic relates to"
    )


class LifecycleResult(BaseModel):
    """
    Outcome of a create, read, update or delete operation.

    A result with ``state`` set to None and no error diagnostics means the
    resource no longer exists remotely and should be dropped from state.
    """

    id: str | None = Field(None, description="Remote identifier of the resource")
    state: dict[str, Any] | None = Field(
        None, description="Caller-visible fields populated from the observed state"
    )
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(d.severity == "error" for d in self.diagnostics)

    @property
    def removed(self) -> bool:
        """True when the resource is gone and should be dropped from state."""
        return self.state is None and not self.has_errors
