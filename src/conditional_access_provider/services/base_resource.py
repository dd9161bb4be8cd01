"""
Base resource class providing the common lifecycle for Graph resources.

This module defines the BaseResource class that implements the standard
create/read/update/delete flows on top of an entity client:

- Desired-state validation through pydantic spec models
- Convergence polling after writes and confirmation polling after deletes
- Not-found handling (read removes from state, delete is idempotent)
- Conversion of every failure into a diagnostic naming the resource and
  operation
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from pydantic import ValidationError as PydanticValidationError

from ..constants import (
    ERROR_NIL_ID,
    OPERATION_CREATE,
    OPERATION_DELETE,
    OPERATION_READ,
    OPERATION_UPDATE,
    STATE_ABSENT,
    STATE_PENDING,
    STATE_UPDATED,
)
from ..errors import (
    BadResponseError,
    ConvergenceTimeoutError,
    GraphAPIError,
    ProviderError,
    ReconciliationError,
    ValidationError,
)
from ..models.common import LifecycleResult
from ..models.resources import ResourceSpec
from ..observability.logging import ProviderLogger
from ..observability.metrics import metrics_collector
from ..observability.tracing import traced_operation
from ..settings import Settings
from ..settings import settings as default_settings
from ..utils.conditional_access_api import ConditionalAccessClient
from ..utils.polling import (
    StateChangeConf,
    WaitTimeoutError,
    convergence_refresh,
    deletion_refresh,
)
from ..utils.validation import validate_import_id, validate_resource_id


@dataclass
class OperationContext:
    """Mutable per-operation state; ``resource_id`` is set once known."""

    operation: str
    resource_id: str | None
    deadline: float
    timeout: float

    def remaining(self) -> float:
        remaining = self.deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise ConvergenceTimeoutError(
                f"{self.operation} did not complete within {self.timeout}s",
                timeout=self.timeout,
            )
        return remaining


def _validation_message(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "(root)"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


class BaseResource(ABC):
    """
    Base class for all Graph-backed resources.

    Subclasses bind an entity client and a spec model and implement the
    single-request hooks; this class supplies the lifecycle around them.
    """

    resource_type: ClassVar[str]
    spec_class: ClassVar[type[ResourceSpec]]

    def __init__(
        self, client: ConditionalAccessClient, settings: Settings | None = None
    ):
        """
        Initialize base resource.

        Args:
            client: Conditional Access entity clients
            settings: Provider settings, defaults to the environment settings
        """
        self.client = client
        self.settings = settings or default_settings
        self.logger = ProviderLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Hooks implemented by each resource type
    # ------------------------------------------------------------------

    @abstractmethod
    async def fetch(self, resource_id: str, disable_retries: bool = False) -> Any:
        """Read the remote object (a Graph model)."""

    @abstractmethod
    async def post(self, spec: ResourceSpec) -> Any:
        """Create the remote object and return the created Graph model."""

    @abstractmethod
    async def patch(
        self,
        resource_id: str,
        spec: ResourceSpec,
        changed: list[str] | None,
        prior: ResourceSpec | None,
    ) -> None:
        """Send the changes in ``spec``; ``changed`` is None when unknown."""

    @abstractmethod
    async def remove(self, resource_id: str) -> None:
        """Delete the remote object."""

    def to_spec(self, observed: Any) -> ResourceSpec:
        return self.spec_class.from_graph_model(observed)

    def to_state(self, resource_id: str, observed: Any) -> dict[str, Any]:
        """Caller-visible state for an observed Graph model."""
        return {"id": resource_id, **self.to_spec(observed).to_state()}

    async def before_delete(self, resource_id: str, current: Any) -> None:
        """Prepare the remote object for deletion (no-op by default)."""

    # ------------------------------------------------------------------
    # Lifecycle surface
    # ------------------------------------------------------------------

    async def create(
        self, config: dict[str, Any], timeout: float | None = None
    ) -> LifecycleResult:
        return await self._run(
            OPERATION_CREATE,
            None,
            timeout or self.settings.create_timeout_seconds,
            lambda ctx: self._do_create(ctx, config),
        )

    async def read(
        self, resource_id: str, timeout: float | None = None
    ) -> LifecycleResult:
        return await self._run(
            OPERATION_READ,
            resource_id,
            timeout or self.settings.read_timeout_seconds,
            lambda ctx: self._do_read(ctx),
        )

    async def update(
        self,
        resource_id: str,
        config: dict[str, Any],
        prior: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> LifecycleResult:
        return await self._run(
            OPERATION_UPDATE,
            resource_id,
            timeout or self.settings.update_timeout_seconds,
            lambda ctx: self._do_update(ctx, config, prior),
        )

    async def delete(
        self, resource_id: str, timeout: float | None = None
    ) -> LifecycleResult:
        return await self._run(
            OPERATION_DELETE,
            resource_id,
            timeout or self.settings.delete_timeout_seconds,
            lambda ctx: self._do_delete(ctx),
        )

    async def import_id(
        self, resource_id: str, timeout: float | None = None
    ) -> LifecycleResult:
        """Validate an id supplied for import and read the object it names."""
        try:
            validate_import_id(resource_id, self.resource_type)
        except ValidationError as e:
            return LifecycleResult(
                id=resource_id,
                diagnostics=[
                    e.as_diagnostic(
                        f"Import failed for {self.resource_type} {resource_id!r}",
                        attribute="id",
                    )
                ],
            )
        return await self.read(resource_id, timeout=timeout)

    # ------------------------------------------------------------------
    # Operation runner
    # ------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        resource_id: str | None,
        timeout: float,
        func: Callable[[OperationContext], Awaitable[LifecycleResult]],
    ) -> LifecycleResult:
        """
        Run one lifecycle operation with logging, metrics and tracing.

        Errors never escape: they are returned as error diagnostics.
        """
        start_time = time.time()
        loop = asyncio.get_running_loop()
        ctx = OperationContext(
            operation=operation,
            resource_id=resource_id,
            deadline=loop.time() + timeout,
            timeout=timeout,
        )

        self.logger.log_operation_start(self.resource_type, operation, resource_id)

        try:
            async with metrics_collector.track_operation(self.resource_type, operation):
                with traced_operation(
                    f"{self.resource_type}.{operation}",
                    {"resource.type": self.resource_type, "resource.id": resource_id or ""},
                ):
                    try:
                        async with asyncio.timeout_at(ctx.deadline):
                            result = await func(ctx)
                    except WaitTimeoutError as e:
                        raise ConvergenceTimeoutError(
                            str(e), last_state=e.last_state, timeout=e.timeout
                        ) from e
                    except TimeoutError as e:
                        raise ConvergenceTimeoutError(
                            f"{operation} did not complete within {timeout}s",
                            timeout=timeout,
                        ) from e
                    except PydanticValidationError as e:
                        raise ValidationError(_validation_message(e)) from e
        except ProviderError as e:
            return self._failed(ctx, e, start_time)
        except Exception as e:
            error = ReconciliationError(f"Unexpected error during {operation}: {e}")
            error.cause = e
            return self._failed(ctx, error, start_time)

        self.logger.log_operation_success(
            self.resource_type, operation, ctx.resource_id, time.time() - start_time
        )
        return result

    def _failed(
        self, ctx: OperationContext, error: ProviderError, start_time: float
    ) -> LifecycleResult:
        self.logger.log_operation_error(
            self.resource_type,
            ctx.operation,
            ctx.resource_id,
            error,
            time.time() - start_time,
        )
        target = ctx.resource_id or "new resource"
        summary = f"{ctx.operation.capitalize()} failed for {self.resource_type} {target}"
        attribute = getattr(error, "field", None)
        return LifecycleResult(
            id=ctx.resource_id, diagnostics=[error.as_diagnostic(summary, attribute)]
        )

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def parse_config(self, config: dict[str, Any]) -> ResourceSpec:
        data = {k: v for k, v in config.items() if k != "id"}
        return self.spec_class.model_validate(data)

    async def _do_create(
        self, ctx: OperationContext, config: dict[str, Any]
    ) -> LifecycleResult:
        spec = self.parse_config(config)
        created = await self.post(spec)
        resource_id = getattr(created, "id", None)
        if not resource_id:
            raise BadResponseError(ERROR_NIL_ID.format(self.resource_type))
        ctx.resource_id = resource_id

        await self._wait_for_convergence(ctx, resource_id, spec, None)
        return await self._do_read(ctx)

    async def _do_read(self, ctx: OperationContext) -> LifecycleResult:
        resource_id = validate_resource_id(ctx.resource_id, self.resource_type)
        try:
            observed = await self.fetch(resource_id)
        except GraphAPIError as e:
            if not e.not_found:
                raise
            self.logger.warning(
                f"{self.resource_type} {resource_id} was not found, removing from state",
                resource_type=self.resource_type,
                resource_id=resource_id,
                operation=ctx.operation,
            )
            return LifecycleResult(id=resource_id, state=None)

        return LifecycleResult(id=resource_id, state=self.to_state(resource_id, observed))

    async def _do_update(
        self,
        ctx: OperationContext,
        config: dict[str, Any],
        prior: dict[str, Any] | None,
    ) -> LifecycleResult:
        resource_id = validate_resource_id(ctx.resource_id, self.resource_type)
        spec = self.parse_config(config)
        prior_spec = self.parse_config(prior) if prior is not None else None
        changed = spec.differing_fields(prior_spec) if prior_spec is not None else None

        if changed == []:
            self.logger.debug(
                f"No changes for {self.resource_type} {resource_id}",
                resource_id=resource_id,
            )
        else:
            await self.patch(resource_id, spec, changed, prior_spec)
            await self._wait_for_convergence(ctx, resource_id, spec, changed)

        return await self._do_read(ctx)

    async def _do_delete(self, ctx: OperationContext) -> LifecycleResult:
        resource_id = validate_resource_id(ctx.resource_id, self.resource_type)
        try:
            current = await self.fetch(resource_id)
        except GraphAPIError as e:
            if not e.not_found:
                raise
            self.logger.info(
                f"{self.resource_type} {resource_id} already absent",
                resource_id=resource_id,
                operation=ctx.operation,
            )
            return LifecycleResult(id=resource_id, state=None)

        await self.before_delete(resource_id, current)
        await self.remove(resource_id)

        conf = StateChangeConf(
            refresh=deletion_refresh(
                lambda: self.fetch(resource_id, disable_retries=True)
            ),
            pending=[STATE_PENDING],
            target=[STATE_ABSENT],
            timeout=ctx.remaining(),
            min_interval=self.settings.delete_poll_min_interval_seconds,
            continuous_target_occurrence=self.settings.continuous_target_occurrence,
            description=f"deletion of {self.resource_type} {resource_id}",
        )
        await conf.wait_for_state()
        return LifecycleResult(id=resource_id, state=None)

    async def _wait_for_convergence(
        self,
        ctx: OperationContext,
        resource_id: str,
        spec: ResourceSpec,
        fields: list[str] | None,
    ) -> None:
        async def fetch_spec() -> ResourceSpec:
            return self.to_spec(await self.fetch(resource_id))

        conf = StateChangeConf(
            refresh=convergence_refresh(fetch_spec, spec, fields),
            pending=[STATE_PENDING],
            target=[STATE_UPDATED],
            timeout=ctx.remaining(),
            min_interval=self.settings.update_poll_min_interval_seconds,
            continuous_target_occurrence=self.settings.continuous_target_occurrence,
            description=f"{self.resource_type} {resource_id} to converge",
        )
        await conf.wait_for_state()
