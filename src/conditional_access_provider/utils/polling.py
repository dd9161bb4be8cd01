"""
State-refresh polling for eventually consistent Graph resources.

Microsoft Graph acknowledges writes before every replica reflects them. The
lifecycle operations therefore poll the remote object until it has been
observed in the expected state several times in a row:

- ``StateChangeConf`` drives the polling loop
- ``convergence_refresh`` compares observed fields with the desired spec
- ``deletion_refresh`` reports ``Absent`` once reads return 404
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Collection
from typing import Any

from conditional_access_provider.constants import (
    DEFAULT_CONTINUOUS_TARGET_OCCURRENCE,
    DEFAULT_UPDATE_POLL_MIN_INTERVAL,
    STATE_ABSENT,
    STATE_PENDING,
    STATE_UPDATED,
)
from conditional_access_provider.errors import GraphAPIError
from conditional_access_provider.models.resources import ResourceSpec
from conditional_access_provider.observability.metrics import metrics_collector

logger = logging.getLogger(__name__)

RefreshFunc = Callable[[], Awaitable[tuple[Any, str]]]


class WaitTimeoutError(Exception):
    """The target state was not reached before the deadline."""

    def __init__(
        self,
        message: str,
        last_state: str | None,
        target: Collection[str],
        timeout: float,
        probes: int,
    ):
        super().__init__(message)
        self.last_state = last_state
        self.target = tuple(target)
        self.timeout = timeout
        self.probes = probes


class StateChangeConf:
    """
    Poll ``refresh`` until it reports a target state enough times in a row.

    ``refresh`` returns ``(result, state)`` and raises on failure. Any
    exception it raises aborts the wait immediately and propagates unchanged.
    """

    def __init__(
        self,
        refresh: RefreshFunc,
        pending: Collection[str],
        target: Collection[str],
        timeout: float,
        min_interval: float = DEFAULT_UPDATE_POLL_MIN_INTERVAL,
        delay: float = 0,
        continuous_target_occurrence: int = DEFAULT_CONTINUOUS_TARGET_OCCURRENCE,
        description: str | None = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        if min_interval < 0:
            raise ValueError(f"min_interval must not be negative, got {min_interval}")
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        if continuous_target_occurrence < 1:
            raise ValueError(
                "continuous_target_occurrence must be at least 1, "
                f"got {continuous_target_occurrence}"
            )
        if not target:
            raise ValueError("target must contain at least one state")
        overlap = set(pending) & set(target)
        if overlap:
            raise ValueError(
                f"states cannot be both pending and target: {sorted(overlap)}"
            )

        self.refresh = refresh
        self.pending = tuple(pending)
        self.target = tuple(target)
        self.timeout = timeout
        self.min_interval = min_interval
        self.delay = delay
        self.continuous_target_occurrence = continuous_target_occurrence
        self.description = description or "state change"

    def _timeout_error(self, last_state: str | None, probes: int) -> WaitTimeoutError:
        wanted = ", ".join(repr(t) for t in self.target)
        if last_state is not None and last_state not in self.pending + self.target:
            message = (
                f"unexpected state {last_state!r} while waiting for {self.description}, "
                f"wanted target {wanted}"
            )
        else:
            message = (
                f"timeout while waiting for {self.description} to become {wanted} "
                f"(last state: {last_state!r}, timeout: {self.timeout}s)"
            )
        return WaitTimeoutError(
            message,
            last_state=last_state,
            target=self.target,
            timeout=self.timeout,
            probes=probes,
        )

    async def wait_for_state(self) -> Any:
        """
        Run the polling loop.

        Returns:
            The ``result`` of the last successful probe

        Raises:
            WaitTimeoutError: If the deadline passes first
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        if self.delay:
            await asyncio.sleep(min(self.delay, self.timeout))

        probes = 0
        consecutive = 0
        last_state: str | None = None

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break

            probe_started = loop.time()
            try:
                async with asyncio.timeout(remaining) as probe_timeout:
                    result, state = await self.refresh()
            except TimeoutError:
                if not probe_timeout.expired():
                    raise
                logger.debug(f"Probe for {self.description} cancelled at deadline")
                break

            probes += 1
            last_state = state
            metrics_collector.record_probe(state)

            if state in self.target:
                consecutive += 1
                logger.debug(
                    f"Observed {state!r} for {self.description} "
                    f"({consecutive}/{self.continuous_target_occurrence})",
                    extra={"poll_state": state, "probe_count": probes},
                )
                if consecutive >= self.continuous_target_occurrence:
                    metrics_collector.record_wait("success")
                    return result
            elif state in self.pending:
                consecutive = 0
                logger.debug(
                    f"Waiting for {self.description}, state is {state!r}",
                    extra={"poll_state": state, "probe_count": probes},
                )
            else:
                consecutive = 0
                logger.warning(
                    f"Unexpected state {state!r} while waiting for {self.description}",
                    extra={"poll_state": state, "probe_count": probes},
                )

            # Fixed cadence: the probe duration counts towards the interval
            wait = self.min_interval - (loop.time() - probe_started)
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            if wait > 0:
                await asyncio.sleep(min(wait, remaining))

        metrics_collector.record_wait("timeout")
        error = self._timeout_error(last_state, probes)
        logger.warning(str(error), extra={"poll_state": last_state, "probe_count": probes})
        raise error


def convergence_refresh(
    fetch: Callable[[], Awaitable[ResourceSpec]],
    desired: ResourceSpec,
    fields: list[str] | None = None,
) -> RefreshFunc:
    """
    Build a refresh function reporting whether the remote record has converged.

    Args:
        fetch: Reads the remote record and returns it as a spec of the same
            type as ``desired``
        desired: Desired state
        fields: Fields to compare (default: every field)

    Returns:
        Refresh function yielding ``(observed, "Pending" | "Updated")``
    """

    async def refresh() -> tuple[ResourceSpec, str]:
        observed = await fetch()
        differing = desired.differing_fields(observed, fields)
        if differing:
            logger.debug(f"Fields not yet converged: {', '.join(differing)}")
            return observed, STATE_PENDING
        return observed, STATE_UPDATED

    return refresh


def deletion_refresh(probe: Callable[[], Awaitable[Any]]) -> RefreshFunc:
    """
    Build a refresh function reporting whether the remote record is gone.

    ``probe`` must read the record with retries disabled so that a 404 is
    reported immediately. A 404 yields ``Absent``, a successful read yields
    ``Pending``, and any other error propagates.
    """

    async def refresh() -> tuple[Any, str]:
        try:
            found = await probe()
        except GraphAPIError as e:
            if e.not_found:
                return None, STATE_ABSENT
            raise
        return found, STATE_PENDING

    return refresh
