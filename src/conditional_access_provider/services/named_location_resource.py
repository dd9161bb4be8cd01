"""
Named location resource.

A named location is either IP-range based or country based. Reads fetch the
location once and dispatch on the concrete variant, populating exactly one
of the ``ip`` or ``country`` blocks.
"""

from typing import Any, cast

from ..constants import RESOURCE_NAMED_LOCATION
from ..errors import UnrecognizedSubtypeError, ValidationError
from ..models.graph_api import (
    NAMED_LOCATION_TYPES,
    CountryNamedLocation,
    IpNamedLocation,
)
from ..models.resources import (
    NamedLocationSpec,
    ResourceSpec,
    flatten_country_location,
    flatten_ip_location,
)
from .base_resource import BaseResource


class NamedLocationResource(BaseResource):
    """Manages IP and country named locations."""

    resource_type = RESOURCE_NAMED_LOCATION
    spec_class = NamedLocationSpec

    @property
    def api(self):
        return self.client.named_locations

    async def fetch(
        self, resource_id: str, disable_retries: bool = False
    ) -> IpNamedLocation | CountryNamedLocation:
        location, _ = await self.api.get(resource_id, disable_retries=disable_retries)
        return location

    async def post(self, spec: ResourceSpec) -> IpNamedLocation | CountryNamedLocation:
        location, _ = await self.api.create(
            cast(NamedLocationSpec, spec).to_graph_model()
        )
        return location

    async def patch(
        self,
        resource_id: str,
        spec: ResourceSpec,
        changed: list[str] | None,
        prior: ResourceSpec | None,
    ) -> None:
        desired = cast(NamedLocationSpec, spec)
        if isinstance(prior, NamedLocationSpec) and (prior.ip is None) != (desired.ip is None):
            raise ValidationError(
                "a named location cannot change between ip and country",
                field="ip" if desired.ip is not None else "country",
                user_action="Replace the named location instead of updating it",
            )
        await self.api.update(desired.to_graph_model(resource_id))

    async def remove(self, resource_id: str) -> None:
        await self.api.delete(resource_id)

    async def before_delete(
        self, resource_id: str, current: IpNamedLocation | CountryNamedLocation
    ) -> None:
        # Graph refuses to delete a trusted IP location
        if isinstance(current, IpNamedLocation) and current.is_trusted:
            self.logger.info(
                f"Marking {self.resource_type} {resource_id} as untrusted before deletion",
                resource_id=resource_id,
            )
            await self.api.update(
                IpNamedLocation(
                    id=resource_id,
                    display_name=current.display_name,
                    ip_ranges=current.ip_ranges,
                    is_trusted=False,
                )
            )

    def to_state(
        self, resource_id: str, observed: IpNamedLocation | CountryNamedLocation
    ) -> dict[str, Any]:
        match observed:
            case IpNamedLocation():
                ip = flatten_ip_location(observed).model_dump()
                country = None
            case CountryNamedLocation():
                ip = None
                country = flatten_country_location(observed).model_dump()
            case _:
                raise UnrecognizedSubtypeError(
                    getattr(observed, "odata_type", None), NAMED_LOCATION_TYPES
                )

        return {
            "id": resource_id,
            "display_name": observed.display_name or "",
            "ip": ip,
            "country": country,
        }
