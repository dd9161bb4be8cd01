"""
Microsoft Graph REST client utilities.

This module provides the low-level transport used by the Conditional Access
entity clients: it authenticates through an azure-identity credential, issues
requests against fixed entity URIs, and validates response status codes.

The client handles:
- Bearer tokens from the credential and re-authentication on 401
- Status-code validation against a per-request list of valid codes
- Consistency-failure retries for 404s caused by read-after-write lag
- Throttling retries for 429/503/504 honouring Retry-After
- Per-call retry suppression (``disable_retries``)
"""

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar
from urllib.parse import urlsplit

import httpx
from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import AzureError, ClientAuthenticationError
from azure.identity.aio import ClientSecretCredential
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from conditional_access_provider import constants
from conditional_access_provider.errors import (
    BadResponseError,
    ConfigurationError,
    GraphAPIError,
    GraphTransportError,
)
from conditional_access_provider.observability.metrics import metrics_collector
from conditional_access_provider.observability.tracing import (
    inject_trace_context,
    traced_operation,
)
from conditional_access_provider.settings import Settings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

ConsistencyFailureFunc = Callable[[httpx.Response], bool]

_ID_SEGMENT = re.compile(r"/[0-9a-fA-F]{8}-[0-9a-fA-F-]{27}(?=/|$)")


def entity_label(entity: str) -> str:
    """Entity path with object ids collapsed, for low-cardinality metric labels."""
    path = urlsplit(entity).path if "://" in entity else entity
    return _ID_SEGMENT.sub("/{id}", path)


def retry_on_404(response: httpx.Response) -> bool:
    """Treat a 404 as a propagation delay rather than a genuine absence."""
    return response.status_code == 404


@dataclass
class ODataQuery:
    """OData query options encoded as ``$``-prefixed query parameters."""

    select: list[str] = field(default_factory=list)
    filter: str | None = None
    expand: str | None = None
    order_by: str | None = None
    top: int | None = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.select:
            params["$select"] = ",".join(self.select)
        if self.filter:
            params["$filter"] = self.filter
        if self.expand:
            params["$expand"] = self.expand
        if self.order_by:
            params["$orderby"] = self.order_by
        if self.top is not None:
            params["$top"] = str(self.top)
        return params


@dataclass
class GraphRequest:
    """
    A single Graph request description.

    ``entity`` is either a path relative to the versioned base URL or an
    absolute URL (used for ``@odata.nextLink`` paging).
    """

    method: str
    entity: str
    valid_status_codes: tuple[int, ...]
    body: dict[str, Any] | None = None
    query: ODataQuery | None = None
    consistency_failure: ConsistencyFailureFunc | None = None
    disable_retries: bool = False


def decode_json(response: httpx.Response) -> Any:
    """Decode a response body, raising BadResponseError if it is not JSON."""
    try:
        return response.json()
    except ValueError as e:
        raise BadResponseError(
            f"could not decode response body from {response.request.url}: {e}",
            cause=e,
        ) from e


def parse_model(model: type[ModelT], data: Any) -> ModelT:
    """Validate decoded JSON into ``model``, raising BadResponseError on mismatch."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise BadResponseError(
            f"response does not match {model.__name__}: {e}", cause=e
        ) from e


class GraphClient:
    """
    Authenticated client for the Microsoft Graph REST API.

    One instance is shared by all entity clients of a provider; the underlying
    ``httpx.AsyncClient`` is safe for concurrent use. Retry suppression is
    passed per request, so concurrent operations never affect each other.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        base_url: str = f"{constants.DEFAULT_GRAPH_ENDPOINT}/{constants.DEFAULT_GRAPH_API_VERSION}",
        authority_host: str = constants.DEFAULT_AUTHORITY_HOST,
        timeout: float = constants.DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = constants.DEFAULT_MAX_RETRIES,
        consistency_retry_attempts: int = constants.DEFAULT_CONSISTENCY_RETRY_ATTEMPTS,
        consistency_retry_max_delay: float = constants.DEFAULT_CONSISTENCY_RETRY_MAX_DELAY,
        initial_retry_delay: float = constants.DEFAULT_INITIAL_DELAY,
        credential: AsyncTokenCredential | None = None,
    ) -> None:
        """
        Initialize the Graph client.

        Args:
            tenant_id: Entra ID tenant to authenticate against
            client_id: Application (client) ID of the service principal
            client_secret: Client secret of the service principal
            base_url: Versioned Graph base URL
            authority_host: Entra ID authority host
            timeout: Request timeout in seconds
            max_retries: Retries for throttled or unavailable responses
            consistency_retry_attempts: Retries for consistency-failure 404s
            consistency_retry_max_delay: Cap for the consistency retry backoff
            initial_retry_delay: First retry delay; doubles on every attempt
            credential: Token credential to use instead of a
                ``ClientSecretCredential`` built from the arguments above
        """
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.authority_host = authority_host.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.consistency_retry_attempts = consistency_retry_attempts
        self.consistency_retry_max_delay = consistency_retry_max_delay
        self.initial_retry_delay = initial_retry_delay

        # Token caching and expiry are handled by the credential
        self._credential = credential
        self._owns_credential = credential is None
        self.access_token: str | None = None

        self._client: httpx.AsyncClient | None = None

        logger.info(f"Initialized Microsoft Graph client for {self.base_url}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "GraphClient":
        """Build a client from provider settings."""
        if not settings.has_credentials:
            raise ConfigurationError(
                "Microsoft Graph credentials are not configured",
                user_action="Set ARM_TENANT_ID, ARM_CLIENT_ID and ARM_CLIENT_SECRET",
            )
        return cls(
            tenant_id=settings.tenant_id,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            base_url=settings.graph_base_url,
            authority_host=settings.authority_host,
            timeout=settings.request_timeout_seconds,
            max_retries=settings.max_retries,
            consistency_retry_attempts=settings.consistency_retry_attempts,
            consistency_retry_max_delay=settings.consistency_retry_max_delay_seconds,
        )

    @property
    def scope(self) -> str:
        # https://graph.microsoft.com/beta -> https://graph.microsoft.com/.default
        parts = urlsplit(self.base_url)
        return f"{parts.scheme}://{parts.netloc}/{constants.GRAPH_DEFAULT_SCOPE}"

    def _get_credential(self) -> AsyncTokenCredential:
        """Get or create the token credential (lazy initialization)."""
        if self._credential is None:
            self._credential = ClientSecretCredential(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                client_secret=self.client_secret,
                authority=self.authority_host,
            )
        return self._credential

    async def _release_credential(self) -> None:
        """Close an owned credential so the next token comes from a fresh one."""
        self.access_token = None
        if self._owns_credential and self._credential is not None:
            await self._credential.close()
            self._credential = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                headers={"Accept": "application/json"},
                follow_redirects=False,
            )
            logger.debug(f"Created httpx client for {self.base_url}")
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and any credential this client created."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
        await self._release_credential()

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def authenticate(self) -> str:
        """
        Obtain a bearer token for the Graph scope from the credential.

        Returns:
            The access token string

        Raises:
            GraphAPIError: If Entra ID rejects the credentials
            GraphTransportError: If the token endpoint cannot be reached
        """
        try:
            token = await self._get_credential().get_token(self.scope)
        except ClientAuthenticationError as e:
            logger.error(f"Token request rejected: {e.message}")
            raise GraphAPIError(
                "Authentication failed",
                status_code=e.status_code,
                response_body=e.message,
                retryable=False,
            ) from e
        except AzureError as e:
            logger.error(f"Failed to reach token endpoint: {e}")
            raise GraphTransportError(f"Authentication failed: {e}", cause=e) from e

        if not token.token:
            raise BadResponseError("credential returned an empty access token")
        self.access_token = token.token
        return token.token

    def _url(self, entity: str) -> str:
        if entity.startswith(("http://", "https://")):
            return entity
        return f"{self.base_url}/{entity.lstrip('/')}"

    def _backoff(self, attempt: int) -> float:
        return self.initial_retry_delay * constants.DEFAULT_BACKOFF_FACTOR**attempt

    def _retry_after(self, response: httpx.Response, attempt: int) -> float:
        header = response.headers.get("Retry-After")
        if header:
            try:
                return max(0.0, float(header))
            except ValueError:
                pass  # HTTP-date form is not used by Graph
        return self._backoff(attempt)

    async def _send(self, request: GraphRequest) -> httpx.Response:
        access_token = await self.authenticate()
        client = await self._get_client()

        headers = inject_trace_context({"Authorization": f"Bearer {access_token}"})
        try:
            return await client.request(
                method=request.method,
                url=self._url(request.entity),
                json=request.body,
                params=request.query.to_params() if request.query else None,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Request failed: {request.method} {request.entity} - {e}")
            raise GraphTransportError(
                f"{request.method} {request.entity}: {e}", cause=e
            ) from e

    async def request(self, request: GraphRequest) -> httpx.Response:
        """
        Perform a request and validate its status code.

        Args:
            request: Request description

        Returns:
            Response whose status code is one of ``request.valid_status_codes``

        Raises:
            GraphAPIError: If the final status code is not valid
            GraphTransportError: On network failures
        """
        consistency_attempts = 0
        throttle_attempts = 0
        reauthenticated = False

        with traced_operation(
            f"graph.{request.method.lower()}",
            {"http.method": request.method, "graph.entity": request.entity},
        ):
            while True:
                response = await self._send(request)
                status = response.status_code
                metrics_collector.record_request(
                    request.method, entity_label(request.entity), status
                )

                if status in request.valid_status_codes:
                    return response

                if status == 401 and not reauthenticated:
                    logger.warning("Received 401, attempting re-authentication")
                    reauthenticated = True
                    await self._release_credential()
                    continue

                if not request.disable_retries:
                    if (
                        request.consistency_failure is not None
                        and consistency_attempts < self.consistency_retry_attempts
                        and request.consistency_failure(response)
                    ):
                        delay = min(
                            self._backoff(consistency_attempts),
                            self.consistency_retry_max_delay,
                        )
                        consistency_attempts += 1
                        logger.debug(
                            f"Consistency failure for {request.method} {request.entity}, "
                            f"retrying in {delay:.1f}s",
                            extra={"http_status": status, "attempt": consistency_attempts},
                        )
                        metrics_collector.record_retry(
                            request.method, entity_label(request.entity), "consistency"
                        )
                        await asyncio.sleep(delay)
                        continue

                    if (
                        status in constants.THROTTLING_STATUS_CODES
                        and throttle_attempts < self.max_retries
                    ):
                        delay = self._retry_after(response, throttle_attempts)
                        throttle_attempts += 1
                        logger.warning(
                            f"{request.method} {request.entity} throttled with HTTP "
                            f"{status}, retrying in {delay:.1f}s",
                            extra={"http_status": status, "attempt": throttle_attempts},
                        )
                        metrics_collector.record_retry(
                            request.method, entity_label(request.entity), "throttled"
                        )
                        await asyncio.sleep(delay)
                        continue

                error = GraphAPIError(
                    f"{request.method} {request.entity} returned unexpected status",
                    status_code=status,
                    response_body=response.text,
                    method=request.method,
                    uri=str(response.request.url),
                )
                log = logger.debug if status == 404 else logger.error
                log(
                    f"Request failed: {request.method} {request.entity} - HTTP {status}",
                    extra={
                        "http_method": request.method,
                        "http_status": status,
                        "response_body": error.body_preview(1024),
                    },
                )
                raise error

    async def get(
        self,
        entity: str,
        valid_status_codes: tuple[int, ...] = (200,),
        query: ODataQuery | None = None,
        consistency_failure: ConsistencyFailureFunc | None = None,
        disable_retries: bool = False,
    ) -> httpx.Response:
        return await self.request(
            GraphRequest(
                method="GET",
                entity=entity,
                valid_status_codes=valid_status_codes,
                query=query,
                consistency_failure=consistency_failure,
                disable_retries=disable_retries,
            )
        )

    async def post(
        self,
        entity: str,
        body: dict[str, Any],
        valid_status_codes: tuple[int, ...] = (201,),
        consistency_failure: ConsistencyFailureFunc | None = None,
    ) -> httpx.Response:
        return await self.request(
            GraphRequest(
                method="POST",
                entity=entity,
                valid_status_codes=valid_status_codes,
                body=body,
                consistency_failure=consistency_failure,
            )
        )

    async def patch(
        self,
        entity: str,
        body: dict[str, Any],
        valid_status_codes: tuple[int, ...] = (204,),
        consistency_failure: ConsistencyFailureFunc | None = None,
    ) -> httpx.Response:
        return await self.request(
            GraphRequest(
                method="PATCH",
                entity=entity,
                valid_status_codes=valid_status_codes,
                body=body,
                consistency_failure=consistency_failure,
            )
        )

    async def delete(
        self,
        entity: str,
        valid_status_codes: tuple[int, ...] = (204,),
        consistency_failure: ConsistencyFailureFunc | None = None,
    ) -> httpx.Response:
        return await self.request(
            GraphRequest(
                method="DELETE",
                entity=entity,
                valid_status_codes=valid_status_codes,
                consistency_failure=consistency_failure,
            )
        )
