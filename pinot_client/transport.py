"""HTTP transport executing broker query requests."""

from __future__ import annotations

import logging
from typing import Mapping, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from .errors import QueryTimeoutError, TransportError
from .models import BrokerResponse
from .query import QueryRequest

LOG = logging.getLogger(__name__)

_JSON_HEADERS = {"Content-Type": "application/json; charset=utf-8"}


@runtime_checkable
class ClientTransport(Protocol):
    """Interface implemented by broker transports."""

    async def execute(self, broker_address: str, request: QueryRequest) -> BrokerResponse: ...

    async def aclose(self) -> None: ...


def query_url(broker_address: str) -> str:
    """Return the SQL query endpoint of a broker."""

    base = broker_address.rstrip("/")
    if not base.startswith(("http://", "https://")):
        base = f"http://{base}"
    return f"{base}/query/sql"


class JsonHttpTransport:
    """Posts JSON query requests to a broker via httpx."""

    def __init__(
        self,
        *,
        extra_headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._headers = {**_JSON_HEADERS, **dict(extra_headers or {})}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def headers(self) -> Mapping[str, str]:
        return dict(self._headers)

    async def execute(self, broker_address: str, request: QueryRequest) -> BrokerResponse:
        url = query_url(broker_address)
        LOG.debug("Posting query to broker", extra={"broker": broker_address, "url": url})
        try:
            response = await self._client.post(url, json=request.to_payload(), headers=self._headers)
        except httpx.TimeoutException as exc:
            raise QueryTimeoutError(f"Timed out querying broker {broker_address}: {exc}", broker=broker_address) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Unable to reach broker {broker_address}: {exc}", broker=broker_address) from exc
        if response.status_code != httpx.codes.OK:
            raise TransportError(
                f"Broker {broker_address} returned HTTP {response.status_code}: {response.text}",
                broker=broker_address,
                status_code=response.status_code,
            )
        try:
            return BrokerResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise TransportError(
                f"Unable to decode response from broker {broker_address}: {exc}",
                broker=broker_address,
                status_code=response.status_code,
            ) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["ClientTransport", "JsonHttpTransport", "query_url"]
