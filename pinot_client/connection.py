"""Query dispatch: broker selection followed by a single transport call."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Self

from .brokers import BrokerSelector
from .errors import BrokerSelectionError, QueryTimeoutError, TransportError
from .models import BrokerResponse
from .query import QueryRequest, format_query
from .transport import ClientTransport

LOG = logging.getLogger(__name__)


class Connection:
    """Routes SQL queries for a table to one of its brokers.

    Each call performs exactly one selection and one transport attempt.
    Failures surface as ``BrokerSelectionError`` (no broker resolved, the
    transport was not contacted), ``TransportError`` (the broker could not be
    reached or rejected the query) or ``QueryFormatError`` (parameters could
    not be rendered). Retrying is left to the caller.
    """

    def __init__(
        self,
        transport: ClientTransport,
        broker_selector: BrokerSelector,
        *,
        use_multistage_engine: bool = False,
    ) -> None:
        self._transport = transport
        self._broker_selector = broker_selector
        self._trace = False
        self._use_multistage_engine = use_multistage_engine

    @property
    def broker_selector(self) -> BrokerSelector:
        return self._broker_selector

    @property
    def trace(self) -> bool:
        return self._trace

    @property
    def multistage_engine(self) -> bool:
        return self._use_multistage_engine

    def use_multistage_engine(self, enabled: bool) -> None:
        """Toggle the multistage engine for subsequent queries."""

        self._use_multistage_engine = enabled

    def open_trace(self) -> None:
        self._trace = True

    def close_trace(self) -> None:
        self._trace = False

    async def execute_sql(self, table: str, query: str, *, timeout: float | None = None) -> BrokerResponse:
        """Execute ``query`` on a broker serving ``table``.

        ``timeout`` bounds the broker call in seconds and raises
        ``QueryTimeoutError`` when exceeded. Cancelling the calling task
        cancels the in-flight transport call.
        """

        request = QueryRequest(
            query=query,
            trace=self._trace,
            use_multistage_engine=self._use_multistage_engine,
        )
        try:
            broker = await self._select_broker(table)
        except BrokerSelectionError as exc:
            LOG.error(
                "Unable to find an available broker for table",
                extra={"table": table, "error": str(exc)},
            )
            raise
        try:
            return await asyncio.wait_for(self._transport.execute(broker, request), timeout)
        except TimeoutError as exc:
            LOG.error("Query timed out", extra={"broker": broker, "timeout": timeout})
            raise QueryTimeoutError(f"Query on broker {broker} timed out after {timeout}s", broker=broker) from exc
        except TransportError as exc:
            LOG.error(
                "Failed to execute SQL query",
                extra={"broker": broker, "query": query, "error": str(exc)},
            )
            raise

    async def _select_broker(self, table: str) -> str:
        # A selector still waiting for its first mapping blocks; keep that off the loop.
        if getattr(self._broker_selector, "ready", True):
            return self._broker_selector.select(table)
        return await asyncio.to_thread(self._broker_selector.select, table)

    async def execute_sql_with_params(
        self,
        table: str,
        query_pattern: str,
        *params: Any,
        timeout: float | None = None,
    ) -> BrokerResponse:
        """Format ``query_pattern`` with ``params`` and execute it."""

        query = format_query(query_pattern, *params)
        return await self.execute_sql(table, query, timeout=timeout)

    async def aclose(self) -> None:
        """Stop the broker selector and close the transport."""

        self._broker_selector.stop()
        await self._transport.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["Connection"]
