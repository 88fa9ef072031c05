"""Tests for query dispatch through a connection."""

from __future__ import annotations

import asyncio
import threading

import pytest

from pinot_client.brokers import SimpleBrokerSelector, TableAwareBrokerSelector
from pinot_client.connection import Connection
from pinot_client.errors import (
    ArgumentCountMismatchError,
    BrokerSelectionError,
    QueryTimeoutError,
    TableNotFoundError,
    TransportError,
)
from pinot_client.models import BrokerResponse
from pinot_client.query import QueryRequest


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _RecordingTransport:
    def __init__(self, response: BrokerResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or BrokerResponse(total_docs=42)
        self.error = error
        self.calls: list[tuple[str, QueryRequest]] = []
        self.closed = False

    async def execute(self, broker_address: str, request: QueryRequest) -> BrokerResponse:
        self.calls.append((broker_address, request))
        if self.error is not None:
            raise self.error
        return self.response

    async def aclose(self) -> None:
        self.closed = True


class _SlowTransport(_RecordingTransport):
    def __init__(self) -> None:
        super().__init__()
        self.cancelled = False

    async def execute(self, broker_address: str, request: QueryRequest) -> BrokerResponse:
        self.calls.append((broker_address, request))
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return self.response


class _MissingTableSelector:
    def __init__(self) -> None:
        self.stopped = False

    def start(self) -> None:
        return None

    def stop(self) -> None:
        self.stopped = True

    def select(self, table: str) -> str:
        raise TableNotFoundError(table)


@pytest.mark.anyio
async def test_execute_sql_returns_transport_response_unchanged() -> None:
    expected = BrokerResponse(total_docs=97889, time_used_ms=3)
    transport = _RecordingTransport(expected)
    connection = Connection(transport, SimpleBrokerSelector(["broker1:8000"]))

    response = await connection.execute_sql("myTable", "select count(*) from myTable")

    assert response is expected
    broker, request = transport.calls[0]
    assert broker == "broker1:8000"
    assert request == QueryRequest(query="select count(*) from myTable")


@pytest.mark.anyio
async def test_selection_failure_never_reaches_transport() -> None:
    transport = _RecordingTransport()
    connection = Connection(transport, _MissingTableSelector())

    with pytest.raises(BrokerSelectionError):
        await connection.execute_sql("missing", "select 1")

    assert transport.calls == []


@pytest.mark.anyio
async def test_transport_failure_is_distinct_from_selection_failure() -> None:
    transport = _RecordingTransport(error=TransportError("broker exploded", broker="broker1:8000"))
    connection = Connection(transport, SimpleBrokerSelector(["broker1:8000", "broker2:8000"]))

    with pytest.raises(TransportError) as excinfo:
        await connection.execute_sql("t", "select 1")

    assert not isinstance(excinfo.value, BrokerSelectionError)
    assert len(transport.calls) == 1


@pytest.mark.anyio
async def test_flags_are_passed_with_each_request() -> None:
    transport = _RecordingTransport()
    connection = Connection(transport, SimpleBrokerSelector(["broker1:8000"]), use_multistage_engine=True)

    connection.open_trace()
    await connection.execute_sql("t", "select 1")
    connection.close_trace()
    connection.use_multistage_engine(False)
    await connection.execute_sql("t", "select 2")

    first, second = (request for _, request in transport.calls)
    assert first.trace is True and first.use_multistage_engine is True
    assert second.trace is False and second.use_multistage_engine is False


@pytest.mark.anyio
async def test_flags_are_snapshotted_at_call_start() -> None:
    transport = _SlowTransport()
    connection = Connection(transport, SimpleBrokerSelector(["broker1:8000"]))

    task = asyncio.create_task(connection.execute_sql("t", "select 1"))
    await asyncio.sleep(0)
    connection.open_trace()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert transport.calls[0][1].trace is False


@pytest.mark.anyio
async def test_execute_with_params_formats_query() -> None:
    transport = _RecordingTransport()
    connection = Connection(transport, SimpleBrokerSelector(["broker1:8000"]))

    await connection.execute_sql_with_params(
        "baseballStats",
        "select * from baseballStats where league = ? and homeRuns > ? and bats = ?",
        "AL",
        30,
        b"\x0a",
    )

    _, request = transport.calls[0]
    assert request.query == "select * from baseballStats where league = 'AL' and homeRuns > 30 and bats = '0A'"


@pytest.mark.anyio
async def test_format_error_short_circuits() -> None:
    transport = _RecordingTransport()
    selector = _MissingTableSelector()
    connection = Connection(transport, selector)

    with pytest.raises(ArgumentCountMismatchError):
        await connection.execute_sql_with_params("t", "select * from t where a = ?")

    assert transport.calls == []


@pytest.mark.anyio
async def test_timeout_raises_query_timeout() -> None:
    transport = _SlowTransport()
    connection = Connection(transport, SimpleBrokerSelector(["broker1:8000"]))

    with pytest.raises(QueryTimeoutError) as excinfo:
        await connection.execute_sql("t", "select 1", timeout=0.01)

    assert isinstance(excinfo.value, TransportError)
    assert transport.cancelled is True


@pytest.mark.anyio
async def test_cancellation_propagates_to_transport() -> None:
    transport = _SlowTransport()
    connection = Connection(transport, SimpleBrokerSelector(["broker1:8000"]))

    task = asyncio.create_task(connection.execute_sql("t", "select 1"))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert transport.cancelled is True


@pytest.mark.anyio
async def test_aclose_stops_selector_and_transport() -> None:
    transport = _RecordingTransport()
    selector = _MissingTableSelector()

    async with Connection(transport, selector):
        pass

    assert selector.stopped is True
    assert transport.closed is True


@pytest.mark.anyio
async def test_waiting_for_first_mapping_does_not_block_event_loop() -> None:
    selector = TableAwareBrokerSelector(ready_timeout=5)
    transport = _RecordingTransport()
    connection = Connection(transport, selector)
    ticks = 0
    timer = threading.Timer(0.2, selector.update, args=({"myTable": ["broker1:8000"]},))

    async def _ticker() -> None:
        nonlocal ticks
        while True:
            await asyncio.sleep(0.01)
            ticks += 1

    ticker = asyncio.create_task(_ticker())
    timer.start()
    try:
        await connection.execute_sql("myTable", "select * from myTable")
    finally:
        timer.cancel()
        ticker.cancel()

    assert ticks >= 5
    assert transport.calls[0][0] == "broker1:8000"
