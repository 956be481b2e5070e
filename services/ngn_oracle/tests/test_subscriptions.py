import logging

import pytest

from conftest import FakeHandle
from ngn_oracle.gate import SerializationGate
from ngn_oracle.models import AnswerUpdatedLog
from ngn_oracle.retry import RetryExecutor
from ngn_oracle.subscriptions import SubscriptionManager
from ngn_oracle.transport import Connection, EndpointPool


def _log(round_id: int) -> AnswerUpdatedLog:
    return AnswerUpdatedLog(current=700, round_id=round_id, updated_at=1_700_000_000,
                            block_number=1000 + round_id, transaction_hash="0xabc")


@pytest.fixture()
def conn(handle_factory):
    return Connection(EndpointPool(["A", "B", "C"]), handle_factory)


@pytest.fixture()
def manager(conn, sleeper):
    executor = RetryExecutor(conn, SerializationGate(), sleep=sleeper)
    return SubscriptionManager(conn, executor)


async def _noop(log):
    return None


@pytest.mark.asyncio
async def test_subscribe_installs_on_current_handle(manager, provider):
    sub = await manager.subscribe("AnswerUpdated", _noop)

    assert sub.endpoint == "A"
    assert provider.open_filters == {sub.filter_id: "A"}
    assert set(manager.registry) == set(manager.desired) == {"AnswerUpdated"}


@pytest.mark.asyncio
async def test_rotation_reinstalls_desired_set_on_new_handle(manager, conn, provider):
    old = await manager.subscribe("AnswerUpdated", _noop)

    await conn.rotate()

    new = manager.registry["AnswerUpdated"]
    assert new.endpoint == "B"
    assert new.filter_id != old.filter_id
    assert old.filter_id not in provider.open_filters
    assert provider.open_filters[new.filter_id] == "B"
    assert set(manager.registry) == set(manager.desired)


@pytest.mark.asyncio
async def test_teardown_failures_are_swallowed_and_logged(manager, conn, provider, caplog):
    sub = await manager.subscribe("AnswerUpdated", _noop)
    provider.fail_on("A", "uninstall_filter", RuntimeError("handle is dead"))

    with caplog.at_level(logging.WARNING, logger="ngn_oracle.subscriptions"):
        await manager.teardown_all()

    assert manager.registry == {}
    records = [r for r in caplog.records if getattr(r, "event", None) == "subscription_teardown_failed"]
    assert len(records) == 1
    assert records[0].filter_id == sub.filter_id
    assert records[0].endpoint == "A"


@pytest.mark.asyncio
async def test_reestablish_continues_after_one_failure(conn, provider):
    manager = SubscriptionManager(conn)
    await manager.subscribe("First", _noop)
    await manager.subscribe("Second", _noop)

    original = FakeHandle.open_filter

    async def flaky_open(self, event_name):
        if event_name == "First" and self.endpoint == "B":
            raise RuntimeError("install refused")
        return await original(self, event_name)

    FakeHandle.open_filter = flaky_open
    try:
        await conn.rotate()
    finally:
        FakeHandle.open_filter = original

    assert set(manager.registry) == {"Second"}
    assert manager.registry["Second"].endpoint == "B"
    assert set(manager.desired) == {"First", "Second"}


@pytest.mark.asyncio
async def test_poll_delivers_logs_to_handler(manager, provider):
    seen = []

    async def handler(log):
        seen.append(log.round_id)

    sub = await manager.subscribe("AnswerUpdated", handler)
    provider.pending[sub.filter_id] = [_log(1), _log(2)]

    assert await manager.poll_once() == 2
    assert seen == [1, 2]
    assert await manager.poll_once() == 0


@pytest.mark.asyncio
async def test_expired_filter_rotates_and_resubscribes(manager, conn, provider, sleeper):
    seen = []

    async def handler(log):
        seen.append((log.round_id, manager.registry["AnswerUpdated"].endpoint))

    sub = await manager.subscribe("AnswerUpdated", handler)
    # The endpoint forgot the filter: next poll hits "filter not found".
    provider.open_filters.pop(sub.filter_id)

    await manager.poll_once()

    assert conn.current() == "B"
    assert sleeper.delays == [1.0]
    new = manager.registry["AnswerUpdated"]
    assert new.endpoint == "B"

    provider.pending[new.filter_id] = [_log(7)]
    await manager.poll_once()
    assert seen == [(7, "B")]


@pytest.mark.asyncio
async def test_handler_error_does_not_stop_delivery(manager, provider):
    seen = []

    async def handler(log):
        if log.round_id == 1:
            raise ValueError("bad event")
        seen.append(log.round_id)

    sub = await manager.subscribe("AnswerUpdated", handler)
    provider.pending[sub.filter_id] = [_log(1), _log(2)]

    assert await manager.poll_once() == 1
    assert seen == [2]


@pytest.mark.asyncio
async def test_polling_task_lifecycle(manager):
    manager.start_polling(0.01)
    assert manager.polling
    await manager.stop_polling()
    assert not manager.polling
    await manager.stop_polling()
