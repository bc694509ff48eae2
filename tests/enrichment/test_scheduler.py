from __future__ import annotations

import asyncio

import pytest

from gridsync.domain.enrichment import EnrichmentScheduler
from gridsync.domain.error_codes import ErrorCode
from gridsync.domain.exceptions import DuplicateRecordError
from gridsync.domain.models import PartialUpdate, Record, TaskFailure, TaskSuccess
from gridsync.domain.store.record_store import RecordStore


class _TrackingTask:
    def __init__(self, delays: dict | None = None, fail_ids: tuple = (), default_delay: float = 0.01):
        self.delays = delays or {}
        self.fail_ids = set(fail_ids)
        self.default_delay = default_delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls: list = []
        self.events: list[tuple[str, object]] = []
        self.cancelled: list = []

    async def __call__(self, record: Record):
        self.calls.append(record.id)
        self.events.append(("start", record.id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(record.id, self.default_delay))
        except asyncio.CancelledError:
            self.cancelled.append(record.id)
            raise
        finally:
            self.in_flight -= 1
            self.events.append(("end", record.id))
        if record.id in self.fail_ids:
            return TaskFailure(record_id=record.id, code=ErrorCode.NETWORK_ERROR, message="boom")
        return TaskSuccess(PartialUpdate(record_id=record.id, fields={"enriched": f"v{record.id}"}))


def _records(n: int) -> list[Record]:
    return [Record(id=i, fields={"title": f"Task #{i}"}) for i in range(1, n + 1)]


@pytest.mark.parametrize("limit", [1, 2, 3, 10])
def test_outstanding_tasks_never_exceed_limit(limit):
    records = _records(7)
    store = RecordStore(records)
    task = _TrackingTask(delays={1: 0.03, 2: 0.01, 3: 0.02, 4: 0.005, 5: 0.03, 6: 0.0, 7: 0.01})

    summary = asyncio.run(EnrichmentScheduler(store).run(records, task, limit))

    assert task.max_in_flight <= limit
    assert summary.max_outstanding <= limit
    assert summary.max_outstanding == min(limit, len(records))


def test_every_record_attempted_exactly_once():
    records = _records(9)
    store = RecordStore(records)
    task = _TrackingTask(fail_ids=(2, 5))

    summary = asyncio.run(EnrichmentScheduler(store).run(records, task, 3))

    assert sorted(task.calls) == [r.id for r in records]
    assert len(task.calls) == len(set(task.calls))
    assert set(summary.succeeded) | set(summary.failed_ids) == {r.id for r in records}
    assert set(summary.succeeded).isdisjoint(summary.failed_ids)
    assert summary.settled == summary.total == 9


def test_launch_order_follows_worklist():
    records = _records(6)
    store = RecordStore(records)
    task = _TrackingTask(delays={1: 0.05, 2: 0.01, 3: 0.03, 4: 0.0, 5: 0.02, 6: 0.01})

    summary = asyncio.run(EnrichmentScheduler(store).run(records, task, 2))

    assert task.calls == [1, 2, 3, 4, 5, 6]
    assert summary.launched == [1, 2, 3, 4, 5, 6]


def test_settled_slot_launches_next_record_without_waiting_for_slow_one():
    records = _records(3)
    store = RecordStore(records)
    task = _TrackingTask(delays={1: 0.2, 2: 0.01, 3: 0.01})

    asyncio.run(EnrichmentScheduler(store).run(records, task, 2))

    assert task.events.index(("start", 3)) < task.events.index(("end", 1))
    assert task.events.index(("end", 2)) < task.events.index(("start", 3))


def test_failure_of_one_record_does_not_affect_others():
    records = _records(5)
    store = RecordStore(records)
    task = _TrackingTask(fail_ids=(3,))
    reported: list[TaskFailure] = []

    summary = asyncio.run(EnrichmentScheduler(store, on_failure=reported.append).run(records, task, 2))

    for record_id in (1, 2, 4, 5):
        assert store.get(record_id).get("enriched") == f"v{record_id}"
    assert store.get(3).to_dict() == {"id": 3, "title": "Task #3"}
    assert [f.record_id for f in reported] == [3]
    assert summary.failed_ids == [3]
    assert not summary.ok


def test_empty_worklist_completes_immediately():
    store = RecordStore()
    task = _TrackingTask()

    summary = asyncio.run(EnrichmentScheduler(store).run([], task, 4))

    assert task.calls == []
    assert summary.total == 0
    assert summary.ok


@pytest.mark.parametrize("limit", [0, -1, True, 1.5])
def test_invalid_limit_rejected(limit):
    store = RecordStore(_records(1))

    with pytest.raises(ValueError):
        asyncio.run(EnrichmentScheduler(store).run(store.records(), _TrackingTask(), limit))


def test_duplicate_ids_in_worklist_rejected():
    records = _records(2)
    store = RecordStore(records)

    with pytest.raises(DuplicateRecordError):
        asyncio.run(EnrichmentScheduler(store).run([records[0], records[1], records[0]], _TrackingTask(), 2))


def test_task_raising_is_reported_as_unexpected_failure():
    records = _records(3)
    store = RecordStore(records)

    async def flaky(record: Record):
        await asyncio.sleep(0)
        if record.id == 2:
            raise RuntimeError("contract violation")
        return TaskSuccess(PartialUpdate(record_id=record.id, fields={"ok": True}))

    summary = asyncio.run(EnrichmentScheduler(store).run(records, flaky, 2))

    assert sorted(summary.succeeded) == [1, 3]
    assert len(summary.failed) == 1
    assert summary.failed[0].code == ErrorCode.UNEXPECTED_ERROR
    assert "contract violation" in summary.failed[0].message


def test_unsupported_result_type_is_failure():
    records = _records(1)
    store = RecordStore(records)

    async def wrong(record: Record):
        return {"enriched": "x"}

    summary = asyncio.run(EnrichmentScheduler(store).run(records, wrong, 1))

    assert summary.failed[0].code == ErrorCode.UNEXPECTED_ERROR
    assert store.get(1).get("enriched") is None


def test_update_for_removed_record_is_dropped():
    records = _records(3)
    store = RecordStore(records)

    async def remove_two(record: Record):
        await asyncio.sleep(0.01)
        if record.id == 2:
            store.remove(2)
        return TaskSuccess(PartialUpdate(record_id=record.id, fields={"enriched": True}))

    summary = asyncio.run(EnrichmentScheduler(store).run(records, remove_two, 3))

    assert summary.dropped == [2]
    assert sorted(summary.succeeded) == [1, 3]
    assert 2 not in store
    assert store.get(1).get("enriched") is True


def test_rerun_reexecutes_and_gives_identical_contents():
    records = _records(4)
    task = _TrackingTask(fail_ids=(4,))

    first = RecordStore(records)
    asyncio.run(EnrichmentScheduler(first).run(first.records(), task, 2))
    first_contents = [r.to_dict() for r in first.records()]

    second = RecordStore(records)
    asyncio.run(EnrichmentScheduler(second).run(second.records(), task, 3))

    asyncio.run(EnrichmentScheduler(first).run(first.records(), task, 2))

    assert [r.to_dict() for r in second.records()] == first_contents
    assert [r.to_dict() for r in first.records()] == first_contents
    assert sorted(task.calls) == sorted([1, 2, 3, 4] * 3)


def test_cancelling_run_cancels_outstanding_tasks():
    records = _records(5)
    store = RecordStore(records)
    task = _TrackingTask(default_delay=1.0)

    async def scenario():
        run = asyncio.ensure_future(EnrichmentScheduler(store).run(records, task, 2))
        await asyncio.sleep(0.05)
        run.cancel()
        with pytest.raises(asyncio.CancelledError):
            await run

    asyncio.run(scenario())

    assert sorted(task.cancelled) == [1, 2]
    assert task.calls == [1, 2]
    assert all(r.get("enriched") is None for r in store.records())


def test_store_listener_sees_each_successful_update():
    records = _records(4)
    store = RecordStore(records)
    notified: list = []
    store.subscribe(lambda record, update: notified.append(record.id))

    asyncio.run(EnrichmentScheduler(store).run(records, _TrackingTask(fail_ids=(1,)), 2))

    assert sorted(notified) == [2, 3, 4]


def test_raising_store_listener_does_not_stop_run():
    records = _records(3)
    store = RecordStore(records)

    def listener(record, update):
        if record.id == 1:
            raise RuntimeError("grid refresh failed")

    store.subscribe(listener)
    task = _TrackingTask(delays={1: 0.0, 2: 0.05, 3: 0.05})

    summary = asyncio.run(EnrichmentScheduler(store).run(records, task, 3))

    assert sorted(summary.succeeded) == [1, 2, 3]
    assert all(r.get("enriched") == f"v{r.id}" for r in store.records())


def test_raising_failure_callback_settles_outstanding_before_propagating():
    records = _records(5)
    store = RecordStore(records)
    task = _TrackingTask(delays={1: 0.0, 2: 1.0, 3: 1.0}, fail_ids=(1,))

    def on_failure(failure):
        raise RuntimeError("reporter down")

    async def scenario():
        with pytest.raises(RuntimeError, match="reporter down"):
            await EnrichmentScheduler(store, on_failure=on_failure).run(records, task, 3)
        return [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]

    leftover = asyncio.run(scenario())

    assert leftover == []
    assert sorted(task.cancelled) == [2, 3]
    assert task.in_flight == 0
    assert task.calls == [1, 2, 3]
