"""Tests for the quote repository on top of the key-value store."""

import asyncio

import pytest

from conftest import make_record, put

from astrbot_plugin_quote_board.codec import decode
from astrbot_plugin_quote_board.errors import LoadError, StorageError
from astrbot_plugin_quote_board.repository import QuoteRepository


@pytest.mark.asyncio
async def test_empty_namespace_returns_empty_list(repository):
    assert await repository.load_all() == []


@pytest.mark.asyncio
async def test_sorted_newest_first(store, repository):
    for millis in (300, 100, 500, 200, 400):
        put(store, make_record(millis, suffix=f"s{millis}"))

    records = await repository.load_all()

    stamps = [r.created_at_millis for r in records]
    assert stamps == [500, 400, 300, 200, 100]
    assert all(a >= b for a, b in zip(stamps, stamps[1:]))


@pytest.mark.asyncio
async def test_ties_broken_by_key(store, repository):
    put(store, make_record(100, suffix="aaa"))
    put(store, make_record(100, suffix="ccc"))
    put(store, make_record(100, suffix="bbb"))

    records = await repository.load_all()

    assert [r.id for r in records] == ["quote:100-ccc", "quote:100-bbb", "quote:100-aaa"]


@pytest.mark.asyncio
async def test_partial_fetch_failures_are_skipped(store, repository):
    records = [make_record(m, suffix=f"k{m}") for m in (1, 2, 3, 4, 5)]
    for r in records:
        put(store, r)
    store.failing_gets = {records[1].id, records[3].id}

    report = await repository.load_report()

    assert [r.created_at_millis for r in report.records] == [5, 3, 1]
    assert sorted(report.skipped) == sorted([records[1].id, records[3].id])
    assert repository.skipped_total == 2


@pytest.mark.asyncio
async def test_corrupt_and_missing_entries_are_skipped(store, repository):
    put(store, make_record(10, suffix="ok"))
    store.data["quote:20-bad"] = "{broken json"
    store.data["quote:30-null"] = None

    report = await repository.load_report()

    assert [r.id for r in report.records] == ["quote:10-ok"]
    assert set(report.skipped) == {"quote:20-bad", "quote:30-null"}


@pytest.mark.asyncio
async def test_skipped_total_accumulates_across_loads(store, repository):
    store.data["quote:20-bad"] = "nope"

    await repository.load_all()
    report = await repository.load_report()

    assert report.skipped == ["quote:20-bad"]
    assert repository.skipped_total == 2


@pytest.mark.asyncio
async def test_list_failure_raises_load_error(store, repository):
    store.list_error = ConnectionError("store unreachable")

    with pytest.raises(LoadError) as exc:
        await repository.load_all()
    assert "unreachable" in str(exc.value)


@pytest.mark.asyncio
async def test_load_is_idempotent(store, repository):
    for millis in (1, 2, 3):
        put(store, make_record(millis, suffix=f"x{millis}"))

    first = await repository.load_all()
    second = await repository.load_all()

    assert first == second
    assert store.set_calls == []


@pytest.mark.asyncio
async def test_ignores_foreign_and_duplicate_keys(store):
    put(store, make_record(1, suffix="a"))

    async def list_with_noise(prefix, shared=True):
        return ["quote:1-a", "quote:1-a", "other:1", 42]

    store.list = list_with_noise
    repository = QuoteRepository(store)

    loaded = await repository.load_all()

    assert len(loaded) == 1
    assert store.get_calls == ["quote:1-a"]


@pytest.mark.asyncio
async def test_fetches_run_concurrently_within_bound(store):
    for millis in range(20):
        put(store, make_record(millis, suffix=f"c{millis}"))
    store.get_delay = 0.01
    repository = QuoteRepository(store, concurrency=4)

    loaded = await repository.load_all()

    assert len(loaded) == 20
    assert 1 < store.max_in_flight <= 4


@pytest.mark.asyncio
async def test_submit_persists_encoded_record(store, repository):
    record = make_record(7, text="Be bold.")

    await repository.submit(record)

    assert store.set_calls == [record.id]
    assert decode(store.data[record.id], record.id) == record


@pytest.mark.asyncio
async def test_submit_failure_raises_storage_error_without_retry(store, repository):
    store.set_error = OSError("disk full")

    with pytest.raises(StorageError) as exc:
        await repository.submit(make_record(7))

    assert exc.value.user_message == "Failed to save quote. Please try again."
    assert len(store.set_calls) == 1


@pytest.mark.asyncio
async def test_cancellation_is_not_swallowed(store, repository):
    put(store, make_record(1))
    store.get_delay = 1.0

    task = asyncio.create_task(repository.load_all())
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
