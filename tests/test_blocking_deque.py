import asyncio
import sys
import time
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from rdeque.adapters.executor.memory import InMemoryListStore
from rdeque.core.codec import PydanticCodec, StringCodec
from rdeque.core.deque import BlockingDeque
from rdeque.domain.errors import StorageError
from rdeque.domain.models import Command, End, Polled, Script

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryListStore:
    return InMemoryListStore()


@pytest.fixture
def queue(store: InMemoryListStore) -> BlockingDeque:
    return BlockingDeque("q1", store)


class Task(BaseModel):
    id: int
    kind: str


# ---------------------------------------------------------------------------
# put / offer
# ---------------------------------------------------------------------------


async def test_put_appends_to_tail(queue: BlockingDeque) -> None:
    await queue.put(1)
    await queue.put(2)
    assert await queue.read_all() == [1, 2]


async def test_put_first_prepends(queue: BlockingDeque) -> None:
    await queue.put(1)
    await queue.put_first(0)
    assert await queue.read_all() == [0, 1]


async def test_put_last_appends(queue: BlockingDeque) -> None:
    await queue.put_first(1)
    await queue.put_last(2)
    assert await queue.read_all() == [1, 2]


async def test_put_issues_rpush(queue: BlockingDeque, store: InMemoryListStore) -> None:
    await queue.put({"a": 1})
    assert store.history == [Command.of("RPUSH", "q1", b'{"a":1}')]


async def test_offer_always_true(queue: BlockingDeque) -> None:
    assert await queue.offer("x") is True
    assert await queue.offer("y", timedelta(seconds=10)) is True
    assert await queue.read_all() == ["x", "y"]


async def test_offer_first_and_last(queue: BlockingDeque) -> None:
    assert await queue.offer_last("b", 1) is True
    assert await queue.offer_first("a", 1) is True
    assert await queue.read_all() == ["a", "b"]


async def test_offer_timeout_is_ignored(queue: BlockingDeque) -> None:
    start = time.monotonic()
    await queue.offer("x", timedelta(seconds=30))
    assert time.monotonic() - start < 0.5


# ---------------------------------------------------------------------------
# take
# ---------------------------------------------------------------------------


async def test_take_returns_head(queue: BlockingDeque) -> None:
    await queue.put("a")
    await queue.put("b")
    assert await queue.take() == "a"
    assert await queue.take_first() == "b"


async def test_take_last_returns_tail(queue: BlockingDeque) -> None:
    await queue.put("a")
    await queue.put("b")
    assert await queue.take_last() == "b"


async def test_take_sends_zero_timeout(
    queue: BlockingDeque, store: InMemoryListStore
) -> None:
    await queue.put("a")
    await queue.take()
    assert store.history[-1] == Command.of("BLPOP", "q1", 0)


async def test_take_waits_for_push(queue: BlockingDeque) -> None:
    taker = asyncio.create_task(queue.take())
    await asyncio.sleep(0.05)
    assert not taker.done()
    await queue.put("late")
    assert await asyncio.wait_for(taker, 1) == "late"


async def test_concurrent_takes_single_push_delivers_once(store: InMemoryListStore) -> None:
    consumers = [BlockingDeque("q1", store) for _ in range(3)]
    takers = [asyncio.create_task(c.take()) for c in consumers]
    await asyncio.sleep(0.05)

    await BlockingDeque("q1", store).put("only")
    await asyncio.sleep(0.05)

    done = [t for t in takers if t.done()]
    assert [t.result() for t in done] == ["only"]
    for t in takers:
        t.cancel()
    await asyncio.gather(*takers, return_exceptions=True)
    assert store.snapshot("q1") == []


# ---------------------------------------------------------------------------
# poll
# ---------------------------------------------------------------------------


async def test_poll_returns_head(queue: BlockingDeque) -> None:
    await queue.put("a")
    await queue.put("b")
    assert await queue.poll(1) == "a"
    assert await queue.poll_first(1) == "b"


async def test_poll_last_returns_tail(queue: BlockingDeque) -> None:
    await queue.put("a")
    await queue.put("b")
    assert await queue.poll_last(timedelta(seconds=1)) == "b"


async def test_poll_empty_waits_then_returns_none(queue: BlockingDeque) -> None:
    start = time.monotonic()
    assert await queue.poll(timedelta(seconds=1)) is None
    assert time.monotonic() - start >= 0.95


async def test_poll_sub_second_timeout_still_expires(queue: BlockingDeque) -> None:
    result = await asyncio.wait_for(queue.poll(timedelta(milliseconds=200)), 3)
    assert result is None


async def test_poll_sends_whole_seconds(
    queue: BlockingDeque, store: InMemoryListStore
) -> None:
    await queue.put("a")
    await queue.poll(timedelta(milliseconds=2700))
    assert store.history[-1] == Command.of("BLPOP", "q1", 2)


async def test_poll_negative_timeout_raises(
    queue: BlockingDeque, store: InMemoryListStore
) -> None:
    with pytest.raises(ValueError):
        await queue.poll(-1)
    assert store.history == []


# ---------------------------------------------------------------------------
# poll from any
# ---------------------------------------------------------------------------


async def test_poll_from_any_takes_from_other_queue(store: InMemoryListStore) -> None:
    q1 = BlockingDeque("q1", store)
    await BlockingDeque("q3", store).put("from-q3")

    assert await q1.poll_from_any(1, "q2", "q3") == "from-q3"
    assert store.keys() == []


async def test_poll_from_any_removes_only_from_winner(store: InMemoryListStore) -> None:
    q1 = BlockingDeque("q1", store)
    await BlockingDeque("q3", store).put("x")
    await BlockingDeque("q4", store).put("untouched")

    assert await q1.poll_from_any(1, "q2", "q3") == "x"
    assert store.snapshot("q4") == [b'"untouched"']


async def test_poll_from_any_own_queue_first(store: InMemoryListStore) -> None:
    q1 = BlockingDeque("q1", store)
    await q1.put("own")
    await BlockingDeque("q2", store).put("other")

    assert await q1.poll_from_any(1, "q2") == "own"


async def test_poll_from_any_preserves_name_order(store: InMemoryListStore) -> None:
    q1 = BlockingDeque("q1", store)
    await q1.poll_first_from_any(timedelta(seconds=1), "q9", "q2", "q5")
    assert store.history[-1] == Command.of("BLPOP", "q1", "q9", "q2", "q5", 1)


async def test_poll_from_any_positional_priority(store: InMemoryListStore) -> None:
    q1 = BlockingDeque("q1", store)
    await BlockingDeque("q2", store).put("two")
    await BlockingDeque("q3", store).put("three")

    assert await q1.poll_from_any(1, "q3", "q2") == "three"


async def test_poll_last_from_any_takes_tail(store: InMemoryListStore) -> None:
    q1 = BlockingDeque("q1", store)
    q2 = BlockingDeque("q2", store)
    await q2.put("head")
    await q2.put("tail")

    assert await q1.poll_last_from_any(1, "q2") == "tail"
    assert store.history[-1].name == "BRPOP"


async def test_poll_from_any_timeout_returns_none(store: InMemoryListStore) -> None:
    q1 = BlockingDeque("q1", store)
    assert await q1.poll_from_any(1, "q2", "q3") is None


async def test_poll_from_any_with_queue_names_winner(store: InMemoryListStore) -> None:
    q1 = BlockingDeque("q1", store)
    await BlockingDeque("q3", store).put(7)

    assert await q1.poll_from_any_with_queue(1, "q2", "q3") == Polled(
        queue="q3", value=7
    )


async def test_poll_from_any_with_queue_last_end(store: InMemoryListStore) -> None:
    q1 = BlockingDeque("q1", store)
    await q1.put(1)
    await q1.put(2)

    polled = await q1.poll_from_any_with_queue(1, end=End.LAST)
    assert polled == Polled(queue="q1", value=2)


async def test_poll_from_any_with_queue_timeout(store: InMemoryListStore) -> None:
    assert await BlockingDeque("q1", store).poll_from_any_with_queue(1, "q2") is None


# ---------------------------------------------------------------------------
# poll_last_and_offer_first_to
# ---------------------------------------------------------------------------


async def test_move_tail_to_destination_head(store: InMemoryListStore) -> None:
    src = BlockingDeque("src", store)
    dst = BlockingDeque("dst", store)
    await src.put("a")
    await src.put("b")
    await dst.put("x")

    assert await src.poll_last_and_offer_first_to("dst", 1) == "b"
    assert await src.read_all() == ["a"]
    assert await dst.read_all() == ["b", "x"]


async def test_move_is_a_single_command(store: InMemoryListStore) -> None:
    src = BlockingDeque("src", store)
    await src.put("a")
    store.history.clear()

    await src.poll_last_and_offer_first_to("dst", timedelta(seconds=3))

    assert store.history == [Command.of("BLMOVE", "src", "dst", "RIGHT", "LEFT", 3)]


async def test_move_empty_source_times_out_without_mutation(
    store: InMemoryListStore,
) -> None:
    src = BlockingDeque("src", store)
    dst = BlockingDeque("dst", store)
    await dst.put("x")

    start = time.monotonic()
    assert await src.poll_last_and_offer_first_to("dst", 1) is None
    assert time.monotonic() - start >= 0.95
    assert await dst.read_all() == ["x"]
    assert await src.size() == 0


async def test_move_waits_for_element(store: InMemoryListStore) -> None:
    src = BlockingDeque("src", store)
    mover = asyncio.create_task(src.poll_last_and_offer_first_to("dst", 0))
    await asyncio.sleep(0.05)
    await src.put("late")

    assert await asyncio.wait_for(mover, 1) == "late"
    assert store.snapshot("dst") == [b'"late"']


async def test_move_to_self_rotates(store: InMemoryListStore) -> None:
    q = BlockingDeque("ring", store)
    for v in (1, 2, 3):
        await q.put(v)

    assert await q.poll_last_and_offer_first_to("ring", 1) == 3
    assert await q.read_all() == [3, 1, 2]


# ---------------------------------------------------------------------------
# drain_to
# ---------------------------------------------------------------------------


async def test_drain_all_in_order_and_empties(queue: BlockingDeque) -> None:
    for v in ("a", "b", "c"):
        await queue.put(v)
    sink: list[str] = []

    assert await queue.drain_to(sink) == 3
    assert sink == ["a", "b", "c"]
    assert await queue.size() == 0


async def test_drain_after_head_pushes_reverses_push_order(queue: BlockingDeque) -> None:
    for v in (1, 2, 3):
        await queue.put_first(v)
    sink: list[int] = []

    await queue.drain_to(sink)

    assert sink == [3, 2, 1]


async def test_drain_single_element(queue: BlockingDeque) -> None:
    await queue.put("only")
    sink: list[str] = []

    assert await queue.drain_to(sink) == 1
    assert sink == ["only"]
    assert await queue.size() == 0


async def test_drain_appends_to_existing_items(queue: BlockingDeque) -> None:
    await queue.put("new")
    sink = ["old"]
    await queue.drain_to(sink)
    assert sink == ["old", "new"]


async def test_drain_into_set(queue: BlockingDeque) -> None:
    for v in ("a", "b", "a"):
        await queue.put(v)
    sink: set[str] = set()

    assert await queue.drain_to(sink) == 3
    assert sink == {"a", "b"}


async def test_drain_bounded_takes_head(queue: BlockingDeque) -> None:
    for v in range(5):
        await queue.put(v)
    sink: list[int] = []

    assert await queue.drain_to(sink, 2) == 2
    assert sink == [0, 1]
    assert await queue.read_all() == [2, 3, 4]


async def test_drain_bounded_exact_length(queue: BlockingDeque) -> None:
    for v in range(3):
        await queue.put(v)
    sink: list[int] = []

    assert await queue.drain_to(sink, 3) == 3
    assert await queue.size() == 0


async def test_drain_bounded_larger_than_length(queue: BlockingDeque) -> None:
    for v in range(3):
        await queue.put(v)
    sink: list[int] = []

    assert await queue.drain_to(sink, 100) == 3
    assert sink == [0, 1, 2]
    assert await queue.size() == 0


@pytest.mark.parametrize("max_elements", [0, -1, -100])
async def test_drain_non_positive_is_noop(
    queue: BlockingDeque, store: InMemoryListStore, max_elements: int
) -> None:
    await queue.put("a")
    store.history.clear()
    sink: list[str] = []

    assert await queue.drain_to(sink, max_elements) == 0
    assert sink == []
    assert store.history == []
    assert store.snapshot("q1") == [b'"a"']


async def test_drain_none_collection_raises_without_remote_call(
    queue: BlockingDeque, store: InMemoryListStore
) -> None:
    with pytest.raises(TypeError):
        await queue.drain_to(None)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        await queue.drain_to(None, 5)  # type: ignore[arg-type]
    assert store.history == []


@pytest.mark.parametrize("destination", [(), frozenset(), "", b""])
async def test_drain_immutable_destination_keeps_queue(
    queue: BlockingDeque, store: InMemoryListStore, destination
) -> None:
    await queue.put(1)
    await queue.put(2)
    store.history.clear()

    with pytest.raises(TypeError):
        await queue.drain_to(destination)
    with pytest.raises(TypeError):
        await queue.drain_to(destination, 1)

    assert store.history == []
    assert await queue.read_all() == [1, 2]


async def test_drain_empty_queue_leaves_collection(queue: BlockingDeque) -> None:
    sink = ["keep"]
    assert await queue.drain_to(sink) == 0
    assert await queue.drain_to(sink, 4) == 0
    assert sink == ["keep"]


async def test_drain_is_one_script(queue: BlockingDeque, store: InMemoryListStore) -> None:
    await queue.put("a")
    store.history.clear()

    await queue.drain_to([], 10)

    assert len(store.history) == 1
    assert isinstance(store.history[0], Script)


async def test_concurrent_drain_and_take_never_duplicate(store: InMemoryListStore) -> None:
    producer = BlockingDeque("work", store)
    for v in range(50):
        await producer.put(v)

    drained: list[int] = []
    consumers = [BlockingDeque("work", store) for _ in range(5)]

    async def drain_in_chunks() -> None:
        while await producer.drain_to(drained, 7):
            await asyncio.sleep(0)

    async def poll_until_empty(c: BlockingDeque) -> list[int]:
        got = []
        while (v := await c.poll(1)) is not None:
            got.append(v)
        return got

    results = await asyncio.gather(
        drain_in_chunks(), *(poll_until_empty(c) for c in consumers)
    )
    polled = [v for r in results[1:] for v in r]

    assert sorted(drained + polled) == list(range(50))


# ---------------------------------------------------------------------------
# Inspection
# ---------------------------------------------------------------------------


def test_remaining_capacity_is_max(queue: BlockingDeque) -> None:
    assert queue.remaining_capacity() == sys.maxsize


async def test_remaining_capacity_makes_no_call(
    queue: BlockingDeque, store: InMemoryListStore
) -> None:
    queue.remaining_capacity()
    assert store.history == []


async def test_size_and_delete(queue: BlockingDeque) -> None:
    await queue.put("a")
    await queue.put("b")
    assert await queue.size() == 2
    assert await queue.delete() is True
    assert await queue.size() == 0
    assert await queue.delete() is False


async def test_read_all_does_not_remove(queue: BlockingDeque) -> None:
    await queue.put("a")
    assert await queue.read_all() == ["a"]
    assert await queue.read_all() == ["a"]


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------


async def test_round_trip_pydantic_model(store: InMemoryListStore) -> None:
    queue = BlockingDeque("tasks", store, PydanticCodec(Task))
    task = Task(id=1, kind="email")

    await queue.put(task)

    assert await queue.take() == task


async def test_round_trip_every_single_element_pop(store: InMemoryListStore) -> None:
    queue = BlockingDeque("q", store, StringCodec())
    pops = [
        queue.take(),
        queue.take_last(),
        queue.poll(1),
        queue.poll_last(1),
        queue.poll_from_any(1),
        queue.poll_last_and_offer_first_to("elsewhere", 1),
    ]
    for pop in pops:
        await queue.put("héllo")
        assert await pop == "héllo"


# ---------------------------------------------------------------------------
# Failure propagation
# ---------------------------------------------------------------------------


async def test_executor_failure_propagates() -> None:
    executor = AsyncMock()
    failure = StorageError("Redis BLPOP failed", ConnectionError("reset"))
    executor.execute.side_effect = failure
    queue = BlockingDeque("q", executor)

    with pytest.raises(StorageError) as excinfo:
        await queue.poll(1)
    assert excinfo.value is failure


async def test_script_failure_propagates_and_leaves_collection() -> None:
    executor = AsyncMock()
    executor.evaluate.side_effect = StorageError("script failed", RuntimeError("OOM"))
    queue = BlockingDeque("q", executor)
    sink = ["keep"]

    with pytest.raises(StorageError):
        await queue.drain_to(sink)
    assert sink == ["keep"]


async def test_no_retry_on_failure() -> None:
    executor = AsyncMock()
    executor.execute.side_effect = StorageError("down", ConnectionError("refused"))
    queue = BlockingDeque("q", executor)

    with pytest.raises(StorageError):
        await queue.put("x")
    assert executor.execute.await_count == 1
