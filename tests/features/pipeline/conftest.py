"""BDD step definitions for the log pipeline features."""

import asyncio
from collections.abc import Iterator

import httpx
import pytest
from pytest_bdd import given, parsers, then, when
from tests.conftest import RecordingHandler
from tests.features.pipeline.steps_helpers import (
    PipelineScenarioContext,
    entry,
    split_chunks,
)

from shiplog.adapters.writer import WriterWrapper
from shiplog.core.accumulator import BatchAccumulator
from shiplog.core.errors import AccumulatorClosedError
from shiplog.core.ring_buffer import RingBuffer

# Long enough that a timer never fires unless a scenario wants it to
IDLE = 60.0


@pytest.fixture
def ctx() -> Iterator[PipelineScenarioContext]:
    """Fresh scenario context for each test."""
    context = PipelineScenarioContext()
    yield context
    context.close()


# === Accumulator Steps ===
def _make_accumulator(ctx: PipelineScenarioContext, category: str, **kwargs) -> None:
    ctx.handler = RecordingHandler()
    kwargs.setdefault("delay_threshold", IDLE)
    ctx.accumulator = BatchAccumulator(category, ctx.handler, **kwargs)


@given(parsers.parse('an accumulator for "{category}" with a byte threshold of {threshold:d}'))
def step_accumulator_bytes(ctx: PipelineScenarioContext, category: str, threshold: int) -> None:
    _make_accumulator(ctx, category, byte_threshold=threshold)


@given(
    parsers.parse(
        'an accumulator for "{category}" with a delay threshold of {delay:f} seconds'
    )
)
def step_accumulator_delay(ctx: PipelineScenarioContext, category: str, delay: float) -> None:
    _make_accumulator(ctx, category, delay_threshold=delay)


@given(parsers.parse("commits take {seconds:f} seconds"))
def step_commit_delay(ctx: PipelineScenarioContext, seconds: float) -> None:
    assert ctx.handler is not None
    ctx.handler.delay = seconds


def _add(ctx: PipelineScenarioContext, size: int) -> None:
    assert ctx.accumulator is not None
    new = entry(len(ctx.added) + 1)
    ctx.run(ctx.accumulator.add(new, size))
    ctx.added.append(new)


@when(parsers.parse("an entry of {size:d} bytes is added"))
def step_add_entry(ctx: PipelineScenarioContext, size: int) -> None:
    _add(ctx, size)


@when(parsers.parse("{count:d} entries of {size:d} bytes are added"))
def step_add_entries(ctx: PipelineScenarioContext, count: int, size: int) -> None:
    for _ in range(count):
        _add(ctx, size)


@when("the accumulator is flushed")
def step_flush(ctx: PipelineScenarioContext) -> None:
    assert ctx.accumulator is not None
    ctx.run(asyncio.wait_for(ctx.accumulator.flush(), timeout=5))


@when("the accumulator is closed")
def step_close(ctx: PipelineScenarioContext) -> None:
    assert ctx.accumulator is not None
    ctx.run(ctx.accumulator.close(grace_period=5))


@when(parsers.parse("{seconds:f} seconds pass"))
def step_wait(ctx: PipelineScenarioContext, seconds: float) -> None:
    ctx.run(asyncio.sleep(seconds))


@then("no batch has been released")
def step_no_batch(ctx: PipelineScenarioContext) -> None:
    assert ctx.accumulator is not None
    assert ctx.accumulator.stats.batches_sealed == 0
    assert ctx.batches == []


@then(parsers.parse("{count:d} batch has been committed"))
@then(parsers.parse("{count:d} batches have been committed"))
def step_batches_committed(ctx: PipelineScenarioContext, count: int) -> None:
    assert len(ctx.batches) == count


@then(parsers.parse("committed batch {n:d} holds {entries:d} entries and {size:d} bytes"))
def step_batch_contents(ctx: PipelineScenarioContext, n: int, entries: int, size: int) -> None:
    batch = ctx.batches[n - 1]
    assert len(batch) == entries
    assert batch.byte_size == size


@then(parsers.parse("at most {count:d} commit was in flight"))
def step_max_in_flight(ctx: PipelineScenarioContext, count: int) -> None:
    assert ctx.handler is not None
    assert ctx.handler.max_in_flight <= count


@then("batches were committed in the order their entries were added")
def step_commit_order(ctx: PipelineScenarioContext) -> None:
    committed = [e for batch in ctx.batches for e in batch.entries]
    assert committed == ctx.added


@then("adding another entry is refused")
def step_add_refused(ctx: PipelineScenarioContext) -> None:
    assert ctx.accumulator is not None
    with pytest.raises(AccumulatorClosedError):
        ctx.run(ctx.accumulator.add(entry(999), 10))


# === Ring Buffer Steps ===
@given(parsers.parse("a ring buffer with capacity {capacity:d}"))
def step_ring_buffer(ctx: PipelineScenarioContext, capacity: int) -> None:
    ctx.ring_buffer = RingBuffer(capacity)


@when(parsers.parse('chunks "{chunks}" are added'))
def step_add_chunks(ctx: PipelineScenarioContext, chunks: str) -> None:
    assert ctx.ring_buffer is not None
    for chunk in split_chunks(chunks):
        ctx.ring_buffer.add(chunk)


@then(parsers.parse('draining returns "{chunks}"'))
def step_drain_returns(ctx: PipelineScenarioContext, chunks: str) -> None:
    assert ctx.ring_buffer is not None
    assert ctx.ring_buffer.drain() == split_chunks(chunks)


@then("draining again returns nothing")
def step_drain_empty(ctx: PipelineScenarioContext) -> None:
    assert ctx.ring_buffer is not None
    assert ctx.ring_buffer.drain() == []


# === Shipping Steps ===
def _make_writer(ctx: PipelineScenarioContext) -> None:
    ctx.writer = WriterWrapper(
        "service",
        "host-1",
        ctx.sink,
        archive_url="http://archive.test",
        flush_interval=IDLE,
        client=ctx.recorder.client(),
    )


@given("a writer whose archive refuses connections")
def step_writer_archive_down(ctx: PipelineScenarioContext) -> None:
    ctx.recorder.error = httpx.ConnectError("connection refused")
    _make_writer(ctx)


@given("a writer whose archive accepts submissions")
def step_writer_archive_up(ctx: PipelineScenarioContext) -> None:
    _make_writer(ctx)


@when(parsers.parse('"{text}" is written'))
def step_write(ctx: PipelineScenarioContext, text: str) -> None:
    assert ctx.writer is not None
    ctx.write_results.append(ctx.writer.write(text.encode()))


@when("the writer ships its buffer")
def step_ship(ctx: PipelineScenarioContext) -> None:
    assert ctx.writer is not None
    ctx.writer.ship()


@then(parsers.parse("the write returned {n:d}"))
def step_write_returned(ctx: PipelineScenarioContext, n: int) -> None:
    assert ctx.write_results == [n]


@then(parsers.parse('the sink holds "{text}"'))
def step_sink_holds(ctx: PipelineScenarioContext, text: str) -> None:
    assert ctx.sink.getvalue() == text.encode()


@then(parsers.parse('the archive received {count:d} submission with body "{body}"'))
def step_archive_received(ctx: PipelineScenarioContext, count: int, body: str) -> None:
    assert len(ctx.recorder.requests) == count
    assert ctx.recorder.requests[0].content == body.encode()
