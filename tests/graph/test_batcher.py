# tests/graph/test_batcher.py
# SPDX-License-Identifier: Apache-2.0
"""
Operation queue - batching and flush policy.

Asserts:
  • a flush sends every pending entry, in enqueue order, as one batch
  • a read after a mutation triggers exactly one flush, sent before the read
  • 100 mutations without a read trigger exactly one automatic flush
  • reads_independent_of_writes skips the pre-read flush
  • a failed batch is reported and not resent
  • a batch the bridge refused before sending stays queued, in order
"""

from typing import Any, List

import pytest

from adscript_sdk.core.error_context import get_context
from adscript_sdk.graph.batcher import DEFAULT_FLUSH_THRESHOLD, OperationQueue
from adscript_sdk.graph.graph_base import (
    OP_ADD,
    OP_BATCH,
    OP_REMOVE,
    OP_SELECT,
    BatchError,
    BridgeBusy,
    DeadlineExceeded,
    OperationContext,
    RequestEnvelope,
    Unavailable,
)


class RecordingSend:
    """Stands in for SyncBridge.call; records every envelope."""

    def __init__(self) -> None:
        self.envelopes: List[RequestEnvelope] = []
        self.fail_with = None

    def __call__(self, envelope: RequestEnvelope) -> Any:
        self.envelopes.append(envelope)
        if self.fail_with is not None:
            exc, self.fail_with = self.fail_with, None
            raise exc
        if envelope.op == OP_BATCH:
            return {"applied": len(envelope.args["ops"])}
        return {"rows": []}

    @property
    def ops(self) -> List[str]:
        return [e.op for e in self.envelopes]


@pytest.fixture
def send():
    return RecordingSend()


@pytest.fixture
def queue(send):
    return OperationQueue(send, context=lambda: OperationContext(session_id="s1", data_graph="geo"))


def _add(i: int):
    return {"s": {"uri": f"http://example.org/s{i}"}, "p": {"uri": "http://example.org/p"}, "o": {"lex": str(i)}}


def test_enqueue_does_not_send(queue, send):
    queue.enqueue(OP_ADD, _add(1))
    assert len(queue) == 1
    assert send.envelopes == []


def test_flush_preserves_enqueue_order(queue, send):
    for i in range(10):
        queue.enqueue(OP_ADD if i % 3 else OP_REMOVE, _add(i))
    assert queue.flush() == {"applied": 10}

    assert send.ops == [OP_BATCH]
    entries = send.envelopes[0].args["ops"]
    assert [e["args"]["o"]["lex"] for e in entries] == [str(i) for i in range(10)]
    assert [e["op"] for e in entries] == [OP_ADD if i % 3 else OP_REMOVE for i in range(10)]
    assert len(queue) == 0


def test_flush_of_empty_queue_is_noop(queue, send):
    assert queue.flush() is None
    assert send.envelopes == []
    assert queue.flush_count == 0


def test_batch_envelope_carries_context(queue, send):
    queue.enqueue(OP_ADD, _add(1))
    queue.flush()
    wire = send.envelopes[0].to_wire()
    assert wire["ctx"]["session_id"] == "s1"
    assert wire["ctx"]["data_graph"] == "geo"
    assert wire["ctx"]["request_id"]


def test_read_flushes_once_before_reading(queue, send):
    queue.enqueue(OP_ADD, _add(1))
    queue.enqueue(OP_ADD, _add(2))
    queue.request_read(OP_SELECT, {"query": "SELECT * WHERE {?s ?p ?o}"})

    assert send.ops == [OP_BATCH, OP_SELECT]
    assert queue.flush_count == 1
    assert queue.read_count == 1


def test_read_with_empty_queue_sends_only_the_read(queue, send):
    queue.request_read(OP_SELECT, {"query": "q"})
    assert send.ops == [OP_SELECT]


def test_auto_flush_once_threshold_is_exceeded(queue, send):
    assert DEFAULT_FLUSH_THRESHOLD == 99
    for i in range(99):
        queue.enqueue(OP_ADD, _add(i))
    assert send.envelopes == []

    queue.enqueue(OP_ADD, _add(99))

    assert send.ops == [OP_BATCH]
    assert len(send.envelopes[0].args["ops"]) == 100
    assert queue.flush_count == 1
    assert len(queue) == 0


def test_custom_threshold(send):
    q = OperationQueue(send, flush_threshold=2)
    for i in range(7):
        q.enqueue(OP_ADD, _add(i))
    assert q.flush_count == 2
    assert len(q) == 1


def test_independent_reads_skip_flush(send):
    q = OperationQueue(send, reads_independent_of_writes=True)
    q.enqueue(OP_ADD, _add(1))
    q.request_read(OP_SELECT, {"query": "q"})

    assert send.ops == [OP_SELECT]
    assert len(q) == 1
    assert q.reads_independent_of_writes


def test_failed_batch_is_not_resent(queue, send):
    queue.enqueue(OP_ADD, _add(1))
    send.fail_with = BatchError("entry 0 failed", details={"failed_index": 0})

    with pytest.raises(BatchError) as ei:
        queue.flush()
    ctx = get_context(ei.value, origin="batcher")
    assert ctx["operation"] == "batch"
    assert ctx["pending"] == 1

    assert len(queue) == 0
    assert queue.flush() is None
    assert send.ops == [OP_BATCH]


def test_failed_implicit_flush_surfaces_at_the_read(queue, send):
    queue.enqueue(OP_ADD, _add(1))
    send.fail_with = BatchError("rejected")
    with pytest.raises(BatchError):
        queue.request_read(OP_SELECT, {"query": "q"})
    assert send.ops == [OP_BATCH]


def test_send_direct_bypasses_queue(queue, send):
    queue.enqueue(OP_ADD, _add(1))
    queue.send_direct("end", {})
    assert send.ops == ["end"]
    assert len(queue) == 1


def test_negative_threshold_rejected(send):
    with pytest.raises(ValueError):
        OperationQueue(send, flush_threshold=-1)


def test_refused_batch_stays_queued_ahead_of_later_writes(queue, send):
    queue.enqueue(OP_ADD, _add(1))
    queue.enqueue(OP_ADD, _add(2))
    send.fail_with = BridgeBusy("still in flight", details={"dispatched": False})

    with pytest.raises(BridgeBusy):
        queue.flush()
    assert len(queue) == 2
    assert queue.flush_count == 0

    queue.enqueue(OP_ADD, _add(3))
    queue.flush()
    entries = send.envelopes[-1].args["ops"]
    assert [e["args"]["o"]["lex"] for e in entries] == ["1", "2", "3"]
    assert queue.flush_count == 1


def test_request_level_failure_becomes_batch_error(queue, send):
    queue.enqueue(OP_ADD, _add(1))
    queue.enqueue(OP_REMOVE, _add(2))
    send.fail_with = Unavailable("HTTP 503", details={"status": 503})

    with pytest.raises(BatchError) as ei:
        queue.flush()

    assert ei.value.details == {"pending": 2, "cause": "UNAVAILABLE", "status": 503}
    assert isinstance(ei.value.__cause__, Unavailable)
    assert len(queue) == 0


def test_timed_out_batch_is_not_resent(queue, send):
    queue.enqueue(OP_ADD, _add(1))
    send.fail_with = DeadlineExceeded("too slow")

    with pytest.raises(BatchError) as ei:
        queue.flush()
    assert ei.value.details["cause"] == "DEADLINE_EXCEEDED"
    assert queue.flush() is None
    assert send.ops == [OP_BATCH]
