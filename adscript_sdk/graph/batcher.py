# adscript_sdk/graph/batcher.py
# SPDX-License-Identifier: Apache-2.0
"""
Write batching and flush policy.

Mutations are buffered locally and sent as one ``batch`` request; reads
flush pending mutations first so they observe the script's own writes.

Policy
------
- ``enqueue`` appends in arrival order. Once more than ``flush_threshold``
  entries are pending (default 99) the queue flushes on its own.
- ``flush`` sends every pending entry, in order, as a single request. A
  batch that reached the server is never resent, even when it failed. A
  batch the bridge refused before sending (``details["dispatched"]`` is
  False) goes back to the front of the queue for the next flush.
- ``request_read`` flushes first unless the owner declared that reads do not
  depend on writes.

``reads_independent_of_writes=True`` is an assertion made by the caller
(read-only analytics scripts, for example). It is not checked at runtime: a
script that sets it and then reads its own unflushed writes sees stale data,
and that is a caller error.

The queue belongs to the calling thread; the transport worker never
touches it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Tuple

from adscript_sdk.core.error_context import attach_context
from adscript_sdk.graph.graph_base import (
    AdscriptError,
    BatchError,
    BatchOperation,
    OperationContext,
    RequestEnvelope,
    batch_envelope,
)

logger = logging.getLogger(__name__)

#: Pending entries allowed before an automatic flush.
DEFAULT_FLUSH_THRESHOLD = 99


class OperationQueue:
    """
    Buffers mutation entries and decides when to send them.

    Parameters
    ----------
    send:
        Blocking call that delivers one envelope and returns its result
        (``SyncBridge.call``).
    context:
        Callable returning the ``OperationContext`` for the next request, so
        session id and active data graph are read at send time.
    reads_independent_of_writes:
        Skip the flush before reads (caller assertion, see module docs).
    flush_threshold:
        Auto-flush once more than this many entries are pending.
    """

    def __init__(
        self,
        send: Callable[[RequestEnvelope], Any],
        *,
        context: Optional[Callable[[], OperationContext]] = None,
        reads_independent_of_writes: bool = False,
        flush_threshold: int = DEFAULT_FLUSH_THRESHOLD,
    ) -> None:
        if flush_threshold < 0:
            raise ValueError("flush_threshold must be >= 0")
        self._send = send
        self._context = context or OperationContext
        self._reads_independent = bool(reads_independent_of_writes)
        self._flush_threshold = int(flush_threshold)
        self._pending: List[BatchOperation] = []
        self.flush_count = 0
        self.read_count = 0

    @property
    def pending(self) -> Tuple[BatchOperation, ...]:
        return tuple(self._pending)

    @property
    def reads_independent_of_writes(self) -> bool:
        return self._reads_independent

    @property
    def flush_threshold(self) -> int:
        return self._flush_threshold

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, op: str, args: Mapping[str, Any]) -> None:
        """Append one mutation; flushes when the threshold is exceeded."""
        self._pending.append(BatchOperation(op=op, args=dict(args)))
        logger.debug("OperationQueue: queued %s (%d pending)", op, len(self._pending))
        if len(self._pending) > self._flush_threshold:
            logger.debug(
                "OperationQueue: %d pending exceeds threshold %d; flushing",
                len(self._pending),
                self._flush_threshold,
            )
            self.flush()

    def flush(self) -> Any:
        """
        Send all pending entries as one batch. No-op (returns None) if empty.

        Raises
        ------
        BatchError
            The batch reached the server and failed, either per entry or as a
            whole request. Entries before a failing one may already be
            applied; nothing is rolled back or resent. ``details["pending"]``
            holds the number of entries sent.
        AdscriptError
            The bridge refused the request before sending it; the entries
            are kept, ahead of anything queued later.
        """
        if not self._pending:
            return None

        ops, self._pending = self._pending, []
        envelope = batch_envelope(ops, self._context())
        logger.debug("OperationQueue: flushing %d entries", len(ops))
        try:
            result = self._send(envelope)
        except AdscriptError as exc:
            if exc.details.get("dispatched") is False:
                self._pending[:0] = ops
                logger.warning(
                    "OperationQueue: batch of %d entries not sent (%s); kept for the next flush",
                    len(ops),
                    exc.code,
                )
                attach_context(exc, "batcher", operation="batch", pending=len(self._pending))
                raise
            self.flush_count += 1
            attach_context(exc, "batcher", operation="batch", pending=len(ops))
            if isinstance(exc, BatchError):
                exc.details.setdefault("pending", len(ops))
                raise
            details = {"pending": len(ops), "cause": exc.code}
            if "status" in exc.details:
                details["status"] = exc.details["status"]
            wrapped = BatchError(
                f"batch of {len(ops)} entries failed: {exc.message}",
                retry_after_ms=exc.retry_after_ms,
                details=details,
            )
            attach_context(wrapped, "batcher", operation="batch", pending=len(ops))
            raise wrapped from exc
        self.flush_count += 1
        return result

    def request_read(self, op: str, args: Mapping[str, Any]) -> Any:
        """Flush (unless reads are independent), then issue the read."""
        if not self._reads_independent:
            self.flush()
        self.read_count += 1
        return self._send(RequestEnvelope(op=op, args=dict(args), ctx=self._context()))

    def send_direct(self, op: str, args: Mapping[str, Any]) -> Any:
        """Issue a control call (handshake, end) without touching the queue."""
        return self._send(RequestEnvelope(op=op, args=dict(args), ctx=self._context()))


__all__ = [
    "OperationQueue",
    "DEFAULT_FLUSH_THRESHOLD",
]
