# adscript_sdk/core/sync_bridge.py
# SPDX-License-Identifier: Apache-2.0

"""
SyncBridge

Makes an asynchronous request handler look like a blocking function to
single-threaded synchronous code (scripts that cannot await or yield).

Design goals
------------
- Transport-agnostic: the handler is any object with async ``start``,
  ``send`` and ``aclose``; the bridge knows nothing about HTTP or RDF.
- Safe: no nested event loops; the handler lives on a dedicated worker
  thread running its own asyncio loop for the lifetime of the bridge.
- Single-flight: one outstanding call per bridge. A second call while one is
  in flight is rejected with ``BridgeBusy``; calls are never interleaved.
- Fail fast: if the worker cannot start, ``start()`` raises
  ``BridgeUnavailable`` instead of hanging on first use.
- Bounded: calls wait at most ``timeout_s`` (``None`` disables the bound).

Call protocol
-------------
The caller and the worker share a rendezvous slot with three states
(``SLOT_AWAITING``, ``SLOT_SUCCESS``, ``SLOT_ERROR``) guarded by a
``threading.Condition``, plus a single-slot reply channel.

1. The caller resets the slot to ``SLOT_AWAITING``.
2. The caller hands the payload to the worker loop (``call_soon_threadsafe``).
3. The caller blocks on the condition (the OS thread sleeps, no spinning)
   until the slot leaves ``SLOT_AWAITING`` or the timeout elapses.
4. The worker awaits ``handler.send(payload)``, puts the reply into the
   channel, then sets the slot and notifies. The worker is the only writer of
   both and does both under the condition lock, reply first.
5. The caller takes the reply and either returns it or raises the error it
   carries.

Timeouts
--------
A call that exceeds its timeout raises ``DeadlineExceeded``. The in-flight
request keeps running on the worker; the bridge is marked stale and rejects
every call with ``BridgeBusy`` until that request completes. Its result is
discarded and the stale mark cleared, so the slot is never reused while a
late reply could still land in it. ``wait_idle`` blocks until that happens.

Errors raised before the payload reaches the worker (closed, busy, stale)
carry ``details["dispatched"] = False``: the server never saw the request.

Typical usage
-------------

    bridge = SyncBridge(lambda: HttpTransport(...), timeout_s=60.0)
    bridge.start()
    try:
        result = bridge.call(envelope)
    finally:
        bridge.close()

The handler's ``send`` must return a reply envelope: ``{"ok": True,
"result": ...}`` on success or ``{"ok": False, "code": ..., "message": ...}``
on failure. Exceptions escaping ``send`` are converted into the latter on
the worker thread; nothing is raised across the thread boundary.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextvars
import logging
import queue
import threading
from typing import Any, Callable, List, Mapping, Optional, Protocol, Set

from adscript_sdk.core.error_context import attach_context
from adscript_sdk.graph.graph_base import (
    AdscriptError,
    BridgeBusy,
    BridgeUnavailable,
    DeadlineExceeded,
    error_from_wire,
    error_to_wire,
)

logger = logging.getLogger(__name__)

SLOT_AWAITING = 0
SLOT_SUCCESS = 1
SLOT_ERROR = 2

#: Default bound on a single blocking call, in seconds.
DEFAULT_CALL_TIMEOUT_S: Optional[float] = 120.0

_UNSET: Any = object()


class AsyncHandler(Protocol):
    """What the bridge drives on its worker thread."""

    async def start(self) -> None:
        ...

    async def send(self, payload: Any) -> Mapping[str, Any]:
        ...

    async def aclose(self) -> None:
        ...


class SyncBridge:
    """
    Blocking facade over an async handler running on one worker thread.

    Parameters
    ----------
    handler_factory:
        Zero-argument callable returning the handler. It is invoked on the
        worker thread so the handler binds to the worker's event loop.

    timeout_s:
        Default bound for ``call``; ``None`` waits indefinitely.

    start_timeout_s:
        Bound on worker startup (loop creation + ``handler.start()``).

    join_timeout_s:
        Bound on handler shutdown and thread join during ``close``.

    name:
        Worker thread name, also used in log lines and error context.
    """

    def __init__(
        self,
        handler_factory: Callable[[], AsyncHandler],
        *,
        timeout_s: Optional[float] = DEFAULT_CALL_TIMEOUT_S,
        start_timeout_s: float = 30.0,
        join_timeout_s: float = 5.0,
        name: str = "adscript_transport",
    ) -> None:
        self._handler_factory = handler_factory
        self._timeout_s = timeout_s
        self._start_timeout_s = float(start_timeout_s)
        self._join_timeout_s = float(join_timeout_s)
        self._name = name

        # Rendezvous slot + single-slot reply channel.
        self._cond = threading.Condition()
        self._slot = SLOT_AWAITING
        self._reply: "queue.Queue[Any]" = queue.Queue(maxsize=1)
        self._call_id = 0
        self._stale_call_id: Optional[int] = None
        self._worker_exited = False

        self._call_lock = threading.Lock()
        self._lifecycle_lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handler: Optional[AsyncHandler] = None
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._started = False
        self._closed = False
        # Capture contextvars so logging context propagates into the worker.
        self._parent_context = contextvars.copy_context()

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return (
            self._started
            and not self._closed
            and thread is not None
            and thread.is_alive()
        )

    @property
    def is_stale(self) -> bool:
        """True while a timed-out call is still in flight on the worker."""
        with self._cond:
            return self._stale_call_id is not None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """
        Start the worker thread and the handler; block until ready.

        Raises
        ------
        BridgeUnavailable
            If the thread cannot be started, the handler fails to start, or
            startup exceeds ``start_timeout_s``.
        """
        with self._lifecycle_lock:
            if self._closed:
                raise BridgeUnavailable(f"bridge {self._name} is closed")
            if self._started:
                return

            ready = threading.Event()
            errors: List[BaseException] = []

            def _thread_target() -> None:
                try:
                    self._parent_context.run(self._worker_main, ready, errors)
                except BaseException as exc:  # noqa: BLE001
                    logger.error(
                        "SyncBridge worker %s crashed: %s", self._name, exc, exc_info=True
                    )
                    errors.append(exc)
                finally:
                    with self._cond:
                        self._worker_exited = True
                        self._cond.notify_all()
                    ready.set()

            thread = threading.Thread(target=_thread_target, name=self._name, daemon=True)
            try:
                thread.start()
            except RuntimeError as exc:
                raise BridgeUnavailable(
                    f"failed to start transport worker thread: {exc}"
                ) from exc
            self._thread = thread

            if not ready.wait(self._start_timeout_s):
                self._closed = True
                raise BridgeUnavailable(
                    f"transport worker {self._name} did not start within "
                    f"{self._start_timeout_s:.1f}s"
                )
            if errors:
                self._closed = True
                thread.join(self._join_timeout_s)
                raise BridgeUnavailable(
                    f"transport worker failed to start: {errors[0]}"
                ) from errors[0]

            self._started = True
            logger.debug("SyncBridge: worker thread %s started", thread.name)

    def close(self) -> None:
        """
        Shut down the handler, stop the loop and join the worker.

        Idempotent; safe after failures and after timeouts (in-flight
        requests are cancelled).
        """
        with self._lifecycle_lock:
            if self._closed and self._thread is None:
                return
            self._closed = True
            loop = self._loop
            thread = self._thread
            self._thread = None

        if loop is not None and thread is not None and thread.is_alive():
            try:
                fut = asyncio.run_coroutine_threadsafe(self._shutdown_handler(), loop)
                fut.result(timeout=self._join_timeout_s)
            except concurrent.futures.TimeoutError:
                logger.warning(
                    "SyncBridge %s: handler did not close within %.3fs",
                    self._name,
                    self._join_timeout_s,
                )
            except RuntimeError as exc:
                logger.debug("SyncBridge %s: loop already stopped: %s", self._name, exc)
            except Exception as exc:  # noqa: BLE001
                logger.warning("SyncBridge %s: handler close failed: %s", self._name, exc)
            try:
                loop.call_soon_threadsafe(loop.stop)
            except RuntimeError:
                pass

        if thread is not None:
            thread.join(self._join_timeout_s)
            if thread.is_alive():
                logger.warning(
                    "SyncBridge worker thread %s did not exit within %.3fs",
                    thread.name,
                    self._join_timeout_s,
                )
        with self._cond:
            self._cond.notify_all()
        logger.debug("SyncBridge: %s closed", self._name)

    def __enter__(self) -> "SyncBridge":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Blocking call
    # ------------------------------------------------------------------ #

    def call(self, payload: Any, *, timeout_s: Optional[float] = _UNSET) -> Any:
        """
        Send ``payload`` to the handler and block until its reply arrives.

        Returns
        -------
        Any
            The ``result`` of a success reply.

        Raises
        ------
        BridgeUnavailable
            Bridge not started, closed, or the worker died.
        BridgeBusy
            Another call is in flight, or a timed-out call has not finished.
        DeadlineExceeded
            The reply did not arrive within the timeout.
        AdscriptError
            The typed error carried by an error reply (message preserved).

        ``BridgeUnavailable`` and ``BridgeBusy`` raised before dispatch carry
        ``details["dispatched"] = False``.
        """
        timeout = self._timeout_s if timeout_s is _UNSET else timeout_s
        operation = getattr(payload, "op", None)

        rejected = {"operation": operation, "dispatched": False}
        if self._closed:
            raise BridgeUnavailable(f"bridge {self._name} is closed", details=rejected)
        if not self._started or self._loop is None:
            raise BridgeUnavailable(f"bridge {self._name} is not started", details=rejected)

        if not self._call_lock.acquire(blocking=False):
            raise BridgeBusy(
                "another blocking call is already in flight on this bridge",
                details=rejected,
            )
        try:
            with self._cond:
                if self._stale_call_id is not None:
                    raise BridgeBusy(
                        f"call {self._stale_call_id} timed out and is still in flight",
                        details=rejected,
                    )
                if self._worker_exited:
                    raise BridgeUnavailable(
                        f"transport worker {self._name} has exited", details=rejected
                    )
                self._call_id += 1
                call_id = self._call_id
                self._slot = SLOT_AWAITING
                self._drain_reply()

            try:
                self._loop.call_soon_threadsafe(self._dispatch, call_id, payload)
            except RuntimeError as exc:
                raise BridgeUnavailable(
                    f"transport worker {self._name} is not accepting requests: {exc}",
                    details=rejected,
                ) from exc

            logger.debug("SyncBridge %s: call %d (%s) dispatched", self._name, call_id, operation)

            with self._cond:
                self._cond.wait_for(
                    lambda: self._slot != SLOT_AWAITING or self._worker_exited or self._closed,
                    timeout=timeout,
                )
                state = self._slot
                if state == SLOT_AWAITING:
                    if self._worker_exited or self._closed:
                        raise BridgeUnavailable(
                            f"transport worker {self._name} stopped during call {call_id}"
                        )
                    self._stale_call_id = call_id
                    logger.warning(
                        "SyncBridge %s: call %d (%s) exceeded %.3fs; bridge unusable until it completes",
                        self._name,
                        call_id,
                        operation,
                        timeout,
                    )
                    raise DeadlineExceeded(
                        f"remote call {operation or call_id!s} exceeded timeout={timeout!r}s",
                        details={"operation": operation, "call_id": call_id},
                    )
                reply = self._reply.get_nowait()

            if state == SLOT_ERROR:
                exc = self._to_exception(reply)
                attach_context(exc, "bridge", operation=operation, call_id=call_id, bridge=self._name)
                raise exc
            return reply
        finally:
            self._call_lock.release()

    def wait_idle(self, timeout_s: Optional[float] = None) -> bool:
        """
        Block until no timed-out call is still in flight.

        Returns True once the bridge accepts calls again, False if
        ``timeout_s`` elapsed first or the worker stopped.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._stale_call_id is None or self._worker_exited or self._closed,
                timeout=timeout_s,
            )
            return self._stale_call_id is None and not self._worker_exited and not self._closed

    # ------------------------------------------------------------------ #
    # Worker side
    # ------------------------------------------------------------------ #

    def _worker_main(self, ready: threading.Event, errors: List[BaseException]) -> None:
        """Worker entrypoint: own loop, start handler, serve until stopped."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            try:
                self._handler = self._handler_factory()
                loop.run_until_complete(self._handler.start())
            except BaseException as exc:  # noqa: BLE001
                logger.error("SyncBridge %s: handler failed to start: %s", self._name, exc)
                errors.append(exc)
                if self._handler is not None:
                    try:
                        loop.run_until_complete(self._handler.aclose())
                    except Exception as close_exc:  # noqa: BLE001
                        logger.debug("SyncBridge %s: handler close failed: %s", self._name, close_exc)
                return
            ready.set()
            loop.run_forever()
        finally:
            try:
                pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
                for task in pending:
                    task.cancel()
                if pending:
                    loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                loop.close()
                asyncio.set_event_loop(None)

    def _dispatch(self, call_id: int, payload: Any) -> None:
        """Runs on the worker loop; never blocks."""
        task = asyncio.get_running_loop().create_task(self._run_call(call_id, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_call(self, call_id: int, payload: Any) -> None:
        try:
            reply = await self._handler.send(payload)
        except asyncio.CancelledError:
            self._complete(
                call_id,
                SLOT_ERROR,
                error_to_wire(BridgeUnavailable("call cancelled during shutdown")),
            )
            raise
        except Exception as exc:  # noqa: BLE001
            logger.debug("SyncBridge %s: call %d raised in handler: %s", self._name, call_id, exc)
            self._complete(call_id, SLOT_ERROR, error_to_wire(exc))
            return

        if isinstance(reply, Mapping) and reply.get("ok") is True:
            self._complete(call_id, SLOT_SUCCESS, reply.get("result"))
        elif isinstance(reply, Mapping) and reply.get("ok") is False:
            self._complete(call_id, SLOT_ERROR, dict(reply))
        else:
            self._complete(
                call_id,
                SLOT_ERROR,
                {
                    "ok": False,
                    "code": "PROTOCOL_ERROR",
                    "message": f"handler returned a non-envelope reply of type {type(reply).__name__}",
                },
            )

    def _complete(self, call_id: int, state: int, payload: Any) -> None:
        """Post the reply, then signal. Sole writer of both."""
        with self._cond:
            if self._stale_call_id == call_id:
                self._stale_call_id = None
                logger.warning(
                    "SyncBridge %s: discarding late reply of timed-out call %d", self._name, call_id
                )
                self._cond.notify_all()
                return
            if call_id != self._call_id:
                logger.debug("SyncBridge %s: ignoring reply for unknown call %d", self._name, call_id)
                return
            self._drain_reply()
            self._reply.put_nowait(payload)
            self._slot = state
            self._cond.notify_all()

    async def _shutdown_handler(self) -> None:
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*(t for t in self._tasks if t is not current), return_exceptions=True)
        if self._handler is not None:
            await self._handler.aclose()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _drain_reply(self) -> None:
        try:
            while True:
                self._reply.get_nowait()
        except queue.Empty:
            pass

    @staticmethod
    def _to_exception(reply: Any) -> AdscriptError:
        if isinstance(reply, Mapping):
            return error_from_wire(reply)
        return error_from_wire({"code": "TRANSPORT_ERROR", "message": str(reply)})


__all__ = [
    "SyncBridge",
    "AsyncHandler",
    "SLOT_AWAITING",
    "SLOT_SUCCESS",
    "SLOT_ERROR",
    "DEFAULT_CALL_TIMEOUT_S",
]
