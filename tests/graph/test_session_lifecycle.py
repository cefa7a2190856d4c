# tests/graph/test_session_lifecycle.py
# SPDX-License-Identifier: Apache-2.0
"""
Session lifecycle - init, lazy init, terminate, and the default session.

Asserts:
  • init performs the handshake and fails when called twice
  • operations after terminate raise SessionTerminated
  • terminate flushes a non-empty queue exactly once, even after failures,
    and always releases the transport worker
  • two queued adds followed by a select produce one batch then one select
  • writes queued after a timed-out call are kept and sent by terminate
  • a failing terminate never hides the exception that ended the script
"""

import time

import pytest

import adscript_sdk as ads
from adscript_sdk.graph.graph_base import (
    AuthError,
    BatchError,
    BridgeBusy,
    ConfigurationError,
    DeadlineExceeded,
    SessionTerminated,
    Unavailable,
)
from adscript_sdk.graph.session import Session
from adscript_sdk.graph.terms import URI, Literal
from adscript_sdk.mock.mock_graph_store import MockGraphStore

EX = "http://example.org/"
DATA_GRAPH = "geo"

pytestmark = pytest.mark.e2e

A = EX + "A"
P = EX + "P"
P2 = EX + "P2"


def test_init_performs_handshake(session, store):
    assert session.is_initialized
    assert session.session_id in store.sessions
    assert session.base_graph == DATA_GRAPH
    assert session.prefixes["ex"] == EX
    assert store.ops() == ["begin"]
    begin = store.requests[0]["args"]
    assert begin["dataGraphId"] == DATA_GRAPH


def test_init_twice_is_configuration_error(session):
    with pytest.raises(ConfigurationError):
        session.init()


def test_example_scenario_batches_adds_before_select(make_session, store):
    session = make_session().init()
    session.add(A, P, "hello")
    session.add(A, P2, "world")
    assert session.pending_count == 2
    assert store.ops() == ["begin"]

    rows = session.select(f"SELECT ?o WHERE {{ <{A}> ?p ?o }} ORDER BY ?o")

    assert store.ops() == ["begin", "batch", "select"]
    batch = store.requests_for("batch")[0]["args"]["ops"]
    assert [e["op"] for e in batch] == ["add", "add"]
    assert [e["args"]["o"]["lex"] for e in batch] == ["hello", "world"]
    assert [r["o"] for r in rows] == [Literal("hello"), Literal("world")]

    session.terminate()
    assert store.ops() == ["begin", "batch", "select", "end"]
    assert session.is_terminated


def test_operations_after_terminate_raise(session):
    session.terminate()
    with pytest.raises(SessionTerminated):
        session.add(A, P, "x")
    with pytest.raises(SessionTerminated):
        session.select("SELECT * WHERE { ?s ?p ?o }")
    with pytest.raises(SessionTerminated):
        session.init()
    # terminate is idempotent
    session.terminate()


def test_terminate_flushes_pending_writes_once(session, store):
    session.add(A, P, "x")
    session.terminate("done")
    assert store.ops() == ["begin", "batch", "end"]
    assert store.requests_for("end")[0]["args"] == {"message": "done"}
    assert len(store.graph(DATA_GRAPH)) == 1


def test_terminate_flushes_after_an_earlier_failure(session, store):
    session.add(A, P, "x")
    store.fail_next("select", "UNAVAILABLE", "store restarting")
    with pytest.raises(Unavailable):
        session.select("SELECT * WHERE { ?s ?p ?o }")

    session.add(A, P, "y")
    session.terminate()

    assert store.ops() == ["begin", "batch", "select", "batch", "end"]
    assert len(store.graph(DATA_GRAPH)) == 2


def test_terminate_releases_worker_when_final_flush_fails(session, store):
    session.add(A, P, "x")
    store.fail_next("add", "BAD_REQUEST", "rejected by shape")

    with pytest.raises(BatchError) as ei:
        session.terminate()

    assert ei.value.details["failed_index"] == 0
    assert session.is_terminated
    assert store.ops() == ["begin", "batch", "end"]
    with pytest.raises(SessionTerminated):
        session.contains(A, P, "x")


def test_lazy_init_on_first_operation(make_session, store):
    session = make_session()
    assert not session.is_initialized
    session.add(A, P, "x")
    assert session.is_initialized
    assert store.ops() == ["begin"]


def test_terminate_before_init_sends_nothing(make_session, store):
    session = make_session()
    session.terminate()
    assert session.is_terminated
    assert store.requests == []


def test_context_manager_terminates(make_session, store):
    with make_session() as session:
        session.add(A, P, "x")
    assert session.is_terminated
    assert store.ops() == ["begin", "batch", "end"]


def test_context_manager_terminates_on_error(make_session, store):
    with pytest.raises(RuntimeError):
        with make_session() as session:
            raise RuntimeError("script bug")
    assert session.is_terminated
    assert store.requests_for("end")[0]["args"] == {"message": "aborted"}


def test_failed_handshake_releases_worker(make_config):
    store = MockGraphStore(credentials=("ann", "secret"))
    session = Session(make_config(), transport=store.as_httpx_transport())
    with pytest.raises(AuthError):
        session.init()
    assert not session.is_initialized


def test_handshake_with_credentials(make_config):
    store = MockGraphStore(credentials=("ann", "secret"))
    config = make_config(request_config={"auth": {"username": "ann", "password": "secret"}})
    with Session(config, transport=store.as_httpx_transport()) as session:
        assert session.session_id in store.sessions


def test_session_requires_config_object():
    with pytest.raises(ConfigurationError):
        Session({"server_url": "http://x"})


def test_module_level_default_session(make_config, store, reset_default_session):
    with pytest.raises(ConfigurationError):
        ads.current()
    with pytest.raises(ConfigurationError):
        ads.init()

    session = ads.init(make_config(), transport=store.as_httpx_transport())
    assert ads.current() is session
    with pytest.raises(ConfigurationError):
        ads.init(make_config(), transport=store.as_httpx_transport())

    session.add(URI(A), URI(P), "x")
    ads.terminate()
    assert session.is_terminated
    assert store.ops() == ["begin", "batch", "end"]

    # a terminated default session can be replaced
    again = ads.init(
        {"serverURL": "http://store.test/tbl", "dataGraphId": "other"},
        transport=store.as_httpx_transport(),
    )
    assert again.base_graph == "other"


def _slow_eval(delay_s):
    def handler(expr, bindings, store):
        time.sleep(delay_s)
        return "late"

    return handler


@pytest.mark.slow
def test_writes_after_timed_out_read_survive_terminate(make_session, store):
    store.register_eval("slow()", _slow_eval(0.6))
    session = make_session(timeout_s=0.1).init()

    with pytest.raises(DeadlineExceeded):
        session.eval("slow()")

    session.add(A, P, "kept")
    # the stale call blocks sending, but the write stays queued
    with pytest.raises(BridgeBusy) as ei:
        session.flush()
    assert ei.value.details["dispatched"] is False
    assert session.pending_count == 1

    session.terminate()

    assert store.ops() == ["begin", "evalOnServer", "batch", "end"]
    batch = store.requests_for("batch")[0]["args"]["ops"]
    assert [e["args"]["o"]["lex"] for e in batch] == ["kept"]
    assert len(store.graph(DATA_GRAPH)) == 1
    assert session.is_terminated


@pytest.mark.slow
def test_terminate_gives_up_on_a_call_that_never_finishes(make_session, store):
    store.register_eval("slow()", _slow_eval(1.0))
    session = make_session(timeout_s=0.1).init()
    with pytest.raises(DeadlineExceeded):
        session.eval("slow()")
    session.add(A, P, "x")

    with pytest.raises(BridgeBusy):
        session.terminate(drain_timeout_s=0.05)

    assert session.is_terminated
    assert "batch" not in store.ops()


def test_failing_terminate_keeps_the_script_exception(make_session, store):
    with pytest.raises(RuntimeError, match="script bug"):
        with make_session() as session:
            session.add(A, P, "x")
            store.fail_next("add", "BAD_REQUEST", "rejected by shape")
            raise RuntimeError("script bug")

    assert session.is_terminated
    assert store.ops() == ["begin", "batch", "end"]


def test_failing_terminate_raises_when_the_script_succeeded(make_session, store):
    with pytest.raises(BatchError):
        with make_session() as session:
            session.add(A, P, "x")
            store.fail_next("add", "BAD_REQUEST", "rejected by shape")
    assert session.is_terminated
