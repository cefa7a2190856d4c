# tests/graph/test_session_operations.py
# SPDX-License-Identifier: Apache-2.0
"""
Session graph primitives against the mock store.

Asserts:
  • mutations are queued and applied in order; reads observe them
  • values / value / contains / triples / select / construct / eval decode
    results into terms
  • data graph switching flushes first and retargets later requests
  • partial batch failures report the failing index without rollback
  • a batch rejected as a whole is reported as BatchError and not resent
  • streamed reads return the same results as buffered ones
"""

import pytest

from adscript_sdk.graph.graph_base import (
    BatchError,
    NotSupported,
    TermConstructionError,
    Unavailable,
)
from adscript_sdk.graph.terms import XSD_INTEGER, URI, Literal

pytestmark = pytest.mark.e2e

EX = "http://example.org/"
A = URI(EX + "a")
B = URI(EX + "b")
NAME = URI(EX + "name")
AGE = URI(EX + "age")
KNOWS = URI(EX + "knows")


def test_values_and_value(session):
    session.add(A, NAME, "Ann")
    session.add(A, NAME, Literal("Anna", lang="sv"))
    session.add(A, AGE, 41)

    names = session.values(A, NAME)
    assert set(names) == {Literal("Ann"), Literal("Anna", lang="sv")}
    assert session.value(A, AGE) == Literal("41", datatype=XSD_INTEGER)
    assert session.value(B, AGE) is None


def test_contains_with_wildcards(session):
    session.add(A, KNOWS, B)
    assert session.contains(A, KNOWS, B)
    assert session.contains(A, None, None)
    assert not session.contains(B, KNOWS, None)


def test_remove_with_wildcard(session):
    session.add(A, NAME, "Ann")
    session.add(A, AGE, 41)
    session.add(B, NAME, "Bob")
    session.remove(A, None, None)
    assert session.triples(A) == []
    assert session.triples(None, NAME) == [(B, NAME, Literal("Bob"))]


def test_set_values_replaces(session):
    session.add(A, NAME, "old")
    session.set_values(A, NAME, ["new", "newer"])
    assert set(session.values(A, NAME)) == {Literal("new"), Literal("newer")}

    session.set_value(A, NAME, None)
    assert session.values(A, NAME) == []


def test_add_and_remove_values(session):
    session.add_values(A, KNOWS, [B, URI(EX + "c")])
    session.remove_values(A, KNOWS, B)
    assert session.values(A, KNOWS) == [URI(EX + "c")]


def test_blank_nodes_round_trip(session):
    blank = URI("_:b42")
    session.add(blank, NAME, "anonymous")
    rows = session.select("SELECT ?s WHERE { ?s ?p ?o }")
    assert rows == [{"s": blank}]
    assert rows[0]["s"].value == "_:b42"


def test_select_with_bindings(session):
    session.add(A, NAME, "Ann")
    session.add(B, NAME, "Bob")
    rows = session.select("SELECT ?n WHERE { ?who ?p ?n }", bindings={"who": B})
    assert rows == [{"n": Literal("Bob")}]


def test_select_omits_unbound_variables(session):
    session.add(A, NAME, "Ann")
    rows = session.select(
        "SELECT ?s ?age WHERE { ?s <http://example.org/name> ?n "
        "OPTIONAL { ?s <http://example.org/age> ?age } }"
    )
    assert rows == [{"s": A}]


def test_construct_returns_triples(session):
    session.add(A, KNOWS, B)
    triples = session.construct("CONSTRUCT { ?o ?p ?s } WHERE { ?s ?p ?o }")
    assert triples == [(B, KNOWS, A)]


def test_eval_on_server(session, store):
    store.register_eval("count()", lambda expr, bindings, s: len(s.graph("geo")))
    store.register_eval("echo(x)", lambda expr, bindings, s: [bindings["x"], "plain"])

    session.add(A, NAME, "Ann")
    assert session.eval("count()") == 1
    assert session.eval("echo(x)", bindings={"x": A}) == [A, "plain"]

    with pytest.raises(NotSupported):
        session.eval("unknown()")


def test_eval_flushes_first(session, store):
    store.register_eval("count()", lambda expr, bindings, s: len(s.graph("geo")))
    session.add(A, NAME, "Ann")
    session.eval("count()")
    assert store.ops()[-2:] == ["batch", "evalOnServer"]


def test_literal_subject_is_rejected_before_sending(session, store):
    with pytest.raises(TermConstructionError):
        session.add(Literal("x"), NAME, "y")
    with pytest.raises(TermConstructionError):
        session.add(A, NAME, object())
    assert session.pending_count == 0
    assert store.ops() == ["begin"]


def test_qnames_use_handshake_prefixes(session):
    assert session.node({"qname": "ex:a"}) == A
    assert session.expand("ex:name") == NAME
    assert session.qname(A) == "ex:a"
    assert session.qname("urn:x") is None
    assert session.unique_uri(EX + "item/").value.startswith(EX + "item/")


def test_data_graph_switch_flushes_and_retargets(session, store):
    session.add(A, NAME, "in geo")
    session.enter_data_graph("other")
    assert store.ops()[-1] == "batch"
    assert store.requests[-1]["ctx"]["data_graph"] == "geo"

    session.add(A, NAME, "in other")
    assert session.active_data_graph == "other"
    session.exit_data_graph()
    assert store.requests[-1]["ctx"]["data_graph"] == "other"
    assert session.active_data_graph == "geo"

    assert len(store.graph("geo")) == 1
    assert len(store.graph("other")) == 1


def test_data_graph_context_manager(session, store):
    with session.data_graph(URI("urn:graph:people")):
        session.add(A, NAME, "Ann")
        assert session.values(A, NAME) == [Literal("Ann")]
    assert session.values(A, NAME) == []
    assert len(store.graph("urn:graph:people")) == 1


def test_exit_without_enter_is_error(session):
    from adscript_sdk.graph.graph_base import ConfigurationError

    with pytest.raises(ConfigurationError):
        session.exit_data_graph()


def test_partial_batch_failure_is_not_rolled_back(session, store):
    session.add(A, NAME, "kept")
    session.remove(A, AGE, None)
    session.add(A, NAME, "lost")
    store.fail_next("remove", "BAD_REQUEST", "shape violation")

    with pytest.raises(BatchError) as ei:
        session.flush()

    assert ei.value.details["failed_index"] == 1
    assert "shape violation" in ei.value.message
    assert session.pending_count == 0
    assert session.values(A, NAME) == [Literal("kept")]


def test_http_failure_surfaces_with_status(session, store):
    store.fail_next("values", status=503, message="maintenance")
    with pytest.raises(Unavailable) as ei:
        session.values(A, NAME)
    assert "HTTP 503" in ei.value.message
    assert "maintenance" in ei.value.message
    assert ei.value.details["status"] == 503


def test_reads_independent_of_writes_skips_flush(make_session, store):
    session = make_session(reads_independent_of_writes=True)
    session.add(A, NAME, "Ann")
    assert session.values(A, NAME) == []
    assert store.ops() == ["begin", "values"]
    session.flush()
    assert session.values(A, NAME) == [Literal("Ann")]


def test_auto_flush_after_threshold(make_session, store):
    session = make_session()
    for i in range(100):
        session.add(A, NAME, f"n{i}")
    assert store.ops() == ["begin", "batch"]
    assert len(store.requests_for("batch")[0]["args"]["ops"]) == 100
    assert session.pending_count == 0


def test_streamed_reads_match_buffered(make_session, store):
    store.stream_chunk_size = 2
    session = make_session(streaming=True)
    for i in range(5):
        session.add(URI(f"{EX}s{i}"), NAME, f"n{i}")

    rows = session.select("SELECT ?s ?n WHERE { ?s ?p ?n } ORDER BY ?n")
    assert [r["n"] for r in rows] == [Literal(f"n{i}") for i in range(5)]
    assert len(session.triples(None, NAME)) == 5
    assert len(session.construct("CONSTRUCT { ?s ?p ?o } WHERE { ?s ?p ?o }")) == 5


def test_batch_rejected_at_http_level_is_batch_error(session, store):
    session.add(A, NAME, "Ann")
    session.add(B, NAME, "Bob")
    store.fail_next("batch", status=503, message="maintenance")

    with pytest.raises(BatchError) as ei:
        session.flush()

    assert ei.value.details["pending"] == 2
    assert ei.value.details["cause"] == "UNAVAILABLE"
    assert ei.value.details["status"] == 503
    assert isinstance(ei.value.__cause__, Unavailable)
    assert session.pending_count == 0
    assert session.values(A, NAME) == []
    assert store.ops().count("batch") == 1


def test_data_graph_block_keeps_the_script_exception(session, store):
    with pytest.raises(RuntimeError, match="script bug"):
        with session.data_graph("people"):
            session.add(A, NAME, "Ann")
            store.fail_next("add", "BAD_REQUEST", "rejected by shape")
            raise RuntimeError("script bug")
    assert store.ops()[-1] == "batch"


def test_unique_uri_uses_the_given_namespace():
    from adscript_sdk.graph.session import Session

    first = Session.unique_uri("urn:people:")
    second = Session.unique_uri("urn:people:")
    assert first.value.startswith("urn:people:")
    assert first != second
