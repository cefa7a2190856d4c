# adscript_sdk/mock/mock_graph_store.py
# SPDX-License-Identifier: Apache-2.0
"""
In-memory graph store speaking the script RPC protocol.

Backs every data graph with a named graph of an ``rdflib.Dataset`` and answers
the wire operations used by ``Session``. Used by the test-suite and for local
experiments through ``httpx.MockTransport``:

    store = MockGraphStore()
    session = Session(config, transport=store.as_httpx_transport())

Errors are answered in-envelope with HTTP 200; ``fail_next(..., status=503)``
simulates HTTP-level failures instead.
"""

from __future__ import annotations

import base64
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import httpx
from rdflib import Dataset, Graph, URIRef
from rdflib.term import Node

from adscript_sdk.graph.graph_base import (
    MUTATION_OPS,
    OP_ADD,
    OP_BATCH,
    OP_BEGIN,
    OP_CONSTRUCT,
    OP_CONTAINS,
    OP_END,
    OP_EVAL,
    OP_REMOVE,
    OP_SELECT,
    OP_SET_VALUES,
    OP_TRIPLES,
    OP_VALUES,
    RPC_PATH,
    AdscriptError,
    BadRequest,
    BatchError,
    NotSupported,
    error_to_wire,
    success_to_wire,
)
from adscript_sdk.graph.terms import (
    decode_term,
    encode_term,
    encode_value,
    from_rdflib,
    to_rdflib,
)
from adscript_sdk.graph.transport import NDJSON, STREAMABLE_OPS

logger = logging.getLogger(__name__)

#: Namespace under which plain data graph ids are stored.
GRAPH_NAMESPACE = "urn:x-adscript:graph:"

DEFAULT_PREFIXES: Dict[str, str] = {
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
    "xsd": "http://www.w3.org/2001/XMLSchema#",
    "owl": "http://www.w3.org/2002/07/owl#",
    "sh": "http://www.w3.org/ns/shacl#",
}

#: Operations the store answers.
SUPPORTED_OPS = frozenset({
    OP_BEGIN, OP_END, OP_BATCH, OP_ADD, OP_REMOVE, OP_SET_VALUES, OP_CONTAINS,
    OP_VALUES, OP_TRIPLES, OP_SELECT, OP_CONSTRUCT, OP_EVAL,
})

EvalHandler = Callable[[str, Mapping[str, Any], "MockGraphStore"], Any]


@dataclass
class _Failure:
    code: str
    message: str
    status: Optional[int] = None


@dataclass
class MockGraphStore:
    """A mock RDF store for protocol tests and demos."""
    name: str = "mock-graph-store"
    prefixes: Dict[str, str] = field(default_factory=dict)
    stream_chunk_size: int = 2
    credentials: Optional[Tuple[str, str]] = None

    def __post_init__(self) -> None:
        self.prefixes = {**DEFAULT_PREFIXES, **self.prefixes}
        self.dataset = Dataset()
        self.requests: List[Dict[str, Any]] = []
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self._eval_handlers: Dict[str, EvalHandler] = {}
        self._failures: Dict[str, List[_Failure]] = {}
        self._lock = threading.Lock()

    # -----------------------------
    # Test hooks
    # -----------------------------
    def graph(self, data_graph: str) -> Graph:
        """The rdflib graph backing ``data_graph``."""
        return self.dataset.graph(URIRef(self._graph_uri(data_graph)))

    def register_eval(self, expression: str, handler: EvalHandler) -> None:
        """Answer ``evalOnServer`` for ``expression`` with ``handler(expr, bindings, store)``."""
        self._eval_handlers[expression] = handler

    def fail_next(
        self,
        op: str,
        code: str = "UNAVAILABLE",
        message: str = "injected failure",
        *,
        status: Optional[int] = None,
    ) -> None:
        """
        Make the next ``op`` fail.

        Mutation ops (``add``, ``remove``, ``setValues``) fail inside the next
        batch that contains them. With ``status`` the failure is an HTTP
        error response instead of an error envelope.
        """
        self._failures.setdefault(op, []).append(_Failure(code, message, status))

    def ops(self) -> List[str]:
        """Operation names received so far, in order."""
        return [r.get("op") for r in self.requests]

    def requests_for(self, op: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r.get("op") == op]

    def as_httpx_transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle_request)

    # -----------------------------
    # HTTP surface
    # -----------------------------
    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if request.method != "POST" or not request.url.path.endswith(RPC_PATH):
            return httpx.Response(404, json={"message": f"no route for {request.url.path}"})
        if self.credentials is not None and not self._authorized(request):
            return httpx.Response(401, json={"message": "invalid credentials"})
        try:
            body = json.loads(request.content)
        except ValueError:
            return httpx.Response(400, json={"message": "request body is not JSON"})
        if not isinstance(body, dict):
            return httpx.Response(400, json={"message": "request body must be an object"})

        op = body.get("op")
        failure = self._take_failure(op) if op not in MUTATION_OPS else None
        with self._lock:
            self.requests.append(body)
        if failure is not None and failure.status is not None:
            return httpx.Response(failure.status, json={"message": failure.message})
        if failure is not None:
            return httpx.Response(200, json=self._error(failure))

        reply = self.handle_envelope(body)
        accept = request.headers.get("Accept", "")
        if reply.get("ok") and op in STREAMABLE_OPS and NDJSON in accept:
            return self._stream(reply["result"])
        return httpx.Response(200, json=reply)

    def _authorized(self, request: httpx.Request) -> bool:
        user, password = self.credentials
        token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
        return request.headers.get("Authorization") == f"Basic {token}"

    def _stream(self, result: Any) -> httpx.Response:
        size = max(1, self.stream_chunk_size)
        frames: List[Dict[str, Any]] = []
        if isinstance(result, list):
            for i in range(0, len(result), size):
                frames.append({"ok": True, "chunk": result[i:i + size]})
        elif isinstance(result, dict):
            list_key = next((k for k in ("rows", "triples") if isinstance(result.get(k), list)), None)
            if list_key is None:
                frames.append({"ok": True, "result": result})
            else:
                items = result[list_key]
                head = {k: v for k, v in result.items() if k != list_key}
                frames.append({"ok": True, "chunk": {**head, list_key: items[:size]}})
                for i in range(size, len(items), size):
                    frames.append({"ok": True, "chunk": {list_key: items[i:i + size]}})
        else:
            frames.append({"ok": True, "result": result})
        content = "".join(json.dumps(f) + "\n" for f in frames)
        return httpx.Response(200, content=content.encode("utf-8"), headers={"Content-Type": NDJSON})

    # -----------------------------
    # Envelope dispatch
    # -----------------------------
    def handle_envelope(self, envelope: Mapping[str, Any]) -> Dict[str, Any]:
        op = envelope.get("op")
        ctx = envelope.get("ctx") or {}
        args = envelope.get("args") or {}
        try:
            if op not in SUPPORTED_OPS:
                raise NotSupported(f"unknown operation {op!r}")
            with self._lock:
                result = getattr(self, f"_op_{op}")(args, ctx)
        except AdscriptError as exc:
            logger.debug("%s: %s failed: %s", self.name, op, exc)
            return error_to_wire(exc)
        except Exception as exc:  # noqa: BLE001
            logger.debug("%s: %s raised %s", self.name, op, exc)
            return error_to_wire(BadRequest(f"{op}: {exc}"))
        return success_to_wire(result)

    @staticmethod
    def _error(failure: _Failure) -> Dict[str, Any]:
        return {
            "ok": False,
            "code": failure.code,
            "error": "InjectedFailure",
            "message": failure.message,
            "details": None,
        }

    def _take_failure(self, op: Any) -> Optional[_Failure]:
        queue = self._failures.get(op) if isinstance(op, str) else None
        return queue.pop(0) if queue else None

    @staticmethod
    def _graph_uri(data_graph: str) -> str:
        if ":" in data_graph:
            return data_graph
        return GRAPH_NAMESPACE + data_graph

    def _target(self, ctx: Mapping[str, Any]) -> Graph:
        data_graph = ctx.get("data_graph")
        if not data_graph:
            raise BadRequest("request context has no data_graph")
        return self.graph(str(data_graph))

    @staticmethod
    def _node(args: Mapping[str, Any], key: str) -> Optional[Node]:
        value = args.get(key)
        return None if value is None else to_rdflib(decode_term(value))

    @staticmethod
    def _bindings(args: Mapping[str, Any]) -> Dict[str, Node]:
        return {k: to_rdflib(decode_term(v)) for k, v in (args.get("bindings") or {}).items()}

    @staticmethod
    def _triple(t: Tuple[Node, Node, Node]) -> Dict[str, Any]:
        return {"s": encode_term(from_rdflib(t[0])), "p": encode_term(from_rdflib(t[1])),
                "o": encode_term(from_rdflib(t[2]))}

    # -----------------------------
    # Session control
    # -----------------------------
    def _op_begin(self, args, ctx):
        data_graph = args.get("dataGraphId")
        if not data_graph:
            raise BadRequest("dataGraphId is required")
        session_id = uuid.uuid4().hex
        self.sessions[session_id] = {"dataGraph": data_graph, "langs": args.get("langs") or []}
        return {"sessionId": session_id, "prefixes": dict(self.prefixes), "dataGraph": data_graph}

    def _op_end(self, args, ctx):
        session = self.sessions.pop(ctx.get("session_id"), None)
        if session is not None:
            session["message"] = args.get("message")
        return {"ended": session is not None}

    # -----------------------------
    # Mutations
    # -----------------------------
    def _op_add(self, args, ctx):
        self._target(ctx).add((self._node(args, "s"), self._node(args, "p"), self._node(args, "o")))
        return None

    def _op_remove(self, args, ctx):
        self._target(ctx).remove((self._node(args, "s"), self._node(args, "p"), self._node(args, "o")))
        return None

    def _op_setValues(self, args, ctx):
        g = self._target(ctx)
        s, p = self._node(args, "s"), self._node(args, "p")
        g.remove((s, p, None))
        for value in args.get("values") or []:
            g.add((s, p, to_rdflib(decode_term(value))))
        return None

    def _op_batch(self, args, ctx):
        entries = args.get("ops")
        if not isinstance(entries, list):
            raise BadRequest("batch requires an 'ops' list")
        for index, entry in enumerate(entries):
            op = entry.get("op") if isinstance(entry, Mapping) else None
            try:
                if op not in MUTATION_OPS:
                    raise BadRequest(f"operation {op!r} is not allowed in a batch")
                failure = self._take_failure(op)
                if failure is not None:
                    raise AdscriptError(failure.message, code=failure.code)
                getattr(self, f"_op_{op}")(entry.get("args") or {}, ctx)
            except Exception as exc:  # noqa: BLE001
                # entries before ``index`` stay applied
                raise BatchError(
                    f"batch entry {index} ({op}) failed: {getattr(exc, 'message', None) or exc}",
                    details={"failed_index": index, "applied": index,
                             "cause": getattr(exc, "code", None) or type(exc).__name__},
                ) from exc
        return {"applied": len(entries)}

    # -----------------------------
    # Reads
    # -----------------------------
    def _op_contains(self, args, ctx):
        pattern = (self._node(args, "s"), self._node(args, "p"), self._node(args, "o"))
        return pattern in self._target(ctx)

    def _op_values(self, args, ctx):
        g = self._target(ctx)
        return [encode_term(from_rdflib(o)) for o in g.objects(self._node(args, "s"), self._node(args, "p"))]

    def _op_triples(self, args, ctx):
        pattern = (self._node(args, "s"), self._node(args, "p"), self._node(args, "o"))
        return [self._triple(t) for t in self._target(ctx).triples(pattern)]

    def _op_select(self, args, ctx):
        result = self._target(ctx).query(args.get("query", ""), initBindings=self._bindings(args))
        if result.type != "SELECT":
            raise BadRequest(f"select expects a SELECT query, got {result.type}")
        names = [str(v) for v in result.vars]
        rows = [
            {name: (None if row[i] is None else encode_term(from_rdflib(row[i])))
             for i, name in enumerate(names)}
            for row in result
        ]
        return {"vars": names, "rows": rows}

    def _op_construct(self, args, ctx):
        result = self._target(ctx).query(args.get("query", ""), initBindings=self._bindings(args))
        if result.type != "CONSTRUCT":
            raise BadRequest(f"construct expects a CONSTRUCT query, got {result.type}")
        return {"triples": [self._triple(t) for t in result]}

    def _op_evalOnServer(self, args, ctx):
        expression = args.get("expr", "")
        handler = self._eval_handlers.get(expression)
        if handler is None:
            raise NotSupported(f"no server-side handler for expression {expression!r}")
        bindings = {k: decode_term(v) for k, v in (args.get("bindings") or {}).items()}
        return encode_value(handler(expression, bindings, self))



__all__ = [
    "MockGraphStore",
    "DEFAULT_PREFIXES",
    "GRAPH_NAMESPACE",
    "SUPPORTED_OPS",
]
