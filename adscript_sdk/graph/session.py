# adscript_sdk/graph/session.py
# SPDX-License-Identifier: Apache-2.0
"""
Script session: configuration, lifecycle and graph primitives.

A ``Session`` is one script-to-server connection. It owns exactly one
transport worker (through a ``SyncBridge``) and one ``OperationQueue``:

    init()  ->  many operations  ->  terminate()

``init`` starts the worker and performs the ``begin`` handshake, which
returns the session id, the namespace prefix table and the effective data
graph. Operations on a session that was never initialized initialize it
lazily, using the session's own explicit configuration. After ``terminate``
every operation raises ``SessionTerminated``.

Mutations (``add``, ``remove``, ``set_values`` ...) are queued and return
immediately; reads (``select``, ``values``, ``contains`` ...) flush pending
mutations first and then block until the server answers.

Always terminate in a cleanup block so the worker is released after errors:

    session = Session(SessionConfig(server_url=..., data_graph_id="geo"))
    try:
        session.add(a, p, "hello")
        rows = session.select("SELECT ?s WHERE { ?s ?p ?o }")
    finally:
        session.terminate()

For the common one-session-per-process pattern, ``init()`` / ``current()`` /
``terminate()`` at module level manage a single default session.
"""

from __future__ import annotations

import contextlib
import logging
import os
import threading
import uuid
from dataclasses import dataclass, field, fields, replace
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

import httpx

from adscript_sdk.core.sync_bridge import DEFAULT_CALL_TIMEOUT_S, SyncBridge
from adscript_sdk.graph.batcher import DEFAULT_FLUSH_THRESHOLD, OperationQueue
from adscript_sdk.graph.graph_base import (
    OP_ADD,
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
    AdscriptError,
    ConfigurationError,
    OperationContext,
    ProtocolError,
    SessionTerminated,
    TermConstructionError,
)
from adscript_sdk.graph.terms import (
    URI,
    Term,
    compact_uri,
    decode_term,
    decode_value,
    encode_term,
    expand_qname,
    term_list,
    to_term,
)
from adscript_sdk.graph.transport import HttpTransport

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

_CONFIG_ALIASES: Dict[str, str] = {
    "serverURL": "server_url",
    "serverUrl": "server_url",
    "dataGraphId": "data_graph_id",
    "dataGraph": "data_graph_id",
    "languages": "langs",
    "readsDoNotDependOnWrites": "reads_independent_of_writes",
    "readsIndependentOfWrites": "reads_independent_of_writes",
    "requestConfig": "request_config",
    "timeout": "timeout_s",
    "flushThreshold": "flush_threshold",
}

_REQUEST_CONFIG_ALIASES: Dict[str, str] = {
    "withCredentials": "with_credentials",
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}

#: How long terminate waits for a timed-out call to finish before its final flush.
TERMINATE_DRAIN_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class SessionConfig:
    """
    Explicit configuration of one session.

    Attributes:
        server_url: Base URL of the store (mandatory, http/https).
        data_graph_id: Logical data graph identifier (mandatory).
        langs: Preferred languages, most preferred first.
        streaming: Request NDJSON-streamed responses for reads.
        reads_independent_of_writes: Skip the flush before reads. Caller
            assertion that reads never observe this script's pending writes.
        request_config: ``auth`` ({username, password}), ``headers``,
            ``verify``, ``with_credentials``.
        timeout_s: Bound on each blocking call; ``None`` waits indefinitely.
        flush_threshold: Pending mutations allowed before an automatic flush.
    """
    server_url: str
    data_graph_id: str
    langs: Tuple[str, ...] = ()
    streaming: bool = False
    reads_independent_of_writes: bool = False
    request_config: Mapping[str, Any] = field(default_factory=dict)
    timeout_s: Optional[float] = DEFAULT_CALL_TIMEOUT_S
    flush_threshold: int = DEFAULT_FLUSH_THRESHOLD

    def __post_init__(self) -> None:
        if not isinstance(self.server_url, str) or not self.server_url.strip():
            raise ConfigurationError("server_url is required")
        if not self.server_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"server_url must start with http:// or https://, got {self.server_url!r}"
            )
        if not isinstance(self.data_graph_id, str) or not self.data_graph_id.strip():
            raise ConfigurationError("data_graph_id is required")

        langs = self.langs
        if isinstance(langs, str):
            langs = (langs,)
        langs = tuple(langs or ())
        if not all(isinstance(lang, str) and lang for lang in langs):
            raise ConfigurationError(f"langs must be non-empty strings, got {langs!r}")
        object.__setattr__(self, "langs", langs)

        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ConfigurationError("timeout_s must be positive or None")
        if not isinstance(self.flush_threshold, int) or self.flush_threshold < 0:
            raise ConfigurationError("flush_threshold must be a non-negative integer")

        request_config = dict(self.request_config or {})
        for alias, name in _REQUEST_CONFIG_ALIASES.items():
            if alias in request_config:
                request_config[name] = request_config.pop(alias)
        auth = request_config.get("auth")
        if auth is not None and not isinstance(auth, Mapping):
            raise ConfigurationError("request_config.auth must be a mapping")
        object.__setattr__(self, "request_config", request_config)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SessionConfig":
        """
        Build a config from snake_case or camelCase keys.

        Raises ConfigurationError for unknown keys or missing mandatory ones.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _CONFIG_ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"unknown session configuration key {key!r}")
            kwargs[name] = value
        for required in ("server_url", "data_graph_id"):
            if not kwargs.get(required):
                raise ConfigurationError(f"{required} is required")
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "SessionConfig":
        """
        Build a config from ``ADSCRIPT_*`` environment variables.

        Variables: ADSCRIPT_SERVER_URL, ADSCRIPT_DATA_GRAPH, ADSCRIPT_LANGS
        (comma separated), ADSCRIPT_STREAMING, ADSCRIPT_READS_INDEPENDENT,
        ADSCRIPT_USERNAME, ADSCRIPT_PASSWORD, ADSCRIPT_TIMEOUT_S.
        Keyword overrides take precedence over the environment.
        """
        env = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        if env.get("ADSCRIPT_SERVER_URL"):
            data["server_url"] = env["ADSCRIPT_SERVER_URL"]
        if env.get("ADSCRIPT_DATA_GRAPH"):
            data["data_graph_id"] = env["ADSCRIPT_DATA_GRAPH"]
        if env.get("ADSCRIPT_LANGS"):
            data["langs"] = tuple(
                lang.strip() for lang in env["ADSCRIPT_LANGS"].split(",") if lang.strip()
            )
        if env.get("ADSCRIPT_STREAMING"):
            data["streaming"] = env["ADSCRIPT_STREAMING"].lower() in _TRUE_STRINGS
        if env.get("ADSCRIPT_READS_INDEPENDENT"):
            data["reads_independent_of_writes"] = (
                env["ADSCRIPT_READS_INDEPENDENT"].lower() in _TRUE_STRINGS
            )
        if env.get("ADSCRIPT_TIMEOUT_S"):
            try:
                data["timeout_s"] = float(env["ADSCRIPT_TIMEOUT_S"])
            except ValueError as exc:
                raise ConfigurationError(
                    f"ADSCRIPT_TIMEOUT_S must be a number, got {env['ADSCRIPT_TIMEOUT_S']!r}"
                ) from exc
        if env.get("ADSCRIPT_USERNAME"):
            data["request_config"] = {
                "auth": {
                    "username": env["ADSCRIPT_USERNAME"],
                    "password": env.get("ADSCRIPT_PASSWORD", ""),
                }
            }
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_mapping(data)

    def redacted(self) -> Dict[str, Any]:
        """Loggable view of the config without credentials."""
        rc = dict(self.request_config)
        if "auth" in rc:
            rc["auth"] = {"username": (rc["auth"] or {}).get("username"), "password": "***"}
        return {
            "server_url": self.server_url,
            "data_graph_id": self.data_graph_id,
            "langs": list(self.langs),
            "streaming": self.streaming,
            "reads_independent_of_writes": self.reads_independent_of_writes,
            "request_config": rc,
            "timeout_s": self.timeout_s,
            "flush_threshold": self.flush_threshold,
        }


# =============================================================================
# Session
# =============================================================================

class Session:
    """
    Handle for one active script session.

    Parameters
    ----------
    config:
        Explicit session configuration.
    transport:
        Optional ``httpx.AsyncBaseTransport`` handed to the HTTP client
        (``MockGraphStore.as_httpx_transport()`` in tests).
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not isinstance(config, SessionConfig):
            raise ConfigurationError(
                f"Session requires a SessionConfig, got {type(config).__name__}"
            )
        self._config = config
        self._transport = transport
        self._bridge: Optional[SyncBridge] = None
        self._queue: Optional[OperationQueue] = None
        self._session_id: Optional[str] = None
        self._prefixes: Dict[str, str] = {}
        self._base_graph: Optional[str] = None
        self._graph_stack: List[str] = []
        self._initialized = False
        self._terminated = False

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def prefixes(self) -> Mapping[str, str]:
        return dict(self._prefixes)

    @property
    def base_graph(self) -> Optional[str]:
        return self._base_graph

    @property
    def active_data_graph(self) -> str:
        if self._graph_stack:
            return self._graph_stack[-1]
        return self._base_graph or self._config.data_graph_id

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_terminated(self) -> bool:
        return self._terminated

    @property
    def pending_count(self) -> int:
        return len(self._queue) if self._queue is not None else 0

    @property
    def queue(self) -> Optional[OperationQueue]:
        return self._queue

    def __repr__(self) -> str:
        if self._terminated:
            state = "terminated"
        elif self._initialized:
            state = "active"
        else:
            state = "new"
        return (
            f"Session(server={self._config.server_url!r}, "
            f"graph={self.active_data_graph!r}, state={state})"
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def _make_transport(self) -> HttpTransport:
        return HttpTransport(
            self._config.server_url,
            request_config=self._config.request_config,
            streaming=self._config.streaming,
            timeout_s=self._config.timeout_s,
            transport=self._transport,
        )

    def _context(self) -> OperationContext:
        return OperationContext(
            session_id=self._session_id,
            data_graph=self.active_data_graph,
            langs=self._config.langs,
        )

    def init(self) -> "Session":
        """
        Start the transport worker and perform the handshake.

        Raises
        ------
        ConfigurationError
            The session is already initialized.
        SessionTerminated
            The session was terminated.
        BridgeUnavailable
            The transport worker could not be started.
        AdscriptError
            The handshake failed (the worker is released again).
        """
        if self._terminated:
            raise SessionTerminated()
        if self._initialized:
            raise ConfigurationError("session already initialized")

        cfg = self._config
        logger.debug("Session: starting with %s", cfg.redacted())
        bridge = SyncBridge(
            self._make_transport,
            timeout_s=cfg.timeout_s,
            name=f"adscript_transport[{cfg.data_graph_id}]",
        )
        bridge.start()
        queue = OperationQueue(
            bridge.call,
            context=self._context,
            reads_independent_of_writes=cfg.reads_independent_of_writes,
            flush_threshold=cfg.flush_threshold,
        )
        try:
            result = queue.send_direct(
                OP_BEGIN,
                {
                    "dataGraphId": cfg.data_graph_id,
                    "langs": list(cfg.langs),
                    "streaming": cfg.streaming,
                },
            )
            if not isinstance(result, Mapping):
                raise ProtocolError(
                    f"handshake returned {type(result).__name__}, expected an object"
                )
        except BaseException:
            bridge.close()
            raise

        self._bridge = bridge
        self._queue = queue
        self._session_id = result.get("sessionId")
        self._prefixes = {str(k): str(v) for k, v in (result.get("prefixes") or {}).items()}
        self._base_graph = result.get("dataGraph") or cfg.data_graph_id
        self._initialized = True
        logger.info(
            "Session %s started on %s (graph=%s, %d prefixes)",
            self._session_id,
            cfg.server_url,
            self._base_graph,
            len(self._prefixes),
        )
        return self

    def terminate(
        self,
        message: Optional[str] = None,
        *,
        drain_timeout_s: Optional[float] = TERMINATE_DRAIN_TIMEOUT_S,
    ) -> None:
        """
        Flush pending writes, notify the server and release the worker.

        If an earlier call timed out and is still running, terminate first
        waits up to ``drain_timeout_s`` for it so the final batch and the end
        notification can go out. The worker is released even if the flush or
        the end notification fails; the first such error is raised
        afterwards. Calling terminate again is a no-op.
        """
        if self._terminated:
            return
        if not self._initialized:
            self._terminated = True
            logger.debug("Session terminated before initialization")
            return

        first_error: Optional[AdscriptError] = None
        try:
            if self._bridge.is_stale:
                logger.info(
                    "Session %s: waiting for a timed-out call before terminating", self._session_id
                )
                if not self._bridge.wait_idle(drain_timeout_s):
                    logger.warning(
                        "Session %s: timed-out call still running after %ss",
                        self._session_id,
                        drain_timeout_s,
                    )
            try:
                self._queue.flush()
            except AdscriptError as exc:
                logger.error("Session %s: final flush failed: %s", self._session_id, exc)
                first_error = exc
            try:
                args = {"message": message} if message else {}
                self._queue.send_direct(OP_END, args)
            except AdscriptError as exc:
                logger.warning("Session %s: end notification failed: %s", self._session_id, exc)
                if first_error is None:
                    first_error = exc
        finally:
            self._terminated = True
            if len(self._queue):
                logger.error(
                    "Session %s: %d queued writes were never sent", self._session_id, len(self._queue)
                )
            self._bridge.close()
            logger.info("Session %s terminated%s", self._session_id, f": {message}" if message else "")

        if first_error is not None:
            raise first_error

    def __enter__(self) -> "Session":
        if not self._initialized:
            self.init()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.terminate()
            return
        try:
            self.terminate("aborted")
        except AdscriptError as exc:
            logger.error(
                "Session %s: terminate after %s failed: %s", self._session_id, exc_type.__name__, exc
            )

    def _active(self) -> OperationQueue:
        if self._terminated:
            raise SessionTerminated()
        if not self._initialized:
            logger.debug("Session: initializing lazily on first operation")
            self.init()
        return self._queue

    # ------------------------------------------------------------------ #
    # Term conversion
    # ------------------------------------------------------------------ #

    def node(self, value: Any) -> Term:
        """Convert a native value or descriptor using the session prefixes."""
        self._active()
        return to_term(value, prefixes=self._prefixes)

    def expand(self, qname: str) -> URI:
        self._active()
        return URI(expand_qname(qname, self._prefixes))

    def qname(self, uri: Any) -> Optional[str]:
        """Compact a URI with the session prefixes (None if no prefix matches)."""
        self._active()
        value = uri.value if isinstance(uri, URI) else str(uri)
        return compact_uri(value, self._prefixes)

    @staticmethod
    def unique_uri(namespace: str) -> URI:
        """A fresh URI: ``namespace`` followed by a uuid4."""
        return URI(f"{namespace}{uuid.uuid4()}")

    def _resource(self, value: Any, position: str) -> Dict[str, str]:
        if isinstance(value, str):
            term: Term = URI(value)
        else:
            term = to_term(value, prefixes=self._prefixes)
        if not isinstance(term, URI):
            raise TermConstructionError(f"{position} must be a URI or blank node, got {term}")
        return encode_term(term)

    def _object(self, value: Any) -> Dict[str, str]:
        return encode_term(to_term(value, prefixes=self._prefixes))

    def _pattern(self, s: Any, p: Any, o: Any) -> Dict[str, Any]:
        args: Dict[str, Any] = {}
        if s is not None:
            args["s"] = self._resource(s, "subject")
        if p is not None:
            args["p"] = self._resource(p, "predicate")
        if o is not None:
            args["o"] = self._object(o)
        return args

    def _bindings(self, bindings: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        return {
            str(name): encode_term(to_term(value, prefixes=self._prefixes))
            for name, value in (bindings or {}).items()
        }

    # ------------------------------------------------------------------ #
    # Mutations (queued)
    # ------------------------------------------------------------------ #

    def add(self, s: Any, p: Any, o: Any) -> None:
        """Queue the addition of one triple."""
        queue = self._active()
        queue.enqueue(
            OP_ADD,
            {"s": self._resource(s, "subject"), "p": self._resource(p, "predicate"), "o": self._object(o)},
        )

    def remove(self, s: Any = None, p: Any = None, o: Any = None) -> None:
        """Queue the removal of matching triples; ``None`` matches anything."""
        queue = self._active()
        queue.enqueue(OP_REMOVE, self._pattern(s, p, o))

    def add_values(self, s: Any, p: Any, values: Any) -> None:
        for value in term_list(values, prefixes=self._prefixes):
            self.add(s, p, value)

    def remove_values(self, s: Any, p: Any, values: Any) -> None:
        for value in term_list(values, prefixes=self._prefixes):
            self.remove(s, p, value)

    def set_values(self, s: Any, p: Any, values: Any) -> None:
        """Queue replacing every value of ``p`` on ``s`` with ``values``."""
        queue = self._active()
        queue.enqueue(
            OP_SET_VALUES,
            {
                "s": self._resource(s, "subject"),
                "p": self._resource(p, "predicate"),
                "values": [encode_term(t) for t in term_list(values, prefixes=self._prefixes)],
            },
        )

    def set_value(self, s: Any, p: Any, value: Any) -> None:
        self.set_values(s, p, [] if value is None else [value])

    def flush(self) -> Any:
        """Send pending mutations now."""
        return self._active().flush()

    # ------------------------------------------------------------------ #
    # Reads (flush first, then block)
    # ------------------------------------------------------------------ #

    def contains(self, s: Any = None, p: Any = None, o: Any = None) -> bool:
        queue = self._active()
        return bool(queue.request_read(OP_CONTAINS, self._pattern(s, p, o)))

    def values(self, s: Any, p: Any) -> List[Term]:
        queue = self._active()
        result = queue.request_read(
            OP_VALUES, {"s": self._resource(s, "subject"), "p": self._resource(p, "predicate")}
        )
        return [decode_term(v) for v in _rows(result, "values")]

    def value(self, s: Any, p: Any) -> Optional[Term]:
        """First value of ``p`` on ``s``, or None."""
        found = self.values(s, p)
        return found[0] if found else None

    def triples(self, s: Any = None, p: Any = None, o: Any = None) -> List[Tuple[Term, Term, Term]]:
        queue = self._active()
        result = queue.request_read(OP_TRIPLES, self._pattern(s, p, o))
        return [_triple(t) for t in _rows(result, "triples")]

    def select(self, query: str, bindings: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Term]]:
        """Run a SPARQL SELECT on the server; one dict per solution."""
        queue = self._active()
        result = queue.request_read(OP_SELECT, {"query": query, "bindings": self._bindings(bindings)})
        return [
            {str(var): decode_term(v) for var, v in row.items() if v is not None}
            for row in _rows(result, "rows")
        ]

    def construct(
        self, query: str, bindings: Optional[Mapping[str, Any]] = None
    ) -> List[Tuple[Term, Term, Term]]:
        """Run a SPARQL CONSTRUCT on the server; returns the triples."""
        queue = self._active()
        result = queue.request_read(OP_CONSTRUCT, {"query": query, "bindings": self._bindings(bindings)})
        return [_triple(t) for t in _rows(result, "triples")]

    def eval(self, expression: str, bindings: Optional[Mapping[str, Any]] = None) -> Any:
        """Evaluate a script expression on the server; encoded terms are decoded."""
        queue = self._active()
        result = queue.request_read(OP_EVAL, {"expr": expression, "bindings": self._bindings(bindings)})
        return decode_value(result)

    # ------------------------------------------------------------------ #
    # Data graph context
    # ------------------------------------------------------------------ #

    def enter_data_graph(self, graph: Any) -> None:
        """Make ``graph`` the target of subsequent operations (flushes first)."""
        queue = self._active()
        uri = graph.value if isinstance(graph, URI) else str(graph)
        queue.flush()
        self._graph_stack.append(uri)
        logger.debug("Session %s: entered data graph %s", self._session_id, uri)

    def exit_data_graph(self) -> None:
        queue = self._active()
        if not self._graph_stack:
            raise ConfigurationError("exit_data_graph called without a matching enter_data_graph")
        queue.flush()
        uri = self._graph_stack.pop()
        logger.debug("Session %s: left data graph %s", self._session_id, uri)

    @contextlib.contextmanager
    def data_graph(self, graph: Any) -> Iterator["Session"]:
        self.enter_data_graph(graph)
        try:
            yield self
        except BaseException:
            if not self._terminated:
                try:
                    self.exit_data_graph()
                except AdscriptError as exc:
                    logger.error(
                        "Session %s: leaving data graph %s failed: %s", self._session_id, graph, exc
                    )
            raise
        if not self._terminated:
            self.exit_data_graph()


def _rows(result: Any, key: str) -> Sequence[Any]:
    if result is None:
        return []
    if isinstance(result, list):
        return result
    if isinstance(result, Mapping) and isinstance(result.get(key), list):
        return result[key]
    raise ProtocolError(f"unexpected result shape for {key!r}: {type(result).__name__}")


def _triple(value: Any) -> Tuple[Term, Term, Term]:
    if isinstance(value, Mapping):
        return decode_term(value["s"]), decode_term(value["p"]), decode_term(value["o"])
    if isinstance(value, (list, tuple)) and len(value) == 3:
        return decode_term(value[0]), decode_term(value[1]), decode_term(value[2])
    raise ProtocolError(f"malformed triple in result: {value!r}")


# =============================================================================
# Module-level default session
# =============================================================================

_default_session: Optional[Session] = None
_default_lock = threading.Lock()


def init(
    config: Optional[Any] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **options: Any,
) -> Session:
    """
    Create, initialize and register the process-wide default session.

    ``config`` may be a ``SessionConfig`` or a mapping (camelCase keys are
    accepted); keyword options are merged into a mapping config.

    Raises ConfigurationError if a default session is already active or no
    configuration is given.
    """
    global _default_session
    with _default_lock:
        if _default_session is not None and not _default_session.is_terminated:
            raise ConfigurationError("session already initialized")
        if config is None and not options:
            raise ConfigurationError("init requires an explicit configuration")
        if isinstance(config, SessionConfig):
            cfg = replace(config, **options) if options else config
        else:
            cfg = SessionConfig.from_mapping({**dict(config or {}), **options})
        session = Session(cfg, transport=transport)
        session.init()
        _default_session = session
        return session


def current() -> Session:
    """The default session; ConfigurationError if ``init`` was never called."""
    session = _default_session
    if session is None:
        raise ConfigurationError("no session initialized; call init(...) first")
    return session


def terminate(message: Optional[str] = None) -> None:
    """Terminate the default session (no-op if none was initialized)."""
    session = _default_session
    if session is not None:
        session.terminate(message)


__all__ = [
    "SessionConfig",
    "Session",
    "init",
    "current",
    "terminate",
]
