# adscript_sdk/graph/graph_base.py
# SPDX-License-Identifier: Apache-2.0
"""
Script Graph Protocol V1.0 - shared types

Purpose
-------
The stable surface shared by every layer of the script-side graph access
stack:

- Structured, normalized error taxonomy (machine-actionable codes)
- Operation context carried with every request (session, data graph, langs)
- Canonical JSON request envelopes and batch entries
- Wire helpers mapping error envelopes <-> typed exceptions

Deliberate Non-Goals
--------------------
- No SPARQL / SHACL evaluation on the client.
- No retries: a failed batch may have been partially applied server-side.
- No business semantics for the remote operations; they are transported only.

Wire Contract
-------------
Every remote call is a single JSON POST to ``{server_url}/ads/rpc``:

    Request:
        {
            "op": "<operation>",
            "ctx": {
                "request_id": "...",
                "session_id": "...",
                "data_graph": "...",
                "langs": ["en", ...]
            },
            "args": { ... }      # Term-encoded graph data, plain scalars
        }

    Success:
        {"ok": true, "code": "OK", "result": ...}

    Error:
        {
            "ok": false,
            "code": "<UPPER_SNAKE_CASE>",
            "error": "<ErrorClassName>",
            "message": "<human readable>",
            "details": { ... } | null
        }

Batched writes use op="batch" with args {"ops": [{"op": ..., "args": ...}, ...]}
and are applied by the server in list order.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

LOG = logging.getLogger(__name__)

SCRIPT_PROTOCOL_VERSION = "1.0.0"
SCRIPT_PROTOCOL_ID = "ads-script/v1.0"

RPC_PATH = "/ads/rpc"

# Operation names understood by the remote store.
OP_BEGIN = "begin"
OP_END = "end"
OP_BATCH = "batch"
OP_ADD = "add"
OP_REMOVE = "remove"
OP_SET_VALUES = "setValues"
OP_CONTAINS = "contains"
OP_VALUES = "values"
OP_TRIPLES = "triples"
OP_SELECT = "select"
OP_CONSTRUCT = "construct"
OP_EVAL = "evalOnServer"

MUTATION_OPS = frozenset({OP_ADD, OP_REMOVE, OP_SET_VALUES})


# =============================================================================
# Normalized Errors
# =============================================================================

class AdscriptError(Exception):
    """
    Base exception for all script graph errors.

    Attributes:
        message: Human-readable description.
        code: Machine-readable, UPPER_SNAKE_CASE error code.
        retry_after_ms: Suggested client backoff (if the server supplied one).
        details: Additional machine context (no credentials).
    """
    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        retry_after_ms: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retry_after_ms = retry_after_ms
        self.details = dict(details or {})

    def __str__(self) -> str:
        base = self.message or self.__class__.__name__
        if self.code:
            base += f" [code={self.code}]"
        if self.retry_after_ms is not None:
            base += f" retry_after_ms={self.retry_after_ms}"
        if self.details:
            base += f" details={self.details}"
        return base


class ConfigurationError(AdscriptError):
    """Missing/invalid session config, double init, use before init."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "CONFIGURATION_ERROR")
        super().__init__(message, **kw)


class SessionTerminated(ConfigurationError):
    """Any operation issued after the session was terminated."""
    def __init__(self, message: str = "session terminated", **kw: Any):
        kw.setdefault("code", "SESSION_TERMINATED")
        super().__init__(message, **kw)


class BadRequest(AdscriptError):
    """Client error: invalid arguments or request rejected by the server."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "BAD_REQUEST")
        super().__init__(message, **kw)


class TermConstructionError(BadRequest):
    """A value could not be converted into an RDF term."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "TERM_CONSTRUCTION")
        super().__init__(message, **kw)


class NotSupported(AdscriptError):
    """Operation not supported by the remote store."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "NOT_SUPPORTED")
        super().__init__(message, **kw)


class TransportError(AdscriptError):
    """Network failure, non-success HTTP status or malformed response."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "TRANSPORT_ERROR")
        super().__init__(message, **kw)


class AuthError(TransportError):
    """Authentication / authorization failure."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "AUTH_ERROR")
        super().__init__(message, **kw)


class NotFound(TransportError):
    """Endpoint or data graph not found."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "NOT_FOUND")
        super().__init__(message, **kw)


class ResourceExhausted(TransportError):
    """Quota, rate limit, or capacity exhausted."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "RESOURCE_EXHAUSTED")
        super().__init__(message, **kw)


class TransientNetwork(TransportError):
    """Connection-level failure before a response was received."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "TRANSIENT_NETWORK")
        super().__init__(message, **kw)


class Unavailable(TransportError):
    """Backend unavailable / overloaded."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "UNAVAILABLE")
        super().__init__(message, **kw)


class ProtocolError(TransportError):
    """Response body could not be decoded as a wire envelope."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "PROTOCOL_ERROR")
        super().__init__(message, **kw)


class DeadlineExceeded(AdscriptError):
    """A blocking call did not complete within its timeout."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "DEADLINE_EXCEEDED")
        super().__init__(message, **kw)


class BridgeUnavailable(AdscriptError):
    """The transport worker could not be started or is no longer running."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "BRIDGE_UNAVAILABLE")
        super().__init__(message, **kw)


class BridgeBusy(AdscriptError):
    """A blocking call was issued while another one is still in flight."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "BRIDGE_BUSY")
        super().__init__(message, **kw)


class BatchError(AdscriptError):
    """
    The server reported a failure for a batched write.

    Entries before the failing one may already be applied; the server,
    not this client, owns rollback semantics.
    """
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "BATCH_FAILED")
        super().__init__(message, **kw)


_ERRORS_BY_CODE: Dict[str, Type[AdscriptError]] = {
    "CONFIGURATION_ERROR": ConfigurationError,
    "SESSION_TERMINATED": SessionTerminated,
    "BAD_REQUEST": BadRequest,
    "TERM_CONSTRUCTION": TermConstructionError,
    "NOT_SUPPORTED": NotSupported,
    "TRANSPORT_ERROR": TransportError,
    "AUTH_ERROR": AuthError,
    "NOT_FOUND": NotFound,
    "RESOURCE_EXHAUSTED": ResourceExhausted,
    "TRANSIENT_NETWORK": TransientNetwork,
    "UNAVAILABLE": Unavailable,
    "PROTOCOL_ERROR": ProtocolError,
    "DEADLINE_EXCEEDED": DeadlineExceeded,
    "BRIDGE_UNAVAILABLE": BridgeUnavailable,
    "BRIDGE_BUSY": BridgeBusy,
    "BATCH_FAILED": BatchError,
}


# =============================================================================
# Context + Envelopes
# =============================================================================

@dataclass(frozen=True)
class OperationContext:
    """
    Context sent with every remote call.

    Attributes:
        request_id: Correlation ID for tracing (generated when omitted).
        session_id: Server-assigned session identifier (None before handshake).
        data_graph: Active data graph identity the operation targets.
        langs: Preferred languages for label/value resolution.
    """
    request_id: Optional[str] = None
    session_id: Optional[str] = None
    data_graph: Optional[str] = None
    langs: Tuple[str, ...] = ()

    def to_wire(self) -> Dict[str, Any]:
        ctx: Dict[str, Any] = {"request_id": self.request_id or uuid.uuid4().hex}
        if self.session_id is not None:
            ctx["session_id"] = self.session_id
        if self.data_graph is not None:
            ctx["data_graph"] = self.data_graph
        if self.langs:
            ctx["langs"] = list(self.langs)
        return ctx


@dataclass(frozen=True)
class BatchOperation:
    """
    One queued mutation.

    ``args`` holds Term-encoded graph data; it is opaque to the transport.
    """
    op: str
    args: Mapping[str, Any] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        return {"op": self.op, "args": dict(self.args)}


@dataclass(frozen=True)
class RequestEnvelope:
    """An operation name plus its named, already-encoded arguments."""
    op: str
    args: Mapping[str, Any] = field(default_factory=dict)
    ctx: OperationContext = field(default_factory=OperationContext)

    def __post_init__(self) -> None:
        if not isinstance(self.op, str) or not self.op:
            raise BadRequest("envelope op must be a non-empty string")

    def to_wire(self) -> Dict[str, Any]:
        return {"op": self.op, "ctx": self.ctx.to_wire(), "args": dict(self.args)}


def batch_envelope(ops: List[BatchOperation], ctx: OperationContext) -> RequestEnvelope:
    """Build the single ``batch`` envelope carrying ``ops`` in order."""
    return RequestEnvelope(op=OP_BATCH, args={"ops": [o.to_wire() for o in ops]}, ctx=ctx)


# =============================================================================
# Wire-Level Helpers
# =============================================================================

def error_to_wire(e: BaseException) -> Dict[str, Any]:
    """
    Map AdscriptError (or unexpected Exception) to the canonical error envelope.
    """
    if isinstance(e, AdscriptError):
        return {
            "ok": False,
            "code": e.code or type(e).__name__.upper(),
            "error": type(e).__name__,
            "message": e.message,
            "retry_after_ms": e.retry_after_ms,
            "details": e.details or None,
        }
    return {
        "ok": False,
        "code": "UNAVAILABLE",
        "error": type(e).__name__,
        "message": str(e) or "internal error",
        "retry_after_ms": None,
        "details": None,
    }


def success_to_wire(result: Any) -> Dict[str, Any]:
    return {"ok": True, "code": "OK", "result": result}


def error_from_wire(envelope: Mapping[str, Any]) -> AdscriptError:
    """
    Rebuild a typed exception from an error envelope.

    Unknown codes map to TransportError; the original message is preserved.
    """
    code = envelope.get("code") or "TRANSPORT_ERROR"
    message = envelope.get("message") or envelope.get("error") or code
    cls = _ERRORS_BY_CODE.get(code, TransportError)
    details = dict(envelope.get("details") or {})
    if envelope.get("status") is not None:
        details.setdefault("status", envelope["status"])
    return cls(
        str(message),
        code=code,
        retry_after_ms=envelope.get("retry_after_ms"),
        details=details,
    )


__all__ = [
    "SCRIPT_PROTOCOL_VERSION",
    "SCRIPT_PROTOCOL_ID",
    "RPC_PATH",
    "OP_BEGIN",
    "OP_END",
    "OP_BATCH",
    "OP_ADD",
    "OP_REMOVE",
    "OP_SET_VALUES",
    "OP_CONTAINS",
    "OP_VALUES",
    "OP_TRIPLES",
    "OP_SELECT",
    "OP_CONSTRUCT",
    "OP_EVAL",
    "MUTATION_OPS",
    "AdscriptError",
    "ConfigurationError",
    "SessionTerminated",
    "BadRequest",
    "TermConstructionError",
    "NotSupported",
    "TransportError",
    "AuthError",
    "NotFound",
    "ResourceExhausted",
    "TransientNetwork",
    "Unavailable",
    "ProtocolError",
    "DeadlineExceeded",
    "BridgeUnavailable",
    "BridgeBusy",
    "BatchError",
    "OperationContext",
    "BatchOperation",
    "RequestEnvelope",
    "batch_envelope",
    "error_to_wire",
    "success_to_wire",
    "error_from_wire",
]
