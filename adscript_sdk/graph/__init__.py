# adscript_sdk/graph/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Script Graph Protocol V1 - Public API

Term model, request envelopes, error taxonomy, transport, write batching and
the session handle, re-exported for clean imports.
"""

from adscript_sdk.graph.graph_base import (
    # Protocol version
    SCRIPT_PROTOCOL_VERSION,
    SCRIPT_PROTOCOL_ID,
    RPC_PATH,

    # Error types
    AdscriptError,
    ConfigurationError,
    SessionTerminated,
    BadRequest,
    TermConstructionError,
    NotSupported,
    TransportError,
    AuthError,
    NotFound,
    ResourceExhausted,
    TransientNetwork,
    Unavailable,
    ProtocolError,
    DeadlineExceeded,
    BridgeUnavailable,
    BridgeBusy,
    BatchError,

    # Context and envelopes
    OperationContext,
    BatchOperation,
    RequestEnvelope,
)

from adscript_sdk.graph.terms import (
    # Terms
    URI,
    Literal,
    Term,
    XSD_STRING,
    BLANK_PREFIX,

    # Conversion and equality
    to_term,
    terms_equal,
    is_uri,
    is_blank,
    is_literal,
    encode_term,
    decode_term,
    to_rdflib,
    from_rdflib,
)

from adscript_sdk.graph.transport import HttpTransport
from adscript_sdk.graph.batcher import OperationQueue, DEFAULT_FLUSH_THRESHOLD
from adscript_sdk.graph.session import SessionConfig, Session

__all__ = [
    "SCRIPT_PROTOCOL_VERSION",
    "SCRIPT_PROTOCOL_ID",
    "RPC_PATH",
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
    "URI",
    "Literal",
    "Term",
    "XSD_STRING",
    "BLANK_PREFIX",
    "to_term",
    "terms_equal",
    "is_uri",
    "is_blank",
    "is_literal",
    "encode_term",
    "decode_term",
    "to_rdflib",
    "from_rdflib",
    "HttpTransport",
    "OperationQueue",
    "DEFAULT_FLUSH_THRESHOLD",
    "SessionConfig",
    "Session",
]
