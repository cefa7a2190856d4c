# adscript_sdk/graph/transport.py
# SPDX-License-Identifier: Apache-2.0
"""
HTTP transport worker.

Owns the network call for one session. Runs on the bridge's worker thread,
inside its event loop, and never sees RDF semantics: it receives an opaque
request envelope and produces a reply envelope.

Every failure (connection error, timeout, non-2xx status, undecodable body)
is returned as a tagged error envelope rather than raised, so the bridge can
hand it back through the reply channel:

    {"ok": false, "code": "UNAVAILABLE", "error": "HTTPStatus",
     "message": "HTTP 503 Service Unavailable: ...", "status": 503}

There are no retries: a batch that failed mid-way may already be partially
applied, and the protocol carries no idempotency keys.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from adscript_sdk.graph.graph_base import (
    OP_CONSTRUCT,
    OP_SELECT,
    OP_TRIPLES,
    OP_VALUES,
    RPC_PATH,
    SCRIPT_PROTOCOL_ID,
)

logger = logging.getLogger(__name__)

NDJSON = "application/x-ndjson"

STREAMABLE_OPS = frozenset({OP_SELECT, OP_CONSTRUCT, OP_TRIPLES, OP_VALUES})

_STATUS_CODES: Dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_ERROR",
    403: "AUTH_ERROR",
    404: "NOT_FOUND",
    408: "DEADLINE_EXCEEDED",
    429: "RESOURCE_EXHAUSTED",
    501: "NOT_SUPPORTED",
    504: "DEADLINE_EXCEEDED",
}


def status_to_code(status: int) -> str:
    """Map an HTTP status to a wire error code."""
    if status in _STATUS_CODES:
        return _STATUS_CODES[status]
    if status >= 500:
        return "UNAVAILABLE"
    return "TRANSPORT_ERROR"


def transport_error(
    code: str,
    message: str,
    *,
    error: str = "TransportError",
    status: Optional[int] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the tagged error value the worker hands back to the caller."""
    out: Dict[str, Any] = {
        "ok": False,
        "code": code,
        "error": error,
        "message": message,
        "details": dict(details) if details else None,
    }
    if status is not None:
        out["status"] = status
    return out


def _server_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()[:500]
    if isinstance(body, Mapping):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return str(body)[:500]


def http_error(response: httpx.Response) -> Dict[str, Any]:
    """Convert a non-success response to a tagged error value."""
    status = response.status_code
    message = f"HTTP {status} {response.reason_phrase}"
    server_message = _server_message(response)
    if server_message:
        message += f": {server_message}"
    retry_after = response.headers.get("Retry-After")
    err = transport_error(status_to_code(status), message, error="HTTPStatus", status=status)
    if retry_after and retry_after.isdigit():
        err["retry_after_ms"] = int(retry_after) * 1000
    return err


def decode_reply(response: httpx.Response) -> Dict[str, Any]:
    """Decode a buffered response into a reply envelope."""
    if not response.is_success:
        return http_error(response)
    try:
        body = response.json()
    except ValueError as exc:
        return transport_error(
            "PROTOCOL_ERROR",
            f"undecodable response body: {exc}",
            error="ProtocolError",
            status=response.status_code,
        )
    if not isinstance(body, Mapping) or not isinstance(body.get("ok"), bool):
        return transport_error(
            "PROTOCOL_ERROR",
            "response body is not a reply envelope",
            error="ProtocolError",
            status=response.status_code,
        )
    return dict(body)


def merge_chunks(chunks: List[Any]) -> Any:
    """
    Reassemble streamed chunks into one result.

    List chunks are concatenated. Mapping chunks are merged key by key, list
    values (e.g. ``rows``) concatenated and other keys taken from the first
    chunk that sets them.
    """
    if not chunks:
        return []
    if all(isinstance(c, list) for c in chunks):
        return [item for c in chunks for item in c]
    merged: Dict[str, Any] = {}
    for chunk in chunks:
        if not isinstance(chunk, Mapping):
            raise ValueError(f"cannot merge chunk of type {type(chunk).__name__}")
        for key, value in chunk.items():
            if isinstance(value, list) and isinstance(merged.get(key), list):
                merged[key] = merged[key] + value
            else:
                merged.setdefault(key, value)
    return merged


class HttpTransport:
    """
    Async HTTP handler driven by ``SyncBridge``.

    Parameters
    ----------
    server_url:
        Base URL of the store (``http://host:8083/tbl``).
    request_config:
        ``auth`` ({username, password}), ``headers``, ``verify``,
        ``with_credentials`` (accepted for compatibility; cookies are always
        kept for the session).
    streaming:
        Ask for NDJSON responses on read operations and reassemble them.
    timeout_s:
        httpx timeout for each request (``None`` disables it).
    transport:
        Optional ``httpx.AsyncBaseTransport`` (e.g. ``httpx.MockTransport``).
    """

    def __init__(
        self,
        server_url: str,
        *,
        request_config: Optional[Mapping[str, Any]] = None,
        streaming: bool = False,
        timeout_s: Optional[float] = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._request_config = dict(request_config or {})
        self._streaming = bool(streaming)
        self._timeout_s = timeout_s
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": f"adscript-sdk ({SCRIPT_PROTOCOL_ID})",
        }
        headers.update(self._request_config.get("headers") or {})

        auth = None
        auth_cfg = self._request_config.get("auth")
        if auth_cfg:
            auth = httpx.BasicAuth(auth_cfg.get("username", ""), auth_cfg.get("password", ""))

        kwargs: Dict[str, Any] = {
            "base_url": self._server_url,
            "headers": headers,
            "auth": auth,
            "follow_redirects": True,
            "verify": self._request_config.get("verify", True),
            "timeout": self._timeout_s,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport

        self._client = httpx.AsyncClient(**kwargs)
        logger.debug("HttpTransport: client opened for %s", self._server_url)

    async def aclose(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None
                logger.debug("HttpTransport: client closed for %s", self._server_url)

    async def send(self, envelope: Any) -> Dict[str, Any]:
        """POST one envelope; always returns a reply envelope."""
        if self._client is None:
            return transport_error("BRIDGE_UNAVAILABLE", "transport is not open", error="BridgeUnavailable")

        body = envelope.to_wire() if hasattr(envelope, "to_wire") else dict(envelope)
        op = body.get("op")
        try:
            if self._streaming and op in STREAMABLE_OPS:
                return await self._send_streaming(body)
            response = await self._client.post(RPC_PATH, json=body)
        except httpx.TimeoutException as exc:
            logger.warning("HttpTransport: %s timed out: %s", op, exc)
            return transport_error(
                "DEADLINE_EXCEEDED", f"request {op} timed out: {exc}", error=type(exc).__name__
            )
        except httpx.HTTPError as exc:
            logger.warning("HttpTransport: %s failed: %s", op, exc)
            return transport_error(
                "TRANSIENT_NETWORK", f"network error during {op}: {exc}", error=type(exc).__name__
            )
        return decode_reply(response)

    async def _send_streaming(self, body: Mapping[str, Any]) -> Dict[str, Any]:
        async with self._client.stream(
            "POST", RPC_PATH, json=body, headers={"Accept": NDJSON}
        ) as response:
            if not response.is_success:
                await response.aread()
                return http_error(response)
            content_type = response.headers.get("Content-Type", "")
            if not content_type.startswith(NDJSON):
                await response.aread()
                return decode_reply(response)

            chunks: List[Any] = []
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    frame = json.loads(line)
                except ValueError as exc:
                    return transport_error(
                        "PROTOCOL_ERROR",
                        f"undecodable stream frame: {exc}",
                        error="ProtocolError",
                        status=response.status_code,
                    )
                if not isinstance(frame, Mapping) or frame.get("ok") is not True:
                    if isinstance(frame, Mapping) and frame.get("ok") is False:
                        return dict(frame)
                    return transport_error(
                        "PROTOCOL_ERROR", "stream frame is not an envelope", error="ProtocolError"
                    )
                if "chunk" in frame:
                    chunks.append(frame["chunk"])
                elif "result" in frame:
                    chunks.append(frame["result"])

        try:
            result = merge_chunks(chunks)
        except ValueError as exc:
            return transport_error("PROTOCOL_ERROR", str(exc), error="ProtocolError")
        return {"ok": True, "code": "OK", "result": result}


__all__ = [
    "HttpTransport",
    "NDJSON",
    "STREAMABLE_OPS",
    "status_to_code",
    "transport_error",
    "http_error",
    "decode_reply",
    "merge_chunks",
]
