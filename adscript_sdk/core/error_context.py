# adscript_sdk/core/error_context.py
# SPDX-License-Identifier: Apache-2.0

"""
Error context utilities for the script graph stack.

Errors raised on the calling thread frequently originate elsewhere: in the
transport worker thread, in the remote store, or inside a batched flush that
was triggered implicitly by a read. This module attaches the origin of an
error to the exception object so that handlers can tell these cases apart
without parsing messages.

Typical usage
-------------

    try:
        result = bridge.call(envelope)
    except AdscriptError as exc:
        attach_context(exc, origin="bridge", operation="select", call_id=7)
        raise

Later, in error handlers:

    except AdscriptError as exc:
        ctx = get_context(exc)
        logger.error("graph operation failed", extra={"operation": ctx.get("operation")})

The context is stored as exception attributes; the exception message, type
and traceback are left untouched. Several layers may contribute: contexts are
merged, and the first ``origin`` recorded is kept.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping

logger = logging.getLogger(__name__)

_CANONICAL_ATTR = "__adscript_context__"


def attach_context(
    exc: BaseException,
    origin: str,
    **context: Any,
) -> None:
    """
    Attach debugging context to an exception.

    Two attributes are set on the exception:

    1. ``__adscript_context__`` (canonical), merged across calls.
    2. ``__<origin>_context__`` (e.g. ``__bridge_context__``,
       ``__batcher_context__``), the same mapping under a more specific name.

    Parameters
    ----------
    exc:
        The exception to enrich.
    origin:
        Component that observed the error ("bridge", "batcher", "session",
        "transport").
    **context:
        Extra fields such as ``operation``, ``call_id``, ``pending``,
        ``session_id``. Never pass credentials.

    Attachment is best-effort: failures are logged at debug level and never
    mask the original exception.
    """
    try:
        merged: MutableMapping[str, Any] = {}
        existing = getattr(exc, _CANONICAL_ATTR, None)
        if isinstance(existing, Mapping):
            merged.update(existing)

        merged.setdefault("origin", origin)
        merged.update(context)

        setattr(exc, _CANONICAL_ATTR, merged)
        setattr(exc, f"__{origin}_context__", merged)
    except Exception as attachment_error:  # noqa: BLE001
        logger.debug(
            "Failed to attach error context to %s: %s",
            type(exc).__name__,
            attachment_error,
            extra={"origin": origin},
        )


def get_context(exc: BaseException, *, origin: str = "") -> Mapping[str, Any]:
    """
    Retrieve attached context from an exception.

    If ``origin`` is given, the origin-specific attribute is preferred before
    falling back to the canonical one. Returns an empty mapping when nothing
    is attached.
    """
    if origin:
        ctx = getattr(exc, f"__{origin}_context__", None)
        if isinstance(ctx, Mapping):
            return ctx
    ctx = getattr(exc, _CANONICAL_ATTR, None)
    if isinstance(ctx, Mapping):
        return ctx
    return {}


__all__ = [
    "attach_context",
    "get_context",
]
