# adscript_sdk/cli.py
# SPDX-License-Identifier: Apache-2.0
"""
adscript CLI

Run one-off graph operations against a store from the shell. Every command
opens a session, performs a single read and terminates the session again.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence

import httpx

from adscript_sdk.graph.graph_base import AdscriptError
from adscript_sdk.graph.session import Session, SessionConfig
from adscript_sdk.graph.terms import URI, Literal, encode_value

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


# --------------------------------------------------------------------------- #
# Internal helpers
# --------------------------------------------------------------------------- #

def _parse_bindings(pairs: Optional[List[str]]) -> Dict[str, Any]:
    """``name=value`` pairs; values in angle brackets become URIs."""
    bindings: Dict[str, Any] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ValueError(f"binding must look like name=value, got {pair!r}")
        if value.startswith("<") and value.endswith(">"):
            bindings[name] = URI(value[1:-1])
        else:
            bindings[name] = Literal(value)
    return bindings


def _config_from_args(args: argparse.Namespace) -> SessionConfig:
    overrides: Dict[str, Any] = {
        "server_url": args.server,
        "data_graph_id": args.graph,
        "timeout_s": args.timeout,
    }
    if args.lang:
        overrides["langs"] = tuple(args.lang)
    if args.streaming:
        overrides["streaming"] = True
    if args.user:
        overrides["request_config"] = {
            "auth": {"username": args.user, "password": args.password or ""}
        }
    return SessionConfig.from_env(**overrides)


def _print_json(value: Any) -> None:
    print(json.dumps(encode_value(value), indent=2, ensure_ascii=False))


def _run(session: Session, args: argparse.Namespace) -> Any:
    bindings = _parse_bindings(getattr(args, "bind", None))
    if args.command == "ping":
        session.init()
        return {
            "session_id": session.session_id,
            "data_graph": session.base_graph,
            "prefixes": dict(session.prefixes),
        }
    if args.command == "select":
        return session.select(args.query, bindings)
    if args.command == "construct":
        return [list(t) for t in session.construct(args.query, bindings)]
    if args.command == "eval":
        return session.eval(args.expression, bindings)
    raise ValueError(f"unknown command {args.command!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adscript",
        description="adscript - run graph operations against a remote store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  adscript --server http://localhost:8083/tbl --graph geo ping
  adscript --graph geo select "SELECT ?s WHERE { ?s ?p ?o } LIMIT 10"
  adscript --graph geo select "SELECT ?o WHERE { ?s ?p ?o }" --bind s=<http://example.org/a>

Configuration (environment variables):
  ADSCRIPT_SERVER_URL    Store base URL (default for --server)
  ADSCRIPT_DATA_GRAPH    Data graph id (default for --graph)
  ADSCRIPT_USERNAME      Basic auth user
  ADSCRIPT_PASSWORD      Basic auth password
  ADSCRIPT_TIMEOUT_S     Per-call timeout in seconds
        """.strip(),
    )
    parser.add_argument("--server", help="store base URL")
    parser.add_argument("--graph", help="data graph id")
    parser.add_argument("--user", help="basic auth user")
    parser.add_argument("--password", help="basic auth password")
    parser.add_argument("--timeout", type=float, help="per-call timeout in seconds")
    parser.add_argument(
        "--lang", action="append", help="preferred language (can be used multiple times)"
    )
    parser.add_argument("--streaming", action="store_true", help="request streamed reads")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    subparsers = parser.add_subparsers(
        dest="command", required=True, help="command to execute", metavar="COMMAND"
    )
    subparsers.add_parser("ping", help="open and close a session, print handshake data")

    select_parser = subparsers.add_parser("select", help="run a SPARQL SELECT query")
    select_parser.add_argument("query")
    construct_parser = subparsers.add_parser("construct", help="run a SPARQL CONSTRUCT query")
    construct_parser.add_argument("query")
    eval_parser = subparsers.add_parser("eval", help="evaluate an expression on the server")
    eval_parser.add_argument("expression")
    for p in (select_parser, construct_parser, eval_parser):
        p.add_argument(
            "--bind", action="append", metavar="NAME=VALUE",
            help="pre-bound variable (<uri> or literal, can be used multiple times)",
        )
    return parser


# --------------------------------------------------------------------------- #
# main
# --------------------------------------------------------------------------- #

def main(
    argv: Optional[Sequence[str]] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _config_from_args(args)
    except AdscriptError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return EXIT_USAGE

    session = Session(config, transport=transport)
    try:
        result = _run(session, args)
        _print_json(result)
        return EXIT_OK
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except AdscriptError as exc:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        try:
            session.terminate()
        except AdscriptError as exc:
            print(f"warning: terminate failed: {exc}", file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
