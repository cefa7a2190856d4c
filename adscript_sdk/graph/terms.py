# adscript_sdk/graph/terms.py
# SPDX-License-Identifier: Apache-2.0
"""
Canonical RDF term model.

A term is either a ``URI`` or a ``Literal``. Blank nodes are URIs whose value
starts with ``"_:"``; that value is carried byte-for-byte in both directions.

The Python types are an explicit tagged union: which variant a value is gets
decided once, when it enters the model (``to_term`` for native values and
descriptors, ``decode_term`` for wire payloads). The wire encoding itself stays
discriminated by field presence:

    {"uri": "http://example.org/a"}
    {"uri": "_:b0"}
    {"lex": "hello"}                                   # xsd:string
    {"lex": "hallo", "lang": "nl"}
    {"lex": "42", "datatype": "http://www.w3.org/2001/XMLSchema#integer"}
"""

from __future__ import annotations

import decimal
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from rdflib import BNode as _RdfBNode
from rdflib import Literal as _RdfLiteral
from rdflib import URIRef as _RdfURIRef
from rdflib.term import Node as _RdfNode

from adscript_sdk.graph.graph_base import TermConstructionError

XSD = "http://www.w3.org/2001/XMLSchema#"
RDF = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"

XSD_STRING = XSD + "string"
XSD_BOOLEAN = XSD + "boolean"
XSD_INTEGER = XSD + "integer"
XSD_DECIMAL = XSD + "decimal"
XSD_DOUBLE = XSD + "double"
RDF_LANGSTRING = RDF + "langString"

BLANK_PREFIX = "_:"


@dataclass(frozen=True, eq=False)
class URI:
    """A resource identifier, or a blank node when ``value`` starts with ``_:``."""
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value:
            raise TermConstructionError("URI value must be a non-empty string")

    @property
    def is_blank(self) -> bool:
        return self.value.startswith(BLANK_PREFIX)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (URI, Literal)):
            return NotImplemented
        return terms_equal(self, other)

    def __hash__(self) -> int:
        return hash(("uri", self.value))

    def __str__(self) -> str:
        return self.value if self.is_blank else f"<{self.value}>"


@dataclass(frozen=True, eq=False)
class Literal:
    """
    A literal value.

    ``lang`` and ``datatype`` are mutually exclusive after construction: a
    plain literal gets ``datatype=XSD_STRING``, a language-tagged literal has
    ``datatype=None``.
    """
    lex: str
    lang: Optional[str] = None
    datatype: Optional[str] = None

    def __post_init__(self) -> None:
        if self.lex is None:
            raise TermConstructionError("literal requires a lexical form")
        if not isinstance(self.lex, str):
            raise TermConstructionError(
                f"literal lexical form must be a string, got {type(self.lex).__name__}"
            )
        lang = self.lang or None
        datatype = self.datatype or None
        if lang is not None:
            if datatype not in (None, XSD_STRING, RDF_LANGSTRING):
                raise TermConstructionError(
                    f"literal cannot carry both language {lang!r} and datatype {datatype!r}"
                )
            datatype = None
        elif datatype is None:
            datatype = XSD_STRING
        object.__setattr__(self, "lang", lang)
        object.__setattr__(self, "datatype", datatype)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (URI, Literal)):
            return NotImplemented
        return terms_equal(self, other)

    def __hash__(self) -> int:
        if self.lang is not None:
            return hash(("lit", self.lex, "@", self.lang))
        return hash(("lit", self.lex, "^^", self.datatype))

    def __str__(self) -> str:
        if self.lang is not None:
            return f'"{self.lex}"@{self.lang}'
        if self.datatype == XSD_STRING:
            return f'"{self.lex}"'
        return f'"{self.lex}"^^<{self.datatype}>'


Term = Union[URI, Literal]


# ---------------------------------------------------------------------------
# Predicates and equality
# ---------------------------------------------------------------------------

def is_uri(term: Any) -> bool:
    return isinstance(term, URI)


def is_blank(term: Any) -> bool:
    return isinstance(term, URI) and term.value.startswith(BLANK_PREFIX)


def is_literal(term: Any) -> bool:
    return isinstance(term, Literal)


def terms_equal(a: Term, b: Term) -> bool:
    """
    Term equality.

    URIs are equal when their values are equal. Literals are equal when the
    lexical forms match and either both languages or both datatypes match.
    """
    if isinstance(a, URI):
        return isinstance(b, URI) and a.value == b.value
    if isinstance(a, Literal) and isinstance(b, Literal):
        if a.lex != b.lex:
            return False
        if a.lang is not None and a.lang == b.lang:
            return True
        return a.datatype is not None and a.datatype == b.datatype
    return False


# ---------------------------------------------------------------------------
# Prefixes
# ---------------------------------------------------------------------------

def expand_qname(qname: str, prefixes: Optional[Mapping[str, str]]) -> str:
    """Expand ``prefix:local`` using ``prefixes``."""
    if not isinstance(qname, str) or ":" not in qname:
        raise TermConstructionError(f"invalid qname {qname!r}")
    prefix, local = qname.split(":", 1)
    if not prefixes or prefix not in prefixes:
        raise TermConstructionError(f"unknown prefix {prefix!r} in qname {qname!r}")
    return prefixes[prefix] + local


def compact_uri(uri: str, prefixes: Optional[Mapping[str, str]]) -> Optional[str]:
    """Return the shortest ``prefix:local`` form of ``uri``, or None."""
    best: Optional[str] = None
    best_ns = ""
    for prefix, ns in (prefixes or {}).items():
        if ns and uri.startswith(ns) and len(ns) > len(best_ns):
            best, best_ns = f"{prefix}:{uri[len(ns):]}", ns
    return best


# ---------------------------------------------------------------------------
# Native values and descriptors -> Term
# ---------------------------------------------------------------------------

def _float_lexical(value: float) -> Literal:
    if math.isnan(value):
        return Literal("NaN", datatype=XSD_DOUBLE)
    if math.isinf(value):
        return Literal("INF" if value > 0 else "-INF", datatype=XSD_DOUBLE)
    return _decimal_lexical(decimal.Decimal(repr(value)))


def _decimal_lexical(value: decimal.Decimal) -> Literal:
    # xsd:decimal has no exponent form
    if value.is_nan():
        return Literal("NaN", datatype=XSD_DOUBLE)
    if value.is_infinite():
        return Literal("-INF" if value.is_signed() else "INF", datatype=XSD_DOUBLE)
    return Literal(format(value, "f"), datatype=XSD_DECIMAL)


def _datatype_from(value: Any, prefixes: Optional[Mapping[str, str]]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, URI):
        return value.value
    if isinstance(value, Mapping):
        if "uri" in value:
            return str(value["uri"])
        if "qname" in value:
            return expand_qname(value["qname"], prefixes)
        raise TermConstructionError(f"invalid datatype descriptor {dict(value)!r}")
    if isinstance(value, str):
        if prefixes and ":" in value and not value.startswith(("http:", "https:", "urn:")):
            prefix = value.split(":", 1)[0]
            if prefix in prefixes:
                return expand_qname(value, prefixes)
        return value
    raise TermConstructionError(f"invalid datatype {value!r}")


def _from_descriptor(desc: Mapping[str, Any], prefixes: Optional[Mapping[str, str]]) -> Term:
    has_uri = "uri" in desc
    has_qname = "qname" in desc
    has_lex = "lex" in desc
    if has_uri + has_qname + has_lex != 1:
        raise TermConstructionError(
            f"descriptor must have exactly one of 'uri', 'qname', 'lex': {dict(desc)!r}"
        )
    if has_uri:
        return URI(desc["uri"])
    if has_qname:
        return URI(expand_qname(desc["qname"], prefixes))
    return Literal(
        desc["lex"],
        lang=desc.get("lang"),
        datatype=_datatype_from(desc.get("datatype"), prefixes),
    )


def to_term(value: Any, *, prefixes: Optional[Mapping[str, str]] = None) -> Term:
    """
    Convert a native value or descriptor into a Term.

    Accepted shapes: Term, bool, int, float, Decimal, str, rdflib terms and
    ``{uri}`` / ``{qname}`` / ``{lex, lang?, datatype?}`` mappings.

    Raises:
        TermConstructionError: If ``value`` matches none of them.
    """
    if isinstance(value, (URI, Literal)):
        return value
    if isinstance(value, bool):
        return Literal("true" if value else "false", datatype=XSD_BOOLEAN)
    if isinstance(value, int):
        return Literal(str(value), datatype=XSD_INTEGER)
    if isinstance(value, float):
        return _float_lexical(value)
    if isinstance(value, decimal.Decimal):
        return _decimal_lexical(value)
    if isinstance(value, _RdfNode):
        return from_rdflib(value)
    if isinstance(value, str):
        return Literal(value)
    if isinstance(value, Mapping):
        return _from_descriptor(value, prefixes)
    raise TermConstructionError(
        f"cannot convert {type(value).__name__} to an RDF term",
        details={"type": type(value).__name__},
    )


# ---------------------------------------------------------------------------
# Wire codec
# ---------------------------------------------------------------------------

def encode_term(term: Term) -> Dict[str, str]:
    if isinstance(term, URI):
        return {"uri": term.value}
    if isinstance(term, Literal):
        out = {"lex": term.lex}
        if term.lang is not None:
            out["lang"] = term.lang
        elif term.datatype != XSD_STRING:
            out["datatype"] = term.datatype
        return out
    raise TermConstructionError(f"not a term: {term!r}")


def looks_like_term(value: Any) -> bool:
    """True if ``value`` is a mapping shaped like an encoded term."""
    if not isinstance(value, Mapping):
        return False
    keys = set(value)
    return keys == {"uri"} or ("lex" in keys and keys <= {"lex", "lang", "datatype"})


def decode_term(value: Mapping[str, Any]) -> Term:
    if not isinstance(value, Mapping):
        raise TermConstructionError(f"encoded term must be an object, got {type(value).__name__}")
    if "uri" in value and "lex" in value:
        raise TermConstructionError(f"ambiguous encoded term {dict(value)!r}")
    if "uri" in value:
        return URI(value["uri"])
    if "lex" in value:
        return Literal(value["lex"], lang=value.get("lang"), datatype=value.get("datatype"))
    raise TermConstructionError(f"encoded term has neither 'uri' nor 'lex': {dict(value)!r}")


def encode_value(value: Any) -> Any:
    """Encode Terms anywhere inside lists/tuples/dicts; scalars pass through."""
    if isinstance(value, (URI, Literal)):
        return encode_term(value)
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    if isinstance(value, Mapping):
        return {k: encode_value(v) for k, v in value.items()}
    return value


def decode_value(value: Any) -> Any:
    """Decode term-shaped mappings anywhere inside lists/dicts."""
    if looks_like_term(value):
        return decode_term(value)
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    if isinstance(value, Mapping):
        return {k: decode_value(v) for k, v in value.items()}
    return value


# ---------------------------------------------------------------------------
# rdflib interop
# ---------------------------------------------------------------------------

def to_rdflib(term: Term) -> _RdfNode:
    if isinstance(term, URI):
        if term.is_blank:
            return _RdfBNode(term.value[len(BLANK_PREFIX):])
        return _RdfURIRef(term.value)
    if isinstance(term, Literal):
        if term.lang is not None:
            return _RdfLiteral(term.lex, lang=term.lang)
        if term.datatype == XSD_STRING:
            return _RdfLiteral(term.lex)
        return _RdfLiteral(term.lex, datatype=_RdfURIRef(term.datatype))
    raise TermConstructionError(f"not a term: {term!r}")


def from_rdflib(node: _RdfNode) -> Term:
    if isinstance(node, _RdfBNode):
        return URI(BLANK_PREFIX + str(node))
    if isinstance(node, _RdfURIRef):
        return URI(str(node))
    if isinstance(node, _RdfLiteral):
        datatype = str(node.datatype) if node.datatype is not None else None
        return Literal(str(node), lang=node.language, datatype=datatype)
    raise TermConstructionError(f"unsupported rdflib node {type(node).__name__}")


def term_list(values: Any, *, prefixes: Optional[Mapping[str, str]] = None) -> List[Term]:
    """Convert a single value or an iterable of values into a list of Terms."""
    if values is None:
        return []
    if isinstance(values, (list, tuple, set, frozenset)):
        return [to_term(v, prefixes=prefixes) for v in values]
    return [to_term(values, prefixes=prefixes)]


__all__ = [
    "XSD_STRING",
    "XSD_BOOLEAN",
    "XSD_INTEGER",
    "XSD_DECIMAL",
    "XSD_DOUBLE",
    "RDF_LANGSTRING",
    "BLANK_PREFIX",
    "URI",
    "Literal",
    "Term",
    "is_uri",
    "is_blank",
    "is_literal",
    "terms_equal",
    "expand_qname",
    "compact_uri",
    "to_term",
    "encode_term",
    "decode_term",
    "encode_value",
    "decode_value",
    "looks_like_term",
    "to_rdflib",
    "from_rdflib",
    "term_list",
]
