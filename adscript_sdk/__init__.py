# adscript_sdk/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
adscript-sdk

Synchronous script access to a remote RDF graph store.

    import adscript_sdk as ads

    session = ads.init(server_url="http://localhost:8083/tbl", data_graph_id="geo")
    try:
        session.add("http://example.org/a", "http://example.org/label", "hello")
        rows = session.select("SELECT ?s ?o WHERE { ?s ?p ?o }")
    finally:
        ads.terminate()
"""

from adscript_sdk.graph import *  # noqa: F401,F403
from adscript_sdk.graph import __all__ as _graph_all
from adscript_sdk.graph.session import init, current, terminate

__version__ = "1.0.0"

__all__ = list(_graph_all) + ["init", "current", "terminate", "__version__"]
