# adscript_sdk/mock/__init__.py
# SPDX-License-Identifier: Apache-2.0

from adscript_sdk.mock.mock_graph_store import MockGraphStore

__all__ = ["MockGraphStore"]
