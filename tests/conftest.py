# tests/conftest.py
# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures for the adscript-sdk test-suite.

End-to-end tests run the real stack (Session -> OperationQueue -> SyncBridge
worker thread -> HttpTransport/httpx) against an in-memory ``MockGraphStore``
mounted through ``httpx.MockTransport``; nothing touches the network.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, List

import pytest

import adscript_sdk.graph.session as session_module
from adscript_sdk.graph.session import Session, SessionConfig
from adscript_sdk.mock.mock_graph_store import MockGraphStore

SERVER_URL = "http://store.test/tbl"
DATA_GRAPH = "geo"
EX = "http://example.org/"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    markers = [
        "slow: tests that wait on timeouts (skip with -m 'not slow')",
        "e2e: tests driving the full session stack against the mock store",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ADSCRIPT_* settings from the developer's shell out of the tests."""
    for name in (
        "ADSCRIPT_SERVER_URL",
        "ADSCRIPT_DATA_GRAPH",
        "ADSCRIPT_LANGS",
        "ADSCRIPT_STREAMING",
        "ADSCRIPT_READS_INDEPENDENT",
        "ADSCRIPT_USERNAME",
        "ADSCRIPT_PASSWORD",
        "ADSCRIPT_TIMEOUT_S",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store() -> MockGraphStore:
    return MockGraphStore(prefixes={"ex": EX})


@pytest.fixture
def make_config() -> Callable[..., SessionConfig]:
    def _make(**overrides: Any) -> SessionConfig:
        params = {"server_url": SERVER_URL, "data_graph_id": DATA_GRAPH, "timeout_s": 10.0}
        params.update(overrides)
        return SessionConfig(**params)

    return _make


@pytest.fixture
def make_session(store: MockGraphStore, make_config) -> Iterator[Callable[..., Session]]:
    """Factory for sessions wired to ``store``; every session is terminated afterwards."""
    created: List[Session] = []

    def _make(**overrides: Any) -> Session:
        session = Session(make_config(**overrides), transport=store.as_httpx_transport())
        created.append(session)
        return session

    yield _make

    for session in created:
        if session.is_initialized and not session.is_terminated:
            try:
                session.terminate()
            except Exception:  # noqa: BLE001
                pass


@pytest.fixture
def session(make_session) -> Session:
    return make_session().init()


@pytest.fixture
def reset_default_session() -> Iterator[None]:
    """Isolate tests that use the module-level init()/terminate()."""
    yield
    default = session_module._default_session
    if default is not None and not default.is_terminated:
        try:
            default.terminate()
        except Exception:  # noqa: BLE001
            pass
    session_module._default_session = None
