# SPDX-License-Identifier: Apache-2.0
"""
adscript-sdk tests

Unit tests for the term model, bridge, queue and transport, plus end-to-end
session tests against the in-memory mock store.
"""
