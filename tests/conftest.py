"""Pytest configuration and shared fixtures."""

from __future__ import annotations

# Re-export all fixtures from fixtures modules
from tests.fixtures.mocks import *  # noqa: F401, F403
from tests.fixtures.statements import *  # noqa: F401, F403
