"""
Pytest configuration and fixtures for permgate tests.

This module provides shared fixtures used across unit and integration tests.
"""

import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest

from permgate.engine import Evaluator
from permgate.params import RequestContext
from permgate.permissions import Permissions
from permgate.providers import Registry


def validation_a(params: Any, context: Any) -> bool:
    return True


def validation_b(params: Any, context: Any) -> dict[str, str]:
    return {"code": "bad"}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry() -> Registry:
    """An empty registry, isolated per test."""
    return Registry()


@pytest.fixture
def evaluator(registry: Registry) -> Evaluator:
    """An evaluator bound to the test registry."""
    return Evaluator(registry)


@pytest.fixture
def perms() -> Permissions:
    """A facade owning its own registry."""
    return Permissions()


@pytest.fixture
def ab_provider() -> dict[str, Any]:
    """Provider whose A passes and whose B fails with an explanation."""
    return {"A": validation_a, "B": validation_b}


@pytest.fixture
def request_context() -> RequestContext:
    """A request with parameters, cookies and a nested session field."""
    return RequestContext(
        params={"id": "42", "page": "2"},
        cookies={"sid": "cookie-session"},
        session={"user": {"id": 7, "role": "admin", "tags": ["a", "b"]}},
    )


@pytest.fixture
def sample_policy_yaml() -> str:
    """Return a simple policy YAML for testing."""
    return """
namespace: global
scheme: user
method: allOf
params:
  role: "req.session.user.role"
target:
  - is_admin
"""


@pytest.fixture
def sample_context_yaml() -> str:
    """Return a request-context YAML for testing."""
    return """
params:
  id: "42"
cookies:
  sid: abc
fields:
  session:
    user:
      id: 7
      role: admin
"""
