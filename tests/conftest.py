"""Shared pytest fixtures."""

from typing import Generator

import pytest

from ocli.core import audit


@pytest.fixture(autouse=True)
def disable_audit() -> Generator[None, None, None]:
    """Keep tests from writing to ~/.ocli/audit.log."""
    previous = audit._audit_logger
    audit.configure_audit_logger(enabled=False)
    yield
    audit._audit_logger = previous
