"""Unit test fixtures for groups module."""

import pytest

from tests.fixtures.group_store import FakeGroupStore


@pytest.fixture
def fake_store():
    return FakeGroupStore(
        groups={
            "target": {"x1000c0s0b0n1", "x1000c0s0b0n2"},
            "parent": {"x1000c0s0b0n4", "x1000c0s0b0n5", "x1000c0s0b0n6"},
        }
    )
