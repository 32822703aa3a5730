"""Shared fixtures for the HSM groups test suite."""

import pytest

from modules.groups.domain.models import Group


@pytest.fixture
def hsm_groups():
    """A small HSM inventory with overlapping groups."""
    return [
        Group(
            label="compute",
            members={"x1000c0s0b0n0", "x1000c0s0b0n1", "x1000c0s1b0n0"},
            description="All compute nodes",
            tags={"prod"},
        ),
        Group(
            label="gpu",
            members={"x1000c0s1b0n0", "x1000c1s0b0n0"},
            description="GPU nodes",
        ),
        Group(label="staging", members={"x1000c1s0b0n1"}),
        Group(label="empty"),
    ]
