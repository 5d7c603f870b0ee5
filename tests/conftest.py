"""Fixtures wiring the in-memory fakes into a provisioner."""

from __future__ import annotations

import pytest

from harbormaster.provisioning import Provisioner

from fakes import FakeClock, FakeHost, FakeRuntime


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provisioner(runtime: FakeRuntime, host: FakeHost, clock: FakeClock) -> Provisioner:
    return Provisioner(
        runtime,
        host,
        verify_timeout=2.0,
        poll_interval=0.5,
        clock=clock,
        sleep=clock.sleep,
    )
