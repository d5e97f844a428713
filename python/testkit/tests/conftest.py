"""
Pytest configuration and fixtures
"""

from unittest.mock import MagicMock

import pytest
from fakes import FakeClock, FakeRuntime, FakeSession

from ggx_testkit.chain.facade import ChainFacade
from ggx_testkit.lifecycle import Handle, LifecycleManager
from ggx_testkit.types import ImageRef, LogPattern, ServiceSpec


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runtime(clock):
    return FakeRuntime(clock)


@pytest.fixture
def manager(runtime, clock):
    """LifecycleManager on the fake runtime, ticking once per clock second"""
    return LifecycleManager(runtime, clock=clock, readiness_interval=1.0)


@pytest.fixture
def node_spec():
    """A spec shaped like a chain node"""
    return ServiceSpec(
        identity=ImageRef(repository="example/node", tag="v1"),
        arguments=("--dev",),
        exposed_ports=(9944,),
        readiness=(LogPattern.on_stderr("READY"),),
    )


@pytest.fixture
def session(clock):
    return FakeSession(clock)


@pytest.fixture
def node_handle():
    """A live handle without a runtime behind it"""
    handle = MagicMock(spec=Handle)
    handle.name = "alice"
    handle.is_stopped = False
    return handle


@pytest.fixture
def facade(node_handle, session, clock):
    return ChainFacade(
        node_handle,
        session,
        clock=clock,
        poll_interval=1.0,
        finalization_timeout=30.0,
        event_timeout=10.0,
    )
