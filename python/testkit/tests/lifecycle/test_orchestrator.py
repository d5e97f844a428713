"""
Tests for ServiceOrchestrator
"""

import asyncio

import pytest

from ggx_testkit.exceptions import LaunchFailure, ReadinessTimeout
from ggx_testkit.lifecycle import ServiceOrchestrator
from ggx_testkit.types import FixedDelay, ImageRef, LogPattern, NetworkMode, ServiceSpec, Stream


def spec(repository: str, *readiness) -> ServiceSpec:
    return ServiceSpec(identity=ImageRef(repository=repository), readiness=readiness)


@pytest.mark.asyncio
async def test_start_parallel_waits_for_slowest(manager, runtime, clock):
    services = ServiceOrchestrator(manager)
    runtime.schedule("ggx:latest", 3, Stream.STDERR, "Running JSON-RPC server: addr=")

    ggx, cosmos = await services.start_parallel(
        (spec("ggx", LogPattern.on_stderr("Running JSON-RPC server")), NetworkMode.HOST),
        (spec("cosmos", FixedDelay.seconds(10)), NetworkMode.HOST),
    )

    assert ggx.spec.image == "ggx:latest"
    assert cosmos.spec.image == "cosmos:latest"
    assert services.handles == [ggx, cosmos]
    # both readiness loops share the clock, so the slowest one bounds the total
    assert clock.now() >= 10.0


@pytest.mark.asyncio
async def test_start_parallel_accepts_bare_specs(manager, runtime):
    services = ServiceOrchestrator(manager)

    handles = await services.start_parallel(spec("a"), spec("b"))

    assert [h.network_mode for h in handles] == [NetworkMode.ISOLATED, NetworkMode.ISOLATED]


@pytest.mark.asyncio
async def test_start_parallel_keeps_started_handles_on_failure(manager, runtime):
    services = ServiceOrchestrator(manager)
    runtime.fail_images.add("broken:latest")

    with pytest.raises(LaunchFailure):
        await services.start_parallel(spec("ok"), spec("broken"))

    assert [h.spec.image for h in services.handles] == ["ok:latest"]

    await services.stop_all()
    assert [i.image for i in runtime.stopped] == ["ok:latest"]


@pytest.mark.asyncio
async def test_start_parallel_timeout(manager, runtime):
    services = ServiceOrchestrator(manager)

    with pytest.raises(ReadinessTimeout):
        await services.start_parallel(
            spec("fast"),
            spec("slow", LogPattern.on_stdout("never")),
            timeout=5,
        )

    # the timed out instance is discarded by the manager, the other is owned
    assert [h.spec.image for h in services.handles] == ["fast:latest"]
    assert [i.image for i in runtime.stopped] == ["slow:latest"]


@pytest.mark.asyncio
async def test_start_parallel_cancelled_from_outside_keeps_ready_handles(manager, runtime):
    services = ServiceOrchestrator(manager)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(
            services.start_parallel(spec("fast"), spec("slow", LogPattern.on_stdout("never"))),
            0.3,
        )

    assert [h.spec.image for h in services.handles] == ["fast:latest"]
    assert [i.image for i in runtime.stopped] == ["slow:latest"]

    await services.stop_all()
    assert sorted(i.image for i in runtime.stopped) == ["fast:latest", "slow:latest"]


@pytest.mark.asyncio
async def test_start_parallel_launch_failure_cancels_unbounded_siblings(manager, runtime):
    services = ServiceOrchestrator(manager)
    runtime.fail_images.add("broken:latest")

    with pytest.raises(LaunchFailure):
        await asyncio.wait_for(
            services.start_parallel(spec("broken"), spec("slow", LogPattern.on_stdout("never"))),
            5,
        )

    assert services.handles == []
    assert [i.image for i in runtime.stopped] == ["slow:latest"]


@pytest.mark.asyncio
async def test_start_parallel_of_nothing(manager):
    assert await ServiceOrchestrator(manager).start_parallel() == []


@pytest.mark.asyncio
async def test_stop_all_in_reverse_order(manager, runtime):
    async with ServiceOrchestrator(manager) as services:
        await services.start(spec("ggx"))
        await services.start(spec("cosmos"))
        await services.start(spec("hermes"))

    assert [i.image for i in runtime.stopped] == ["hermes:latest", "cosmos:latest", "ggx:latest"]
    assert services.handles == []


@pytest.mark.asyncio
async def test_stop_all_continues_after_a_failure(manager, runtime):
    services = ServiceOrchestrator(manager)
    await services.start(spec("first"))
    await services.start(spec("second"))

    original_stop = runtime.stop

    async def flaky_stop(instance):
        if instance.image == "second:latest":
            raise RuntimeError("docker went away")
        await original_stop(instance)

    runtime.stop = flaky_stop
    await services.stop_all()

    assert [i.image for i in runtime.stopped] == ["first:latest"]
    assert services.handles == []
