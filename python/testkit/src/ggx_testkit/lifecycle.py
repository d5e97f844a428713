"""
Service lifecycle management

Starts service specs on a container runtime, waits for their readiness
conditions and hands out scenario-owned handles.
"""

import asyncio
import logging
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Union

from ggx_testkit.exceptions import (
    ConvergenceTimeout,
    ExecTimeout,
    LaunchFailure,
    PortNotExposed,
    ReadinessTimeout,
)
from ggx_testkit.polling import Clock, MonotonicClock, poll_until, until_true
from ggx_testkit.readiness import pending, streams_needed
from ggx_testkit.runtime import ContainerRuntime, DockerRuntime, Instance
from ggx_testkit.types import NetworkMode, ServiceSpec, Stream

logger = logging.getLogger(__name__)

DEFAULT_READINESS_INTERVAL = 0.5
LOCALHOST = "127.0.0.1"


class Handle:
    """
    A started, ready instance.

    Owned by the scenario that started it; stop it (or use it as an async
    context manager) when the scenario ends.
    """

    def __init__(
        self,
        manager: "LifecycleManager",
        spec: ServiceSpec,
        network_mode: NetworkMode,
        instance: Instance,
        port_map: Mapping[int, int],
        started_at: float,
    ):
        self._manager = manager
        self.spec = spec
        self.network_mode = network_mode
        self.instance = instance
        self.started_at = started_at
        self._port_map = MappingProxyType(dict(port_map))
        self._stopped = False

    def __repr__(self) -> str:
        return f"Handle({self.name!r}, {self.spec.image}, {self.network_mode.value})"

    @property
    def name(self) -> str:
        return self.spec.container_name or self.instance.name

    @property
    def host(self) -> str:
        return LOCALHOST

    @property
    def port_map(self) -> Mapping[int, int]:
        return self._port_map

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def get_mapped_port(self, port: int) -> int:
        """
        Reachable port for a logical port of the spec.

        Raises:
            PortNotExposed: If the spec does not expose `port`
        """
        if port not in self.spec.exposed_ports:
            raise PortNotExposed(self.spec.image, port)
        return self._port_map[port]

    def url(self, port: int, scheme: str = "http") -> str:
        return f"{scheme}://{self.host}:{self.get_mapped_port(port)}"

    async def logs(self, stream: Stream = Stream.STDOUT) -> str:
        """Everything the instance has written to `stream` so far"""
        data = await self._manager.runtime.stream_output(self.instance, stream)
        return data.decode("utf-8", errors="replace")

    async def exec_and_wait(
        self,
        command: Sequence[str],
        output_match: str,
        timeout: float,
    ) -> str:
        """
        Run a one-shot command inside the instance and wait for its output.

        Args:
            command: Command and arguments
            output_match: Literal expected on stdout or stderr
            timeout: Seconds to wait for `output_match`

        Returns:
            Output captured up to the match

        Raises:
            ExecTimeout: If `output_match` did not appear in time
        """
        output = await self._manager.runtime.exec(self.instance, command)
        try:
            await poll_until(
                until_true(lambda: output_match in output.text()),
                interval=self._manager.readiness_interval,
                deadline=timeout,
                clock=self._manager.clock,
                description=f"'{output_match}' from `{command[0]}` in {self.name}",
            )
        except ConvergenceTimeout as e:
            tail = output.text()[-500:]
            raise ExecTimeout(
                f"`{' '.join(command)}` in {self.name} did not print '{output_match}' "
                f"within {timeout}s. Output tail: {tail!r}",
                elapsed=e.elapsed,
                deadline=timeout,
            ) from e
        return output.text()

    async def stop(self) -> None:
        """Stop the instance; calling it again is a no-op"""
        if self._stopped:
            return
        self._stopped = True
        await self._manager.runtime.stop(self.instance)

    async def __aenter__(self) -> "Handle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


class LifecycleManager:
    """
    Starts service specs and waits for readiness.

    Usage:
        manager = LifecycleManager(DockerRuntime())
        async with await manager.start(spec, NetworkMode.HOST) as handle:
            ...
    """

    def __init__(
        self,
        runtime: Optional[ContainerRuntime] = None,
        clock: Optional[Clock] = None,
        readiness_interval: float = DEFAULT_READINESS_INTERVAL,
    ):
        self.runtime = runtime or DockerRuntime()
        self.clock = clock or MonotonicClock()
        self.readiness_interval = readiness_interval

    async def start(
        self,
        spec: ServiceSpec,
        network_mode: NetworkMode = NetworkMode.ISOLATED,
        timeout: Optional[float] = None,
    ) -> Handle:
        """
        Launch `spec` and block until all its readiness conditions hold.

        Without `timeout` the wait is unbounded. With it, the instance is
        stopped and ReadinessTimeout raised once `timeout` seconds have
        passed since the instance started.

        Raises:
            LaunchFailure: If the runtime cannot create the instance, or the
                instance exits before it is ready (e.g. a host port conflict)
            ReadinessTimeout: If `timeout` elapsed first
        """
        logger.info("Starting %s (%s network)", spec.image, network_mode.value)
        instance = await self.runtime.launch(spec, network_mode)
        started_at = self.clock.now()

        try:
            await self._wait_ready(spec, instance, started_at, timeout)
            port_map = await self._resolve_ports(spec, network_mode, instance)
        except BaseException:
            await self._discard(instance)
            raise

        handle = Handle(self, spec, network_mode, instance, port_map, started_at)
        logger.info(
            "%s is ready after %.1fs, ports: %s",
            handle.name,
            self.clock.now() - started_at,
            dict(port_map),
        )
        return handle

    def get_mapped_port(self, handle: Handle, port: int) -> int:
        return handle.get_mapped_port(port)

    async def _wait_ready(
        self,
        spec: ServiceSpec,
        instance: Instance,
        started_at: float,
        timeout: Optional[float],
    ) -> None:
        streams = streams_needed(spec.readiness)

        async def check() -> Optional[bool]:
            output = {s: await self.runtime.stream_output(instance, s) for s in streams}
            waiting = pending(spec.readiness, output, started_at, self.clock.now())
            if not waiting:
                return True
            if not await self.runtime.is_running(instance):
                raise LaunchFailure(
                    spec.image,
                    f"exited before it was ready. Output tail: {await self._output_tail(instance)!r}",
                )
            logger.debug("%s not ready, waiting for %s", instance.name, waiting[0])
            return None

        try:
            await poll_until(
                check,
                interval=self.readiness_interval,
                deadline=timeout,
                clock=self.clock,
                description=f"{spec.image} readiness",
            )
        except ConvergenceTimeout as e:
            raise ReadinessTimeout(
                f"{spec.image} was not ready within {timeout}s",
                elapsed=e.elapsed,
                deadline=timeout,
            ) from e

    async def _output_tail(self, instance: Instance, size: int = 500) -> str:
        output = b"".join([await self.runtime.stream_output(instance, s) for s in Stream])
        return output.decode("utf-8", errors="replace")[-size:]

    async def _resolve_ports(
        self,
        spec: ServiceSpec,
        network_mode: NetworkMode,
        instance: Instance,
    ) -> dict[int, int]:
        if network_mode is NetworkMode.HOST:
            return {port: port for port in spec.exposed_ports}
        return {port: await self.runtime.mapped_port(instance, port) for port in spec.exposed_ports}

    async def _discard(self, instance: Instance) -> None:
        try:
            await self.runtime.stop(instance)
        except Exception as e:
            logger.warning("Failed to clean up %s: %s", instance.name, e)


ServiceRequest = Union[ServiceSpec, tuple[ServiceSpec, NetworkMode]]


class ServiceOrchestrator:
    """
    Owns every handle started for one scenario.

    Usage:
        async with ServiceOrchestrator(manager) as services:
            ggx, cosmos = await services.start_parallel(
                (ggx_spec, NetworkMode.HOST), (cosmos_spec, NetworkMode.HOST)
            )
            hermes = await services.start(hermes_spec, NetworkMode.HOST)
            # ... run scenario ...
    """

    def __init__(self, manager: Optional[LifecycleManager] = None):
        self.manager = manager or LifecycleManager()
        self._handles: list[Handle] = []

    @property
    def handles(self) -> list[Handle]:
        return list(self._handles)

    async def start(
        self,
        spec: ServiceSpec,
        network_mode: NetworkMode = NetworkMode.ISOLATED,
        timeout: Optional[float] = None,
    ) -> Handle:
        handle = await self.manager.start(spec, network_mode, timeout)
        self._handles.append(handle)
        return handle

    async def start_parallel(
        self,
        *requests: ServiceRequest,
        timeout: Optional[float] = None,
    ) -> list[Handle]:
        """
        Start independent services concurrently.

        The first failure cancels the starts still in progress and is
        re-raised. Cancelling the call itself (e.g. an outer
        `asyncio.wait_for`) does the same. Handles that did become ready are
        kept for `stop_all` either way.
        """
        if not requests:
            return []
        normalized = [r if isinstance(r, tuple) else (r, NetworkMode.ISOLATED) for r in requests]
        tasks = [
            asyncio.ensure_future(self.manager.start(spec, mode, timeout))
            for spec, mode in normalized
        ]

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in tasks:
                if task in done and not task.cancelled() and task.exception() is not None:
                    raise task.exception()
        finally:
            await self._settle(tasks)

        return [task.result() for task in tasks]

    async def _settle(self, tasks: list["asyncio.Future[Handle]"]) -> None:
        """Cancel unfinished starts, wait for them to clean up, adopt ready handles"""
        for task in tasks:
            if not task.done():
                task.cancel()
        # cancelled starts discard their own instances
        await asyncio.gather(*tasks, return_exceptions=True)
        for task in tasks:
            if not task.cancelled() and task.exception() is None:
                self._handles.append(task.result())

    async def stop_all(self) -> None:
        """Stop every owned handle, most recently started first"""
        while self._handles:
            handle = self._handles.pop()
            try:
                await handle.stop()
            except Exception as e:
                logger.warning("Failed to stop %s: %s", handle.name, e)

    async def __aenter__(self) -> "ServiceOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop_all()
