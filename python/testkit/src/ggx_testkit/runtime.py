"""
Container runtime collaborator.

`ContainerRuntime` is the narrow surface the lifecycle manager needs from a
sandbox runtime. `DockerRuntime` backs it with the docker SDK; every
blocking docker call runs on a worker thread.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import docker
import docker.errors

from ggx_testkit.exceptions import LaunchFailure
from ggx_testkit.types import NetworkMode, ServiceSpec, Stream

logger = logging.getLogger(__name__)

CONTAINER_STOP_TIMEOUT = 10
EXITED_STATES = ("exited", "dead")


@dataclass
class Instance:
    """Reference to one launched instance"""

    id: str
    name: str
    image: str
    native: Any = field(default=None, repr=False)

    @property
    def short_id(self) -> str:
        return self.id[:12]


class ExecOutput:
    """
    Output of a one-shot command running inside an instance.

    Chunks from stdout and stderr are appended as they arrive; `text()`
    always returns everything received so far.
    """

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self.exit_code: Optional[int] = None
        self.error: Optional[BaseException] = None

    def feed(self, data: bytes) -> None:
        with self._lock:
            self._chunks.append(data)

    def finish(self, exit_code: Optional[int] = None, error: Optional[BaseException] = None) -> None:
        self.exit_code = exit_code
        self.error = error
        self._finished.set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def text(self) -> str:
        with self._lock:
            data = b"".join(self._chunks)
        return data.decode("utf-8", errors="replace")


class ContainerRuntime(ABC):
    """Abstract sandbox runtime"""

    @abstractmethod
    async def launch(self, spec: ServiceSpec, network_mode: NetworkMode) -> Instance:
        """
        Create and start an instance.

        Raises:
            LaunchFailure: If the runtime cannot create the instance
        """
        pass

    @abstractmethod
    async def mapped_port(self, instance: Instance, port: int) -> int:
        """Host port published for container `port` (isolated mode only)"""
        pass

    @abstractmethod
    async def stream_output(self, instance: Instance, stream: Stream) -> bytes:
        """Everything written to `stream` since the instance started"""
        pass

    @abstractmethod
    async def is_running(self, instance: Instance) -> bool:
        """False once the instance has exited"""
        pass

    @abstractmethod
    async def exec(self, instance: Instance, command: Sequence[str]) -> ExecOutput:
        """Start `command` inside the instance and return its live output"""
        pass

    @abstractmethod
    async def stop(self, instance: Instance) -> None:
        """Stop the instance and release its resources"""
        pass


class DockerRuntime(ContainerRuntime):
    """
    Docker-backed runtime.

    Usage:
        runtime = DockerRuntime()
        instance = await runtime.launch(spec, NetworkMode.ISOLATED)
        port = await runtime.mapped_port(instance, 9944)
        await runtime.stop(instance)
    """

    def __init__(self, client: Optional[Any] = None, stop_timeout: int = CONTAINER_STOP_TIMEOUT):
        self._client = client
        self._stop_timeout = stop_timeout

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except docker.errors.DockerException as e:
                raise LaunchFailure(
                    "docker",
                    f"cannot connect to Docker ({e}). Make sure Docker is running "
                    "and you have permission to access it.",
                ) from e
        return self._client

    async def launch(self, spec: ServiceSpec, network_mode: NetworkMode) -> Instance:
        return await asyncio.to_thread(self._launch, spec, network_mode)

    async def mapped_port(self, instance: Instance, port: int) -> int:
        return await asyncio.to_thread(self._mapped_port, instance, port)

    async def stream_output(self, instance: Instance, stream: Stream) -> bytes:
        return await asyncio.to_thread(self._logs, instance, stream)

    async def is_running(self, instance: Instance) -> bool:
        return await asyncio.to_thread(self._is_running, instance)

    async def exec(self, instance: Instance, command: Sequence[str]) -> ExecOutput:
        return await asyncio.to_thread(self._exec, instance, list(command))

    async def stop(self, instance: Instance) -> None:
        await asyncio.to_thread(self._stop, instance)

    def _remove_stale(self, name: str) -> None:
        """Remove a leftover container holding `name` from an earlier run"""
        try:
            existing = self.client.containers.get(name)
        except docker.errors.NotFound:
            return
        logger.warning("Removing stale container %s (%s)", name, existing.short_id)
        existing.remove(force=True)

    def _launch(self, spec: ServiceSpec, network_mode: NetworkMode) -> Instance:
        run_config: dict[str, Any] = {
            "image": spec.image,
            "detach": True,
        }
        if spec.arguments:
            run_config["command"] = list(spec.arguments)
        if spec.environment:
            run_config["environment"] = dict(spec.environment)
        if spec.container_name:
            run_config["name"] = spec.container_name
        if network_mode is NetworkMode.HOST:
            run_config["network_mode"] = "host"
        else:
            # None lets docker pick a free host port
            run_config["ports"] = {f"{port}/tcp": None for port in spec.exposed_ports}

        try:
            if spec.container_name:
                self._remove_stale(spec.container_name)
            container = self.client.containers.run(**run_config)
        except docker.errors.ImageNotFound as e:
            raise LaunchFailure(spec.image, f"image not found: {e}") from e
        except docker.errors.APIError as e:
            raise LaunchFailure(spec.image, str(e)) from e

        logger.info(
            "Launched %s as %s (ID: %s, network=%s)",
            spec.image,
            container.name,
            container.short_id,
            network_mode.value,
        )
        return Instance(id=container.id, name=container.name, image=spec.image, native=container)

    def _mapped_port(self, instance: Instance, port: int) -> int:
        container = instance.native
        container.reload()
        try:
            bindings = container.attrs["NetworkSettings"]["Ports"].get(f"{port}/tcp") or []
        except (KeyError, TypeError, AttributeError) as e:
            raise LaunchFailure(instance.image, f"cannot read port bindings: {e}") from e

        for binding in bindings:
            host_port = binding.get("HostPort")
            if host_port:
                return int(host_port)
        raise LaunchFailure(instance.image, f"port {port} has no host binding")

    def _logs(self, instance: Instance, stream: Stream) -> bytes:
        return instance.native.logs(
            stdout=stream is Stream.STDOUT,
            stderr=stream is Stream.STDERR,
        )

    def _is_running(self, instance: Instance) -> bool:
        container = instance.native
        try:
            container.reload()
        except docker.errors.NotFound:
            return False
        return container.status not in EXITED_STATES

    def _exec(self, instance: Instance, command: list[str]) -> ExecOutput:
        output = ExecOutput()
        result = instance.native.exec_run(command, stream=True, demux=True)
        thread = threading.Thread(
            target=self._drain,
            args=(result.output, output),
            name=f"exec-{instance.name}",
            daemon=True,
        )
        thread.start()
        logger.debug("Exec in %s: %s", instance.name, " ".join(command))
        return output

    @staticmethod
    def _drain(chunks: Any, output: ExecOutput) -> None:
        try:
            for stdout, stderr in chunks:
                if stdout:
                    output.feed(stdout)
                if stderr:
                    output.feed(stderr)
        except Exception as e:
            logger.warning("Exec output stream broke: %s", e)
            output.finish(error=e)
            return
        output.finish()

    def _stop(self, instance: Instance) -> None:
        container = instance.native
        try:
            container.stop(timeout=self._stop_timeout)
            container.remove(force=True)
        except docker.errors.NotFound:
            logger.debug("Container %s already removed", instance.name)
            return
        logger.info("Stopped %s (%s)", instance.name, instance.short_id)
