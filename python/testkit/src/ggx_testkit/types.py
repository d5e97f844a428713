"""
Type definitions for service launch contracts
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class Stream(str, Enum):
    """Output stream of an instance"""

    STDOUT = "stdout"
    STDERR = "stderr"


class NetworkMode(str, Enum):
    """How an instance is attached to the network"""

    # ports are mapped dynamically by the runtime
    ISOLATED = "isolated"
    # instance shares the host network, ports are used as declared
    HOST = "host"


class ImageRef(BaseModel):
    """Image identity: repository + version tag"""

    repository: str
    tag: str = "latest"

    class Config:
        frozen = True

    @field_validator("repository", "tag")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("image repository and tag must not be empty")
        return value

    @classmethod
    def parse(cls, reference: str) -> "ImageRef":
        """Parse "repository[:tag]", keeping registry ports in the repository"""
        repository, sep, tag = reference.rpartition(":")
        if not sep or "/" in tag:
            return cls(repository=reference)
        return cls(repository=repository, tag=tag)

    def __str__(self) -> str:
        return f"{self.repository}:{self.tag}"


class LogPattern(BaseModel):
    """Satisfied once `pattern` has appeared on `stream` since the instance started"""

    kind: Literal["log_pattern"] = "log_pattern"
    stream: Stream
    pattern: str

    class Config:
        frozen = True

    @field_validator("pattern")
    @classmethod
    def _pattern_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("log pattern must not be empty")
        return value

    @classmethod
    def on_stdout(cls, pattern: str) -> "LogPattern":
        return cls(stream=Stream.STDOUT, pattern=pattern)

    @classmethod
    def on_stderr(cls, pattern: str) -> "LogPattern":
        return cls(stream=Stream.STDERR, pattern=pattern)


class FixedDelay(BaseModel):
    """Satisfied once `duration` seconds have elapsed since the instance started"""

    kind: Literal["fixed_delay"] = "fixed_delay"
    duration: float = Field(ge=0)

    class Config:
        frozen = True

    @classmethod
    def seconds(cls, duration: float) -> "FixedDelay":
        return cls(duration=duration)


ReadinessCondition = Annotated[Union[LogPattern, FixedDelay], Field(discriminator="kind")]


class ServiceSpec(BaseModel):
    """
    Declarative description of one launchable instance.

    `arguments` are passed to the image entrypoint in order. `readiness`
    conditions must all hold before the instance is handed out.
    """

    identity: ImageRef
    arguments: tuple[str, ...] = ()
    exposed_ports: tuple[int, ...] = ()
    readiness: tuple[ReadinessCondition, ...] = ()
    container_name: str | None = None
    environment: dict[str, str] = Field(default_factory=dict)

    class Config:
        frozen = True

    @field_validator("exposed_ports")
    @classmethod
    def _ports_valid(cls, ports: tuple[int, ...]) -> tuple[int, ...]:
        for port in ports:
            if not 0 < port < 65536:
                raise ValueError(f"invalid port: {port}")
        return ports

    @model_validator(mode="after")
    def _ports_unique(self) -> "ServiceSpec":
        if len(set(self.exposed_ports)) != len(self.exposed_ports):
            raise ValueError(f"duplicate exposed ports for {self.identity}: {self.exposed_ports}")
        return self

    @property
    def image(self) -> str:
        return str(self.identity)

    def with_args(self, *extra: str) -> "ServiceSpec":
        """Copy of this spec with `extra` appended to the arguments"""
        return self.model_copy(update={"arguments": self.arguments + tuple(extra)})

    def with_readiness(self, *conditions: ReadinessCondition) -> "ServiceSpec":
        """Copy of this spec with `conditions` appended to the readiness list"""
        return self.model_copy(update={"readiness": self.readiness + tuple(conditions)})

    def with_name(self, container_name: str) -> "ServiceSpec":
        return self.model_copy(update={"container_name": container_name})
