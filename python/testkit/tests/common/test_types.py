"""
Tests for service launch contract types
"""

import pytest
from pydantic import TypeAdapter, ValidationError

from ggx_testkit.types import (
    FixedDelay,
    ImageRef,
    LogPattern,
    NetworkMode,
    ReadinessCondition,
    ServiceSpec,
    Stream,
)


def test_image_ref_str():
    ref = ImageRef(repository="ggxdocker/cosmos", tag="v1")
    assert str(ref) == "ggxdocker/cosmos:v1"


def test_image_ref_default_tag():
    assert ImageRef(repository="busybox").tag == "latest"


def test_image_ref_parse():
    ref = ImageRef.parse("public.ecr.aws/k7w7q6c4/ggxchain-node:brooklyn-392a5d29")
    assert ref.repository == "public.ecr.aws/k7w7q6c4/ggxchain-node"
    assert ref.tag == "brooklyn-392a5d29"


def test_image_ref_parse_keeps_registry_port():
    ref = ImageRef.parse("localhost:5000/ggx")
    assert ref.repository == "localhost:5000/ggx"
    assert ref.tag == "latest"


def test_image_ref_rejects_empty_repository():
    with pytest.raises(ValidationError):
        ImageRef(repository=" ")


def test_image_ref_is_frozen():
    ref = ImageRef(repository="busybox")
    with pytest.raises(ValidationError):
        ref.tag = "other"


def test_log_pattern_helpers():
    assert LogPattern.on_stdout("x").stream is Stream.STDOUT
    assert LogPattern.on_stderr("x").stream is Stream.STDERR


def test_log_pattern_rejects_empty_pattern():
    with pytest.raises(ValidationError):
        LogPattern.on_stdout("")


def test_fixed_delay_rejects_negative_duration():
    with pytest.raises(ValidationError):
        FixedDelay.seconds(-1)


def test_readiness_condition_discriminates_on_kind():
    adapter = TypeAdapter(ReadinessCondition)
    delay = adapter.validate_python({"kind": "fixed_delay", "duration": 10})
    pattern = adapter.validate_python({"kind": "log_pattern", "stream": "stderr", "pattern": "READY"})

    assert delay == FixedDelay.seconds(10)
    assert pattern == LogPattern.on_stderr("READY")


def test_service_spec_defaults():
    spec = ServiceSpec(identity=ImageRef(repository="busybox"))
    assert spec.arguments == ()
    assert spec.exposed_ports == ()
    assert spec.readiness == ()
    assert spec.container_name is None
    assert spec.image == "busybox:latest"


def test_service_spec_rejects_duplicate_ports():
    with pytest.raises(ValidationError, match="duplicate exposed ports"):
        ServiceSpec(identity=ImageRef(repository="busybox"), exposed_ports=(1317, 1317))


@pytest.mark.parametrize("port", [0, 65536, -1])
def test_service_spec_rejects_invalid_ports(port):
    with pytest.raises(ValidationError):
        ServiceSpec(identity=ImageRef(repository="busybox"), exposed_ports=(port,))


def test_service_spec_builders_return_copies(node_spec):
    extended = node_spec.with_args("--alice").with_readiness(FixedDelay.seconds(2)).with_name("alice")

    assert extended.arguments == ("--dev", "--alice")
    assert extended.readiness == (LogPattern.on_stderr("READY"), FixedDelay.seconds(2))
    assert extended.container_name == "alice"
    # original is untouched
    assert node_spec.arguments == ("--dev",)
    assert node_spec.container_name is None


def test_network_mode_values():
    assert NetworkMode("host") is NetworkMode.HOST
    assert NetworkMode("isolated") is NetworkMode.ISOLATED
