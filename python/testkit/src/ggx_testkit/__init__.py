"""
ggx-testkit - End-to-end test harness for the GGX chain

Starts containerized nodes, waits for them to become ready and drives
cross-system scenarios through chain and REST clients.
"""

__version__ = "0.1.0"

from ggx_testkit.exceptions import (
    ConfigurationError,
    ConnectionLost,
    ConvergenceTimeout,
    CosmosApiError,
    DenomTraceNotFound,
    EventTimeout,
    ExecTimeout,
    FinalizationTimeout,
    LaunchError,
    LaunchFailure,
    PortNotExposed,
    QueryError,
    ReadinessTimeout,
    TestkitError,
    TimeoutFailure,
    TransactionError,
    TxExecutionFailure,
    UnsupportedNetworkError,
)
from ggx_testkit.lifecycle import Handle, LifecycleManager, ServiceOrchestrator
from ggx_testkit.polling import Clock, MonotonicClock, abort_on_error, poll_until, retry_on_error
from ggx_testkit.runtime import ContainerRuntime, DockerRuntime
from ggx_testkit.types import (
    FixedDelay,
    ImageRef,
    LogPattern,
    NetworkMode,
    ReadinessCondition,
    ServiceSpec,
    Stream,
)

__all__ = [
    "__version__",
    # Types
    "ImageRef",
    "LogPattern",
    "FixedDelay",
    "ReadinessCondition",
    "ServiceSpec",
    "NetworkMode",
    "Stream",
    # Lifecycle
    "ContainerRuntime",
    "DockerRuntime",
    "Handle",
    "LifecycleManager",
    "ServiceOrchestrator",
    # Polling
    "Clock",
    "MonotonicClock",
    "poll_until",
    "retry_on_error",
    "abort_on_error",
    # Exceptions
    "TestkitError",
    "LaunchError",
    "LaunchFailure",
    "TimeoutFailure",
    "ConvergenceTimeout",
    "ReadinessTimeout",
    "ExecTimeout",
    "EventTimeout",
    "FinalizationTimeout",
    "ConfigurationError",
    "PortNotExposed",
    "UnsupportedNetworkError",
    "TransactionError",
    "TxExecutionFailure",
    "ConnectionLost",
    "QueryError",
    "DenomTraceNotFound",
    "CosmosApiError",
]
