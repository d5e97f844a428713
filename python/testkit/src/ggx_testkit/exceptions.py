"""
ggx-testkit custom exception hierarchy
"""

from typing import Optional


class TestkitError(Exception):
    """ggx-testkit base exception"""

    # keep pytest from collecting this when imported into test modules
    __test__ = False


class LaunchError(TestkitError):
    """Instance launch-related error"""

    pass


class LaunchFailure(LaunchError):
    """The runtime could not create the instance (unknown image, port conflict, ...)"""

    def __init__(self, identity: str, reason: str):
        self.identity = identity
        self.reason = reason
        super().__init__(f"Failed to launch {identity}: {reason}")


class TimeoutFailure(TestkitError):
    """A bounded wait elapsed before its condition held"""

    def __init__(
        self,
        message: str,
        elapsed: Optional[float] = None,
        deadline: Optional[float] = None,
    ):
        self.elapsed = elapsed
        self.deadline = deadline
        super().__init__(message)


class ConvergenceTimeout(TimeoutFailure):
    """poll_until deadline elapsed"""

    pass


class ReadinessTimeout(TimeoutFailure):
    """Instance did not become ready within the caller's deadline"""

    pass


class ExecTimeout(TimeoutFailure):
    """Expected output never appeared on an exec'd command"""

    pass


class EventTimeout(TimeoutFailure):
    """Chain event was not observed in time"""

    pass


class FinalizationTimeout(TimeoutFailure):
    """Transaction was not finalized in time"""

    pass


class ConfigurationError(TestkitError):
    """Configuration-related error"""

    pass


class PortNotExposed(ConfigurationError):
    """Requested a port the service spec does not expose"""

    def __init__(self, identity: str, port: int):
        self.identity = identity
        self.port = port
        super().__init__(f"Port {port} is not exposed by {identity}")


class UnsupportedNetworkError(ConfigurationError):
    """Unsupported network profile"""

    pass


class TransactionError(TestkitError):
    """Transaction-related error"""

    pass


class ModuleError(TransactionError):
    """Raised by chain sessions when the runtime rejects an extrinsic with a module error"""

    def __init__(self, pallet: str, variant: str, docs: str = ""):
        self.pallet = pallet
        self.variant = variant
        self.docs = docs
        super().__init__(f"{pallet}::{variant}" + (f" ({docs})" if docs else ""))


class TxExecutionFailure(TransactionError):
    """The chain explicitly rejected an operation"""

    def __init__(self, pallet: str, variant: str, message: Optional[str] = None):
        self.pallet = pallet
        self.variant = variant
        super().__init__(message or f"Extrinsic failed with an error: {pallet}::{variant}")

    def __eq__(self, other):
        if not isinstance(other, TxExecutionFailure):
            return NotImplemented
        return (self.pallet, self.variant) == (other.pallet, other.variant)

    def __hash__(self):
        return hash((self.pallet, self.variant))


class ConnectionLost(TestkitError):
    """Transport to the chain dropped; the facade is unusable afterwards"""

    pass


class QueryError(TestkitError):
    """Query-related error"""

    pass


class DenomTraceNotFound(QueryError):
    """No `ibc/` denom could be recovered from storage keys"""

    pass


class CosmosApiError(QueryError):
    """Error body returned by the Cosmos REST API"""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"Error response from the API: code: {code}, message: {message}")


class BitcoinRpcError(QueryError):
    """Error returned by bitcoind JSON-RPC"""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"bitcoind error {code}: {message}")
