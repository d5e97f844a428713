"""
Chain RPC session interface
"""

from abc import ABC, abstractmethod
from typing import Any

from ggx_testkit.chain.types import Call, EventSet, StorageKey


class TxWatcher(ABC):
    """Tracks one submitted extrinsic until finalization"""

    @abstractmethod
    def done(self) -> bool:
        """True once the extrinsic is finalized or has failed"""
        pass

    @abstractmethod
    async def result(self) -> EventSet:
        """
        Events emitted by the finalized extrinsic.

        Raises:
            ModuleError: If the runtime rejected the extrinsic
            ConnectionLost: If the transport dropped while watching
        """
        pass

    def cancel(self) -> None:
        """Stop watching; a late outcome is discarded"""
        pass


class ChainSession(ABC):
    """
    Connected RPC session to one chain node.

    Implementations raise ConnectionLost for transport failures and never
    reconnect on their own.
    """

    @classmethod
    @abstractmethod
    async def connect(cls, url: str) -> "ChainSession":
        """Open a session to the node at `url`"""
        pass

    @abstractmethod
    async def submit_and_watch(self, signer: Any, call: Call) -> TxWatcher:
        """Sign and submit `call`, returning a watcher for its finalization"""
        pass

    @abstractmethod
    async def latest_events(self) -> EventSet:
        """Events of the most recent finalized block"""
        pass

    @abstractmethod
    async def query_storage(self, key: StorageKey) -> Any:
        """Decoded value at `key` in the latest state, None if absent"""
        pass

    @abstractmethod
    async def query_map(self, pallet: str, item: str, params: list[Any] | None = None) -> list[tuple[Any, Any]]:
        """All (key, value) pairs of a storage map"""
        pass

    @abstractmethod
    async def storage_keys(self, pallet: str, item: str) -> list[bytes]:
        """Raw storage keys under a storage item prefix"""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
