"""
Chain access: RPC session interface, typed events and the ChainFacade
"""

from ggx_testkit.chain.facade import ChainFacade, find_ibc_denom
from ggx_testkit.chain.session import ChainSession, TxWatcher
from ggx_testkit.chain.types import Call, ChainEvent, EventSet, RawEvent, StorageKey

__all__ = [
    "ChainFacade",
    "find_ibc_denom",
    "ChainSession",
    "TxWatcher",
    "Call",
    "ChainEvent",
    "EventSet",
    "RawEvent",
    "StorageKey",
]
