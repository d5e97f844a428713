"""
Pallet clients built on ChainFacade
"""

from ggx_testkit.clients.accounts import account_id, sudo
from ggx_testkit.clients.assets import AssetAccount, AssetsClient
from ggx_testkit.clients.dex import (
    DexClient,
    Order,
    OrderCanceled,
    OrderCreated,
    OrderTaken,
    OrderType,
    TokenInfo,
)
from ggx_testkit.clients.issue import ExecuteIssue, RequestIssue, TokenAccount

__all__ = [
    "account_id",
    "sudo",
    "AssetAccount",
    "AssetsClient",
    "DexClient",
    "Order",
    "OrderCanceled",
    "OrderCreated",
    "OrderTaken",
    "OrderType",
    "TokenInfo",
    "ExecuteIssue",
    "RequestIssue",
    "TokenAccount",
]
