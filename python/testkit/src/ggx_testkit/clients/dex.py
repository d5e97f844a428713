"""
Dex pallet operations
"""

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ggx_testkit.chain.facade import ChainFacade
from ggx_testkit.chain.types import Call, ChainEvent, EventSet, StorageKey
from ggx_testkit.clients.accounts import account_id

logger = logging.getLogger(__name__)

PALLET = "Dex"

ORDER_EVENT_TIMEOUT = 60.0
NEVER_EXPIRES = 2**32 - 1


class OrderType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TokenInfo(BaseModel):
    """Dex.UserTokenInfoes storage value"""

    amount: int
    reserved: int = 0

    class Config:
        extra = "allow"


class Order(BaseModel):
    """Dex.Orders storage value"""

    counter: int
    address: str
    pair: tuple[int, int]
    expiration_block: int
    order_type: OrderType
    amount_offered: int
    # field name as spelled by the runtime
    amount_requested: int = Field(alias="amout_requested")

    class Config:
        populate_by_name = True
        extra = "allow"


class OrderCreated(ChainEvent):
    pallet = "Dex"
    name = "OrderCreated"

    order_index: int
    order: Optional[Order] = None


class OrderCanceled(ChainEvent):
    pallet = "Dex"
    name = "OrderCanceled"

    order_index: int


class OrderTaken(ChainEvent):
    pallet = "Dex"
    name = "OrderTaken"

    account: str
    order_index: int
    order: Optional[Order] = None


class DexClient:
    """Convenience wrapper around Dex pallet calls"""

    def __init__(self, facade: ChainFacade):
        self.facade = facade

    async def deposit(self, owner: Any, asset_id: int, amount: int) -> EventSet:
        call = Call(PALLET, "deposit", {"asset_id": asset_id, "amount": amount})
        return await self.facade.submit_and_await_finalized(owner, call)

    async def withdraw(self, owner: Any, asset_id: int, amount: int) -> EventSet:
        call = Call(PALLET, "withdraw", {"asset_id": asset_id, "amount": amount})
        return await self.facade.submit_and_await_finalized(owner, call)

    async def deposit_native(self, owner: Any, amount: int) -> EventSet:
        call = Call(PALLET, "deposit_native", {"amount": amount})
        return await self.facade.submit_and_await_finalized(owner, call)

    async def withdraw_native(self, owner: Any, amount: int) -> EventSet:
        call = Call(PALLET, "withdraw_native", {"amount": amount})
        return await self.facade.submit_and_await_finalized(owner, call)

    async def balance_of(self, owner: Any, asset_id: int) -> Optional[TokenInfo]:
        value = await self.facade.query_storage(
            StorageKey(PALLET, "UserTokenInfoes", [account_id(owner), asset_id])
        )
        if value is None:
            return None
        return TokenInfo.model_validate(value)

    async def get_orders(self) -> list[Order]:
        entries = await self.facade.query_map(PALLET, "Orders")
        return [Order.model_validate(value) for _, value in entries]

    async def make_order(
        self,
        user: Any,
        asset_1: int,
        asset_2: int,
        offered_amount: int,
        requested_amount: int,
        order_type: OrderType,
        expiration_block: int = NEVER_EXPIRES,
        event_timeout: float = ORDER_EVENT_TIMEOUT,
    ) -> int:
        """
        Place an order and return its index.

        The index comes from the OrderCreated event of the finalized
        extrinsic, or from the latest finalized block if the extrinsic's
        own events did not carry it.
        """
        call = Call(
            PALLET,
            "make_order",
            {
                "asset_id_1": asset_1,
                "asset_id_2": asset_2,
                "offered_amount": offered_amount,
                "requested_amount": requested_amount,
                "order_type": OrderType(order_type).value,
                "expiration_block": expiration_block,
            },
        )
        events = await self.facade.submit_and_await_finalized(user, call)
        created = events.find_first(OrderCreated)
        if created is None:
            created = await self.facade.wait_for_event(OrderCreated, deadline=event_timeout)

        logger.info("Order %s created by %s", created.order_index, account_id(user))
        return created.order_index

    async def cancel_order(self, user: Any, order_index: int) -> EventSet:
        call = Call(PALLET, "cancel_order", {"order_index": order_index})
        return await self.facade.submit_and_await_finalized(user, call)

    async def take_order(self, user: Any, order_index: int) -> EventSet:
        call = Call(PALLET, "take_order", {"order_index": order_index})
        return await self.facade.submit_and_await_finalized(user, call)
