"""
Assets pallet operations
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel

from ggx_testkit.chain.facade import ChainFacade
from ggx_testkit.chain.types import Call, EventSet, StorageKey
from ggx_testkit.clients.accounts import account_id, sudo

logger = logging.getLogger(__name__)

PALLET = "Assets"


class AssetAccount(BaseModel):
    """Assets.Account storage value"""

    balance: int

    class Config:
        extra = "allow"


class AssetsClient:
    """Convenience wrapper around Assets pallet calls"""

    def __init__(self, facade: ChainFacade, sudoer: Optional[Any] = None):
        self.facade = facade
        self._sudoer = sudoer

    def _default_sudoer(self) -> Any:
        if self._sudoer is None:
            from ggx_testkit.chain.substrate import dev_keypair

            self._sudoer = dev_keypair("alice")
        return self._sudoer

    async def force_create(
        self,
        owner: Any,
        asset_id: int,
        min_balance: int,
        is_sufficient: bool = True,
        sudoer: Optional[Any] = None,
    ) -> EventSet:
        """Create an asset owned by `owner` via sudo"""
        logger.info("GGX: Creating asset with id=%s, balance=%s", asset_id, min_balance)
        call = Call(
            PALLET,
            "force_create",
            {
                "id": asset_id,
                "owner": account_id(owner),
                "is_sufficient": is_sufficient,
                "min_balance": min_balance,
            },
        )
        return await self.facade.submit_and_await_finalized(
            sudoer or self._default_sudoer(), sudo(call)
        )

    async def mint(
        self,
        owner: Any,
        asset_id: int,
        amount: int,
        issuer: Optional[Any] = None,
    ) -> EventSet:
        """Mint `amount` of `asset_id` to `owner`; the issuer defaults to the sudo account"""
        logger.info("Minting asset %s amount %s", asset_id, amount)
        call = Call(
            PALLET,
            "mint",
            {"id": asset_id, "beneficiary": account_id(owner), "amount": amount},
        )
        return await self.facade.submit_and_await_finalized(issuer or self._default_sudoer(), call)

    async def get_balance(self, owner: Any, asset_id: int) -> Optional[AssetAccount]:
        value = await self.facade.query_storage(
            StorageKey(PALLET, "Account", [asset_id, account_id(owner)])
        )
        if value is None:
            return None
        return AssetAccount.model_validate(value)

    async def wait_for_balance(
        self, owner: Any, asset_id: int, expected: int, deadline: float
    ) -> AssetAccount:
        """
        Block until `owner` holds exactly `expected` of `asset_id`.

        Raises:
            ConvergenceTimeout: If the balance did not settle within `deadline`
        """

        async def settled() -> Optional[AssetAccount]:
            account = await self.get_balance(owner, asset_id)
            current = None if account is None else account.balance
            logger.debug(
                "Asset %s balance of %s: %s, want %s", asset_id, account_id(owner), current, expected
            )
            return account if current == expected else None

        return await self.facade.wait_until(
            settled,
            deadline=deadline,
            description=f"asset {asset_id} balance {expected} of {account_id(owner)}",
        )
