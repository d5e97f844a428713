"""
BTC relay convergence helpers

Waits for the parachain's relayed Bitcoin view to catch up with a regtest
bitcoind, and for Bitcoin transactions to gain confirmations.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from ggx_testkit.chain.facade import ChainFacade
from ggx_testkit.chain.types import Call, EventSet, StorageKey
from ggx_testkit.polling import Clock, poll_until

if TYPE_CHECKING:
    from ggx_testkit.services.bitcoin import BitcoinRpc

logger = logging.getLogger(__name__)

BTC_RELAY_PALLET = "BTCRelay"
BEST_BLOCK_ITEM = "BestBlock"

# FixedU128 with 18 decimals
FIXED_POINT_ONE = 10**18


def display_hash_to_le(block_hash: str) -> str:
    """bitcoind prints hashes byte-reversed; convert to raw little-endian upper hex"""
    return bytes.fromhex(block_hash)[::-1].hex().upper()


def _hex_content(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("content")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex().upper()
    if isinstance(value, (list, tuple)):
        return bytes(value).hex().upper()
    text = str(value)
    return (text[2:] if text.startswith("0x") else text).upper()


async def best_relayed_block_hash(facade: ChainFacade) -> Optional[str]:
    """Best Bitcoin block known to the parachain, raw little-endian upper hex"""
    value = await facade.query_storage(StorageKey(BTC_RELAY_PALLET, BEST_BLOCK_ITEM))
    return _hex_content(value)


async def wait_for_btc_tree_sync(
    bitcoin: "BitcoinRpc",
    facade: ChainFacade,
    timeout: float = 60.0,
) -> str:
    """
    Block until the parachain's best relayed block equals bitcoind's best block.

    Returns:
        The common best block hash (raw little-endian upper hex)

    Raises:
        ConvergenceTimeout: If the two views did not converge in time
    """

    async def check() -> Optional[str]:
        btc_best = display_hash_to_le(await bitcoin.get_best_block_hash())
        relayed = await best_relayed_block_hash(facade)
        if relayed is None:
            logger.debug("BTC relay is not initialized yet")
            return None
        logger.debug(
            "Waiting for the parachain to ingest the last BTC block... Current: %s. BTC Best: %s",
            relayed,
            btc_best,
        )
        return relayed if relayed == btc_best else None

    best = await facade.wait_until(check, deadline=timeout, description="BTC tree sync")
    logger.info("Parachain and Bitcoin best blocks are in sync")
    return best


async def wait_until_btc_tx_finalized(
    bitcoin: "BitcoinRpc",
    txid: str,
    confirmations: int,
    timeout: float = 60.0,
    interval: float = 1.0,
    clock: Optional[Clock] = None,
) -> dict[str, Any]:
    """Block until `txid` has at least `confirmations`; returns gettransaction output"""

    async def check() -> Optional[dict[str, Any]]:
        tx = await bitcoin.get_transaction(txid)
        if tx.get("confirmations", 0) >= confirmations:
            return tx
        return None

    tx = await poll_until(
        check,
        interval=interval,
        deadline=timeout,
        clock=clock,
        description=f"{confirmations} confirmations of BTC tx {txid}",
    )
    logger.info(
        "BTC tx %s is finalized with %s confirmations (block %s:%s)",
        txid,
        tx.get("confirmations"),
        tx.get("blockheight"),
        tx.get("blockhash"),
    )
    return tx


async def set_exchange_rate(
    facade: ChainFacade,
    signer: Any,
    token: str = "GGXT",
    rate: int = FIXED_POINT_ONE,
) -> EventSet:
    """
    Feed an oracle exchange rate for `token`.

    Normally the oracle client does this; scenarios without one feed the
    value directly.
    """
    call = Call(
        "Oracle",
        "feed_values",
        {"values": [({"ExchangeRate": {"Token": token}}, rate)]},
    )
    return await facade.submit_and_await_finalized(signer, call)
