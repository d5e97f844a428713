"""
Issue pallet operations

Bridges regtest BTC into the parachain: request an issue against a vault,
pay the vault's Bitcoin address and let the vault execute the issue once
the payment is confirmed and relayed.
"""

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel

from ggx_testkit.chain.facade import ChainFacade
from ggx_testkit.chain.types import Call, ChainEvent, StorageKey
from ggx_testkit.clients.accounts import account_id
from ggx_testkit.clients.btc_relay import wait_until_btc_tx_finalized
from ggx_testkit.exceptions import QueryError, TransactionError

if TYPE_CHECKING:
    from ggx_testkit.services.bitcoin import BitcoinRpc

logger = logging.getLogger(__name__)

PALLET = "Issue"
TOKENS_PALLET = "Tokens"

COLLATERAL_TOKEN = "GGXT"
WRAPPED_TOKEN = "KBTC"

SATOSHI_PER_BTC = 10**8

# scriptPubKey templates (prefix, suffix) around the address hash
SCRIPT_TEMPLATES = {
    "P2PKH": ("76a914", "88ac"),
    "P2SH": ("a914", "87"),
    "P2WPKHv0": ("0014", ""),
    "P2WSHv0": ("0020", ""),
    "P2TRv1": ("5120", ""),
}


def currency(token: str) -> dict[str, str]:
    return {"Token": token}


def vault_id(
    vault: Any,
    collateral: str = COLLATERAL_TOKEN,
    wrapped: str = WRAPPED_TOKEN,
) -> dict[str, Any]:
    return {
        "account_id": account_id(vault),
        "currencies": {"collateral": currency(collateral), "wrapped": currency(wrapped)},
    }


class TokenAccount(BaseModel):
    """Tokens.Accounts storage value"""

    free: int
    reserved: int = 0
    frozen: int = 0

    class Config:
        extra = "allow"


class RequestIssue(ChainEvent):
    pallet = "Issue"
    name = "RequestIssue"

    issue_id: Any
    requester: str
    amount: int
    fee: int = 0
    griefing_amount: int = 0
    griefing_currency: Any = None
    vault_id: Any = None
    vault_address: Any = None
    vault_public_key: Any = None


class ExecuteIssue(ChainEvent):
    pallet = "Issue"
    name = "ExecuteIssue"

    issue_id: Any
    requester: str
    vault_id: Any = None
    amount: int = 0
    fee: int = 0


def script_pub_key(vault_address: Any) -> str:
    """
    scriptPubKey hex for a decoded BtcAddress, e.g. {"P2WPKHv0": "0x..."}.

    Raises:
        QueryError: If the address variant is unknown
    """
    # newtype wrappers decode as single-entry dicts too
    while isinstance(vault_address, dict) and len(vault_address) == 1:
        variant, value = next(iter(vault_address.items()))
        if variant in SCRIPT_TEMPLATES:
            prefix, suffix = SCRIPT_TEMPLATES[variant]
            if isinstance(value, (bytes, bytearray, list, tuple)):
                payload = bytes(value).hex()
            else:
                payload = str(value).removeprefix("0x")
            return f"{prefix}{payload.lower()}{suffix}"
        vault_address = value
    raise QueryError(f"Unsupported vault address: {vault_address!r}")


async def vault_btc_address(bitcoin: "BitcoinRpc", vault_address: Any) -> str:
    """Regtest address for a vault address, as bitcoind's decodescript renders it"""
    decoded = await bitcoin.decode_script(script_pub_key(vault_address))
    address = decoded.get("address")
    if not address:
        raise QueryError(f"bitcoind could not derive an address from {decoded.get('asm')!r}")
    return address


async def request_issue(
    facade: ChainFacade,
    requester: Any,
    amount: int,
    vault: Any,
    griefing_currency: str = COLLATERAL_TOKEN,
) -> RequestIssue:
    """
    Request `amount` satoshi of wrapped BTC from `vault`.

    Raises:
        TransactionError: If the finalized extrinsic carried no RequestIssue
    """
    call = Call(
        PALLET,
        "request_issue",
        {
            "amount": amount,
            "vault_id": vault_id(vault),
            "griefing_currency": currency(griefing_currency),
        },
    )
    events = await facade.submit_and_await_finalized(requester, call)
    request = events.find_first(RequestIssue)
    if request is None:
        raise TransactionError(f"{call} was finalized without a RequestIssue event")

    logger.info("Issue %s requested by %s for %s sat", request.issue_id, request.requester, amount)
    return request


async def get_vault(facade: ChainFacade, vault: Any) -> Optional[dict[str, Any]]:
    """VaultRegistry entry of `vault`, or None while it is not registered"""
    return await facade.query_storage(StorageKey("VaultRegistry", "Vaults", [vault_id(vault)]))


async def get_token_balance(facade: ChainFacade, owner: Any, token: str) -> Optional[TokenAccount]:
    value = await facade.query_storage(
        StorageKey(TOKENS_PALLET, "Accounts", [account_id(owner), currency(token)])
    )
    if value is None:
        return None
    return TokenAccount.model_validate(value)


async def deposit_btc(
    wallet: "BitcoinRpc",
    facade: ChainFacade,
    requester: Any,
    vault: Any,
    amount: int,
    miner_address: str,
    confirmations: int = 6,
    timeout: float = 60.0,
) -> RequestIssue:
    """
    Request an issue and pay the vault from `wallet`.

    Mines 10 blocks on top of the payment to `miner_address` and returns
    once it has `confirmations`. Executing the issue is up to the vault.
    """
    logger.info("Depositing %s sat of BTC to GGX", amount)
    request = await request_issue(facade, requester, amount, vault)
    address = await vault_btc_address(wallet, request.vault_address)

    txid = await wallet.send_to_address(
        address,
        Decimal(amount) / SATOSHI_PER_BTC,
        "deposit",
        conf_target=confirmations,
    )
    # let the payment reach the mempool before mining
    await facade.clock.sleep(2)
    await wallet.generate_to_address(10, miner_address)

    await wait_until_btc_tx_finalized(
        wallet, txid, confirmations, timeout=timeout, clock=facade.clock
    )
    return request
