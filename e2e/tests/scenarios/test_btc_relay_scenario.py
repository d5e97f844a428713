"""
E2E Tests: BTC relay

A vault relays regtest bitcoin headers into the parachain's BTC relay and
executes an issue paid with regtest BTC.
"""

import pytest

from ggx_testkit.clients.btc_relay import set_exchange_rate, wait_for_btc_tree_sync
from ggx_testkit.clients.issue import (
    WRAPPED_TOKEN,
    ExecuteIssue,
    deposit_btc,
    get_token_balance,
    get_vault,
)
from ggx_testkit.services import start_bitcoin, start_ggx, start_vault

pytestmark = pytest.mark.e2e

SYNC_TIMEOUT = 60
ISSUE_TIMEOUT = 60

# satoshi
ISSUE_AMOUNT = 500_000


class TestBtcRelay:
    """Parachain BTC tree follows bitcoind"""

    @pytest.mark.asyncio
    async def test_relay_follows_new_blocks(
        self, services, env_config, network_profile, facade_options, alice
    ):
        # Step 1: Bitcoin, then the parachain, then the vault
        bitcoin = await start_bitcoin(services, network_mode=env_config.mode)
        node = await start_ggx(
            services,
            ["--alice"],
            network_mode=env_config.mode,
            profile=network_profile,
            container_name="alice",
            **facade_options,
        )

        wallet = bitcoin.rpc.for_wallet("test")

        try:
            # no oracle client runs here, so the rate is fed directly
            await set_exchange_rate(node.facade, alice)

            await start_vault(
                services,
                node.ws_url,
                bitcoin.rpc_url,
                bitcoin.rpc_user,
                bitcoin.rpc_password,
                profile=network_profile,
                network_mode=env_config.mode,
            )

            # Step 2: Mine 50 BTC to a fresh wallet (coinbase matures after 100 blocks)
            await bitcoin.rpc.create_wallet("test")
            address = await wallet.get_new_address("test")
            await wallet.generate_to_address(101, address)
            assert await wallet.get_balance() == 50

            # Step 3: The vault initializes the relay with the best block
            await wait_for_btc_tree_sync(bitcoin.rpc, node.facade, timeout=SYNC_TIMEOUT)

            # Step 4: New blocks are relayed in batches
            await wallet.generate_to_address(20, address)
            await wait_for_btc_tree_sync(bitcoin.rpc, node.facade, timeout=SYNC_TIMEOUT)

            # Step 5: Alice requests KBTC from her own vault and pays it in BTC
            async def registered():
                return await get_vault(node.facade, alice)

            await node.facade.wait_until(
                registered, deadline=SYNC_TIMEOUT, description="vault registration"
            )
            await deposit_btc(wallet, node.facade, alice, alice, ISSUE_AMOUNT, address)
            await wait_for_btc_tree_sync(bitcoin.rpc, node.facade, timeout=SYNC_TIMEOUT)

            # Step 6: The vault executes the issue once the payment is relayed
            executed = await node.facade.wait_for_event(ExecuteIssue, deadline=ISSUE_TIMEOUT)
            print(f"Issue {executed.issue_id} executed for {executed.amount} sat")

            balance = await get_token_balance(node.facade, alice, WRAPPED_TOKEN)
            assert balance is not None
            # issue fee is deducted from the amount
            assert 0 < balance.free < ISSUE_AMOUNT
        finally:
            await wallet.close()
            await bitcoin.close()
            await node.close()
