"""
Launchable services: specs, start helpers and per-service clients
"""

from ggx_testkit.services.bitcoin import BitcoinNode, BitcoinRpc, bitcoin_spec, start_bitcoin
from ggx_testkit.services.cosmos import (
    BankBalances,
    CosmosNode,
    CosmosRestClient,
    cosmos_spec,
    start_cosmos,
)
from ggx_testkit.services.ggx import GgxNode, ggx_node_spec, start_ggx
from ggx_testkit.services.hermes import HermesRelayer, bootstrap_script, hermes_spec, start_hermes
from ggx_testkit.services.interbtc import interbtc_clients_spec, start_vault, vault_args

__all__ = [
    "BitcoinNode",
    "BitcoinRpc",
    "bitcoin_spec",
    "start_bitcoin",
    "BankBalances",
    "CosmosNode",
    "CosmosRestClient",
    "cosmos_spec",
    "start_cosmos",
    "GgxNode",
    "ggx_node_spec",
    "start_ggx",
    "HermesRelayer",
    "bootstrap_script",
    "hermes_spec",
    "start_hermes",
    "interbtc_clients_spec",
    "start_vault",
    "vault_args",
]
