"""
interBTC clients image (vault, oracle, faucet)
"""

import logging
from typing import Any, Optional, Sequence

from ggx_testkit.config import NetworkConfig, NetworkProfile
from ggx_testkit.lifecycle import Handle
from ggx_testkit.types import FixedDelay, LogPattern, NetworkMode, ReadinessCondition, ServiceSpec

logger = logging.getLogger(__name__)

# the same image runs every client, so the default wait is tool-agnostic
DEFAULT_READINESS = (FixedDelay.seconds(2),)

VAULT_READY = LogPattern.on_stderr("vault::relay: Initializing at height")


def interbtc_clients_spec(
    args: Sequence[str],
    profile: Optional[NetworkProfile] = None,
    wait_for: Sequence[ReadinessCondition] = (),
    container_name: Optional[str] = None,
) -> ServiceSpec:
    """
    Spec for one interBTC client.

    `wait_for` is appended to the default 2s delay.
    """
    profile = profile or NetworkConfig.get_profile(NetworkConfig.DEFAULT_NETWORK)
    return ServiceSpec(
        identity=profile.interbtc_clients,
        arguments=tuple(args),
        readiness=DEFAULT_READINESS + tuple(wait_for),
        container_name=container_name,
    )


def vault_args(
    parachain_url: str,
    bitcoin_rpc_url: str,
    bitcoin_rpc_user: str,
    bitcoin_rpc_password: str,
    keyring: str = "alice",
    auto_register: str = "GGXT=500000000",
) -> list[str]:
    return [
        "vault",
        "--no-prometheus",
        "--restart-policy=never",
        f"--btc-parachain-url={parachain_url}",
        f"--auto-register={auto_register}",
        "--bitcoin-connection-timeout-ms=300",
        f"--bitcoin-rpc-url={bitcoin_rpc_url}",
        "--bitcoin-rpc-user",
        bitcoin_rpc_user,
        "--bitcoin-rpc-pass",
        bitcoin_rpc_password,
        f"--keyring={keyring}",
    ]


async def start_vault(
    services: Any,
    parachain_url: str,
    bitcoin_rpc_url: str,
    bitcoin_rpc_user: str,
    bitcoin_rpc_password: str,
    profile: Optional[NetworkProfile] = None,
    network_mode: NetworkMode = NetworkMode.HOST,
    container_name: Optional[str] = "vault",
    timeout: Optional[float] = None,
) -> Handle:
    """Start a vault client; ready once it starts relaying BTC headers"""
    logger.info("Starting Vault")
    spec = interbtc_clients_spec(
        vault_args(parachain_url, bitcoin_rpc_url, bitcoin_rpc_user, bitcoin_rpc_password),
        profile=profile,
        wait_for=(VAULT_READY,),
        container_name=container_name,
    )
    return await services.start(spec, network_mode, timeout)
