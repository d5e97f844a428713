"""
GGX parachain node
"""

import logging
from typing import Any, Optional, Sequence

from ggx_testkit.chain.facade import RPC_PORT, ChainFacade
from ggx_testkit.clients.assets import AssetsClient
from ggx_testkit.clients.dex import DexClient
from ggx_testkit.config import NetworkConfig, NetworkProfile
from ggx_testkit.lifecycle import Handle
from ggx_testkit.types import LogPattern, NetworkMode, ServiceSpec

logger = logging.getLogger(__name__)

DEFAULT_ARGS = (
    "--rpc-external",
    "--rpc-methods=unsafe",
    "--unsafe-rpc-external",
    "--dev",
    f"--rpc-port={RPC_PORT}",
    # unused features
    "--no-prometheus",
    "--no-telemetry",
)

RPC_READY = LogPattern.on_stderr("Running JSON-RPC server: addr=")


def ggx_node_spec(
    profile: Optional[NetworkProfile] = None,
    extra_args: Sequence[str] = (),
    container_name: Optional[str] = None,
) -> ServiceSpec:
    """
    Spec for a dev GGX node.

    Args:
        profile: Network profile pinning the image; brooklyn by default
        extra_args: Appended to the default node arguments, e.g. ["--alice"]
        container_name: Fixed container name
    """
    profile = profile or NetworkConfig.get_profile(NetworkConfig.DEFAULT_NETWORK)
    return ServiceSpec(
        identity=profile.ggx_node,
        arguments=DEFAULT_ARGS + tuple(extra_args),
        exposed_ports=(RPC_PORT,),
        readiness=(RPC_READY,),
        container_name=container_name,
    )


class GgxNode:
    """A running GGX node with a connected ChainFacade and pallet clients"""

    def __init__(self, handle: Handle, facade: ChainFacade):
        self.handle = handle
        self.facade = facade
        self.assets = AssetsClient(facade)
        self.dex = DexClient(facade)

    @property
    def rpc_port(self) -> int:
        return self.handle.get_mapped_port(RPC_PORT)

    @property
    def ws_url(self) -> str:
        return self.handle.url(RPC_PORT, scheme="ws")

    async def close(self) -> None:
        """Close the RPC session; the handle stays owned by whoever started it"""
        await self.facade.close()

    async def __aenter__(self) -> "GgxNode":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


async def start_ggx(
    services: Any,
    extra_args: Sequence[str] = (),
    network_mode: NetworkMode = NetworkMode.HOST,
    profile: Optional[NetworkProfile] = None,
    container_name: Optional[str] = None,
    timeout: Optional[float] = None,
    **facade_kwargs: Any,
) -> GgxNode:
    """
    Start a GGX node and connect to it.

    Args:
        services: LifecycleManager or ServiceOrchestrator to start it with
        facade_kwargs: Passed to ChainFacade (clock, poll_interval, ...)
    """
    logger.info("Starting GGX")
    spec = ggx_node_spec(profile, extra_args, container_name)
    handle = await services.start(spec, network_mode, timeout)
    try:
        facade = await ChainFacade.connect(handle, **facade_kwargs)
    except BaseException:
        await handle.stop()
        raise
    return GgxNode(handle, facade)
