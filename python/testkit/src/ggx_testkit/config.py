"""
ggx-testkit network configuration
Centralized image pins for every supported GGX network
"""

from typing import Dict

from pydantic import BaseModel

from ggx_testkit.exceptions import UnsupportedNetworkError
from ggx_testkit.types import ImageRef


class NetworkProfile(BaseModel):
    """Image versions to run against one GGX network"""

    name: str
    ggx_node: ImageRef
    interbtc_clients: ImageRef

    class Config:
        frozen = True


GGX_NODE_IMAGE = "public.ecr.aws/k7w7q6c4/ggxchain-node"
INTERBTC_CLIENTS_IMAGE = "ggxdocker/interbtc-clients"

COSMOS_IMAGE = ImageRef(repository="ggxdocker/cosmos", tag="v1")
HERMES_IMAGE = ImageRef(repository="ggxdocker/hermes", tag="v1")
BITCOIN_IMAGE = ImageRef(repository="ruimarinho/bitcoin-core", tag="24")


class NetworkConfig:
    """Network profiles keyed by name"""

    BROOKLYN = "brooklyn"
    SYDNEY = "sydney"

    DEFAULT_NETWORK = BROOKLYN

    PROFILES: Dict[str, NetworkProfile] = {
        "brooklyn": NetworkProfile(
            name="brooklyn",
            ggx_node=ImageRef(repository=GGX_NODE_IMAGE, tag="brooklyn-392a5d29"),
            interbtc_clients=ImageRef(
                repository=INTERBTC_CLIENTS_IMAGE,
                tag="brooklyn-022a15afe51ae2e9c0ef18bc7f587bc6166865b7",
            ),
        ),
        "sydney": NetworkProfile(
            name="sydney",
            ggx_node=ImageRef(repository=GGX_NODE_IMAGE, tag="sydney-392a5d29"),
            interbtc_clients=ImageRef(
                repository=INTERBTC_CLIENTS_IMAGE,
                tag="sydney-022a15afe51ae2e9c0ef18bc7f587bc6166865b7",
            ),
        ),
    }

    @classmethod
    def get_profile(cls, network: str) -> NetworkProfile:
        """Get the image profile for a network

        Args:
            network: Network name (e.g., "brooklyn", "sydney")

        Returns:
            NetworkProfile

        Raises:
            UnsupportedNetworkError: If network is not supported
        """
        profile = cls.PROFILES.get(network.lower())
        if profile is None:
            raise UnsupportedNetworkError(
                f"Unsupported network: {network}. Expected one of: {', '.join(cls.PROFILES)}"
            )
        return profile

    @classmethod
    def supported_networks(cls) -> list[str]:
        return list(cls.PROFILES)
