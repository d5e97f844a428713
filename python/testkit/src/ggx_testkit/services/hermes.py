"""
Hermes IBC relayer between the cosmos "earth" chain and the GGX "rococo" chain
"""

import logging
from typing import Any, Optional, Sequence

from ggx_testkit.config import HERMES_IMAGE
from ggx_testkit.lifecycle import Handle
from ggx_testkit.types import FixedDelay, LogPattern, NetworkMode, ReadinessCondition, ServiceSpec

logger = logging.getLogger(__name__)

CONFIG_PATH = "config/cos_sub.toml"

COSMOS_CHAIN = "earth-0"
GGX_CHAIN = "rococo-0"
TRANSFER_PORT = "transfer"
CHANNEL = "channel-0"

SUCCESS = "SUCCESS"
COMMAND_TIMEOUT = 60.0
# relayer start includes key import and channel creation
START_TIMEOUT = 300.0

STARTED_MARKER = "STARTING HERMES"

IDLE_ARGS = ("bash", "-c", "while sleep 60; do echo ALIVE; done")


def bootstrap_script(
    config_path: str = CONFIG_PATH,
    cosmos_key: tuple[str, str] = ("config/alice_cosmos_key.json", "alice"),
    ggx_key: tuple[str, str] = ("config/bob_substrate_key.json", "Bob"),
) -> str:
    """
    Shell script that imports relayer keys, opens a transfer channel and
    starts relaying. Prints STARTING HERMES right before `hermes start`.
    """
    hermes = f"hermes --config {config_path}"
    return "\n".join(
        [
            "echo ADDING KEYS",
            f"{hermes} keys add --chain {COSMOS_CHAIN} --key-file {cosmos_key[0]} --key-name {cosmos_key[1]}",
            f"{hermes} keys add --chain {GGX_CHAIN} --key-file {ggx_key[0]} --key-name {ggx_key[1]}",
            "",
            "echo CREATING CHANNEL",
            f"{hermes} create channel --a-chain {COSMOS_CHAIN} --b-chain {GGX_CHAIN} "
            f"--a-port {TRANSFER_PORT} --b-port {TRANSFER_PORT} --new-client-connection --yes",
            "",
            "sleep 5",
            "",
            f"echo {STARTED_MARKER}",
            f"{hermes} start",
            "",
        ]
    )


def hermes_spec(
    script: Optional[str] = None,
    wait_for: Sequence[ReadinessCondition] = (),
    container_name: Optional[str] = None,
) -> ServiceSpec:
    """
    Spec for the relayer image.

    Without `script` the container just idles and is ready at once; commands
    are then run through HermesRelayer. With a script it runs under
    `bash -ce` and, unless `wait_for` says otherwise, is ready 10s after
    printing STARTING HERMES.
    """
    if script is None:
        return ServiceSpec(
            identity=HERMES_IMAGE,
            arguments=IDLE_ARGS,
            readiness=tuple(wait_for),
            container_name=container_name,
        )

    readiness = tuple(wait_for) or (LogPattern.on_stdout(STARTED_MARKER), FixedDelay.seconds(10))
    return ServiceSpec(
        identity=HERMES_IMAGE,
        arguments=("bash", "-ce", script),
        readiness=readiness,
        container_name=container_name,
    )


class HermesRelayer:
    """
    Runs hermes CLI commands inside a relayer instance.

    Each command is considered successful once SUCCESS shows up on its
    stdout or stderr.
    """

    def __init__(
        self,
        handle: Handle,
        config_path: str = CONFIG_PATH,
        timeout: float = COMMAND_TIMEOUT,
    ):
        self.handle = handle
        self.config_path = config_path
        self.timeout = timeout

    def command(self, *args: str) -> list[str]:
        return ["hermes", "--config", self.config_path, *args]

    async def run(self, *args: str, timeout: Optional[float] = None) -> str:
        cmd = self.command(*args)
        logger.info("hermes %s", " ".join(args))
        return await self.handle.exec_and_wait(
            cmd, SUCCESS, self.timeout if timeout is None else timeout
        )

    async def keys_add(self, chain: str, key_file: str, key_name: str) -> str:
        return await self.run(
            "keys", "add", "--chain", chain, "--key-file", key_file, "--key-name", key_name
        )

    async def create_channel(
        self,
        a_chain: str = COSMOS_CHAIN,
        b_chain: str = GGX_CHAIN,
        port: str = TRANSFER_PORT,
        timeout: Optional[float] = None,
    ) -> str:
        return await self.run(
            "create",
            "channel",
            "--a-chain",
            a_chain,
            "--b-chain",
            b_chain,
            "--a-port",
            port,
            "--b-port",
            port,
            "--new-client-connection",
            "--yes",
            timeout=timeout,
        )

    def start_command(self) -> list[str]:
        return self.command("start")

    async def ft_transfer(
        self,
        src_chain: str,
        dst_chain: str,
        amount: int,
        denom: str,
        number_msgs: Optional[int] = None,
        src_channel: str = CHANNEL,
        timeout_height_offset: int = 1000,
    ) -> str:
        """Fungible token transfer over `src_channel`"""
        args = ["tx", "ft-transfer", "--timeout-height-offset", str(timeout_height_offset)]
        if number_msgs is not None:
            args += ["--number-msgs", str(number_msgs)]
        args += [
            "--dst-chain",
            dst_chain,
            "--src-chain",
            src_chain,
            "--src-port",
            TRANSFER_PORT,
            "--src-channel",
            src_channel,
            "--amount",
            str(amount),
            "--denom",
            denom,
        ]
        return await self.run(*args)


async def start_hermes(
    services: Any,
    script: Optional[str] = None,
    network_mode: NetworkMode = NetworkMode.HOST,
    container_name: Optional[str] = "hermes",
    timeout: Optional[float] = START_TIMEOUT,
) -> HermesRelayer:
    """Start the relayer; by default with the key/channel bootstrap script"""
    logger.info("Starting HERMES")
    spec = hermes_spec(script or bootstrap_script(), container_name=container_name)
    handle = await services.start(spec, network_mode, timeout)
    return HermesRelayer(handle)
