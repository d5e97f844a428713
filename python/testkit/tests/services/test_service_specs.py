"""
Tests for service specs and start helpers
"""

import pytest
from fakes import FakeSession

from ggx_testkit.config import NetworkConfig
from ggx_testkit.lifecycle import ServiceOrchestrator
from ggx_testkit.services.bitcoin import bitcoin_spec
from ggx_testkit.services.cosmos import cosmos_spec
from ggx_testkit.services.ggx import ggx_node_spec, start_ggx
from ggx_testkit.services.hermes import HermesRelayer, bootstrap_script, hermes_spec, start_hermes
from ggx_testkit.services.interbtc import interbtc_clients_spec, vault_args
from ggx_testkit.types import FixedDelay, LogPattern, NetworkMode, Stream


def test_ggx_node_spec_defaults():
    spec = ggx_node_spec(extra_args=["--alice"])

    assert spec.image == "public.ecr.aws/k7w7q6c4/ggxchain-node:brooklyn-392a5d29"
    assert spec.arguments == (
        "--rpc-external",
        "--rpc-methods=unsafe",
        "--unsafe-rpc-external",
        "--dev",
        "--rpc-port=9944",
        "--no-prometheus",
        "--no-telemetry",
        "--alice",
    )
    assert spec.exposed_ports == (9944,)
    assert spec.readiness == (LogPattern.on_stderr("Running JSON-RPC server: addr="),)


def test_ggx_node_spec_for_sydney():
    spec = ggx_node_spec(NetworkConfig.get_profile("sydney"), container_name="alice")
    assert spec.identity.tag == "sydney-392a5d29"
    assert spec.container_name == "alice"


def test_cosmos_spec():
    spec = cosmos_spec()

    assert spec.image == "ggxdocker/cosmos:v1"
    assert spec.arguments == ("ignite", "chain", "serve", "-f", "-v", "-c", "earth.yml")
    assert spec.exposed_ports == (26657, 1317, 9095, 9096, 4500)
    assert spec.readiness == (
        LogPattern.on_stderr("starting node with ABCI Tendermint in-process"),
        FixedDelay.seconds(10),
    )


def test_hermes_idle_spec_is_ready_at_once():
    spec = hermes_spec()

    assert spec.image == "ggxdocker/hermes:v1"
    assert spec.arguments == ("bash", "-c", "while sleep 60; do echo ALIVE; done")
    assert spec.readiness == ()


def test_hermes_bootstrap_spec():
    script = bootstrap_script()
    spec = hermes_spec(script)

    assert spec.arguments == ("bash", "-ce", script)
    assert spec.readiness == (LogPattern.on_stdout("STARTING HERMES"), FixedDelay.seconds(10))
    lines = script.splitlines()
    # keys and channel come before the relayer starts
    assert lines.index("echo STARTING HERMES") < lines.index("hermes --config config/cos_sub.toml start")
    assert (
        "hermes --config config/cos_sub.toml keys add --chain earth-0 "
        "--key-file config/alice_cosmos_key.json --key-name alice"
    ) in lines
    assert any("create channel --a-chain earth-0 --b-chain rococo-0" in line for line in lines)


def test_bitcoin_spec():
    spec = bitcoin_spec(rpc_user="u", rpc_password="p")

    assert spec.exposed_ports == (18443,)
    assert "-regtest=1" in spec.arguments
    assert "-rpcuser=u" in spec.arguments
    assert spec.readiness == (LogPattern.on_stdout("init message: Done loading"),)


def test_interbtc_default_readiness_is_tool_agnostic():
    spec = interbtc_clients_spec(["oracle"])

    assert spec.identity == NetworkConfig.get_profile("brooklyn").interbtc_clients
    assert spec.readiness == (FixedDelay.seconds(2),)


def test_vault_spec():
    args = vault_args("ws://127.0.0.1:9944", "http://127.0.0.1:18443", "u", "p")
    spec = interbtc_clients_spec(
        args, wait_for=[LogPattern.on_stderr("vault::relay: Initializing at height")]
    )

    assert args[0] == "vault"
    assert "--btc-parachain-url=ws://127.0.0.1:9944" in args
    assert args[args.index("--bitcoin-rpc-user") + 1] == "u"
    assert args[-1] == "--keyring=alice"
    assert spec.readiness[-1] == LogPattern.on_stderr("vault::relay: Initializing at height")


@pytest.mark.asyncio
async def test_start_ggx_connects_facade(manager, runtime, clock):
    image = str(NetworkConfig.get_profile("brooklyn").ggx_node)
    runtime.schedule(image, 1, Stream.STDERR, "Running JSON-RPC server: addr=0.0.0.0:9944")
    session = FakeSession(clock)
    urls = []

    class Sessions:
        @classmethod
        async def connect(cls, url):
            urls.append(url)
            return session

    async with ServiceOrchestrator(manager) as services:
        node = await start_ggx(services, ["--alice"], session_cls=Sessions, clock=clock)

        assert urls == ["ws://127.0.0.1:9944"]
        assert node.ws_url == "ws://127.0.0.1:9944"
        assert node.rpc_port == 9944
        assert node.assets.facade is node.facade
        assert node.dex.facade is node.facade
        assert runtime.launched[0][1] is NetworkMode.HOST
        await node.close()

    assert session.closed
    assert runtime.stopped == [node.handle.instance]


@pytest.mark.asyncio
async def test_start_ggx_stops_handle_when_connect_fails(manager, runtime, clock):
    image = str(NetworkConfig.get_profile("brooklyn").ggx_node)
    runtime.schedule(image, 0, Stream.STDERR, "Running JSON-RPC server: addr=")

    class Unreachable:
        @classmethod
        async def connect(cls, url):
            raise ConnectionRefusedError(url)

    with pytest.raises(ConnectionRefusedError):
        await start_ggx(manager, session_cls=Unreachable)

    assert len(runtime.stopped) == 1


@pytest.mark.asyncio
async def test_hermes_relayer_commands(manager, runtime, clock):
    runtime.schedule("ggxdocker/hermes:v1", 0, Stream.STDOUT, "STARTING HERMES\n")
    runtime.on_exec("hermes", ["SUCCESS [...]\n"])

    relayer = await start_hermes(manager, timeout=60)
    output = await relayer.ft_transfer("earth-0", "rococo-0", 999000, "ERT", number_msgs=1)

    assert "SUCCESS" in output
    assert clock.now() == 10.0
    assert relayer.command("tx", "ft-transfer")[:3] == ["hermes", "--config", "config/cos_sub.toml"]
    assert relayer.start_command() == ["hermes", "--config", "config/cos_sub.toml", "start"]


@pytest.mark.asyncio
async def test_hermes_relayer_builds_ft_transfer(manager):
    handle = await manager.start(hermes_spec())
    calls = []

    async def exec_and_wait(command, output_match, timeout):
        calls.append((command, output_match, timeout))
        return "SUCCESS"

    handle.exec_and_wait = exec_and_wait
    relayer = HermesRelayer(handle)

    await relayer.ft_transfer("rococo-0", "earth-0", 500000, "ibc/972368C2")
    await relayer.keys_add("earth-0", "config/alice_cosmos_key.json", "alice")
    await relayer.create_channel()

    transfer, keys, channel = calls
    assert transfer == (
        [
            "hermes",
            "--config",
            "config/cos_sub.toml",
            "tx",
            "ft-transfer",
            "--timeout-height-offset",
            "1000",
            "--dst-chain",
            "earth-0",
            "--src-chain",
            "rococo-0",
            "--src-port",
            "transfer",
            "--src-channel",
            "channel-0",
            "--amount",
            "500000",
            "--denom",
            "ibc/972368C2",
        ],
        "SUCCESS",
        60.0,
    )
    assert keys[0][3:] == [
        "keys",
        "add",
        "--chain",
        "earth-0",
        "--key-file",
        "config/alice_cosmos_key.json",
        "--key-name",
        "alice",
    ]
    assert channel[0][-2:] == ["--new-client-connection", "--yes"]
