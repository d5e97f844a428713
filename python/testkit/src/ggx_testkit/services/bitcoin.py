"""
Regtest bitcoind and a minimal JSON-RPC client
"""

import itertools
import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from ggx_testkit.config import BITCOIN_IMAGE
from ggx_testkit.exceptions import BitcoinRpcError
from ggx_testkit.lifecycle import Handle
from ggx_testkit.types import LogPattern, NetworkMode, ServiceSpec

logger = logging.getLogger(__name__)

RPC_PORT = 18443
DEFAULT_RPC_USER = "ggx"
DEFAULT_RPC_PASSWORD = "ggx"


def bitcoin_spec(
    rpc_user: str = DEFAULT_RPC_USER,
    rpc_password: str = DEFAULT_RPC_PASSWORD,
    container_name: Optional[str] = None,
) -> ServiceSpec:
    return ServiceSpec(
        identity=BITCOIN_IMAGE,
        arguments=(
            "-regtest=1",
            "-server=1",
            "-txindex=1",
            "-printtoconsole=1",
            "-fallbackfee=0.0002",
            "-rpcbind=0.0.0.0",
            "-rpcallowip=0.0.0.0/0",
            f"-rpcport={RPC_PORT}",
            f"-rpcuser={rpc_user}",
            f"-rpcpassword={rpc_password}",
        ),
        exposed_ports=(RPC_PORT,),
        readiness=(LogPattern.on_stdout("init message: Done loading"),),
        container_name=container_name,
    )


class BitcoinRpc:
    """
    bitcoind JSON-RPC client.

    Usage:
        rpc = BitcoinRpc("http://127.0.0.1:18443", "ggx", "ggx")
        await rpc.create_wallet("test")
        wallet = rpc.for_wallet("test")
        address = await wallet.get_new_address("test")
        await wallet.generate_to_address(101, address)
    """

    _ids = itertools.count(1)

    def __init__(
        self,
        base_url: str,
        user: str = DEFAULT_RPC_USER,
        password: str = DEFAULT_RPC_PASSWORD,
        wallet: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = (user, password)
        self._timeout = timeout
        self.wallet = wallet
        self._http_client: httpx.AsyncClient | None = None

    def for_wallet(self, wallet: str) -> "BitcoinRpc":
        """Client scoped to a loaded wallet (`/wallet/{name}`)"""
        return BitcoinRpc(self._base_url, *self._auth, wallet=wallet, timeout=self._timeout)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                auth=self._auth,
                timeout=self._timeout,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def call(self, method: str, *params: Any) -> Any:
        """
        Invoke an RPC method.

        Raises:
            BitcoinRpcError: If bitcoind returned an error object
        """
        client = await self._get_client()
        path = f"/wallet/{self.wallet}" if self.wallet else "/"
        request = {"jsonrpc": "1.0", "id": next(self._ids), "method": method, "params": list(params)}

        response = await client.post(path, json=request)
        try:
            body = response.json()
        except ValueError:
            response.raise_for_status()
            raise

        error = body.get("error")
        if error:
            raise BitcoinRpcError(error.get("code", -1), error.get("message", ""))
        return body.get("result")

    async def get_best_block_hash(self) -> str:
        return await self.call("getbestblockhash")

    async def get_block_count(self) -> int:
        return await self.call("getblockcount")

    async def create_wallet(self, name: str) -> dict[str, Any]:
        return await self.call("createwallet", name)

    async def get_new_address(self, label: str = "") -> str:
        return await self.call("getnewaddress", label)

    async def generate_to_address(self, blocks: int, address: str) -> list[str]:
        logger.info("Mining %s blocks to %s", blocks, address)
        return await self.call("generatetoaddress", blocks, address)

    async def get_balance(self) -> Decimal:
        return Decimal(str(await self.call("getbalance")))

    async def send_to_address(
        self,
        address: str,
        amount_btc: Decimal,
        comment: str = "",
        conf_target: Optional[int] = None,
    ) -> str:
        params: list[Any] = [address, float(amount_btc), comment]
        if conf_target is not None:
            # comment_to, subtractfeefromamount, replaceable, conf_target
            params += ["", False, False, conf_target]
        return await self.call("sendtoaddress", *params)

    async def get_transaction(self, txid: str) -> dict[str, Any]:
        return await self.call("gettransaction", txid)

    async def decode_script(self, script_hex: str) -> dict[str, Any]:
        return await self.call("decodescript", script_hex)


class BitcoinNode:
    """A running regtest bitcoind with an RPC client"""

    def __init__(
        self,
        handle: Handle,
        rpc_user: str = DEFAULT_RPC_USER,
        rpc_password: str = DEFAULT_RPC_PASSWORD,
    ):
        self.handle = handle
        self.rpc_user = rpc_user
        self.rpc_password = rpc_password
        self.rpc = BitcoinRpc(handle.url(RPC_PORT), rpc_user, rpc_password)

    @property
    def rpc_url(self) -> str:
        return self.handle.url(RPC_PORT)

    async def close(self) -> None:
        await self.rpc.close()


async def start_bitcoin(
    services: Any,
    network_mode: NetworkMode = NetworkMode.HOST,
    container_name: Optional[str] = "bitcoin",
    timeout: Optional[float] = None,
) -> BitcoinNode:
    logger.info("Starting Bitcoin")
    spec = bitcoin_spec(container_name=container_name)
    handle = await services.start(spec, network_mode, timeout)
    return BitcoinNode(handle)
