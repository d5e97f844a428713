"""
Cosmos (ignite "earth") node and its REST API client
"""

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from ggx_testkit.config import COSMOS_IMAGE
from ggx_testkit.exceptions import CosmosApiError, QueryError
from ggx_testkit.lifecycle import Handle
from ggx_testkit.types import FixedDelay, LogPattern, NetworkMode, ServiceSpec

logger = logging.getLogger(__name__)

TENDERMINT_RPC_PORT = 26657
API_PORT = 1317
GRPC_PORT = 9095
GRPC_WEB_PORT = 9096
FAUCET_PORT = 4500

CHAIN_ID = "earth-0"


def cosmos_spec(container_name: Optional[str] = None) -> ServiceSpec:
    return ServiceSpec(
        identity=COSMOS_IMAGE,
        arguments=("ignite", "chain", "serve", "-f", "-v", "-c", "earth.yml"),
        exposed_ports=(TENDERMINT_RPC_PORT, API_PORT, GRPC_PORT, GRPC_WEB_PORT, FAUCET_PORT),
        readiness=(
            LogPattern.on_stderr("starting node with ABCI Tendermint in-process"),
            FixedDelay.seconds(10),
        ),
        container_name=container_name,
    )


class Balance(BaseModel):
    denom: str
    amount: Decimal


class BankBalances(BaseModel):
    """Response of /cosmos/bank/v1beta1/balances/{address}; pagination is ignored"""

    balances: list[Balance]

    def amount_of(self, denom: str) -> Optional[Decimal]:
        for balance in self.balances:
            if balance.denom == denom:
                return balance.amount
        return None


class ApiErrorBody(BaseModel):
    code: int
    message: str


class CosmosRestClient:
    """
    Client for the Cosmos SDK REST API.

    Usage:
        client = CosmosRestClient("http://127.0.0.1:1317")
        balances = await client.get_bank_balances("cosmos1...")
        await client.close()
    """

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def get_bank_balances(self, address: str) -> BankBalances:
        """
        Query all bank balances of `address`.

        Raises:
            CosmosApiError: If the API answered with a `{code, message}` body
            QueryError: If the body is neither balances nor an API error
        """
        client = await self._get_client()
        response = await client.get(f"/cosmos/bank/v1beta1/balances/{address}")
        body: Any = response.json()

        try:
            return BankBalances.model_validate(body)
        except ValidationError:
            pass

        try:
            error = ApiErrorBody.model_validate(body)
        except ValidationError as e:
            raise QueryError(f"Unknown response from the API: {body!r}") from e
        raise CosmosApiError(error.code, error.message)

    async def balance_of(self, address: str, denom: str) -> Optional[Decimal]:
        balances = await self.get_bank_balances(address)
        return balances.amount_of(denom)


class CosmosNode:
    """A running cosmos node with a REST client bound to its API port"""

    def __init__(self, handle: Handle):
        self.handle = handle
        self.rest = CosmosRestClient(handle.url(API_PORT))

    async def get_bank_balances(self, address: str) -> BankBalances:
        return await self.rest.get_bank_balances(address)

    async def close(self) -> None:
        await self.rest.close()


async def start_cosmos(
    services: Any,
    network_mode: NetworkMode = NetworkMode.HOST,
    container_name: Optional[str] = "cosmos",
    timeout: Optional[float] = None,
) -> CosmosNode:
    logger.info("Starting Cosmos")
    handle = await services.start(cosmos_spec(container_name), network_mode, timeout)
    return CosmosNode(handle)
