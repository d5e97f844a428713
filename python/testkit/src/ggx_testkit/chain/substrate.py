"""
substrate-interface backed chain session.

SubstrateInterface is synchronous and its websocket is not safe to share
between threads, so every query holds `_lock` on a worker thread and each
submitted extrinsic is watched on its own short-lived connection.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

import xxhash
from substrateinterface import Keypair, SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException
from websocket import WebSocketException

from ggx_testkit.chain.session import ChainSession, TxWatcher
from ggx_testkit.chain.types import Call, EventSet, RawEvent, StorageKey
from ggx_testkit.exceptions import ConnectionLost, ModuleError, TransactionError

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (WebSocketException, ConnectionError, OSError)

KEYS_PAGE_SIZE = 1000


def dev_keypair(name: str) -> Keypair:
    """Well-known dev account keypair, e.g. dev_keypair("alice")"""
    return Keypair.create_from_uri(f"//{name.capitalize()}")


def twox128(data: bytes) -> bytes:
    """Substrate twox128: xxh64 with seeds 0 and 1, little endian, concatenated"""
    return b"".join(
        xxhash.xxh64(data, seed=seed).intdigest().to_bytes(8, "little") for seed in (0, 1)
    )


def storage_prefix(pallet: str, item: str) -> bytes:
    return twox128(pallet.encode()) + twox128(item.encode())


def _raw_event(record: Any) -> RawEvent:
    value = record.value if hasattr(record, "value") else record
    event = value.get("event", value)
    return RawEvent(
        pallet=event.get("module_id"),
        name=event.get("event_id"),
        attributes=event.get("attributes"),
    )


def _plain(obj: Any) -> Any:
    return getattr(obj, "value", obj)


class SubstrateWatcher(TxWatcher):
    """Finalization watcher backed by a worker-thread task"""

    def __init__(self, task: "asyncio.Task[EventSet]", call: Call):
        self._task = task
        self.call = call

    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> EventSet:
        return await self._task

    def cancel(self) -> None:
        self._task.cancel()


class SubstrateSession(ChainSession):
    """
    Usage:
        session = await SubstrateSession.connect("ws://127.0.0.1:9944")
        events = await session.latest_events()
        await session.close()
    """

    def __init__(self, url: str, substrate: SubstrateInterface):
        self.url = url
        self._substrate = substrate
        self._lock = threading.Lock()

    @classmethod
    async def connect(cls, url: str) -> "SubstrateSession":
        try:
            substrate = await asyncio.to_thread(SubstrateInterface, url=url)
        except TRANSPORT_ERRORS as e:
            raise ConnectionLost(f"Cannot connect to {url}: {e}") from e
        logger.info(
            "Connected to %s (%s %s)",
            url,
            substrate.chain,
            substrate.runtime_version,
        )
        return cls(url, substrate)

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        def locked() -> Any:
            with self._lock:
                return fn(*args, **kwargs)

        try:
            return await asyncio.to_thread(locked)
        except TRANSPORT_ERRORS as e:
            raise ConnectionLost(f"Connection to {self.url} lost: {e}") from e

    async def submit_and_watch(self, signer: Keypair, call: Call) -> TxWatcher:
        task = asyncio.create_task(asyncio.to_thread(self._submit_blocking, signer, call))
        logger.debug("Submitted %s signed by %s", call, signer.ss58_address)
        return SubstrateWatcher(task, call)

    def _submit_blocking(self, signer: Keypair, call: Call) -> EventSet:
        try:
            substrate = SubstrateInterface(url=self.url)
        except TRANSPORT_ERRORS as e:
            raise ConnectionLost(f"Connection to {self.url} lost: {e}") from e

        try:
            extrinsic = substrate.create_signed_extrinsic(
                call=self._compose(substrate, call), keypair=signer
            )
            receipt = substrate.submit_extrinsic(
                extrinsic, wait_for_inclusion=True, wait_for_finalization=True
            )
            events = EventSet(
                [_raw_event(e) for e in receipt.triggered_events],
                block_hash=receipt.block_hash,
            )
            if not receipt.is_success:
                raise self._dispatch_error(substrate, receipt, events)
            return events
        except TRANSPORT_ERRORS as e:
            raise ConnectionLost(f"Connection to {self.url} lost: {e}") from e
        except SubstrateRequestException as e:
            raise TransactionError(f"{call} was rejected by the node: {e}") from e
        finally:
            substrate.close()

    def _compose(self, substrate: SubstrateInterface, call: Call) -> Any:
        params = {
            name: self._compose(substrate, value).value if isinstance(value, Call) else value
            for name, value in call.params.items()
        }
        return substrate.compose_call(
            call_module=call.pallet,
            call_function=call.function,
            call_params=params,
        )

    @staticmethod
    def _dispatch_error(substrate: SubstrateInterface, receipt: Any, events: EventSet) -> Exception:
        message = receipt.error_message or {}
        failed = events.named("System", "ExtrinsicFailed")
        dispatch_error: Any = None
        if failed:
            attributes = failed[0].attributes
            if isinstance(attributes, dict):
                dispatch_error = attributes.get("dispatch_error")
            elif isinstance(attributes, (list, tuple)) and attributes:
                dispatch_error = attributes[0]

        if isinstance(dispatch_error, dict) and "Module" in dispatch_error:
            module = dispatch_error["Module"]
            module_index = module[0] if isinstance(module, (list, tuple)) else module.get("index")
            pallet = "Unknown"
            for metadata_pallet in substrate.metadata.pallets:
                if metadata_pallet.value["index"] == module_index:
                    pallet = metadata_pallet.value["name"]
                    break
            docs = message.get("docs") or []
            return ModuleError(
                pallet,
                message.get("name", "Unknown"),
                " ".join(docs) if isinstance(docs, list) else str(docs),
            )

        return TransactionError(f"Extrinsic failed with an error: {message or dispatch_error}")

    async def latest_events(self) -> EventSet:
        def fetch() -> EventSet:
            block_hash = self._substrate.get_chain_finalised_head()
            records = self._substrate.get_events(block_hash=block_hash)
            return EventSet([_raw_event(r) for r in records], block_hash=block_hash)

        return await self._call(fetch)

    async def query_storage(self, key: StorageKey) -> Any:
        result = await self._call(
            self._substrate.query,
            key.pallet,
            key.item,
            list(key.params) or None,
        )
        return _plain(result)

    async def query_map(
        self, pallet: str, item: str, params: Optional[list[Any]] = None
    ) -> list[tuple[Any, Any]]:
        def fetch() -> list[tuple[Any, Any]]:
            result = self._substrate.query_map(pallet, item, params=params or None, page_size=100)
            return [(_plain(k), _plain(v)) for k, v in result]

        return await self._call(fetch)

    async def storage_keys(self, pallet: str, item: str) -> list[bytes]:
        prefix = "0x" + storage_prefix(pallet, item).hex()

        def fetch() -> list[bytes]:
            keys: list[str] = []
            start_key: Optional[str] = None
            while True:
                params: list[Any] = [prefix, KEYS_PAGE_SIZE]
                if start_key:
                    params.append(start_key)
                page = self._substrate.rpc_request("state_getKeysPaged", params)["result"] or []
                keys.extend(page)
                if len(page) < KEYS_PAGE_SIZE:
                    break
                start_key = page[-1]
            return [bytes.fromhex(k[2:]) for k in keys]

        return await self._call(fetch)

    async def close(self) -> None:
        await asyncio.to_thread(self._substrate.close)
