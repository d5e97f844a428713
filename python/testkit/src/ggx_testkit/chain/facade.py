"""
ChainFacade - session-scoped access to one running chain node
"""

import logging
from typing import Any, Optional, TypeVar

from ggx_testkit.chain.session import ChainSession, TxWatcher
from ggx_testkit.chain.types import Call, ChainEvent, EventSet, StorageKey
from ggx_testkit.exceptions import (
    ConnectionLost,
    ConvergenceTimeout,
    DenomTraceNotFound,
    EventTimeout,
    FinalizationTimeout,
    ModuleError,
    TxExecutionFailure,
)
from ggx_testkit.lifecycle import Handle
from ggx_testkit.polling import Check, Clock, MonotonicClock, poll_until, retry_on_error, until_true

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=ChainEvent)

RPC_PORT = 9944

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_FINALIZATION_TIMEOUT = 120.0
DEFAULT_EVENT_TIMEOUT = 60.0

DENOM_TRACE_PALLET = "Ics20Transfer"
DENOM_TRACE_ITEM = "DenomTrace"
IBC_DENOM_MARKER = b"ibc/"


def find_ibc_denom(raw: bytes) -> Optional[str]:
    """
    Recover an `ibc/{hash}` denom from a raw DenomTrace storage key.

    The key is `{hashed prefix bytes}ibc/{hex hash}`; everything from the
    first `ibc/` marker to the end is taken as the denom. This is a
    heuristic over the key layout, not a decoder.
    """
    pos = raw.find(IBC_DENOM_MARKER)
    if pos < 0:
        return None
    return raw[pos:].decode("utf-8")


class ChainFacade:
    """
    High-level operations over one chain node.

    Bound to a single Handle and a single RPC session for its lifetime. Once
    the connection drops, or the handle is stopped, every call raises
    ConnectionLost; there is no reconnect.

    Usage:
        facade = await ChainFacade.connect(handle)
        events = await facade.submit_and_await_finalized(dev_keypair("alice"), call)
        created = await facade.wait_for_event(OrderCreated, deadline=60)
    """

    def __init__(
        self,
        handle: Handle,
        session: ChainSession,
        clock: Optional[Clock] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        finalization_timeout: float = DEFAULT_FINALIZATION_TIMEOUT,
        event_timeout: float = DEFAULT_EVENT_TIMEOUT,
    ):
        self.handle = handle
        self.session = session
        self.clock = clock or MonotonicClock()
        self.poll_interval = poll_interval
        self.finalization_timeout = finalization_timeout
        self.event_timeout = event_timeout
        self._lost: Optional[ConnectionLost] = None

    @classmethod
    async def connect(
        cls,
        handle: Handle,
        session_cls: Optional[type[ChainSession]] = None,
        port: int = RPC_PORT,
        **kwargs: Any,
    ) -> "ChainFacade":
        """Open an RPC session to `handle` and wrap it"""
        if session_cls is None:
            from ggx_testkit.chain.substrate import SubstrateSession

            session_cls = SubstrateSession
        session = await session_cls.connect(handle.url(port, scheme="ws"))
        return cls(handle, session, **kwargs)

    @property
    def is_usable(self) -> bool:
        return self._lost is None and not self.handle.is_stopped

    def _ensure_usable(self) -> None:
        if self._lost is not None:
            raise ConnectionLost(f"Connection to {self.handle.name} was lost earlier: {self._lost}")
        if self.handle.is_stopped:
            raise ConnectionLost(f"{self.handle.name} has been stopped")

    async def _rpc(self, fn: Any, *args: Any) -> Any:
        self._ensure_usable()
        try:
            return await fn(*args)
        except ConnectionLost as e:
            self._lost = e
            raise

    async def submit(self, signer: Any, call: Call) -> TxWatcher:
        """Submit `call` without waiting; pair with `await_finalized`"""
        logger.info("Submitting %s", call)
        return await self._rpc(self.session.submit_and_watch, signer, call)

    async def await_finalized(
        self,
        watcher: TxWatcher,
        timeout: Optional[float] = None,
        description: str = "transaction",
    ) -> EventSet:
        """
        Wait until `watcher` reports finalization.

        Raises:
            TxExecutionFailure: If the runtime rejected the extrinsic
            FinalizationTimeout: If not finalized within `timeout`
            ConnectionLost: If the transport dropped
        """
        timeout = self.finalization_timeout if timeout is None else timeout
        try:
            await poll_until(
                until_true(watcher.done),
                interval=self.poll_interval,
                deadline=timeout,
                clock=self.clock,
                description=f"finalization of {description}",
            )
        except ConvergenceTimeout as e:
            watcher.cancel()
            raise FinalizationTimeout(
                f"{description} was not finalized within {timeout}s",
                elapsed=e.elapsed,
                deadline=timeout,
            ) from e

        try:
            events = await watcher.result()
        except ModuleError as e:
            logger.info("%s failed: %s::%s", description, e.pallet, e.variant)
            raise TxExecutionFailure(e.pallet, e.variant) from e
        except ConnectionLost as e:
            self._lost = e
            raise

        logger.info("%s finalized in block %s", description, events.block_hash)
        return events

    async def submit_and_await_finalized(
        self,
        signer: Any,
        call: Call,
        timeout: Optional[float] = None,
    ) -> EventSet:
        """Submit `call` and block until it is finalized; returns its events"""
        watcher = await self.submit(signer, call)
        return await self.await_finalized(watcher, timeout, description=str(call))

    async def wait_for_event(self, event_cls: type[E], deadline: Optional[float] = None) -> E:
        """
        Poll the latest finalized block until it contains an `event_cls` event.

        Each tick re-reads the latest block, so an event superseded within
        one interval can be missed on chains faster than the poll cadence.

        Raises:
            EventTimeout: If no such event was seen within `deadline`
        """
        deadline = self.event_timeout if deadline is None else deadline

        async def check() -> Optional[E]:
            events = await self._rpc(self.session.latest_events)
            found = events.find_first(event_cls)
            if found is not None:
                logger.debug("Event found: %r", found)
            return found

        try:
            return await poll_until(
                check,
                interval=self.poll_interval,
                deadline=deadline,
                clock=self.clock,
                description=f"{event_cls.kind()} event",
            )
        except ConvergenceTimeout as e:
            raise EventTimeout(
                f"Timeout waiting for {event_cls.kind()} event after {deadline}s",
                elapsed=e.elapsed,
                deadline=deadline,
            ) from e

    async def wait_until(
        self,
        check: Check,
        deadline: float,
        description: str = "condition",
        retry_errors: tuple[type[BaseException], ...] = (),
    ) -> Any:
        """
        Poll an arbitrary check on this facade's cadence.

        `retry_errors` lists check exceptions that count as "not yet".

        Raises:
            ConvergenceTimeout: If the check yielded nothing within `deadline`
        """
        self._ensure_usable()
        if retry_errors:
            check = retry_on_error(check, *retry_errors)
        return await poll_until(
            check,
            interval=self.poll_interval,
            deadline=deadline,
            clock=self.clock,
            description=description,
        )

    async def latest_events(self) -> EventSet:
        return await self._rpc(self.session.latest_events)

    async def query_storage(self, key: StorageKey) -> Any:
        return await self._rpc(self.session.query_storage, key)

    async def query_map(self, pallet: str, item: str, params: Optional[list[Any]] = None) -> list[tuple[Any, Any]]:
        return await self._rpc(self.session.query_map, pallet, item, params)

    async def storage_keys(self, pallet: str, item: str) -> list[bytes]:
        return await self._rpc(self.session.storage_keys, pallet, item)

    async def get_denom_trace(self) -> str:
        """
        Find the `ibc/{hash}` denom of the first IBC-transferred asset.

        Raises:
            DenomTraceNotFound: If no DenomTrace key carries an `ibc/` marker
        """
        for raw in await self.storage_keys(DENOM_TRACE_PALLET, DENOM_TRACE_ITEM):
            try:
                denom = find_ibc_denom(raw)
            except UnicodeDecodeError as e:
                logger.warning("Skipping DenomTrace key with non UTF-8 tail: %s", e)
                continue
            if denom:
                return denom

        raise DenomTraceNotFound(
            f"{DENOM_TRACE_PALLET}.{DENOM_TRACE_ITEM} should have contained `ibc/` with a hash inside"
        )

    async def close(self) -> None:
        await self.session.close()

    async def __aenter__(self) -> "ChainFacade":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
