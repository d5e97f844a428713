"""
Chain-side value types: calls, storage keys and events
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Iterator, Optional, TypeVar

from pydantic import BaseModel


@dataclass
class Call:
    """A runtime call, e.g. Call("Dex", "deposit", {"asset_id": 1, "amount": 10})"""

    pallet: str
    function: str
    params: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.pallet}.{self.function}"


@dataclass
class StorageKey:
    """Storage item address, e.g. StorageKey("Assets", "Account", [asset_id, account])"""

    pallet: str
    item: str
    params: list[Any] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.pallet}.{self.item}"


@dataclass
class RawEvent:
    """An undecoded runtime event"""

    pallet: str
    name: str
    attributes: Any = None

    def is_kind(self, pallet: str, name: str) -> bool:
        return self.pallet == pallet and self.name == name


class ChainEvent(BaseModel):
    """
    Base class for typed runtime events.

    Subclasses set `pallet` and `name` and declare the event fields in
    runtime order, so positional payloads can be decoded too.
    """

    pallet: ClassVar[str] = ""
    name: ClassVar[str] = ""

    class Config:
        extra = "allow"

    @classmethod
    def decode(cls, attributes: Any) -> "ChainEvent":
        """Build the event from named (dict) or positional (list) attributes"""
        if attributes is None:
            return cls()
        if isinstance(attributes, dict):
            return cls.model_validate(attributes)
        if isinstance(attributes, (list, tuple)):
            return cls.model_validate(dict(zip(cls.model_fields, attributes)))
        return cls.model_validate({next(iter(cls.model_fields)): attributes})

    @classmethod
    def kind(cls) -> str:
        return f"{cls.pallet}.{cls.name}"


E = TypeVar("E", bound=ChainEvent)


class EventSet:
    """Events emitted in one block or by one extrinsic"""

    def __init__(self, events: Iterable[RawEvent] = (), block_hash: Optional[str] = None):
        self._events = list(events)
        self.block_hash = block_hash

    def __iter__(self) -> Iterator[RawEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __repr__(self) -> str:
        kinds = ", ".join(f"{e.pallet}.{e.name}" for e in self._events)
        return f"EventSet([{kinds}], block_hash={self.block_hash!r})"

    def named(self, pallet: str, name: str) -> list[RawEvent]:
        return [e for e in self._events if e.is_kind(pallet, name)]

    def find_first(self, event_cls: type[E]) -> Optional[E]:
        """First event of `event_cls`, decoded, or None"""
        for event in self._events:
            if event.is_kind(event_cls.pallet, event_cls.name):
                return event_cls.decode(event.attributes)
        return None
