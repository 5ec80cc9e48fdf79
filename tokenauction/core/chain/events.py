"""
Contract events and the log entries they are recorded as.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict

from tokenauction.crypto import event_topic


@dataclass(frozen=True)
class Event:
    """
    Base class for contract events.

    Subclasses are frozen dataclasses whose fields are the event arguments
    and whose ``SIGNATURE`` is the EVM event signature used for the topic.
    """
    SIGNATURE: ClassVar[str] = ""

    @classmethod
    def topic(cls) -> str:
        return event_topic(cls.SIGNATURE)

    @property
    def name(self) -> str:
        return type(self).__name__

    def args(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LogEntry:
    """An event as recorded by the chain."""
    block_number: int
    tx_hash: str
    log_index: int
    address: str
    event: str
    topic: str
    args: Dict[str, Any]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "LogEntry":
        return cls(**{f.name: data[f.name] for f in fields(cls)})
