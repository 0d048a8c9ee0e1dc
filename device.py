from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import total_ordering
from typing import Union

from utils import format_mac


@dataclass(frozen=True)
class MacAddress:
    """48-bit hardware address, stored in canonical uppercase colon form."""
    value: str

    def __post_init__(self):
        object.__setattr__(self, "value", format_mac(self.value))

    @classmethod
    def parse(cls, text: str) -> "MacAddress":
        """Parses 'aa:bb:cc:dd:ee:ff' or 'AA-BB-...'; raises ValueError if malformed."""
        return cls(text)

    def __str__(self) -> str:
        return self.value


@total_ordering
class WorkerStatus(Enum):
    """Reported state of a worker, ordered from least to most active."""
    SLEEP = "Sleep"
    AWAKE = "Awake"
    INQUISITIVE = "Inquisitive"
    WORKING = "Working"

    @property
    def ordinal(self) -> int:
        return _ORDINALS[self]

    @classmethod
    def from_ordinal(cls, ordinal: int) -> "WorkerStatus":
        for status, value in _ORDINALS.items():
            if value == ordinal:
                return status
        raise ValueError(f"Unknown worker status ordinal: {ordinal}")

    @classmethod
    def parse(cls, value: Union[str, int]) -> "WorkerStatus":
        """Accepts a status name (any case) or its ordinal."""
        if isinstance(value, bool):
            raise ValueError(f"Invalid worker status: {value!r}")
        if isinstance(value, int):
            return cls.from_ordinal(value)
        for status in cls:
            if status.value.lower() == str(value).strip().lower():
                return status
        raise ValueError(f"Unknown worker status: {value!r}")

    def is_active(self) -> bool:
        """Inquisitive and Working workers are expected to keep reporting."""
        return self.ordinal >= WorkerStatus.INQUISITIVE.ordinal

    def __lt__(self, other):
        if not isinstance(other, WorkerStatus):
            return NotImplemented
        return self.ordinal < other.ordinal


_ORDINALS = {
    WorkerStatus.SLEEP: 0,
    WorkerStatus.AWAKE: 1,
    WorkerStatus.INQUISITIVE: 2,
    WorkerStatus.WORKING: 3,
}


@dataclass(frozen=True)
class ReportedState:
    mac: MacAddress
    status: WorkerStatus
    wake: bool
    observed_at: datetime
