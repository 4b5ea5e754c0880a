"""Source adapter contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from trendintel.ingest.signals import RawSignal


class AdapterStatus(Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class AdapterResult:
    source_name: str
    status: AdapterStatus
    signals: list[RawSignal] = field(default_factory=list)
    message: str | None = None
    error_code: str | None = None
    duration_ms: int | None = None

    @property
    def ok(self) -> bool:
        return self.status in (AdapterStatus.SUCCESS, AdapterStatus.EMPTY)


class SourceAdapter(Protocol):
    """Yields raw signals for one source.

    scan() receives an absolute deadline on the running loop's clock
    (loop.time()). Adapters should return whatever they have by then; the
    caller abandons them once it passes. Every returned signal must carry the
    adapter's own source_name.
    """

    @property
    def source_name(self) -> str: ...

    async def scan(self, deadline: float) -> list[RawSignal]: ...
