"""Adapters serving signals that are already in hand (memory or a YAML file)."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path

import structlog
import yaml  # type: ignore[import-untyped]

from trendintel.adapters.json_feed import parse_feed
from trendintel.errors import AdapterError
from trendintel.ingest.signals import RawSignal

logger = structlog.get_logger()


class StaticAdapter:
    """Replays a fixed list of signals.

    delay_seconds and error simulate a slow or broken source.
    """

    def __init__(
        self,
        source_name: str,
        signals: Iterable[RawSignal] = (),
        *,
        delay_seconds: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self._source_name = source_name
        self.signals = list(signals)
        self.delay_seconds = delay_seconds
        self.error = error

    @property
    def source_name(self) -> str:
        return self._source_name

    async def scan(self, deadline: float) -> list[RawSignal]:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return list(self.signals)


class YamlFileAdapter:
    """Reads raw signal payloads from a YAML (or JSON) file on every scan."""

    def __init__(self, source_name: str, path: str) -> None:
        self._source_name = source_name
        self.path = Path(path)

    @property
    def source_name(self) -> str:
        return self._source_name

    async def scan(self, deadline: float) -> list[RawSignal]:
        if not self.path.exists():
            raise AdapterError(f"{self._source_name} signal file not found: {self.path}")
        try:
            data = yaml.safe_load(self.path.read_text()) or []
        except yaml.YAMLError as exc:
            raise AdapterError(f"{self._source_name} signal file is not valid YAML: {exc}") from exc

        signals, rejected = parse_feed(self._source_name, data)
        logger.info("Loaded signal file", source=self._source_name, path=str(self.path), signals=len(signals),
                    rejected=rejected)
        return signals
