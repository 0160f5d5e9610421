"""Persistent set of Discord channels where paper resolution is enabled."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from json import JSONDecodeError
from pathlib import Path

GATE_FILE_PATH = os.getenv("GATE_FILE_PATH", "enabled_channels.json")

LOGGER = logging.getLogger(__name__)


class ReadWriteLock:
    """asyncio lock admitting many concurrent readers or a single writer.

    Waiting writers block new readers so a steady stream of gate checks cannot
    starve an admin command.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and not self._writers_waiting)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and not self._readers)
            except BaseException:
                self._writers_waiting -= 1
                self._cond.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


class ChannelGate:
    """Channel ids with resolution turned on, written through to a JSON file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path if path is not None else GATE_FILE_PATH)
        self._channels: set[int] = _load_channel_ids(self.path)
        self._lock = ReadWriteLock()
        LOGGER.info("Loaded %s enabled channel(s) from %s", len(self._channels), self.path)

    async def contains(self, channel_id: int) -> bool:
        async with self._lock.read():
            return channel_id in self._channels

    async def add(self, channel_id: int) -> None:
        async with self._lock.write():
            self._channels.add(channel_id)

    async def remove(self, channel_id: int) -> None:
        async with self._lock.write():
            self._channels.discard(channel_id)

    async def snapshot(self) -> frozenset[int]:
        async with self._lock.read():
            return frozenset(self._channels)

    async def save(self) -> None:
        """Overwrite the gate file with the current set; failures are logged, never raised."""
        # The write stays under the read lock so an older snapshot can never
        # replace a newer one on disk. File I/O runs off the event loop.
        async with self._lock.read():
            channel_ids = sorted(self._channels)
            try:
                await asyncio.to_thread(_atomic_write, self.path, json.dumps(channel_ids))
            except OSError as exc:
                LOGGER.warning("Failed to persist enabled channels to %s: %s", self.path, exc)
                return
        LOGGER.debug("Persisted %s enabled channel(s) to %s", len(channel_ids), self.path)


def _load_channel_ids(path: Path) -> set[int]:
    """Read the gate file; anything other than a JSON array of unsigned ints means empty."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return set()
    except OSError as exc:
        LOGGER.warning("Could not read %s, starting with no enabled channels: %s", path, exc)
        return set()

    try:
        data = json.loads(raw)
    except JSONDecodeError:
        LOGGER.warning("Malformed gate file %s, starting with no enabled channels", path)
        return set()

    if not isinstance(data, list) or not all(_is_channel_id(item) for item in data):
        LOGGER.warning("Unexpected gate file shape in %s, starting with no enabled channels", path)
        return set()
    return set(data)


def _is_channel_id(value: object) -> bool:
    # bool is an int subclass; true/false in the file is malformed.
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 2**64


def _atomic_write(path: Path, payload: str) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        os.replace(tmp_name, path)
    except OSError:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
