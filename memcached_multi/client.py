#!/usr/bin/env python3
"""
Memcached Stats Client

Opens one short-lived connection to a memcached server, issues the four
introspection commands in order and parses the replies into StatTables.

    stats           -> StatTables.general
    stats settings  -> StatTables.general (merged, numeric counters kept)
    stats slabs     -> StatTables.slabs[slab_id]
    stats items     -> StatTables.items[slab_id]

Lines that do not match the grammar of their command are skipped.
"""

import re
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple

from .errors import StatsConnectionError
from .stat_tables import StatTables

DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 11211
DEFAULT_TIMEOUT = 10.0

GENERAL_STAT_RE = re.compile(r'^STAT\s+(\S+)\s+(.*?)\s*$')
SLAB_STAT_RE = re.compile(r'^STAT\s+(\d+):(\S+)\s+(.*?)\s*$')
ITEM_STAT_RE = re.compile(r'^STAT\s+items:(\d+):(\S+)\s+(.*?)\s*$')
END_RE = re.compile(r'^(END|ERROR)\b')


def parse_general_line(line: str, table: Dict[str, str]) -> bool:
    """Parse ``STAT <key> <value>`` into a flat table"""
    match = GENERAL_STAT_RE.match(line)
    if not match:
        return False
    key, value = match.groups()
    table[key] = value
    return True


def _is_number(value: str) -> bool:
    try:
        float(value)
    except (TypeError, ValueError):
        return False
    return True


def merge_settings_line(line: str, table: Dict[str, str]) -> bool:
    """
    Parse a ``stats settings`` line into the general table.

    Settings win on key collisions, except that a non-numeric setting never
    replaces a numeric counter (``STAT evictions on`` vs. the evictions count).
    """
    match = GENERAL_STAT_RE.match(line)
    if not match:
        return False
    key, value = match.groups()
    if not _is_number(value) and _is_number(table.get(key)):
        return False
    table[key] = value
    return True


def _parse_entity_line(pattern, line: str, table: Dict[int, Dict[str, str]]) -> bool:
    match = pattern.match(line)
    if not match:
        return False
    slab_id, key, value = match.groups()
    table.setdefault(int(slab_id), {})[key] = value
    return True


def parse_slab_line(line: str, table: Dict[int, Dict[str, str]]) -> bool:
    """Parse ``STAT <slab>:<key> <value>`` into a per-slab table"""
    return _parse_entity_line(SLAB_STAT_RE, line, table)


def parse_item_line(line: str, table: Dict[int, Dict[str, str]]) -> bool:
    """Parse ``STAT items:<slab>:<key> <value>`` into a per-slab table"""
    return _parse_entity_line(ITEM_STAT_RE, line, table)


class MemcachedClient:
    """Single-connection memcached stats client"""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT,
                 timeout: float = DEFAULT_TIMEOUT):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    async def connect(self):
        """Open the connection, failing after ``timeout`` seconds"""
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            self.logger.error(f"Timed out connecting to {self.host}:{self.port} after {self.timeout}s")
            raise StatsConnectionError(self.host, self.port, f"timed out after {self.timeout}s") from None
        except OSError as e:
            self.logger.error(f"Failed to connect to {self.host}:{self.port}: {e}")
            raise StatsConnectionError(self.host, self.port, str(e)) from e
        self.logger.debug(f"Connected to {self.host}:{self.port}")

    async def _send_command(self, command: str) -> List[str]:
        """Send a command and return the reply lines up to the end marker"""
        if self._writer is None:
            await self.connect()

        try:
            self._writer.write(f"{command}\r\n".encode('utf-8'))
            await self._writer.drain()

            lines = []
            while True:
                raw = await self._reader.readline()
                if not raw:
                    self.logger.debug(f"Connection closed while reading '{command}' reply")
                    break
                line = raw.decode('utf-8', errors='replace').rstrip('\r\n')
                if END_RE.match(line):
                    break
                lines.append(line)
            return lines
        except OSError as e:
            self.logger.error(f"Failed to send command '{command}': {e}")
            raise StatsConnectionError(self.host, self.port, str(e)) from e

    async def _read_into(self, command: str, parser: Callable, table) -> int:
        lines = await self._send_command(command)
        parsed = sum(1 for line in lines if parser(line, table))
        self.logger.debug(f"'{command}': parsed {parsed} of {len(lines)} lines")
        return parsed

    async def get_stats(self, tables: StatTables):
        """General statistics"""
        await self._read_into('stats', parse_general_line, tables.general)

    async def get_stats_settings(self, tables: StatTables):
        """Server settings, merged into the general table"""
        await self._read_into('stats settings', merge_settings_line, tables.general)

    async def get_stats_slabs(self, tables: StatTables):
        await self._read_into('stats slabs', parse_slab_line, tables.slabs)

    async def get_stats_items(self, tables: StatTables):
        await self._read_into('stats items', parse_item_line, tables.items)

    async def collect(self) -> StatTables:
        """Run the four stats commands in order and return the filled tables"""
        tables = StatTables()
        await self.get_stats(tables)
        await self.get_stats_settings(tables)
        await self.get_stats_slabs(tables)
        await self.get_stats_items(tables)
        self.logger.debug(f"Collected {tables!r} from {self.host}:{self.port}")
        return tables

    async def close(self):
        """Close the connection"""
        if self._writer:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError as e:
                self.logger.debug(f"Error while closing connection: {e}")
            self._writer = None
            self._reader = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


async def _fetch(host: str, port: int, timeout: float) -> StatTables:
    async with MemcachedClient(host, port, timeout) as client:
        return await client.collect()


async def _probe(host: str, port: int, timeout: float):
    async with MemcachedClient(host, port, timeout):
        pass


def fetch_stats(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT,
                timeout: float = DEFAULT_TIMEOUT) -> StatTables:
    """
    Collect all statistics over one connection.

    Raises:
        StatsConnectionError: the connection could not be opened
    """
    return asyncio.run(_fetch(host, port, timeout))


def probe(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT,
          timeout: float = DEFAULT_TIMEOUT) -> Tuple[bool, str]:
    """Check that a connection can be opened; returns (ok, reason)"""
    try:
        asyncio.run(_probe(host, port, timeout))
    except StatsConnectionError as e:
        return False, e.reason or str(e)
    return True, ''
