import socket
import socketserver
import threading

import pytest

from memcached_multi.client import (
    merge_settings_line, parse_general_line, parse_item_line, parse_slab_line,
)
from memcached_multi.stat_tables import StatTables


def _reply(*lines):
    return ''.join(f"{line}\r\n" for line in lines)


STATS_REPLY = _reply(
    'STAT pid 2210',
    'STAT uptime 50',
    'STAT time 1700000000',
    'STAT version 1.4.15',
    'STAT libevent 2.0.21-stable',
    'STAT curr_connections 5',
    'STAT total_connections 100',
    'STAT cmd_get 40',
    'STAT cmd_set 20',
    'STAT get_hits 30',
    'STAT get_misses 10',
    'STAT delete_misses 1',
    'STAT delete_hits 2',
    'STAT incr_misses 0',
    'STAT incr_hits 3',
    'STAT decr_misses 0',
    'STAT decr_hits 1',
    'STAT bytes_read 1000',
    'STAT bytes_written 2000',
    'STAT limit_maxbytes 67108864',
    'STAT bytes 4096',
    'STAT curr_items 7',
    'STAT total_items 9',
    'STAT evictions 4',
    'STAT reclaimed 6',
    'END',
)

SETTINGS_REPLY = _reply(
    'STAT maxbytes 67108864',
    'STAT maxconns 10',
    'STAT tcpport 11211',
    'STAT item_size_max 1048576',
    'STAT evictions on',
    'END',
)

# slab 12 is reported between 1 and 2 so ordering by text would be wrong
SLABS_REPLY = _reply(
    'STAT 1:chunk_size 96',
    'STAT 1:chunks_per_page 10922',
    'STAT 1:total_pages 1',
    'STAT 1:total_chunks 10922',
    'STAT 1:used_chunks 10',
    'STAT 1:free_chunks 10912',
    'STAT 1:get_hits 12',
    'STAT 1:cmd_set 8',
    'STAT 1:delete_hits 1',
    'STAT 1:incr_hits 0',
    'STAT 1:decr_hits 0',
    'STAT 12:chunk_size 1184',
    'STAT 12:total_chunks 885',
    'STAT 12:used_chunks 1',
    'STAT 12:free_chunks 884',
    'STAT 12:get_hits 3',
    'STAT 12:cmd_set 1',
    'STAT 12:delete_hits 0',
    'STAT 12:incr_hits 0',
    'STAT 12:decr_hits 0',
    'STAT 2:chunk_size 120',
    'STAT 2:total_chunks 8738',
    'STAT 2:used_chunks 4',
    'STAT 2:free_chunks 8734',
    'STAT 2:get_hits 15',
    'STAT 2:cmd_set 11',
    'STAT 2:delete_hits 1',
    'STAT 2:incr_hits 3',
    'STAT 2:decr_hits 1',
    'STAT active_slabs 3',
    'STAT total_malloced 3145728',
    'END',
)

# slab 12 holds no items, so it is missing here
ITEMS_REPLY = _reply(
    'STAT items:1:number 5',
    'STAT items:1:age 7200',
    'STAT items:1:evicted 2',
    'STAT items:1:evicted_nonzero 1',
    'STAT items:1:evicted_time 90',
    'STAT items:1:outofmemory 0',
    'STAT items:1:reclaimed 3',
    'STAT items:2:number 3',
    'STAT items:2:age 1800',
    'STAT items:2:evicted 5',
    'STAT items:2:evicted_nonzero 3',
    'STAT items:2:evicted_time 600',
    'STAT items:2:outofmemory 0',
    'STAT items:2:reclaimed 0',
    'END',
)

RESPONSES = {
    'stats': STATS_REPLY,
    'stats settings': SETTINGS_REPLY,
    'stats slabs': SLABS_REPLY,
    'stats items': ITEMS_REPLY,
}


def build_tables(responses=None) -> StatTables:
    """Parse canned replies the same way the client does"""
    responses = responses or RESPONSES
    tables = StatTables()
    for line in responses['stats'].splitlines():
        parse_general_line(line, tables.general)
    for line in responses['stats settings'].splitlines():
        merge_settings_line(line, tables.general)
    for line in responses['stats slabs'].splitlines():
        parse_slab_line(line, tables.slabs)
    for line in responses['stats items'].splitlines():
        parse_item_line(line, tables.items)
    return tables


@pytest.fixture
def tables():
    return build_tables()


class FakeMemcachedHandler(socketserver.StreamRequestHandler):
    """Answers each command line with the canned reply, ERROR when unknown"""

    def handle(self):
        for raw in self.rfile:
            command = raw.decode('utf-8').strip()
            self.server.commands.append(command)
            self.wfile.write(self.server.responses.get(command, 'ERROR\r\n').encode('utf-8'))


class FakeMemcachedServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    daemon_threads = True
    allow_reuse_address = True


@pytest.fixture
def memcached_server():
    server = FakeMemcachedServer(('127.0.0.1', 0), FakeMemcachedHandler)
    server.responses = dict(RESPONSES)
    server.commands = []
    server.host, server.port = server.server_address
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def unused_port():
    """A local port with nothing listening on it"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
