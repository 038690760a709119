import asyncio

import pytest

from memcached_multi import client
from memcached_multi.client import (
    MemcachedClient, fetch_stats, merge_settings_line, parse_general_line,
    parse_item_line, parse_slab_line, probe,
)
from memcached_multi.errors import StatsConnectionError
from memcached_multi.renderer import RenderMode, render


class TestParsers:
    def test_general_line(self):
        table = {}
        assert parse_general_line('STAT curr_items 7', table)
        assert table == {'curr_items': '7'}

    def test_general_value_keeps_spaces(self):
        table = {}
        parse_general_line('STAT libevent 2.0.21 stable\r', table)
        assert table['libevent'] == '2.0.21 stable'

    def test_later_duplicate_overwrites(self):
        table = {}
        parse_general_line('STAT evictions 4', table)
        parse_general_line('STAT evictions on', table)
        assert table == {'evictions': 'on'}

    def test_settings_keep_numeric_counters(self):
        table = {'evictions': '4', 'maxconns': '1024', 'detail_enabled': 'no'}
        assert not merge_settings_line('STAT evictions on', table)
        assert merge_settings_line('STAT maxconns 10', table)
        assert merge_settings_line('STAT detail_enabled yes', table)
        assert merge_settings_line('STAT binding_protocol auto-negotiate', table)
        assert table == {
            'evictions': '4', 'maxconns': '10', 'detail_enabled': 'yes',
            'binding_protocol': 'auto-negotiate',
        }

    @pytest.mark.parametrize('line', ['END', 'ERROR', '', 'STAT', 'STAT lonely', 'VERSION 1.4.15'])
    def test_general_noise_is_skipped(self, line):
        table = {}
        assert not parse_general_line(line, table)
        assert table == {}

    def test_slab_lines_grouped_by_numeric_id(self):
        table = {}
        for line in ('STAT 12:chunk_size 1184', 'STAT 1:chunk_size 96',
                     'STAT 12:used_chunks 1', 'STAT 2:chunk_size 120'):
            parse_slab_line(line, table)
        assert table == {
            1: {'chunk_size': '96'},
            2: {'chunk_size': '120'},
            12: {'chunk_size': '1184', 'used_chunks': '1'},
        }
        assert sorted(table) == [1, 2, 12]

    @pytest.mark.parametrize('line', ['STAT active_slabs 3', 'STAT total_malloced 3145728',
                                      'STAT items:1:number 5', 'STAT x1:chunk_size 9'])
    def test_slab_parser_ignores_non_slab_lines(self, line):
        table = {}
        assert not parse_slab_line(line, table)
        assert table == {}

    def test_item_lines(self):
        table = {}
        parse_item_line('STAT items:3:number 5', table)
        parse_item_line('STAT items:3:age 7200', table)
        assert table == {3: {'number': '5', 'age': '7200'}}

    def test_item_parser_ignores_slab_lines(self):
        table = {}
        assert not parse_item_line('STAT 3:number 5', table)
        assert table == {}


class TestFetchStats:
    def test_fetches_all_tables(self, memcached_server):
        tables = fetch_stats(memcached_server.host, memcached_server.port)

        assert memcached_server.commands == ['stats', 'stats settings', 'stats slabs', 'stats items']
        assert tables.general['curr_connections'] == '5'
        assert tables.general['maxconns'] == '10'
        assert tables.slab_ids() == [1, 2, 12]
        assert tables.item_ids() == [1, 2]
        assert tables.slab(12)['chunk_size'] == '1184'
        assert tables.item(2)['age'] == '1800'

    def test_settings_do_not_clobber_eviction_count(self, memcached_server):
        tables = fetch_stats(memcached_server.host, memcached_server.port)
        assert tables.general['evictions'] == '4'
        lines = render('evictions', RenderMode.VALUES, tables)
        assert 'evictions.value 4' in lines
        assert 'evictions.value on' not in lines

    def test_noise_inside_reply_is_skipped(self, memcached_server):
        memcached_server.responses['stats slabs'] = (
            'STAT 1:chunk_size 96\r\nsomething odd\r\nSTAT\r\nSTAT 3:used_chunks 2\r\nEND\r\n'
        )
        tables = fetch_stats(memcached_server.host, memcached_server.port)
        assert tables.slabs == {1: {'chunk_size': '96'}, 3: {'used_chunks': '2'}}

    def test_error_reply_ends_command(self, memcached_server):
        # servers without "stats settings" answer ERROR and no END
        memcached_server.responses['stats settings'] = 'ERROR\r\n'
        tables = fetch_stats(memcached_server.host, memcached_server.port)
        assert 'maxconns' not in tables.general
        assert tables.item_ids() == [1, 2]

    def test_connection_refused(self, unused_port):
        with pytest.raises(StatsConnectionError) as excinfo:
            fetch_stats('127.0.0.1', unused_port, timeout=1.0)
        assert isinstance(excinfo.value, ConnectionError)
        assert excinfo.value.port == unused_port
        assert f'127.0.0.1:{unused_port}' in str(excinfo.value)

    def test_connect_timeout(self, monkeypatch):
        async def never_connects(host, port):
            await asyncio.sleep(10)

        monkeypatch.setattr(client.asyncio, 'open_connection', never_connects)
        with pytest.raises(StatsConnectionError, match='timed out'):
            fetch_stats('127.0.0.1', 11211, timeout=0.05)

    def test_client_closes_connection(self, memcached_server):
        async def run():
            mc = MemcachedClient(memcached_server.host, memcached_server.port)
            async with mc:
                await mc.collect()
            return mc

        mc = asyncio.run(run())
        assert mc._writer is None


class TestProbe:
    def test_reachable(self, memcached_server):
        assert probe(memcached_server.host, memcached_server.port) == (True, '')
        assert memcached_server.commands == []

    def test_unreachable(self, unused_port):
        ok, reason = probe('127.0.0.1', unused_port, timeout=1.0)
        assert not ok
        assert reason
