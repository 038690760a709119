#!/usr/bin/env python3
"""
memcached-multi CLI - Munin multigraph plugin entry point

Install the console script once and link it under one name per root graph:

    ln -s $(which memcached-multi) /etc/munin/plugins/memcached_multi_items
    ln -s $(which memcached-multi) /etc/munin/plugins/memcached_multi_bytes

The graph is taken from the link name (or ``--graph``) and the command from
the first argument:

- (none) / fetch: current values
- config: graph configuration
- autoconf: "yes" if memcached is reachable
- suggest: list the root graphs
"""

import os
import sys
import logging
import argparse
from typing import List, Optional

from .client import fetch_stats, probe
from .config import load_config
from .errors import ConfigError, MemcachedMultiError
from .graphs import ROOT_IDENTITIES, get_root
from .renderer import RenderMode, render

COMMANDS = ('fetch', 'config', 'autoconf', 'suggest')
MULTIGRAPH_ENV = 'MUNIN_CAP_MULTIGRAPH'

NO_MULTIGRAPH_CONFIG = (
    "graph_title This plugin needs multigraph support",
    "multigraph.label No multigraph here",
    "multigraph.info This plugin has been installed in a munin-node that is too old "
    "to know about multigraph plugins. Even if your munin master understands multigraph "
    "plugins this is not enough, the node too needs to be new enough. "
    "Version 1.4.0 or later should work.",
)

logger = logging.getLogger('memcached_multi')


def identity_from_prog(prog: str, graph_prefix: str) -> Optional[str]:
    """memcached_multi_items -> items"""
    name = os.path.basename(prog or '')
    if graph_prefix and name.startswith(graph_prefix):
        return name[len(graph_prefix):] or None
    return None


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description='Munin multigraph plugin for memcached statistics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Values for the items graph, plugin linked as memcached_multi_items
  memcached_multi_items

  # Configuration for a graph chosen explicitly
  %(prog)s --graph evictions config

  # Environment (normally set in plugin-conf.d)
  host=10.0.0.5 port=11211 timescale=2 %(prog)s --graph items
        """
    )
    parser.add_argument('command', nargs='?', default='fetch', choices=COMMANDS,
                        help='Plugin command (default: fetch)')
    parser.add_argument('-c', '--config',
                        help='Path to YAML configuration file')
    parser.add_argument('--host', help='Memcached host (default: 127.0.0.1)')
    parser.add_argument('--port', help='Memcached port (default: 11211)')
    parser.add_argument('--timescale', help='1=seconds 2=minutes 3=hours 4=days (default: 3)')
    parser.add_argument('--graph',
                        help='Root graph to render (default: taken from the program name)')
    parser.add_argument('--log-level', default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Log level (default: WARNING)')
    return parser


def _emit(lines) -> None:
    for line in lines:
        print(line)


def run_autoconf(config) -> int:
    if not os.environ.get(MULTIGRAPH_ENV):
        print('no (no multigraph support)')
        return 0
    ok, reason = probe(config.host, config.port, config.timeout)
    print('yes' if ok else f'no ({reason})')
    return 0


def run_suggest(config) -> int:
    ok, reason = probe(config.host, config.port, config.timeout)
    if not ok:
        logger.info(f"Nothing to suggest, memcached unreachable: {reason}")
        return 0
    _emit(identity.value for identity in ROOT_IDENTITIES)
    return 0


def run_graph(config, identity: Optional[str], mode: RenderMode) -> int:
    if not os.environ.get(MULTIGRAPH_ENV):
        _emit(NO_MULTIGRAPH_CONFIG if mode is RenderMode.CONFIG else ('multigraph.value 0',))
        return 0

    get_root(identity)
    tables = fetch_stats(config.host, config.port, config.timeout)
    lines = render(identity, mode, tables,
                   timescale=config.timescale, graph_prefix=config.graph_prefix)
    _emit(lines)
    return 0


def main(argv: Optional[List[str]] = None, prog: Optional[str] = None) -> int:
    prog = prog or sys.argv[0]
    parser = build_parser(os.path.basename(prog))
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config, overrides={
            'host': args.host,
            'port': args.port,
            'timescale': args.timescale,
            'log_level': args.log_level,
        })
    except ConfigError as e:
        logging.basicConfig(level=logging.WARNING, stream=sys.stderr)
        logger.error(str(e))
        return 1

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    try:
        if args.command == 'autoconf':
            return run_autoconf(config)
        if args.command == 'suggest':
            return run_suggest(config)

        identity = args.graph or identity_from_prog(prog, config.graph_prefix)
        mode = RenderMode.CONFIG if args.command == 'config' else RenderMode.VALUES
        return run_graph(config, identity, mode)
    except MemcachedMultiError as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
