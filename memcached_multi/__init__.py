#!/usr/bin/env python3
"""
memcached-multi - Munin multigraph plugin for memcached

Collects general, slab and item statistics from a memcached server and
renders them as Munin graph configuration or values.
"""

__version__ = '1.0.0'

__all__ = ['fetch_stats', 'render', 'normalize']

from .client import fetch_stats
from .renderer import render
from .timescale import normalize
