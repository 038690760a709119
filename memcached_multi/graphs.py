#!/usr/bin/env python3
"""
Graph Registry - Declarative catalog of the plugin's graphs

Six root graphs can be selected by the collector. Four of them (memory,
commands, evictions, items) are multigraph roots that fan out into one
sub-graph per slab class for each of their child templates.

The catalog is static: every definition is an immutable record and the
registry itself is a read-only mapping.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .errors import UnknownIdentityError


class GraphIdentity(str, Enum):
    # Root graphs
    BYTES = 'bytes'
    CONNS = 'conns'
    COMMANDS = 'commands'
    EVICTIONS = 'evictions'
    ITEMS = 'items'
    MEMORY = 'memory'
    # Per-slab sub-graphs
    SLABCHNKS = 'slabchnks'
    SLABHITS = 'slabhits'
    SLABEVICS = 'slabevics'
    SLABEVICTIME = 'slabevictime'
    SLABITEMS = 'slabitems'
    SLABITEMTIME = 'slabitemtime'


class StatSource(Enum):
    GENERAL = 'general'
    SLABS = 'slabs'
    ITEMS = 'items'


class Derivation(Enum):
    """Series whose value is not a plain table lookup"""
    NONE = 'none'
    PER_SECOND = 'per_second'      # total_connections / uptime
    SUM_OVER_ITEMS = 'sum_items'   # summed across every slab in the items table
    TIME_SCALED = 'time_scaled'    # seconds converted to the configured unit


DERIVE = 'DERIVE'

_SERIES_ATTRIBUTES = ('label', 'info', 'type', 'draw', 'graph', 'negative', 'cdef', 'min')


@dataclass(frozen=True)
class SeriesDescriptor:
    name: str
    label: str
    source_key: Optional[str] = None
    info: Optional[str] = None
    type: Optional[str] = None
    draw: Optional[str] = None
    graph: Optional[str] = None
    negative: Optional[str] = None
    cdef: Optional[str] = None
    min: Optional[str] = '0'
    derivation: Derivation = Derivation.NONE
    version_gated: bool = False

    @property
    def key(self) -> str:
        return self.source_key or self.name

    def attributes(self) -> Tuple[Tuple[str, str], ...]:
        """Rendering attributes other than the name, in output order"""
        return tuple(
            (attr, getattr(self, attr))
            for attr in _SERIES_ATTRIBUTES
            if getattr(self, attr) is not None
        )


@dataclass(frozen=True)
class GraphDefinition:
    """
    One graph of the catalog.

    For sub-graphs ``config`` holds a title prefix that the renderer
    completes with the slab id, and ``time_scaled_vlabel`` marks a vlabel
    suffix that gets the configured time unit prepended.
    """
    identity: GraphIdentity
    config: Tuple[Tuple[str, str], ...]
    series: Tuple[SeriesDescriptor, ...]
    source: StatSource = StatSource.GENERAL
    children: Tuple[GraphIdentity, ...] = ()
    fanout_source: Optional[StatSource] = None
    parent: Optional[GraphIdentity] = None
    chunk_size_in_title: bool = False
    time_scaled_vlabel: bool = False

    @property
    def name(self) -> str:
        return self.identity.value

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def is_multigraph(self) -> bool:
        return bool(self.children)


def _config(title: str, vlabel: str, info: str,
            args: str = '--base 1000 --lower-limit 0',
            order: Optional[str] = None) -> Tuple[Tuple[str, str], ...]:
    config = [
        ('args', args),
        ('vlabel', vlabel),
        ('category', 'memcached'),
        ('title', title),
        ('info', info),
    ]
    if order:
        config.append(('order', order))
    return tuple(config)


_DEFINITIONS = (
    GraphDefinition(
        identity=GraphIdentity.ITEMS,
        config=_config(
            title='Items',
            vlabel='Items in Memcached',
            info='This graph shows the number of items in use by memcached',
        ),
        series=(
            SeriesDescriptor('curr_items', 'Current Items'),
            SeriesDescriptor('total_items', 'New Items', type=DERIVE),
        ),
        children=(GraphIdentity.SLABITEMS, GraphIdentity.SLABITEMTIME),
        fanout_source=StatSource.ITEMS,
    ),
    GraphDefinition(
        identity=GraphIdentity.MEMORY,
        config=_config(
            title='Memory Usage',
            vlabel='Bytes Used',
            info='This graph shows the memory consumption of memcached',
            args='--base 1024 --lower-limit 0',
        ),
        series=(
            SeriesDescriptor('limit_maxbytes', 'Maximum Bytes Allocated', draw='AREA'),
            SeriesDescriptor('bytes', 'Current Bytes Used', draw='AREA'),
        ),
        children=(GraphIdentity.SLABCHNKS,),
        fanout_source=StatSource.SLABS,
    ),
    GraphDefinition(
        identity=GraphIdentity.BYTES,
        config=_config(
            title='Network Traffic',
            vlabel='bits in (-) / out (+)',
            info='This graph shows the network traffic in (-) / out (+) of the machine',
            args='--base 1000',
            order='bytes_read bytes_written',
        ),
        series=(
            SeriesDescriptor('bytes_read', 'Network Traffic coming in (-)', type=DERIVE,
                             graph='no', cdef='bytes_read,8,*'),
            SeriesDescriptor('bytes_written', 'Traffic in (-) / out (+)', type=DERIVE,
                             negative='bytes_read', cdef='bytes_written,8,*'),
        ),
    ),
    GraphDefinition(
        identity=GraphIdentity.CONNS,
        config=_config(
            title='Connections',
            vlabel='Connections per ${graph_period}',
            info='This graph shows the number of connections being handled by memcached',
            order='max_conns curr_conns avg_conns',
        ),
        series=(
            SeriesDescriptor('curr_conns', 'Current Connections', source_key='curr_connections'),
            SeriesDescriptor('max_conns', 'Max Connections', source_key='maxconns'),
            SeriesDescriptor('avg_conns', 'Avg Connections', source_key='total_connections',
                             derivation=Derivation.PER_SECOND),
        ),
    ),
    GraphDefinition(
        identity=GraphIdentity.COMMANDS,
        config=_config(
            title='Commands',
            vlabel='Commands per ${graph_period}',
            info='This graph shows the number of commands being handled by memcached',
        ),
        series=(
            SeriesDescriptor('cmd_get', 'Gets', type=DERIVE,
                             info='Cumulative number of retrieval reqs'),
            SeriesDescriptor('cmd_set', 'Sets', type=DERIVE,
                             info='Cumulative number of storage reqs'),
            SeriesDescriptor('get_hits', 'Get Hits', type=DERIVE,
                             info='Number of keys that were requested and found'),
            SeriesDescriptor('get_misses', 'Get Misses', type=DERIVE,
                             info='Number of keys there were requested and not found'),
            SeriesDescriptor('delete_hits', 'Delete Hits', type=DERIVE,
                             info='Number of delete requests that resulted in a deletion of a key'),
            SeriesDescriptor('delete_misses', 'Delete Misses', type=DERIVE,
                             info='Number of delete requests for missing key'),
            SeriesDescriptor('incr_hits', 'Increment Hits', type=DERIVE,
                             info='Number of successful increment requests'),
            SeriesDescriptor('incr_misses', 'Increment Misses', type=DERIVE,
                             info='Number of unsuccessful increment requests'),
            SeriesDescriptor('decr_hits', 'Decrement Hits', type=DERIVE,
                             info='Number of successful decrement requests'),
            SeriesDescriptor('decr_misses', 'Decrement Misses', type=DERIVE,
                             info='Number of unsuccessful decrement requests'),
        ),
        children=(GraphIdentity.SLABHITS,),
        fanout_source=StatSource.SLABS,
    ),
    GraphDefinition(
        identity=GraphIdentity.EVICTIONS,
        config=_config(
            title='Evictions',
            vlabel='Evictions per ${graph_period}',
            info='This graph shows the number of evictions per second',
        ),
        series=(
            SeriesDescriptor('evictions', 'Evictions', type=DERIVE,
                             info='Cumulative Evictions Across All Slabs'),
            SeriesDescriptor('evicted_nonzero', 'Evictions prior to Expire', type=DERIVE,
                             info='Cumulative Evictions forced to expire prior to expiration',
                             derivation=Derivation.SUM_OVER_ITEMS),
            SeriesDescriptor('reclaimed', 'Reclaimed Items', type=DERIVE,
                             info='Cumulative Reclaimed Item Entries Across All Slabs',
                             version_gated=True),
        ),
        children=(GraphIdentity.SLABEVICS, GraphIdentity.SLABEVICTIME),
        fanout_source=StatSource.ITEMS,
    ),
    GraphDefinition(
        identity=GraphIdentity.SLABCHNKS,
        config=_config(
            title='Chunk Usage for Slab: ',
            vlabel='Available Chunks for this Slab',
            info='This graph shows you the chunk usage for this memory slab.',
        ),
        series=(
            SeriesDescriptor('total_chunks', 'Total Chunks Available'),
            SeriesDescriptor('used_chunks', 'Total Chunks in Use'),
            SeriesDescriptor('free_chunks', 'Total Chunks Not in Use (free)'),
        ),
        source=StatSource.SLABS,
        parent=GraphIdentity.MEMORY,
        chunk_size_in_title=True,
    ),
    GraphDefinition(
        identity=GraphIdentity.SLABHITS,
        config=_config(
            title='Hits for Slab: ',
            vlabel='Hits per Slab per ${graph_period}',
            info='This graph shows you the successful hit rate for this memory slab.',
        ),
        series=(
            SeriesDescriptor('get_hits', 'Get Requests', type=DERIVE),
            SeriesDescriptor('cmd_set', 'Set Requests', type=DERIVE),
            SeriesDescriptor('delete_hits', 'Delete Requests', type=DERIVE),
            SeriesDescriptor('incr_hits', 'Increment Requests', type=DERIVE),
            SeriesDescriptor('decr_hits', 'Decrement Requests', type=DERIVE),
        ),
        source=StatSource.SLABS,
        parent=GraphIdentity.COMMANDS,
    ),
    GraphDefinition(
        identity=GraphIdentity.SLABEVICS,
        config=_config(
            title='Evictions for Slab: ',
            vlabel='Evictions per Slab per ${graph_period}',
            info='This graph shows you the eviction rate for this memory slab.',
        ),
        series=(
            SeriesDescriptor('evicted', 'Total Evictions', type=DERIVE),
            SeriesDescriptor('evicted_nonzero', 'Evictions from LRU Prior to Expire', type=DERIVE),
            SeriesDescriptor('reclaimed', 'Reclaimed Expired Items', type=DERIVE,
                             info='This is number of times items were stored in expired entry memory space',
                             version_gated=True),
        ),
        source=StatSource.ITEMS,
        parent=GraphIdentity.EVICTIONS,
    ),
    GraphDefinition(
        identity=GraphIdentity.SLABEVICTIME,
        config=_config(
            title='Eviction Request Time for Slab: ',
            vlabel=' since Request for LEI',
            info='This graph shows you the time since we requested the last evicted item',
        ),
        series=(
            SeriesDescriptor('evicted_time', 'Eviction Time (LEI)',
                             info='Time Since Request for Last Evicted Item',
                             derivation=Derivation.TIME_SCALED),
        ),
        source=StatSource.ITEMS,
        parent=GraphIdentity.EVICTIONS,
        time_scaled_vlabel=True,
    ),
    GraphDefinition(
        identity=GraphIdentity.SLABITEMS,
        config=_config(
            title='Items in Slab: ',
            vlabel='Items per Slab',
            info='This graph shows you the number of items and reclaimed items per slab.',
        ),
        series=(
            SeriesDescriptor('number', 'Items', draw='AREA',
                             info='This is the amount of items stored in this slab'),
        ),
        source=StatSource.ITEMS,
        parent=GraphIdentity.ITEMS,
    ),
    GraphDefinition(
        identity=GraphIdentity.SLABITEMTIME,
        config=_config(
            title='Age of Eldest Item in Slab: ',
            vlabel=' since item was stored',
            info='This graph shows you the time of the eldest item in this slab',
        ),
        series=(
            SeriesDescriptor('age', "Eldest Item's Age", derivation=Derivation.TIME_SCALED),
        ),
        source=StatSource.ITEMS,
        parent=GraphIdentity.ITEMS,
        time_scaled_vlabel=True,
    ),
)

REGISTRY: Mapping[GraphIdentity, GraphDefinition] = MappingProxyType(
    {definition.identity: definition for definition in _DEFINITIONS}
)

# Order in which the collector's suggest step lists the root graphs
ROOT_IDENTITIES: Tuple[GraphIdentity, ...] = (
    GraphIdentity.BYTES,
    GraphIdentity.CONNS,
    GraphIdentity.COMMANDS,
    GraphIdentity.EVICTIONS,
    GraphIdentity.ITEMS,
    GraphIdentity.MEMORY,
)


def get_definition(identity, registry: Mapping[GraphIdentity, GraphDefinition] = REGISTRY) -> GraphDefinition:
    """Look up any graph, root or sub-graph, by identity or name"""
    try:
        return registry[GraphIdentity(identity)]
    except (ValueError, KeyError):
        raise UnknownIdentityError(str(identity) if identity else '') from None


def get_root(identity, registry: Mapping[GraphIdentity, GraphDefinition] = REGISTRY) -> GraphDefinition:
    """Look up a selectable root graph; sub-graph names are not selectable"""
    definition = get_definition(identity, registry)
    if not definition.is_root:
        raise UnknownIdentityError(definition.name)
    return definition


def children_of(definition: GraphDefinition,
                registry: Mapping[GraphIdentity, GraphDefinition] = REGISTRY) -> Tuple[GraphDefinition, ...]:
    return tuple(registry[child] for child in definition.children)
