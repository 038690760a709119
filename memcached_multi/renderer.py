#!/usr/bin/env python3
"""
Renderer - Turns registry definitions and parsed stats into collector output

Multigraph roots are written as one block per (sub-graph template, slab id)
pair, slab ids ascending, followed by the root summary block:

    multigraph memcached_multi_items.slabitems_1
    ...
    multigraph memcached_multi_items

Flat roots (bytes, conns) are written as a single block with no
``multigraph`` line.
"""

import logging
from enum import Enum
from typing import List, Mapping, Optional, Union

from .graphs import (
    REGISTRY, Derivation, GraphDefinition, GraphIdentity, SeriesDescriptor,
    StatSource, children_of, get_root,
)
from .stat_tables import StatTables
from .timescale import ScaleMode, TimeUnit, normalize

DEFAULT_GRAPH_PREFIX = 'memcached_multi_'
MISSING_VALUE = '0'


class RenderMode(Enum):
    CONFIG = 'config'
    VALUES = 'values'


def _number(value) -> Union[int, float]:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


class Renderer:
    """Renders one selected root graph against a set of StatTables"""

    def __init__(self, tables: StatTables,
                 registry: Mapping[GraphIdentity, GraphDefinition] = REGISTRY,
                 timescale: Union[TimeUnit, int, str, None] = TimeUnit.HOURS,
                 graph_prefix: str = DEFAULT_GRAPH_PREFIX):
        self.tables = tables
        self.registry = registry
        self.timescale = timescale if isinstance(timescale, TimeUnit) else TimeUnit.from_code(timescale)
        self.graph_prefix = graph_prefix
        self.logger = logging.getLogger(__name__)
        self._reclaimed_reported = tables.reports_reclaimed()
        self._warned_reclaimed = False

    def render(self, identity, mode: Union[RenderMode, str]) -> List[str]:
        """
        Render the root graph ``identity``.

        Raises:
            UnknownIdentityError: identity is not a root graph of the registry
        """
        definition = get_root(identity, self.registry)
        if isinstance(mode, str):
            mode = mode.lower()
        mode = RenderMode(mode)
        root_name = f"{self.graph_prefix}{definition.name}"

        if not definition.is_multigraph:
            return self._render_graph(definition, mode, root_name, multigraph=False)

        slab_ids = self._entity_ids(definition.fanout_source)
        self.logger.debug(f"Rendering {root_name} for slabs {slab_ids}")

        lines = []
        for child in children_of(definition, self.registry):
            for slab_id in slab_ids:
                name = f"{root_name}.{child.name}_{slab_id}"
                lines.extend(self._render_graph(child, mode, name, slab_id=slab_id))
        lines.extend(self._render_graph(definition, mode, root_name))
        return lines

    def _entity_ids(self, source: Optional[StatSource]) -> List[int]:
        if source is StatSource.SLABS:
            return self.tables.slab_ids()
        if source is StatSource.ITEMS:
            return self.tables.item_ids()
        return []

    def _visible_series(self, definition: GraphDefinition) -> List[SeriesDescriptor]:
        visible = [
            series for series in definition.series
            if self._reclaimed_reported or not series.version_gated
        ]
        if len(visible) < len(definition.series) and not self._warned_reclaimed:
            self._warned_reclaimed = True
            self.logger.warning(
                f"memcached {self.tables.general.get('version')} does not report reclaimed items, "
                f"omitting the reclaimed series"
            )
        return visible

    def _render_graph(self, definition: GraphDefinition, mode: RenderMode, name: str,
                      slab_id: Optional[int] = None, multigraph: bool = True) -> List[str]:
        lines = [f"multigraph {name}"] if multigraph else []
        if mode is RenderMode.CONFIG:
            lines.extend(self._config_lines(definition, slab_id))
        else:
            lines.extend(self._value_lines(definition, slab_id))
        return lines

    def _config_lines(self, definition: GraphDefinition, slab_id: Optional[int]) -> List[str]:
        lines = []
        for key, value in definition.config:
            if key == 'title' and slab_id is not None:
                value = f"{value}{slab_id}"
                if definition.chunk_size_in_title:
                    chunk_size = self.tables.slab(slab_id).get('chunk_size', MISSING_VALUE)
                    value += f" ({chunk_size} Bytes)"
            elif key == 'vlabel' and definition.time_scaled_vlabel:
                value = normalize(ScaleMode.CONFIG, value, self.timescale)
            lines.append(f"graph_{key} {value}")

        for series in self._visible_series(definition):
            for attr, value in series.attributes():
                lines.append(f"{series.name}.{attr} {value}")
        return lines

    def _value_lines(self, definition: GraphDefinition, slab_id: Optional[int]) -> List[str]:
        return [
            f"{series.name}.value {self._value(definition, series, slab_id)}"
            for series in self._visible_series(definition)
        ]

    def _source_table(self, source: StatSource, slab_id: Optional[int]) -> Mapping[str, str]:
        if source is StatSource.SLABS:
            return self.tables.slab(slab_id)
        if source is StatSource.ITEMS:
            return self.tables.item(slab_id)
        return self.tables.general

    def _value(self, definition: GraphDefinition, series: SeriesDescriptor,
               slab_id: Optional[int]) -> str:
        if series.derivation is Derivation.PER_SECOND:
            uptime = _number(self.tables.general.get('uptime'))
            if not uptime:
                return '%02d' % 0
            return '%02d' % (_number(self.tables.general.get(series.key)) / uptime)

        if series.derivation is Derivation.SUM_OVER_ITEMS:
            total = sum(_number(self.tables.item(i).get(series.key)) for i in self.tables.item_ids())
            return str(total)

        value = self._source_table(definition.source, slab_id).get(series.key)
        if series.derivation is Derivation.TIME_SCALED:
            return normalize(ScaleMode.DATA, value if value is not None else 0, self.timescale)
        if value is None:
            return MISSING_VALUE
        try:
            float(value)
        except ValueError:
            self.logger.warning(f"Non-numeric value {value!r} for {series.key}, reporting {MISSING_VALUE}")
            return MISSING_VALUE
        return value


def render(identity, mode: Union[RenderMode, str], tables: StatTables,
           registry: Mapping[GraphIdentity, GraphDefinition] = REGISTRY,
           timescale: Union[TimeUnit, int, str, None] = TimeUnit.HOURS,
           graph_prefix: str = DEFAULT_GRAPH_PREFIX) -> List[str]:
    """Render ``identity`` in ``mode`` and return the output lines"""
    renderer = Renderer(tables, registry=registry, timescale=timescale, graph_prefix=graph_prefix)
    return renderer.render(identity, mode)
