#!/usr/bin/env python3
"""
Stat Tables - Parsed memcached statistics for one plugin run

Holds the three tables filled by the protocol client:

- ``general``: ``stats`` and ``stats settings`` merged, key -> value
- ``slabs``: ``stats slabs`` grouped by slab class id
- ``items``: ``stats items`` grouped by slab class id

Values are kept as the strings the server sent; the renderer decides how
to format them.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r'^\s*(\d+(?:\.\d+)*)')

# Servers in this range do not report reclaimed items reliably
RECLAIMED_MISSING_FROM = (1, 4, 0)
RECLAIMED_MISSING_UNTIL = (1, 4, 2)


def parse_version(version: Optional[str]) -> Optional[Tuple[int, ...]]:
    """Parse the leading dotted digits of a version string, "1.4.2-rc1" -> (1, 4, 2)"""
    if not version:
        return None
    match = _VERSION_RE.match(version)
    if not match:
        logger.warning(f"Unrecognized memcached version string: {version!r}")
        return None
    return tuple(int(part) for part in match.group(1).split('.'))


def _pad(version: Tuple[int, ...], width: int = 3) -> Tuple[int, ...]:
    return version + (0,) * (width - len(version))


@dataclass
class StatTables:
    general: Dict[str, str] = field(default_factory=dict)
    slabs: Dict[int, Dict[str, str]] = field(default_factory=dict)
    items: Dict[int, Dict[str, str]] = field(default_factory=dict)

    def slab_ids(self) -> List[int]:
        return sorted(self.slabs)

    def item_ids(self) -> List[int]:
        return sorted(self.items)

    def slab(self, slab_id: int) -> Dict[str, str]:
        return self.slabs.get(slab_id, {})

    def item(self, slab_id: int) -> Dict[str, str]:
        return self.items.get(slab_id, {})

    @property
    def version(self) -> Optional[Tuple[int, ...]]:
        return parse_version(self.general.get('version'))

    def reports_reclaimed(self) -> bool:
        """False for the early 1.4.x releases that lack the reclaimed counter"""
        version = self.version
        if version is None:
            return True
        version = _pad(version)[:3]
        return not (RECLAIMED_MISSING_FROM <= version <= RECLAIMED_MISSING_UNTIL)

    def __repr__(self):
        return (f"StatTables(general={len(self.general)}, "
                f"slabs={self.slab_ids()}, items={self.item_ids()})")
