#!/usr/bin/env python3
"""
Time Scale - Display units for the "time since" series

Memcached reports ages in seconds. The plugin can show them in seconds,
minutes, hours or days, selected by the integer ``timescale`` setting.
"""

from enum import Enum, IntEnum
from typing import Union

from .errors import InvalidModeError


class ScaleMode(Enum):
    CONFIG = 'config'
    DATA = 'data'


class TimeUnit(IntEnum):
    SECONDS = 1
    MINUTES = 2
    HOURS = 3
    DAYS = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def seconds(self) -> int:
        return _UNIT_SECONDS[self]

    @classmethod
    def from_code(cls, code) -> 'TimeUnit':
        """Resolve a timescale code, falling back to hours for anything unknown"""
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.HOURS


_UNIT_SECONDS = {
    TimeUnit.SECONDS: 1,
    TimeUnit.MINUTES: 60,
    TimeUnit.HOURS: 3600,
    TimeUnit.DAYS: 86400,
}


def normalize(mode: Union[ScaleMode, str], value, unit) -> str:
    """
    Scale a duration for display.

    Args:
        mode: ScaleMode.CONFIG returns the unit label prepended to ``value``
              (a vlabel suffix such as " since item was stored");
              ScaleMode.DATA divides ``value`` seconds by the unit size
        value: Label suffix (config) or number of seconds (data)
        unit: TimeUnit or raw timescale code

    Returns:
        str: "Hours since item was stored" or "2.00"
    """
    if isinstance(mode, str):
        mode = mode.lower()
    try:
        mode = ScaleMode(mode)
    except ValueError:
        raise InvalidModeError(mode) from None

    if not isinstance(unit, TimeUnit):
        unit = TimeUnit.from_code(unit)

    if mode is ScaleMode.CONFIG:
        return f"{unit.label}{value or ''}"

    try:
        seconds = float(value)
    except (TypeError, ValueError):
        seconds = 0.0
    return '%02.2f' % (seconds / unit.seconds)
