"""Bitmask of network interface state changes."""

from __future__ import annotations

import enum


class Change(enum.IntFlag):
    """A bitmask of possible changes to a network interface's state.

    The link values follow the RFC 2863 ``ifOperStatus`` states.
    """

    LINK_UP = 1 << 0
    LINK_DOWN = 1 << 1
    LINK_TESTING = 1 << 2
    LINK_UNKNOWN = 1 << 3
    LINK_DORMANT = 1 << 4
    LINK_NOT_PRESENT = 1 << 5
    LINK_LOWER_LAYER_DOWN = 1 << 6

    LINK_ANY = (
        LINK_UP
        | LINK_DOWN
        | LINK_TESTING
        | LINK_UNKNOWN
        | LINK_DORMANT
        | LINK_NOT_PRESENT
        | LINK_LOWER_LAYER_DOWN
    )

    def __str__(self) -> str:
        value = int(self)
        if value == int(Change.LINK_ANY):
            return "link ANY"

        names = [name for bit, name in _CHANGE_NAMES if value & bit]
        return "|".join(names) if names else "0"


_CHANGE_NAMES = (
    (int(Change.LINK_UP), "link up"),
    (int(Change.LINK_DOWN), "link down"),
    (int(Change.LINK_TESTING), "link testing"),
    (int(Change.LINK_UNKNOWN), "link unknown"),
    (int(Change.LINK_DORMANT), "link dormant"),
    (int(Change.LINK_NOT_PRESENT), "link not present"),
    (int(Change.LINK_LOWER_LAYER_DOWN), "link lower layer down"),
)