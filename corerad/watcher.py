"""Notification of network interface state changes."""

from __future__ import annotations

import enum
import os
import socket
import struct
import sys
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional

from corerad.change import Change

ChangeSet = Dict[str, List[Change]]
NotifyFunc = Callable[[ChangeSet], None]
WatchFunc = Callable[[threading.Event, NotifyFunc], None]

_SUBSCRIPTION_BUFFER = 8
_POLL_INTERVAL = 0.25

# Netlink wire format.
_NLMSG_HDR = struct.Struct("=IHHII")
_IFINFOMSG = struct.Struct("=BxHiII")
_RTATTR = struct.Struct("=HH")
_NLMSG_ERROR = 2
_NLMSG_DONE = 3
_RTM_NEWLINK = 16
_RTM_DELLINK = 17
_IFLA_IFNAME = 3
_IFLA_OPERSTATE = 16
_NLA_TYPE_MASK = 0x3FFF
_RTMGRP_LINK = 1


class OperationalState(enum.IntEnum):
    """RFC 2863 operational state values reported by route netlink."""

    UNKNOWN = 0
    NOT_PRESENT = 1
    DOWN = 2
    LOWER_LAYER_DOWN = 3
    TESTING = 4
    DORMANT = 5
    UP = 6


@dataclass
class LinkMessage:
    """A route netlink link message; name is None when it carried no attributes."""

    name: Optional[str] = None
    operational_state: int = OperationalState.UNKNOWN


_OPER_STATE_CHANGES = {
    OperationalState.UNKNOWN: Change.LINK_UNKNOWN,
    OperationalState.NOT_PRESENT: Change.LINK_NOT_PRESENT,
    OperationalState.DOWN: Change.LINK_DOWN,
    OperationalState.LOWER_LAYER_DOWN: Change.LINK_LOWER_LAYER_DOWN,
    OperationalState.TESTING: Change.LINK_TESTING,
    OperationalState.DORMANT: Change.LINK_DORMANT,
    OperationalState.UP: Change.LINK_UP,
}


def oper_state_change(state: int) -> Optional[Change]:
    """Convert an operational state to a Change, or None if unrecognised."""
    try:
        return _OPER_STATE_CHANGES[OperationalState(state)]
    except ValueError:
        return None


def process(messages) -> ChangeSet:
    """Build a change set from received route netlink messages."""
    changes: ChangeSet = {}
    for message in messages:
        if not isinstance(message, LinkMessage) or message.name is None:
            continue
        change = oper_state_change(message.operational_state)
        if change is None:
            continue
        changes.setdefault(message.name, []).append(change)
    return changes


def _align(n: int) -> int:
    return (n + 3) & ~3


def _parse_link(body: bytes) -> LinkMessage:
    if len(body) < _IFINFOMSG.size:
        raise ValueError("netstate: short link message")

    name = ""
    state = int(OperationalState.UNKNOWN)
    offset = _IFINFOMSG.size
    while offset + _RTATTR.size <= len(body):
        length, attr_type = _RTATTR.unpack_from(body, offset)
        if length < _RTATTR.size or offset + length > len(body):
            raise ValueError("netstate: invalid route attribute length")
        payload = body[offset + _RTATTR.size : offset + length]
        attr_type &= _NLA_TYPE_MASK
        if attr_type == _IFLA_IFNAME:
            name = payload.split(b"\0", 1)[0].decode()
        elif attr_type == _IFLA_OPERSTATE and payload:
            state = payload[0]
        offset += _align(length)

    return LinkMessage(name=name, operational_state=state)


def parse_link_messages(data: bytes) -> list[LinkMessage]:
    """Decode link messages from a buffer of netlink messages.

    Other message types are skipped; a netlink error message raises OSError.
    """
    messages: list[LinkMessage] = []
    offset = 0
    while offset < len(data):
        if len(data) - offset < _NLMSG_HDR.size:
            raise ValueError("netstate: short netlink message header")
        length, msg_type, _flags, _seq, _pid = _NLMSG_HDR.unpack_from(data, offset)
        if length < _NLMSG_HDR.size or offset + length > len(data):
            raise ValueError("netstate: invalid netlink message length")
        body = data[offset + _NLMSG_HDR.size : offset + length]
        offset += _align(length)

        if msg_type == _NLMSG_DONE:
            break
        if msg_type == _NLMSG_ERROR:
            if len(body) < 4:
                raise ValueError("netstate: short netlink error message")
            (code,) = struct.unpack_from("=i", body)
            if code:
                raise OSError(-code, os.strerror(-code))
            continue
        if msg_type in (_RTM_NEWLINK, _RTM_DELLINK):
            messages.append(_parse_link(body))

    return messages


def os_watch(stop: threading.Event, notify: NotifyFunc) -> None:
    """Watch route netlink link events until stop is set.

    Raises FileNotFoundError where watching is not supported.
    """
    if not sys.platform.startswith("linux") or not hasattr(socket, "AF_NETLINK"):
        raise FileNotFoundError(f"netstate: Watcher not implemented on {sys.platform!r}")

    try:
        sock = socket.socket(socket.AF_NETLINK, socket.SOCK_RAW, socket.NETLINK_ROUTE)
        sock.bind((0, _RTMGRP_LINK))
    except OSError as err:
        raise OSError(f"netstate: watcher failed to dial route netlink: {err}") from err

    with sock:
        sock.settimeout(_POLL_INTERVAL)
        while not stop.is_set():
            try:
                data = sock.recv(1 << 16)
            except socket.timeout:
                continue
            except OSError as err:
                if stop.is_set():
                    return
                raise OSError(
                    f"netstate: watcher failed to listen for route netlink messages: {err}"
                ) from err
            notify(process(parse_link_messages(data)))


class Subscription:
    """A bounded stream of Changes; changes beyond its capacity are dropped."""

    def __init__(self, capacity: int = _SUBSCRIPTION_BUFFER) -> None:
        self._capacity = capacity
        self._queue: deque[Change] = deque()
        self._closed = False
        self._cond = threading.Condition()

    def _offer(self, change: Change) -> bool:
        with self._cond:
            if self._closed or len(self._queue) >= self._capacity:
                return False
            self._queue.append(change)
            self._cond.notify()
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[Change]:
        """Return the next Change, or None once closed and drained.

        Raises TimeoutError if nothing arrives within timeout seconds.
        """
        with self._cond:
            ready = self._cond.wait_for(lambda: self._queue or self._closed, timeout)
            if not ready:
                raise TimeoutError("netstate: no change received before timeout")
            if self._queue:
                return self._queue.popleft()
            return None

    def close(self) -> None:
        """Close the subscription; pending changes may still be read."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[Change]:
        while (change := self.get()) is not None:
            yield change


class Watcher:
    """Watches for interface state changes and notifies subscribers."""

    def __init__(self, watch_fn: Optional[WatchFunc] = None) -> None:
        self._watch_fn = watch_fn if watch_fn is not None else os_watch
        self._lock = threading.Lock()
        self._subs: dict[str, dict[Change, list[Subscription]]] = {}
        self._watching = False

    def subscribe(self, iface: str, changes: Change) -> Subscription:
        """Register interest in a bitmask of changes on an interface."""
        sub = Subscription()
        with self._lock:
            self._subs.setdefault(iface, {}).setdefault(Change(changes), []).append(sub)
        return sub

    def watch(self, stop: Optional[threading.Event] = None) -> None:
        """Run until stop is set or an error occurs, then close all subscriptions.

        Raises RuntimeError if called more than once.
        """
        with self._lock:
            if self._watching:
                raise RuntimeError("netstate: multiple calls to Watcher.watch")
            self._watching = True

        if stop is None:
            stop = threading.Event()

        try:
            self._watch_fn(stop, self._notify)
        finally:
            with self._lock:
                for by_mask in self._subs.values():
                    for subs in by_mask.values():
                        for sub in subs:
                            sub.close()

    def _notify(self, changed: ChangeSet) -> None:
        with self._lock:
            for iface, changes in changed.items():
                interest = self._subs.get(iface)
                if not interest:
                    continue
                for change in changes:
                    for mask, subs in interest.items():
                        if not mask & change:
                            continue
                        for sub in subs:
                            sub._offer(change)