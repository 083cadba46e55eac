"""NDP messages and options, with helpers for selecting options by type."""

from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass, field
from datetime import timedelta
from typing import ClassVar, Iterable, Optional, Sequence, Type, TypeVar, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

T = TypeVar("T")

#: The URI which indicates that a network has no captive portal (RFC 8910).
UNRESTRICTED = "urn:ietf:params:capport:unrestricted"


class Preference(enum.IntEnum):
    """Default router or route preference values (RFC 4191)."""

    MEDIUM = 0
    HIGH = 1
    LOW = 3


class Direction(enum.IntEnum):
    """Whether a link-layer address option describes the source or the target."""

    SOURCE = 1
    TARGET = 2


def _address(value: Union[str, IPAddress]) -> IPAddress:
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    return ipaddress.ip_address(value)


def _hardware_address(value: Union[str, bytes]) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return bytes(int(part, 16) for part in value.split(":"))
    except ValueError as err:
        raise ValueError(f"ndp: invalid hardware address {value!r}") from err


@dataclass
class LinkLayerAddress:
    """A source or target link-layer address option."""

    direction: Direction
    addr: bytes

    def __post_init__(self) -> None:
        self.direction = Direction(self.direction)
        self.addr = _hardware_address(self.addr)

    def __str__(self) -> str:
        return ":".join(f"{b:02x}" for b in self.addr)


@dataclass
class MTU:
    """A maximum transmission unit option."""

    mtu: int

    def __post_init__(self) -> None:
        if not 0 <= self.mtu <= 0xFFFFFFFF:
            raise ValueError(f"ndp: MTU {self.mtu} out of range")


@dataclass
class PrefixInformation:
    """A prefix information option."""

    prefix: IPAddress
    prefix_length: int
    on_link: bool = False
    autonomous_address_configuration: bool = False
    valid_lifetime: timedelta = timedelta(0)
    preferred_lifetime: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        self.prefix = _address(self.prefix)


@dataclass
class RouteInformation:
    """A route information option (RFC 4191)."""

    prefix: IPAddress
    prefix_length: int
    preference: Preference = Preference.MEDIUM
    route_lifetime: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        self.prefix = _address(self.prefix)
        self.preference = Preference(self.preference)


@dataclass
class RecursiveDNSServer:
    """A recursive DNS servers option (RFC 8106)."""

    lifetime: timedelta = timedelta(0)
    servers: list = field(default_factory=list)

    def __post_init__(self) -> None:
        self.servers = [_address(s) for s in self.servers]


@dataclass
class DNSSearchList:
    """A DNS search list option (RFC 8106)."""

    lifetime: timedelta = timedelta(0)
    domain_names: list = field(default_factory=list)

    def __post_init__(self) -> None:
        self.domain_names = list(self.domain_names)


@dataclass
class CaptivePortal:
    """A captive portal option (RFC 8910)."""

    uri: str

    def __post_init__(self) -> None:
        if not self.uri:
            raise ValueError("ndp: captive portal option requires a non-empty URI")


@dataclass
class RouterAdvertisement:
    """An NDP router advertisement message."""

    message_type: ClassVar[str] = "router advertisement"

    current_hop_limit: int = 0
    managed_configuration: bool = False
    other_configuration: bool = False
    mobile_ipv6_home_agent: bool = False
    router_selection_preference: Preference = Preference.MEDIUM
    neighbor_discovery_proxy: bool = False
    router_lifetime: timedelta = timedelta(0)
    reachable_time: timedelta = timedelta(0)
    retransmit_timer: timedelta = timedelta(0)
    options: list = field(default_factory=list)

    def __post_init__(self) -> None:
        self.router_selection_preference = Preference(self.router_selection_preference)
        self.options = list(self.options)


@dataclass
class RouterSolicitation:
    """An NDP router solicitation message."""

    message_type: ClassVar[str] = "router solicitation"

    options: list = field(default_factory=list)

    def __post_init__(self) -> None:
        self.options = list(self.options)


def pick(options: Iterable[object], kind: Type[T]) -> list[T]:
    """Return every option of the given type, in order."""
    return [o for o in options if isinstance(o, kind)]


def pick_first(options: Iterable[object], kind: Type[T]) -> Optional[T]:
    """Return the first option of the given type, or None."""
    return next((o for o in options if isinstance(o, kind)), None)


def source_lla(options: Sequence[object]) -> str:
    """Return the source link-layer address as a string, or "unknown"."""
    for option in options:
        if isinstance(option, LinkLayerAddress) and option.direction is Direction.SOURCE:
            return str(option)
    return "unknown"


def cidr_str(prefix: Union[str, IPAddress], length: int) -> str:
    """Format an address and prefix length in CIDR notation without masking."""
    addr = _address(prefix)
    if not 0 <= length <= addr.max_prefixlen:
        raise ValueError(f"invalid prefix length {length} for {addr}")
    return f"{addr}/{length}"