"""Unpacking of router advertisements into JSON-friendly structures."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Iterable, Union

from corerad.ndp import (
    MTU,
    CaptivePortal,
    DNSSearchList,
    IPAddress,
    LinkLayerAddress,
    Preference,
    PrefixInformation,
    RecursiveDNSServer,
    RouteInformation,
    RouterAdvertisement,
    cidr_str,
)

_PREFERENCE_NAMES = {
    Preference.LOW: "low",
    Preference.MEDIUM: "medium",
    Preference.HIGH: "high",
}


def preference_string(preference: Union[Preference, int]) -> str:
    """Return "low", "medium" or "high"; raise ValueError for anything else."""
    try:
        return _PREFERENCE_NAMES[Preference(preference)]
    except ValueError as err:
        raise ValueError(f"crhttp: invalid preference {preference!r}") from err


def prefix_string(ip: Union[str, IPAddress], length: int) -> str:
    """Combine an address and prefix length into CIDR notation."""
    return cidr_str(ip, length)


def _seconds(td: timedelta) -> int:
    return int(td.total_seconds())


def _milliseconds(td: timedelta) -> int:
    return int(td / timedelta(milliseconds=1))


def pack_options(options: Iterable[object]) -> Dict[str, Any]:
    """Unpack NDP options into a dictionary keyed by JSON field names.

    Raises TypeError for an option kind that cannot be represented.
    """
    dnssl: list = []
    prefixes: list = []
    rdnss: list = []
    routes: list = []
    out: Dict[str, Any] = {
        "mtu": 0,
        "source_link_layer_address": "",
        "captive_portal": "",
    }

    for option in options:
        if isinstance(option, CaptivePortal):
            out["captive_portal"] = option.uri
        elif isinstance(option, DNSSearchList):
            dnssl.append(
                {
                    "lifetime_seconds": _seconds(option.lifetime),
                    "domain_names": list(option.domain_names),
                }
            )
        elif isinstance(option, LinkLayerAddress):
            out["source_link_layer_address"] = str(option)
        elif isinstance(option, MTU):
            out["mtu"] = int(option.mtu)
        elif isinstance(option, PrefixInformation):
            prefixes.append(
                {
                    "prefix": prefix_string(option.prefix, option.prefix_length),
                    "on_link": option.on_link,
                    "autonomous_address_autoconfiguration": (
                        option.autonomous_address_configuration
                    ),
                    "valid_lifetime_seconds": _seconds(option.valid_lifetime),
                    "preferred_lifetime_seconds": _seconds(option.preferred_lifetime),
                }
            )
        elif isinstance(option, RecursiveDNSServer):
            rdnss.append(
                {
                    "lifetime_seconds": _seconds(option.lifetime),
                    "servers": [str(server) for server in option.servers],
                }
            )
        elif isinstance(option, RouteInformation):
            routes.append(
                {
                    "prefix": prefix_string(option.prefix, option.prefix_length),
                    "preference": preference_string(option.preference),
                    "route_lifetime_seconds": _seconds(option.route_lifetime),
                }
            )
        else:
            raise TypeError(f"crhttp: unhandled NDP option: {option!r}")

    # Absent option kinds are reported as null, as the debug API does.
    out["dnssl"] = dnssl or None
    out["prefixes"] = prefixes or None
    out["rdnss"] = rdnss or None
    out["routes"] = routes or None
    return out


def pack_ra(ra: RouterAdvertisement) -> Dict[str, Any]:
    """Unpack a router advertisement into a dictionary keyed by JSON field names."""
    return {
        "current_hop_limit": int(ra.current_hop_limit),
        "managed_configuration": ra.managed_configuration,
        "other_configuration": ra.other_configuration,
        "mobile_ipv6_home_agent": ra.mobile_ipv6_home_agent,
        "router_selection_preference": preference_string(ra.router_selection_preference),
        "neighbor_discovery_proxy": ra.neighbor_discovery_proxy,
        "router_lifetime_seconds": _seconds(ra.router_lifetime),
        "reachable_time_milliseconds": _milliseconds(ra.reachable_time),
        "retransmit_timer_milliseconds": _milliseconds(ra.retransmit_timer),
        "options": pack_options(ra.options),
    }