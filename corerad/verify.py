"""Consistency checks between router advertisements (RFC 4861, section 6.2.7)."""

from __future__ import annotations

import ipaddress
import json
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Iterable, List, Sequence

from corerad.ndp import (
    MTU,
    CaptivePortal,
    DNSSearchList,
    PrefixInformation,
    RecursiveDNSServer,
    RouteInformation,
    RouterAdvertisement,
    cidr_str,
    pick,
    pick_first,
)

_STRINGERS = (timedelta, ipaddress.IPv4Address, ipaddress.IPv6Address)


@dataclass(frozen=True)
class Problem:
    """An inconsistency detected in another router's advertisement."""

    field: str
    details: str
    message: str


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _fraction(value: int, scale: int) -> str:
    whole, frac = divmod(value, scale)
    if not frac:
        return str(whole)
    width = len(str(scale)) - 1
    return f"{whole}.{str(frac).rjust(width, '0').rstrip('0')}"


def format_duration(td: timedelta) -> str:
    """Format a duration the way lifetimes are reported, such as "1m30s"."""
    ns = (td // timedelta(microseconds=1)) * 1000
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns == 0:
        return "0s"
    if ns < 1_000:
        return f"{sign}{ns}ns"
    if ns < 1_000_000:
        return f"{sign}{_fraction(ns, 1_000)}µs"
    if ns < 1_000_000_000:
        return f"{sign}{_fraction(ns, 1_000_000)}ms"

    hours, rem = divmod(ns, 3_600_000_000_000)
    minutes, rem = divmod(rem, 60_000_000_000)
    seconds = f"{_fraction(rem, 1_000_000_000)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return f"{sign}{seconds}"


def _stringify(value: Any) -> str:
    if isinstance(value, timedelta):
        return format_duration(value)
    return str(value)


def _plain(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def new_problem(field: str, details: str, want: Any, got: Any) -> Problem:
    """Build a Problem describing the wanted and received values.

    Raises TypeError if want and got are not of the same type.
    """
    if type(want) is not type(got):
        raise TypeError(
            f"corerad: new_problem types must match: "
            f"{type(want).__name__} != {type(got).__name__}"
        )

    if isinstance(want, str):
        message = f"want: {_quote(want)}, got: {_quote(got)}"
    elif isinstance(want, _STRINGERS):
        message = f"want: {_quote(_stringify(want))}, got: {_quote(_stringify(got))}"
    else:
        message = f"want: {_plain(want)}, got: {_plain(got)}"

    return Problem(field=field, details=details, message=message)


def _join(items: Iterable[Any]) -> str:
    return ", ".join(str(item) for item in items)


def _check_durations(want: timedelta, got: timedelta) -> bool:
    # An unspecified duration on either side is always consistent.
    if not want or not got:
        return True
    return want == got


def _check_ras(a: RouterAdvertisement, b: RouterAdvertisement) -> List[Problem]:
    ps: List[Problem] = []
    if a.current_hop_limit != b.current_hop_limit:
        ps.append(new_problem("hop_limit", "", a.current_hop_limit, b.current_hop_limit))
    if a.managed_configuration != b.managed_configuration:
        ps.append(
            new_problem(
                "managed_configuration", "", a.managed_configuration, b.managed_configuration
            )
        )
    if a.other_configuration != b.other_configuration:
        ps.append(
            new_problem("other_configuration", "", a.other_configuration, b.other_configuration)
        )
    if not _check_durations(a.reachable_time, b.reachable_time):
        ps.append(new_problem("reachable_time", "", a.reachable_time, b.reachable_time))
    if not _check_durations(a.retransmit_timer, b.retransmit_timer):
        ps.append(new_problem("retransmit_timer", "", a.retransmit_timer, b.retransmit_timer))
    return ps


def _check_mtus(want: Sequence[object], got: Sequence[object]) -> List[Problem]:
    mtu_a = pick_first(want, MTU)
    mtu_b = pick_first(got, MTU)
    if mtu_a is None or mtu_b is None or mtu_a == mtu_b:
        return []
    return [new_problem("mtu", "", mtu_a.mtu, mtu_b.mtu)]


def _check_prefixes(want: Sequence[object], got: Sequence[object]) -> List[Problem]:
    ps: List[Problem] = []
    for a in pick(want, PrefixInformation):
        for b in pick(got, PrefixInformation):
            if a.prefix != b.prefix or a.prefix_length != b.prefix_length:
                continue
            details = cidr_str(a.prefix, a.prefix_length)
            if a.preferred_lifetime != b.preferred_lifetime:
                ps.append(
                    new_problem(
                        "prefix_information_preferred_lifetime",
                        details,
                        a.preferred_lifetime,
                        b.preferred_lifetime,
                    )
                )
            if a.valid_lifetime != b.valid_lifetime:
                ps.append(
                    new_problem(
                        "prefix_information_valid_lifetime",
                        details,
                        a.valid_lifetime,
                        b.valid_lifetime,
                    )
                )
    return ps


def _check_routes(want: Sequence[object], got: Sequence[object]) -> List[Problem]:
    ps: List[Problem] = []
    for a in pick(want, RouteInformation):
        for b in pick(got, RouteInformation):
            if a.prefix != b.prefix or a.prefix_length != b.prefix_length:
                continue
            # Differing preferences are left for the client to resolve.
            if a.preference == b.preference and a.route_lifetime != b.route_lifetime:
                ps.append(
                    new_problem(
                        "route_information_lifetime",
                        cidr_str(a.prefix, a.prefix_length),
                        a.route_lifetime,
                        b.route_lifetime,
                    )
                )
    return ps


def _check_rdnss(want: Sequence[object], got: Sequence[object]) -> List[Problem]:
    dns_a = pick(want, RecursiveDNSServer)
    dns_b = pick(got, RecursiveDNSServer)
    if not dns_a or not dns_b:
        return []
    if len(dns_a) != len(dns_b):
        return [new_problem("rdnss_count", "", len(dns_a), len(dns_b))]

    ps: List[Problem] = []
    for a, b in zip(dns_a, dns_b):
        if a.lifetime != b.lifetime:
            ps.append(new_problem("rdnss_lifetime", "", a.lifetime, b.lifetime))
        if list(a.servers) != list(b.servers):
            ps.append(new_problem("rdnss_servers", "", _join(a.servers), _join(b.servers)))
    return ps


def _check_dnssl(want: Sequence[object], got: Sequence[object]) -> List[Problem]:
    dns_a = pick(want, DNSSearchList)
    dns_b = pick(got, DNSSearchList)
    if not dns_a or not dns_b:
        return []
    if len(dns_a) != len(dns_b):
        return [new_problem("dnssl_count", "", len(dns_a), len(dns_b))]

    ps: List[Problem] = []
    for a, b in zip(dns_a, dns_b):
        if a.lifetime != b.lifetime:
            ps.append(new_problem("dnssl_lifetime", "", a.lifetime, b.lifetime))
        if list(a.domain_names) != list(b.domain_names):
            ps.append(
                new_problem(
                    "dnssl_domain_names", "", _join(a.domain_names), _join(b.domain_names)
                )
            )
    return ps


def _check_captive_portal(want: Sequence[object], got: Sequence[object]) -> List[Problem]:
    cp_a = pick_first(want, CaptivePortal)
    cp_b = pick_first(got, CaptivePortal)
    if cp_a is None or cp_b is None or cp_a == cp_b:
        return []
    return [new_problem("captive_portal", "", cp_a.uri, cp_b.uri)]


def verify_ras(a: RouterAdvertisement, b: RouterAdvertisement) -> List[Problem]:
    """Return the inconsistencies between two router advertisements."""
    return [
        *_check_ras(a, b),
        *_check_mtus(a.options, b.options),
        *_check_prefixes(a.options, b.options),
        *_check_routes(a.options, b.options),
        *_check_rdnss(a.options, b.options),
        *_check_dnssl(a.options, b.options),
        *_check_captive_portal(a.options, b.options),
    ]