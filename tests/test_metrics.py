from datetime import datetime, timedelta, timezone

import pytest

from corerad.metrics import (
    ADV_DNSSL_LIFETIME,
    ADV_MISCONFIGURATION,
    ADV_PREFIX_AUTONOMOUS,
    ADV_PREFIX_ON_LINK,
    ADV_PREFIX_PREFERRED,
    ADV_PREFIX_VALID,
    ADV_RDNSS_LIFETIME,
    ADV_ROUTE_LIFETIME,
    IFI_ADVERTISING,
    IFI_AUTOCONFIGURATION,
    IFI_FORWARDING,
    IFI_MONITORING,
    MemoryMetrics,
    Metrics,
    MetricsContext,
    Misconfiguration,
    collect_metrics,
)
from corerad.ndp import (
    DNSSearchList,
    PrefixInformation,
    RecursiveDNSServer,
    RouteInformation,
    RouterAdvertisement,
)

BASE = {
    "corerad_build_info": {"version=test": 1},
    "corerad_build_timestamp_seconds": {"": 0},
}

WAN = {
    IFI_ADVERTISING: {"interface=eth0": 0},
    IFI_AUTOCONFIGURATION: {"interface=eth0": 0},
    IFI_FORWARDING: {"interface=eth0": 1},
    IFI_MONITORING: {"interface=eth0": 1},
}

LAN = {
    IFI_ADVERTISING: {"interface=eth1": 1},
    IFI_AUTOCONFIGURATION: {"interface=eth1": 0},
    IFI_FORWARDING: {"interface=eth1": 1},
    IFI_MONITORING: {"interface=eth1": 0},
}

LAN_BAD = {
    IFI_ADVERTISING: {"interface=eth2": 1},
    IFI_AUTOCONFIGURATION: {"interface=eth2": 0},
    IFI_FORWARDING: {"interface=eth2": 0},
    IFI_MONITORING: {"interface=eth2": 0},
}


def merge(*maps):
    out = {}
    for m in maps:
        for name, samples in m.items():
            out.setdefault(name, {}).update(samples)
    return out


def nonempty(mm):
    return {name: s.samples for name, s in mm.series().items() if s.samples}


def build(scrape=None):
    return Metrics(MemoryMetrics(), "test", None, scrape)


def eth1_advertisement():
    return RouterAdvertisement(
        options=[
            DNSSearchList(
                lifetime=timedelta(minutes=5),
                domain_names=["foo.example.com", "bar.example.com"],
            ),
            PrefixInformation(prefix="2001:db8::", prefix_length=64),
            PrefixInformation(
                prefix="fdff:dead:beef:dead::",
                prefix_length=64,
                on_link=True,
                autonomous_address_configuration=True,
                valid_lifetime=timedelta(minutes=20),
                preferred_lifetime=timedelta(minutes=10),
            ),
            RecursiveDNSServer(lifetime=timedelta(minutes=10), servers=["2001:db8::1"]),
            RecursiveDNSServer(lifetime=timedelta(minutes=5), servers=["fdff::1", "fdff::2"]),
            RouteInformation(prefix="2001:db8::", prefix_length=48),
            RouteInformation(prefix="fdff::", prefix_length=48, route_lifetime=timedelta(minutes=10)),
        ]
    )


def full_contexts():
    return [
        MetricsContext(interface="eth0", forwarding=True, monitoring=True),
        MetricsContext(
            interface="eth1",
            advertising=True,
            forwarding=True,
            advertisement=eth1_advertisement(),
        ),
        MetricsContext(
            interface="eth2",
            advertising=True,
            forwarding=False,
            advertisement=RouterAdvertisement(router_lifetime=timedelta(minutes=1)),
            misconfigurations=[Misconfiguration.INTERFACE_NOT_FORWARDING],
        ),
    ]


def test_no_interfaces():
    assert nonempty(build()) == BASE


def test_interface_with_errors():
    def failing():
        raise OSError("some error")

    assert nonempty(build(failing)) == merge(BASE, {IFI_FORWARDING: {"": -1}})


def test_interface_not_configured():
    def scrape():
        return [MetricsContext(interface="eth2")]

    want = merge(BASE, LAN_BAD, {IFI_ADVERTISING: {"interface=eth2": 0}})
    assert nonempty(build(scrape)) == want


def test_interfaces_monitoring_and_advertising():
    want = merge(
        BASE,
        WAN,
        LAN,
        LAN_BAD,
        {
            ADV_MISCONFIGURATION: {"interface=eth2,details=interface_not_forwarding": 1},
            ADV_DNSSL_LIFETIME: {"interface=eth1,domains=foo.example.com, bar.example.com": 300},
            ADV_PREFIX_AUTONOMOUS: {
                "interface=eth1,prefix=2001:db8::/64": 0,
                "interface=eth1,prefix=fdff:dead:beef:dead::/64": 1,
            },
            ADV_PREFIX_ON_LINK: {
                "interface=eth1,prefix=2001:db8::/64": 0,
                "interface=eth1,prefix=fdff:dead:beef:dead::/64": 1,
            },
            ADV_PREFIX_VALID: {
                "interface=eth1,prefix=2001:db8::/64": 0,
                "interface=eth1,prefix=fdff:dead:beef:dead::/64": 1200,
            },
            ADV_PREFIX_PREFERRED: {
                "interface=eth1,prefix=2001:db8::/64": 0,
                "interface=eth1,prefix=fdff:dead:beef:dead::/64": 600,
            },
            ADV_RDNSS_LIFETIME: {
                "interface=eth1,servers=2001:db8::1": 600,
                "interface=eth1,servers=fdff::1, fdff::2": 300,
            },
            ADV_ROUTE_LIFETIME: {
                "interface=eth1,route=2001:db8::/48": 0,
                "interface=eth1,route=fdff::/48": 600,
            },
        },
    )
    assert nonempty(build(full_contexts)) == want


def test_const_samples_are_refreshed_per_scrape():
    state = {"forwarding": True}

    def scrape():
        return [MetricsContext(interface="eth0", forwarding=state["forwarding"])]

    mm = build(scrape)
    assert mm.series()[IFI_FORWARDING].samples == {"interface=eth0": 1}
    state["forwarding"] = False
    assert mm.series()[IFI_FORWARDING].samples == {"interface=eth0": 0}


def test_build_time_reported():
    when = datetime(2020, 1, 1, tzinfo=timezone.utc)
    mm = Metrics(MemoryMetrics(), "v1", when, None)
    series = mm.series()
    assert series["corerad_build_timestamp_seconds"].samples == {"": 1577836800}
    assert series["corerad_build_info"].samples == {"version=v1": 1}


def test_discarded_metrics_have_no_series():
    mm = Metrics(None, "test", None, None)
    mm.mon_flag_managed(1, "eth0", "::1")
    assert mm.series() is None


def test_memory_counter_and_gauge():
    memory = MemoryMetrics()
    add = memory.counter("c", "a counter", "interface")
    set_gauge = memory.gauge("g", "a gauge", "interface")
    add(1, "eth0")
    add(2.5, "eth0")
    set_gauge(3, "eth0")
    set_gauge(7, "eth0")
    series = memory.series()
    assert series["c"].samples == {"interface=eth0": 3.5}
    assert series["g"].samples == {"interface=eth0": 7}
    assert series["c"].help == "a counter"


def test_memory_series_is_a_snapshot():
    memory = MemoryMetrics()
    set_gauge = memory.gauge("g", "a gauge")
    set_gauge(1)
    snapshot = memory.series()
    set_gauge(2)
    assert snapshot["g"].samples == {"": 1}


def test_memory_label_count_mismatch():
    memory = MemoryMetrics()
    set_gauge = memory.gauge("g", "a gauge", "interface", "router")
    with pytest.raises(ValueError):
        set_gauge(1, "eth0")


def test_memory_duplicate_registration():
    memory = MemoryMetrics()
    memory.gauge("g", "a gauge")
    with pytest.raises(ValueError):
        memory.counter("g", "again")


def test_collect_metrics_unhandled_metric():
    with pytest.raises(ValueError):
        collect_metrics({"bogus_metric": lambda *a: None}, MetricsContext(interface="eth0"))


def test_collect_metrics_unhandled_misconfiguration():
    got = []
    with pytest.raises(ValueError):
        collect_metrics(
            {ADV_MISCONFIGURATION: lambda *a: got.append(a)},
            MetricsContext(interface="eth0", misconfigurations=["bogus"]),
        )
    assert got == []


def test_collect_metrics_without_advertisement():
    got = []
    collect_metrics(
        {ADV_PREFIX_VALID: lambda *a: got.append(a), IFI_MONITORING: lambda *a: got.append(a)},
        MetricsContext(interface="eth3", monitoring=True),
    )
    assert got == [(1.0, "eth3")]