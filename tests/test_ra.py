import json
from datetime import timedelta

import pytest

from corerad.ndp import (
    MTU,
    UNRESTRICTED,
    CaptivePortal,
    Direction,
    DNSSearchList,
    LinkLayerAddress,
    Preference,
    PrefixInformation,
    RecursiveDNSServer,
    RouteInformation,
    RouterAdvertisement,
    RouterSolicitation,
)
from corerad.ra import pack_options, pack_ra, preference_string, prefix_string


def _full_ra():
    return RouterAdvertisement(
        current_hop_limit=64,
        router_lifetime=timedelta(minutes=30),
        reachable_time=timedelta(milliseconds=12345),
        options=[
            LinkLayerAddress(Direction.SOURCE, "de:ad:be:ef:de:ad"),
            MTU(1500),
            PrefixInformation(
                prefix="2001:db8::",
                prefix_length=64,
                autonomous_address_configuration=True,
                valid_lifetime=timedelta(minutes=10),
                preferred_lifetime=timedelta(minutes=5),
            ),
            PrefixInformation(
                prefix="fdff:dead:beef:dead::",
                prefix_length=64,
                on_link=True,
                autonomous_address_configuration=True,
                valid_lifetime=timedelta(minutes=10),
                preferred_lifetime=timedelta(minutes=5),
            ),
            DNSSearchList(lifetime=timedelta(hours=1), domain_names=["lan.example.com"]),
            RecursiveDNSServer(
                lifetime=timedelta(hours=1), servers=["2001:db8::1", "2001:db8::2"]
            ),
            RouteInformation(
                prefix="2001:db8:ffff::",
                prefix_length=48,
                preference=Preference.HIGH,
                route_lifetime=timedelta(minutes=10),
            ),
            CaptivePortal(UNRESTRICTED),
        ],
    )


def test_pack_ra_full():
    want = {
        "current_hop_limit": 64,
        "managed_configuration": False,
        "other_configuration": False,
        "mobile_ipv6_home_agent": False,
        "router_selection_preference": "medium",
        "neighbor_discovery_proxy": False,
        "router_lifetime_seconds": 60 * 30,
        "reachable_time_milliseconds": 12345,
        "retransmit_timer_milliseconds": 0,
        "options": {
            "dnssl": [{"lifetime_seconds": 60 * 60, "domain_names": ["lan.example.com"]}],
            "mtu": 1500,
            "prefixes": [
                {
                    "prefix": "2001:db8::/64",
                    "on_link": False,
                    "autonomous_address_autoconfiguration": True,
                    "valid_lifetime_seconds": 60 * 10,
                    "preferred_lifetime_seconds": 60 * 5,
                },
                {
                    "prefix": "fdff:dead:beef:dead::/64",
                    "on_link": True,
                    "autonomous_address_autoconfiguration": True,
                    "valid_lifetime_seconds": 60 * 10,
                    "preferred_lifetime_seconds": 60 * 5,
                },
            ],
            "rdnss": [
                {"lifetime_seconds": 60 * 60, "servers": ["2001:db8::1", "2001:db8::2"]}
            ],
            "routes": [
                {
                    "prefix": "2001:db8:ffff::/48",
                    "preference": "high",
                    "route_lifetime_seconds": 60 * 10,
                }
            ],
            "source_link_layer_address": "de:ad:be:ef:de:ad",
            "captive_portal": UNRESTRICTED,
        },
    }
    assert pack_ra(_full_ra()) == want


def test_pack_ra_json_round_trip():
    packed = pack_ra(_full_ra())
    assert json.loads(json.dumps(packed)) == packed


def test_pack_options_empty_uses_nulls():
    out = pack_options([])
    assert out["dnssl"] is None
    assert out["prefixes"] is None
    assert out["rdnss"] is None
    assert out["routes"] is None
    assert out["mtu"] == 0
    assert out["source_link_layer_address"] == ""
    assert out["captive_portal"] == ""


def test_pack_options_rejects_unknown_option():
    with pytest.raises(TypeError):
        pack_options([RouterSolicitation()])


@pytest.mark.parametrize(
    "pref, want",
    [(Preference.LOW, "low"), (Preference.MEDIUM, "medium"), (Preference.HIGH, "high")],
)
def test_preference_string(pref, want):
    assert preference_string(pref) == want


def test_preference_string_invalid():
    with pytest.raises(ValueError):
        preference_string(2)


def test_prefix_string_keeps_address():
    assert prefix_string("2001:db8:ffff::", 48) == "2001:db8:ffff::/48"


def test_prefix_string_invalid_length():
    with pytest.raises(ValueError):
        prefix_string("2001:db8::", 129)


def test_pack_options_preserves_order():
    opts = [
        RouteInformation(prefix="2001:db8::", prefix_length=48, preference=Preference.LOW),
        RouteInformation(prefix="fdff::", prefix_length=48),
    ]
    routes = pack_options(opts)["routes"]
    assert [r["prefix"] for r in routes] == ["2001:db8::/48", "fdff::/48"]
    assert [r["preference"] for r in routes] == ["low", "medium"]