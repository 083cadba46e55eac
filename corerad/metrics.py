"""Metrics for advertising and monitoring interfaces, with in-memory storage."""

from __future__ import annotations

import enum
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from corerad.ndp import (
    DNSSearchList,
    PrefixInformation,
    RecursiveDNSServer,
    RouteInformation,
    RouterAdvertisement,
    cidr_str,
    pick,
)

Setter = Callable[..., None]
ScrapeFunc = Callable[[Dict[str, Setter]], None]

IFI_ADVERTISING = "corerad_interface_advertising"
IFI_AUTOCONFIGURATION = "corerad_interface_autoconfiguration"
IFI_FORWARDING = "corerad_interface_forwarding"
IFI_MONITORING = "corerad_interface_monitoring"
MSG_INVALID = "corerad_messages_received_invalid_total"
ADV_DNSSL_LIFETIME = "corerad_advertiser_dnssl_lifetime_seconds"
ADV_INCONSISTENCIES = "corerad_advertiser_inconsistencies_total"
ADV_MISCONFIGURATION = "corerad_advertiser_misconfiguration"
ADV_PREFIX_AUTONOMOUS = "corerad_advertiser_prefix_autonomous"
ADV_PREFIX_ON_LINK = "corerad_advertiser_prefix_on_link"
ADV_PREFIX_VALID = "corerad_advertiser_prefix_valid_seconds"
ADV_PREFIX_PREFERRED = "corerad_advertiser_prefix_preferred_seconds"
ADV_RDNSS_LIFETIME = "corerad_advertiser_rdnss_lifetime_seconds"
ADV_ROUTE_LIFETIME = "corerad_advertiser_route_lifetime_seconds"
MON_RECEIVED = "corerad_monitor_messages_received_total"
MON_FLAG_MANAGED = "corerad_monitor_flag_managed"
MON_FLAG_OTHER = "corerad_monitor_flag_other"
MON_DEFAULT_ROUTE = "corerad_monitor_default_route_expiration_timestamp_seconds"
MON_PREFIX_AUTONOMOUS = "corerad_monitor_prefix_autonomous"
MON_PREFIX_ON_LINK = "corerad_monitor_prefix_on_link"
MON_PREFIX_PREFERRED = "corerad_monitor_prefix_preferred_expiration_timestamp_seconds"
MON_PREFIX_VALID = "corerad_monitor_prefix_valid_expiration_timestamp_seconds"


@dataclass
class Series:
    """A named timeseries and its samples, keyed by "label=value,..." strings."""

    name: str
    help: str
    samples: Dict[str, float] = field(default_factory=dict)


class ScrapeError(Exception):
    """A failure while gathering const metrics, attributed to one metric."""

    def __init__(self, metric: str, error: BaseException) -> None:
        super().__init__(f"{metric}: {error}")
        self.metric = metric
        self.error = error


@dataclass
class _Metric:
    name: str
    help: str
    labels: Tuple[str, ...]
    const: bool
    samples: Dict[str, float] = field(default_factory=dict)

    def key(self, values: Sequence[str]) -> str:
        if len(values) != len(self.labels):
            raise ValueError(
                f"metrics: {self.name} takes {len(self.labels)} label value(s), "
                f"got {len(values)}"
            )
        return ",".join(f"{label}={value}" for label, value in zip(self.labels, values))


class MemoryMetrics:
    """Thread-safe in-memory metrics storage which can report its timeseries."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._metrics: Dict[str, _Metric] = {}
        self._scrape: Optional[ScrapeFunc] = None

    def _register(self, name: str, help: str, labels: Sequence[str], const: bool) -> _Metric:
        with self._lock:
            if name in self._metrics:
                raise ValueError(f"metrics: duplicate metric {name!r}")
            metric = _Metric(name=name, help=help, labels=tuple(labels), const=const)
            self._metrics[name] = metric
            return metric

    def _setter(self, metric: _Metric) -> Setter:
        def set_value(value: float, *labels: str) -> None:
            key = metric.key(labels)
            with self._lock:
                metric.samples[key] = float(value)

        return set_value

    def counter(self, name: str, help: str, *args: str) -> Setter:
        """Register a counter; the returned function adds to it."""
        metric = self._register(name, help, args, const=False)

        def add(value: float, *labels: str) -> None:
            key = metric.key(labels)
            with self._lock:
                metric.samples[key] = metric.samples.get(key, 0.0) + float(value)

        return add

    def gauge(self, name: str, help: str, *args: str) -> Setter:
        """Register a gauge; the returned function sets it."""
        return self._setter(self._register(name, help, args, const=False))

    def const_gauge(self, name: str, help: str, *args: str) -> None:
        """Register a gauge whose samples are produced afresh at every scrape."""
        self._register(name, help, args, const=True)

    def on_const_scrape(self, fn: ScrapeFunc) -> None:
        """Set the function which fills in const gauges when series are read."""
        with self._lock:
            self._scrape = fn

    def series(self) -> Dict[str, Series]:
        """Return a snapshot of every registered timeseries."""
        with self._lock:
            if self._scrape is not None:
                consts = [m for m in self._metrics.values() if m.const]
                for metric in consts:
                    metric.samples.clear()
                setters = {m.name: self._setter(m) for m in consts}
                try:
                    self._scrape(setters)
                except ScrapeError as err:
                    failed = self._metrics.get(err.metric)
                    if failed is not None:
                        failed.samples[""] = -1.0

            return {
                name: Series(name=m.name, help=m.help, samples=dict(m.samples))
                for name, m in self._metrics.items()
            }


class Misconfiguration(enum.Enum):
    """A reason an advertising interface is misconfigured."""

    INTERFACE_NOT_FORWARDING = 1


@dataclass
class MetricsContext:
    """The state of one interface used to populate const metrics."""

    interface: str
    advertising: bool = False
    autoconfiguration: bool = False
    forwarding: bool = False
    monitoring: bool = False
    advertisement: Optional[RouterAdvertisement] = None
    misconfigurations: List[Misconfiguration] = field(default_factory=list)


def _prefix_str(p: PrefixInformation) -> str:
    return cidr_str(p.prefix, p.prefix_length)


_PREFIX_VALUES: Dict[str, Callable[[PrefixInformation], float]] = {
    ADV_PREFIX_AUTONOMOUS: lambda p: float(p.autonomous_address_configuration),
    ADV_PREFIX_ON_LINK: lambda p: float(p.on_link),
    ADV_PREFIX_VALID: lambda p: p.valid_lifetime.total_seconds(),
    ADV_PREFIX_PREFERRED: lambda p: p.preferred_lifetime.total_seconds(),
}


def collect_metrics(metrics: Dict[str, Setter], mctx: MetricsContext) -> None:
    """Set const metrics from the state of one interface.

    Raises ValueError for a metric or misconfiguration that is not handled.
    """
    options = mctx.advertisement.options if mctx.advertisement is not None else []
    dnssl = pick(options, DNSSearchList)
    prefixes = pick(options, PrefixInformation)
    rdnss = pick(options, RecursiveDNSServer)
    routes = pick(options, RouteInformation)
    iface = mctx.interface

    flags = {
        IFI_ADVERTISING: mctx.advertising,
        IFI_AUTOCONFIGURATION: mctx.autoconfiguration,
        IFI_FORWARDING: mctx.forwarding,
        IFI_MONITORING: mctx.monitoring,
    }

    for name, set_value in metrics.items():
        if name in flags:
            set_value(float(bool(flags[name])), iface)
        elif name == ADV_MISCONFIGURATION:
            for misconfiguration in mctx.misconfigurations:
                if misconfiguration is Misconfiguration.INTERFACE_NOT_FORWARDING:
                    set_value(1.0, iface, "interface_not_forwarding")
                else:
                    raise ValueError(
                        f"corerad: unhandled misconfiguration: {misconfiguration!r}"
                    )
        elif name == ADV_DNSSL_LIFETIME:
            for d in dnssl:
                set_value(d.lifetime.total_seconds(), iface, ", ".join(d.domain_names))
        elif name in _PREFIX_VALUES:
            value_of = _PREFIX_VALUES[name]
            for p in prefixes:
                set_value(value_of(p), iface, _prefix_str(p))
        elif name == ADV_RDNSS_LIFETIME:
            for r in rdnss:
                set_value(r.lifetime.total_seconds(), iface, ", ".join(str(s) for s in r.servers))
        elif name == ADV_ROUTE_LIFETIME:
            for r in routes:
                set_value(r.route_lifetime.total_seconds(), iface, cidr_str(r.prefix, r.prefix_length))
        else:
            raise ValueError(f"corerad: metrics collection for {name!r} is not handled")


class Metrics:
    """The metrics of a CoreRAD instance.

    If memory is None, metrics are kept privately and never reported. scrape,
    if given, returns the MetricsContext of every configured interface each
    time const metrics are gathered; any exception it raises is reported as a
    scrape failure.
    """

    def __init__(
        self,
        memory=None,
        version: str = "",
        build_time: Optional[datetime] = None,
        scrape: Optional[Callable[[], Iterable[MetricsContext]]] = None,
    ) -> None:
        self._reporting = memory is not None
        m = memory if memory is not None else MemoryMetrics()
        self._m = m
        self._scrape = scrape

        self.info = m.gauge("corerad_build_info", "Metadata about this build of CoreRAD.", "version")
        self.time = m.gauge(
            "corerad_build_timestamp_seconds",
            "The UNIX timestamp of when this build of CoreRAD was produced.",
        )
        self.messages_received_invalid_total = m.counter(
            MSG_INVALID,
            "The total number of invalid NDP messages received on an advertising or monitoring interface.",
            "interface", "message",
        )
        self.adv_last_multicast_time = m.gauge(
            "corerad_advertiser_last_multicast_timestamp_seconds",
            "The UNIX timestamp of when the last multicast router advertisement was sent from an advertising interface.",
            "interface",
        )
        self.adv_messages_received_total = m.counter(
            "corerad_advertiser_messages_received_total",
            "The total number of valid NDP messages received on an advertising interface.",
            "interface", "message",
        )
        self.adv_router_advertisement_inconsistencies_total = m.counter(
            ADV_INCONSISTENCIES,
            "The total number of NDP router advertisements received which contain inconsistent data with this advertiser's configuration, partitioned by the problematic field.",
            "interface", "details", "field",
        )
        self.adv_router_advertisements_total = m.counter(
            "corerad_advertiser_router_advertisements_total",
            "The total number of unicast and/or multicast NDP router advertisements sent by an advertiser on an interface.",
            "interface", "type",
        )
        self.adv_errors_total = m.counter(
            "corerad_advertiser_errors_total",
            "The total number and type of errors that occurred while advertising on an interface.",
            "interface", "error",
        )
        self.mon_messages_received_total = m.counter(
            MON_RECEIVED,
            "The total number of valid NDP messages received on a monitoring interface.",
            "interface", "host", "message",
        )
        self.mon_flag_managed = m.gauge(
            MON_FLAG_MANAGED,
            "Indicates whether or not the Managed address configuration flag is set in a router advertisement received on a monitoring interface.",
            "interface", "router",
        )
        self.mon_flag_other = m.gauge(
            MON_FLAG_OTHER,
            "Indicates whether or not the Other configuration flag is set in a router advertisement received on a monitoring interface.",
            "interface", "router",
        )
        self.mon_default_route_expiration_time = m.gauge(
            MON_DEFAULT_ROUTE,
            "The UNIX timestamp of when the route provided by a default router will expire on a monitoring interface.",
            "interface", "router",
        )
        self.mon_prefix_autonomous = m.gauge(
            MON_PREFIX_AUTONOMOUS,
            "Indicates whether or not the Autonomous Address Autoconfiguration (SLAAC) flag is enabled for a given prefix received on a monitoring interface.",
            "interface", "prefix", "router",
        )
        self.mon_prefix_on_link = m.gauge(
            MON_PREFIX_ON_LINK,
            "Indicates whether or not the On-Link flag is enabled for a given prefix received on a monitoring interface.",
            "interface", "prefix", "router",
        )
        self.mon_prefix_preferred_lifetime_expiration_time = m.gauge(
            MON_PREFIX_PREFERRED,
            "The UNIX timestamp of when a route to a given prefix should no longer be preferred on a monitoring interface.",
            "interface", "prefix", "router",
        )
        self.mon_prefix_valid_lifetime_expiration_time = m.gauge(
            MON_PREFIX_VALID,
            "The UNIX timestamp of when a route to a given prefix will expire on a monitoring interface.",
            "interface", "prefix", "router",
        )

        self.info(1, version)
        timestamp = 0 if build_time is None else math.floor(build_time.timestamp())
        self.time(float(timestamp))

        for name, help_text, labels in _CONST_GAUGES:
            m.const_gauge(name, help_text, *labels)

        m.on_const_scrape(self._const_scrape)

    def _contexts(self) -> Iterator[MetricsContext]:
        if self._scrape is None:
            return
        try:
            yield from self._scrape()
        except Exception as err:
            raise ScrapeError(IFI_FORWARDING, err) from err

    def _const_scrape(self, metrics: Dict[str, Setter]) -> None:
        for mctx in self._contexts():
            collect_metrics(metrics, mctx)

    def series(self) -> Optional[Dict[str, Series]]:
        """Return the current timeseries, or None if the storage cannot report them."""
        if not self._reporting:
            return None
        fn = getattr(self._m, "series", None)
        if not callable(fn):
            return None
        return fn()


_CONST_GAUGES: Tuple[Tuple[str, str, Tuple[str, ...]], ...] = (
    (IFI_ADVERTISING, "Indicates whether or not NDP router advertisements will be sent from this interface.", ("interface",)),
    (IFI_MONITORING, "Indicates whether or not NDP messages will be monitored on this interface.", ("interface",)),
    (IFI_AUTOCONFIGURATION, "Indicates whether or not IPv6 autoconfiguration is enabled on this interface.", ("interface",)),
    (IFI_FORWARDING, "Indicates whether or not IPv6 forwarding is enabled on this interface.", ("interface",)),
    (ADV_MISCONFIGURATION, "Indicates whether or not an advertising interface is misconfigured, with details as to why.", ("interface", "details")),
    (ADV_DNSSL_LIFETIME, "The amount of time in seconds that clients should consider advertised DNS search list domain names valid.", ("interface", "domains")),
    (ADV_PREFIX_AUTONOMOUS, "Indicates whether or not the Autonomous Address Autoconfiguration (SLAAC) flag is enabled for a given advertised prefix.", ("interface", "prefix")),
    (ADV_PREFIX_ON_LINK, "Indicates whether or not the On-Link flag is enabled for a given advertised prefix.", ("interface", "prefix")),
    (ADV_PREFIX_VALID, "The amount of time in seconds that clients should consider this advertised prefix valid for on-link determination.", ("interface", "prefix")),
    (ADV_PREFIX_PREFERRED, "The amount of time in seconds that addresses generated via SLAAC by clients should remain preferred.", ("interface", "prefix")),
    (ADV_RDNSS_LIFETIME, "The amount of time in seconds that clients should consider advertised recursive DNS servers valid.", ("interface", "servers")),
    (ADV_ROUTE_LIFETIME, "The amount of time in seconds that clients should consider this advertised route valid for this interface.", ("interface", "route")),
)