# corerad

Building blocks for an IPv6 Neighbor Discovery (NDP) router advertisement
daemon, using only the standard library.

## Modules

- `corerad.ndp`: NDP messages and options as dataclasses
  (`RouterAdvertisement`, `RouterSolicitation`, `PrefixInformation`,
  `RouteInformation`, `RecursiveDNSServer`, `DNSSearchList`, `MTU`,
  `CaptivePortal`, `LinkLayerAddress`), the `Preference` and `Direction`
  enums, the `UNRESTRICTED` captive portal URI, and the helpers `pick`,
  `pick_first`, `source_lla` and `cidr_str`.
- `corerad.verify`: `verify_ras(a, b)` compares two router advertisements
  using the consistency rules of RFC 4861 section 6.2.7 and returns a list of
  `Problem` records (`field`, `details`, `message`). `new_problem` builds one
  and raises `TypeError` when the wanted and received values differ in type;
  `format_duration` renders lifetimes such as `1m30s`.
- `corerad.ra`: `pack_ra(ra)` turns a router advertisement into plain,
  JSON-ready dictionaries; `pack_options`, `preference_string` and
  `prefix_string` handle the pieces. Option lists that are absent come out as
  `None`.
- `corerad.metrics`: an in-memory, thread-safe metrics store
  (`MemoryMetrics`, returning `Series` snapshots), the `Metrics` set of
  build, advertiser and monitor metrics, and `collect_metrics`, which fills in
  per-interface gauges from a `MetricsContext`.
- `corerad.monitor`: `Monitor.handle(msg, host)` records metrics (and, when
  verbose, debug logs) for an NDP message received from a host.
- `corerad.change` and `corerad.watcher`: the `Change` bitmask of link state
  changes and a `Watcher` that notifies subscribers when interfaces change
  state. On Linux it listens to route netlink link messages; elsewhere
  `watch` raises `FileNotFoundError`. `parse_link_messages` and `process`
  decode netlink buffers into change sets.
- `corerad.signals`: `signals()` lists the signals that stop the program and
  `is_terminal(sig)` reports whether a signal means stop (anything but
  `SIGHUP`) rather than reload.
- `corerad.server`: `run_tasks` runs tasks in threads until a signal arrives
  on a queue or a task fails, together with `WatcherTask`, `SignalTask`,
  `Terminator`, `serve_with_retries` and `link_state_watcher`.

## Installing

```
pip install .
```

## Checking two advertisements

```python
from datetime import timedelta

from corerad.ndp import MTU, RouterAdvertisement
from corerad.verify import verify_ras

ours = RouterAdvertisement(current_hop_limit=64, options=[MTU(1500)])
theirs = RouterAdvertisement(current_hop_limit=64, options=[MTU(9000)],
                             reachable_time=timedelta(seconds=30))

for problem in verify_ras(ours, theirs):
    print(problem.field, problem.details, problem.message)
# mtu  want: 1500, got: 9000
```

An empty list means the two advertisements agree. Fields that either side
leaves unspecified (a zero reachable time or retransmit timer, a missing MTU,
prefix, route, RDNSS, DNSSL or captive portal option) are not compared.

## Metrics

```python
from corerad.metrics import MemoryMetrics, Metrics, MetricsContext

metrics = Metrics(
    MemoryMetrics(),
    "1.0.0",
    None,
    lambda: [MetricsContext("eth0", advertising=True, forwarding=True)],
)
series = metrics.series()
print(series["corerad_interface_forwarding"].samples)  # {'interface=eth0': 1.0}
```

The scrape function is called every time series are read. If it raises, the
`corerad_interface_forwarding` series reports a single `-1` sample. With
`None` as storage, metrics are discarded and `series()` returns `None`.

A `Monitor` records received messages into the same metrics:

```python
from corerad.monitor import Monitor
from corerad.ndp import RouterAdvertisement

monitor = Monitor("eth0", metrics)
monitor.handle(RouterAdvertisement(managed_configuration=True), "fe80::1")
```

## Watching link state

```python
import threading

from corerad.change import Change
from corerad.watcher import Watcher

watcher = Watcher()
subscription = watcher.subscribe("eth0", Change.LINK_DOWN | Change.LINK_UP)

stop = threading.Event()
threading.Thread(target=watcher.watch, args=(stop,), daemon=True).start()

for change in subscription:
    print(f"eth0: {change}")
```

A subscription holds up to eight pending changes; further changes are
dropped until it is drained. All subscriptions close when `watch` returns,
which ends iteration. `watch` may be called only once per `Watcher`.
`str(change)` gives names such as `link up`, `link down|link dormant` or
`link ANY`.

## Running tasks

```python
import queue
import signal

from corerad.server import WatcherTask, run_tasks
from corerad.watcher import Watcher

signal_queue = queue.Queue()
for sig in (signal.SIGINT, signal.SIGTERM):
    signal.signal(sig, lambda s, _frame: signal_queue.put(s))

terminator = run_tasks([WatcherTask(Watcher().watch)], signal_queue)
print("halt" if terminator.terminate() else "reload")
```

`run_tasks` returns once a signal has been received and every task has
stopped, or raises `RuntimeError` naming the first task that failed. An
optional `notify` callable receives status lines such as
`STATUS=started link state watcher` and `READY=1`.

## What the package does not do

There is no command-line program and no configuration file format. The
package does not open NDP sockets, encode or decode NDP packets, or send
router advertisements: `Monitor` and `verify_ras` work on messages handed to
them. There is no HTTP debug server; `serve_with_retries` only retries a
listener function you supply, and `pack_ra` produces the data such a server
would return. Metrics are kept in memory and are not exposed in any
exposition format.

## Running the tests

```
pip install ".[test]"
pytest
```