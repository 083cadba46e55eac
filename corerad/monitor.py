"""Reporting on NDP traffic received on a monitoring interface."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from typing import Callable, Optional

from corerad.metrics import Metrics
from corerad.ndp import PrefixInformation, RouterAdvertisement, cidr_str, pick


def _unix(when: datetime) -> float:
    return float(math.floor(when.timestamp()))


class Monitor:
    """Reports metrics and logs for NDP messages seen on an interface."""

    def __init__(
        self,
        iface: str,
        metrics: Optional[Metrics] = None,
        logger: Optional[logging.Logger] = None,
        verbose: bool = False,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.iface = iface
        self._metrics = metrics if metrics is not None else Metrics(None, "", None, None)
        self._logger = logger
        self.verbose = verbose
        self._now = now if now is not None else (lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"monitor {json.dumps(self.iface)}"

    def _logf(self, message: str) -> None:
        if self._logger is not None:
            self._logger.info("%s: %s", self.iface, message)

    def _debugf(self, message: str) -> None:
        if self.verbose:
            self._logf(f"debug: {message}")

    def handle(self, msg, host) -> None:
        """Record an NDP message received from host."""
        host = str(host)
        kind = msg.message_type
        self._debugf(f"monitor received {json.dumps(kind)} from {host}")

        mm = self._metrics
        mm.mon_messages_received_total(1.0, self.iface, host, kind)

        if not isinstance(msg, RouterAdvertisement):
            return

        now = self._now()
        mm.mon_flag_managed(float(bool(msg.managed_configuration)), self.iface, host)
        mm.mon_flag_other(float(bool(msg.other_configuration)), self.iface, host)

        if msg.router_lifetime:
            # An advertisement from a default router: report when its route expires.
            mm.mon_default_route_expiration_time(
                _unix(now + msg.router_lifetime), self.iface, host
            )

        for p in pick(msg.options, PrefixInformation):
            prefix = cidr_str(p.prefix, p.prefix_length)
            mm.mon_prefix_autonomous(
                float(bool(p.autonomous_address_configuration)), self.iface, prefix, host
            )
            mm.mon_prefix_on_link(float(bool(p.on_link)), self.iface, prefix, host)
            mm.mon_prefix_preferred_lifetime_expiration_time(
                _unix(now + p.preferred_lifetime), self.iface, prefix, host
            )
            mm.mon_prefix_valid_lifetime_expiration_time(
                _unix(now + p.valid_lifetime), self.iface, prefix, host
            )