import logging
import time

from udprobe.core.errors import InvalidPortRange, PermissionDenied, TransportError
from udprobe.core.lib.probe_engine import PortProber
from udprobe.core.lib.probe_sender import Transport
from udprobe.core.models import ScanStatistics

log = logging.getLogger(__name__)

MIN_PORT = 1
MAX_PORT = 65535
DEFAULT_PACING_DELAY = 0.01


def validate_port_range(start_port, end_port):
    if not (MIN_PORT <= start_port <= end_port <= MAX_PORT):
        raise InvalidPortRange(start_port, end_port)


class ScanOrchestrator:
    """
    Walk a port range in ascending order, one fresh Transport per port.

    on_result is called after every port with (port, probe, verdict, error);
    exactly one of verdict and error is set.
    """

    def __init__(
        self,
        catalog,
        prober=None,
        transport_factory=Transport.open,
        pacing_delay=DEFAULT_PACING_DELAY,
        allow_degraded=True,
        on_result=None,
        sleep=time.sleep,
    ):
        self.catalog = catalog
        self.prober = prober or PortProber()
        self.transport_factory = transport_factory
        self.pacing_delay = pacing_delay
        self.allow_degraded = allow_degraded
        self.on_result = on_result
        self.sleep = sleep
        self._warned_degraded = False

    def _open_transport(self, target):
        try:
            return self.transport_factory(target)
        except PermissionDenied as e:
            if not self.allow_degraded:
                raise
            if not self._warned_degraded:
                log.warning(
                    f"{e}; continuing without ICMP, ports can only be reported "
                    "as OPEN or OPEN|FILTERED"
                )
                self._warned_degraded = True
            return self.transport_factory(target, icmp=False)

    def scan_port(self, target, port, statistics):
        probe = self.catalog.first(port)
        try:
            with self._open_transport(target) as transport:
                verdict = self.prober.probe(target, port, self.catalog, transport)
        except TransportError as e:
            if e.port is None:
                e.port = port
            log.error(f"{target.address}:{port}/udp aborted: {e}")
            statistics.record_error()
            self._report(port, probe, None, e)
            return None

        statistics.record(verdict)
        self._report(port, probe, verdict, None)
        return verdict

    def _report(self, port, probe, verdict, error):
        if self.on_result is not None:
            self.on_result(port, probe, verdict, error)

    def run(self, target, start_port, end_port, pacing_delay=None):
        validate_port_range(start_port, end_port)
        delay = self.pacing_delay if pacing_delay is None else pacing_delay

        statistics = ScanStatistics()
        log.info(f"scanning {target.address} ports {start_port}-{end_port}/udp")
        for port in range(start_port, end_port + 1):
            self.scan_port(target, port, statistics)
            if port != end_port and delay > 0:
                self.sleep(delay)
        statistics.finish()
        return statistics
