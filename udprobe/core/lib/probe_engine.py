import dataclasses
import logging

from udprobe.core.lib.socket import ResponseClassifier

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0
DEFAULT_MAX_RETRIES = 2


class PortProber:
    """
    Probe one port: send the first catalog probe for it and classify the
    answer, re-sending while the verdict stays ambiguous.

    OPEN and CLOSED end the loop at once. OPEN|FILTERED and FILTERED are
    retried until max_retries attempts were made, the last one stands.
    Send failures are not retried, they propagate to the caller.
    """

    def __init__(self, classifier=None, timeout=DEFAULT_TIMEOUT, max_retries=DEFAULT_MAX_RETRIES):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.classifier = classifier or ResponseClassifier()
        self.timeout = timeout
        self.max_retries = max_retries

    def probe(self, target, port, catalog, transport, max_retries=None):
        retries = self.max_retries if max_retries is None else max_retries
        if retries < 1:
            raise ValueError("max_retries must be at least 1")

        probe = catalog.first(port)
        verdict = None
        for attempt in range(1, retries + 1):
            log.debug(
                f"{target.address}:{port}/udp attempt {attempt}/{retries} "
                f"with {probe.service_label} probe ({len(probe.payload)} bytes)"
            )
            transport.send(probe.payload, port)
            verdict = self.classifier.wait_for_signal(transport, self.timeout, port=port)
            verdict = dataclasses.replace(verdict, attempts=attempt)
            if verdict.state.definitive:
                break
        return verdict
