from unittest.mock import MagicMock

import pytest

from udprobe.core.errors import SendFailure, WaitFailure
from udprobe.core.lib.probe_engine import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT, PortProber
from udprobe.core.models import PortState, PortVerdict


@pytest.fixture
def classifier():
    return MagicMock()


def test_defaults():
    prober = PortProber()
    assert prober.timeout == DEFAULT_TIMEOUT == 2.0
    assert prober.max_retries == DEFAULT_MAX_RETRIES == 2


def test_silent_port_is_sent_exactly_max_retries_times(classifier, target, small_catalog, loopback_transport):
    classifier.wait_for_signal.return_value = PortVerdict.open_or_filtered()
    transport = loopback_transport()

    verdict = PortProber(classifier).probe(target, 54, small_catalog, transport)

    assert verdict.state is PortState.OPEN_OR_FILTERED
    assert verdict.attempts == 2
    assert len(transport.sent) == 2
    assert classifier.wait_for_signal.call_count == 2


def test_closed_ends_the_retry_loop(classifier, target, small_catalog, loopback_transport):
    classifier.wait_for_signal.return_value = PortVerdict.closed(3, 3)
    transport = loopback_transport()

    verdict = PortProber(classifier, max_retries=5).probe(target, 123, small_catalog, transport)

    assert verdict.state is PortState.CLOSED
    assert verdict.attempts == 1
    assert transport.sent == [(b"\xe3\x00\x04\xfa", 123)]


def test_open_on_second_attempt(classifier, target, small_catalog, loopback_transport):
    classifier.wait_for_signal.side_effect = [PortVerdict.open_or_filtered(), PortVerdict.open(48)]
    transport = loopback_transport()

    verdict = PortProber(classifier, max_retries=3).probe(target, 123, small_catalog, transport)

    assert verdict == PortVerdict(PortState.OPEN, byte_count=48, attempts=2)
    assert len(transport.sent) == 2


def test_filtered_is_retried_and_last_attempt_stands(classifier, target, small_catalog, loopback_transport):
    classifier.wait_for_signal.side_effect = [PortVerdict.filtered(3, 13), PortVerdict.open_or_filtered()]
    transport = loopback_transport()

    verdict = PortProber(classifier).probe(target, 514, small_catalog, transport)

    assert verdict.state is PortState.OPEN_OR_FILTERED
    assert verdict.attempts == 2


def test_uses_first_probe_for_shared_port(classifier, target, small_catalog, loopback_transport):
    classifier.wait_for_signal.return_value = PortVerdict.open(12)
    transport = loopback_transport()

    PortProber(classifier).probe(target, 53, small_catalog, transport)

    assert transport.sent == [(b"\x00\x00\x10\x00", 53)]


def test_unknown_port_sends_empty_payload(classifier, target, small_catalog, loopback_transport):
    classifier.wait_for_signal.return_value = PortVerdict.open_or_filtered()
    transport = loopback_transport()

    PortProber(classifier, max_retries=1).probe(target, 40000, small_catalog, transport)

    assert transport.sent == [(b"", 40000)]


def test_timeout_and_port_are_passed_to_classifier(classifier, target, small_catalog, loopback_transport):
    classifier.wait_for_signal.return_value = PortVerdict.open(1)
    transport = loopback_transport()

    PortProber(classifier, timeout=0.75).probe(target, 53, small_catalog, transport)

    classifier.wait_for_signal.assert_called_once_with(transport, 0.75, port=53)


def test_per_call_retry_override(classifier, target, small_catalog, loopback_transport):
    classifier.wait_for_signal.return_value = PortVerdict.open_or_filtered()
    transport = loopback_transport()

    verdict = PortProber(classifier).probe(target, 54, small_catalog, transport, max_retries=4)

    assert verdict.attempts == 4
    assert len(transport.sent) == 4


def test_send_failure_is_not_retried(classifier, target, small_catalog):
    transport = MagicMock()
    transport.send.side_effect = SendFailure("Network is unreachable", port=53)

    with pytest.raises(SendFailure):
        PortProber(classifier).probe(target, 53, small_catalog, transport)

    assert transport.send.call_count == 1
    classifier.wait_for_signal.assert_not_called()


def test_wait_failure_propagates(classifier, target, small_catalog, loopback_transport):
    classifier.wait_for_signal.side_effect = WaitFailure("select failed", port=53)

    with pytest.raises(WaitFailure):
        PortProber(classifier).probe(target, 53, small_catalog, loopback_transport())


@pytest.mark.parametrize("retries", [0, -1])
def test_retry_bound_must_be_positive(classifier, target, small_catalog, retries):
    with pytest.raises(ValueError):
        PortProber(classifier, max_retries=retries)
    with pytest.raises(ValueError):
        PortProber(classifier).probe(target, 53, small_catalog, MagicMock(), max_retries=retries)
