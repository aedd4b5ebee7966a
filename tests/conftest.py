import logging
import socket
import struct

import pytest

from udprobe.core.lib.probes_loader import ProbeCatalog, ProbeEntry
from udprobe.core.models import ScanTarget


def _bound_udp_socket():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    return sock


class LoopbackTransport:
    """
    Stand-in for Transport backed by loopback UDP sockets, so the real
    select() path runs. Datagrams pushed with inject_icmp() carry fake
    IP + ICMP bytes, exactly what a raw ICMP socket would hand back.
    """

    def __init__(self, target=None, icmp=True, on_send=None):
        self.target = target or ScanTarget("127.0.0.1")
        self.udp_socket = _bound_udp_socket()
        self.icmp_socket = _bound_udp_socket() if icmp else None
        self._injector = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.on_send = on_send
        self.sent = []
        self.closed = False

    @property
    def degraded(self):
        return self.icmp_socket is None

    def inject_udp(self, data):
        self._injector.sendto(data, self.udp_socket.getsockname())

    def inject_icmp(self, data):
        self._injector.sendto(data, self.icmp_socket.getsockname())

    def send(self, payload, port):
        self.sent.append((payload, port))
        if self.on_send is not None:
            self.on_send(self, payload, port)

    def close(self):
        for sock in (self.udp_socket, self.icmp_socket, self._injector):
            if sock is not None:
                sock.close()
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def build_icmp_datagram(icmp_type, icmp_code, quoted_port=None, ihl=5):
    ip_header = struct.pack(
        "!BBHHHBBH4s4s",
        (4 << 4) + ihl,
        0,
        0,
        0,
        0,
        64,
        socket.IPPROTO_ICMP,
        0,
        socket.inet_aton("192.0.2.1"),
        socket.inet_aton("192.0.2.2"),
    ) + b"\x01" * ((ihl - 5) * 4)
    icmp_header = struct.pack("!BBHHH", icmp_type, icmp_code, 0, 0, 0)

    quoted = b""
    if quoted_port is not None:
        quoted = struct.pack(
            "!BBHHHBBH4s4s",
            0x45,
            0,
            28,
            0,
            0,
            64,
            socket.IPPROTO_UDP,
            0,
            socket.inet_aton("192.0.2.2"),
            socket.inet_aton("192.0.2.1"),
        ) + struct.pack("!HHHH", 40000, quoted_port, 8, 0)
    return ip_header + icmp_header + quoted


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    # setup_logger() stops propagation, which would hide records from caplog
    logger = logging.getLogger("udprobe")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def target():
    return ScanTarget("127.0.0.1")


@pytest.fixture
def icmp_datagram():
    return build_icmp_datagram


@pytest.fixture
def loopback_transport():
    transports = []

    def factory(*args, **kwargs):
        transport = LoopbackTransport(*args, **kwargs)
        transports.append(transport)
        return transport

    yield factory
    for transport in transports:
        if not transport.closed:
            transport.close()


@pytest.fixture
def small_catalog():
    return ProbeCatalog(
        [
            ProbeEntry(53, "DNS", b"\x00\x00\x10\x00", "RFC 1035"),
            ProbeEntry(53, "DNS", b"\x00\x00\x01\x00", "RFC 1035"),
            ProbeEntry(123, "NTP", b"\xe3\x00\x04\xfa", "RFC 5905"),
            ProbeEntry(514, "Syslog", b"", "RFC 5424"),
        ]
    )
