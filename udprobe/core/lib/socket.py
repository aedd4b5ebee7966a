#!/usr/bin/env python

import logging
import select
import struct
import time
from dataclasses import dataclass
from typing import Optional

from udprobe.core.errors import WaitFailure
from udprobe.core.models import PortVerdict

log = logging.getLogger(__name__)

MAX_PACKET_SIZE = 65536
IP_MIN_HEADER_LEN = 20
IP_PROTO_UDP = 17

ICMP_HEADER_LEN = 8
ICMP_DEST_UNREACH = 3
ICMP_PORT_UNREACH = 3


@dataclass(frozen=True)
class IcmpMessage:
    icmp_type: int
    icmp_code: int
    quoted_dst_port: Optional[int] = None

    @property
    def unreachable(self):
        return self.icmp_type == ICMP_DEST_UNREACH


def parse_icmp(received_packet: bytes) -> Optional[IcmpMessage]:
    """
    Parse a datagram read from a raw ICMP socket.

    The ICMP header sits right after the IP header, whose length comes from
    the IHL field (low nibble of the first byte, in 4-byte words). For
    destination unreachable messages the quoted offending datagram is also
    inspected so the destination port of that UDP packet can be
    reported.

    Args:
        received_packet: raw bytes including the IP header

    Returns:
        IcmpMessage, or None when the datagram is too short to hold one
    """
    if not received_packet:
        return None
    ip_header_len = (received_packet[0] & 0x0F) * 4
    if ip_header_len < IP_MIN_HEADER_LEN:
        return None
    icmp_header = received_packet[ip_header_len : ip_header_len + ICMP_HEADER_LEN]
    if len(icmp_header) < ICMP_HEADER_LEN:
        return None

    packet_type, packet_code, _, _, _ = struct.unpack("!BBHHH", icmp_header)

    quoted_dst_port = None
    if packet_type == ICMP_DEST_UNREACH:
        quoted = received_packet[ip_header_len + ICMP_HEADER_LEN :]
        if len(quoted) >= IP_MIN_HEADER_LEN and quoted[9] == IP_PROTO_UDP:
            quoted_header_len = (quoted[0] & 0x0F) * 4
            udp_ports = quoted[quoted_header_len : quoted_header_len + 4]
            if quoted_header_len >= IP_MIN_HEADER_LEN and len(udp_ports) == 4:
                _, quoted_dst_port = struct.unpack("!HH", udp_ports)

    return IcmpMessage(packet_type, packet_code, quoted_dst_port)


class ResponseClassifier:
    """
    Races a UDP reply against an ICMP unreachable for one probe attempt.

    Both sockets are watched by a single select() call. ICMP messages are
    not matched against the probe that was sent, any unreachable seen on
    the raw socket during the wait counts for the current port.
    """

    def __init__(self, buffer_size=MAX_PACKET_SIZE):
        self.buffer_size = buffer_size

    def _recv(self, sock, what, port):
        try:
            data, _ = sock.recvfrom(self.buffer_size)
        except OSError as e:
            raise WaitFailure(f"{what} receive failed: {e}", port=port) from e
        return data

    def wait_for_signal(self, transport, deadline: float, port: Optional[int] = None) -> PortVerdict:
        udp_socket = transport.udp_socket
        icmp_socket = transport.icmp_socket
        readers = [udp_socket] if transport.degraded else [udp_socket, icmp_socket]

        start = time.monotonic()
        timeout = deadline
        while True:
            try:
                what_ready, _, _ = select.select(readers, [], [], timeout)
            except (OSError, ValueError) as e:
                raise WaitFailure(f"select failed: {e}", port=port) from e

            if not what_ready:
                return PortVerdict.open_or_filtered()

            # an answer from the service outranks an ICMP error in the same cycle
            if udp_socket in what_ready:
                data = self._recv(udp_socket, "UDP", port)
                return PortVerdict.open(len(data))

            received_packet = self._recv(icmp_socket, "ICMP", port)
            message = parse_icmp(received_packet)
            if message is not None and message.unreachable:
                if port is not None and message.quoted_dst_port not in (None, port):
                    log.debug(
                        f"ICMP unreachable quotes port {message.quoted_dst_port}, "
                        f"attributing it to port {port}"
                    )
                if message.icmp_code == ICMP_PORT_UNREACH:
                    return PortVerdict.closed(message.icmp_type, message.icmp_code)
                return PortVerdict.filtered(message.icmp_type, message.icmp_code)

            if message is None:
                log.debug(f"ignoring truncated ICMP datagram ({len(received_packet)} bytes)")
            else:
                log.debug(f"ignoring ICMP type {message.icmp_type} code {message.icmp_code}")

            timeout = deadline - (time.monotonic() - start)
            if timeout <= 0:
                return PortVerdict.open_or_filtered()
