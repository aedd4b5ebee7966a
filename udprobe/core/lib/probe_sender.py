import logging
import socket

from udprobe.core.errors import PermissionDenied, SendFailure, TransportError
from udprobe.core.ip import ICMP_PROTO, address_family

log = logging.getLogger(__name__)


class Transport:
    """
    One unconnected UDP socket plus, unless degraded, one raw ICMP socket
    watching for unreachable errors. Opened per port and closed right after.
    """

    def __init__(self, target, udp_socket, icmp_socket=None):
        self.target = target
        self.udp_socket = udp_socket
        self.icmp_socket = icmp_socket

    @classmethod
    def open(cls, target, icmp=True):
        family = address_family(target)
        try:
            udp_socket = socket.socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError as e:
            raise TransportError(f"cannot create UDP socket: {e}") from e

        if not icmp:
            return cls(target, udp_socket)

        try:
            icmp_socket = socket.socket(family, socket.SOCK_RAW, ICMP_PROTO)
        except PermissionError as e:
            udp_socket.close()
            raise PermissionDenied(f"raw ICMP socket refused: {e}") from e
        except OSError as e:
            udp_socket.close()
            raise TransportError(f"cannot create raw ICMP socket: {e}") from e
        return cls(target, udp_socket, icmp_socket)

    @property
    def degraded(self):
        return self.icmp_socket is None

    def send(self, payload: bytes, port: int):
        try:
            self.udp_socket.sendto(payload, (self.target.address, port))
        except OSError as e:
            raise SendFailure(f"send to {self.target.address}:{port} failed: {e}", port=port) from e
        log.debug(f"sent {len(payload)} bytes to {self.target.address}:{port}/udp")

    def close(self):
        for sock in (self.udp_socket, self.icmp_socket):
            if sock is None:
                continue
            try:
                sock.close()
            except OSError:
                log.debug("socket close failed", exc_info=True)
        self.udp_socket = None
        self.icmp_socket = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
