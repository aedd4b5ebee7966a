class ScanError(Exception):
    """Base class for every error raised by udprobe."""


class CatalogError(ScanError):
    pass


class ConfigError(ScanError):
    pass


class InvalidTarget(ScanError):
    pass


class InvalidPortRange(ScanError):
    def __init__(self, start_port, end_port):
        self.start_port = start_port
        self.end_port = end_port
        super().__init__(f"invalid port range {start_port}-{end_port} (1-65535)")


class TransportError(ScanError):
    """
    Socket level failure while probing a single port.

    Args:
        message: human readable reason
        port: the port being probed, if known
    """

    def __init__(self, message, port=None):
        self.port = port
        super().__init__(message)


class PermissionDenied(TransportError):
    """The operating system refused to create the raw ICMP socket."""


class SendFailure(TransportError):
    pass


class WaitFailure(TransportError):
    pass
