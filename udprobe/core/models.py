import enum
import time
from dataclasses import dataclass, field
from typing import Optional


class PortState(enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    OPEN_OR_FILTERED = "OPEN|FILTERED"
    FILTERED = "FILTERED"

    @property
    def definitive(self) -> bool:
        return self in (PortState.OPEN, PortState.CLOSED)


@dataclass(frozen=True)
class ScanTarget:
    address: str


@dataclass(frozen=True)
class PortVerdict:
    """
    Outcome of classifying one probe attempt.

    byte_count is only set for OPEN, icmp_type/icmp_code only for
    CLOSED and FILTERED.
    """

    state: PortState
    byte_count: Optional[int] = None
    icmp_type: Optional[int] = None
    icmp_code: Optional[int] = None
    attempts: int = 1

    @classmethod
    def open(cls, byte_count: int) -> "PortVerdict":
        return cls(PortState.OPEN, byte_count=byte_count)

    @classmethod
    def closed(cls, icmp_type: int, icmp_code: int) -> "PortVerdict":
        return cls(PortState.CLOSED, icmp_type=icmp_type, icmp_code=icmp_code)

    @classmethod
    def filtered(cls, icmp_type: int, icmp_code: int) -> "PortVerdict":
        return cls(PortState.FILTERED, icmp_type=icmp_type, icmp_code=icmp_code)

    @classmethod
    def open_or_filtered(cls) -> "PortVerdict":
        return cls(PortState.OPEN_OR_FILTERED)


@dataclass
class ScanStatistics:
    total_ports: int = 0
    open: int = 0
    closed: int = 0
    filtered_or_open_filtered: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    def record(self, verdict: PortVerdict) -> None:
        self.total_ports += 1
        if verdict.state is PortState.OPEN:
            self.open += 1
        elif verdict.state is PortState.CLOSED:
            self.closed += 1
        else:
            self.filtered_or_open_filtered += 1

    def record_error(self) -> None:
        self.total_ports += 1
        self.errors += 1

    def finish(self) -> None:
        self.end_time = time.time()

    @property
    def elapsed(self) -> float:
        end = self.end_time if self.end_time is not None else time.time()
        return max(end - self.start_time, 0.0)

    @property
    def rate(self) -> float:
        elapsed = self.elapsed
        if elapsed <= 0:
            return 0.0
        return self.total_ports / elapsed

    def as_dict(self):
        return {
            "total_ports": self.total_ports,
            "open": self.open,
            "closed": self.closed,
            "filtered_or_open_filtered": self.filtered_or_open_filtered,
            "errors": self.errors,
            "elapsed": round(self.elapsed, 4),
            "rate": round(self.rate, 2),
        }
