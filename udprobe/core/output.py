import json
import os

from udprobe.core.models import PortState


def format_detail(probe, verdict=None, error=None):
    parts = [probe.protocol_reference] if probe.protocol_reference else []
    if error is not None:
        parts.append(str(error))
    elif verdict.state is PortState.OPEN:
        parts.append(f"{verdict.byte_count} bytes")
    elif verdict.state is PortState.CLOSED:
        parts.append("ICMP port unreachable")
    elif verdict.state is PortState.FILTERED:
        parts.append(f"ICMP type {verdict.icmp_type}, code {verdict.icmp_code}")
    else:
        parts.append("no response")
    return ", ".join(parts)


def format_row(port, probe, verdict=None, error=None):
    label = "ERROR" if error is not None else verdict.state.value
    return f"[{label}] Port {port}/udp {probe.service_label} ({format_detail(probe, verdict, error)})"


def format_summary(statistics):
    return "\n".join(
        [
            "",
            "=== Scan Statistics ===",
            f"Total ports scanned: {statistics.total_ports}",
            f"Open ports: {statistics.open}",
            f"Closed ports: {statistics.closed}",
            f"Filtered/Open|Filtered: {statistics.filtered_or_open_filtered}",
            f"Errors: {statistics.errors}",
            f"Scan duration: {statistics.elapsed:.2f} seconds",
            f"Scan rate: {statistics.rate:.2f} ports/sec",
        ]
    )


def format_catalog(catalog):
    lines = [f"{'PORT':>5}  {'SERVICE':<14} {'REFERENCE':<12} BYTES"]
    for probe in catalog:
        lines.append(
            f"{probe.port:>5}  {probe.service_label:<14} {probe.protocol_reference:<12} {len(probe.payload)}"
        )
    lines.append(f"{len(catalog)} probes for {len(catalog.ports())} ports")
    return "\n".join(lines)


class ResultRecorder:
    """Collects per-port results for the JSON report."""

    def __init__(self):
        self.rows = []

    def __call__(self, port, probe, verdict, error):
        row = {
            "port": port,
            "service": probe.service_label,
            "reference": probe.protocol_reference,
            "state": "ERROR" if error is not None else verdict.state.value,
        }
        if error is not None:
            row["error"] = str(error)
        else:
            row["attempts"] = verdict.attempts
            if verdict.byte_count is not None:
                row["bytes"] = verdict.byte_count
            if verdict.icmp_type is not None:
                row["icmp_type"] = verdict.icmp_type
                row["icmp_code"] = verdict.icmp_code
        self.rows.append(row)


def save_results(path, target, rows, statistics):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    payload = {
        "target": target.address,
        "results": rows,
        "statistics": statistics.as_dict(),
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    return path
