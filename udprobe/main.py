#!/usr/bin/env python3
"""
udprobe - UDP port scanner with protocol-specific probes

Sends a service probe to every port of a range and classifies each port
from the UDP reply or the ICMP error it provokes.
"""

import argparse
import logging
import sys

from udprobe import __version__
from udprobe.config import load_config
from udprobe.core.errors import ScanError
from udprobe.core.ip import is_privileged, parse_target
from udprobe.core.lib.probe_engine import PortProber
from udprobe.core.lib.probes_loader import DEFAULT_PROBES_FILE, load_probes_from_yaml
from udprobe.core.lib.socket import ResponseClassifier
from udprobe.core.output import ResultRecorder, format_catalog, format_row, format_summary, save_results
from udprobe.core.scan import ScanOrchestrator, validate_port_range
from udprobe.logger import setup_logger

log = logging.getLogger(__name__)

USAGE_EXIT = 1


class ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(USAGE_EXIT, f"{self.prog}: error: {message}\n")


def create_parser():
    parser = ArgumentParser(
        prog="udprobe",
        description="UDP port scanner with protocol-specific probes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sudo %(prog)s scan 192.168.1.1 1 1000
  sudo %(prog)s scan 10.0.0.1 53 53 --retries 3
  %(prog)s probes

Raw ICMP sockets need root; without it closed and filtered ports
show up as OPEN|FILTERED.
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.required = True

    scan = commands.add_parser("scan", help="scan a UDP port range")
    scan.add_argument("target", help="target IPv4 address")
    scan.add_argument("start_port", type=int, help="first port (1-65535)")
    scan.add_argument("end_port", type=int, help="last port (1-65535)")
    scan.add_argument("--timeout", type=float, help="seconds to wait per attempt (default: 2)")
    scan.add_argument("--retries", type=int, help="attempts per port while unanswered (default: 2)")
    scan.add_argument("--delay", type=float, help="seconds between ports (default: 0.01)")
    scan.add_argument("--probes", help="YAML probe table replacing the bundled one")
    scan.add_argument("--config", help="YAML config file")
    scan.add_argument(
        "--strict-icmp",
        action="store_true",
        help="report ports as errors instead of scanning without ICMP when raw sockets are refused",
    )
    scan.add_argument("--json", dest="json_file", help="also write results to this JSON file")
    scan.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")

    probes = commands.add_parser("probes", help="list the probe table")
    probes.add_argument("--probes", help="YAML probe table replacing the bundled one")
    return parser


def run_scan(args):
    config = load_config(args.config).merge(
        timeout=args.timeout,
        max_retries=args.retries,
        pacing_delay=args.delay,
        probes_file=args.probes,
        allow_degraded=False if args.strict_icmp else None,
        log_level="DEBUG" if args.verbose else None,
    )
    setup_logger(config.log_level)

    target = parse_target(args.target)
    validate_port_range(args.start_port, args.end_port)
    catalog = load_probes_from_yaml(config.probes_file or DEFAULT_PROBES_FILE)

    if not is_privileged():
        print("Warning: Not running as root. ICMP detection will fail.", file=sys.stderr)
        print("Run with sudo for accurate results.\n", file=sys.stderr)

    print(f"Starting UDP scan on {target.address}")
    print(f"Scanning ports {args.start_port}-{args.end_port}")
    print(f"Using {len(catalog)} protocol-specific probes\n")

    recorder = ResultRecorder() if args.json_file else None

    def on_result(port, probe, verdict, error):
        print(format_row(port, probe, verdict, error), flush=True)
        if recorder is not None:
            recorder(port, probe, verdict, error)

    orchestrator = ScanOrchestrator(
        catalog,
        prober=PortProber(ResponseClassifier(), timeout=config.timeout, max_retries=config.max_retries),
        pacing_delay=config.pacing_delay,
        allow_degraded=config.allow_degraded,
        on_result=on_result,
    )
    statistics = orchestrator.run(target, args.start_port, args.end_port)
    print(format_summary(statistics))

    if recorder is not None:
        try:
            path = save_results(args.json_file, target, recorder.rows, statistics)
        except OSError as e:
            log.error(f"failed to save results to {args.json_file}: {e}")
        else:
            print(f"Saved results to {path}")
    return 0


def list_probes(args):
    catalog = load_probes_from_yaml(args.probes or DEFAULT_PROBES_FILE)
    print(format_catalog(catalog))
    return 0


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "probes":
            return list_probes(args)
        return run_scan(args)
    except ScanError as e:
        print(f"Error: {e}", file=sys.stderr)
        return USAGE_EXIT
    except KeyboardInterrupt:
        print("\n\nScan interrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
