import os
from dataclasses import dataclass

import yaml

from udprobe.core.errors import CatalogError

DEFAULT_PROBES_FILE = os.path.join(os.path.dirname(__file__), "probes", "udp.yaml")


def raw_to_bytes(payload: str) -> bytes:
    return payload.encode("latin1").decode("unicode_escape").encode("latin1")


@dataclass(frozen=True)
class ProbeEntry:
    port: int
    service_label: str
    payload: bytes = b""
    protocol_reference: str = ""


EMPTY_PROBE = ProbeEntry(port=0, service_label="unknown")


class ProbeCatalog:
    """
    Read-only port -> probes mapping.

    Entries sharing a port keep their table order, lookup() is a pure
    dictionary read so the catalog can be shared freely once built.
    """

    def __init__(self, entries):
        self._entries = tuple(entries)
        by_port = {}
        for entry in self._entries:
            by_port.setdefault(entry.port, []).append(entry)
        self._by_port = {port: tuple(found) for port, found in by_port.items()}

    def lookup(self, port: int):
        return self._by_port.get(port, ())

    def first(self, port: int) -> ProbeEntry:
        found = self.lookup(port)
        if found:
            return found[0]
        return EMPTY_PROBE

    def ports(self):
        return sorted(self._by_port)

    def __iter__(self):
        return iter(self._entries)

    def __len__(self):
        return len(self._entries)


def _parse_entry(index, p):
    if not isinstance(p, dict):
        raise CatalogError(f"probe #{index} is not a mapping")
    try:
        port = p["port"]
        service = str(p["service"])
    except KeyError as e:
        raise CatalogError(f"probe #{index} is missing {e}") from e
    # bool is an int subclass, "port: true" must not become port 1
    if not isinstance(port, int) or isinstance(port, bool):
        raise CatalogError(f"probe #{index} has an invalid port: {port!r}")
    if not 0 <= port <= 65535:
        raise CatalogError(f"probe #{index} port {port} is out of range")

    payload = p.get("payload", "") or ""
    if not isinstance(payload, str):
        raise CatalogError(f"probe #{index} ({service}) payload must be a string")
    try:
        payload = raw_to_bytes(payload)
    except (UnicodeError, ValueError) as e:
        raise CatalogError(f"probe #{index} ({service}) payload cannot be decoded: {e}") from e

    return ProbeEntry(
        port=port,
        service_label=service,
        payload=payload,
        protocol_reference=str(p.get("reference", "") or ""),
    )


def load_probes_from_yaml(path: str = DEFAULT_PROBES_FILE) -> ProbeCatalog:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise CatalogError(f"cannot read probe table {path}: {e}") from e
    except yaml.YAMLError as e:
        raise CatalogError(f"malformed probe table {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("probes"), list):
        raise CatalogError(f"probe table {path} has no 'probes' list")

    return ProbeCatalog(_parse_entry(i, p) for i, p in enumerate(data["probes"]))
