import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

REPORT_VERSION = 1


class CoverageKey(NamedTuple):
    receiver_type: str
    method: str
    signature_index: int


@dataclass(frozen=True)
class CoverageEntry:
    attempted: int = 0
    satisfied: int = 0
    signature: str = ""


class CoverageLedger:
    """Which overloads were tried and satisfied, shared by every check in a run.

    Entries are created on first sight and only ever incremented. All mutation goes
    through one lock, so concurrent workers cannot lose updates.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[CoverageKey, CoverageEntry] = {}
        self._indexes: Dict[Tuple[str, str], List[Optional[str]]] = {}

    def _index_locked(self, receiver_type: str, method: str, signature: str) -> int:
        texts = self._indexes.setdefault((receiver_type, method), [])
        if signature not in texts:
            texts.append(signature)
        return texts.index(signature)

    def index_of(self, receiver_type: str, method: str, signature: str) -> int:
        """First-seen position of `signature` among the overloads of `method`."""
        with self._lock:
            return self._index_locked(receiver_type, method, signature)

    def declare(self, receiver_type: str, method: str, signatures: Sequence[str]) -> List[CoverageKey]:
        """Make overloads visible before any test has exercised them."""
        keys = []
        with self._lock:
            for signature in signatures:
                key = CoverageKey(receiver_type, method, self._index_locked(receiver_type, method, signature))
                self._entries.setdefault(key, CoverageEntry(signature=signature))
                keys.append(key)
        return keys

    def record(self, receiver_type: str, method: str, signature: Union[int, str],
               satisfied: bool) -> CoverageKey:
        with self._lock:
            if isinstance(signature, int):
                index, text = signature, ""
                known = self._indexes.get((receiver_type, method), [])
                if index < len(known):
                    text = known[index] or ""
            else:
                index, text = self._index_locked(receiver_type, method, signature), signature

            key = CoverageKey(receiver_type, method, index)
            entry = self._entries.get(key) or CoverageEntry(signature=text)
            self._entries[key] = CoverageEntry(entry.attempted + 1,
                                               entry.satisfied + (1 if satisfied else 0),
                                               entry.signature or text)
        return key

    def snapshot(self) -> Mapping[CoverageKey, CoverageEntry]:
        with self._lock:
            return MappingProxyType(dict(self._entries))

    def unexercised(self) -> List[CoverageKey]:
        """Keys never satisfied by any check, in a stable order."""
        return sorted(key for key, entry in self.snapshot().items() if entry.satisfied == 0)

    def totals(self) -> Dict[str, int]:
        entries = self.snapshot().values()
        return {
            "overloads": len(entries),
            "attempted": sum(e.attempted for e in entries),
            "satisfied": sum(e.satisfied for e in entries),
            "unexercised": sum(1 for e in entries if e.satisfied == 0),
        }

    def merge(self, other: "CoverageLedger"):
        """Add the counts of `other` into this ledger."""
        for key, entry in sorted(other.snapshot().items()):
            with self._lock:
                if entry.signature:
                    index = self._index_locked(key.receiver_type, key.method, entry.signature)
                    key = CoverageKey(key.receiver_type, key.method, index)
                current = self._entries.get(key) or CoverageEntry(signature=entry.signature)
                self._entries[key] = CoverageEntry(current.attempted + entry.attempted,
                                                   current.satisfied + entry.satisfied,
                                                   current.signature or entry.signature)

    # --- Persistence ---

    def to_dict(self) -> dict:
        return {
            "version": REPORT_VERSION,
            "entries": [
                {
                    "receiver_type": key.receiver_type,
                    "method": key.method,
                    "signature_index": key.signature_index,
                    "signature": entry.signature,
                    "attempted": entry.attempted,
                    "satisfied": entry.satisfied,
                }
                for key, entry in sorted(self.snapshot().items())
            ],
        }

    def dump(self, path: Union[str, Path]):
        path = Path(path)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        logger.info("Wrote coverage for %d overloads to %s", len(self.snapshot()), path)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "CoverageLedger":
        data = json.loads(Path(path).read_text())
        if data.get("version") != REPORT_VERSION:
            raise ValueError(f"Unsupported coverage report version: {data.get('version')!r}")

        ledger = cls()
        for item in data["entries"]:
            key = CoverageKey(item["receiver_type"], item["method"], item["signature_index"])
            signature = item.get("signature", "")
            if signature:
                # Positions must survive gaps left by overloads missing from the report
                texts = ledger._indexes.setdefault((key.receiver_type, key.method), [])
                texts.extend([None] * (key.signature_index + 1 - len(texts)))
                texts[key.signature_index] = signature
            ledger._entries[key] = CoverageEntry(item["attempted"], item["satisfied"], signature)
        return ledger
