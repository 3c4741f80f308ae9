import json
import threading

import pytest

from sigconf.coverage import CoverageEntry, CoverageKey, CoverageLedger

def test_coverage_record():
    ledger = CoverageLedger()
    ledger.record("int", "bit_length", "() -> Integer", True)
    ledger.record("int", "bit_length", "() -> Integer", False)

    entry = ledger.snapshot()[CoverageKey("int", "bit_length", 0)]
    assert entry == CoverageEntry(2, 1, "() -> Integer")

def test_coverage_index_is_first_seen_order():
    ledger = CoverageLedger()

    assert ledger.index_of("str", "split", "(String) -> Array[String]") == 0
    assert ledger.index_of("str", "split", "() -> Array[String]") == 1
    assert ledger.index_of("str", "split", "(String) -> Array[String]") == 0
    assert ledger.index_of("bytes", "split", "() -> Array[bytes]") == 0

def test_coverage_record_by_index():
    ledger = CoverageLedger()
    ledger.declare("str", "upper", ["() -> String"])
    key = ledger.record("str", "upper", 0, True)

    assert key == CoverageKey("str", "upper", 0)
    assert ledger.snapshot()[key].signature == "() -> String"

def test_coverage_declare_and_unexercised():
    ledger = CoverageLedger()
    keys = ledger.declare("str", "split", ["(String) -> Array[String]", "() -> Array[String]"])
    ledger.record("str", "split", "() -> Array[String]", True)

    assert keys == [CoverageKey("str", "split", 0), CoverageKey("str", "split", 1)]
    assert ledger.unexercised() == [CoverageKey("str", "split", 0)]

def test_coverage_declare_does_not_reset_counts():
    ledger = CoverageLedger()
    ledger.record("str", "upper", "() -> String", True)
    ledger.declare("str", "upper", ["() -> String"])

    assert ledger.snapshot()[CoverageKey("str", "upper", 0)].satisfied == 1

def test_coverage_snapshot_is_immutable():
    ledger = CoverageLedger()
    ledger.record("str", "upper", "() -> String", True)
    snapshot = ledger.snapshot()

    with pytest.raises(TypeError):
        snapshot[CoverageKey("str", "upper", 0)] = CoverageEntry()

    ledger.record("str", "upper", "() -> String", True)
    assert snapshot[CoverageKey("str", "upper", 0)].attempted == 1

def test_coverage_totals():
    ledger = CoverageLedger()
    ledger.declare("str", "split", ["(String) -> Array[String]", "() -> Array[String]"])
    ledger.record("str", "split", "() -> Array[String]", True)
    ledger.record("str", "split", "(String) -> Array[String]", False)

    assert ledger.totals() == {"overloads": 2, "attempted": 2, "satisfied": 1, "unexercised": 1}

def test_coverage_concurrent_records_are_not_lost():
    ledger = CoverageLedger()
    signatures = ["(Integer) -> Integer", "(Float) -> Float", "(String) -> String"]

    def work(n):
        for i in range(500):
            ledger.record("operator", "neg", signatures[(i + n) % 3], i % 2 == 0)

    threads = [threading.Thread(target=work, args=(n,)) for n in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    snapshot = ledger.snapshot()
    assert sum(e.attempted for e in snapshot.values()) == 5000
    assert sum(e.satisfied for e in snapshot.values()) == 2500
    assert sorted(k.signature_index for k in snapshot) == [0, 1, 2]

def test_coverage_dump_and_load(tmp_path):
    ledger = CoverageLedger()
    ledger.declare("str", "split", ["(String) -> Array[String]", "() -> Array[String]"])
    ledger.record("str", "split", "() -> Array[String]", True)
    path = tmp_path / "coverage.json"

    ledger.dump(path)
    data = json.loads(path.read_text())
    assert data["version"] == 1
    assert data["entries"][1]["signature"] == "() -> Array[String]"

    loaded = CoverageLedger.load(path)
    assert dict(loaded.snapshot()) == dict(ledger.snapshot())
    assert loaded.index_of("str", "split", "() -> Array[String]") == 1

def test_coverage_load_keeps_sparse_indexes(tmp_path):
    path = tmp_path / "coverage.json"
    entries = [
        {"receiver_type": "str", "method": "split", "signature_index": index, "signature": text,
         "attempted": 1, "satisfied": 1}
        for index, text in [(0, "() -> Array[String]"), (2, "(String, Integer) -> Array[String]")]
    ]
    path.write_text(json.dumps({"version": 1, "entries": entries}))

    ledger = CoverageLedger.load(path)
    key = ledger.record("str", "split", "(String, Integer) -> Array[String]", True)

    assert key == CoverageKey("str", "split", 2)
    assert ledger.snapshot()[key].attempted == 2
    assert ledger.index_of("str", "split", "(String) -> Array[String]") == 3
    assert ledger.record("str", "split", 1, False) == CoverageKey("str", "split", 1)
    assert ledger.snapshot()[CoverageKey("str", "split", 1)].signature == ""

def test_coverage_load_rejects_unknown_version(tmp_path):
    path = tmp_path / "coverage.json"
    path.write_text(json.dumps({"version": 99, "entries": []}))

    with pytest.raises(ValueError):
        CoverageLedger.load(path)

def test_coverage_merge():
    first = CoverageLedger()
    first.record("str", "upper", "() -> String", True)
    second = CoverageLedger()
    second.record("str", "upper", "() -> Integer", False)
    second.record("str", "upper", "() -> String", True)

    first.merge(second)
    snapshot = first.snapshot()
    assert snapshot[CoverageKey("str", "upper", 0)].attempted == 2
    assert snapshot[CoverageKey("str", "upper", 1)].signature == "() -> Integer"
