import pytest

from monitor.snapshot import TelemetrySnapshot, validate_snapshot


def test_snapshot_schema_roundtrip():
    snap = TelemetrySnapshot(
        cache_size=2,
        cache_keys=["doc:1:meta", "search:q:f=:s=:p=1:n=20"],
        hit_count=3,
        miss_count=1,
        memory_bytes=10 * 1024 * 1024,
        elapsed_ms=1234.5,
        sample_count=4,
        hit_rate_percent=75.0,
    )

    payload = snap.to_dict()

    assert payload["memory_mb"] == 10.0
    assert payload["memory_status"] == "ok"
    assert payload["cache_keys"] == ["doc:1:meta", "search:q:f=:s=:p=1:n=20"]


def test_snapshot_schema_rejects_bad_payload():
    with pytest.raises(ValueError):
        validate_snapshot({"cache_size": -1})
