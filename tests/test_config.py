import pytest

from documents.config import CacheConfig, load_config


def test_load_config_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("cache:\n  capacity: 25", encoding="utf-8")

    cfg = load_config(path)

    assert isinstance(cfg, CacheConfig)
    assert cfg.capacity == 25
    assert cfg.max_bytes == 50 * 1024 * 1024
    assert cfg.ttl.search_sec == 120
    assert cfg.ttl.as_map()["document"] == 300
    assert cfg.single_flight is True


def test_env_overrides(monkeypatch, tmp_path):
    source = tmp_path / "config.yml"
    source.write_text("ttl:\n  search_sec: 60", encoding="utf-8")

    monkeypatch.setenv("CACHE_CAPACITY", "7")
    monkeypatch.setenv("TELEMETRY_INTERVAL_SEC", "0.5")
    monkeypatch.setenv("CACHE_SINGLE_FLIGHT", "off")
    monkeypatch.setenv("DOCUMENTS_API_URL", "https://example.supabase.co")

    cfg = load_config(source)

    assert cfg.capacity == 7
    assert cfg.telemetry.interval_sec == 0.5
    assert cfg.single_flight is False
    assert cfg.api.base_url == "https://example.supabase.co"
    assert cfg.ttl.search_sec == 60


def test_bad_env_override(monkeypatch, tmp_path):
    source = tmp_path / "config.yml"
    source.write_text("", encoding="utf-8")
    monkeypatch.setenv("CACHE_CAPACITY", "lots")

    with pytest.raises(ValueError):
        load_config(source)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yml")


def test_shipped_defaults_load():
    from pathlib import Path

    cfg = load_config(Path(__file__).parent.parent / "config" / "cache.defaults.yml")
    assert cfg.capacity == 100
    assert cfg.api.table == "documents"
