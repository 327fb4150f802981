"""Configuration loader for the document cache."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass(frozen=True)
class TTLConfig:
    document_sec: float
    search_sec: float
    listing_sec: float

    def as_map(self) -> Dict[str, float]:
        return {
            "document": self.document_sec,
            "search": self.search_sec,
            "listing": self.listing_sec,
        }


@dataclass(frozen=True)
class TelemetryConfig:
    interval_sec: float
    slow_operation_ms: float


@dataclass(frozen=True)
class ApiConfig:
    base_url: str
    key: str
    table: str


@dataclass(frozen=True)
class CacheConfig:
    capacity: int
    max_bytes: int
    ttl: TTLConfig
    single_flight: bool
    telemetry: TelemetryConfig
    api: ApiConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheConfig":
        cache_data = data.get("cache", {})
        ttl_data = data.get("ttl", {})
        telemetry_data = data.get("telemetry", {})
        api_data = data.get("api", {})
        return cls(
            capacity=int(cache_data.get("capacity", 100)),
            max_bytes=int(cache_data.get("max_bytes", 50 * 1024 * 1024)),
            ttl=TTLConfig(
                document_sec=float(ttl_data.get("document_sec", 300)),
                search_sec=float(ttl_data.get("search_sec", 120)),
                listing_sec=float(ttl_data.get("listing_sec", 300)),
            ),
            single_flight=_as_bool(data.get("single_flight", True)),
            telemetry=TelemetryConfig(
                interval_sec=float(telemetry_data.get("interval_sec", 2.0)),
                slow_operation_ms=float(telemetry_data.get("slow_operation_ms", 100)),
            ),
            api=ApiConfig(
                base_url=str(api_data.get("base_url", "http://localhost:54321")),
                key=str(api_data.get("key") or ""),
                table=str(api_data.get("table", "documents")),
            ),
        )


ENV_MAP = {
    "cache.capacity": "CACHE_CAPACITY",
    "cache.max_bytes": "CACHE_MAX_BYTES",
    "ttl.document_sec": "CACHE_TTL_DOCUMENT_SEC",
    "ttl.search_sec": "CACHE_TTL_SEARCH_SEC",
    "ttl.listing_sec": "CACHE_TTL_LISTING_SEC",
    "single_flight": "CACHE_SINGLE_FLIGHT",
    "telemetry.interval_sec": "TELEMETRY_INTERVAL_SEC",
    "telemetry.slow_operation_ms": "TELEMETRY_SLOW_OPERATION_MS",
    "api.base_url": "DOCUMENTS_API_URL",
    "api.key": "DOCUMENTS_API_KEY",
    "api.table": "DOCUMENTS_API_TABLE",
}

_INT_KEYS = {"capacity", "max_bytes"}
_FLOAT_KEYS = {"document_sec", "search_sec", "listing_sec", "interval_sec", "slow_operation_ms"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        try:
            if last in _INT_KEYS:
                value = int(value)
            elif last in _FLOAT_KEYS:
                value = float(value)
            elif last == "single_flight":
                value = _as_bool(value)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {env_name}: {value!r}") from exc
        target[last] = value

    return merged


def load_config(config_path: str | Path = "config/cache.defaults.yml") -> CacheConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return CacheConfig.from_dict(data)
