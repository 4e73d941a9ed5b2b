from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml


DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_MONGODB_URI = "mongodb://localhost:27017/hitcounter"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass(frozen=True)
class DatabaseConfig:
    uri: str = DEFAULT_MONGODB_URI
    name: str = "hitcounter"
    collection: str = "logs"
    timeout_ms: int = 5000


@dataclass(frozen=True)
class CorsConfig:
    allowed_origins: Tuple[str, ...] = ()

    def allows(self, origin: Optional[str]) -> bool:
        if not origin:
            return False
        o = origin.strip().lower()
        return any(o == a.lower() for a in self.allowed_origins)


@dataclass(frozen=True)
class PrivacyConfig:
    # How many low IPv4 octets become "x" (1 or 2).
    ipv4_masked_octets: int = 2


@dataclass(frozen=True)
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    privacy: PrivacyConfig = field(default_factory=PrivacyConfig)
    log_level: str = "INFO"


def clamp_int(v: Any, lo: int, hi: int, *, default: int) -> int:
    try:
        n = int(v)
    except (TypeError, ValueError):
        return default
    return max(lo, min(hi, n))


def _split_origins(v: Any) -> Tuple[str, ...]:
    if v is None:
        return ()
    if isinstance(v, str):
        items = v.split(",")
    elif isinstance(v, (list, tuple)):
        items = [str(x) for x in v]
    else:
        raise ConfigError("cors.allowed_origins must be a list or a comma-separated string")
    return tuple(o.strip().rstrip("/") for o in items if o.strip())


def _section(raw: Mapping[str, Any], name: str) -> Dict[str, Any]:
    v = raw.get(name) or {}
    if not isinstance(v, dict):
        raise ConfigError(f"config section '{name}' must be a mapping")
    return v


def read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def build_config(raw: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> Config:
    """
    Merge a parsed YAML mapping with environment overrides.

    Environment variables (PORT, HOST, MONGODB_URI, CORS_ALLOW_ORIGINS,
    LOG_LEVEL) win over the file.
    """
    env = os.environ if env is None else env
    server = _section(raw, "server")
    database = _section(raw, "database")
    cors = _section(raw, "cors")
    privacy = _section(raw, "privacy")
    logging_cfg = _section(raw, "logging")

    defaults = Config()

    masked = privacy.get("ipv4_masked_octets", defaults.privacy.ipv4_masked_octets)
    if masked not in (1, 2):
        raise ConfigError("privacy.ipv4_masked_octets must be 1 or 2")

    level = str(env.get("LOG_LEVEL") or logging_cfg.get("level") or defaults.log_level).upper()

    return Config(
        server=ServerConfig(
            host=str(env.get("HOST") or server.get("host") or defaults.server.host),
            port=clamp_int(env.get("PORT") or server.get("port"), 1, 65535, default=defaults.server.port),
        ),
        database=DatabaseConfig(
            uri=str(env.get("MONGODB_URI") or database.get("uri") or defaults.database.uri),
            name=str(database.get("name") or defaults.database.name),
            collection=str(database.get("collection") or defaults.database.collection),
            timeout_ms=clamp_int(database.get("timeout_ms"), 100, 120_000, default=defaults.database.timeout_ms),
        ),
        cors=CorsConfig(
            allowed_origins=_split_origins(
                env.get("CORS_ALLOW_ORIGINS") if env.get("CORS_ALLOW_ORIGINS") else cors.get("allowed_origins")
            ),
        ),
        privacy=PrivacyConfig(ipv4_masked_octets=masked),
        log_level=level,
    )


def load_config(path: Optional[str] = None) -> Config:
    cfg_path = Path(path or os.environ.get("HITCOUNTER_CONFIG") or DEFAULT_CONFIG_PATH)
    try:
        raw = read_yaml(cfg_path)
    except yaml.YAMLError as e:
        raise ConfigError(f"{cfg_path}: {e}") from e
    return build_config(raw)
