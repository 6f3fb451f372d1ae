"""
Dispatch Configuration

Frozen configuration records plus the YAML/environment loader.

PRECEDENCE (lowest to highest):
===============================
1. Built-in defaults
2. YAML file (argument, DISPATCH_CONFIG_PATH, or ./dispatch-config.yaml)
3. Environment overrides

Config objects never change after load; update_config() on the
orchestrator builds a new RouterConfig.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
import logging
import os

import yaml

from .contracts import BackendKind, Capability, NodeConfig, Provider, Tier
from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./dispatch-config.yaml"

DEFAULT_ALLOWED_EXTENSIONS = (
    ".ts", ".js", ".json", ".md", ".txt", ".yaml", ".yml",
    ".css", ".html", ".tsx", ".jsx", ".py",
)


# =============================================================================
# CONFIG RECORDS
# =============================================================================

@dataclass(frozen=True)
class RouterConfig:
    enable_audit: bool = True
    enable_auto_switch: bool = True
    max_retries: int = 3
    timeout_seconds: float = 30.0
    base_backoff_seconds: float = 1.0
    max_jitter_seconds: float = 0.5


@dataclass(frozen=True)
class BridgeConfig:
    root_dir: str = "./"
    allowed_extensions: Tuple[str, ...] = DEFAULT_ALLOWED_EXTENSIONS
    enable_backup: bool = True
    backup_dir: str = ".dispatch/backups"
    backup_max_age_days: float = 7.0
    publish_step_delays: Tuple[float, ...] = (0.8, 0.5)


@dataclass(frozen=True)
class LogConfig:
    level: str = "info"
    file_path: Optional[str] = "./logs/dispatch.log"
    max_files: int = 7


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 51124
    env: str = "development"
    cors_origins: Tuple[str, ...] = ("http://localhost:3000", "http://localhost:5173")


@dataclass(frozen=True)
class AdapterCredentials:
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    default_model: Optional[str] = None

    @property
    def configured(self) -> bool:
        return has_real_key(self.api_key)


def _default_nodes() -> Tuple[NodeConfig, ...]:
    full = (
        Capability.TEXT_GENERATION,
        Capability.STRUCTURED_OUTPUT,
        Capability.TOOL_USE,
        Capability.VISION,
    )
    return (
        NodeConfig("gemini-node", Provider.GOOGLE, Tier.MID, BackendKind.API, full),
        NodeConfig("claude-node", Provider.ANTHROPIC, Tier.MID, BackendKind.API, full),
        NodeConfig(
            "gpt-node", Provider.OPENAI, Tier.LOWEST, BackendKind.API,
            (Capability.TEXT_GENERATION, Capability.STRUCTURED_OUTPUT),
        ),
        NodeConfig(
            "arena-node", Provider.ARENA, Tier.HIGHEST, BackendKind.BROWSER_AUTOMATION,
            (Capability.TEXT_GENERATION, Capability.STRUCTURED_OUTPUT, Capability.TOOL_USE),
        ),
    )


@dataclass(frozen=True)
class DispatchConfig:
    """Aggregate configuration for one dispatch process."""
    server: ServerConfig = field(default_factory=ServerConfig)
    router: RouterConfig = field(default_factory=RouterConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    log: LogConfig = field(default_factory=LogConfig)
    adapters: Dict[str, AdapterCredentials] = field(default_factory=dict)
    nodes: Tuple[NodeConfig, ...] = field(default_factory=_default_nodes)

    def credentials(self, provider: Provider) -> AdapterCredentials:
        return self.adapters.get(provider.value.lower(), AdapterCredentials())


# =============================================================================
# LOADING
# =============================================================================

def has_real_key(api_key: Optional[str]) -> bool:
    """False for empty keys and starter-file placeholders like 'your-openai-key'."""
    if not api_key:
        return False
    key = api_key.strip()
    return bool(key) and not (key.startswith("your-") and key.endswith("-key"))


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> DispatchConfig:
    """
    Load configuration from YAML and environment.

    A missing file is not an error; a malformed one raises ConfigError.
    """
    env = os.environ if environ is None else environ
    file_path = Path(path or env.get("DISPATCH_CONFIG_PATH") or DEFAULT_CONFIG_PATH)

    data: Dict[str, Any] = {}
    if file_path.is_file():
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot read config {file_path}: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"config root must be a mapping: {file_path}")
        data = loaded or {}
        logger.info("Loaded configuration from %s", file_path)
    else:
        logger.info("No config file at %s, using defaults + environment", file_path)

    _apply_env(data, env)
    return _build(data)


def _apply_env(data: Dict[str, Any], env: Mapping[str, str]):
    server = data.setdefault("server", {}) or {}
    if not isinstance(server, dict):
        raise ConfigError("section 'server' must be a mapping")
    data["server"] = server
    if env.get("DISPATCH_PORT"):
        server["port"] = env["DISPATCH_PORT"]
    if env.get("DISPATCH_ENV"):
        server["env"] = env["DISPATCH_ENV"]
    if env.get("DISPATCH_CORS"):
        server["cors_origins"] = [o.strip() for o in env["DISPATCH_CORS"].split(",") if o.strip()]

    if env.get("DISPATCH_LOG_LEVEL"):
        data.setdefault("log", {})
        data["log"] = dict(data["log"] or {}, level=env["DISPATCH_LOG_LEVEL"])

    if env.get("DISPATCH_ROOT_DIR"):
        data.setdefault("bridge", {})
        data["bridge"] = dict(data["bridge"] or {}, root_dir=env["DISPATCH_ROOT_DIR"])

    adapters = data.setdefault("adapters", {}) or {}
    if not isinstance(adapters, dict):
        return
    data["adapters"] = adapters
    for name, prefix, extra in (
        ("openai", "OPENAI", ("BASE_URL",)),
        ("anthropic", "ANTHROPIC", ()),
        ("google", "GOOGLE", ()),
    ):
        section = dict(adapters.get(name) or {})
        if has_real_key(env.get(f"{prefix}_API_KEY")):
            section["api_key"] = env[f"{prefix}_API_KEY"]
        if env.get(f"{prefix}_MODEL"):
            section["default_model"] = env[f"{prefix}_MODEL"]
        if "BASE_URL" in extra and env.get(f"{prefix}_BASE_URL"):
            section["base_url"] = env[f"{prefix}_BASE_URL"]
        if section:
            adapters[name] = section


def _section(cls, raw: Any, name: str):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"section '{name}' must be a mapping")
    known = {f.name: f for f in fields(cls)}
    unknown = set(raw) - set(known)
    if unknown:
        logger.warning("Ignoring unknown keys in '%s': %s", name, ", ".join(sorted(unknown)))

    values = {}
    defaults = cls()
    for key, value in raw.items():
        if key not in known:
            continue
        default = getattr(defaults, key)
        try:
            if isinstance(default, bool):
                values[key] = value if isinstance(value, bool) else str(value).lower() in ("1", "true", "yes")
            elif isinstance(default, int):
                values[key] = int(value)
            elif isinstance(default, float):
                values[key] = float(value)
            elif isinstance(default, tuple):
                values[key] = tuple(value)
            else:
                values[key] = value
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid value for {name}.{key}: {value!r}") from e
    return cls(**values)


def _node(raw: Any) -> NodeConfig:
    if not isinstance(raw, dict) or "node_id" not in raw and "id" not in raw:
        raise ConfigError(f"node entry must be a mapping with node_id: {raw!r}")
    try:
        kind = raw.get("kind") or raw.get("type") or BackendKind.API.value
        return NodeConfig(
            node_id=str(raw.get("node_id") or raw.get("id")),
            provider=Provider(str(raw["provider"]).upper()),
            tier=Tier.parse(raw["tier"]),
            kind=BackendKind(kind),
            capabilities=tuple(raw.get("capabilities") or ()),
            endpoint=raw.get("endpoint"),
            max_tokens=int(raw.get("max_tokens", 4096)),
        )
    except (KeyError, ValueError) as e:
        raise ConfigError(f"invalid node entry {raw!r}: {e}") from e


def _build(data: Dict[str, Any]) -> DispatchConfig:
    adapters_raw = data.get("adapters") or {}
    if not isinstance(adapters_raw, dict):
        raise ConfigError("section 'adapters' must be a mapping")
    adapters = {
        name.lower(): _section(AdapterCredentials, section, f"adapters.{name}")
        for name, section in adapters_raw.items()
    }

    nodes_raw = data.get("nodes")
    if isinstance(nodes_raw, dict):
        nodes_raw = nodes_raw.get("registry")
    nodes = tuple(_node(n) for n in nodes_raw) if nodes_raw else _default_nodes()

    return DispatchConfig(
        server=_section(ServerConfig, data.get("server"), "server"),
        router=_section(RouterConfig, data.get("router"), "router"),
        bridge=_section(BridgeConfig, data.get("bridge"), "bridge"),
        log=_section(LogConfig, data.get("log"), "log"),
        adapters=adapters,
        nodes=nodes,
    )


# =============================================================================
# STARTER FILE
# =============================================================================

_STARTER_HEADER = """\
# Dispatch configuration
# Environment variables override these values:
#   DISPATCH_PORT, DISPATCH_ENV, DISPATCH_CORS, DISPATCH_LOG_LEVEL,
#   DISPATCH_ROOT_DIR, OPENAI_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY
"""


def default_config_dict() -> Dict[str, Any]:
    config = DispatchConfig()
    return {
        "server": _plain(asdict(config.server)),
        "log": _plain(asdict(config.log)),
        "router": _plain(asdict(config.router)),
        "bridge": _plain(asdict(config.bridge)),
        "adapters": {
            "openai": {"api_key": "your-openai-key", "default_model": "gpt-4o"},
            "anthropic": {"api_key": "your-anthropic-key"},
            "google": {"api_key": "your-google-key"},
        },
        "nodes": [
            {
                "node_id": n.node_id,
                "provider": n.provider.value,
                "tier": n.tier.value,
                "kind": n.kind.value,
                "capabilities": list(n.capabilities),
            }
            for n in config.nodes
        ],
    }


def _plain(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: list(v) if isinstance(v, tuple) else v for k, v in values.items()}


def write_default_config(path: str = DEFAULT_CONFIG_PATH) -> Path:
    """Write a commented starter YAML file and return its path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    body = yaml.safe_dump(default_config_dict(), sort_keys=False, default_flow_style=False)
    target.write_text(_STARTER_HEADER + "\n" + body, encoding="utf-8")
    logger.info("Wrote starter configuration to %s", target)
    return target
