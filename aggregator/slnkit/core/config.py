from __future__ import annotations

"""
config.py – Aggregator settings.
Precedence (later wins): defaults, YAML file, SLNKIT_* environment, explicit overrides.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .fs_scan import normalize_extensions
from .heuristics import PROJECT_EXTENSIONS
from .retry import DEFAULT_ATTEMPTS, DEFAULT_DELAY_SEC

logger = logging.getLogger(__name__)

DEFAULT_PASSES = 15
HOST_KINDS = ("dte", "file")

ENV_PREFIX = "SLNKIT_"


def load_yaml(path: str | Path) -> Dict[str, Any]:
    """Load a YAML config file into a dict. An empty file yields {}."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping: {path}")
    return data


def _parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AggregatorConfig:
    passes: int = DEFAULT_PASSES
    attempts: int = DEFAULT_ATTEMPTS
    retry_delay: float = DEFAULT_DELAY_SEC
    extensions: Tuple[str, ...] = field(default_factory=lambda: PROJECT_EXTENSIONS)
    host_version: str = "VS2015"
    host: str = "dte"
    stop_on_convergence: bool = False

    def __post_init__(self):
        if self.passes < 1:
            raise ValueError("passes must be >= 1")
        if self.attempts < 0:
            raise ValueError("attempts must be >= 0")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        if self.host not in HOST_KINDS:
            raise ValueError(f"host must be one of {HOST_KINDS}, got {self.host!r}")
        self.extensions = normalize_extensions(self.extensions)

    @classmethod
    def _coerce(cls, key: str, raw: Any) -> Any:
        if key in ("passes", "attempts"):
            return int(raw)
        if key == "retry_delay":
            return float(raw)
        if key == "stop_on_convergence":
            return _parse_bool(raw)
        if key == "extensions":
            return normalize_extensions(raw)
        return str(raw)

    def merged(self, values: Mapping[str, Any]) -> "AggregatorConfig":
        known = {f.name for f in fields(self)}
        changes: Dict[str, Any] = {}
        for key, raw in values.items():
            if raw is None:
                continue
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            changes[key] = self._coerce(key, raw)
        return replace(self, **changes)

    @classmethod
    def from_env(cls, base: Optional["AggregatorConfig"] = None, environ: Optional[Mapping[str, str]] = None) -> "AggregatorConfig":
        cfg = base or cls()
        env = os.environ if environ is None else environ
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            try:
                cfg = cfg.merged({f.name: raw})
            except ValueError:
                logger.warning(f"Invalid {ENV_PREFIX}{f.name.upper()}={raw!r}, keeping {getattr(cfg, f.name)!r}")
        return cfg

    @classmethod
    def load(cls, path: Optional[str | Path] = None, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "AggregatorConfig":
        cfg = cls()
        if path:
            cfg = cfg.merged(load_yaml(path))
        cfg = cls.from_env(cfg, environ)
        return cfg.merged(overrides)
