from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml


MAX_PASSES = 100

ENV_MAX_PASSES = "CPM_MAX_PASSES"
ENV_REJECT_CYCLES = "CPM_REJECT_CYCLES"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class EngineConfig:
    max_passes: int = MAX_PASSES
    # Off: cyclic input yields a capped, possibly inconsistent schedule.
    # On: the run is refused with CycleDetected before any pass.
    reject_cycles: bool = False


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load engine settings from a YAML file.

    Format:
      max_passes: 100
      reject_cycles: false
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"config file is not valid YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping")

    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k == "max_passes":
            out[k] = _check_max_passes(v)
        elif k == "reject_cycles":
            if not isinstance(v, bool):
                raise ConfigError("reject_cycles must be a boolean")
            out[k] = v
        else:
            raise ConfigError(f"unknown config key: {k} (choose from: max_passes, reject_cycles)")
    return out


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    out: dict[str, Any] = {}

    max_passes = env.get(ENV_MAX_PASSES)
    if max_passes is not None and max_passes.strip():
        try:
            out["max_passes"] = _check_max_passes(int(max_passes))
        except ValueError as e:
            raise ConfigError(f"{ENV_MAX_PASSES}: {e}") from e

    reject = env.get(ENV_REJECT_CYCLES)
    if reject is not None:
        flag = reject.strip().lower()
        if flag in _TRUE:
            out["reject_cycles"] = True
        elif flag in _FALSE:
            out["reject_cycles"] = False
        else:
            raise ConfigError(f"{ENV_REJECT_CYCLES} must be a boolean flag, got {reject!r}")

    return out


def load_config(
    config_file: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> EngineConfig:
    """Defaults, then the config file, then environment, then explicit overrides (None skipped)."""
    cfg = EngineConfig()
    if config_file:
        cfg = replace(cfg, **load_config_file(config_file))
    cfg = replace(cfg, **env_overrides(environ))

    explicit = {k: v for k, v in overrides.items() if v is not None}
    if "max_passes" in explicit:
        explicit["max_passes"] = _check_max_passes(explicit["max_passes"])
    return replace(cfg, **explicit)


def _check_max_passes(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, int) or v < 1:
        raise ConfigError(f"max_passes must be a positive integer, got {v!r}")
    return v
