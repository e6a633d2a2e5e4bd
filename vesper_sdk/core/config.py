import json
import os
from pathlib import Path
from typing import Any

from vesper_sdk.core.constants.base import (
    DEFAULT_DUST_TOLERANCE,
    DEFAULT_GAS_OVERESTIMATION,
    DEFAULT_STAGES,
    EXPECTED_GAS,
)

_CONFIG_ENV_KEYS = ("VESPER_CONFIG_PATH", "VESPER_CONFIG")
_OVERESTIMATION_ENV_KEY = "VESPER_GAS_OVERESTIMATION"
_DEFAULT_CONFIG_FILENAME = "config.json"


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except Exception:
        return {}


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    This allows code that imported CONFIG at module import time to see updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def _vesper_section() -> dict[str, Any]:
    section = CONFIG.get("vesper")
    return section if isinstance(section, dict) else {}


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("rpc_urls", {})


def get_gas_overestimation() -> float:
    env_value = os.environ.get(_OVERESTIMATION_ENV_KEY)
    raw = env_value or _vesper_section().get("gas_overestimation")
    if raw is None:
        return DEFAULT_GAS_OVERESTIMATION
    value = float(raw)
    if value < 1:
        raise ValueError(f"gas overestimation must be >= 1, got {value}")
    return value


def get_dust_tolerance() -> float:
    raw = _vesper_section().get("dust_tolerance")
    if raw is None:
        return DEFAULT_DUST_TOLERANCE
    value = float(raw)
    if not 0 <= value < 1:
        raise ValueError(f"dust tolerance must be in [0, 1), got {value}")
    return value


def get_stages() -> list[str]:
    stages = _vesper_section().get("stages")
    if isinstance(stages, str):
        return [stages]
    return list(stages) if stages else list(DEFAULT_STAGES)


def get_metadata_path() -> Path | None:
    raw = _vesper_section().get("metadata_path")
    if not raw:
        return None
    p = Path(str(raw)).expanduser()
    if p.is_absolute():
        return p
    root = _project_root()
    return (root / p) if root else p


def get_expected_gas() -> dict[str, int]:
    overrides = _vesper_section().get("expected_gas") or {}
    return {**EXPECTED_GAS, **{k: int(v) for k, v in overrides.items()}}
