"""
Run configuration.

Values are resolved in order: ``DEFAULT_CONFIG``, an optional YAML file
(``PAPER_ENTRY_CONFIG`` or ``./config.yaml``), then environment variables
(a local ``.env`` file is loaded first).
"""
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv


class ConfigError(Exception):
    """Configuration could not be loaded or contains invalid values."""

    pass


DEFAULT_CONFIG: Dict[str, Any] = {
    # Papers processed at once; also the batch size
    "max_concurrent_papers": 3,
    "papers_dir": "output_toml",
    "warn_file": "warn.txt",
    "log_file": "output.txt",
    "verbose_logging": False,
    "tiku": {
        "base_url": "https://tps-tiku-api.staff.xdf.cn",
        "token": None,
        "cookie": None,
        "request_timeout_seconds": {"connect": 10, "read": 60},
        "endpoints": {
            "save_question": "/question/new/save",
            "submit_paper": "/paper/process/submit",
        },
    },
    "search": {
        "max_retries": 50,
        "rate_limit_delay_seconds": 2.0,
        # Tried in order; the first is backend #1
        "backends": [
            {
                "name": "similar",
                "endpoint": "/api/questionsimilar/queryByText",
                "request_interval_seconds": 0.3,
            },
            {
                "name": "xkw",
                "endpoint": "/api/third/xkw/question/v2/text-search",
                "request_interval_seconds": 0.0,
            },
        ],
    },
    "judgment": {
        "base_url": "https://openrouter.ai/api/v1",
        "api_key": None,
        "model": "doubao-seed-1.6",
        "temperature": 0.0,
        "max_attempts": 3,
        "request_timeout_seconds": {"connect": 10, "read": 120},
    },
}

# env var -> (config path, type)
_ENV_OVERRIDES = {
    "MAX_CONCURRENT_PAPERS": (("max_concurrent_papers",), int),
    "TOML_FOLDER": (("papers_dir",), str),
    "PAPERS_DIR": (("papers_dir",), str),
    "WARN_FILE": (("warn_file",), str),
    "OUTPUT_LOG_FILE": (("log_file",), str),
    "VERBOSE_LOGGING": (("verbose_logging",), bool),
    "TIKU_BASE_URL": (("tiku", "base_url"), str),
    "TIKU_TOKEN": (("tiku", "token"), str),
    "TIKU_COOKIE": (("tiku", "cookie"), str),
    "JUDGMENT_API_BASE": (("judgment", "base_url"), str),
    "JUDGMENT_API_KEY": (("judgment", "api_key"), str),
    "JUDGMENT_MODEL": (("judgment", "model"), str),
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested dicts merge, other values replace."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _parse_env_value(name: str, raw: str, kind: type) -> Any:
    if kind is bool:
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if kind is int:
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    return raw


# config path -> type; values may come from YAML as strings
_NUMERIC_KEYS = (
    (("max_concurrent_papers",), int),
    (("tiku", "request_timeout_seconds", "connect"), float),
    (("tiku", "request_timeout_seconds", "read"), float),
    (("search", "max_retries"), int),
    (("search", "rate_limit_delay_seconds"), float),
    (("judgment", "temperature"), float),
    (("judgment", "max_attempts"), int),
    (("judgment", "request_timeout_seconds", "connect"), float),
    (("judgment", "request_timeout_seconds", "read"), float),
)


def _to_number(name: str, value: Any, kind: type) -> Any:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e


def _coerce_numbers(config: Dict[str, Any]) -> None:
    """Convert numeric settings in place; raises ConfigError on bad values."""
    for keys, kind in _NUMERIC_KEYS:
        target = config
        for key in keys[:-1]:
            target = target.get(key)
            if not isinstance(target, dict):
                raise ConfigError(f"{'.'.join(keys[:-1])} must be a mapping")
        target[keys[-1]] = _to_number(".".join(keys), target.get(keys[-1]), kind)

    backends = config["search"].get("backends")
    if not isinstance(backends, list):
        raise ConfigError("search.backends must be a list")
    if len(backends) < 2:
        raise ConfigError("search.backends must list two backends")
    for i, backend in enumerate(backends):
        if not isinstance(backend, dict) or not backend.get("name") or not backend.get("endpoint"):
            raise ConfigError(f"search.backends[{i}] needs a name and an endpoint")
        backend["request_interval_seconds"] = _to_number(
            f"search.backends[{i}].request_interval_seconds",
            backend.get("request_interval_seconds", 0.0),
            float,
        )


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def get_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the run configuration.

    Args:
        config_path: Optional YAML file; defaults to PAPER_ENTRY_CONFIG or ./config.yaml

    Returns:
        Configuration dictionary shaped like DEFAULT_CONFIG

    Raises:
        ConfigError: On unreadable files or invalid values
    """
    load_dotenv()

    config = copy.deepcopy(DEFAULT_CONFIG)

    path_str = config_path or os.environ.get("PAPER_ENTRY_CONFIG")
    if path_str:
        path = Path(path_str)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        config = _deep_merge(config, _load_yaml(path))
    elif Path("config.yaml").exists():
        config = _deep_merge(config, _load_yaml(Path("config.yaml")))

    for name, (keys, kind) in _ENV_OVERRIDES.items():
        raw = os.environ.get(name)
        if raw is None or raw == "":
            continue
        target = config
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = _parse_env_value(name, raw, kind)

    _coerce_numbers(config)
    if config["max_concurrent_papers"] < 1:
        raise ConfigError("max_concurrent_papers must be at least 1")

    return config
