from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Dict

import yaml

DEFAULT_CONFIG: Dict[str, object] = {
    "db_path": "cashplanner.db",
    "output_dir": "./data",
    "output_modules": {
        "csv": "cash_planner.outputs.csv_output.CSVOutput",
        "excel": "cash_planner.outputs.excel_output.ExcelOutput",
    },
    "auth": {
        "enabled": True,
        "token_secret": None,
        "token_ttl_seconds": 86400,
        # Owner every request resolves to when auth is disabled.
        "default_owner_id": "1",
    },
    "cors": {
        "allow_origins": ["*"],
    },
    "llm": {
        "provider": "gemini",
        "model": None,
        "timeout_seconds": 60,
        "response_schema": True,
    },
}

_TRUE = {"1", "true", "yes", "on"}


def _merge_defaults(current: Dict[str, object], defaults: Dict[str, object]) -> Dict[str, object]:
    """Merge missing default keys into the current config recursively."""
    merged = dict(current)
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
    return merged


def _apply_env(config: Dict[str, object]) -> Dict[str, object]:
    env = os.environ
    if env.get("CASH_PLANNER_DB"):
        config["db_path"] = env["CASH_PLANNER_DB"]
    auth = config["auth"]
    if env.get("CASH_PLANNER_TOKEN_SECRET"):
        auth["token_secret"] = env["CASH_PLANNER_TOKEN_SECRET"]
    if env.get("CASH_PLANNER_AUTH_ENABLED"):
        auth["enabled"] = env["CASH_PLANNER_AUTH_ENABLED"].strip().lower() in _TRUE
    if env.get("CORS_ALLOW_ORIGINS"):
        config["cors"]["allow_origins"] = [
            origin.strip() for origin in env["CORS_ALLOW_ORIGINS"].split(",") if origin.strip()
        ]
    llm = config["llm"]
    if env.get("CASH_PLANNER_LLM_PROVIDER"):
        llm["provider"] = env["CASH_PLANNER_LLM_PROVIDER"]
    if env.get("CASH_PLANNER_LLM_MODEL"):
        llm["model"] = env["CASH_PLANNER_LLM_MODEL"]
    return config


def load_config(path: str | Path | None = None) -> Dict[str, object]:
    """Load YAML config from *path*, fill in defaults, then apply env overrides.

    A missing file is not an error: the defaults are used as-is.
    """
    data: Dict[str, object] = {}
    if path is not None:
        target = Path(path)
        if target.exists():
            with target.open("r", encoding="utf-8") as fp:
                data = yaml.safe_load(fp) or {}
    return _apply_env(_merge_defaults(data, DEFAULT_CONFIG))


def save_config(config: Dict[str, object], path: str | Path) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as fp:
        yaml.safe_dump(config, fp, sort_keys=False)
