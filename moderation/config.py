"""Dynaconf settings loader for the moderation service."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from dynaconf import Dynaconf

_POLICY_KEYS = (
    "auto_mode",
    "quiet_mode",
    "imbalance_score_threshold",
    "imbalance_hold_seconds",
    "nudge_hold_seconds",
)


@lru_cache(maxsize=1)
def _settings() -> Dynaconf:
    base_dir = Path(__file__).resolve().parent.parent
    return Dynaconf(
        envvar_prefix="MODERATION",
        settings_files=[
            str(base_dir / "config" / "settings.toml"),
            str(base_dir / "config" / ".secrets.toml"),
        ],
        environments=True,
        default_env="default",
        load_dotenv=True,
    )


def _as_str_map(value: Any) -> Dict[str, str]:
    if hasattr(value, "items"):
        return {str(k).lower(): str(v).strip() for k, v in value.items()}
    return {}


def get_policy_overrides() -> Dict[str, Any]:
    # Only keys the engine accepts; missing ones fall back to engine defaults.
    settings = _settings()
    policy = settings.get("policy") or {}
    if not hasattr(policy, "items"):
        return {}
    return {str(k).lower(): v for k, v in policy.items() if str(k).lower() in _POLICY_KEYS}


def get_default_speakers() -> list[str]:
    settings = _settings()
    speakers = settings.get("default_speakers") or []
    return [str(s) for s in speakers]


def get_max_speakers() -> int:
    settings = _settings()
    return int(settings.get("max_speakers", 10))


def get_history_max_transitions() -> int:
    settings = _settings()
    return int(settings.get("history_max_transitions", 200))


def get_tick_interval_seconds() -> float:
    settings = _settings()
    return float(settings.get("tick_interval_seconds", 1.0))


def get_phase_texts() -> Dict[str, str]:
    settings = _settings()
    return _as_str_map(settings.get("phase_texts") or {})


def get_fallback_texts() -> Dict[str, str]:
    settings = _settings()
    return _as_str_map(settings.get("fallback_texts") or {})


def get_advisor_prompt() -> str:
    settings = _settings()
    prompt = settings.get("advisor_prompt") or ""
    return str(prompt).strip()


def get_advisor_system_prompt() -> str:
    settings = _settings()
    prompt = settings.get("advisor_system_prompt") or ""
    return str(prompt).strip()


def get_advisor_temperature() -> float:
    settings = _settings()
    return float(settings.get("advisor_temperature", 0.7))
