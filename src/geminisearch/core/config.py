# src/geminisearch/core/config.py
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from geminisearch.core.errors import ConfigurationError

API_KEY_VARS = ("GOOGLE_API_KEY", "GEMINI_API_KEY")


@dataclass(frozen=True)
class AppConfig:
    # Credentials / model
    api_key: str
    model_name: Optional[str] = None  # None -> adapter default

    # Environment (informational)
    app_env: str = "development"

    # Generation
    temperature: float = 0.9
    top_p: float = 1.0
    top_k: int = 1
    max_tokens: int = 2048
    request_timeout_sec: float = 60.0

    # Sessions (0 = unbounded / never expire)
    session_ttl_sec: int = 0
    session_max_items: int = 0

    log_level: str = "INFO"


def _num(env: Mapping[str, str], name: str, default, cast):
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _log_level(env: Mapping[str, str]) -> str:
    level = (env.get("LOG_LEVEL") or "INFO").strip().upper()
    # getLevelName maps known names to their int value
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, got {level!r}")
    return level


def load_config(env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None) -> AppConfig:
    """
    Resolve settings from the process environment (plus a local .env file),
    or from an explicit mapping when one is given.
    Raises ConfigurationError when no API key is present.
    """
    if env is None:
        # .env never overrides variables that are already set
        load_dotenv(dotenv_path=dotenv_path or find_dotenv(usecwd=True))
        env = os.environ

    api_key = ""
    for name in API_KEY_VARS:
        api_key = (env.get(name) or "").strip()
        if api_key:
            break
    if not api_key:
        raise ConfigurationError("Set GOOGLE_API_KEY or GEMINI_API_KEY in your .env file or environment")

    return AppConfig(
        api_key=api_key,
        model_name=(env.get("GEMINI_MODEL") or "").strip() or None,
        app_env=(env.get("APP_ENV") or "development").strip().lower(),
        temperature=_num(env, "TEMPERATURE", 0.9, float),
        top_p=_num(env, "TOP_P", 1.0, float),
        top_k=_num(env, "TOP_K", 1, int),
        max_tokens=_num(env, "MAX_TOKENS", 2048, int),
        request_timeout_sec=_num(env, "REQUEST_TIMEOUT_SEC", 60.0, float),
        session_ttl_sec=_num(env, "SESSION_TTL_SEC", 0, int),
        session_max_items=_num(env, "SESSION_MAX_ITEMS", 0, int),
        log_level=_log_level(env),
    )
