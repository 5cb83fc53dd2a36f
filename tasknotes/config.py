from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError

STRICT = "strict"
LENIENT = "lenient"
POLICIES = (STRICT, LENIENT)


@dataclass(frozen=True)
class Settings:
    """
    Handler settings loaded from environment variables.

    Env vars:
    - SUPABASE_URL: Supabase project URL (required)
    - SUPABASE_ANON_KEY: API key (required; SUPABASE_KEY accepted as fallback)
    - SUPABASE_SCHEMA: Postgres schema, 'public' by default
    - SUPABASE_TIMEOUT: PostgREST timeout in seconds, 10 by default
    - SUPABASE_REPLACE_RPC: name of a transactional replace function (optional)
    - LOAD_POLICY / SAVE_POLICY: 'strict' or 'lenient'
    - LOAD_LIMIT: per-collection cap for load, 100 by default, 0 disables
    - TELEGRAM_BOT_TOKEN: enables initData signature verification (optional)
    - INIT_DATA_MAX_AGE: max age of auth_date in seconds, 0 disables
    """

    supabase_url: str
    supabase_key: str
    schema: str = "public"
    timeout: int = 10
    replace_rpc: Optional[str] = None
    load_policy: str = LENIENT
    save_policy: str = STRICT
    load_limit: Optional[int] = 100
    bot_token: Optional[str] = None
    init_data_max_age: int = 86400


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative")
    return value


def _policy_env(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(name, "").strip().lower() or default
    if value not in POLICIES:
        raise ConfigurationError(f"{name} must be one of {', '.join(POLICIES)}, got {value!r}")
    return value


def credentials_status(environ: Optional[Mapping[str, str]] = None) -> dict:
    """Report which Supabase credentials are present, for the 500 debug block."""
    env = os.environ if environ is None else environ
    return {
        "hasUrl": bool(env.get("SUPABASE_URL")),
        "hasKey": bool(env.get("SUPABASE_ANON_KEY") or env.get("SUPABASE_KEY")),
    }


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment on every call.

    Raises:
        ConfigurationError if the Supabase URL or key is missing, or if any
        optional value cannot be parsed.
    """
    env = os.environ if environ is None else environ

    url = env.get("SUPABASE_URL", "").strip()
    key = (env.get("SUPABASE_ANON_KEY") or env.get("SUPABASE_KEY") or "").strip()
    if not url or not key:
        raise ConfigurationError("Environment variables not configured")

    limit = _int_env(env, "LOAD_LIMIT", 100)

    return Settings(
        supabase_url=url,
        supabase_key=key,
        schema=env.get("SUPABASE_SCHEMA", "").strip() or "public",
        timeout=_int_env(env, "SUPABASE_TIMEOUT", 10),
        replace_rpc=env.get("SUPABASE_REPLACE_RPC", "").strip() or None,
        load_policy=_policy_env(env, "LOAD_POLICY", LENIENT),
        save_policy=_policy_env(env, "SAVE_POLICY", STRICT),
        load_limit=limit or None,
        bot_token=env.get("TELEGRAM_BOT_TOKEN", "").strip() or None,
        init_data_max_age=_int_env(env, "INIT_DATA_MAX_AGE", 86400),
    )


def log_level(environ: Optional[Mapping[str, str]] = None) -> int:
    """Numeric level for LOG_LEVEL; unknown names fall back to INFO."""
    env = os.environ if environ is None else environ
    level = logging.getLevelName(env.get("LOG_LEVEL", "").strip().upper() or "INFO")
    return level if isinstance(level, int) else logging.INFO
