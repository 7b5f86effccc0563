"""Service configuration: JSON config file plus environment overrides.

Config file layout (all keys optional)::

    {
        "environment": "development",
        "storage": {"path": "data/users.json", "scratch_path": "/tmp/tripmaker-users.json"},
        "auth": {"jwt_secret": "...", "token_expiry": "7d"},
        "web": {"host": "0.0.0.0", "port": 3000},
        "event_log": ".tripmaker/auth-events.jsonl"
    }

Environment variables win over the file: USER_DB_PATH, JWT_SECRET,
JWT_EXPIRES_IN, APP_ENV (NODE_ENV when unset), HOST, PORT, EVENT_LOG_PATH.
When VERCEL is set and no storage path is configured, storage starts out on
the scratch path.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from .auth.store import DEFAULT_DB_PATH, DEFAULT_SCRATCH_PATH
from .auth.tokens import DEFAULT_EXPIRY, TokenIssuer
from .event_log import DEFAULT_EVENT_LOG

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "environment": "development",
    "storage": {"path": None, "scratch_path": str(DEFAULT_SCRATCH_PATH)},
    "auth": {"jwt_secret": "", "token_expiry": "7d"},
    "web": {"host": "0.0.0.0", "port": 3000},
    "event_log": DEFAULT_EVENT_LOG,
}


class ConfigError(Exception):
    """Configuration is missing or invalid; the service must not start."""


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(
    config_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> dict[str, Any]:
    """Load configuration from an optional JSON file, then apply env overrides.

    Raises:
        ConfigError: the file is named but missing, or is not a JSON object.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config not found at {path}")
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config at {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config at {path} must be a JSON object")
        _merge(config, data)

    return apply_env_overrides(config, os.environ if env is None else env)


def apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    environment = env.get("APP_ENV") or env.get("NODE_ENV")
    if environment:
        config["environment"] = environment
    if env.get("USER_DB_PATH"):
        config["storage"]["path"] = env["USER_DB_PATH"]
    if env.get("JWT_SECRET"):
        config["auth"]["jwt_secret"] = env["JWT_SECRET"]
    if env.get("JWT_EXPIRES_IN"):
        config["auth"]["token_expiry"] = env["JWT_EXPIRES_IN"]
    if env.get("HOST"):
        config["web"]["host"] = env["HOST"]
    if env.get("PORT"):
        try:
            config["web"]["port"] = int(env["PORT"])
        except ValueError as e:
            raise ConfigError(f"PORT must be an integer, got {env['PORT']!r}") from e
    if env.get("EVENT_LOG_PATH"):
        config["event_log"] = env["EVENT_LOG_PATH"]

    if not config["storage"].get("path"):
        # Serverless deployments have a read-only code directory.
        config["storage"]["path"] = (
            config["storage"]["scratch_path"] if env.get("VERCEL") else DEFAULT_DB_PATH
        )
    return config


def is_production(config: Mapping[str, Any]) -> bool:
    return str(config.get("environment", "")).lower() == "production"


def build_token_issuer(config: Mapping[str, Any]) -> TokenIssuer:
    """Create the TokenIssuer, refusing to run production without a secret.

    Outside production a missing secret is replaced by a random one, so tokens
    stop verifying after a restart.
    """
    auth = config.get("auth", {})
    secret = auth.get("jwt_secret", "")
    expiry = auth.get("token_expiry") or DEFAULT_EXPIRY

    try:
        if secret:
            if "CHANGE-ME" in secret:
                logger.warning("auth.jwt_secret contains placeholder value; tokens will be insecure")
            return TokenIssuer(secret, expiry)

        if is_production(config):
            raise ConfigError("JWT_SECRET is required in production")

        logger.warning("Development mode: using an auto-generated JWT secret")
        logger.warning("Set JWT_SECRET (or auth.jwt_secret) for stable tokens")
        return TokenIssuer.ephemeral(expiry)
    except ValueError as e:
        raise ConfigError(f"Invalid auth.token_expiry: {e}") from e
